"""Per-unit safe apply pipeline.

:class:`ChangeApplier` validates a proposed source text for one code unit,
checks which dependents it affects, dry-runs it and accepts or rejects it,
keeping a bounded backup history so accepted changes can be rolled back.
"""

import logging
import threading
from collections.abc import Callable, Iterable

from ..config.options import SafeChangeOptions
from ..units.capabilities import UnitCapabilities
from ..validation.pipeline import ValidationPipeline
from ..validation.security import security_stage
from ..validation.stages import ValidationStage, syntax_stage
from .backup import BackupStore
from .events import EventBus, SafeChangeEvent
from .models import (
    ChangeErrorKind,
    ChangeRequest,
    ChangeResult,
    CodeUnit,
    UnitId,
    ValidationContext,
    ValidationResult,
    ValidationSeverity,
)

UnitLookup = Callable[[UnitId], CodeUnit | None]
DependentsLookup = Callable[[UnitId], Iterable[UnitId]]
CommitHook = Callable[[UnitId, str], None]


def unit_not_found(unit_id: UnitId) -> ChangeResult:
    """Failure result for a unit the registry does not know."""
    return ChangeResult(
        success=False,
        unit_id=unit_id,
        error=f"Unit with ID {unit_id} not found",
        error_kind=ChangeErrorKind.NOT_FOUND,
    )


class ChangeApplier:
    """Validate, dry-run and accept source replacements for one unit family.

    The type-specific parts (pattern check, sandbox, export and prop
    extraction, diff rendering) come from a :class:`UnitCapabilities` record.
    Backup push through acceptance runs under a per-unit lock, so at most one
    apply is in flight for a given unit id.

    Example:
        >>> from change_guard.units.react import react_capabilities
        >>> applier = ChangeApplier(react_capabilities())
        >>> units = {"Btn": CodeUnit("Btn", "Btn", OLD_SOURCE)}
        >>> result = applier.apply_changes(ChangeRequest("Btn", NEW_SOURCE), units.get)
        >>> result.success
        True
    """

    def __init__(
        self,
        capabilities: UnitCapabilities,
        options: SafeChangeOptions | None = None,
        events: EventBus | None = None,
    ) -> None:
        """Initialize the applier.

        Args:
            capabilities: Type-specific functions for the units this applier handles.
            options: Pipeline options; defaults to ``SafeChangeOptions()``.
            events: Bus receiving lifecycle events; a private bus is created if omitted.
        """
        self.capabilities = capabilities
        self.options = options or SafeChangeOptions()
        self.events = events or EventBus()
        self.backups = BackupStore(self.options.max_backup_count)
        self.pipeline = self._build_pipeline()
        self._unit_locks: dict[UnitId, threading.RLock] = {}
        self._locks_guard = threading.Lock()
        self.logger = logging.getLogger(__name__)

    @property
    def name(self) -> str:
        """Name of the underlying capability record."""
        return self.capabilities.name

    @property
    def supported_types(self) -> frozenset[str]:
        """Unit type tags this applier handles."""
        return self.capabilities.supported_types

    def supports(self, unit_type: str) -> bool:
        """True when this applier handles ``unit_type``."""
        return self.capabilities.supports(unit_type)

    def configure(self, options: SafeChangeOptions) -> None:
        """Replace the options, rebuilding the pipeline and resizing backups."""
        self.options = options
        self.backups.resize(options.max_backup_count)
        self.pipeline = self._build_pipeline()
        self.logger.info(
            f"Applier '{self.name}' reconfigured: stages={self.pipeline.stage_names}, "
            f"max_backups={options.max_backup_count}"
        )

    def _build_pipeline(self) -> ValidationPipeline:
        stages: list[ValidationStage] = [syntax_stage()]
        if self.options.strict_validation:
            stages.append(security_stage())
        stages.extend(self.options.custom_validators)
        stages.append(
            ValidationStage(
                name="pattern",
                severity=ValidationSeverity.ERROR,
                validate=self.capabilities.validate_pattern,
                error_kind=ChangeErrorKind.PATTERN,
                fix=self.capabilities.fix,
            )
        )
        return ValidationPipeline(stages)

    def _lock_for(self, unit_id: UnitId) -> threading.RLock:
        with self._locks_guard:
            lock = self._unit_locks.get(unit_id)
            if lock is None:
                lock = self._unit_locks[unit_id] = threading.RLock()
            return lock

    def build_context(self, unit: CodeUnit, source: str) -> ValidationContext:
        """Validation context for proposing ``source`` as ``unit``'s new text."""
        return ValidationContext(
            unit_id=unit.id,
            unit_name=unit.name or unit.id,
            original_source=unit.source,
            unit_type=self.capabilities.detect_type(source),
            language=self.capabilities.detect_language(source),
        )

    def validate_changes(self, request: ChangeRequest, unit: CodeUnit) -> ValidationResult:
        """Run only the validation stages for ``request``; nothing is mutated."""
        context = self.build_context(unit, request.source)
        return self._validate(request.source, context)

    def validate_code(self, code: str, context: ValidationContext) -> ValidationResult:
        """Run the validation stages on raw code with a caller-built context."""
        return self._validate(code, context)

    def dry_run(self, code: str, context: ValidationContext) -> ValidationResult:
        """Run only the sandbox check; nothing is backed up or committed."""
        result = self.capabilities.sandbox(code, context)
        if not result.success:
            self.logger.info(f"Dry run of {context.unit_id} failed: {result.error}")
        return result

    def _validate(self, code: str, context: ValidationContext) -> ValidationResult:
        self.events.emit(SafeChangeEvent.VALIDATION_STARTED, {"unit_id": context.unit_id})
        result = self.pipeline.run(code, context)
        if result.success:
            self.events.emit(
                SafeChangeEvent.VALIDATION_COMPLETED,
                {"unit_id": context.unit_id, "issues": result.issues},
            )
        else:
            self.events.emit(
                SafeChangeEvent.VALIDATION_FAILED,
                {"unit_id": context.unit_id, "error": result.error, "issues": result.issues},
            )
        return result

    def apply_changes(
        self,
        request: ChangeRequest,
        lookup_unit: UnitLookup,
        lookup_dependents: DependentsLookup | None = None,
        commit: CommitHook | None = None,
    ) -> ChangeResult:
        """Validate and apply ``request``.

        Every failure, expected or not, comes back as a ``ChangeResult`` with
        ``success=False``.

        Args:
            request: Proposed replacement text.
            lookup_unit: Registry lookup returning the unit or None.
            lookup_dependents: Optional lookup of dependent unit ids.
            commit: Optional hook called with the accepted source.
        """
        try:
            return self._apply(request, lookup_unit, lookup_dependents, commit)
        except Exception as e:
            self.logger.exception(f"Unexpected error applying change to {request.unit_id}")
            self.events.emit(
                SafeChangeEvent.APPLICATION_FAILED,
                {"unit_id": request.unit_id, "error": str(e)},
            )
            return ChangeResult(
                success=False,
                unit_id=request.unit_id,
                error=str(e) or type(e).__name__,
                error_kind=ChangeErrorKind.UNEXPECTED,
            )

    def _apply(
        self,
        request: ChangeRequest,
        lookup_unit: UnitLookup,
        lookup_dependents: DependentsLookup | None,
        commit: CommitHook | None,
    ) -> ChangeResult:
        unit = lookup_unit(request.unit_id)
        if unit is None:
            self.logger.warning(f"Unit {request.unit_id} not found")
            result = unit_not_found(request.unit_id)
            self.events.emit(
                SafeChangeEvent.APPLICATION_FAILED,
                {"unit_id": request.unit_id, "error": result.error},
            )
            return result

        with self._lock_for(unit.id):
            if self.options.create_backup:
                depth = self.backups.push(unit.id, unit.source)
                self.logger.debug(f"Backed up {unit.id} (depth {depth})")

            context = self.build_context(unit, request.source)
            validation = self._validate(request.source, context)
            if not validation.success:
                self.logger.warning(f"Rejected change to {unit.id}: {validation.error}")
                return ChangeResult(
                    success=False,
                    unit_id=unit.id,
                    diff=self.capabilities.diff(unit.source, request.source),
                    validation_issues=validation.issues,
                    error=validation.error,
                    error_kind=validation.error_kind,
                )

            source, validation = self._maybe_fix(request.source, context, validation)

            affected: tuple[UnitId, ...] = ()
            if self.options.dependency_check and lookup_dependents is not None:
                affected = self._check_dependencies(unit, source, lookup_unit, lookup_dependents)

            self.events.emit(SafeChangeEvent.APPLICATION_STARTED, {"unit_id": unit.id})

            if self.options.sandbox_execution:
                sandbox = self.capabilities.sandbox(source, context)
                if not sandbox.success:
                    self.logger.warning(f"Sandbox rejected change to {unit.id}: {sandbox.error}")
                    self.events.emit(
                        SafeChangeEvent.APPLICATION_FAILED,
                        {"unit_id": unit.id, "error": sandbox.error},
                    )
                    return ChangeResult(
                        success=False,
                        unit_id=unit.id,
                        diff=self.capabilities.diff(unit.source, source),
                        affected_dependencies=affected,
                        validation_issues=(*validation.issues, *sandbox.issues),
                        error=sandbox.error,
                        error_kind=ChangeErrorKind.SANDBOX,
                    )

            if commit is not None:
                commit(unit.id, source)

            diff = self.capabilities.diff(unit.source, source)
            self.events.emit(
                SafeChangeEvent.APPLICATION_COMPLETED,
                {"unit_id": unit.id, "diff": diff, "affected_dependencies": affected},
            )
            self.logger.info(f"Applied change to {unit.id} ({len(validation.issues)} warning(s))")
            return ChangeResult(
                success=True,
                unit_id=unit.id,
                new_source=source,
                diff=diff,
                affected_dependencies=affected,
                validation_issues=validation.issues,
            )

    def _maybe_fix(
        self, source: str, context: ValidationContext, validation: ValidationResult
    ) -> tuple[str, ValidationResult]:
        if not self.options.auto_apply_fixes:
            return source, validation
        if not any(issue.auto_fixable for issue in validation.issues):
            return source, validation

        fixed = self.pipeline.fix(source, validation.issues)
        if fixed == source:
            return source, validation
        revalidated = self.pipeline.run(fixed, context)
        if not revalidated.success:
            self.logger.warning(
                f"Auto-fix for {context.unit_id} produced invalid code; keeping original text"
            )
            return source, validation
        self.logger.info(f"Applied auto-fixes to {context.unit_id}")
        return fixed, revalidated

    def _check_dependencies(
        self,
        unit: CodeUnit,
        new_source: str,
        lookup_unit: UnitLookup,
        lookup_dependents: DependentsLookup,
    ) -> tuple[UnitId, ...]:
        self.events.emit(SafeChangeEvent.DEPENDENCY_CHECK_STARTED, {"unit_id": unit.id})
        try:
            affected = self._affected_dependents(unit, new_source, lookup_unit, lookup_dependents)
        except Exception:
            self.logger.exception(f"Dependency check for {unit.id} failed; continuing")
            affected = ()
        self.events.emit(
            SafeChangeEvent.DEPENDENCY_CHECK_COMPLETED,
            {"unit_id": unit.id, "affected_dependencies": affected},
        )
        if affected:
            self.logger.info(f"Change to {unit.id} affects {len(affected)} dependent(s)")
            self.events.emit(
                SafeChangeEvent.DEPENDENCIES_AFFECTED,
                {"unit_id": unit.id, "affected_dependencies": affected},
            )
        return affected

    def _affected_dependents(
        self,
        unit: CodeUnit,
        new_source: str,
        lookup_unit: UnitLookup,
        lookup_dependents: DependentsLookup,
    ) -> tuple[UnitId, ...]:
        dependents = list(dict.fromkeys(lookup_dependents(unit.id)))
        if not dependents:
            return ()

        caps = self.capabilities
        if caps.extract_exports(unit.source) != caps.extract_exports(new_source):
            return tuple(dependents)

        changed_props = sorted(caps.extract_props(unit.source) ^ caps.extract_props(new_source))
        if not changed_props:
            return ()

        affected: list[UnitId] = []
        for dependent_id in dependents:
            dependent = lookup_unit(dependent_id)
            if dependent is None or not dependent.source:
                continue
            if any(
                caps.references_prop(dependent.source, unit.id, unit.name, prop)
                for prop in changed_props
            ):
                affected.append(dependent_id)
        return tuple(affected)

    def has_backup(self, unit_id: UnitId) -> bool:
        """True when at least one snapshot is stored for ``unit_id``."""
        return self.backups.depth(unit_id) > 0

    def rollback(self, unit_id: UnitId) -> str | None:
        """Pop and return the newest snapshot for ``unit_id``.

        The snapshot is returned as-is; it is neither re-validated nor
        re-applied. Returns None (after a ``rollback_failed`` event) when
        rollback is disabled or no snapshot exists.
        """
        self.events.emit(SafeChangeEvent.ROLLBACK_STARTED, {"unit_id": unit_id})
        try:
            if not self.options.enable_rollback:
                return self._rollback_failed(unit_id, "Rollback is disabled")
            with self._lock_for(unit_id):
                source = self.backups.pop(unit_id)
            if source is None:
                return self._rollback_failed(unit_id, f"No backups available for {unit_id}")
        except Exception as e:
            self.logger.exception(f"Rollback of {unit_id} failed")
            return self._rollback_failed(unit_id, str(e))

        self.logger.info(f"Rolled back {unit_id} ({self.backups.depth(unit_id)} backup(s) left)")
        self.events.emit(SafeChangeEvent.ROLLBACK_COMPLETED, {"unit_id": unit_id})
        return source

    def restore(self, unit_id: UnitId) -> str | None:
        """Return the newest snapshot for ``unit_id`` without consuming it.

        Used to compensate transactional batches: the restored unit keeps its
        snapshot, so a later :meth:`rollback` still yields the same text.
        """
        self.events.emit(SafeChangeEvent.ROLLBACK_STARTED, {"unit_id": unit_id, "restore": True})
        source = self.backups.peek(unit_id)
        if source is None:
            return self._rollback_failed(unit_id, f"No backups available for {unit_id}")
        self.events.emit(SafeChangeEvent.ROLLBACK_COMPLETED, {"unit_id": unit_id, "restore": True})
        return source

    def _rollback_failed(self, unit_id: UnitId, reason: str) -> None:
        self.logger.warning(f"Rollback of {unit_id} failed: {reason}")
        self.events.emit(SafeChangeEvent.ROLLBACK_FAILED, {"unit_id": unit_id, "error": reason})
        return None
