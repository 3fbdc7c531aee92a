"""Routing of change requests to appliers and transactional batches."""

import logging
from collections.abc import Mapping, Sequence

from ..config.options import SafeChangeOptions
from ..config.runtime_config import RuntimeConfig
from ..units.capabilities import CapabilityRegistry, UnitCapabilities
from ..units.react import react_capabilities
from .applier import ChangeApplier, CommitHook, DependentsLookup, UnitLookup, unit_not_found
from .events import EventBus, SafeChangeEvent
from .models import (
    ChangeErrorKind,
    ChangeRequest,
    ChangeResult,
    CodeUnit,
    UnitId,
    ValidationContext,
    ValidationResult,
)

ROLLED_BACK_MESSAGE = "Change rolled back due to transactional failure in another unit"


class ChangeCoordinator:
    """Entry point of the safe-change pipeline.

    The coordinator owns one :class:`ChangeApplier` per registered capability
    record, all publishing on a shared :class:`EventBus`. It caches which
    applier handled each unit id so rollbacks reach the right backup store.
    Construct one per registry and pass it to call sites; there is no global
    instance.
    """

    def __init__(
        self,
        registry: CapabilityRegistry | None = None,
        options: SafeChangeOptions | None = None,
        events: EventBus | None = None,
    ) -> None:
        """Initialize the coordinator.

        Args:
            registry: Capability records to route to; defaults to React only.
            options: Options shared by every applier.
            events: Bus for lifecycle events; created if omitted.
        """
        self.registry = registry or CapabilityRegistry([react_capabilities()])
        self.options = options or SafeChangeOptions()
        self.events = events or EventBus()
        self._appliers: dict[str, ChangeApplier] = {}
        self._unit_appliers: dict[UnitId, ChangeApplier] = {}
        self.logger = logging.getLogger(__name__)

    @classmethod
    def from_config(
        cls, config: RuntimeConfig, registry: CapabilityRegistry | None = None
    ) -> "ChangeCoordinator":
        """Build a coordinator from runtime configuration."""
        return cls(registry=registry, options=config.to_safe_change_options())

    def register_applier(self, capabilities: UnitCapabilities, default: bool = False) -> None:
        """Register another unit family."""
        self.registry.register(capabilities, default=default)

    def configure(self, options: SafeChangeOptions) -> None:
        """Apply new options to every existing and future applier."""
        self.options = options
        for applier in self._appliers.values():
            applier.configure(options)

    def applier_for(self, capabilities: UnitCapabilities) -> ChangeApplier:
        """Applier bound to ``capabilities``, created on first use."""
        applier = self._appliers.get(capabilities.name)
        if applier is None:
            applier = ChangeApplier(capabilities, self.options, self.events)
            self._appliers[capabilities.name] = applier
        return applier

    def cached_applier(self, unit_id: UnitId) -> ChangeApplier | None:
        """Applier that last handled ``unit_id``, if any."""
        return self._unit_appliers.get(unit_id)

    def unit_type(self, unit: CodeUnit, proposed: str | None = None) -> str:
        """Detected type tag for a unit (current source, else proposed text)."""
        return self.registry.detect_type(unit.source or proposed or "")

    def _applier_for_unit(self, unit: CodeUnit, proposed: str | None = None) -> ChangeApplier:
        cached = self._unit_appliers.get(unit.id)
        if cached is not None:
            return cached
        applier = self.applier_for(self.registry.for_type(self.unit_type(unit, proposed)))
        self._unit_appliers[unit.id] = applier
        return applier

    def apply_one(
        self,
        request: ChangeRequest,
        lookup_unit: UnitLookup,
        lookup_dependents: DependentsLookup | None = None,
        commit: CommitHook | None = None,
    ) -> ChangeResult:
        """Validate and apply a single change request."""
        try:
            unit = lookup_unit(request.unit_id)
            if unit is None:
                result = unit_not_found(request.unit_id)
                self.events.emit(
                    SafeChangeEvent.APPLICATION_FAILED,
                    {"unit_id": request.unit_id, "error": result.error},
                )
                return result
            applier = self._applier_for_unit(unit, request.source)
            return applier.apply_changes(request, lookup_unit, lookup_dependents, commit)
        except Exception as e:
            self.logger.exception(f"Unexpected error routing change for {request.unit_id}")
            return ChangeResult(
                success=False,
                unit_id=request.unit_id,
                error=str(e) or type(e).__name__,
                error_kind=ChangeErrorKind.UNEXPECTED,
            )

    def validate_changes(self, request: ChangeRequest, lookup_unit: UnitLookup) -> ValidationResult:
        """Run only the validation stages for ``request``."""
        unit = lookup_unit(request.unit_id)
        if unit is None:
            return ValidationResult(
                success=False,
                error=f"Unit with ID {request.unit_id} not found",
                error_kind=ChangeErrorKind.NOT_FOUND,
            )
        return self._applier_for_unit(unit, request.source).validate_changes(request, unit)

    def validate_code(self, code: str, context: ValidationContext) -> ValidationResult:
        """Validate raw code for a unit that may not exist in any registry."""
        unit_type = context.unit_type or self.registry.detect_type(code)
        applier = self.applier_for(self.registry.for_type(unit_type))
        return applier.validate_code(code, context)

    def dry_run(self, code: str, context: ValidationContext) -> ValidationResult:
        """Sandbox-check raw code with the applier its type routes to."""
        unit_type = context.unit_type or self.registry.detect_type(code)
        return self.applier_for(self.registry.for_type(unit_type)).dry_run(code, context)

    def apply_batch(
        self,
        unit_ids: Sequence[UnitId],
        changes_by_id: Mapping[UnitId, str | ChangeRequest],
        transactional: bool,
        lookup_unit: UnitLookup,
        lookup_dependents: DependentsLookup | None = None,
        commit: CommitHook | None = None,
    ) -> dict[UnitId, ChangeResult]:
        """Apply changes to several units in caller order.

        Every member is validated first. A transactional batch with any invalid
        member returns without mutating anything. Otherwise members are applied
        one at a time; in a transactional batch the first apply failure
        restores every member already applied in this batch, marks each of
        them failed, and stops. Later members are not reported.
        A unit id listed more than once is applied once, at its first position.

        Args:
            unit_ids: Members in application order.
            changes_by_id: Proposed source (or full request) per unit id.
            transactional: All-or-nothing semantics.
            lookup_unit: Registry lookup.
            lookup_dependents: Optional dependents lookup.
            commit: Optional hook receiving accepted and restored sources.

        Returns:
            Result per reported unit id.
        """
        results: dict[UnitId, ChangeResult] = {}
        ordered_ids = list(dict.fromkeys(unit_ids))
        if len(ordered_ids) < len(unit_ids):
            self.logger.debug(
                f"Dropped {len(unit_ids) - len(ordered_ids)} repeated unit id(s) from batch"
            )
        try:
            self._run_batch(
                ordered_ids,
                changes_by_id,
                transactional,
                lookup_unit,
                lookup_dependents,
                commit,
                results,
            )
        except Exception as e:
            self.logger.exception("Unexpected error during batch apply")
            for unit_id in ordered_ids:
                results.setdefault(
                    unit_id,
                    ChangeResult(
                        success=False,
                        unit_id=unit_id,
                        error=str(e) or type(e).__name__,
                        error_kind=ChangeErrorKind.UNEXPECTED,
                    ),
                )
        return results

    def _run_batch(
        self,
        unit_ids: list[UnitId],
        changes_by_id: Mapping[UnitId, str | ChangeRequest],
        transactional: bool,
        lookup_unit: UnitLookup,
        lookup_dependents: DependentsLookup | None,
        commit: CommitHook | None,
        results: dict[UnitId, ChangeResult],
    ) -> None:
        units: dict[UnitId, CodeUnit] = {}
        requests: dict[UnitId, ChangeRequest] = {}
        failures: dict[UnitId, ChangeResult] = {}

        for unit_id in unit_ids:
            unit = lookup_unit(unit_id)
            change = changes_by_id.get(unit_id)
            if unit is None:
                failures[unit_id] = unit_not_found(unit_id)
            elif change is None:
                failures[unit_id] = ChangeResult(
                    success=False,
                    unit_id=unit_id,
                    error=f"No source code provided for unit {unit_id}",
                    error_kind=ChangeErrorKind.NO_SOURCE,
                )
            else:
                units[unit_id] = unit
                requests[unit_id] = (
                    change if isinstance(change, ChangeRequest) else ChangeRequest(unit_id, change)
                )

        common = self.registry.common_for(
            self.unit_type(units[uid], requests[uid].source) for uid in units
        )
        if common is not None:
            shared = self.applier_for(common)
            appliers = {uid: shared for uid in units}
            self.logger.debug(f"Batch of {len(units)} uses common applier '{common.name}'")
        else:
            appliers = {
                uid: self._applier_for_unit(units[uid], requests[uid].source) for uid in units
            }
            self.logger.debug(f"Batch of {len(units)} has no common applier; routing per unit")

        for unit_id in units:
            validation = appliers[unit_id].validate_changes(requests[unit_id], units[unit_id])
            if not validation.success:
                unit = units[unit_id]
                failures[unit_id] = ChangeResult(
                    success=False,
                    unit_id=unit_id,
                    diff=appliers[unit_id].capabilities.diff(
                        unit.source, requests[unit_id].source
                    ),
                    validation_issues=validation.issues,
                    error=validation.error,
                    error_kind=validation.error_kind,
                )

        if transactional and failures:
            self.logger.warning(
                f"Transactional batch aborted before apply: {len(failures)} invalid member(s)"
            )
            for unit_id in unit_ids:
                results[unit_id] = failures.get(unit_id) or ChangeResult(
                    success=False,
                    unit_id=unit_id,
                    error="Batch aborted: another unit failed validation",
                    error_kind=ChangeErrorKind.VALIDATION,
                )
            return

        applied: list[tuple[UnitId, ChangeApplier]] = []
        for unit_id in unit_ids:
            if unit_id in failures:
                results[unit_id] = failures[unit_id]
                continue
            applier = appliers[unit_id]
            self._unit_appliers[unit_id] = applier
            result = applier.apply_changes(
                requests[unit_id], lookup_unit, lookup_dependents, commit
            )
            results[unit_id] = result
            if result.success:
                applied.append((unit_id, applier))
            elif transactional:
                self.logger.warning(
                    f"Batch member {unit_id} failed; compensating {len(applied)} applied unit(s)"
                )
                self._compensate(applied, results, commit)
                return

    def _compensate(
        self,
        applied: list[tuple[UnitId, ChangeApplier]],
        results: dict[UnitId, ChangeResult],
        commit: CommitHook | None,
    ) -> None:
        for unit_id, applier in reversed(applied):
            try:
                restored = applier.restore(unit_id)
                if restored is None:
                    self.logger.error(f"Could not restore {unit_id} during compensation")
                elif commit is not None:
                    commit(unit_id, restored)
            except Exception:
                self.logger.exception(f"Compensating rollback of {unit_id} failed")
            previous = results[unit_id]
            results[unit_id] = ChangeResult(
                success=False,
                unit_id=unit_id,
                diff=previous.diff,
                affected_dependencies=previous.affected_dependencies,
                validation_issues=previous.validation_issues,
                error=ROLLED_BACK_MESSAGE,
                error_kind=ChangeErrorKind.ROLLED_BACK,
            )

    def rollback(self, unit_id: UnitId, lookup_unit: UnitLookup | None = None) -> str | None:
        """Pop the newest backup for ``unit_id`` and return it.

        Tries the cached applier, then the applier for the looked-up unit, then
        every other applier in turn. Returns None when no applier holds a backup.
        """
        try:
            for applier in self._rollback_candidates(unit_id, lookup_unit):
                if applier.has_backup(unit_id):
                    source = applier.rollback(unit_id)
                    if source is not None:
                        self._unit_appliers[unit_id] = applier
                        return source
        except Exception as e:
            self.logger.exception(f"Unexpected error rolling back {unit_id}")
            self.events.emit(SafeChangeEvent.ROLLBACK_FAILED, {"unit_id": unit_id, "error": str(e)})
            return None

        self.logger.warning(f"No backup found for {unit_id}")
        self.events.emit(SafeChangeEvent.ROLLBACK_STARTED, {"unit_id": unit_id})
        self.events.emit(
            SafeChangeEvent.ROLLBACK_FAILED,
            {"unit_id": unit_id, "error": f"No backups available for {unit_id}"},
        )
        return None

    def _rollback_candidates(
        self, unit_id: UnitId, lookup_unit: UnitLookup | None
    ) -> list[ChangeApplier]:
        candidates: list[ChangeApplier] = []
        cached = self._unit_appliers.get(unit_id)
        if cached is not None:
            candidates.append(cached)
        if lookup_unit is not None:
            unit = lookup_unit(unit_id)
            if unit is not None:
                routed = self.applier_for(self.registry.for_type(self.unit_type(unit)))
                if routed not in candidates:
                    candidates.append(routed)
        candidates.extend(a for a in self._appliers.values() if a not in candidates)
        return candidates
