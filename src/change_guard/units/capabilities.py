"""Capability records describing how to handle one family of code units.

Instead of subclassing an abstract applier, each unit family registers a
:class:`UnitCapabilities` record: a table of plain functions looked up at
dispatch time.
"""

import logging
import threading
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field

from ..core.exceptions import DuplicateApplierError, NoApplierError
from ..core.models import ValidationContext, ValidationIssue, ValidationResult
from ..utils.diff import render_diff

Checker = Callable[[str, ValidationContext], ValidationResult]


@dataclass(frozen=True, slots=True)
class UnitCapabilities:
    """Functions implementing the type-specific parts of the pipeline.

    Attributes:
        name: Unique name of the capability set.
        supported_types: Unit type tags this record handles.
        detect_type: Classify source text into a unit type tag.
        detect_language: Classify source text into a language tag.
        validate_pattern: Unit-shape check (stage 3 of validation).
        sandbox: Best-effort dry run of proposed source.
        extract_exports: Exported symbol names of a source text.
        extract_props: Input parameter names of a source text.
        references_prop: ``(dependent_source, unit_id, unit_name, prop)`` usage test.
        diff: Render a diff between two source texts.
        fix: Apply auto-fixable pattern issues to source text.
    """

    name: str
    supported_types: frozenset[str]
    detect_type: Callable[[str], str]
    detect_language: Callable[[str], str]
    validate_pattern: Checker
    sandbox: Checker
    extract_exports: Callable[[str], frozenset[str]]
    extract_props: Callable[[str], frozenset[str]]
    references_prop: Callable[[str, str, str, str], bool]
    diff: Callable[[str, str], str] = render_diff
    fix: Callable[[str, tuple[ValidationIssue, ...]], str] | None = None
    metadata: dict[str, str] = field(default_factory=dict)

    def supports(self, unit_type: str) -> bool:
        """True when ``unit_type`` is one of the supported tags."""
        return unit_type in self.supported_types


class CapabilityRegistry:
    """Maps unit type tags to capability records.

    Exactly one record may be marked as the default; it handles unit types
    no other record supports.
    """

    def __init__(
        self,
        capabilities: Iterable[UnitCapabilities] = (),
        type_detector: Callable[[str], str] | None = None,
    ) -> None:
        """Initialize the registry, registering ``capabilities`` in order.

        The first registered record becomes the default.
        """
        self._records: dict[str, UnitCapabilities] = {}
        self._default: str | None = None
        self._type_detector = type_detector
        self._lock = threading.Lock()
        self.logger = logging.getLogger(__name__)
        for record in capabilities:
            self.register(record)

    def register(self, record: UnitCapabilities, default: bool = False) -> None:
        """Add ``record``.

        Raises:
            DuplicateApplierError: If a record with the same name exists.
        """
        with self._lock:
            if record.name in self._records:
                raise DuplicateApplierError(f"Capabilities '{record.name}' already registered")
            self._records[record.name] = record
            if default or self._default is None:
                self._default = record.name
        self.logger.debug(
            f"Registered capabilities '{record.name}' for {sorted(record.supported_types)}"
        )

    def unregister(self, name: str) -> bool:
        """Remove a record. Returns False when it was not registered."""
        with self._lock:
            if self._records.pop(name, None) is None:
                return False
            if self._default == name:
                self._default = next(iter(self._records), None)
            return True

    def get(self, name: str) -> UnitCapabilities | None:
        """Look up a record by name."""
        return self._records.get(name)

    def all(self) -> list[UnitCapabilities]:
        """Every registered record, in registration order."""
        return list(self._records.values())

    @property
    def default(self) -> UnitCapabilities | None:
        """The fallback record, if any."""
        return self._records.get(self._default) if self._default else None

    def detect_type(self, source: str) -> str:
        """Classify ``source`` with the configured detector.

        Without an explicit detector the default record's ``detect_type`` is used.

        Raises:
            NoApplierError: If nothing is registered.
        """
        if self._type_detector is not None:
            return self._type_detector(source)
        default = self.default
        if default is None:
            raise NoApplierError("<unknown>")
        return default.detect_type(source)

    def for_type(self, unit_type: str) -> UnitCapabilities:
        """Record handling ``unit_type``, falling back to the default.

        Raises:
            NoApplierError: If no record supports the type and there is no default.
        """
        for record in self._records.values():
            if record.supports(unit_type):
                return record
        default = self.default
        if default is None:
            raise NoApplierError(unit_type)
        self.logger.debug(f"No capabilities for '{unit_type}', using default '{default.name}'")
        return default

    def common_for(self, unit_types: Iterable[str]) -> UnitCapabilities | None:
        """Record whose supported types cover every type in ``unit_types``."""
        wanted = set(unit_types)
        for record in self._records.values():
            if wanted <= record.supported_types:
                return record
        return None
