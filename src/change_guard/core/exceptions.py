"""Exception hierarchy for programming and setup errors.

Expected change failures are never raised; they are returned as
``ChangeResult``/``ValidationResult`` values. The exceptions below signal
misuse of the API or a misconfigured registry.
"""


class ChangeGuardError(Exception):
    """Base class for all change-guard exceptions."""


class NoApplierError(ChangeGuardError):
    """Raised when no applier is registered for a unit type and no default exists."""

    def __init__(self, unit_type: str) -> None:
        """Initialize with the unit type that could not be routed."""
        super().__init__(f"No applier registered for unit type '{unit_type}'")
        self.unit_type = unit_type


class DuplicateApplierError(ChangeGuardError):
    """Raised when an applier name is registered twice."""


class BackupError(ChangeGuardError):
    """Raised for invalid backup store configuration."""
