"""Per unit-type capability records and their registry."""

from change_guard.units.capabilities import CapabilityRegistry, UnitCapabilities
from change_guard.units.react import detect_unit_type, react_capabilities

__all__ = ["CapabilityRegistry", "UnitCapabilities", "detect_unit_type", "react_capabilities"]
