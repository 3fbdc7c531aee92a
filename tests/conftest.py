"""Test configuration and fixtures."""

from collections.abc import Callable

import pytest

from change_guard.config.options import SafeChangeOptions
from change_guard.core.coordinator import ChangeCoordinator
from change_guard.core.events import EventBus, SafeChangeEvent
from change_guard.core.models import CodeChange, CodeUnit

from tests.react_sources import BUTTON_SOURCE, CARD_SOURCE


class UnitRegistry:
    """In-memory unit registry with an optional dependents graph."""

    def __init__(self, units: dict[str, str], dependents: dict[str, list[str]] | None = None):
        self.units = {uid: CodeUnit(uid, uid, source) for uid, source in units.items()}
        self.dependents = dependents or {}
        self.commits: list[tuple[str, str]] = []

    def lookup(self, unit_id: str) -> CodeUnit | None:
        return self.units.get(unit_id)

    def lookup_dependents(self, unit_id: str) -> list[str]:
        return self.dependents.get(unit_id, [])

    def commit(self, unit_id: str, source: str) -> None:
        """Store the accepted source, like a live registry would."""
        self.commits.append((unit_id, source))
        unit = self.units[unit_id]
        self.units[unit_id] = CodeUnit(unit.id, unit.name, source)


@pytest.fixture
def registry() -> UnitRegistry:
    """Registry holding a Btn and a Card component."""
    return UnitRegistry({"Btn": BUTTON_SOURCE, "Card": CARD_SOURCE})


@pytest.fixture
def event_log() -> tuple[EventBus, list[tuple[SafeChangeEvent, dict]]]:
    """An EventBus plus the list every emitted event is recorded into."""
    bus = EventBus()
    seen: list[tuple[SafeChangeEvent, dict]] = []
    bus.subscribe_all(lambda event, payload: seen.append((event, dict(payload))))
    return bus, seen


@pytest.fixture
def coordinator(event_log: tuple[EventBus, list]) -> ChangeCoordinator:
    """Coordinator with default options and the recording bus."""
    bus, _ = event_log
    return ChangeCoordinator(options=SafeChangeOptions(), events=bus)


@pytest.fixture
def make_change() -> Callable[..., CodeChange]:
    """Factory for CodeChange values with sensible defaults."""
    counter = iter(range(1, 10_000))

    def _make(
        start_line: int,
        end_line: int,
        modified_code: str,
        original_code: str = "",
        file_path: str = "src/file.ts",
        change_id: str | None = None,
    ) -> CodeChange:
        return CodeChange(
            file_path=file_path,
            start_line=start_line,
            end_line=end_line,
            original_code=original_code,
            modified_code=modified_code,
            change_id=change_id or f"c{next(counter)}",
        )

    return _make


@pytest.fixture
def make_registry() -> type[UnitRegistry]:
    """The UnitRegistry class, for tests that need custom units."""
    return UnitRegistry
