"""Unit tests for BackupStore."""

import pytest

from change_guard.core.backup import BackupStore
from change_guard.core.exceptions import BackupError


class TestBackupStore:
    """Tests for the bounded per-unit backup stack."""

    def test_push_pop_is_lifo(self) -> None:
        store = BackupStore()
        store.push("Btn", "v1")
        store.push("Btn", "v2")
        assert store.pop("Btn") == "v2"
        assert store.pop("Btn") == "v1"
        assert store.pop("Btn") is None

    def test_push_returns_depth(self) -> None:
        store = BackupStore()
        assert store.push("Btn", "v1") == 1
        assert store.push("Btn", "v2") == 2

    def test_bounded_evicts_oldest(self) -> None:
        store = BackupStore(max_backups=2)
        for version in ("v1", "v2", "v3"):
            store.push("Btn", version)
        assert store.depth("Btn") == 2
        assert store.snapshots("Btn") == ("v2", "v3")

    def test_peek_does_not_consume(self) -> None:
        store = BackupStore()
        store.push("Btn", "v1")
        assert store.peek("Btn") == "v1"
        assert store.depth("Btn") == 1

    def test_units_are_independent(self) -> None:
        store = BackupStore()
        store.push("Btn", "b")
        store.push("Card", "c")
        store.clear("Btn")
        assert store.depth("Btn") == 0
        assert store.depth("Card") == 1
        store.clear()
        assert store.depth("Card") == 0

    def test_resize_trims_to_newest(self) -> None:
        store = BackupStore(max_backups=5)
        for version in ("v1", "v2", "v3"):
            store.push("Btn", version)
        store.resize(1)
        assert store.snapshots("Btn") == ("v3",)

    @pytest.mark.parametrize("bound", [0, -1])
    def test_invalid_bound(self, bound: int) -> None:
        with pytest.raises(BackupError):
            BackupStore(max_backups=bound)
        with pytest.raises(BackupError):
            BackupStore().resize(bound)
