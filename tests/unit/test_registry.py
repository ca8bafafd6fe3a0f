"""
test_registry.py - Unit tests for the lock registry

Tests:
- append / remove_at with swap-and-pop
- lookup: stale index vs closed lock
- id -> index resolution and iteration order
"""

import pytest

from stakeledger import Lock, LockRegistry, LockNotFound, LockIdMismatch


def _lock(lock_id: int, owner: str = "alice") -> Lock:
    return Lock(
        lock_id=lock_id, owner=owner, principal=1_000 * lock_id, shares=lock_id,
        day_created=1, duration_days=30,
    )


@pytest.fixture
def registry():
    """alice holds locks 1, 2, 3 at indices 0, 1, 2; bob holds lock 4."""
    reg = LockRegistry()
    for lock_id in (1, 2, 3):
        reg.append(_lock(lock_id))
    reg.append(_lock(4, owner="bob"))
    return reg


class TestLock:

    def test_end_day(self):
        assert _lock(1).end_day == 31


class TestAppendAndRemove:

    def test_append_returns_index(self, registry):
        assert registry.append(_lock(5)) == 3
        assert registry.count("alice") == 4
        assert len(registry) == 5

    def test_duplicate_id_raises(self, registry):
        with pytest.raises(ValueError, match="already registered"):
            registry.append(_lock(2, owner="carol"))

    def test_remove_moves_last_into_slot(self, registry):
        removed = registry.remove_at("alice", 0)
        assert removed.lock_id == 1
        assert [lock.lock_id for lock in registry.locks_of("alice")] == [3, 2]
        assert registry.index_of(3) == 0
        assert 1 not in registry

    def test_remove_last_slot(self, registry):
        registry.remove_at("alice", 2)
        assert [lock.lock_id for lock in registry.locks_of("alice")] == [1, 2]

    def test_remove_only_lock(self, registry):
        registry.remove_at("bob", 0)
        assert registry.locks_of("bob") == []
        assert registry.count("bob") == 0

    def test_remove_out_of_range_raises(self, registry):
        with pytest.raises(LockNotFound):
            registry.remove_at("alice", 3)
        with pytest.raises(LockNotFound):
            registry.remove_at("carol", 0)

    def test_remove_does_not_touch_other_owners(self, registry):
        registry.remove_at("alice", 0)
        assert registry.index_of(4) == 0


class TestLookup:

    def test_lookup_match(self, registry):
        assert registry.lookup("alice", 1, 2).lock_id == 2

    def test_slot_holds_other_lock(self, registry):
        with pytest.raises(LockIdMismatch) as exc_info:
            registry.lookup("alice", 0, 2)
        assert exc_info.value.current_index == 1

    def test_slot_reused_after_close(self, registry):
        registry.remove_at("alice", 0)
        with pytest.raises(LockIdMismatch) as exc_info:
            registry.lookup("alice", 0, 1)
        assert exc_info.value.current_index is None

    def test_stale_index_out_of_range(self, registry):
        registry.remove_at("alice", 0)
        with pytest.raises(LockIdMismatch) as exc_info:
            registry.lookup("alice", 2, 3)
        assert exc_info.value.current_index == 0

    def test_out_of_range_and_not_open(self, registry):
        with pytest.raises(LockNotFound):
            registry.lookup("alice", 7, 99)

    def test_other_owners_lock_is_not_found(self, registry):
        with pytest.raises(LockNotFound):
            registry.lookup("carol", 0, 4)

    def test_negative_index_not_found(self, registry):
        with pytest.raises(LockNotFound):
            registry.lookup("alice", -1, 99)


class TestQueries:

    def test_get(self, registry):
        assert registry.get(4).owner == "bob"

    def test_get_closed_raises(self, registry):
        registry.remove_at("bob", 0)
        with pytest.raises(LockNotFound):
            registry.get(4)

    def test_index_of_closed_raises(self, registry):
        with pytest.raises(LockNotFound):
            registry.index_of(42)

    def test_open_locks_in_id_order(self, registry):
        registry.remove_at("alice", 0)
        assert [lock.lock_id for lock in registry.open_locks()] == [2, 3, 4]

    def test_locks_of_returns_copy(self, registry):
        locks = registry.locks_of("alice")
        locks.clear()
        assert registry.count("alice") == 3

    def test_copy_is_independent(self, registry):
        cloned = registry.copy()
        cloned.remove_at("alice", 0)
        assert registry.count("alice") == 3
        assert registry.index_of(3) == 2


class TestFiveLockSwap:
    """Removing index 2 of 5 moves the last lock into slot 2."""

    @pytest.fixture
    def five(self):
        reg = LockRegistry()
        for lock_id in (11, 12, 13, 14, 15):
            reg.append(_lock(lock_id))
        return reg

    def test_cached_last_index_goes_stale(self, five):
        cached_index, cached_id = 4, 15
        assert five.lookup("alice", cached_index, cached_id).lock_id == cached_id

        five.remove_at("alice", 2)
        assert [lock.lock_id for lock in five.locks_of("alice")] == [11, 12, 15, 14]

        with pytest.raises(LockIdMismatch) as exc_info:
            five.lookup("alice", cached_index, cached_id)
        assert exc_info.value.current_index == 2

        resolved = five.index_of(cached_id)
        assert resolved == 2
        assert five.lookup("alice", resolved, cached_id).lock_id == cached_id
