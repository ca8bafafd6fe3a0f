"""
registry.py - Time-lock registry

Per-owner lists of open locks with O(1) swap-and-pop removal, plus an
id -> (owner, index) map so a lock's current index can always be resolved
from its id.

Removal moves the owner's last lock into the freed slot, so indices held by
callers are not stable across removals. lookup() checks the expected id and
tells a stale index apart from a lock that no longer exists.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, List, Iterator, Tuple

from .core import LockNotFound, LockIdMismatch


@dataclass(frozen=True, slots=True)
class Lock:
    """
    An open time-lock. Immutable from creation until removal.

    Attributes:
        lock_id: Globally unique id, never reused
        owner: Wallet that created the lock and receives its payout
        principal: Tokens locked
        shares: Shares granted at creation
        day_created: Day the lock was created (1-indexed)
        duration_days: Committed length in days
    """
    lock_id: int
    owner: str
    principal: int
    shares: int
    day_created: int
    duration_days: int

    @property
    def end_day(self) -> int:
        """First day on which the lock may close without an early penalty."""
        return self.day_created + self.duration_days


class LockRegistry:
    """Open locks grouped by owner."""

    def __init__(self):
        self._locks_by_owner: Dict[str, List[Lock]] = {}
        self._index_by_id: Dict[int, Tuple[str, int]] = {}

    def __len__(self) -> int:
        return len(self._index_by_id)

    def __contains__(self, lock_id: int) -> bool:
        return lock_id in self._index_by_id

    def append(self, lock: Lock) -> int:
        """
        Add lock at the end of its owner's list.

        Returns:
            The index the lock was stored at

        Raises:
            ValueError: If a lock with the same id is already open
        """
        if lock.lock_id in self._index_by_id:
            raise ValueError(f"Lock {lock.lock_id} already registered")
        locks = self._locks_by_owner.setdefault(lock.owner, [])
        locks.append(lock)
        index = len(locks) - 1
        self._index_by_id[lock.lock_id] = (lock.owner, index)
        return index

    def remove_at(self, owner: str, index: int) -> Lock:
        """
        Remove and return the lock at index, moving the owner's last lock into its slot.

        Raises:
            LockNotFound: If index is out of range for owner
        """
        locks = self._locks_by_owner.get(owner, [])
        if not 0 <= index < len(locks):
            raise LockNotFound(f"{owner} has no lock at index {index}")
        removed = locks[index]
        last = locks.pop()
        if last.lock_id != removed.lock_id:
            locks[index] = last
            self._index_by_id[last.lock_id] = (owner, index)
        del self._index_by_id[removed.lock_id]
        if not locks:
            del self._locks_by_owner[owner]
        return removed

    def lookup(self, owner: str, index: int, expected_id: int) -> Lock:
        """
        Return owner's lock at index, verifying it is expected_id.

        Raises:
            LockIdMismatch: The slot holds another lock, or is out of range while
                expected_id is still open for owner (the index is stale)
            LockNotFound: Index out of range and expected_id is not open for owner
        """
        locks = self._locks_by_owner.get(owner, [])
        current = self._index_by_id.get(expected_id)
        current_index = current[1] if current is not None and current[0] == owner else None

        if not 0 <= index < len(locks):
            if current_index is not None:
                raise LockIdMismatch(
                    f"Lock {expected_id} of {owner} moved from index {index} to {current_index}",
                    current_index=current_index,
                )
            raise LockNotFound(f"{owner} has no lock at index {index}")

        lock = locks[index]
        if lock.lock_id != expected_id:
            raise LockIdMismatch(
                f"Index {index} of {owner} holds lock {lock.lock_id}, not {expected_id}",
                current_index=current_index,
            )
        return lock

    def index_of(self, lock_id: int) -> int:
        """
        Current index of an open lock within its owner's list.

        Raises:
            LockNotFound: If the lock is not open
        """
        if lock_id not in self._index_by_id:
            raise LockNotFound(f"Lock {lock_id} is not open")
        return self._index_by_id[lock_id][1]

    def get(self, lock_id: int) -> Lock:
        """Return an open lock by id, or raise LockNotFound."""
        if lock_id not in self._index_by_id:
            raise LockNotFound(f"Lock {lock_id} is not open")
        owner, index = self._index_by_id[lock_id]
        return self._locks_by_owner[owner][index]

    def locks_of(self, owner: str) -> List[Lock]:
        """Owner's open locks in index order."""
        return list(self._locks_by_owner.get(owner, []))

    def count(self, owner: str) -> int:
        return len(self._locks_by_owner.get(owner, []))

    def open_locks(self) -> Iterator[Lock]:
        """Every open lock, ordered by lock id."""
        for lock_id in sorted(self._index_by_id):
            yield self.get(lock_id)

    def copy(self) -> LockRegistry:
        """Independent copy; locks are immutable, so only the containers are copied."""
        cloned = LockRegistry()
        cloned._locks_by_owner = {owner: list(locks) for owner, locks in self._locks_by_owner.items()}
        cloned._index_by_id = dict(self._index_by_id)
        return cloned
