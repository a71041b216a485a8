"""
Spent-nullifier registry: the double-spend guard.
"""

from __future__ import annotations

from typing import Iterable, Iterator

from shielded_pool.errors import DoubleSpend


class NullifierSet:
    """
    Monotonically growing set of spent nullifiers. Entries are never removed.
    """

    def __init__(self, spent: Iterable[int] = ()) -> None:
        self._spent: set[int] = set(spent)

    def is_spent(self, nullifier: int) -> bool:
        return nullifier in self._spent

    def add(self, nullifier: int) -> None:
        """
        Mark a nullifier as spent.

        Raises:
            DoubleSpend: If it was already spent.
        """
        if nullifier in self._spent:
            raise DoubleSpend(f"Nullifier 0x{nullifier:064x} has already been spent")
        self._spent.add(nullifier)

    def __contains__(self, nullifier: object) -> bool:
        return nullifier in self._spent

    def __len__(self) -> int:
        return len(self._spent)

    def __iter__(self) -> Iterator[int]:
        return iter(sorted(self._spent))

    def to_state(self) -> list[int]:
        return sorted(self._spent)
