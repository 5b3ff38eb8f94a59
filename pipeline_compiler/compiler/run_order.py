"""
Run-order bookkeeping for the actions of a single stage.
"""

from __future__ import annotations

from typing import List


class RunOrderAllocator:
    """
    Hands out run orders tranche by tranche.

    Every node of a tranche runs at the same position; once the tranche is
    complete the cursor moves past the largest number of run orders any of
    its nodes consumed.
    """

    def __init__(self) -> None:
        self._cursor = 1
        self._consumed: List[int] = [0]

    @property
    def current(self) -> int:
        return self._cursor

    def record(self, run_orders_consumed: int) -> None:
        if run_orders_consumed < 0:
            raise ValueError(f"run_orders_consumed must be >= 0, got {run_orders_consumed}")
        self._consumed.append(run_orders_consumed)

    def advance(self) -> int:
        """
        Close the current tranche and return the run order of the next one.
        """

        self._cursor += max(self._consumed)
        self._consumed = [0]
        return self._cursor
