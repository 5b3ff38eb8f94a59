"""
Split ordered tranches into capacity-bounded stage groups.

The delivery service refuses stages holding more than a fixed number of
actions, so a top-level container whose leaves exceed that number is spread
over several stages. Order is preserved: concatenating the groups gives back
the input leaves in their original order.
"""

from __future__ import annotations

from collections import deque
from typing import Deque, List, Sequence, TypeVar

T = TypeVar("T")


def chunk_tranches(n: int, tranches: Sequence[Sequence[T]]) -> List[List[List[T]]]:
    """
    Greedily pack `tranches` into groups holding at most `n` leaves each.

    A tranche that does not fit into the remaining capacity is split: the
    prefix that fits closes the current group and the suffix is carried over
    as the first tranche of the next group.
    """

    if n < 1:
        raise ValueError(f"Stage capacity must be a positive integer, got {n}")

    pending: Deque[List[T]] = deque(list(tranche) for tranche in tranches)
    groups: List[List[List[T]]] = []

    while pending:
        group: List[List[T]] = []
        count = 0

        while pending:
            tranche = pending[0]
            space_remaining = n - count
            if len(tranche) <= space_remaining:
                group.append(tranche)
                count += len(tranche)
                pending.popleft()
            else:
                # A full group closes without an empty prefix tranche
                if space_remaining > 0:
                    group.append(tranche[:space_remaining])
                    pending[0] = tranche[space_remaining:]
                break

        groups.append(group)

    return groups
