from __future__ import annotations

import pytest

from pipeline_compiler.compiler.run_order import RunOrderAllocator


def test_first_tranche_starts_at_one() -> None:
    assert RunOrderAllocator().current == 1


def test_advance_moves_past_largest_consumption() -> None:
    allocator = RunOrderAllocator()
    allocator.record(1)
    allocator.record(3)
    allocator.record(2)

    assert allocator.advance() == 4
    assert allocator.current == 4


def test_consumption_resets_between_tranches() -> None:
    allocator = RunOrderAllocator()
    allocator.record(2)
    allocator.advance()
    allocator.record(1)

    assert allocator.advance() == 4


def test_empty_tranche_does_not_move_cursor() -> None:
    allocator = RunOrderAllocator()

    assert allocator.advance() == 1


def test_negative_consumption_is_rejected() -> None:
    with pytest.raises(ValueError):
        RunOrderAllocator().record(-1)
