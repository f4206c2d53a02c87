"""
Sweep assembly tests.

Validates the readiness threshold, drain and reset behaviour, and that
packets are kept in arrival order without deduplication.
"""

import pytest

from os1_decoder.accumulator import FrameAccumulator


@pytest.mark.test_meta(
    description="Ingest packets one at a time into an accumulator configured for 64 columns of 16 columns per packet.",
    goal="Confirm the sweep becomes ready exactly when the accumulated columns reach the sweep width.",
    passing_criteria="is_ready() is False after 1 to 3 packets and True after the 4th; column_count grows by 16 per packet.",
)
def test_ready_at_sweep_width():
    accumulator = FrameAccumulator(sweep_width=64, columns_per_packet=16)

    for n in range(1, 4):
        accumulator.ingest(f"packet-{n}")
        assert accumulator.column_count == 16 * n
        assert accumulator.is_ready() is False

    accumulator.ingest("packet-4")
    assert accumulator.column_count == 64
    assert accumulator.is_ready() is True


def test_drain_returns_packets_in_arrival_order_and_resets():
    accumulator = FrameAccumulator(sweep_width=32, columns_per_packet=16)
    accumulator.ingest("a")
    accumulator.ingest("b")

    assert accumulator.drain() == ["a", "b"]
    assert len(accumulator) == 0
    assert accumulator.column_count == 0
    assert accumulator.is_ready() is False


def test_duplicate_packets_are_not_deduplicated():
    accumulator = FrameAccumulator(sweep_width=32, columns_per_packet=16)
    accumulator.ingest("same")
    accumulator.ingest("same")

    # Arrival order is trusted, a repeated packet still fills its slot
    assert accumulator.is_ready() is True
    assert accumulator.drain() == ["same", "same"]


def test_reset_discards_partial_sweep_and_applies_new_width():
    accumulator = FrameAccumulator(sweep_width=64, columns_per_packet=16)
    accumulator.ingest("a")
    accumulator.ingest("b")

    accumulator.reset(sweep_width=32)
    assert len(accumulator) == 0
    assert accumulator.sweep_width == 32

    accumulator.ingest("c")
    accumulator.ingest("d")
    assert accumulator.is_ready() is True


def test_reset_without_width_keeps_current_width():
    accumulator = FrameAccumulator(sweep_width=48, columns_per_packet=16)
    accumulator.ingest("a")
    accumulator.reset()

    assert accumulator.sweep_width == 48
    assert len(accumulator) == 0


def test_stalled_sweep_never_completes():
    accumulator = FrameAccumulator(sweep_width=1024, columns_per_packet=16)
    for n in range(63):
        accumulator.ingest(n)

    # No timeout: one packet short of the width, the sweep simply waits
    assert accumulator.is_ready() is False
    assert len(accumulator) == 63


def test_invalid_columns_per_packet():
    with pytest.raises(ValueError):
        FrameAccumulator(sweep_width=64, columns_per_packet=0)
