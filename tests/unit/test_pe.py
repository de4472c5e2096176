"""
Unit tests for the behavioral Processing Element (PE).

These tests verify:
1. Weight daisy-chain load
2. Registered MAC operation
3. Clock-enable hold
4. Two's complement wrap at register widths
"""

import pytest

from systile.config import GridConfig
from systile.core.pe import PEState, ProcessingElement


class TestProcessingElement:
    """Test suite for the behavioral PE."""

    @pytest.fixture
    def config(self):
        return GridConfig(dim=4)

    @pytest.fixture
    def pe(self, config):
        return ProcessingElement(row=0, col=0, config=config)

    def test_initial_state(self, pe):
        assert pe.state == PEState()
        assert pe.weight == 0
        assert pe.partial_sum == 0
        assert pe.activation == 0

    def test_load_forwards_previous_weight(self, pe):
        """The weight leaving a PE is the one it held before the clock edge."""
        assert pe.load(5) == 0
        assert pe.load(-3) == 5
        assert pe.weight == -3

    def test_load_wraps_to_weight_bits(self, pe):
        pe.load(130)
        assert pe.weight == -126

    def test_column_daisy_chain(self, config):
        """N load cycles place the first pushed value in the bottom PE."""
        column = [ProcessingElement(row=r, col=0, config=config) for r in range(4)]
        for value in (40, 30, 20, 10):
            carry = value
            for pe in column:
                carry = pe.load(carry)
        assert [pe.weight for pe in column] == [10, 20, 30, 40]

    def test_mac(self, pe):
        """partial_out = partial_in + activation * weight, latched for the next cycle."""
        pe.load(3)
        assert pe.compute(2, 10) == (0, 0)
        assert pe.partial_sum == 16
        assert pe.activation == 2

        assert pe.compute(4, 1) == (2, 16)
        assert pe.partial_sum == 13

    def test_negative_operands(self, pe):
        pe.load(-128)
        pe.compute(-128, -5)
        assert pe.partial_sum == 16384 - 5

    def test_enable_low_holds(self, pe):
        pe.load(7)
        assert pe.load(9, en=False) == 7
        assert pe.weight == 7

        pe.compute(2, 1)
        assert pe.compute(100, 100, en=False) == (2, 15)
        assert pe.partial_sum == 15
        assert pe.activation == 2

    def test_accumulator_wraps(self):
        """The accumulator is a two's complement register of acc_bits."""
        pe = ProcessingElement(row=0, col=0, config=GridConfig(dim=1, acc_bits=17))
        pe.load(127)
        pe.compute(127, (1 << 16) - 1)
        assert pe.partial_sum == 16129 + (1 << 16) - 1 - (1 << 17)

    def test_reset(self, pe):
        pe.load(4)
        pe.compute(3, 3)
        pe.reset()
        assert pe.weight == 0
        assert pe.partial_sum == 0
        assert pe.activation == 0
