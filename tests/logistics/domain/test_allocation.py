"""Tests for rate-table pricing and shipping fee allocation."""

import pytest
from logistics.config import AllocationPolicy
from logistics.order.splitter import allocate_shipping, rate_table_cost


class TestRateTableCost:
    def test_three_kilograms(self):
        # 2500 + 3 × 500 = 4000, plus 7.5% VAT
        assert rate_table_cost(3.0, 2500, 500, 7.5) == 4300.0

    def test_half_kilogram(self):
        assert rate_table_cost(0.5, 2500, 500, 7.5) == 2687.5

    def test_float_noise_does_not_lose_a_kilogram(self):
        assert rate_table_cost(0.1 + 0.2 + 2.7, 2500, 500, 0) == 4000.0

    def test_threshold_is_free_weight(self):
        assert rate_table_cost(3.0, 2500, 500, 0, min_weight_threshold=2.0) == 3000.0

    def test_below_threshold_charges_base_only(self):
        assert rate_table_cost(1.0, 2500, 500, 0, min_weight_threshold=2.0) == 2500.0

    def test_no_vat(self):
        assert rate_table_cost(2.0, 1000, 100, 0) == 1200.0


class TestAllocation:
    def test_equal_split(self):
        assert allocate_shipping(6000, [4300, 2687.5], AllocationPolicy.EQUAL) == [3000.0, 3000.0]

    def test_last_hub_absorbs_remainder(self):
        allocated = allocate_shipping(1000, [1, 1, 1], AllocationPolicy.EQUAL)
        assert allocated == [333.33, 333.33, 333.34]
        assert sum(allocated) == pytest.approx(1000)

    def test_proportional_split(self):
        allocated = allocate_shipping(6000, [3000, 1000], AllocationPolicy.PROPORTIONAL)
        assert allocated == [4500.0, 1500.0]

    def test_proportional_with_zero_costs_falls_back_to_equal(self):
        assert allocate_shipping(100, [0, 0], AllocationPolicy.PROPORTIONAL) == [50.0, 50.0]

    def test_free_shipping(self):
        assert allocate_shipping(0, [4300, 2687.5], AllocationPolicy.EQUAL) == [0.0, 0.0]

    def test_no_hubs(self):
        assert allocate_shipping(6000, [], AllocationPolicy.EQUAL) == []
