"""
Tests for swapdesk price and fee arithmetic.

Covers:
  - buy amount across decimal combinations
  - truncation toward the buyer
  - fee carve-out and bounds
  - decimal rescaling
"""

import pytest

from swapdesk.constants import MAX_FEE_BPS
from swapdesk.exceptions import InvalidOfferParameters
from swapdesk.exchange.pricing import (
    Quote,
    compute_buy_amount,
    compute_fee,
    quote,
    scale_amount,
    validate_fee,
)


class TestComputeBuyAmount:

    def test_18_to_6_decimals(self):
        # 100 RTT at 1 USDC each
        assert compute_buy_amount(100 * 10**18, 1_000_000, 18, 6) == 100_000_000

    def test_6_to_18_decimals(self):
        # 50 USDC at 0.5 RTT per USDC
        assert compute_buy_amount(50_000_000, 5 * 10**17, 6, 18) == 25 * 10**18

    def test_equal_decimals(self):
        assert compute_buy_amount(3 * 10**18, 2 * 10**18, 18, 18) == 6 * 10**18

    def test_zero_decimals(self):
        assert compute_buy_amount(7, 3, 0, 0) == 21

    def test_fractional_amount_truncates(self):
        # 1 base unit of an 18-decimal token at 1 USDC costs nothing
        assert compute_buy_amount(1, 1_000_000, 18, 6) == 0
        # 1.5 units at 3 base units each = 4.5, floored
        assert compute_buy_amount(15, 3, 1, 0) == 4

    def test_zero_amount(self):
        assert compute_buy_amount(0, 1_000_000, 18, 6) == 0

    def test_negative_amount_rejected(self):
        with pytest.raises(InvalidOfferParameters, match="non-negative"):
            compute_buy_amount(-1, 1_000_000, 18, 6)

    def test_negative_decimals_rejected(self):
        with pytest.raises(InvalidOfferParameters, match="decimals"):
            compute_buy_amount(1, 1, -1, 6)

    def test_large_values_exact(self):
        amount = 10**30
        price = 123_456_789_012_345_678_901
        assert compute_buy_amount(amount, price, 18, 18) == amount * price // 10**18


class TestFees:

    def test_zero_fee(self):
        assert compute_fee(100_000_000, 0) == 0

    def test_fee_truncates(self):
        assert compute_fee(999, 25) == 2  # 2.4975

    def test_fee_one_percent(self):
        assert compute_fee(100_000_000, 100) == 1_000_000

    def test_validate_fee_bounds(self):
        assert validate_fee(0) == 0
        assert validate_fee(MAX_FEE_BPS) == MAX_FEE_BPS
        with pytest.raises(InvalidOfferParameters, match="fee"):
            validate_fee(MAX_FEE_BPS + 1)
        with pytest.raises(InvalidOfferParameters, match="fee"):
            validate_fee(-1)

    def test_quote_splits_proceeds(self):
        q = quote(100 * 10**18, 1_000_000, 18, 6, fee_bps=50)
        assert q == Quote(100 * 10**18, 100_000_000, 500_000)
        assert q.seller_proceeds == 99_500_000
        assert q.seller_proceeds + q.fee == q.buy_amount


class TestScaleAmount:

    def test_scale_up(self):
        assert scale_amount(1_000_000, 6, 18) == 10**18

    def test_scale_down_truncates(self):
        assert scale_amount(1_999, 3, 0) == 1

    def test_same_decimals(self):
        assert scale_amount(42, 8, 8) == 42

    def test_negative_decimals(self):
        with pytest.raises(InvalidOfferParameters):
            scale_amount(1, -2, 0)
