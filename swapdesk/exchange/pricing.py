"""
Price and fee computation

Pure integer arithmetic on base units. An offer's ``price`` is the number
of ``buy_token`` base units paid per whole ``sell_token`` (10 ** sell
decimals base units), so

    buy_amount = sell_amount * price // 10 ** sell_decimals

All divisions truncate toward zero. With non-negative inputs that is a
floor, and the remainder stays with the buyer. Preview and settlement
both go through ``compute_buy_amount`` so they agree exactly.

The platform fee is carved out of the seller's proceeds:

    fee = buy_amount * fee_bps // FEE_DENOMINATOR
"""

from __future__ import annotations

from dataclasses import dataclass

from ..constants import FEE_DENOMINATOR, MAX_FEE_BPS
from ..exceptions import InvalidOfferParameters


@dataclass(frozen=True)
class Quote:
    """Owed amounts for one buy."""
    sell_amount: int
    buy_amount: int     # total paid by the buyer
    fee: int            # part of buy_amount routed to the fee recipient

    @property
    def seller_proceeds(self) -> int:
        return self.buy_amount - self.fee


def compute_buy_amount(sell_amount: int, price: int, sell_decimals: int, buy_decimals: int) -> int:
    """
    Buy-token cost of ``sell_amount`` at ``price``.

    ``buy_decimals`` is accepted for symmetry: ``price`` is already
    expressed in buy-token base units, so it does not enter the formula.

    Raises:
        InvalidOfferParameters: negative amount, price or decimals
    """
    if sell_amount < 0 or price < 0:
        raise InvalidOfferParameters("amount and price must be non-negative")
    if sell_decimals < 0 or buy_decimals < 0:
        raise InvalidOfferParameters("decimals must be non-negative")
    return sell_amount * price // 10 ** sell_decimals


def compute_fee(buy_amount: int, fee_bps: int) -> int:
    """Fee share of ``buy_amount`` in basis points, truncated."""
    validate_fee(fee_bps)
    return buy_amount * fee_bps // FEE_DENOMINATOR


def validate_fee(fee_bps: int) -> int:
    if not isinstance(fee_bps, int) or not 0 <= fee_bps <= MAX_FEE_BPS:
        raise InvalidOfferParameters(f"fee must be between 0 and {MAX_FEE_BPS} bps, got {fee_bps}")
    return fee_bps


def scale_amount(amount: int, from_decimals: int, to_decimals: int) -> int:
    """
    Re-express ``amount`` from one decimal base in another.

    Scaling down truncates: ``scale_amount(1_999, 3, 0) == 1``.
    """
    if from_decimals < 0 or to_decimals < 0:
        raise InvalidOfferParameters("decimals must be non-negative")
    if to_decimals >= from_decimals:
        return amount * 10 ** (to_decimals - from_decimals)
    return amount // 10 ** (from_decimals - to_decimals)


def quote(sell_amount: int, price: int, sell_decimals: int, buy_decimals: int, fee_bps: int = 0) -> Quote:
    buy_amount = compute_buy_amount(sell_amount, price, sell_decimals, buy_decimals)
    return Quote(sell_amount, buy_amount, compute_fee(buy_amount, fee_bps))
