"""
Settlement engine

Executes a buy against a standing offer in one call, with no escrow:

  1. lookup                 OfferNotFound
  2. reserved buyer         NotReservedBuyer
  3. price pin              OfferPriceWrong
  4. front-running guard    SameBlockTrade
  5. liquidity              InsufficientLiquidity
  6. price / fee            pricing.quote
  7. dual pull transfer     TransferRejected (any leg)
  8. bookkeeping            decrement, remove at zero
  9. OfferAccepted

The transfer legs run against a ledger snapshot: if any leg fails, legs
already applied are rolled back before the error propagates.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from ..crypto.address import normalize_address
from ..exceptions import (
    InsufficientLiquidity,
    InvalidOfferParameters,
    NotReservedBuyer,
    OfferPriceWrong,
    SameBlockTrade,
)
from ..tokens.ledger import LedgerAdapter
from .events import OfferAccepted
from .offers import Offer, OfferBook
from .pricing import Quote, quote

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Settlement:
    """Receipt of one settled buy."""
    offer_id: int
    seller: str
    buyer: str
    sell_token: str
    buy_token: str
    price: int
    amount: int
    buy_amount: int
    fee: int
    exhausted: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "offerId": self.offer_id,
            "seller": self.seller,
            "buyer": self.buyer,
            "offerToken": self.sell_token,
            "buyerToken": self.buy_token,
            "price": self.price,
            "amount": self.amount,
            "buyAmount": self.buy_amount,
            "fee": self.fee,
            "exhausted": self.exhausted,
        }


class SettlementEngine:
    """Validates and settles buys against an ``OfferBook``."""

    def __init__(
        self,
        book: OfferBook,
        ledger: LedgerAdapter,
        spender: str,
        emit: Optional[Callable[[Any], None]] = None,
    ):
        self.book = book
        self.ledger = ledger
        self.spender = normalize_address(spender)
        self._emit = emit or (lambda event: None)

        self.total_trades = 0

    # ── Validation (steps 1-5) ────────────────────────────────────────

    def validate(self, buyer: str, offer_id: int, price: int, amount: int, current_block: int) -> Offer:
        """
        Run the pre-transfer checks and return the offer.

        Raises:
            OfferNotFound, NotReservedBuyer, OfferPriceWrong, SameBlockTrade,
            InvalidOfferParameters, InsufficientLiquidity
        """
        offer = self.book.get(offer_id)

        if offer.is_private and buyer != offer.reserved_buyer:
            raise NotReservedBuyer("private offer can only be accepted by the reserved buyer")

        if price != offer.price:
            raise OfferPriceWrong("offer price wrong")

        if offer.created_at_block == current_block:
            raise SameBlockTrade(
                f"offer {offer_id} was created in block {current_block} and cannot be bought in it"
            )

        if not isinstance(amount, int) or amount <= 0:
            raise InvalidOfferParameters(f"amount must be a positive integer, got {amount!r}")

        available = self.book.preview_available(offer_id)
        if amount > available:
            raise InsufficientLiquidity(
                f"requested {amount} exceeds available liquidity {available} on offer {offer_id}"
            )
        return offer

    def quote(self, offer: Offer, amount: int, fee_bps: int) -> Quote:
        q = quote(
            amount,
            offer.price,
            self.ledger.decimals(offer.sell_token),
            self.ledger.decimals(offer.buy_token),
            fee_bps,
        )
        if q.buy_amount == 0:
            raise InvalidOfferParameters(
                f"buying {amount} from offer {offer.offer_id} costs nothing after rounding"
            )
        return q

    # ── Execution ─────────────────────────────────────────────────────

    def settle(
        self,
        buyer: str,
        offer_id: int,
        price: int,
        amount: int,
        current_block: int,
        fee_bps: int = 0,
        fee_recipient: Optional[str] = None,
    ) -> Settlement:
        """
        Settle a buy of ``amount`` sell-token units from ``offer_id``.

        Args:
            buyer: Accepting account
            offer_id: Offer to accept
            price: Price the buyer observed (must equal the stored price)
            amount: Sell-token base units to buy
            current_block: Height of the settlement period being executed
            fee_bps: Platform fee on the buy-side amount
            fee_recipient: Receiver of the fee leg (required when a fee is due)

        Returns:
            Settlement receipt
        """
        buyer = normalize_address(buyer)
        offer = self.validate(buyer, offer_id, price, amount, current_block)
        q = self.quote(offer, amount, fee_bps)
        if q.fee and not fee_recipient:
            raise InvalidOfferParameters("fee recipient is not configured")

        state = self.ledger.snapshot()
        try:
            self.ledger.transfer_from(self.spender, offer.seller, buyer, offer.sell_token, amount)
            self.ledger.transfer_from(
                self.spender, buyer, offer.seller, offer.buy_token, q.seller_proceeds
            )
            if q.fee:
                self.ledger.transfer_from(self.spender, buyer, fee_recipient, offer.buy_token, q.fee)
        except Exception:
            self.ledger.restore(state)
            logger.debug("Offer #%d settlement legs rolled back", offer_id)
            raise

        seller, sell_token, buy_token = offer.seller, offer.sell_token, offer.buy_token
        exhausted = self.book.consume(offer_id, amount)
        self.total_trades += 1

        self._emit(OfferAccepted(offer_id, seller, buyer, sell_token, buy_token, price, amount))
        logger.info(
            "Offer #%d accepted by %s: amount=%d paid=%d fee=%d%s",
            offer_id, buyer, amount, q.buy_amount, q.fee, " (exhausted)" if exhausted else "",
        )
        return Settlement(
            offer_id=offer_id,
            seller=seller,
            buyer=buyer,
            sell_token=sell_token,
            buy_token=buy_token,
            price=price,
            amount=amount,
            buy_amount=q.buy_amount,
            fee=q.fee,
            exhausted=exhausted,
        )
