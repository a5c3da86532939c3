"""
Offer book

Authoritative mapping of offer ids to offer records.

Responsibilities:
  - Creation with whitelist and seller-compliance checks
  - Seller-only update / delete, moderation removal
  - Partial consumption by the settlement engine
  - Liquidity preview: min(allowance, balance, stored amount)
  - Price preview through the shared pricing function

Invariants:
  - Ids are assigned sequentially from 0 and never reused
  - Every offer present in the book has ``amount > 0``; an offer that
    reaches zero is removed and reads of it fail with OfferNotFound
  - Balances and allowances are not checked at creation; liquidity is
    evaluated lazily against the ledger
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, replace
from typing import Any, Callable, Dict, List, Optional

from ..constants import ZERO_ADDRESS
from ..crypto.address import is_zero_address, normalize_address
from ..exceptions import (
    InvalidOfferParameters,
    NotSeller,
    OfferNotFound,
    SellerCannotTransfer,
    TokenNotWhitelisted,
)
from ..tokens.ledger import LedgerAdapter
from .events import OfferCreated, OfferDeleted, OfferUpdated
from .pricing import compute_buy_amount
from .registry import TokenRegistry

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Data types
# ---------------------------------------------------------------------------

@dataclass
class Offer:
    """A standing, partially fillable sell commitment."""
    offer_id: int
    sell_token: str
    buy_token: str
    seller: str
    reserved_buyer: str
    price: int
    amount: int
    created_at_block: int

    @property
    def is_private(self) -> bool:
        return self.reserved_buyer != ZERO_ADDRESS

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class OfferView:
    """Read model returned by the offer queries."""
    offer_id: int
    sell_token: str
    buy_token: str
    seller: str
    reserved_buyer: str
    price: int
    amount: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "offerId": self.offer_id,
            "offerToken": self.sell_token,
            "buyerToken": self.buy_token,
            "seller": self.seller,
            "buyer": self.reserved_buyer,
            "price": self.price,
            "amount": self.amount,
        }


@dataclass(frozen=True)
class TokenInfo:
    decimals: int
    symbol: str
    name: str


# ---------------------------------------------------------------------------
# Offer book
# ---------------------------------------------------------------------------

class OfferBook:
    """
    Offer storage and lifecycle.

    Authorization beyond seller ownership (roles, pause) is enforced by
    the caller; this class only knows who owns which offer.
    """

    def __init__(
        self,
        ledger: LedgerAdapter,
        registry: TokenRegistry,
        spender: str,
        emit: Optional[Callable[[Any], None]] = None,
    ):
        self.ledger = ledger
        self.registry = registry
        self.spender = normalize_address(spender)
        self._emit = emit or (lambda event: None)
        self._offers: Dict[int, Offer] = {}
        self._next_id: int = 0

    # ── Lookup ────────────────────────────────────────────────────────

    def get(self, offer_id: int) -> Offer:
        offer = self._offers.get(offer_id)
        if offer is None or offer.amount <= 0:
            raise OfferNotFound(f"offer {offer_id} does not exist")
        return offer

    def exists(self, offer_id: int) -> bool:
        offer = self._offers.get(offer_id)
        return offer is not None and offer.amount > 0

    @property
    def offer_count(self) -> int:
        """Number of ids ever assigned, which is also the next id."""
        return self._next_id

    @property
    def active_count(self) -> int:
        return len(self._offers)

    def active_offers(self) -> List[Offer]:
        return [replace(o) for _, o in sorted(self._offers.items())]

    def offers_by_seller(self, seller: str) -> List[Offer]:
        seller = normalize_address(seller)
        return [o for o in self.active_offers() if o.seller == seller]

    # ── Creation ──────────────────────────────────────────────────────

    def create(
        self,
        seller: str,
        sell_token: str,
        buy_token: str,
        reserved_buyer: Optional[str],
        price: int,
        amount: int,
        block_height: int,
    ) -> int:
        """
        Store a new offer and return its id.

        Raises:
            TokenNotWhitelisted: either token is not whitelisted
            InvalidOfferParameters: non-positive price or amount
            SellerCannotTransfer: compliance denies the seller moving sell_token
        """
        try:
            seller = normalize_address(seller)
            sell_token = normalize_address(sell_token)
            buy_token = normalize_address(buy_token)
            if is_zero_address(reserved_buyer):
                reserved_buyer = ZERO_ADDRESS
            else:
                reserved_buyer = normalize_address(reserved_buyer)
        except ValueError as e:
            raise InvalidOfferParameters(str(e)) from e

        if not self.registry.is_whitelisted(sell_token) or not self.registry.is_whitelisted(buy_token):
            raise TokenNotWhitelisted("Token is not whitelisted")
        self._validate_terms(price, amount)

        if not self.ledger.is_transfer_valid(sell_token, seller, seller, amount):
            raise SellerCannotTransfer("Seller can not transfer tokens")

        offer_id = self._next_id
        self._next_id += 1
        self._offers[offer_id] = Offer(
            offer_id=offer_id,
            sell_token=sell_token,
            buy_token=buy_token,
            seller=seller,
            reserved_buyer=reserved_buyer,
            price=price,
            amount=amount,
            created_at_block=block_height,
        )

        self._emit(OfferCreated(sell_token, buy_token, seller, reserved_buyer, offer_id, price, amount))
        logger.info(
            "Offer #%d created by %s: amount=%d price=%d (block %d)",
            offer_id, seller, amount, price, block_height,
        )
        return offer_id

    @staticmethod
    def _validate_terms(price: int, amount: int) -> None:
        if not isinstance(price, int) or price <= 0:
            raise InvalidOfferParameters(f"price must be a positive integer, got {price!r}")
        if not isinstance(amount, int) or amount <= 0:
            raise InvalidOfferParameters(f"amount must be a positive integer, got {amount!r}")

    # ── Seller mutations ──────────────────────────────────────────────

    def _require_seller(self, offer: Offer, caller: str, action: str) -> None:
        if normalize_address(caller) != offer.seller:
            raise NotSeller(f"only the seller can {action} offer")

    def update(self, caller: str, offer_id: int, new_price: int, new_amount: int) -> None:
        """
        Replace price and amount. A new amount of zero removes the offer.

        Raises:
            OfferNotFound, NotSeller, InvalidOfferParameters
        """
        offer = self.get(offer_id)
        self._require_seller(offer, caller, "change")
        if not isinstance(new_price, int) or new_price <= 0:
            raise InvalidOfferParameters(f"price must be a positive integer, got {new_price!r}")
        if not isinstance(new_amount, int) or new_amount < 0:
            raise InvalidOfferParameters(f"amount must be a non-negative integer, got {new_amount!r}")

        old_price, old_amount = offer.price, offer.amount
        offer.price = new_price
        offer.amount = new_amount
        self._emit(OfferUpdated(offer_id, old_price, new_price, old_amount, new_amount))
        logger.info(
            "Offer #%d updated: price %d → %d, amount %d → %d",
            offer_id, old_price, new_price, old_amount, new_amount,
        )

        if new_amount == 0:
            self._remove(offer_id)

    def delete(self, caller: str, offer_id: int) -> None:
        offer = self.get(offer_id)
        self._require_seller(offer, caller, "delete")
        self._remove(offer_id)

    def remove(self, offer_id: int) -> None:
        """Moderation removal; no ownership check."""
        self.get(offer_id)
        self._remove(offer_id)

    def _remove(self, offer_id: int) -> None:
        del self._offers[offer_id]
        self._emit(OfferDeleted(offer_id))
        logger.info("Offer #%d deleted", offer_id)

    # ── Settlement hook ───────────────────────────────────────────────

    def consume(self, offer_id: int, amount: int) -> bool:
        """
        Decrease the offer by a settled amount.

        Returns:
            True if the offer was exhausted and removed
        """
        offer = self.get(offer_id)
        if amount <= 0 or amount > offer.amount:
            raise InvalidOfferParameters(
                f"cannot consume {amount} from offer {offer_id} holding {offer.amount}"
            )
        offer.amount -= amount
        if offer.amount == 0:
            del self._offers[offer_id]
            logger.debug("Offer #%d exhausted", offer_id)
            return True
        return False

    # ── Previews ──────────────────────────────────────────────────────

    def preview_available(self, offer_id: int) -> int:
        """min(seller allowance to the engine, seller balance, stored amount)."""
        offer = self.get(offer_id)
        allowance = self.ledger.allowance(offer.seller, self.spender, offer.sell_token)
        balance = self.ledger.balance_of(offer.seller, offer.sell_token)
        return min(allowance, balance, offer.amount)

    def price_preview(self, offer_id: int, sell_amount: int) -> int:
        offer = self.get(offer_id)
        return compute_buy_amount(
            sell_amount,
            offer.price,
            self.ledger.decimals(offer.sell_token),
            self.ledger.decimals(offer.buy_token),
        )

    def token_info(self, token: str) -> TokenInfo:
        return TokenInfo(
            decimals=self.ledger.decimals(token),
            symbol=self.ledger.symbol(token),
            name=self.ledger.name(token),
        )

    def initial_offer(self, offer_id: int) -> OfferView:
        """The stored record."""
        offer = self.get(offer_id)
        return OfferView(
            offer.offer_id, offer.sell_token, offer.buy_token, offer.seller,
            offer.reserved_buyer, offer.price, offer.amount,
        )

    def show_offer(self, offer_id: int) -> OfferView:
        """The stored record with ``amount`` replaced by live liquidity."""
        return replace(self.initial_offer(offer_id), amount=self.preview_available(offer_id))

    # ── Snapshot / restore ────────────────────────────────────────────

    def snapshot(self) -> Dict[str, Any]:
        return {
            "offers": {oid: replace(o) for oid, o in self._offers.items()},
            "next_id": self._next_id,
        }

    def restore(self, snapshot: Dict[str, Any]) -> None:
        self._offers = {oid: replace(o) for oid, o in snapshot["offers"].items()}
        self._next_id = snapshot["next_id"]
