"""
Offer exchange engine

Facade composing the access control, token registry, offer book and
settlement engine into the public operation surface.

Every mutating operation:
  - runs its capability checks first (``requires_role``, ``when_not_paused``)
  - executes inside ``transaction()``: a single-writer lock plus a snapshot
    of book, registry, roles, fee, ledger and settlement period that is restored if the
    operation raises, so a failed call leaves no partial state and no events
  - batch and permit variants nest inside one outer transaction and are
    therefore all-or-nothing

Settlement periods are opened with ``begin_block``; the front-running
guard compares an offer's creation period with the current one.
"""

from __future__ import annotations

import functools
import inspect
import logging
import threading
import time
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence

from ..constants import MAX_BATCH_SIZE
from ..crypto.address import derive_address, normalize_address
from ..crypto.permit import Permit
from ..exceptions import (
    InvalidOfferParameters,
    LengthMismatch,
    NativeTransferRejected,
    NotModeratorOrAdmin,
)
from ..logger import configure_logging
from ..tokens.ledger import LedgerAdapter
from .access import AccessControl, Role, requires_role, when_not_paused
from .events import FeeChanged, TokenWhitelistToggled
from .offers import Offer, OfferBook, OfferView, TokenInfo
from .pricing import validate_fee
from .registry import TokenRegistry, TokenType
from .settlement import Settlement, SettlementEngine

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Operation decorators
# ---------------------------------------------------------------------------

def atomic(fn):
    """Run the method inside ``self.transaction()``."""
    @functools.wraps(fn)
    def wrapper(self, *args, **kwargs):
        with self.transaction():
            return fn(self, *args, **kwargs)
    return wrapper


def with_permit(resolve_token: Callable[["OfferExchange", Dict[str, Any]], str]):
    """
    Derive an ``*_with_permit`` operation from a base operation.

    The derived method takes the base arguments plus a keyword ``permit``.
    It checks the pause gate, redeems the permit against the ledger for
    the token picked by ``resolve_token`` (owner = caller, spender = the
    engine) and then runs the base operation, all in one transaction.
    A bad permit fails before any offer state is touched.
    """
    def decorator(base):
        signature = inspect.signature(base)

        @functools.wraps(base)
        def wrapper(self, caller, *args, permit: Permit, **kwargs):
            with self.transaction():
                self.access.require_not_paused()
                bound = signature.bind(self, caller, *args, **kwargs)
                token = resolve_token(self, bound.arguments)
                self.ledger.authorize(caller, self.address, token, permit)
                logger.debug("Permit redeemed by %s on %s for %d", caller, token, permit.value)
                return base(self, caller, *args, **kwargs)

        wrapper.__name__ = f"{base.__name__}_with_permit"
        wrapper.__qualname__ = f"{base.__qualname__}_with_permit"
        return wrapper
    return decorator


def _new_offer_sell_token(exchange: "OfferExchange", arguments: Dict[str, Any]) -> str:
    return arguments["sell_token"]


def _offer_sell_token(exchange: "OfferExchange", arguments: Dict[str, Any]) -> str:
    return exchange.book.get(arguments["offer_id"]).sell_token


def _offer_buy_token(exchange: "OfferExchange", arguments: Dict[str, Any]) -> str:
    return exchange.book.get(arguments["offer_id"]).buy_token


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------

class OfferExchange:
    """
    Peer-to-peer offer exchange.

    Usage::

        exchange = OfferExchange(ledger, admin=ADMIN, moderator=MODERATOR)
        exchange.set_whitelist(ADMIN, [rtt, usdc], [TokenType.REALTOKEN, TokenType.ERC20_WITH_PERMIT])

        exchange.begin_block(1)
        offer_id = exchange.create_offer(SELLER, rtt, usdc, None, 55_000_000, 10 * 10**18)

        exchange.begin_block(2)
        exchange.buy(BUYER, offer_id, 55_000_000, 10**18)
    """

    def __init__(
        self,
        ledger: LedgerAdapter,
        admin: str,
        moderator: Optional[str] = None,
        *,
        address: Optional[str] = None,
        fee_bps: int = 0,
        fee_recipient: Optional[str] = None,
        max_batch_size: int = MAX_BATCH_SIZE,
    ):
        self.address = normalize_address(address) if address else derive_address("swapdesk:exchange")
        self.ledger = ledger
        self.max_batch_size = max_batch_size

        self._events: List[Any] = []
        self._lock = threading.RLock()
        self._depth = 0

        self.access = AccessControl(admin, moderator, emit=self._emit)
        self.registry = TokenRegistry()
        self.book = OfferBook(ledger, self.registry, self.address, emit=self._emit)
        self.settlement = SettlementEngine(self.book, ledger, self.address, emit=self._emit)

        self._fee_bps = validate_fee(fee_bps)
        self.fee_recipient = normalize_address(fee_recipient) if fee_recipient else self.address

        self._block_height = 0
        self._block_timestamp = 0.0

        logger.info("Offer exchange initialized at %s (admin %s)", self.address, admin)

    @classmethod
    def from_config(
        cls,
        config,
        ledger: LedgerAdapter,
        admin: str,
        moderator: Optional[str] = None,
    ) -> "OfferExchange":
        """
        Build an engine from an ``EngineConfig`` and apply its logging section.

        Raises:
            ValueError: invalid config, or a ledger on another chain than
                ``config.engine.chain_id``
        """
        config.validate()
        ledger_chain = getattr(ledger, "chain_id", None)
        if ledger_chain is not None and ledger_chain != config.engine.chain_id:
            raise ValueError(
                f"Ledger chain_id {ledger_chain} does not match configured chain_id "
                f"{config.engine.chain_id}"
            )
        configure_logging(
            log_level=config.logging.level,
            log_file=config.logging.file or None,
            console_output=config.logging.console,
        )
        return cls(
            ledger,
            admin,
            moderator,
            address=config.engine.address or None,
            fee_bps=config.engine.fee_bps,
            fee_recipient=config.engine.fee_recipient or None,
            max_batch_size=config.engine.max_batch_size,
        )

    # =====================================================================
    #  Settlement periods
    # =====================================================================

    def begin_block(self, block_height: int, block_timestamp: Optional[float] = None) -> None:
        """
        Open a new settlement period.

        Raises:
            ValueError: if the height goes backwards
        """
        with self._lock:
            if block_height < self._block_height:
                raise ValueError(
                    f"Block height {block_height} is below current height {self._block_height}"
                )
            self._block_height = block_height
            self._block_timestamp = time.time() if block_timestamp is None else block_timestamp
            logger.debug("Block %d opened", block_height)

    @property
    def current_block(self) -> int:
        return self._block_height

    @property
    def block_timestamp(self) -> float:
        return self._block_timestamp

    # =====================================================================
    #  Transaction scope
    # =====================================================================

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """
        Single-writer, all-or-nothing scope.

        Only the outermost scope snapshots and restores; nested scopes
        join it.
        """
        with self._lock:
            outermost = self._depth == 0
            state = self.snapshot() if outermost else None
            self._depth += 1
            try:
                yield
            except Exception as e:
                if outermost:
                    self.restore(state)
                    logger.debug("Transaction ROLLED BACK: %s: %s", type(e).__name__, e)
                raise
            finally:
                self._depth -= 1

    def snapshot(self) -> Dict[str, Any]:
        """Capture engine and ledger state for ``restore``."""
        with self._lock:
            return {
                "book": self.book.snapshot(),
                "registry": self.registry.snapshot(),
                "access": self.access.snapshot(),
                "ledger": self.ledger.snapshot(),
                "fee_bps": self._fee_bps,
                "total_trades": self.settlement.total_trades,
                "event_count": len(self._events),
                "block_height": self._block_height,
                "block_timestamp": self._block_timestamp,
            }

    def restore(self, snapshot: Dict[str, Any]) -> None:
        with self._lock:
            self.book.restore(snapshot["book"])
            self.registry.restore(snapshot["registry"])
            self.access.restore(snapshot["access"])
            self.ledger.restore(snapshot["ledger"])
            self._fee_bps = snapshot["fee_bps"]
            self.settlement.total_trades = snapshot["total_trades"]
            del self._events[snapshot["event_count"]:]
            self._block_height = snapshot["block_height"]
            self._block_timestamp = snapshot["block_timestamp"]

    # =====================================================================
    #  Events
    # =====================================================================

    def _emit(self, event: Any) -> None:
        self._events.append(event)

    @property
    def events(self) -> List[Any]:
        return list(self._events)

    def events_of(self, event_type: type) -> List[Any]:
        return [e for e in self._events if isinstance(e, event_type)]

    # =====================================================================
    #  Batch helpers
    # =====================================================================

    def _check_batch(self, *arrays: Sequence[Any]) -> int:
        size = len(arrays[0])
        if any(len(a) != size for a in arrays[1:]):
            raise LengthMismatch("length mismatch")
        if size > self.max_batch_size:
            raise InvalidOfferParameters(
                f"Batch size {size} exceeds max {self.max_batch_size}"
            )
        return size

    # =====================================================================
    #  Token registry (admin)
    # =====================================================================

    @atomic
    @requires_role(Role.ADMIN)
    def set_whitelist(self, caller: str, tokens: Sequence[str], types: Sequence[int]) -> None:
        """Set the whitelist type of each token (toggleWhitelistWithType)."""
        self._check_batch(tokens, types)
        before = self.registry.snapshot()["types"]
        normalized, kinds = self.registry.set_types(tokens, types)
        self._emit_whitelist(before, normalized, kinds)

    @atomic
    @requires_role(Role.ADMIN)
    def toggle_whitelist(self, caller: str, tokens: Sequence[str], flags: Sequence[bool]) -> None:
        """Enable or disable each token, keeping its last known type."""
        self._check_batch(tokens, flags)
        before = self.registry.snapshot()["types"]
        normalized, kinds = self.registry.set_flags(tokens, flags)
        self._emit_whitelist(before, normalized, kinds)

    def _emit_whitelist(
        self, before: Dict[str, TokenType], tokens: List[str], kinds: List[TokenType]
    ) -> None:
        previous = tuple(int(before.get(t, TokenType.NOT_WHITELISTED)) for t in tokens)
        self._emit(TokenWhitelistToggled(tuple(tokens), tuple(int(k) for k in kinds), previous))

    def is_whitelisted(self, token: str) -> bool:
        return self.registry.is_whitelisted(token)

    def get_token_type(self, token: str) -> TokenType:
        return self.registry.token_type(token)

    # =====================================================================
    #  Offer book
    # =====================================================================

    @atomic
    @when_not_paused
    def create_offer(
        self,
        caller: str,
        sell_token: str,
        buy_token: str,
        reserved_buyer: Optional[str],
        price: int,
        amount: int,
    ) -> int:
        """
        Post a standing offer to sell ``amount`` of ``sell_token``.

        Args:
            caller: Seller
            sell_token: Token offered
            buy_token: Token requested in exchange
            reserved_buyer: Only account allowed to accept, or None / zero address for public
            price: ``buy_token`` base units per whole ``sell_token``
            amount: ``sell_token`` base units on offer

        Returns:
            The new offer id
        """
        return self.book.create(
            caller, sell_token, buy_token, reserved_buyer, price, amount, self._block_height
        )

    @atomic
    @when_not_paused
    def create_offer_batch(
        self,
        caller: str,
        sell_tokens: Sequence[str],
        buy_tokens: Sequence[str],
        reserved_buyers: Sequence[Optional[str]],
        prices: Sequence[int],
        amounts: Sequence[int],
    ) -> List[int]:
        self._check_batch(sell_tokens, buy_tokens, reserved_buyers, prices, amounts)
        return [
            self.create_offer(caller, s, b, r, p, a)
            for s, b, r, p, a in zip(sell_tokens, buy_tokens, reserved_buyers, prices, amounts)
        ]

    @atomic
    @when_not_paused
    def update_offer(self, caller: str, offer_id: int, new_price: int, new_amount: int) -> None:
        self.book.update(caller, offer_id, new_price, new_amount)

    @atomic
    @when_not_paused
    def update_offer_batch(
        self,
        caller: str,
        offer_ids: Sequence[int],
        new_prices: Sequence[int],
        new_amounts: Sequence[int],
    ) -> None:
        self._check_batch(offer_ids, new_prices, new_amounts)
        for offer_id, price, amount in zip(offer_ids, new_prices, new_amounts):
            self.update_offer(caller, offer_id, price, amount)

    @atomic
    @when_not_paused
    def delete_offer(self, caller: str, offer_id: int) -> None:
        self.book.delete(caller, offer_id)

    @atomic
    @when_not_paused
    def delete_offer_batch(self, caller: str, offer_ids: Sequence[int]) -> None:
        self._check_batch(offer_ids)
        for offer_id in offer_ids:
            self.delete_offer(caller, offer_id)

    @atomic
    @when_not_paused
    @requires_role(Role.ADMIN)
    def delete_offer_by_admin(self, caller: str, offer_ids: Sequence[int]) -> None:
        """Moderation override: remove offers regardless of seller."""
        self._check_batch(offer_ids)
        for offer_id in offer_ids:
            self.book.remove(offer_id)
        logger.info("Admin %s removed offers %s", caller, list(offer_ids))

    # ── Reads ─────────────────────────────────────────────────────────

    def get_offer_count(self) -> int:
        return self.book.offer_count

    def get_offer(self, offer_id: int) -> Offer:
        return self.book.get(offer_id)

    def get_initial_offer(self, offer_id: int) -> OfferView:
        return self.book.initial_offer(offer_id)

    def show_offer(self, offer_id: int) -> OfferView:
        return self.book.show_offer(offer_id)

    def preview_available(self, offer_id: int) -> int:
        return self.book.preview_available(offer_id)

    def price_preview(self, offer_id: int, sell_amount: int) -> int:
        return self.book.price_preview(offer_id, sell_amount)

    def token_info(self, token: str) -> TokenInfo:
        return self.book.token_info(token)

    # =====================================================================
    #  Settlement
    # =====================================================================

    @atomic
    @when_not_paused
    def buy(self, caller: str, offer_id: int, price: int, amount: int) -> Settlement:
        """
        Accept ``amount`` of offer ``offer_id`` at the observed ``price``.

        Raises:
            OfferNotFound, NotReservedBuyer, OfferPriceWrong, SameBlockTrade,
            InsufficientLiquidity, TransferRejected
        """
        return self.settlement.settle(
            caller,
            offer_id,
            price,
            amount,
            self._block_height,
            fee_bps=self._fee_bps,
            fee_recipient=self.fee_recipient,
        )

    @atomic
    @when_not_paused
    def buy_offer_batch(
        self,
        caller: str,
        offer_ids: Sequence[int],
        prices: Sequence[int],
        amounts: Sequence[int],
    ) -> List[Settlement]:
        self._check_batch(offer_ids, prices, amounts)
        return [
            self.buy(caller, offer_id, price, amount)
            for offer_id, price, amount in zip(offer_ids, prices, amounts)
        ]

    # =====================================================================
    #  Permit variants
    # =====================================================================

    create_offer_with_permit = with_permit(_new_offer_sell_token)(create_offer)
    update_offer_with_permit = with_permit(_offer_sell_token)(update_offer)
    buy_with_permit = with_permit(_offer_buy_token)(buy)

    # =====================================================================
    #  Fee
    # =====================================================================

    @property
    def fee(self) -> int:
        return self._fee_bps

    @atomic
    @requires_role(Role.ADMIN)
    def set_fee(self, caller: str, new_fee: int) -> None:
        """Set the platform fee in basis points of the buy-side amount."""
        validate_fee(new_fee)
        old_fee = self._fee_bps
        self._fee_bps = new_fee
        self._emit(FeeChanged(old_fee, new_fee))
        logger.info("Fee changed: %d → %d bps", old_fee, new_fee)

    # =====================================================================
    #  Administrative controls
    # =====================================================================

    @atomic
    def pause(self, caller: str) -> None:
        self.access.pause(caller)

    @atomic
    def unpause(self, caller: str) -> None:
        self.access.unpause(caller)

    @property
    def paused(self) -> bool:
        return self.access.paused

    @atomic
    def grant_role(self, caller: str, role: Role, account: str) -> bool:
        return self.access.grant_role(caller, role, account)

    @atomic
    def revoke_role(self, caller: str, role: Role, account: str) -> bool:
        return self.access.revoke_role(caller, role, account)

    def has_role(self, role: Role, account: str) -> bool:
        return self.access.has_role(role, account)

    @atomic
    @requires_role(Role.ADMIN, Role.MODERATOR, error=NotModeratorOrAdmin,
                   message="caller is not moderator or admin")
    def save_lost_tokens(self, caller: str, token: str) -> int:
        """
        Sweep the engine's own balance of ``token`` to the caller.

        The engine never escrows offer funds, so anything it holds arrived
        by mistake or as collected fees.

        Returns:
            Amount moved
        """
        balance = self.ledger.balance_of(self.address, token)
        if balance > 0:
            self.ledger.transfer(self.address, caller, token, balance)
            logger.warning("Recovered %d of %s to %s", balance, token, caller)
        return balance

    def receive_native(self, sender: str, value: int) -> None:
        """The engine has no payable entry point."""
        raise NativeTransferRejected(
            f"native currency transfer of {value} from {sender} rejected"
        )

    # =====================================================================
    #  Query interface
    # =====================================================================

    def get_stats(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "block": self._block_height,
            "offer_count": self.book.offer_count,
            "active_offers": self.book.active_count,
            "total_trades": self.settlement.total_trades,
            "whitelisted_tokens": len(self.registry.whitelisted_tokens()),
            "fee_bps": self._fee_bps,
            "paused": self.access.paused,
        }

    def __repr__(self) -> str:
        return (
            f"<OfferExchange {self.address} offers={self.book.active_count} "
            f"block={self._block_height}>"
        )
