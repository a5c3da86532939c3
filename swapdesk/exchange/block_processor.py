"""
Offer exchange block processor

Executes ordered batches of ``OfferTransaction`` against an
``OfferExchange``, one settlement period (block) at a time.

  - ``begin_block`` opens the period, so offers created in this block
    cannot be bought until the next one
  - transactions run in order; a failing transaction is recorded and
    skipped, its own changes already rolled back by the engine
  - an unexpected error reverts the whole block
  - the resulting exchange state is committed to a blake2b state root
"""

from __future__ import annotations

import hashlib
import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..crypto.permit import Permit
from ..exceptions import SwapDeskError
from .access import Role
from .engine import OfferExchange
from .transactions import OfferOpType, OfferTransaction

logger = logging.getLogger(__name__)


class ExecResult:
    """Result of executing a single offer transaction."""

    __slots__ = ("success", "data", "error", "events")

    def __init__(
        self,
        success: bool = True,
        data: Optional[Dict[str, Any]] = None,
        error: str = "",
        events: Optional[List[Dict[str, Any]]] = None,
    ):
        self.success = success
        self.data = data or {}
        self.error = error
        self.events = events or []


def _role(value: Any) -> Role:
    if isinstance(value, Role):
        return value
    try:
        return Role(value)
    except ValueError:
        return Role[value]


# ---------------------------------------------------------------------------
# Transaction processor
# ---------------------------------------------------------------------------

class TransactionProcessor:
    """
    Dispatches offer transactions to an exchange with per-sender nonces.

    Usage::

        processor = TransactionProcessor(exchange)
        processor.begin_block(height, timestamp)
        for tx in txs:
            result = processor.process_transaction(tx)
        state_root = processor.finalize_block()
    """

    def __init__(self, exchange: OfferExchange):
        self.exchange = exchange
        self._nonces: Dict[str, int] = {}
        self._block_txs: List[OfferTransaction] = []
        self._block_results: List[ExecResult] = []

        self._handlers: Dict[OfferOpType, Callable[[OfferTransaction], Dict[str, Any]]] = {
            OfferOpType.CREATE: self._op_create,
            OfferOpType.CREATE_BATCH: self._op_create_batch,
            OfferOpType.CREATE_WITH_PERMIT: self._op_create_with_permit,
            OfferOpType.UPDATE: self._op_update,
            OfferOpType.UPDATE_BATCH: self._op_update_batch,
            OfferOpType.UPDATE_WITH_PERMIT: self._op_update_with_permit,
            OfferOpType.DELETE: self._op_delete,
            OfferOpType.DELETE_BATCH: self._op_delete_batch,
            OfferOpType.DELETE_BY_ADMIN: self._op_delete_by_admin,
            OfferOpType.BUY: self._op_buy,
            OfferOpType.BUY_BATCH: self._op_buy_batch,
            OfferOpType.BUY_WITH_PERMIT: self._op_buy_with_permit,
            OfferOpType.SET_WHITELIST: self._op_set_whitelist,
            OfferOpType.TOGGLE_WHITELIST: self._op_toggle_whitelist,
            OfferOpType.SET_FEE: self._op_set_fee,
            OfferOpType.PAUSE: self._op_pause,
            OfferOpType.UNPAUSE: self._op_unpause,
            OfferOpType.SAVE_LOST_TOKENS: self._op_save_lost_tokens,
            OfferOpType.GRANT_ROLE: self._op_grant_role,
            OfferOpType.REVOKE_ROLE: self._op_revoke_role,
        }

    # =====================================================================
    #  Block lifecycle
    # =====================================================================

    def begin_block(self, block_height: int, block_timestamp: Optional[float] = None) -> None:
        self.exchange.begin_block(block_height, block_timestamp)
        self._block_txs = []
        self._block_results = []

    def finalize_block(self) -> str:
        state_root = self.compute_state_root()
        logger.debug(
            "Block %d finalized: %d offer txs, state_root=%s",
            self.exchange.current_block, len(self._block_txs), state_root[:16],
        )
        return state_root

    def nonce_of(self, sender: str) -> int:
        return self._nonces.get(sender.lower(), 0)

    def snapshot(self) -> Dict[str, Any]:
        return {"exchange": self.exchange.snapshot(), "nonces": dict(self._nonces)}

    def restore(self, snapshot: Dict[str, Any]) -> None:
        self.exchange.restore(snapshot["exchange"])
        self._nonces = dict(snapshot["nonces"])

    # =====================================================================
    #  Execution
    # =====================================================================

    def process_transaction(self, tx: OfferTransaction) -> ExecResult:
        """
        Execute one transaction.

        Domain failures (``SwapDeskError`` and malformed params) come back
        as a failed result; any other exception propagates.
        """
        try:
            tx.validate_basic()
        except ValueError as e:
            return self._record(tx, ExecResult(success=False, error=str(e)))

        sender = tx.sender.lower()
        expected_nonce = self._nonces.get(sender, 0)
        if tx.nonce != expected_nonce:
            return self._record(tx, ExecResult(
                success=False,
                error=f"Invalid nonce: expected {expected_nonce}, got {tx.nonce}",
            ))

        event_count = len(self.exchange.events)
        try:
            data = self._handlers[tx.op_type](tx)
        except (SwapDeskError, ValueError, KeyError, TypeError) as e:
            result = ExecResult(success=False, error=f"{type(e).__name__}: {e}")
        else:
            events = [e.to_dict() for e in self.exchange.events[event_count:]]
            result = ExecResult(success=True, data=data, events=events)
            self._nonces[sender] = tx.nonce + 1

        return self._record(tx, result)

    def _record(self, tx: OfferTransaction, result: ExecResult) -> ExecResult:
        tx.success = result.success
        tx.result = result.data
        tx.error = result.error
        self._block_txs.append(tx)
        self._block_results.append(result)
        return result

    # =====================================================================
    #  Operation handlers
    # =====================================================================

    def _op_create(self, tx: OfferTransaction) -> Dict[str, Any]:
        p = tx.params
        offer_id = self.exchange.create_offer(
            tx.sender, p["sell_token"], p["buy_token"], p.get("reserved_buyer"),
            int(p["price"]), int(p["amount"]),
        )
        return {"offer_id": offer_id}

    def _op_create_batch(self, tx: OfferTransaction) -> Dict[str, Any]:
        p = tx.params
        offer_ids = self.exchange.create_offer_batch(
            tx.sender, p["sell_tokens"], p["buy_tokens"], p["reserved_buyers"],
            [int(x) for x in p["prices"]], [int(x) for x in p["amounts"]],
        )
        return {"offer_ids": offer_ids}

    def _op_create_with_permit(self, tx: OfferTransaction) -> Dict[str, Any]:
        p = tx.params
        offer_id = self.exchange.create_offer_with_permit(
            tx.sender, p["sell_token"], p["buy_token"], p.get("reserved_buyer"),
            int(p["price"]), int(p["amount"]), permit=Permit.from_dict(p["permit"]),
        )
        return {"offer_id": offer_id}

    def _op_update(self, tx: OfferTransaction) -> Dict[str, Any]:
        p = tx.params
        self.exchange.update_offer(tx.sender, int(p["offer_id"]), int(p["price"]), int(p["amount"]))
        return {"offer_id": int(p["offer_id"])}

    def _op_update_batch(self, tx: OfferTransaction) -> Dict[str, Any]:
        p = tx.params
        self.exchange.update_offer_batch(
            tx.sender,
            [int(x) for x in p["offer_ids"]],
            [int(x) for x in p["prices"]],
            [int(x) for x in p["amounts"]],
        )
        return {"offer_ids": [int(x) for x in p["offer_ids"]]}

    def _op_update_with_permit(self, tx: OfferTransaction) -> Dict[str, Any]:
        p = tx.params
        self.exchange.update_offer_with_permit(
            tx.sender, int(p["offer_id"]), int(p["price"]), int(p["amount"]),
            permit=Permit.from_dict(p["permit"]),
        )
        return {"offer_id": int(p["offer_id"])}

    def _op_delete(self, tx: OfferTransaction) -> Dict[str, Any]:
        self.exchange.delete_offer(tx.sender, int(tx.params["offer_id"]))
        return {"offer_id": int(tx.params["offer_id"])}

    def _op_delete_batch(self, tx: OfferTransaction) -> Dict[str, Any]:
        offer_ids = [int(x) for x in tx.params["offer_ids"]]
        self.exchange.delete_offer_batch(tx.sender, offer_ids)
        return {"offer_ids": offer_ids}

    def _op_delete_by_admin(self, tx: OfferTransaction) -> Dict[str, Any]:
        offer_ids = [int(x) for x in tx.params["offer_ids"]]
        self.exchange.delete_offer_by_admin(tx.sender, offer_ids)
        return {"offer_ids": offer_ids}

    def _op_buy(self, tx: OfferTransaction) -> Dict[str, Any]:
        p = tx.params
        receipt = self.exchange.buy(tx.sender, int(p["offer_id"]), int(p["price"]), int(p["amount"]))
        return receipt.to_dict()

    def _op_buy_batch(self, tx: OfferTransaction) -> Dict[str, Any]:
        p = tx.params
        receipts = self.exchange.buy_offer_batch(
            tx.sender,
            [int(x) for x in p["offer_ids"]],
            [int(x) for x in p["prices"]],
            [int(x) for x in p["amounts"]],
        )
        return {"settlements": [r.to_dict() for r in receipts]}

    def _op_buy_with_permit(self, tx: OfferTransaction) -> Dict[str, Any]:
        p = tx.params
        receipt = self.exchange.buy_with_permit(
            tx.sender, int(p["offer_id"]), int(p["price"]), int(p["amount"]),
            permit=Permit.from_dict(p["permit"]),
        )
        return receipt.to_dict()

    def _op_set_whitelist(self, tx: OfferTransaction) -> Dict[str, Any]:
        self.exchange.set_whitelist(tx.sender, tx.params["tokens"], [int(t) for t in tx.params["types"]])
        return {"tokens": list(tx.params["tokens"])}

    def _op_toggle_whitelist(self, tx: OfferTransaction) -> Dict[str, Any]:
        self.exchange.toggle_whitelist(tx.sender, tx.params["tokens"], [bool(f) for f in tx.params["flags"]])
        return {"tokens": list(tx.params["tokens"])}

    def _op_set_fee(self, tx: OfferTransaction) -> Dict[str, Any]:
        self.exchange.set_fee(tx.sender, int(tx.params["fee"]))
        return {"fee": self.exchange.fee}

    def _op_pause(self, tx: OfferTransaction) -> Dict[str, Any]:
        self.exchange.pause(tx.sender)
        return {"paused": True}

    def _op_unpause(self, tx: OfferTransaction) -> Dict[str, Any]:
        self.exchange.unpause(tx.sender)
        return {"paused": False}

    def _op_save_lost_tokens(self, tx: OfferTransaction) -> Dict[str, Any]:
        amount = self.exchange.save_lost_tokens(tx.sender, tx.params["token"])
        return {"token": tx.params["token"], "amount": amount}

    def _op_grant_role(self, tx: OfferTransaction) -> Dict[str, Any]:
        changed = self.exchange.grant_role(tx.sender, _role(tx.params["role"]), tx.params["account"])
        return {"changed": changed}

    def _op_revoke_role(self, tx: OfferTransaction) -> Dict[str, Any]:
        changed = self.exchange.revoke_role(tx.sender, _role(tx.params["role"]), tx.params["account"])
        return {"changed": changed}

    # =====================================================================
    #  State commitment
    # =====================================================================

    def compute_state_root(self) -> str:
        """
        Deterministic hash of the exchange state.

        Returns:
            64-char hex string (blake2b-256)
        """
        return compute_state_root(self.exchange, self._nonces)


def compute_state_root(exchange: OfferExchange, nonces: Optional[Dict[str, int]] = None) -> str:
    hasher = hashlib.blake2b(digest_size=32)

    # 1. Offers, by id
    for offer in exchange.book.active_offers():
        hasher.update(hashlib.blake2b(
            (f"{offer.offer_id}:{offer.sell_token}:{offer.buy_token}:{offer.seller}:"
             f"{offer.reserved_buyer}:{offer.price}:{offer.amount}:{offer.created_at_block}").encode(),
            digest_size=16,
        ).digest())
    hasher.update(exchange.book.offer_count.to_bytes(8, "big"))

    # 2. Whitelist
    for token in exchange.registry.whitelisted_tokens():
        hasher.update(f"{token}:{int(exchange.registry.token_type(token))}".encode())

    # 3. Roles, fee and pause flag
    for role in Role:
        for account in sorted(exchange.access.members(role)):
            hasher.update(f"{role.value}:{account}".encode())
    hasher.update(f"fee:{exchange.fee}:paused:{int(exchange.paused)}".encode())

    # 4. Nonces
    for addr in sorted((nonces or {}).keys()):
        hasher.update(f"{addr}:{nonces[addr]}".encode())

    # 5. Block metadata
    hasher.update(exchange.current_block.to_bytes(8, "big"))

    return hasher.hexdigest()


# ---------------------------------------------------------------------------
# Block-level processing
# ---------------------------------------------------------------------------

def process_offer_transactions(
    block_height: int,
    block_timestamp: float,
    txs: List[OfferTransaction],
    processor: TransactionProcessor,
) -> Tuple[bool, str, str]:
    """
    Process all offer transactions in a block.

    Args:
        block_height: Height of the block being processed
        block_timestamp: Timestamp of the block
        txs: Transactions in execution order
        processor: Processor bound to the exchange

    Returns:
        Tuple of (success, error_message, state_root)
    """
    snapshot = processor.snapshot()
    try:
        processor.begin_block(block_height, block_timestamp)
    except ValueError as e:
        return False, str(e), ""

    failed = 0
    for i, tx in enumerate(txs):
        try:
            result = processor.process_transaction(tx)
        except Exception as e:
            processor.restore(snapshot)
            logger.error("Block %d reverted at tx %d: %s", block_height, i, e)
            return False, f"Critical offer exchange error at tx {i}: {e}", ""
        if not result.success:
            failed += 1
            logger.debug("Offer tx %d failed: %s", i, result.error)

    state_root = processor.finalize_block()
    if failed:
        logger.info("Block %d: %d/%d offer txs failed", block_height, failed, len(txs))
    return True, "", state_root


def validate_state_root(
    block_height: int,
    block_timestamp: float,
    txs: List[OfferTransaction],
    expected_state_root: str,
    processor: TransactionProcessor,
) -> Tuple[bool, str]:
    """Replay a block and compare the resulting state root."""
    success, error, computed_root = process_offer_transactions(
        block_height, block_timestamp, txs, processor,
    )
    if not success:
        return False, f"Offer exchange processing failed: {error}"
    if computed_root != expected_state_root:
        return False, (
            f"State root mismatch at block {block_height}: "
            f"expected {expected_state_root[:16]}..., computed {computed_root[:16]}..."
        )
    return True, ""
