"""
Offer exchange transaction envelope

Serializable form of every engine operation, so that operations can be
queued, replayed and executed in order by ``block_processor``.

Operation types:
  - CREATE / CREATE_BATCH / CREATE_WITH_PERMIT
  - UPDATE / UPDATE_BATCH / UPDATE_WITH_PERMIT
  - DELETE / DELETE_BATCH / DELETE_BY_ADMIN
  - BUY / BUY_BATCH / BUY_WITH_PERMIT
  - SET_WHITELIST / TOGGLE_WHITELIST / SET_FEE
  - PAUSE / UNPAUSE / SAVE_LOST_TOKENS
  - GRANT_ROLE / REVOKE_ROLE

A per-sender nonce prevents replays; the hash covers op type, sender,
nonce and canonical JSON params.
"""

from __future__ import annotations

import hashlib
import json
import time
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict, Tuple


# ---------------------------------------------------------------------------
# Operation types
# ---------------------------------------------------------------------------

class OfferOpType(IntEnum):
    """Exchange operation types. Values are part of the hash."""
    CREATE = 1
    CREATE_BATCH = 2
    CREATE_WITH_PERMIT = 3
    UPDATE = 4
    UPDATE_BATCH = 5
    UPDATE_WITH_PERMIT = 6
    DELETE = 7
    DELETE_BATCH = 8
    DELETE_BY_ADMIN = 9
    BUY = 10
    BUY_BATCH = 11
    BUY_WITH_PERMIT = 12
    SET_WHITELIST = 13
    TOGGLE_WHITELIST = 14
    SET_FEE = 15
    PAUSE = 16
    UNPAUSE = 17
    SAVE_LOST_TOKENS = 18
    GRANT_ROLE = 19
    REVOKE_ROLE = 20


REQUIRED_PARAMS: Dict[OfferOpType, Tuple[str, ...]] = {
    OfferOpType.CREATE: ("sell_token", "buy_token", "price", "amount"),
    OfferOpType.CREATE_BATCH: ("sell_tokens", "buy_tokens", "reserved_buyers", "prices", "amounts"),
    OfferOpType.CREATE_WITH_PERMIT: ("sell_token", "buy_token", "price", "amount", "permit"),
    OfferOpType.UPDATE: ("offer_id", "price", "amount"),
    OfferOpType.UPDATE_BATCH: ("offer_ids", "prices", "amounts"),
    OfferOpType.UPDATE_WITH_PERMIT: ("offer_id", "price", "amount", "permit"),
    OfferOpType.DELETE: ("offer_id",),
    OfferOpType.DELETE_BATCH: ("offer_ids",),
    OfferOpType.DELETE_BY_ADMIN: ("offer_ids",),
    OfferOpType.BUY: ("offer_id", "price", "amount"),
    OfferOpType.BUY_BATCH: ("offer_ids", "prices", "amounts"),
    OfferOpType.BUY_WITH_PERMIT: ("offer_id", "price", "amount", "permit"),
    OfferOpType.SET_WHITELIST: ("tokens", "types"),
    OfferOpType.TOGGLE_WHITELIST: ("tokens", "flags"),
    OfferOpType.SET_FEE: ("fee",),
    OfferOpType.PAUSE: (),
    OfferOpType.UNPAUSE: (),
    OfferOpType.SAVE_LOST_TOKENS: ("token",),
    OfferOpType.GRANT_ROLE: ("role", "account"),
    OfferOpType.REVOKE_ROLE: ("role", "account"),
}


# ---------------------------------------------------------------------------
# Transaction
# ---------------------------------------------------------------------------

@dataclass
class OfferTransaction:
    """
    Envelope for a single exchange operation.

    ``params`` holds JSON-safe values only; permits are carried as
    ``Permit.to_dict()`` output.
    """
    op_type: OfferOpType
    sender: str
    nonce: int
    params: Dict[str, Any] = field(default_factory=dict)
    timestamp: float = 0.0

    # --- Filled in after execution ---
    success: bool = False
    result: Dict[str, Any] = field(default_factory=dict)
    error: str = ""

    def __post_init__(self):
        self.op_type = OfferOpType(self.op_type)
        if self.timestamp == 0.0:
            self.timestamp = time.time()

    # -- Hashing ------------------------------------------------------------

    def tx_hash(self) -> str:
        return hashlib.blake2b(self._canonical_bytes(), digest_size=32).hexdigest()

    def _canonical_bytes(self) -> bytes:
        params_json = json.dumps(self.params, sort_keys=True, default=str).encode("utf-8")
        return b"".join([
            self.op_type.to_bytes(1, "big"),
            self.sender.lower().encode("utf-8"),
            self.nonce.to_bytes(8, "big"),
            params_json,
        ])

    # -- Serialization ------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {
            "op_type": int(self.op_type),
            "sender": self.sender,
            "nonce": self.nonce,
            "params": self.params,
            "timestamp": self.timestamp,
            "tx_hash": self.tx_hash(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> OfferTransaction:
        return cls(
            op_type=OfferOpType(data["op_type"]),
            sender=data["sender"],
            nonce=data["nonce"],
            params=data.get("params", {}),
            timestamp=data.get("timestamp", 0.0),
        )

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True, default=str)

    @classmethod
    def from_json(cls, raw: str) -> OfferTransaction:
        return cls.from_dict(json.loads(raw))

    # -- Validation ---------------------------------------------------------

    def validate_basic(self) -> bool:
        """
        Structural validation (no state access needed).

        Raises:
            ValueError: with specific reason
        """
        if not self.sender:
            raise ValueError("Missing sender address")
        if self.nonce < 0:
            raise ValueError("Nonce must be non-negative")
        self._validate_params()
        return True

    def _validate_params(self) -> None:
        for key in REQUIRED_PARAMS[self.op_type]:
            if key not in self.params:
                raise ValueError(f"{self.op_type.name} missing param: {key}")

    def __repr__(self) -> str:
        return (f"OfferTransaction(op={self.op_type.name}, sender={self.sender[:12]}..., "
                f"nonce={self.nonce}, hash={self.tx_hash()[:12]}...)")
