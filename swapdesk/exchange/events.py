"""
Exchange events

Every state change of the engine is published as a frozen event record.
``to_dict`` uses the names indexers know from the on-chain contract
(``OfferCreated``, ``offerToken``, ``buyerToken`` ...).
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Dict, Tuple


@dataclass(frozen=True)
class OfferCreated:
    """Emitted once per created offer."""
    sell_token: str
    buy_token: str
    seller: str
    reserved_buyer: str
    offer_id: int
    price: int
    amount: int
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "OfferCreated",
            "offerToken": self.sell_token,
            "buyerToken": self.buy_token,
            "seller": self.seller,
            "buyer": self.reserved_buyer,
            "offerId": self.offer_id,
            "price": self.price,
            "amount": self.amount,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class OfferUpdated:
    """Emitted when a seller changes price and amount."""
    offer_id: int
    old_price: int
    new_price: int
    old_amount: int
    new_amount: int
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "OfferUpdated",
            "offerId": self.offer_id,
            "oldPrice": self.old_price,
            "newPrice": self.new_price,
            "oldAmount": self.old_amount,
            "newAmount": self.new_amount,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class OfferDeleted:
    """Emitted when an offer leaves the book by deletion."""
    offer_id: int
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "OfferDeleted",
            "offerId": self.offer_id,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class OfferAccepted:
    """Emitted on every settled buy (full or partial)."""
    offer_id: int
    seller: str
    buyer: str
    sell_token: str
    buy_token: str
    price: int
    amount: int
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "OfferAccepted",
            "offerId": self.offer_id,
            "seller": self.seller,
            "buyer": self.buyer,
            "offerToken": self.sell_token,
            "buyerToken": self.buy_token,
            "price": self.price,
            "amount": self.amount,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class TokenWhitelistToggled:
    """Emitted once per whitelist call with the previous and new type of every token."""
    tokens: Tuple[str, ...]
    types: Tuple[int, ...]
    previous_types: Tuple[int, ...] = ()
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "TokenWhitelistWithTypeToggled",
            "tokens": list(self.tokens),
            "types": list(self.types),
            "previousTypes": list(self.previous_types),
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class FeeChanged:
    old_fee: int
    new_fee: int
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "FeeChanged",
            "oldFee": self.old_fee,
            "newFee": self.new_fee,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class Paused:
    account: str
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {"event": "Paused", "account": self.account, "timestamp": self.timestamp}


@dataclass(frozen=True)
class Unpaused:
    account: str
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {"event": "Unpaused", "account": self.account, "timestamp": self.timestamp}


@dataclass(frozen=True)
class RoleGranted:
    role: str
    account: str
    sender: str
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "RoleGranted",
            "role": self.role,
            "account": self.account,
            "sender": self.sender,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class RoleRevoked:
    role: str
    account: str
    sender: str
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "RoleRevoked",
            "role": self.role,
            "account": self.account,
            "sender": self.sender,
            "timestamp": self.timestamp,
        }
