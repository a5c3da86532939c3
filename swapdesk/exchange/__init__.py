"""
swapdesk Offer Exchange

Peer-to-peer exchange of whitelisted tokens against standing offers.

Components:
  - Token Registry (whitelist with token classification)
  - Offer Book (create, update, delete, liquidity preview)
  - Settlement Engine (price-pinned, partial-fill, no escrow)
  - Access Control (admin / moderator / upgrader roles, pause)
  - Offer Exchange facade (batches, permit variants, fees)
  - Transaction envelope and block processor
"""

from .registry import TokenRegistry, TokenType
from .pricing import (
    Quote,
    compute_buy_amount,
    compute_fee,
    quote,
    scale_amount,
    validate_fee,
)
from .offers import Offer, OfferBook, OfferView, TokenInfo
from .settlement import Settlement, SettlementEngine
from .access import AccessControl, Role, requires_role, when_not_paused
from .events import (
    FeeChanged,
    OfferAccepted,
    OfferCreated,
    OfferDeleted,
    OfferUpdated,
    Paused,
    RoleGranted,
    RoleRevoked,
    TokenWhitelistToggled,
    Unpaused,
)
from .engine import OfferExchange, atomic, with_permit
from .transactions import OfferOpType, OfferTransaction
from .block_processor import (
    ExecResult,
    TransactionProcessor,
    compute_state_root,
    process_offer_transactions,
    validate_state_root,
)

__all__ = [
    # Registry
    "TokenRegistry",
    "TokenType",
    # Pricing
    "Quote",
    "compute_buy_amount",
    "compute_fee",
    "quote",
    "scale_amount",
    "validate_fee",
    # Offers
    "Offer",
    "OfferBook",
    "OfferView",
    "TokenInfo",
    # Settlement
    "Settlement",
    "SettlementEngine",
    # Access control
    "AccessControl",
    "Role",
    "requires_role",
    "when_not_paused",
    # Events
    "FeeChanged",
    "OfferAccepted",
    "OfferCreated",
    "OfferDeleted",
    "OfferUpdated",
    "Paused",
    "RoleGranted",
    "RoleRevoked",
    "TokenWhitelistToggled",
    "Unpaused",
    # Engine
    "OfferExchange",
    "atomic",
    "with_permit",
    # Transactions
    "OfferOpType",
    "OfferTransaction",
    "ExecResult",
    "TransactionProcessor",
    "compute_state_root",
    "process_offer_transactions",
    "validate_state_root",
]
