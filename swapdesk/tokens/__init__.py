"""
Token ledger layer

Provides:
  - LedgerAdapter   : protocol the exchange engine consumes
  - TokenLedger     : in-memory multi-token ledger implementing it
  - Token           : ERC-20 style token with EIP-2612 permit
  - compliance rules evaluated on every transfer
"""

from .token import (
    ApprovalEvent,
    MAX_UINT256,
    Token,
    TransferEvent,
)
from .ledger import LedgerAdapter, TokenLedger
from .compliance import (
    AccountFreezeRule,
    ComplianceResult,
    ComplianceRule,
    TransferContext,
    TransferLockRule,
    evaluate_rules,
)

__all__ = [
    # Core token
    "Token",
    "TransferEvent",
    "ApprovalEvent",
    "MAX_UINT256",
    # Ledger
    "LedgerAdapter",
    "TokenLedger",
    # Compliance
    "AccountFreezeRule",
    "ComplianceResult",
    "ComplianceRule",
    "TransferContext",
    "TransferLockRule",
    "evaluate_rules",
]
