"""
In-memory fungible token

Implements an ERC-20 style token with:
  - balanceOf / allowance / transfer / approve / transferFrom
  - EIP-2612 permit (secp256k1 signature over an EIP-712 digest)
  - per-owner permit nonces for replay protection
  - pluggable transfer compliance rules
  - snapshot / restore so a caller can roll back a multi-leg operation

Amounts are integers in base units (``10 ** decimals`` per whole token).
"""

import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from ..constants import DEFAULT_CHAIN_ID, PERMIT_VERSION, ZERO_ADDRESS
from ..crypto.address import derive_address, normalize_address
from ..crypto.permit import Permit, PermitDomain, recover_permit_signer
from ..exceptions import (
    ComplianceRejected,
    InsufficientAllowance,
    InsufficientBalance,
    InvalidAuthorization,
    TransferRejected,
)
from ..logger import get_logger
from .compliance import ComplianceRule, TransferContext, evaluate_rules

logger = get_logger(__name__)

MAX_UINT256 = 2 ** 256 - 1


# ══════════════════════════════════════════════════════════════════════
#  EVENTS
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class TransferEvent:
    """Emitted on every successful transfer."""
    token_symbol: str
    sender: str
    recipient: str
    amount: int
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "Transfer",
            "token": self.token_symbol,
            "from": self.sender,
            "to": self.recipient,
            "value": self.amount,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class ApprovalEvent:
    """Emitted on every approve and redeemed permit."""
    token_symbol: str
    owner: str
    spender: str
    amount: int
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "Approval",
            "token": self.token_symbol,
            "owner": self.owner,
            "spender": self.spender,
            "value": self.amount,
            "timestamp": self.timestamp,
        }


# ══════════════════════════════════════════════════════════════════════
#  TOKEN
# ══════════════════════════════════════════════════════════════════════

class Token:
    """
    Fungible token ledger for a single asset.

    Mirrors ERC-20 semantics:
        - balance_of(address) → int
        - transfer(sender, recipient, amount)
        - approve(owner, spender, amount)
        - transfer_from(spender, owner, recipient, amount)
        - permit(owner, spender, permit, now)

    An allowance of ``MAX_UINT256`` is treated as infinite and is not
    decremented by transfer_from.
    """

    def __init__(
        self,
        name: str,
        symbol: str,
        decimals: int = 18,
        address: Optional[str] = None,
        *,
        chain_id: int = DEFAULT_CHAIN_ID,
        supports_permit: bool = True,
        permit_version: str = PERMIT_VERSION,
        rules: Optional[List[ComplianceRule]] = None,
    ):
        """
        Args:
            name: Human-readable token name (also the EIP-712 domain name)
            symbol: Short ticker
            decimals: Fractional digits
            address: Token address; derived from the symbol when omitted
            chain_id: Chain id of the permit domain
            supports_permit: Whether ``permit`` is available
            permit_version: EIP-712 domain version
            rules: Compliance rules evaluated on every transfer
        """
        if not name:
            raise ValueError("Token name cannot be empty")
        if not symbol:
            raise ValueError("Token symbol cannot be empty")
        if decimals < 0 or decimals > 36:
            raise ValueError(f"Decimals must be 0-36, got {decimals}")

        self.name = name
        self.symbol = symbol
        self.decimals = decimals
        self.address = normalize_address(address) if address else derive_address(f"token:{symbol}")
        self.supports_permit = supports_permit
        self.domain = PermitDomain(
            name=name,
            chain_id=chain_id,
            verifying_contract=self.address,
            version=permit_version,
        )
        self.rules: List[ComplianceRule] = list(rules or [])

        self._total_supply = 0
        self._balances: Dict[str, int] = {}
        self._allowances: Dict[Tuple[str, str], int] = {}  # (owner, spender)
        self._nonces: Dict[str, int] = {}
        self._events: List[Any] = []

        logger.info(f"Token deployed: {symbol} ({name}) at {self.address}, decimals={decimals}")

    # ── Read-only views ───────────────────────────────────────────────

    @property
    def total_supply(self) -> int:
        return self._total_supply

    def balance_of(self, address: str) -> int:
        return self._balances.get(address, 0)

    def allowance(self, owner: str, spender: str) -> int:
        return self._allowances.get((owner, spender), 0)

    def nonces(self, owner: str) -> int:
        return self._nonces.get(owner, 0)

    @property
    def events(self) -> List[Any]:
        return list(self._events)

    # ── Compliance ────────────────────────────────────────────────────

    def add_rule(self, rule: ComplianceRule) -> None:
        self.rules.append(rule)

    def is_transfer_valid(self, sender: str, recipient: str, amount: int, now: float = 0.0) -> bool:
        ctx = TransferContext(self.address, sender, recipient, amount, now)
        return evaluate_rules(self.rules, ctx).allow

    def _require_compliant(self, sender: str, recipient: str, amount: int, now: float) -> None:
        ctx = TransferContext(self.address, sender, recipient, amount, now)
        result = evaluate_rules(self.rules, ctx)
        if not result.allow:
            raise ComplianceRejected(f"{self.symbol} transfer rejected: {result.reason}")

    # ── Supply ────────────────────────────────────────────────────────

    def mint(self, recipient: str, amount: int) -> TransferEvent:
        """Create ``amount`` new tokens for ``recipient`` (bootstrap/testing)."""
        if amount <= 0:
            raise ValueError("Mint amount must be positive")
        self._total_supply += amount
        self._balances[recipient] = self.balance_of(recipient) + amount
        event = TransferEvent(self.symbol, ZERO_ADDRESS, recipient, amount)
        self._events.append(event)
        logger.debug(f"Mint: {amount} {self.symbol} → {recipient}")
        return event

    # ── Core ERC-20 operations ────────────────────────────────────────

    def _move(self, sender: str, recipient: str, amount: int, now: float) -> TransferEvent:
        if amount < 0:
            raise TransferRejected("Transfer amount cannot be negative")

        bal = self.balance_of(sender)
        if bal < amount:
            raise InsufficientBalance(
                f"{sender} {self.symbol} balance {bal} < transfer amount {amount}"
            )
        self._require_compliant(sender, recipient, amount, now)

        self._balances[sender] = bal - amount
        self._balances[recipient] = self.balance_of(recipient) + amount

        event = TransferEvent(self.symbol, sender, recipient, amount)
        self._events.append(event)
        return event

    def transfer(self, sender: str, recipient: str, amount: int, now: float = 0.0) -> TransferEvent:
        event = self._move(sender, recipient, amount, now)
        logger.debug(f"Transfer: {sender} → {recipient} {amount} {self.symbol}")
        return event

    def approve(self, owner: str, spender: str, amount: int) -> ApprovalEvent:
        """Set spender allowance (overwrites, like ERC-20)."""
        if amount < 0 or amount > MAX_UINT256:
            raise ValueError("Allowance amount out of range")

        self._allowances[(owner, spender)] = amount
        event = ApprovalEvent(self.symbol, owner, spender, amount)
        self._events.append(event)
        logger.debug(f"Approve: {owner} → {spender} allowance={amount} {self.symbol}")
        return event

    def transfer_from(
        self,
        spender: str,
        owner: str,
        recipient: str,
        amount: int,
        now: float = 0.0,
    ) -> TransferEvent:
        """Transfer on behalf of *owner* using spender's allowance."""
        allow = self.allowance(owner, spender)
        if allow < amount:
            raise InsufficientAllowance(
                f"{self.symbol} allowance {allow} of {spender} < transfer amount {amount}"
            )

        event = self._move(owner, recipient, amount, now)
        if allow != MAX_UINT256:
            self._allowances[(owner, spender)] = allow - amount

        logger.debug(
            f"transferFrom: spender={spender} {owner} → {recipient} {amount} {self.symbol}"
        )
        return event

    # ── Permit (EIP-2612) ─────────────────────────────────────────────

    def permit(self, owner: str, spender: str, permit: Permit, now: float) -> ApprovalEvent:
        """
        Redeem a signed allowance grant.

        Raises:
            InvalidAuthorization: permit unsupported, expired, malformed,
                or not signed by ``owner`` over the current nonce
        """
        if not self.supports_permit:
            raise InvalidAuthorization(f"{self.symbol} does not support permit")
        if permit.deadline < now:
            raise InvalidAuthorization(
                f"{self.symbol} permit expired (deadline {permit.deadline} < {int(now)})"
            )

        nonce = self.nonces(owner)
        try:
            signer = recover_permit_signer(self.domain, permit, owner, spender, nonce)
        except ValueError as e:
            raise InvalidAuthorization(f"{self.symbol} permit signature invalid: {e}") from e
        if signer != owner:
            raise InvalidAuthorization(f"{self.symbol} permit signer mismatch")

        self._nonces[owner] = nonce + 1
        return self.approve(owner, spender, permit.value)

    # ── Snapshot / restore ────────────────────────────────────────────

    def snapshot(self) -> Dict[str, Any]:
        return {
            "total_supply": self._total_supply,
            "balances": dict(self._balances),
            "allowances": dict(self._allowances),
            "nonces": dict(self._nonces),
            "event_count": len(self._events),
        }

    def restore(self, snapshot: Dict[str, Any]) -> None:
        self._total_supply = snapshot["total_supply"]
        self._balances = dict(snapshot["balances"])
        self._allowances = dict(snapshot["allowances"])
        self._nonces = dict(snapshot["nonces"])
        del self._events[snapshot["event_count"]:]

    # ── Serialization ─────────────────────────────────────────────────

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "symbol": self.symbol,
            "decimals": self.decimals,
            "address": self.address,
            "totalSupply": self._total_supply,
            "supportsPermit": self.supports_permit,
            "holders": len([b for b in self._balances.values() if b > 0]),
        }

    def __repr__(self) -> str:
        return f"<Token {self.symbol} supply={self._total_supply}>"
