"""
Transfer compliance rules.

A token may carry any number of rules. Every transfer (and the engine's
seller pre-check at offer creation) evaluates them in registration order;
the first rule that denies the transfer decides the outcome.

Rules are deterministic and side-effect free.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Protocol, Set

from ..crypto.address import normalize_address
from ..logger import get_logger

logger = get_logger(__name__)


@dataclass
class TransferContext:
    """Data passed to compliance rules."""
    token: str
    sender: str
    recipient: str
    amount: int
    timestamp: float = 0.0


@dataclass
class ComplianceResult:
    """Outcome of a rule evaluation."""
    allow: bool = True
    reason: str = ""


class ComplianceRule(Protocol):
    """Protocol that compliance rules must implement."""

    @property
    def name(self) -> str: ...

    def check(self, ctx: TransferContext) -> ComplianceResult: ...


# ---------------------------------------------------------------------------
# Built-in rules
# ---------------------------------------------------------------------------

class AccountFreezeRule:
    """Denies any transfer from or to a frozen account."""

    def __init__(self, frozen: Optional[Set[str]] = None):
        self._frozen: Set[str] = {normalize_address(a) for a in frozen or ()}

    @property
    def name(self) -> str:
        return "account_freeze"

    def freeze(self, account: str) -> None:
        account = normalize_address(account)
        self._frozen.add(account)
        logger.info(f"Account frozen: {account}")

    def unfreeze(self, account: str) -> None:
        self._frozen.discard(normalize_address(account))

    def is_frozen(self, account: str) -> bool:
        return normalize_address(account) in self._frozen

    def check(self, ctx: TransferContext) -> ComplianceResult:
        if ctx.sender in self._frozen:
            return ComplianceResult(False, f"sender {ctx.sender} is frozen")
        if ctx.recipient in self._frozen:
            return ComplianceResult(False, f"recipient {ctx.recipient} is frozen")
        return ComplianceResult()


class TransferLockRule:
    """
    Per-account lock-up: an account cannot send before its unlock time.

    Models vesting-style restrictions on compliance-governed tokens.
    """

    def __init__(self, unlock_times: Optional[Dict[str, float]] = None):
        self._unlock_times: Dict[str, float] = {
            normalize_address(a): t for a, t in (unlock_times or {}).items()
        }

    @property
    def name(self) -> str:
        return "transfer_lock"

    def lock_until(self, account: str, unlock_time: float) -> None:
        self._unlock_times[normalize_address(account)] = unlock_time

    def check(self, ctx: TransferContext) -> ComplianceResult:
        unlock_time = self._unlock_times.get(ctx.sender)
        if unlock_time is not None and ctx.timestamp < unlock_time:
            return ComplianceResult(
                False, f"{ctx.sender} is locked until {unlock_time}"
            )
        return ComplianceResult()


def evaluate_rules(rules: List[ComplianceRule], ctx: TransferContext) -> ComplianceResult:
    """Run ``rules`` in order and return the first denial, or an allow."""
    for rule in rules:
        result = rule.check(ctx)
        if not result.allow:
            logger.debug(f"Compliance rule {rule.name} denied transfer: {result.reason}")
            return result
    return ComplianceResult()
