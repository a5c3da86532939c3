"""
Ledger adapter

The exchange engine never holds balances itself. It reaches token state
through the ``LedgerAdapter`` protocol below: reads (balance, allowance,
metadata, nonces), pull transfers on behalf of owners, signature-based
allowance grants and a compliance query.

``TokenLedger`` is the in-memory implementation backed by ``Token``
instances. It also offers ``snapshot``/``restore`` so a caller can roll
back every leg of a failed multi-transfer operation.
"""

import time
from typing import Any, Callable, Dict, List, Optional, Protocol

from ..constants import DEFAULT_CHAIN_ID, PERMIT_VERSION
from ..crypto.address import normalize_address
from ..crypto.permit import Permit
from ..exceptions import UnknownToken
from ..logger import get_logger
from .compliance import ComplianceRule
from .token import Token

logger = get_logger(__name__)


class LedgerAdapter(Protocol):
    """Token ledger capability consumed by the exchange engine."""

    def balance_of(self, owner: str, token: str) -> int: ...

    def allowance(self, owner: str, spender: str, token: str) -> int: ...

    def nonces(self, owner: str, token: str) -> int: ...

    def decimals(self, token: str) -> int: ...

    def symbol(self, token: str) -> str: ...

    def name(self, token: str) -> str: ...

    def transfer(self, sender: str, recipient: str, token: str, amount: int) -> None: ...

    def transfer_from(
        self, spender: str, owner: str, recipient: str, token: str, amount: int
    ) -> None: ...

    def authorize(self, owner: str, spender: str, token: str, permit: Permit) -> None: ...

    def is_transfer_valid(self, token: str, sender: str, recipient: str, amount: int) -> bool: ...

    def snapshot(self) -> Any: ...

    def restore(self, state: Any) -> None: ...


class TokenLedger:
    """
    In-memory multi-token ledger.

    Usage::

        ledger = TokenLedger()
        usdc = ledger.deploy("USD Coin", "USDC", decimals=6)
        ledger.mint(usdc.address, alice, 1_000 * 10**6)
        ledger.approve(alice, engine_address, usdc.address, 500 * 10**6)
    """

    def __init__(
        self,
        chain_id: int = DEFAULT_CHAIN_ID,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.chain_id = chain_id
        self._clock = clock or time.time
        self._tokens: Dict[str, Token] = {}

    @classmethod
    def from_config(cls, config, clock: Optional[Callable[[], float]] = None) -> "TokenLedger":
        """Build a ledger on the chain named by ``config.engine.chain_id``."""
        return cls(chain_id=config.engine.chain_id, clock=clock)

    # ── Registration ──────────────────────────────────────────────────

    def deploy(
        self,
        name: str,
        symbol: str,
        decimals: int = 18,
        *,
        address: Optional[str] = None,
        supports_permit: bool = True,
        permit_version: str = PERMIT_VERSION,
        rules: Optional[List[ComplianceRule]] = None,
    ) -> Token:
        token = Token(
            name,
            symbol,
            decimals,
            address,
            chain_id=self.chain_id,
            supports_permit=supports_permit,
            permit_version=permit_version,
            rules=rules,
        )
        return self.register(token)

    def register(self, token: Token) -> Token:
        if token.address in self._tokens:
            raise ValueError(f"Token {token.address} already registered")
        self._tokens[token.address] = token
        logger.info(f"Token registered: {token.symbol} ({token.name}) at {token.address}")
        return token

    def get(self, token: str) -> Optional[Token]:
        try:
            return self._tokens.get(normalize_address(token))
        except ValueError:
            return None

    def get_or_raise(self, token: str) -> Token:
        found = self.get(token)
        if found is None:
            raise UnknownToken(f"Token {token} is not known to the ledger")
        return found

    @property
    def tokens(self) -> List[Token]:
        return list(self._tokens.values())

    def now(self) -> float:
        return self._clock()

    # ── Reads ─────────────────────────────────────────────────────────

    def balance_of(self, owner: str, token: str) -> int:
        return self.get_or_raise(token).balance_of(normalize_address(owner))

    def allowance(self, owner: str, spender: str, token: str) -> int:
        return self.get_or_raise(token).allowance(
            normalize_address(owner), normalize_address(spender)
        )

    def nonces(self, owner: str, token: str) -> int:
        return self.get_or_raise(token).nonces(normalize_address(owner))

    def decimals(self, token: str) -> int:
        return self.get_or_raise(token).decimals

    def symbol(self, token: str) -> str:
        return self.get_or_raise(token).symbol

    def name(self, token: str) -> str:
        return self.get_or_raise(token).name

    def is_transfer_valid(self, token: str, sender: str, recipient: str, amount: int) -> bool:
        return self.get_or_raise(token).is_transfer_valid(
            normalize_address(sender), normalize_address(recipient), amount, self.now()
        )

    # ── Mutations ─────────────────────────────────────────────────────

    def mint(self, token: str, recipient: str, amount: int) -> None:
        self.get_or_raise(token).mint(normalize_address(recipient), amount)

    def approve(self, owner: str, spender: str, token: str, amount: int) -> None:
        self.get_or_raise(token).approve(
            normalize_address(owner), normalize_address(spender), amount
        )

    def transfer(self, sender: str, recipient: str, token: str, amount: int) -> None:
        self.get_or_raise(token).transfer(
            normalize_address(sender), normalize_address(recipient), amount, self.now()
        )

    def transfer_from(
        self, spender: str, owner: str, recipient: str, token: str, amount: int
    ) -> None:
        self.get_or_raise(token).transfer_from(
            normalize_address(spender),
            normalize_address(owner),
            normalize_address(recipient),
            amount,
            self.now(),
        )

    def authorize(self, owner: str, spender: str, token: str, permit: Permit) -> None:
        self.get_or_raise(token).permit(
            normalize_address(owner), normalize_address(spender), permit, self.now()
        )

    # ── Snapshot / restore ────────────────────────────────────────────

    def snapshot(self) -> Dict[str, Any]:
        return {address: token.snapshot() for address, token in self._tokens.items()}

    def restore(self, state: Dict[str, Any]) -> None:
        for address, token_state in state.items():
            self._tokens[address].restore(token_state)

    def __repr__(self) -> str:
        return f"<TokenLedger tokens={len(self._tokens)}>"
