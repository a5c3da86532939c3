"""
Token registry (whitelist)

Maps a token address to its ``TokenType``. A token is eligible as an
offer asset iff its type is not ``NOT_WHITELISTED``. The type itself is
informative and does not gate settlement.

The registry holds state only; role checks and events live in the engine.
"""

from __future__ import annotations

import logging
from enum import IntEnum
from typing import Dict, List, Sequence, Tuple

from ..crypto.address import normalize_address
from ..exceptions import InvalidOfferParameters, LengthMismatch

logger = logging.getLogger(__name__)


class TokenType(IntEnum):
    """Asset category.  Values match the on-chain enum."""
    NOT_WHITELISTED = 0
    REALTOKEN = 1               # compliance-governed security token
    ERC20_WITH_PERMIT = 2
    ERC20_WITHOUT_PERMIT = 3


class TokenRegistry:
    """Whitelist map: token → TokenType."""

    def __init__(self) -> None:
        self._types: Dict[str, TokenType] = {}
        # Last non-zero type per token, restored by a boolean re-enable
        self._last_types: Dict[str, TokenType] = {}

    # ── Reads ─────────────────────────────────────────────────────────

    def token_type(self, token: str) -> TokenType:
        return self._types.get(normalize_address(token), TokenType.NOT_WHITELISTED)

    def is_whitelisted(self, token: str) -> bool:
        return self.token_type(token) != TokenType.NOT_WHITELISTED

    def whitelisted_tokens(self) -> List[str]:
        return sorted(t for t, kind in self._types.items() if kind != TokenType.NOT_WHITELISTED)

    # ── Mutations ─────────────────────────────────────────────────────

    def set_types(self, tokens: Sequence[str], types: Sequence[int]) -> Tuple[List[str], List[TokenType]]:
        """
        Set the type of every token.

        All inputs are validated before the first entry changes.

        Returns:
            (normalized tokens, applied types)

        Raises:
            LengthMismatch: ``tokens`` and ``types`` differ in length
            InvalidOfferParameters: unknown type value or bad address
        """
        if len(tokens) != len(types):
            raise LengthMismatch("length mismatch")

        try:
            normalized = [normalize_address(t) for t in tokens]
            kinds = [TokenType(int(k)) for k in types]
        except ValueError as e:
            raise InvalidOfferParameters(f"Invalid whitelist entry: {e}") from e

        for token, kind in zip(normalized, kinds):
            self._types[token] = kind
            if kind != TokenType.NOT_WHITELISTED:
                self._last_types[token] = kind
            logger.info("Whitelist: %s → %s", token, kind.name)
        return normalized, kinds

    def set_flags(self, tokens: Sequence[str], flags: Sequence[bool]) -> Tuple[List[str], List[TokenType]]:
        """
        Boolean form of ``set_types``.

        ``True`` restores the last non-zero type (``ERC20_WITHOUT_PERMIT``
        for a token never whitelisted before); ``False`` disables it.
        """
        if len(tokens) != len(flags):
            raise LengthMismatch("length mismatch")
        types = []
        for token, flag in zip(tokens, flags):
            if not flag:
                types.append(TokenType.NOT_WHITELISTED)
                continue
            try:
                key = normalize_address(token)
            except ValueError as e:
                raise InvalidOfferParameters(f"Invalid whitelist entry: {e}") from e
            types.append(self._last_types.get(key, TokenType.ERC20_WITHOUT_PERMIT))
        return self.set_types(tokens, types)

    # ── Snapshot / restore ────────────────────────────────────────────

    def snapshot(self) -> Dict[str, Dict[str, TokenType]]:
        return {"types": dict(self._types), "last_types": dict(self._last_types)}

    def restore(self, snapshot: Dict[str, Dict[str, TokenType]]) -> None:
        self._types = dict(snapshot["types"])
        self._last_types = dict(snapshot["last_types"])
