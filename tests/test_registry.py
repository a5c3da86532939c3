"""
Tests for the token whitelist.

Covers:
  - typed whitelisting and removal
  - boolean toggle restoring the previous type
  - all-or-nothing validation of a whitelist call
  - admin-only access and the whitelist event
"""

import pytest

from swapdesk.crypto import derive_address
from swapdesk.exceptions import InvalidOfferParameters, LengthMismatch, NotAuthorized
from swapdesk.exchange import TokenRegistry, TokenType, TokenWhitelistToggled

from conftest import ADMIN, USER1

TOKEN_A = derive_address("registry:a")
TOKEN_B = derive_address("registry:b")


class TestTokenRegistry:

    def test_unknown_token_not_whitelisted(self):
        reg = TokenRegistry()
        assert reg.token_type(TOKEN_A) == TokenType.NOT_WHITELISTED
        assert not reg.is_whitelisted(TOKEN_A)

    def test_set_types(self):
        reg = TokenRegistry()
        tokens, kinds = reg.set_types([TOKEN_A, TOKEN_B], [1, 3])
        assert tokens == [TOKEN_A, TOKEN_B]
        assert kinds == [TokenType.REALTOKEN, TokenType.ERC20_WITHOUT_PERMIT]
        assert reg.token_type(TOKEN_A) == TokenType.REALTOKEN
        assert reg.whitelisted_tokens() == sorted([TOKEN_A, TOKEN_B])

    def test_lowercase_address_accepted(self):
        reg = TokenRegistry()
        reg.set_types([TOKEN_A.lower()], [TokenType.ERC20_WITH_PERMIT])
        assert reg.is_whitelisted(TOKEN_A)

    def test_unlist(self):
        reg = TokenRegistry()
        reg.set_types([TOKEN_A], [TokenType.REALTOKEN])
        reg.set_types([TOKEN_A], [TokenType.NOT_WHITELISTED])
        assert not reg.is_whitelisted(TOKEN_A)
        assert reg.whitelisted_tokens() == []

    def test_length_mismatch(self):
        reg = TokenRegistry()
        with pytest.raises(LengthMismatch, match="length mismatch"):
            reg.set_types([TOKEN_A, TOKEN_B], [1])

    def test_unknown_type_changes_nothing(self):
        reg = TokenRegistry()
        with pytest.raises(InvalidOfferParameters):
            reg.set_types([TOKEN_A, TOKEN_B], [1, 9])
        assert not reg.is_whitelisted(TOKEN_A)

    def test_bad_address_rejected(self):
        reg = TokenRegistry()
        with pytest.raises(InvalidOfferParameters):
            reg.set_types(["0x1234"], [1])

    def test_flags_restore_last_type(self):
        reg = TokenRegistry()
        reg.set_types([TOKEN_A], [TokenType.REALTOKEN])
        reg.set_flags([TOKEN_A], [False])
        assert not reg.is_whitelisted(TOKEN_A)
        reg.set_flags([TOKEN_A], [True])
        assert reg.token_type(TOKEN_A) == TokenType.REALTOKEN

    def test_flags_default_type(self):
        reg = TokenRegistry()
        reg.set_flags([TOKEN_B], [True])
        assert reg.token_type(TOKEN_B) == TokenType.ERC20_WITHOUT_PERMIT

    def test_snapshot_restore(self):
        reg = TokenRegistry()
        reg.set_types([TOKEN_A], [TokenType.REALTOKEN])
        snap = reg.snapshot()
        reg.set_types([TOKEN_A, TOKEN_B], [0, 2])
        reg.restore(snap)
        assert reg.is_whitelisted(TOKEN_A)
        assert not reg.is_whitelisted(TOKEN_B)


class TestWhitelistOnEngine:

    def test_admin_sets_types(self, exchange):
        exchange.set_whitelist(ADMIN, [TOKEN_A], [TokenType.ERC20_WITH_PERMIT])
        assert exchange.is_whitelisted(TOKEN_A)
        assert exchange.get_token_type(TOKEN_A) == TokenType.ERC20_WITH_PERMIT
        event = exchange.events_of(TokenWhitelistToggled)[-1]
        assert event.tokens == (TOKEN_A,)
        assert event.types == (2,)

    def test_event_carries_previous_types(self, exchange, tokens):
        exchange.set_whitelist(ADMIN, [TOKEN_A, tokens.usdc.address],
                               [TokenType.REALTOKEN, TokenType.ERC20_WITHOUT_PERMIT])
        event = exchange.events_of(TokenWhitelistToggled)[-1]
        assert event.previous_types == (0, 2)
        assert event.types == (1, 3)
        exchange.toggle_whitelist(ADMIN, [TOKEN_A], [False])
        event = exchange.events_of(TokenWhitelistToggled)[-1]
        assert event.previous_types == (1,)
        assert event.types == (0,)
        assert event.to_dict()["previousTypes"] == [1]

    def test_non_admin_rejected(self, exchange):
        with pytest.raises(NotAuthorized, match="missing role 0x0{64}"):
            exchange.set_whitelist(USER1, [TOKEN_A], [1])
        assert not exchange.is_whitelisted(TOKEN_A)

    def test_toggle(self, exchange, tokens):
        exchange.toggle_whitelist(ADMIN, [tokens.usdc.address], [False])
        assert not exchange.is_whitelisted(tokens.usdc.address)
        exchange.toggle_whitelist(ADMIN, [tokens.usdc.address], [True])
        assert exchange.get_token_type(tokens.usdc.address) == TokenType.ERC20_WITH_PERMIT

    def test_not_gated_by_pause(self, exchange):
        exchange.pause(ADMIN)
        exchange.set_whitelist(ADMIN, [TOKEN_B], [TokenType.REALTOKEN])
        assert exchange.is_whitelisted(TOKEN_B)
