"""
Tests for the in-memory token ledger.

Covers:
  - deployment and registration
  - transfer / approve / transfer_from semantics
  - infinite allowance
  - compliance rules (freeze, lock-up)
  - snapshot / restore
"""

import pytest

from swapdesk.exceptions import (
    ComplianceRejected,
    InsufficientAllowance,
    InsufficientBalance,
    TransferRejected,
    UnknownToken,
)
from swapdesk.crypto import derive_address
from swapdesk.tokens import (
    MAX_UINT256,
    AccountFreezeRule,
    Token,
    TokenLedger,
    TransferContext,
    TransferLockRule,
    evaluate_rules,
)

from conftest import NOW, USER1, USER2, USER3


class TestToken:

    def test_metadata(self):
        t = Token("Test Token", "TST", 8)
        assert t.decimals == 8
        assert t.address == derive_address("token:TST")
        assert t.to_dict()["symbol"] == "TST"

    def test_invalid_metadata(self):
        with pytest.raises(ValueError, match="name"):
            Token("", "TST")
        with pytest.raises(ValueError, match="Decimals"):
            Token("Test", "TST", 40)

    def test_mint_positive_only(self):
        t = Token("Test", "TST")
        with pytest.raises(ValueError, match="positive"):
            t.mint(USER1, 0)


class TestLedger:

    @pytest.fixture
    def funded(self, ledger, tokens):
        ledger.mint(tokens.rtt.address, USER1, 100)
        return ledger

    def test_unknown_token(self, ledger):
        with pytest.raises(UnknownToken):
            ledger.balance_of(USER1, derive_address("token:NOPE"))

    def test_duplicate_registration(self, ledger, tokens):
        with pytest.raises(ValueError, match="already registered"):
            ledger.register(Token("Other", "RTT"))

    def test_transfer(self, funded, tokens):
        funded.transfer(USER1, USER2, tokens.rtt.address, 40)
        assert funded.balance_of(USER1, tokens.rtt.address) == 60
        assert funded.balance_of(USER2, tokens.rtt.address) == 40

    def test_transfer_insufficient(self, funded, tokens):
        with pytest.raises(InsufficientBalance):
            funded.transfer(USER1, USER2, tokens.rtt.address, 101)

    def test_negative_transfer(self, funded, tokens):
        with pytest.raises(TransferRejected, match="negative"):
            funded.transfer(USER1, USER2, tokens.rtt.address, -1)

    def test_approve_overwrites(self, funded, tokens):
        funded.approve(USER1, USER2, tokens.rtt.address, 50)
        funded.approve(USER1, USER2, tokens.rtt.address, 10)
        assert funded.allowance(USER1, USER2, tokens.rtt.address) == 10

    def test_transfer_from_decrements(self, funded, tokens):
        funded.approve(USER1, USER2, tokens.rtt.address, 50)
        funded.transfer_from(USER2, USER1, USER3, tokens.rtt.address, 20)
        assert funded.allowance(USER1, USER2, tokens.rtt.address) == 30
        assert funded.balance_of(USER3, tokens.rtt.address) == 20

    def test_transfer_from_over_allowance(self, funded, tokens):
        funded.approve(USER1, USER2, tokens.rtt.address, 5)
        with pytest.raises(InsufficientAllowance):
            funded.transfer_from(USER2, USER1, USER3, tokens.rtt.address, 6)

    def test_infinite_allowance(self, funded, tokens):
        funded.approve(USER1, USER2, tokens.rtt.address, MAX_UINT256)
        funded.transfer_from(USER2, USER1, USER3, tokens.rtt.address, 20)
        assert funded.allowance(USER1, USER2, tokens.rtt.address) == MAX_UINT256

    def test_lowercase_addresses(self, funded, tokens):
        assert funded.balance_of(USER1.lower(), tokens.rtt.address.lower()) == 100

    def test_snapshot_restore(self, funded, tokens):
        snap = funded.snapshot()
        funded.transfer(USER1, USER2, tokens.rtt.address, 40)
        funded.approve(USER1, USER3, tokens.rtt.address, 7)
        funded.restore(snap)
        assert funded.balance_of(USER1, tokens.rtt.address) == 100
        assert funded.allowance(USER1, USER3, tokens.rtt.address) == 0


class TestCompliance:

    def test_freeze_blocks_both_directions(self, ledger, tokens):
        rule = AccountFreezeRule()
        tokens.rtt.add_rule(rule)
        ledger.mint(tokens.rtt.address, USER1, 10)
        rule.freeze(USER2)
        assert not ledger.is_transfer_valid(tokens.rtt.address, USER1, USER2, 1)
        with pytest.raises(ComplianceRejected, match="frozen"):
            ledger.transfer(USER1, USER2, tokens.rtt.address, 1)
        rule.unfreeze(USER2)
        ledger.transfer(USER1, USER2, tokens.rtt.address, 1)

    def test_rules_match_any_address_case(self, ledger, tokens):
        freeze = AccountFreezeRule({USER3.lower()})
        lock = TransferLockRule()
        tokens.rtt.add_rule(freeze)
        tokens.rtt.add_rule(lock)
        ledger.mint(tokens.rtt.address, USER1, 10)
        assert not ledger.is_transfer_valid(tokens.rtt.address, USER1, USER3, 1)
        lock.lock_until(USER1.lower(), NOW + 100)
        with pytest.raises(ComplianceRejected, match="locked"):
            ledger.transfer(USER1, USER2, tokens.rtt.address, 1)
        freeze.unfreeze(USER3.lower())
        assert not freeze.is_frozen(USER3)

    def test_lockup_uses_ledger_clock(self, tokens):
        ledger = TokenLedger(clock=lambda: NOW)
        rule = TransferLockRule({USER1: NOW + 100})
        token = ledger.deploy("Locked", "LCK", rules=[rule])
        ledger.mint(token.address, USER1, 10)
        assert not ledger.is_transfer_valid(token.address, USER1, USER2, 1)
        rule.lock_until(USER1, NOW - 1)
        assert ledger.is_transfer_valid(token.address, USER1, USER2, 1)

    def test_first_denial_wins(self):
        freeze = AccountFreezeRule({USER1})
        lock = TransferLockRule({USER1: NOW + 1})
        result = evaluate_rules([freeze, lock], TransferContext("t", USER1, USER2, 1, NOW))
        assert not result.allow
        assert "frozen" in result.reason
