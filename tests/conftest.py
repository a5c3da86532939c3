"""
Shared fixtures for the swapdesk test suite.

Accounts are derived from fixed secp256k1 keys so permit signatures are
reproducible. The default market holds:
  - RTT   18 decimals, RealToken type, permit capable
  - USDC   6 decimals, ERC-20 with permit
  - NPT   18 decimals, ERC-20 without permit
"""

from types import SimpleNamespace

import pytest

from swapdesk.crypto import private_key_to_address
from swapdesk.exchange import OfferExchange, TokenType
from swapdesk.tokens import MAX_UINT256, TokenLedger

# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------
ADMIN_KEY = "0x" + "11" * 32
MODERATOR_KEY = "0x" + "22" * 32
USER1_KEY = "0x" + "33" * 32
USER2_KEY = "0x" + "44" * 32
USER3_KEY = "0x" + "55" * 32

ADMIN = private_key_to_address(ADMIN_KEY)
MODERATOR = private_key_to_address(MODERATOR_KEY)
USER1 = private_key_to_address(USER1_KEY)
USER2 = private_key_to_address(USER2_KEY)
USER3 = private_key_to_address(USER3_KEY)

# ---------------------------------------------------------------------------
# Market constants
# ---------------------------------------------------------------------------
NOW = 1_700_000_000
DEADLINE = NOW + 3600

RTT_UNIT = 10 ** 18
USDC_UNIT = 10 ** 6

PRICE_STABLE_1 = 1_000_000           # 1 USDC per RTT
AMOUNT_OFFER_1 = 500 * RTT_UNIT
SELLER_RTT = 1_000 * RTT_UNIT
BUYER_USDC = 10_000 * USDC_UNIT


@pytest.fixture
def ledger():
    return TokenLedger(chain_id=1, clock=lambda: NOW)


@pytest.fixture
def tokens(ledger):
    return SimpleNamespace(
        rtt=ledger.deploy("RealToken Test", "RTT", 18),
        usdc=ledger.deploy("USD Coin", "USDC", 6),
        npt=ledger.deploy("No Permit Token", "NPT", 18, supports_permit=False),
    )


@pytest.fixture
def exchange(ledger, tokens):
    """Engine with whitelisted tokens and funded, approved accounts (block 1)."""
    ex = OfferExchange(ledger, ADMIN, MODERATOR)
    ex.set_whitelist(
        ADMIN,
        [tokens.rtt.address, tokens.usdc.address, tokens.npt.address],
        [TokenType.REALTOKEN, TokenType.ERC20_WITH_PERMIT, TokenType.ERC20_WITHOUT_PERMIT],
    )

    ledger.mint(tokens.rtt.address, USER1, SELLER_RTT)
    ledger.mint(tokens.npt.address, USER1, SELLER_RTT)
    for buyer in (USER2, USER3):
        ledger.mint(tokens.usdc.address, buyer, BUYER_USDC)

    for account in (USER1, USER2, USER3):
        for token in (tokens.rtt, tokens.usdc, tokens.npt):
            ledger.approve(account, ex.address, token.address, MAX_UINT256)

    ex.begin_block(1, NOW)
    return ex


@pytest.fixture
def market(exchange, tokens):
    """``exchange`` plus public offer 0 (USER1 sells 500 RTT at 1 USDC), now in block 2."""
    exchange.create_offer(
        USER1, tokens.rtt.address, tokens.usdc.address, None, PRICE_STABLE_1, AMOUNT_OFFER_1,
    )
    exchange.begin_block(2, NOW + 12)
    return exchange
