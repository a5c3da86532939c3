"""
Tests for offer lifecycle.

Covers:
  - creation: ids, events, whitelist and parameter checks
  - seller compliance pre-check
  - private offers
  - seller-only update / delete, update to zero
  - admin removal
  - liquidity and price previews
"""

import pytest

from swapdesk.constants import ZERO_ADDRESS
from swapdesk.crypto import derive_address
from swapdesk.exceptions import (
    InvalidOfferParameters,
    NotAuthorized,
    NotSeller,
    OfferNotFound,
    SellerCannotTransfer,
    TokenNotWhitelisted,
)
from swapdesk.exchange import OfferCreated, OfferDeleted, OfferUpdated
from swapdesk.tokens import AccountFreezeRule

from conftest import (
    ADMIN,
    AMOUNT_OFFER_1,
    MODERATOR,
    PRICE_STABLE_1,
    RTT_UNIT,
    SELLER_RTT,
    USER1,
    USER2,
    USER3,
)


class TestCreateOffer:

    def test_ids_are_sequential(self, exchange, tokens):
        rtt, usdc = tokens.rtt.address, tokens.usdc.address
        assert exchange.create_offer(USER1, rtt, usdc, None, PRICE_STABLE_1, RTT_UNIT) == 0
        assert exchange.create_offer(USER1, rtt, usdc, None, PRICE_STABLE_1, RTT_UNIT) == 1
        assert exchange.get_offer_count() == 2

    def test_ids_not_reused_after_delete(self, exchange, tokens):
        rtt, usdc = tokens.rtt.address, tokens.usdc.address
        exchange.create_offer(USER1, rtt, usdc, None, PRICE_STABLE_1, RTT_UNIT)
        exchange.delete_offer(USER1, 0)
        assert exchange.create_offer(USER1, rtt, usdc, None, PRICE_STABLE_1, RTT_UNIT) == 1

    def test_stored_record(self, exchange, tokens):
        offer_id = exchange.create_offer(
            USER1, tokens.rtt.address, tokens.usdc.address, None, PRICE_STABLE_1, AMOUNT_OFFER_1
        )
        view = exchange.get_initial_offer(offer_id)
        assert view.seller == USER1
        assert view.sell_token == tokens.rtt.address
        assert view.buy_token == tokens.usdc.address
        assert view.reserved_buyer == ZERO_ADDRESS
        assert view.price == PRICE_STABLE_1
        assert view.amount == AMOUNT_OFFER_1
        assert exchange.get_offer(offer_id).created_at_block == 1

    def test_created_event(self, exchange, tokens):
        exchange.create_offer(
            USER1, tokens.rtt.address, tokens.usdc.address, USER2, PRICE_STABLE_1, AMOUNT_OFFER_1
        )
        event = exchange.events_of(OfferCreated)[-1]
        assert event.offer_id == 0
        assert event.reserved_buyer == USER2
        assert event.to_dict()["offerToken"] == tokens.rtt.address

    def test_sell_token_not_whitelisted(self, exchange, tokens):
        unknown = derive_address("token:UNKNOWN")
        with pytest.raises(TokenNotWhitelisted, match="Token is not whitelisted"):
            exchange.create_offer(USER1, unknown, tokens.usdc.address, None, PRICE_STABLE_1, 1)

    def test_buy_token_not_whitelisted(self, exchange, tokens):
        unknown = derive_address("token:UNKNOWN")
        with pytest.raises(TokenNotWhitelisted):
            exchange.create_offer(USER1, tokens.rtt.address, unknown, None, PRICE_STABLE_1, 1)

    def test_zero_amount_rejected(self, exchange, tokens):
        with pytest.raises(InvalidOfferParameters, match="amount"):
            exchange.create_offer(USER1, tokens.rtt.address, tokens.usdc.address, None, PRICE_STABLE_1, 0)

    def test_zero_price_rejected(self, exchange, tokens):
        with pytest.raises(InvalidOfferParameters, match="price"):
            exchange.create_offer(USER1, tokens.rtt.address, tokens.usdc.address, None, 0, RTT_UNIT)

    def test_bad_address_rejected(self, exchange, tokens):
        with pytest.raises(InvalidOfferParameters):
            exchange.create_offer(USER1, "0xnot-an-address", tokens.usdc.address, None, 1, 1)

    def test_failed_create_consumes_no_id(self, exchange, tokens):
        with pytest.raises(InvalidOfferParameters):
            exchange.create_offer(USER1, tokens.rtt.address, tokens.usdc.address, None, 0, 1)
        assert exchange.get_offer_count() == 0
        assert exchange.events_of(OfferCreated) == []

    def test_frozen_seller_cannot_create(self, exchange, tokens):
        rule = AccountFreezeRule()
        tokens.rtt.add_rule(rule)
        rule.freeze(USER1)
        with pytest.raises(SellerCannotTransfer, match="Seller can not transfer tokens"):
            exchange.create_offer(
                USER1, tokens.rtt.address, tokens.usdc.address, None, PRICE_STABLE_1, RTT_UNIT
            )

    def test_creation_does_not_check_balance(self, exchange, tokens):
        # Offers may exceed what the seller holds today
        offer_id = exchange.create_offer(
            USER3, tokens.rtt.address, tokens.usdc.address, None, PRICE_STABLE_1, 10 * SELLER_RTT
        )
        assert exchange.preview_available(offer_id) == 0


class TestUpdateOffer:

    def test_seller_updates(self, market):
        market.update_offer(USER1, 0, 2 * PRICE_STABLE_1, 10 * RTT_UNIT)
        view = market.get_initial_offer(0)
        assert (view.price, view.amount) == (2 * PRICE_STABLE_1, 10 * RTT_UNIT)
        event = market.events_of(OfferUpdated)[-1]
        assert (event.old_price, event.new_price) == (PRICE_STABLE_1, 2 * PRICE_STABLE_1)
        assert (event.old_amount, event.new_amount) == (AMOUNT_OFFER_1, 10 * RTT_UNIT)

    def test_non_seller_rejected(self, market):
        with pytest.raises(NotSeller, match="only the seller can change offer"):
            market.update_offer(USER2, 0, PRICE_STABLE_1, RTT_UNIT)

    def test_admin_is_not_seller(self, market):
        with pytest.raises(NotSeller):
            market.update_offer(ADMIN, 0, PRICE_STABLE_1, RTT_UNIT)

    def test_update_to_zero_removes(self, market):
        market.update_offer(USER1, 0, PRICE_STABLE_1, 0)
        with pytest.raises(OfferNotFound):
            market.show_offer(0)
        assert isinstance(market.events[-1], OfferDeleted)
        assert isinstance(market.events[-2], OfferUpdated)

    def test_zero_price_rejected(self, market):
        with pytest.raises(InvalidOfferParameters):
            market.update_offer(USER1, 0, 0, RTT_UNIT)
        assert market.get_initial_offer(0).price == PRICE_STABLE_1

    def test_unknown_offer(self, market):
        with pytest.raises(OfferNotFound):
            market.update_offer(USER1, 42, PRICE_STABLE_1, RTT_UNIT)


class TestDeleteOffer:

    def test_seller_deletes(self, market):
        market.delete_offer(USER1, 0)
        with pytest.raises(OfferNotFound):
            market.get_initial_offer(0)
        assert market.events_of(OfferDeleted)[-1].offer_id == 0
        assert market.get_offer_count() == 1

    def test_non_seller_rejected(self, market):
        with pytest.raises(NotSeller, match="only the seller can delete offer"):
            market.delete_offer(USER2, 0)

    def test_delete_twice(self, market):
        market.delete_offer(USER1, 0)
        with pytest.raises(OfferNotFound):
            market.delete_offer(USER1, 0)

    def test_admin_removes(self, market):
        market.delete_offer_by_admin(ADMIN, [0])
        with pytest.raises(OfferNotFound):
            market.show_offer(0)

    def test_moderator_cannot_admin_delete(self, market):
        with pytest.raises(NotAuthorized):
            market.delete_offer_by_admin(MODERATOR, [0])
        assert market.show_offer(0).offer_id == 0


class TestPreviews:

    def test_available_limited_by_amount(self, market):
        assert market.preview_available(0) == AMOUNT_OFFER_1

    def test_available_limited_by_allowance(self, market, ledger, tokens):
        ledger.approve(USER1, market.address, tokens.rtt.address, 3 * RTT_UNIT)
        assert market.preview_available(0) == 3 * RTT_UNIT
        assert market.show_offer(0).amount == 3 * RTT_UNIT
        assert market.get_initial_offer(0).amount == AMOUNT_OFFER_1

    def test_available_limited_by_balance(self, market, ledger, tokens):
        ledger.transfer(USER1, USER3, tokens.rtt.address, SELLER_RTT - 2 * RTT_UNIT)
        assert market.preview_available(0) == 2 * RTT_UNIT

    def test_price_preview(self, market):
        assert market.price_preview(0, 100 * RTT_UNIT) == 100_000_000
        assert market.price_preview(0, 1) == 0

    def test_price_preview_missing_offer(self, market):
        with pytest.raises(OfferNotFound):
            market.price_preview(7, RTT_UNIT)

    def test_token_info(self, market, tokens):
        info = market.token_info(tokens.usdc.address)
        assert (info.decimals, info.symbol, info.name) == (6, "USDC", "USD Coin")

    def test_offer_view_dict(self, market, tokens):
        data = market.show_offer(0).to_dict()
        assert data["offerId"] == 0
        assert data["buyerToken"] == tokens.usdc.address
        assert data["buyer"] == ZERO_ADDRESS
