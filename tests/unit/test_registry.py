"""
test_registry.py - Unit tests for the accepted-collateral registry
"""

import pytest

from debt_engine import (
    AssetLedger, AssetRegistry, StaticPriceFeed,
    LengthMismatch, DuplicateAsset, EmptyRegistration, UnsupportedPrecision,
    TokenNotAllowed,
)


@pytest.fixture
def tokens():
    chain = AssetLedger("chain")
    return (
        chain.register_unit("WETH", "Wrapped Ether", 18),
        chain.register_unit("WBTC", "Wrapped Bitcoin", 8),
    )


class TestRegistration:

    def test_order_and_indices(self, tokens):
        registry = AssetRegistry(tokens, [StaticPriceFeed(1), StaticPriceFeed(2)])
        assert registry.list_assets() == ("WETH", "WBTC")
        assert registry.index_of("WETH") == 0
        assert registry.index_of("WBTC") == 1
        assert len(registry) == 2
        assert [entry.asset_id for entry in registry] == ["WETH", "WBTC"]

    def test_entries_carry_decimals_and_feed(self, tokens):
        feeds = [StaticPriceFeed(1), StaticPriceFeed(2)]
        registry = AssetRegistry(tokens, feeds)
        assert registry.get("WBTC").decimals == 8
        assert registry.price_feed("WBTC") is feeds[1]
        assert registry.token("WETH") is tokens[0]

    def test_length_mismatch(self, tokens):
        with pytest.raises(LengthMismatch):
            AssetRegistry(tokens, [StaticPriceFeed(1)])

    def test_empty_rejected(self):
        with pytest.raises(EmptyRegistration):
            AssetRegistry([], [])

    def test_duplicate_rejected(self, tokens):
        with pytest.raises(DuplicateAsset):
            AssetRegistry([tokens[0], tokens[0]], [StaticPriceFeed(1), StaticPriceFeed(1)])

    def test_more_than_eighteen_decimals_rejected(self):
        class WideToken:
            symbol = "WIDE"

            def decimals(self):
                return 24

        with pytest.raises(UnsupportedPrecision):
            AssetRegistry([WideToken()], [StaticPriceFeed(1)])

    def test_blank_symbol_rejected(self):
        class Nameless:
            symbol = "  "

            def decimals(self):
                return 18

        with pytest.raises(EmptyRegistration):
            AssetRegistry([Nameless()], [StaticPriceFeed(1)])


class TestLookup:

    def test_membership(self, tokens):
        registry = AssetRegistry(tokens, [StaticPriceFeed(1), StaticPriceFeed(2)])
        assert registry.is_accepted("WETH")
        assert "WBTC" in registry
        assert not registry.is_accepted("DOGE")
        assert "DOGE" not in registry

    def test_unknown_asset(self, tokens):
        registry = AssetRegistry(tokens, [StaticPriceFeed(1), StaticPriceFeed(2)])
        with pytest.raises(TokenNotAllowed):
            registry.get("DOGE")
        with pytest.raises(TokenNotAllowed):
            registry.index_of("DOGE")
