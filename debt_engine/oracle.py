"""
oracle.py - Price normalization for collateral valuation

Converts between native asset amounts and 18-decimal USD values.

ARCHITECTURE:
1. PURE CALCULATION FUNCTIONS (normalize_price, calculate_*):
   - All inputs explicit, integers only
   - Floor division everywhere
2. ADAPTER (PriceOracleAdapter):
   - Reads the feed for an asset once per call
   - Rejects stale or malformed quotes
   - Delegates the arithmetic to the pure functions

Key Formulas:
    price18     = price * 10^(18 - feed_decimals)
    amount18    = amount * 10^(18 - native_decimals)
    usd_value   = floor(price18 * amount18 / 1e18)
    native      = floor(usd_value * 1e18 / (price18 * 10^(18 - native_decimals)))

The inverse rounds down, so a liquidator is never paid more than the exact
amount: usd_to_native_amount(a, usd_value(a, x)) <= x for every x.
"""

from __future__ import annotations

from .core import (
    PRECISION, Quote,
    InvalidQuote, StalePrice, UnsupportedPrecision,
    mul_div, scale_factor,
)
from .registry import AssetRegistry


# ============================================================================
# PURE CALCULATION FUNCTIONS
# ============================================================================

def normalize_price(quote: Quote) -> int:
    """
    Lift a quote's price to 18 decimals.

    Raises:
        StalePrice: If the quote is flagged stale
        InvalidQuote: If the price is not positive or has more than 18 decimals
    """
    if quote.is_stale:
        raise StalePrice(f"Price quote from round {quote.round_id} is stale")
    if isinstance(quote.price, bool) or not isinstance(quote.price, int) or quote.price <= 0:
        raise InvalidQuote(f"Price must be a positive int, got {quote.price!r}")
    try:
        return quote.price * scale_factor(quote.decimals)
    except UnsupportedPrecision as e:
        raise InvalidQuote(f"Unsupported feed precision: {e}") from None


def calculate_usd_value(price18: int, amount: int, native_decimals: int) -> int:
    """USD value (18 decimals) of `amount` native units at `price18`, rounded down."""
    return mul_div(price18, amount * scale_factor(native_decimals), PRECISION)


def calculate_native_amount(price18: int, usd_value: int, native_decimals: int) -> int:
    """Native units worth `usd_value` at `price18`, rounded down."""
    return mul_div(usd_value, PRECISION, price18 * scale_factor(native_decimals))


# ============================================================================
# ADAPTER
# ============================================================================

class PriceOracleAdapter:
    """
    Valuation of registered assets against their feeds.

    Every call reads the feed afresh; nothing is cached between calls.
    """

    def __init__(self, registry: AssetRegistry):
        self.registry = registry

    def price(self, asset_id: str) -> int:
        """
        Current 18-decimal USD price of one whole unit of the asset.

        Raises:
            UnknownAsset: If the asset is not registered
            StalePrice: If the feed reports a stale quote
            InvalidQuote: If the quote is malformed
        """
        entry = self.registry.get(asset_id)
        return normalize_price(entry.price_feed.latest_quote())

    def usd_value(self, asset_id: str, amount: int) -> int:
        entry = self.registry.get(asset_id)
        price18 = normalize_price(entry.price_feed.latest_quote())
        return calculate_usd_value(price18, amount, entry.decimals)

    def usd_to_native_amount(self, asset_id: str, usd_value: int) -> int:
        entry = self.registry.get(asset_id)
        price18 = normalize_price(entry.price_feed.latest_quote())
        return calculate_native_amount(price18, usd_value, entry.decimals)
