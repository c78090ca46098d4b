"""
registry.py - Accepted collateral assets

The registry is the closed set of collateral assets the engine accepts, each
paired with its price feed. It is populated once, at engine construction, and
never changes afterwards. Every asset gets a small integer index in
registration order; ledgers key their tables by that index and valuation
iterates assets in that order.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, Iterator, List, Sequence, Tuple

from .core import (
    FungibleToken, PriceFeed,
    DuplicateAsset, EmptyRegistration, LengthMismatch, TokenNotAllowed,
    scale_factor,
)


@dataclass(frozen=True, slots=True)
class AssetEntry:
    """
    One accepted collateral asset.

    Attributes:
        asset_id: The token's symbol
        index: Position in registration order
        token: Physical transfer capability for the asset
        price_feed: Oracle reference for the asset
        decimals: Native precision of the asset (at most 18)
    """
    asset_id: str
    index: int
    token: FungibleToken
    price_feed: PriceFeed
    decimals: int


class AssetRegistry:
    """
    Immutable mapping from accepted asset ids to their token and price feed.

    Raises at construction:
        LengthMismatch: tokens and price_feeds differ in length
        EmptyRegistration: no tokens, or a token with a blank symbol
        DuplicateAsset: two tokens share a symbol
        UnsupportedPrecision: a token declares more than 18 decimals
    """

    def __init__(self, tokens: Sequence[FungibleToken], price_feeds: Sequence[PriceFeed]):
        if len(tokens) != len(price_feeds):
            raise LengthMismatch(
                f"Token and price feed lists must be the same length "
                f"({len(tokens)} tokens, {len(price_feeds)} feeds)"
            )
        if not tokens:
            raise EmptyRegistration("At least one collateral asset is required")

        self._entries: Dict[str, AssetEntry] = {}
        self._order: List[str] = []
        for token, feed in zip(tokens, price_feeds):
            self._register(token, feed)

    def _register(self, token: FungibleToken, price_feed: PriceFeed) -> None:
        asset_id = token.symbol
        if not asset_id or not asset_id.strip():
            raise EmptyRegistration("Collateral asset symbol cannot be empty")
        if asset_id in self._entries:
            raise DuplicateAsset(f"Collateral asset {asset_id} registered twice")
        decimals = token.decimals()
        scale_factor(decimals)
        self._entries[asset_id] = AssetEntry(
            asset_id=asset_id,
            index=len(self._order),
            token=token,
            price_feed=price_feed,
            decimals=decimals,
        )
        self._order.append(asset_id)

    def is_accepted(self, asset_id: str) -> bool:
        return asset_id in self._entries

    def get(self, asset_id: str) -> AssetEntry:
        """
        Raises:
            TokenNotAllowed: If the asset is not registered
        """
        try:
            return self._entries[asset_id]
        except KeyError:
            raise TokenNotAllowed(f"Asset {asset_id} is not accepted as collateral") from None

    def index_of(self, asset_id: str) -> int:
        return self.get(asset_id).index

    def price_feed(self, asset_id: str) -> PriceFeed:
        return self.get(asset_id).price_feed

    def token(self, asset_id: str) -> FungibleToken:
        return self.get(asset_id).token

    def list_assets(self) -> Tuple[str, ...]:
        """Accepted asset ids in registration order."""
        return tuple(self._order)

    def __len__(self) -> int:
        return len(self._order)

    def __iter__(self) -> Iterator[AssetEntry]:
        return (self._entries[asset_id] for asset_id in self._order)

    def __contains__(self, asset_id: object) -> bool:
        return asset_id in self._entries

    def __repr__(self):
        return f"AssetRegistry({', '.join(self._order)})"
