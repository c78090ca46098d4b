"""
price_feeds.py - Price feeds for collateral valuation

Provides price sources implementing the PriceFeed protocol from core.

Classes:
- StaticPriceFeed: A single settable answer with a round counter
- TimeSeriesPriceFeed: Time-varying prices with a freshness heartbeat

All prices are integers in the feed's own precision, quoted in USD per whole
unit of the asset. Staleness is decided here, by the feed; the engine only
reads the flag.
"""

from bisect import bisect_right
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple

from .core import Quote


# Quotes older than this are stale (matches the usual 3-hour oracle heartbeat).
DEFAULT_HEARTBEAT = timedelta(hours=3)

# Most USD feeds report 8 decimals.
DEFAULT_FEED_DECIMALS = 8


class StaticPriceFeed:
    """
    Price feed with a single current answer.

    Every update_answer() starts a new round. The feed can be flagged stale
    explicitly to simulate a feed that stopped updating.
    """

    def __init__(self, answer: int, decimals: int = DEFAULT_FEED_DECIMALS):
        """
        Initialize with a starting answer.

        Args:
            answer: Price in `decimals` precision (e.g. 2000e8 for $2000 at 8 decimals)
            decimals: Precision of the answer
        """
        self._decimals = decimals
        self.answer = answer
        self.round_id = 1
        self.stale = False

    def decimals(self) -> int:
        return self._decimals

    def update_answer(self, answer: int) -> None:
        """Publish a new answer; starts a new round and clears the stale flag."""
        self.answer = answer
        self.round_id += 1
        self.stale = False

    def latest_quote(self) -> Quote:
        return Quote(
            price=self.answer,
            decimals=self._decimals,
            round_id=self.round_id,
            is_stale=self.stale,
        )

    def __repr__(self):
        return f"StaticPriceFeed(answer={self.answer}, decimals={self._decimals}, round={self.round_id})"


class TimeSeriesPriceFeed:
    """
    Price feed backed by timestamped observations.

    The feed has its own logical clock. latest_quote() returns the most recent
    observation at or before the current time and flags it stale when it is
    older than `heartbeat`, or when no observation exists yet.

    Examples:
        feed = TimeSeriesPriceFeed(
            [(t0, 2000_00000000), (t1, 1950_00000000)],
            initial_time=t0,
        )
        feed.advance_time(t1)
        feed.latest_quote().price   # 1950_00000000
    """

    def __init__(
        self,
        observations: Optional[List[Tuple[datetime, int]]] = None,
        decimals: int = DEFAULT_FEED_DECIMALS,
        heartbeat: timedelta = DEFAULT_HEARTBEAT,
        initial_time: Optional[datetime] = None,
    ):
        self._decimals = decimals
        self.heartbeat = heartbeat
        self.history: List[Tuple[datetime, int]] = sorted(observations or [], key=lambda x: x[0])
        if initial_time is not None:
            self._current_time = initial_time
        elif self.history:
            self._current_time = self.history[0][0]
        else:
            self._current_time = datetime(1970, 1, 1)

    @property
    def current_time(self) -> datetime:
        return self._current_time

    def decimals(self) -> int:
        return self._decimals

    def advance_time(self, new_time: datetime) -> None:
        """
        Move the feed's clock forward.

        Raises:
            ValueError: If new_time is before the current time
        """
        if new_time < self._current_time:
            raise ValueError(
                f"Cannot move time backwards: {new_time} < {self._current_time}"
            )
        self._current_time = new_time

    def add_price(self, timestamp: datetime, price: int) -> None:
        """Record an observation, keeping history in chronological order."""
        self.history.append((timestamp, price))
        self.history.sort(key=lambda x: x[0])

    def add_prices(self, prices: Dict[datetime, int]) -> None:
        for timestamp, price in prices.items():
            self.add_price(timestamp, price)

    def latest_quote(self) -> Quote:
        """
        Quote at the current time.

        The round id is the 1-based position of the observation in history;
        0 means no observation yet (price 0, stale).
        """
        idx = bisect_right(self.history, self._current_time, key=lambda x: x[0])
        if idx == 0:
            return Quote(price=0, decimals=self._decimals, round_id=0, is_stale=True)

        updated_at, price = self.history[idx - 1]
        is_stale = self._current_time - updated_at > self.heartbeat
        return Quote(price=price, decimals=self._decimals, round_id=idx, is_stale=is_stale)

    def __repr__(self):
        return (
            f"TimeSeriesPriceFeed({len(self.history)} observations, "
            f"heartbeat={self.heartbeat}, now={self._current_time})"
        )
