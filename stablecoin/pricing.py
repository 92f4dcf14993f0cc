"""
pricing.py - Price feeds and the oracle adapter

Provides the price infrastructure the engine values collateral with.

Classes:
- StaticPriceFeed: Aggregator-style feed with an explicit round history
- PriceOracle: Maps asset ids to feeds and lifts answers to 18 decimals

Prices are USD per whole token. The engine uses only the latest round; it
does not validate staleness (an accepted external-trust assumption).
"""

from datetime import datetime, timezone
from typing import Dict, List, Mapping, Optional

from .core import (
    RoundData, PriceFeed,
    FEED_DECIMALS, PRECISION_DECIMALS,
    UnknownAsset, InvalidPrice,
)


class StaticPriceFeed:
    """
    Price feed whose answer changes only when update_answer() is called.

    Every update opens a new round; earlier rounds stay queryable through
    get_round_data().

    Example:
        feed = StaticPriceFeed(8, 2000 * 10**8)     # $2000.00000000
        feed.update_answer(1000 * 10**8)
        feed.latest_round_data().answer              # 100000000000
        feed.get_round_data(1).answer                # 200000000000
    """

    def __init__(
        self,
        decimals: int = FEED_DECIMALS,
        initial_answer: int = 0,
        updated_at: Optional[datetime] = None,
    ):
        if decimals < 0:
            raise ValueError(f"decimals cannot be negative, got {decimals}")
        self.decimals = decimals
        self.rounds: List[RoundData] = []
        self.update_answer(initial_answer, updated_at)

    def update_answer(self, answer: int, updated_at: Optional[datetime] = None) -> RoundData:
        """Report a new answer and return the round it opened."""
        round_data = RoundData(
            round_id=len(self.rounds) + 1,
            answer=answer,
            updated_at=updated_at or datetime.now(timezone.utc),
        )
        self.rounds.append(round_data)
        return round_data

    def latest_round_data(self) -> RoundData:
        return self.rounds[-1]

    @property
    def latest_answer(self) -> int:
        return self.rounds[-1].answer

    def get_round_data(self, round_id: int) -> RoundData:
        """
        Return a historical round.

        Raises:
            KeyError: If no round with that id exists
        """
        if not 1 <= round_id <= len(self.rounds):
            raise KeyError(f"No data present for round {round_id}")
        return self.rounds[round_id - 1]

    def __repr__(self):
        return f"StaticPriceFeed(answer={self.latest_answer}, decimals={self.decimals}, rounds={len(self.rounds)})"


def scale_answer(answer: int, feed_decimals: int, target_decimals: int = PRECISION_DECIMALS) -> int:
    """
    Convert a feed answer to ``target_decimals`` fixed point.

    Feeds with fewer decimals are multiplied up exactly; feeds with more
    decimals are truncated toward zero.
    """
    if feed_decimals <= target_decimals:
        return answer * 10 ** (target_decimals - feed_decimals)
    return answer // 10 ** (feed_decimals - target_decimals)


class PriceOracle:
    """
    PriceOracleAdapter: asset id -> current USD price.

    The feed mapping is fixed at construction.
    """

    def __init__(self, feeds: Mapping[str, PriceFeed]):
        self._feeds: Dict[str, PriceFeed] = dict(feeds)

    def feed_for(self, asset: str) -> PriceFeed:
        if asset not in self._feeds:
            raise UnknownAsset(f"No price feed registered for {asset!r}")
        return self._feeds[asset]

    def price(self, asset: str) -> RoundData:
        """Latest round reported for ``asset``, unvalidated."""
        return self.feed_for(asset).latest_round_data()

    def additional_feed_precision(self, asset: str) -> int:
        """Factor lifting the feed's answers to 18 decimals (1e10 for 8-decimal feeds)."""
        decimals = self.feed_for(asset).decimals
        return 10 ** max(PRECISION_DECIMALS - decimals, 0)

    def answer_in_precision(self, asset: str) -> int:
        """
        Latest price of one whole ``asset`` token in 18-decimal USD.

        Raises:
            UnknownAsset: If no feed is registered for ``asset``
            InvalidPrice: If the feed reports a non-positive answer
        """
        feed = self.feed_for(asset)
        answer = feed.latest_round_data().answer
        price = scale_answer(answer, feed.decimals) if answer > 0 else 0
        if price <= 0:
            raise InvalidPrice(f"Feed for {asset!r} reported non-positive answer {answer}")
        return price

    def __repr__(self):
        return f"PriceOracle({len(self._feeds)} feeds)"
