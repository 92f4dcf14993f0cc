"""
test_pricing.py - Tests for price feeds and the oracle adapter
"""

import pytest
from datetime import datetime, timezone

from stablecoin import (
    StaticPriceFeed, PriceOracle, scale_answer,
    UnknownAsset, InvalidPrice,
)


class TestStaticPriceFeed:

    def test_initial_round(self):
        t = datetime(2025, 1, 1, tzinfo=timezone.utc)
        feed = StaticPriceFeed(8, 2000 * 10**8, t)
        round_data = feed.latest_round_data()
        assert round_data.round_id == 1
        assert round_data.answer == 2000 * 10**8
        assert round_data.updated_at == t

    def test_update_opens_new_round(self):
        feed = StaticPriceFeed(8, 2000 * 10**8)
        feed.update_answer(1000 * 10**8)
        assert feed.latest_answer == 1000 * 10**8
        assert feed.latest_round_data().round_id == 2
        assert feed.get_round_data(1).answer == 2000 * 10**8

    def test_unknown_round_raises(self):
        feed = StaticPriceFeed(8, 1)
        with pytest.raises(KeyError):
            feed.get_round_data(5)

    def test_negative_decimals_rejected(self):
        with pytest.raises(ValueError):
            StaticPriceFeed(-1, 1)


class TestScaleAnswer:

    def test_eight_decimals_scaled_up(self):
        assert scale_answer(2000 * 10**8, 8) == 2000 * 10**18

    def test_more_decimals_truncated(self):
        assert scale_answer(123_456, 20) == 1234

    def test_same_decimals_unchanged(self):
        assert scale_answer(42, 18) == 42


class TestPriceOracle:

    @pytest.fixture
    def oracle(self):
        return PriceOracle({
            "WETH": StaticPriceFeed(8, 2000 * 10**8),
            "USDC": StaticPriceFeed(6, 1_000_000),
        })

    def test_answer_in_precision(self, oracle):
        assert oracle.answer_in_precision("WETH") == 2000 * 10**18
        assert oracle.answer_in_precision("USDC") == 10**18

    def test_additional_feed_precision(self, oracle):
        assert oracle.additional_feed_precision("WETH") == 10**10
        assert oracle.additional_feed_precision("USDC") == 10**12

    def test_unknown_asset(self, oracle):
        with pytest.raises(UnknownAsset):
            oracle.answer_in_precision("DOGE")

    @pytest.mark.parametrize("answer", [0, -1])
    def test_non_positive_price_rejected(self, oracle, answer):
        oracle.feed_for("WETH").update_answer(answer)
        with pytest.raises(InvalidPrice):
            oracle.answer_in_precision("WETH")

    def test_price_returns_raw_round(self, oracle):
        assert oracle.price("WETH").answer == 2000 * 10**8
