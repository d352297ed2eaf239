import pytest

from updown_signal.models import PriceToBeatState, SignalKind, SimulationStats, SimulationTrade, StrategySignal
from updown_signal.sim.paper import init_stats, maybe_open_trade, observe_market, settle_on_rollover, settle_outcome, win_rate

STRONG_LONG = StrategySignal(kind=SignalKind.STRONG_LONG, side="UP", label="Strong Long (Trend)")
STRONG_SHORT = StrategySignal(kind=SignalKind.STRONG_SHORT, side="DOWN", label="Strong Short (Trend)")
ARB = StrategySignal(kind=SignalKind.ARBITRAGE, side="UP", label="Arb: Long (Exchange Lead)")


def _anchored(slug="btc-15m-1", value=100_000.0):
    return PriceToBeatState(slug=slug, value=value, set_at_ms=1)


def test_anchor_is_sticky_within_a_window():
    anchor = PriceToBeatState()
    ev = observe_market(anchor, "btc-15m-1", 100_000.0, now_ms=1)
    assert ev["type"] == "price_to_beat_set"
    assert observe_market(anchor, "btc-15m-1", 100_250.0, now_ms=2) is None
    assert anchor.value == 100_000.0
    assert anchor.set_at_ms == 1


def test_anchor_waits_for_a_price_then_resets_on_new_slug():
    anchor = PriceToBeatState()
    observe_market(anchor, "btc-15m-1", None, now_ms=1)
    assert anchor.slug == "btc-15m-1"
    assert anchor.value is None

    observe_market(anchor, "btc-15m-1", 100_000.0, now_ms=2)
    assert anchor.value == 100_000.0

    observe_market(anchor, "btc-15m-2", None, now_ms=3)
    assert (anchor.slug, anchor.value) == ("btc-15m-2", None)
    observe_market(anchor, "btc-15m-2", 101_000.0, now_ms=4)
    assert anchor.value == 101_000.0


def test_no_market_leaves_anchor_alone():
    anchor = _anchored()
    assert observe_market(anchor, None, 99_000.0, now_ms=5) is None
    assert anchor.value == 100_000.0


def test_open_requires_strong_label_anchor_and_no_open_trade():
    stats = init_stats()
    assert maybe_open_trade(stats, ARB, "m1", "btc-15m-1", _anchored(), 1) is None
    sideless = StrategySignal(kind=SignalKind.STRONG_LONG, label="Strong Long (Trend)")
    assert maybe_open_trade(stats, sideless, "m1", "btc-15m-1", _anchored(), 1) is None
    assert maybe_open_trade(stats, STRONG_LONG, "m1", "btc-15m-1", PriceToBeatState(slug="btc-15m-1"), 1) is None
    assert maybe_open_trade(stats, STRONG_LONG, "m1", "btc-15m-2", _anchored(), 1) is None
    assert stats.total_trades == 0

    trade = maybe_open_trade(stats, STRONG_LONG, "m1", "btc-15m-1", _anchored(), 1)
    assert (trade.side, trade.price_to_beat, trade.market_id) == ("UP", 100_000.0, "m1")
    assert stats.total_trades == 1

    assert maybe_open_trade(stats, STRONG_SHORT, "m1", "btc-15m-1", _anchored(), 2) is None
    assert stats.active_trade.side == "UP"
    assert stats.total_trades == 1


def test_strong_short_opens_down():
    stats = init_stats()
    trade = maybe_open_trade(stats, STRONG_SHORT, "m1", "btc-15m-1", _anchored(), 1)
    assert trade.side == "DOWN"


def test_rollover_settles_winning_up_trade_once():
    stats = SimulationStats(
        total_trades=1, last_market_id="m1",
        active_trade=SimulationTrade(side="UP", price_to_beat=100_000.0, market_id="m1"),
    )
    events = settle_on_rollover(stats, "m2", 100_001.0)
    assert stats.wins == 1
    assert stats.losses == 0
    assert stats.active_trade is None
    assert stats.last_market_id == "m2"
    assert [e["type"] for e in events] == ["market_rollover", "sim_settle"]

    settle_on_rollover(stats, "m2", 90_000.0)
    assert (stats.wins, stats.losses) == (1, 0)


def test_rollover_settles_losing_down_trade():
    stats = SimulationStats(last_market_id="m1", active_trade=SimulationTrade(side="DOWN", price_to_beat=100_000.0, market_id="m1"))
    settle_on_rollover(stats, "m2", 100_500.0)
    assert (stats.wins, stats.losses) == (0, 1)


def test_same_market_does_not_settle():
    stats = SimulationStats(last_market_id="m1", active_trade=SimulationTrade(side="UP", price_to_beat=100_000.0, market_id="m1"))
    assert settle_on_rollover(stats, "m1", 120_000.0) == []
    assert stats.active_trade is not None


def test_settlement_waits_for_a_price():
    stats = SimulationStats(last_market_id="m1", active_trade=SimulationTrade(side="UP", price_to_beat=100_000.0, market_id="m1"))
    settle_on_rollover(stats, "m2", None)
    assert stats.active_trade is not None
    assert stats.last_market_id == "m2"
    settle_on_rollover(stats, "m2", 100_100.0)
    assert stats.active_trade is None
    assert stats.wins == 1


def test_missing_market_does_not_settle():
    stats = SimulationStats(last_market_id="m1", active_trade=SimulationTrade(side="UP", price_to_beat=100_000.0, market_id="m1"))
    assert settle_on_rollover(stats, None, 100_100.0) == []
    assert stats.active_trade is not None
    assert stats.last_market_id == "m1"


@pytest.mark.parametrize("tie,expected", [("loss", "loss"), ("win", "win"), ("push", "push")])
def test_tie_policy(tie, expected):
    assert settle_outcome("UP", 100.0, 100.0, tie) == expected
    assert settle_outcome("DOWN", 100.0, 100.0, tie) == expected


def test_push_counts_neither_side():
    stats = SimulationStats(last_market_id="m1", active_trade=SimulationTrade(side="UP", price_to_beat=100.0, market_id="m1"))
    settle_on_rollover(stats, "m2", 100.0, tie_outcome="push")
    assert (stats.wins, stats.losses, stats.pushes) == (0, 0, 1)


def test_invalid_tie_policy():
    with pytest.raises(ValueError):
        settle_outcome("UP", 100.0, 100.0, "coinflip")


def test_win_rate():
    assert win_rate(init_stats()) == 0.0
    assert win_rate(SimulationStats(wins=3, losses=1)) == pytest.approx(75.0)
