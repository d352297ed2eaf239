from typing import List, Optional

from updown_signal.models import (
    UP,
    PriceToBeatState,
    SimulationStats,
    SimulationTrade,
    StrategySignal,
)

TIE_OUTCOMES = ("loss", "win", "push")


def init_stats() -> SimulationStats:
    return SimulationStats()


def observe_market(anchor: PriceToBeatState, slug: Optional[str], current_price: Optional[float], now_ms: int) -> Optional[dict]:
    """Advance the price-to-beat anchor for the observed market slug.

    A new slug resets the anchor; the first cycle with a price sets it, and it
    stays fixed until the slug changes again.
    """
    if not slug:
        return None
    if anchor.slug != slug:
        anchor.slug = slug
        anchor.value = None
        anchor.set_at_ms = None
    if anchor.value is None and current_price is not None:
        anchor.value = float(current_price)
        anchor.set_at_ms = now_ms
        return {"type": "price_to_beat_set", "slug": slug, "value": anchor.value}
    return None


def settle_outcome(side: str, price_to_beat: float, final_price: float, tie_outcome: str = "loss") -> str:
    if final_price == price_to_beat:
        if tie_outcome not in TIE_OUTCOMES:
            raise ValueError(f"invalid tie_outcome: {tie_outcome}")
        return tie_outcome
    if side == UP:
        return "win" if final_price > price_to_beat else "loss"
    return "win" if final_price < price_to_beat else "loss"


def settle_on_rollover(stats: SimulationStats, market_id: Optional[str], current_price: Optional[float], tie_outcome: str = "loss") -> List[dict]:
    if not market_id:
        return []

    events: List[dict] = []
    if market_id != stats.last_market_id:
        events.append({"type": "market_rollover", "from": stats.last_market_id, "to": market_id})
        stats.last_market_id = market_id

    trade = stats.active_trade
    # without a price the open trade waits for the next priced cycle
    if trade is not None and trade.market_id != market_id and current_price is not None:
        outcome = settle_outcome(trade.side, trade.price_to_beat, float(current_price), tie_outcome)
        if outcome == "win":
            stats.wins += 1
        elif outcome == "loss":
            stats.losses += 1
        else:
            stats.pushes += 1
        stats.active_trade = None
        events.append({
            "type": "sim_settle",
            "market_id": trade.market_id,
            "side": trade.side,
            "price_to_beat": trade.price_to_beat,
            "final_price": float(current_price),
            "outcome": outcome,
        })
    return events


def maybe_open_trade(
    stats: SimulationStats,
    signal: StrategySignal,
    market_id: Optional[str],
    market_slug: Optional[str],
    anchor: PriceToBeatState,
    now_ms: int,
) -> Optional[SimulationTrade]:
    if stats.active_trade is not None or not market_id:
        return None
    if anchor.value is None or anchor.slug != market_slug:
        return None
    if not signal.is_strong or signal.side is None:
        return None

    trade = SimulationTrade(side=signal.side, price_to_beat=anchor.value, market_id=market_id, opened_at_ms=now_ms)
    stats.active_trade = trade
    stats.total_trades += 1
    return trade


def win_rate(stats: SimulationStats) -> float:
    decided = stats.wins + stats.losses
    if decided <= 0:
        return 0.0
    return stats.wins / decided * 100.0
