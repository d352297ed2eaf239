"""Ordered rule cascade mapping indicator and price state to an action signal.

Rules are checked strictly in this order and the first match wins:
lock-in, arbitrage, trend, reversal, choppy, monitoring.
"""
from typing import Optional

from updown_signal.models import DOWN, UP, SignalKind, StrategySignal


def _gt(x: Optional[float], threshold: float) -> bool:
    return x is not None and x > threshold


def _ge(x: Optional[float], threshold: float) -> bool:
    return x is not None and x >= threshold


def classify(
    rsi: Optional[float],
    delta1: Optional[float],
    delta3: Optional[float],
    heiken_color: Optional[str],
    remaining_minutes: Optional[float],
    model_up: Optional[float],
    model_down: Optional[float],
    market_up: Optional[float],
    market_down: Optional[float],
    spot_price: Optional[float],
    current_price: Optional[float],
    cfg: dict,
) -> StrategySignal:
    lock_minutes = float(cfg.get("lock_minutes", 2.0))
    lock_prob = float(cfg.get("lock_prob", 0.98))
    final_minutes = float(cfg.get("final_minutes", 0.5))
    final_prob = float(cfg.get("final_prob", 0.95))
    arb_gap = float(cfg.get("arb_gap_usd", 25.0))
    overbought = float(cfg.get("rsi_overbought", 70.0))
    oversold = float(cfg.get("rsi_oversold", 30.0))

    if remaining_minutes is not None and remaining_minutes <= lock_minutes:
        if _ge(model_up, lock_prob) or _ge(market_up, lock_prob):
            return StrategySignal(kind=SignalKind.LOCKED, side=UP, label="Locked: UP (Unstoppable)")
        if _ge(model_down, lock_prob) or _ge(market_down, lock_prob):
            return StrategySignal(kind=SignalKind.LOCKED, side=DOWN, label="Locked: DOWN (Unstoppable)")
        if remaining_minutes <= final_minutes and (_gt(market_up, final_prob) or _gt(market_down, final_prob)):
            side = UP if _gt(market_up, final_prob) else DOWN
            return StrategySignal(kind=SignalKind.FINALIZED, side=side, label="Finalized")

    if spot_price is not None and current_price is not None:
        gap = spot_price - current_price
        if gap > arb_gap:
            return StrategySignal(kind=SignalKind.ARBITRAGE, side=UP, label="Arb: Long (Exchange Lead)")
        if gap < -arb_gap:
            return StrategySignal(kind=SignalKind.ARBITRAGE, side=DOWN, label="Arb: Short (Exchange Lead)")

    d1 = delta1 or 0.0
    d3 = delta3 or 0.0
    color = (heiken_color or "").lower()
    ha_green = color == "green"
    ha_red = color == "red"

    if d1 > 0 and d3 > 0 and ha_green and (rsi is None or rsi < overbought):
        return StrategySignal(kind=SignalKind.STRONG_LONG, side=UP, label="Strong Long (Trend)")
    if d1 < 0 and d3 < 0 and ha_red and (rsi is None or rsi > oversold):
        return StrategySignal(kind=SignalKind.STRONG_SHORT, side=DOWN, label="Strong Short (Trend)")

    if rsi is not None:
        if rsi > overbought and d1 < 0 and ha_red:
            return StrategySignal(kind=SignalKind.REVERSAL, side=DOWN, label="Sniper Short (Top)")
        if rsi < oversold and d1 > 0 and ha_green:
            return StrategySignal(kind=SignalKind.REVERSAL, side=UP, label="Sniper Long (Bottom)")

    if (d1 > 0 and d3 < 0) or (d1 < 0 and d3 > 0):
        return StrategySignal(kind=SignalKind.CHOPPY, label="Wait (Choppy/Mixed)")

    return StrategySignal(kind=SignalKind.MONITORING, label="Monitoring...")
