"""Technical indicators over closed candles.

Every function returns None (or a None-padded series) when the history is too
short; callers treat None as "insufficient data", never as zero.
"""
from typing import List, Optional, Sequence, Tuple

from updown_signal.models import Candle, HeikenCandle, HeikenRun, IndicatorSnapshot, MacdResult


def compute_vwap_series(candles: Sequence[Candle]) -> List[Optional[float]]:
    out: List[Optional[float]] = []
    pv = 0.0
    vol = 0.0
    for c in candles:
        typical = (c.high + c.low + c.close) / 3.0
        pv += typical * c.volume
        vol += c.volume
        out.append(pv / vol if vol > 0 else None)
    return out


def vwap_slope(series: Sequence[Optional[float]], lookback: int) -> Optional[float]:
    if lookback <= 0 or len(series) < lookback:
        return None
    last = series[-1]
    first = series[-lookback]
    if last is None or first is None:
        return None
    return (last - first) / lookback


def count_vwap_crosses(closes: Sequence[float], series: Sequence[Optional[float]], lookback: int) -> Optional[int]:
    if len(closes) < lookback or len(series) < lookback:
        return None
    crosses = 0
    for i in range(len(closes) - lookback + 1, len(closes)):
        if series[i - 1] is None or series[i] is None:
            continue
        prev = closes[i - 1] - series[i - 1]
        cur = closes[i] - series[i]
        if prev == 0:
            continue
        if (prev > 0 and cur < 0) or (prev < 0 and cur > 0):
            crosses += 1
    return crosses


def _rsi_value(avg_gain: float, avg_loss: float) -> float:
    if avg_loss == 0:
        return 100.0 if avg_gain > 0 else 50.0
    rs = avg_gain / avg_loss
    return 100.0 - 100.0 / (1.0 + rs)


def rsi_series(closes: Sequence[float], period: int) -> List[Optional[float]]:
    """Wilder RSI for every close; the first defined value is at index `period`."""
    out: List[Optional[float]] = [None] * len(closes)
    if period <= 0 or len(closes) < period + 1:
        return out

    gains = 0.0
    losses = 0.0
    for i in range(1, period + 1):
        diff = closes[i] - closes[i - 1]
        if diff > 0:
            gains += diff
        else:
            losses -= diff
    avg_gain = gains / period
    avg_loss = losses / period
    out[period] = _rsi_value(avg_gain, avg_loss)

    for i in range(period + 1, len(closes)):
        diff = closes[i] - closes[i - 1]
        gain = diff if diff > 0 else 0.0
        loss = -diff if diff < 0 else 0.0
        avg_gain = (avg_gain * (period - 1) + gain) / period
        avg_loss = (avg_loss * (period - 1) + loss) / period
        out[i] = _rsi_value(avg_gain, avg_loss)
    return out


def compute_rsi(closes: Sequence[float], period: int) -> Optional[float]:
    series = rsi_series(closes, period)
    return series[-1] if series else None


def slope_last(values: Sequence[float], points: int) -> Optional[float]:
    if points < 2 or len(values) < points:
        return None
    window = values[-points:]
    return (window[-1] - window[0]) / (points - 1)


def ema_series(values: Sequence[float], period: int) -> List[Optional[float]]:
    # seeded with the SMA of the first `period` values
    out: List[Optional[float]] = [None] * len(values)
    if period <= 0 or len(values) < period:
        return out
    k = 2.0 / (period + 1)
    prev = sum(values[:period]) / period
    out[period - 1] = prev
    for i in range(period, len(values)):
        prev = values[i] * k + prev * (1.0 - k)
        out[i] = prev
    return out


def compute_macd(closes: Sequence[float], fast: int, slow: int, signal: int) -> Optional[MacdResult]:
    if fast <= 0 or slow <= fast or signal <= 0 or len(closes) < slow + signal:
        return None

    fast_ema = ema_series(closes, fast)
    slow_ema = ema_series(closes, slow)
    macd_line = [fast_ema[i] - slow_ema[i] for i in range(slow - 1, len(closes))]
    signal_ema = ema_series(macd_line, signal)

    hist = [
        (m - s) if s is not None else None
        for m, s in zip(macd_line, signal_ema)
    ]
    hist_delta = None
    if len(hist) >= 2 and hist[-2] is not None:
        hist_delta = hist[-1] - hist[-2]

    return MacdResult(
        macd_line=macd_line[-1],
        signal_line=signal_ema[-1],
        histogram=hist[-1],
        hist_delta=hist_delta,
    )


def compute_heiken_ashi(candles: Sequence[Candle]) -> List[HeikenCandle]:
    out: List[HeikenCandle] = []
    for c in candles:
        ha_close = (c.open + c.high + c.low + c.close) / 4.0
        if out:
            ha_open = (out[-1].open + out[-1].close) / 2.0
        else:
            ha_open = (c.open + c.close) / 2.0
        out.append(
            HeikenCandle(
                open=ha_open,
                high=max(c.high, ha_open, ha_close),
                low=min(c.low, ha_open, ha_close),
                close=ha_close,
                is_green=ha_close >= ha_open,
            )
        )
    return out


def count_consecutive(ha: Sequence[HeikenCandle]) -> HeikenRun:
    if not ha:
        return HeikenRun()
    target = ha[-1].is_green
    count = 0
    for c in reversed(ha):
        if c.is_green != target:
            break
        count += 1
    return HeikenRun(color="green" if target else "red", count=count)


def price_deltas(closes: Sequence[float]) -> Tuple[Optional[float], Optional[float]]:
    last = closes[-1] if closes else None
    delta1 = last - closes[-2] if len(closes) >= 2 else None
    delta3 = last - closes[-4] if len(closes) >= 4 else None
    return delta1, delta3


def build_snapshot(candles: Sequence[Candle], cfg: dict) -> IndicatorSnapshot:
    period = int(cfg.get("rsi_period", 14))
    closes = [c.close for c in candles]

    vwaps = compute_vwap_series(candles)
    rsis = [x for x in rsi_series(closes, period) if x is not None]
    macd = compute_macd(
        closes,
        int(cfg.get("macd_fast", 12)),
        int(cfg.get("macd_slow", 26)),
        int(cfg.get("macd_signal", 9)),
    )
    run = count_consecutive(compute_heiken_ashi(candles))

    return IndicatorSnapshot(
        vwap=vwaps[-1] if vwaps else None,
        vwap_slope=vwap_slope(vwaps, int(cfg.get("vwap_slope_lookback", 5))),
        vwap_crosses=count_vwap_crosses(closes, vwaps, int(cfg.get("vwap_cross_lookback", 20))),
        rsi=rsis[-1] if rsis else None,
        rsi_slope=slope_last(rsis, int(cfg.get("rsi_slope_points", 3))),
        macd=macd,
        heiken_color=run.color,
        heiken_count=run.count,
    )
