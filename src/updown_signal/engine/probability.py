import math
from typing import Optional, Tuple

from updown_signal.models import IndicatorSnapshot, ProbabilityEstimate

_LOGIT_EPS = 1e-9


def _clamp(x: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, x))


def _sigmoid(z: float) -> float:
    if z >= 0:
        return 1.0 / (1.0 + math.exp(-z))
    ez = math.exp(z)
    return ez / (1.0 + ez)


def score_direction(snap: IndicatorSnapshot, price: Optional[float], cfg: dict) -> Tuple[float, float, float]:
    """Weighted vote: returns (up_score, down_score, raw_up).

    Both sides start at 1 so raw_up is 0.5 when no signal votes. A vote only
    ever adds to one side, so extra bullish signals never lower raw_up.
    """
    w = cfg.get("weights", {})
    rsi_bull = float(cfg.get("rsi_bull", 55.0))
    rsi_bear = float(cfg.get("rsi_bear", 45.0))
    ha_min = int(cfg.get("heiken_min_count", 2))

    up = 1.0
    down = 1.0

    if price is not None and snap.vwap is not None:
        if price > snap.vwap:
            up += w.get("vwap", 2.0)
        elif price < snap.vwap:
            down += w.get("vwap", 2.0)

    if snap.vwap_slope is not None:
        if snap.vwap_slope > 0:
            up += w.get("vwap_slope", 2.0)
        elif snap.vwap_slope < 0:
            down += w.get("vwap_slope", 2.0)

    if snap.rsi is not None and snap.rsi_slope is not None:
        if snap.rsi > rsi_bull and snap.rsi_slope > 0:
            up += w.get("rsi", 2.0)
        elif snap.rsi < rsi_bear and snap.rsi_slope < 0:
            down += w.get("rsi", 2.0)

    if snap.macd is not None:
        if snap.macd.histogram > 0:
            up += w.get("macd_hist", 2.0)
        elif snap.macd.histogram < 0:
            down += w.get("macd_hist", 2.0)
        # expanding: the histogram moved further in the direction it points
        hd = snap.macd.hist_delta
        if hd is not None:
            if snap.macd.histogram > 0 and hd > 0:
                up += w.get("macd_expanding", 1.0)
            elif snap.macd.histogram < 0 and hd < 0:
                down += w.get("macd_expanding", 1.0)
        if snap.macd.macd_line > 0:
            up += w.get("macd_line", 1.0)
        elif snap.macd.macd_line < 0:
            down += w.get("macd_line", 1.0)

    if snap.heiken_color and snap.heiken_count >= ha_min:
        if snap.heiken_color == "green":
            up += w.get("heiken", 1.0)
        elif snap.heiken_color == "red":
            down += w.get("heiken", 1.0)

    return up, down, _clamp(up / (up + down), 0.0, 1.0)


def apply_time_awareness(
    raw_up: float,
    remaining_minutes: Optional[float],
    window_minutes: float,
    sharpness: float = 2.5,
    neutral_band: float = 0.02,
) -> ProbabilityEstimate:
    """Sharpen raw_up toward 0/1 as the window closes, flatten it toward 0.5 early.

    adjusted = sigmoid(k * logit(raw_up)) with k = sharpness * (1 - r) / r and
    r = remaining / window. r == 1 gives exactly 0.5, r -> 0 gives round(raw_up).
    Inputs inside the neutral band stay at 0.5.
    """
    raw_up = _clamp(float(raw_up), 0.0, 1.0)
    decay = None

    if remaining_minutes is None or window_minutes <= 0:
        adjusted = raw_up
    else:
        decay = _clamp(remaining_minutes / window_minutes, 0.0, 1.0)
        if abs(raw_up - 0.5) <= neutral_band or decay >= 1.0:
            adjusted = 0.5
        elif decay <= 0.0:
            adjusted = 1.0 if raw_up > 0.5 else 0.0
        else:
            k = sharpness * (1.0 - decay) / decay
            p = _clamp(raw_up, _LOGIT_EPS, 1.0 - _LOGIT_EPS)
            adjusted = _sigmoid(k * math.log(p / (1.0 - p)))

    adjusted = _clamp(adjusted, 0.0, 1.0)
    return ProbabilityEstimate(
        raw_up=raw_up,
        raw_down=1.0 - raw_up,
        adjusted_up=adjusted,
        adjusted_down=1.0 - adjusted,
        time_decay=decay,
    )
