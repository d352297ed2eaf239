from typing import Optional

ABOVE_VWAP = "above-vwap"
BELOW_VWAP = "below-vwap"
AT_VWAP = "at-vwap"


def detect_regime(price: Optional[float], vwap: Optional[float], epsilon_pct: float = 0.0005) -> Optional[str]:
    if price is None or vwap is None or vwap <= 0:
        return None
    band = abs(vwap) * epsilon_pct
    diff = price - vwap
    if diff > band:
        return ABOVE_VWAP
    if diff < -band:
        return BELOW_VWAP
    return AT_VWAP
