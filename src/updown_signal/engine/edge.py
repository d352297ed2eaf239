from typing import Optional, Tuple

from updown_signal.models import DOWN, UP, Decision, EdgeResult


def market_implied(up_price: Optional[float], down_price: Optional[float]) -> Tuple[Optional[float], Optional[float]]:
    # normalize so the pair sums to 1 even when the book carries overround
    if up_price is None or down_price is None:
        return None, None
    total = up_price + down_price
    if total <= 0:
        return None, None
    return up_price / total, down_price / total


def compute_edge(
    model_up: float,
    model_down: float,
    market_yes: Optional[float],
    market_no: Optional[float],
) -> EdgeResult:
    market_up, market_down = market_implied(market_yes, market_no)
    if market_up is None or market_down is None:
        return EdgeResult()
    return EdgeResult(
        market_up=market_up,
        market_down=market_down,
        edge_up=model_up - market_up,
        edge_down=model_down - market_down,
    )


def phase_for(remaining_minutes: Optional[float], cfg: dict) -> Optional[str]:
    if remaining_minutes is None:
        return None
    if remaining_minutes > float(cfg.get("early_minutes", 10.0)):
        return "EARLY"
    if remaining_minutes > float(cfg.get("mid_minutes", 5.0)):
        return "MID"
    return "LATE"


def decide(remaining_minutes: Optional[float], model_up: float, model_down: float, cfg: dict) -> Decision:
    phase = phase_for(remaining_minutes, cfg)
    # unknown timing gets the strictest threshold
    threshold = float(cfg.get((phase or "EARLY").lower(), 0.65))

    if model_up >= model_down and model_up > threshold:
        return Decision(action="ENTER", side=UP, phase=phase, reason=f"model_up>{threshold}")
    if model_down > model_up and model_down > threshold:
        return Decision(action="ENTER", side=DOWN, phase=phase, reason=f"model_down>{threshold}")
    return Decision(action="NO_TRADE", phase=phase, reason="below_threshold")
