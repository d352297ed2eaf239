import math
from typing import Mapping, Optional, Sequence

from updown_signal.models import PriceTick, ResolvedPrices


def clean_price(value) -> Optional[float]:
    if value is None:
        return None
    try:
        px = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(px) or px < 0:
        return None
    return px


def resolve_price(observations: Mapping[str, Optional[PriceTick]], priority: Sequence[str]) -> Optional[PriceTick]:
    """Return the first usable observation in priority order.

    Priority is fixed policy: a fresher tick from a lower-priority source never
    displaces a higher-priority one that is present.
    """
    for name in priority:
        tick = observations.get(name)
        if tick is None:
            continue
        px = clean_price(tick.price)
        if px is None:
            continue
        return PriceTick(price=px, updated_at=tick.updated_at, source=tick.source or name)
    return None


def aggregate_prices(
    observations: Mapping[str, Optional[PriceTick]],
    current_priority: Sequence[str],
    spot_priority: Sequence[str],
) -> ResolvedPrices:
    return ResolvedPrices(
        current=resolve_price(observations, current_priority),
        spot=resolve_price(observations, spot_priority),
    )
