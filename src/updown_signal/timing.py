from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional


@dataclass
class WindowTiming:
    start_ms: int
    end_ms: int
    elapsed_minutes: float
    remaining_minutes: float


def now_ms() -> int:
    return int(datetime.now(timezone.utc).timestamp() * 1000)


def window_timing(window_minutes: float, at_ms: int) -> WindowTiming:
    window_ms = int(window_minutes * 60_000)
    start = (at_ms // window_ms) * window_ms
    end = start + window_ms
    return WindowTiming(
        start_ms=start,
        end_ms=end,
        elapsed_minutes=(at_ms - start) / 60_000,
        remaining_minutes=(end - at_ms) / 60_000,
    )


def parse_iso_ms(s: str) -> Optional[int]:
    try:
        dt = datetime.fromisoformat((s or "").replace("Z", "+00:00"))
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp() * 1000)


def minutes_until(end_iso: str, at_ms: int) -> Optional[float]:
    end = parse_iso_ms(end_iso)
    if end is None:
        return None
    return (end - at_ms) / 60_000
