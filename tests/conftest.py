from typing import List, Sequence

import pytest

from updown_signal.config import default_config
from updown_signal.models import Candle


def _candles(closes: Sequence[float], volume: float = 10.0, start_ms: int = 1_700_000_000_000) -> List[Candle]:
    out = []
    prev = closes[0]
    for i, c in enumerate(closes):
        o = prev
        out.append(
            Candle(
                open_time=start_ms + i * 60_000,
                open=o,
                high=max(o, c) + 1.0,
                low=min(o, c) - 1.0,
                close=c,
                volume=volume,
                close_time=start_ms + (i + 1) * 60_000 - 1,
            )
        )
        prev = c
    return out


@pytest.fixture
def candles_from_closes():
    return _candles


@pytest.fixture
def zigzag_uptrend():
    # +10 / -6 steps ending on an up move: rising deltas, RSI in the mid 60s
    closes = [100_000.0]
    for i in range(239):
        closes.append(closes[-1] + (10.0 if i % 2 == 0 else -6.0))
    return _candles(closes)


@pytest.fixture
def cfg(tmp_path):
    c = default_config()
    c["storage"] = {
        "events_path": str(tmp_path / "events.jsonl"),
        "signals_csv": str(tmp_path / "signals.csv"),
        "stats_path": str(tmp_path / "sim_stats.json"),
    }
    return c
