from __future__ import annotations
import csv
import json
from pathlib import Path
from datetime import datetime, timezone
from typing import Sequence

from updown_signal.models import CycleRecord, SimulationStats

SIGNALS_HEADER = [
    "timestamp",
    "entry_minute",
    "time_left_min",
    "regime",
    "signal",
    "model_up",
    "model_down",
    "mkt_up",
    "mkt_down",
    "edge_up",
    "edge_down",
    "recommendation",
    "action",
]


def load_stats(path: str) -> SimulationStats:
    p = Path(path)
    if not p.exists():
        return SimulationStats()
    return SimulationStats.model_validate(json.loads(p.read_text()))


def save_stats(path: str, stats: SimulationStats) -> None:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(stats.model_dump_json(indent=2))


def append_event(path: str, event: dict) -> None:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    event = {"ts": datetime.now(timezone.utc).isoformat(), **event}
    with p.open("a") as f:
        f.write(json.dumps(event) + "\n")


def append_csv_row(path: str, header: Sequence[str], row: Sequence) -> None:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    new_file = not p.exists()
    with p.open("a", newline="") as f:
        w = csv.writer(f)
        if new_file:
            w.writerow(header)
        w.writerow(["" if v is None else v for v in row])


def signal_row(record: CycleRecord) -> list:
    d = record.decision
    return [
        datetime.fromtimestamp(record.timestamp_ms / 1000, tz=timezone.utc).isoformat(),
        round(record.elapsed_min, 3),
        round(record.time_left_min, 3) if record.time_left_min is not None else None,
        record.regime,
        d.side if d.action == "ENTER" else "NO_TRADE",
        record.probability.adjusted_up,
        record.probability.adjusted_down,
        record.market_up,
        record.market_down,
        record.edge.edge_up,
        record.edge.edge_down,
        f"{d.side}:{d.phase}" if d.action == "ENTER" else "NO_TRADE",
        record.signal.kind.value,
    ]
