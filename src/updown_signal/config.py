import copy
from pathlib import Path

import yaml

DEFAULTS = {
    "app": {
        "poll_interval_s": 1.0,
        "window_minutes": 15,
        "symbol": "BTCUSDT",
    },
    "indicators": {
        "rsi_period": 14,
        "rsi_slope_points": 3,
        "macd_fast": 12,
        "macd_slow": 26,
        "macd_signal": 9,
        "vwap_slope_lookback": 5,
        "vwap_cross_lookback": 20,
        "candle_limit_1m": 240,
        "candle_limit_5m": 200,
    },
    "regime": {"epsilon_pct": 0.0005},
    "probability": {
        "weights": {
            "vwap": 2.0,
            "vwap_slope": 2.0,
            "rsi": 2.0,
            "macd_hist": 2.0,
            "macd_expanding": 1.0,
            "macd_line": 1.0,
            "heiken": 1.0,
        },
        "rsi_bull": 55.0,
        "rsi_bear": 45.0,
        "heiken_min_count": 2,
        "sharpness": 2.5,
        "neutral_band": 0.02,
    },
    "decision": {
        "early_minutes": 10.0,
        "mid_minutes": 5.0,
        "early": 0.65,
        "mid": 0.60,
        "late": 0.55,
    },
    "strategy": {
        "lock_minutes": 2.0,
        "lock_prob": 0.98,
        "final_minutes": 0.5,
        "final_prob": 0.95,
        "arb_gap_usd": 25.0,
        "rsi_overbought": 70.0,
        "rsi_oversold": 30.0,
    },
    "sim": {"tie_outcome": "loss", "persist": False},
    "sources": {
        "current_priority": ["polymarket_ws", "chainlink_ws", "chainlink_rpc"],
        "spot_priority": ["binance_ws", "binance_rest"],
    },
    "binance": {"base_url": "https://api.binance.com"},
    "chainlink": {
        "rpc_urls": ["https://polygon-rpc.com"],
        "aggregator": "0xc907E116054Ad103354f2D350FD2514433D57F6f",
        "decimals": 8,
        "ws_url": "wss://polygon-bor-rpc.publicnode.com",
        # underlying aggregator emitting AnswerUpdated; looked up from the proxy when empty
        "ws_feed_address": "",
        "ws_max_age_s": 120.0,
    },
    "gamma": {
        "base_url": "https://gamma-api.polymarket.com",
        "market_slug": "",
        "series_id": "10192",
    },
    "rtds": {"url": "wss://ws-live-data.polymarket.com", "max_age_s": 30.0},
    "storage": {
        "events_path": "data/events.jsonl",
        "signals_csv": "logs/signals.csv",
        "stats_path": "data/sim_stats.json",
    },
}


def _deep_merge(base: dict, override: dict) -> dict:
    out = copy.deepcopy(base)
    for k, v in (override or {}).items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = _deep_merge(out[k], v)
        else:
            out[k] = v
    return out


def default_config() -> dict:
    return copy.deepcopy(DEFAULTS)


def load_config(path: str) -> dict:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(path)
    return _deep_merge(DEFAULTS, yaml.safe_load(p.read_text()) or {})
