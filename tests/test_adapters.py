import json

import httpx
import pytest

from updown_signal.adapters.binance import BinanceAdapter
from updown_signal.adapters.chainlink import ChainlinkRpcAdapter, decode_address, decode_latest_round
from updown_signal.chainlink_hook import ANSWER_UPDATED, ChainlinkStreamHook, decode_answer_updated
from updown_signal.adapters.gamma import flatten_event_markets, pick_latest_live_market, to_snapshot
from updown_signal.rtds_hook import RtdsPriceHook

NOW_MS = 1_700_000_400_000  # 2023-11-14T22:20:00Z


def _gamma_market(**overrides):
    m = {
        "id": "123",
        "slug": "btc-updown-15m-1700000100",
        "question": "Bitcoin Up or Down",
        "endDate": "2023-11-14T22:30:00Z",
        "outcomePrices": "[\"0.52\", \"0.48\"]",
    }
    m.update(overrides)
    return m


def test_to_snapshot_parses_string_prices():
    snap = to_snapshot(_gamma_market())
    assert snap.ok
    assert snap.market.key == "123"
    assert snap.market.outcome_prices == [0.52, 0.48]
    assert (snap.prices.up, snap.prices.down) == (0.52, 0.48)


@pytest.mark.parametrize("overrides", [
    {"endDate": None},
    {"outcomePrices": "not-json"},
    {"outcomePrices": ["0.5"]},
    {"id": None, "slug": None},
])
def test_malformed_market_is_not_ok(overrides):
    snap = to_snapshot(_gamma_market(**overrides))
    assert not snap.ok
    assert snap.reason == "malformed_market"


def test_missing_market():
    snap = to_snapshot(None)
    assert (snap.ok, snap.reason) == (False, "market_not_found")


def test_pick_latest_live_market_prefers_soonest_open_window():
    events = [
        {"endDate": "2023-11-14T22:45:00Z", "startTime": "2023-11-14T22:30:00Z", "markets": [{"id": "future"}]},
        {"endDate": "2023-11-14T22:30:00Z", "startTime": "2023-11-14T22:15:00Z", "markets": [{"id": "live"}]},
        {"endDate": "2023-11-14T22:15:00Z", "markets": [{"id": "expired"}]},
        {"endDate": "2023-11-14T22:30:00Z", "markets": [{"id": "closed", "closed": True}]},
    ]
    markets = flatten_event_markets(events)
    assert len(markets) == 4
    assert pick_latest_live_market(markets, NOW_MS)["id"] == "live"
    assert pick_latest_live_market([], NOW_MS) is None


def test_binance_parse_klines_drops_open_candle():
    rows = [
        [NOW_MS - 120_000, "100", "101", "99", "100.5", "3.2", NOW_MS - 60_001],
        [NOW_MS - 60_000, "100.5", "102", "100", "101.5", "1.1", NOW_MS - 1],
        [NOW_MS, "101.5", "101.7", "101.2", "101.3", "0.2", NOW_MS + 59_999],
    ]
    candles = BinanceAdapter.parse_klines(rows, now_ms=NOW_MS)
    assert [c.close for c in candles] == [100.5, 101.5]
    assert candles[0].volume == 3.2


def _round_data(answer: int, updated_at: int) -> str:
    words = [7, answer % 2 ** 256, updated_at - 1, updated_at, 7]
    return "0x" + "".join(f"{w:064x}" for w in words)


def test_decode_latest_round():
    tick = decode_latest_round(_round_data(6_543_210_000_000, 1_700_000_000), decimals=8)
    assert tick.price == pytest.approx(65_432.1)
    assert tick.updated_at == 1_700_000_000_000
    assert tick.source == "chainlink_rpc"


def test_decode_latest_round_rejects_short_result():
    with pytest.raises(ValueError):
        decode_latest_round("0x1234")


def test_chainlink_falls_back_to_next_rpc(monkeypatch):
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(str(request.url))
        if "bad" in str(request.url):
            return httpx.Response(503)
        body = json.loads(request.content)
        assert body["params"][0]["data"] == "0xfeaf968c"
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": _round_data(6_500_000_000_000, 1_700_000_000)})

    real_client = httpx.Client
    monkeypatch.setattr(httpx, "Client", lambda **kw: real_client(transport=httpx.MockTransport(handler), **kw))

    adapter = ChainlinkRpcAdapter(["https://bad.rpc", "https://good.rpc"], "0xabc")
    tick = adapter.fetch_price()
    assert tick.price == pytest.approx(65_000.0)
    assert len(calls) == 2
    assert adapter.call_count == 2


def test_rtds_hook_tracks_sources_without_network():
    hook = RtdsPriceHook(max_age_s=30.0)
    hook._on_msg(json.dumps({"payload": {"symbol": "btc/usd", "value": 65000.5, "timestamp": 1_700_000_000_000}}))
    hook._on_msg(json.dumps({"payload": {"symbol": "btcusdt", "value": "65020.1"}}))
    hook._on_msg(json.dumps({"payload": {"data": [{"value": 1}]}}))
    hook._on_msg("not json")

    oracle = hook.last_tick("polymarket_ws")
    assert oracle.price == 65000.5
    assert oracle.updated_at == 1_700_000_000_000
    assert hook.last_tick("binance_ws").price == pytest.approx(65020.1)
    assert hook.last_tick("chainlink_ws") is None


def test_rtds_hook_stale_tick_is_none():
    hook = RtdsPriceHook(max_age_s=5.0)
    hook._on_msg(json.dumps({"payload": {"symbol": "btc/usd", "value": 65000.5}}))
    received = hook._received_at["polymarket_ws"]
    assert hook.last_tick("polymarket_ws", now=received + 1.0) is not None
    assert hook.last_tick("polymarket_ws", now=received + 10.0) is None


def test_rtds_hook_ignores_non_finite_timestamp():
    hook = RtdsPriceHook()
    hook._on_msg(json.dumps({"payload": {"symbol": "btc/usd", "value": 65000.5, "timestamp": float("inf")}}))
    hook._on_msg(json.dumps({"payload": {"symbol": "btcusdt", "value": 65010.0, "timestamp": float("nan")}}))
    assert hook.last_tick("polymarket_ws").updated_at is None
    assert hook.last_tick("binance_ws").price == 65010.0


def test_rtds_hook_stop_without_start():
    hook = RtdsPriceHook()
    hook.stop()
    assert hook._thread is None


def _answer_log(answer: int, updated_at: int) -> dict:
    return {
        "address": "0xfeed",
        "topics": [ANSWER_UPDATED, f"0x{answer % 2 ** 256:064x}", f"0x{42:064x}"],
        "data": f"0x{updated_at:064x}",
    }


def _notification(log: dict) -> str:
    return json.dumps({"jsonrpc": "2.0", "method": "eth_subscription", "params": {"subscription": "0x1", "result": log}})


def test_decode_answer_updated():
    tick = decode_answer_updated(_answer_log(6_543_210_000_000, 1_700_000_000), decimals=8)
    assert tick.price == pytest.approx(65_432.1)
    assert tick.updated_at == 1_700_000_000_000
    assert tick.source == "chainlink_ws"


def test_decode_answer_updated_rejects_other_events_and_negative_answers():
    other = _answer_log(6_543_210_000_000, 1_700_000_000)
    other["topics"][0] = "0x" + "ab" * 32
    assert decode_answer_updated(other) is None
    assert decode_answer_updated(_answer_log(-5, 1_700_000_000)) is None
    assert decode_answer_updated({"topics": []}) is None


def test_chainlink_stream_hook_tracks_notifications():
    hook = ChainlinkStreamHook("wss://example.invalid", address="0xfeed", max_age_s=60.0)
    assert hook.last_tick() is None

    hook._on_msg(json.dumps({"jsonrpc": "2.0", "id": 1, "result": "0xsubid"}))
    hook._on_msg("not json")
    assert hook.last_tick() is None

    hook._on_msg(_notification(_answer_log(6_500_000_000_000, 1_700_000_000)))
    tick = hook.last_tick("chainlink_ws")
    assert tick.price == pytest.approx(65_000.0)
    assert hook.last_tick("polymarket_ws") is None

    removed = _answer_log(6_600_000_000_000, 1_700_000_060)
    removed["removed"] = True
    hook._on_msg(_notification(removed))
    assert hook.last_tick().price == pytest.approx(65_000.0)

    assert hook.last_tick(now=hook._received_at + 61.0) is None


def test_chainlink_feed_address_lookup(monkeypatch):
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        assert body["params"][0]["data"] == "0x245a7bfc"
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": "0x" + "0" * 24 + "ab" * 20})

    real_client = httpx.Client
    monkeypatch.setattr(httpx, "Client", lambda **kw: real_client(transport=httpx.MockTransport(handler), **kw))

    adapter = ChainlinkRpcAdapter(["https://good.rpc"], "0xproxy")
    assert adapter.fetch_feed_address() == "0x" + "ab" * 20
    with pytest.raises(ValueError):
        decode_address("0x12")
