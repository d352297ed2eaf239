import asyncio
from typing import Optional

from rich import print

from updown_signal.adapters.binance import BinanceAdapter
from updown_signal.adapters.chainlink import ChainlinkRpcAdapter
from updown_signal.adapters.gamma import GammaAdapter
from updown_signal.chainlink_hook import ChainlinkStreamHook
from updown_signal.engine.prices import resolve_price
from updown_signal.models import CycleInputs, CycleRecord, CycleState
from updown_signal.pipeline import evaluate_cycle
from updown_signal.render import render_frame
from updown_signal.rtds_hook import RtdsPriceHook
from updown_signal.timing import now_ms
from updown_signal.utils.storage import SIGNALS_HEADER, append_csv_row, append_event, load_stats, save_stats, signal_row

RTDS_SOURCES = ("polymarket_ws", "binance_ws")
CHAINLINK_SOURCES = ("chainlink_ws",)


class SignalLoop:
    def __init__(
        self,
        cfg: dict,
        hook: Optional[RtdsPriceHook] = None,
        binance: Optional[BinanceAdapter] = None,
        chainlink: Optional[ChainlinkRpcAdapter] = None,
        gamma: Optional[GammaAdapter] = None,
        chainlink_hook: Optional[ChainlinkStreamHook] = None,
    ):
        self.cfg = cfg
        self.hook = hook
        self.chainlink_hook = chainlink_hook
        self.binance = binance or BinanceAdapter(cfg["binance"]["base_url"])
        ch = cfg["chainlink"]
        self.chainlink = chainlink or ChainlinkRpcAdapter(ch["rpc_urls"], ch["aggregator"], int(ch.get("decimals", 8)))
        self.gamma = gamma or GammaAdapter(cfg["gamma"]["base_url"])

        storage = cfg["storage"]
        self.events_path = storage["events_path"]
        self.signals_csv = storage["signals_csv"]
        self.stats_path = storage["stats_path"]
        self.persist = bool(cfg["sim"].get("persist", False))

        state = CycleState()
        if self.persist:
            state.stats = load_stats(self.stats_path)
            # an open trade cannot be settled against a window we did not watch
            state.stats.active_trade = None
        self.state = state
        self.last_record: Optional[CycleRecord] = None

    async def fetch_inputs(self, at_ms: int) -> CycleInputs:
        # stream reads are taken once, at cycle start
        observations = {}
        for hook, names in ((self.hook, RTDS_SOURCES), (self.chainlink_hook, CHAINLINK_SOURCES)):
            if hook is not None:
                observations.update({name: hook.last_tick(name) for name in names})
        need_oracle_poll = resolve_price(observations, self.cfg["sources"]["current_priority"]) is None

        symbol = self.cfg["app"]["symbol"]
        ind = self.cfg["indicators"]
        gcfg = self.cfg["gamma"]
        calls = [
            asyncio.to_thread(self.binance.fetch_klines, symbol, "1m", int(ind["candle_limit_1m"]), at_ms),
            asyncio.to_thread(self.binance.fetch_klines, symbol, "5m", int(ind["candle_limit_5m"]), at_ms),
            asyncio.to_thread(self.binance.fetch_last_price, symbol),
            asyncio.to_thread(self.gamma.fetch_snapshot, at_ms, gcfg.get("market_slug", ""), gcfg.get("series_id", "")),
        ]
        if need_oracle_poll:
            calls.append(asyncio.to_thread(self.chainlink.fetch_price))

        results = await asyncio.gather(*calls)
        klines_1m, klines_5m, last_price, market = results[:4]
        observations["binance_rest"] = last_price
        if need_oracle_poll:
            observations["chainlink_rpc"] = results[4]

        return CycleInputs(candles_1m=klines_1m, candles_5m=klines_5m, observations=observations, market=market)

    async def run_cycle(self) -> Optional[CycleRecord]:
        at = now_ms()
        try:
            inputs = await self.fetch_inputs(at)
            record, self.state = evaluate_cycle(inputs, self.state, self.cfg, at)
            # state is committed before any write
            for ev in record.events:
                append_event(self.events_path, ev)
            append_csv_row(self.signals_csv, SIGNALS_HEADER, signal_row(record))
            if self.persist:
                save_stats(self.stats_path, self.state.stats)
        except Exception as e:
            print(f"[red]Error:[/red] {e}")
            append_event(self.events_path, {"type": "cycle_error", "error": str(e)})
            return None

        self.last_record = record
        return record

    async def run_forever(self):
        interval = float(self.cfg["app"]["poll_interval_s"])
        for hook in (self.hook, self.chainlink_hook):
            if hook is not None:
                hook.start()
        while True:
            record = await self.run_cycle()
            frame = record or self.last_record
            if frame is not None:
                print(render_frame(frame))
            await asyncio.sleep(interval)


def build_loop(cfg: dict) -> SignalLoop:
    rt = cfg["rtds"]
    ch = cfg["chainlink"]
    chainlink = ChainlinkRpcAdapter(ch["rpc_urls"], ch["aggregator"], int(ch.get("decimals", 8)))
    chainlink_hook = ChainlinkStreamHook(
        ch.get("ws_url", ""),
        address=ch.get("ws_feed_address", ""),
        decimals=int(ch.get("decimals", 8)),
        max_age_s=float(ch.get("ws_max_age_s", 120.0)),
        resolve_address=chainlink.fetch_feed_address,
    )
    return SignalLoop(
        cfg,
        hook=RtdsPriceHook(rt["url"], float(rt.get("max_age_s", 30.0))),
        chainlink=chainlink,
        chainlink_hook=chainlink_hook,
    )
