import asyncio
import json
import math
import threading
import time
from typing import Dict, Optional

import websockets

from updown_signal.engine.prices import clean_price
from updown_signal.models import PriceTick

# payload symbol -> observation name
SYMBOL_SOURCES = {
    "btc/usd": "polymarket_ws",
    "btcusdt": "binance_ws",
}


class RtdsPriceHook:
    """Background listener for the live-data socket.

    Readers call `last_tick` from the cycle; it never blocks on network I/O.
    """

    def __init__(self, url: str = "wss://ws-live-data.polymarket.com", max_age_s: float = 30.0):
        self.url = url
        self.max_age_s = max_age_s
        self._ticks: Dict[str, PriceTick] = {}
        self._received_at: Dict[str, float] = {}
        self._running = False
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    def start(self):
        if self._running:
            return
        self._running = True
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 2.0):
        self._running = False
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout)
        self._thread = None

    def last_tick(self, source: str, now: Optional[float] = None) -> Optional[PriceTick]:
        now = time.time() if now is None else now
        with self._lock:
            tick = self._ticks.get(source)
            received = self._received_at.get(source, 0.0)
        if tick is None:
            return None
        if self.max_age_s and now - received > self.max_age_s:
            return None
        return tick

    def _run(self):
        asyncio.run(self._run_async())

    async def _run_async(self):
        sub_msg = {
            "action": "subscribe",
            "subscriptions": [
                {
                    "topic": "crypto_prices_chainlink",
                    "type": "*",
                    "filters": '{"symbol":"btc/usd"}',
                },
                {
                    "topic": "crypto_prices",
                    "type": "update",
                    "filters": '{"symbol":"btcusdt"}',
                },
            ],
        }

        while self._running:
            try:
                async with websockets.connect(self.url, ping_interval=20, ping_timeout=20) as ws:
                    await ws.send(json.dumps(sub_msg))
                    while self._running:
                        msg = await ws.recv()
                        self._on_msg(msg)
            except (OSError, asyncio.TimeoutError, websockets.WebSocketException):
                await asyncio.sleep(1.0)

    def _on_msg(self, raw: str):
        try:
            obj = json.loads(raw)
        except ValueError:
            return
        payload = obj.get("payload") if isinstance(obj, dict) else None
        if not isinstance(payload, dict):
            return

        # snapshot frames carry a data list without a symbol
        if isinstance(payload.get("data"), list):
            return

        source = SYMBOL_SOURCES.get(str(payload.get("symbol", "")).lower())
        px = clean_price(payload.get("value"))
        if source is None or px is None:
            return

        ts = payload.get("timestamp")
        updated_at = int(ts) if isinstance(ts, (int, float)) and math.isfinite(ts) else None
        tick = PriceTick(price=px, updated_at=updated_at, source=source)
        with self._lock:
            self._ticks[source] = tick
            self._received_at[source] = time.time()
