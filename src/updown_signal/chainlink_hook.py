import asyncio
import json
import threading
import time
from typing import Callable, Optional

import httpx
import websockets

from updown_signal.adapters.chainlink import strip_hex, to_signed
from updown_signal.engine.prices import clean_price
from updown_signal.models import PriceTick

SOURCE = "chainlink_ws"
# keccak256("AnswerUpdated(int256,uint256,uint256)")
ANSWER_UPDATED = "0x0559884fd3a460db3073b7fc896cc77986f16e378210ded43186175bf646fc5f"


def decode_answer_updated(log: dict, decimals: int = 8) -> Optional[PriceTick]:
    """AnswerUpdated log: topics = [sig, current, roundId], data = updatedAt."""
    topics = log.get("topics") or []
    if len(topics) < 2 or str(topics[0]).lower() != ANSWER_UPDATED:
        return None
    try:
        answer = to_signed(int(strip_hex(str(topics[1])) or "0", 16))
        data = strip_hex(str(log.get("data") or ""))
        updated_at = int(data[:64], 16) * 1000 if len(data) >= 64 else None
    except ValueError:
        return None
    px = clean_price(answer / (10 ** decimals))
    if px is None:
        return None
    return PriceTick(price=px, updated_at=updated_at, source=SOURCE)


class ChainlinkStreamHook:
    """Background `eth_subscribe` listener for aggregator AnswerUpdated logs.

    The feed proxy does not emit the event itself, so when no feed address is
    configured the current aggregator is looked up through `resolve_address`
    before subscribing.
    """

    def __init__(
        self,
        url: str,
        address: str = "",
        decimals: int = 8,
        max_age_s: float = 120.0,
        resolve_address: Optional[Callable[[], str]] = None,
    ):
        self.url = url
        self.address = address
        self.decimals = decimals
        self.max_age_s = max_age_s
        self.resolve_address = resolve_address
        self._tick: Optional[PriceTick] = None
        self._received_at = 0.0
        self._running = False
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    def start(self):
        if self._running or not self.url:
            return
        self._running = True
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 2.0):
        self._running = False
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout)
        self._thread = None

    def last_tick(self, source: str = SOURCE, now: Optional[float] = None) -> Optional[PriceTick]:
        if source != SOURCE:
            return None
        now = time.time() if now is None else now
        with self._lock:
            tick = self._tick
            received = self._received_at
        if tick is None:
            return None
        if self.max_age_s and now - received > self.max_age_s:
            return None
        return tick

    def _run(self):
        asyncio.run(self._run_async())

    async def _feed_address(self) -> str:
        if not self.address and self.resolve_address is not None:
            self.address = await asyncio.to_thread(self.resolve_address)
        return self.address

    async def _run_async(self):
        while self._running:
            try:
                address = await self._feed_address()
                sub_msg = {
                    "jsonrpc": "2.0",
                    "id": 1,
                    "method": "eth_subscribe",
                    "params": ["logs", {"address": address, "topics": [ANSWER_UPDATED]}],
                }
                async with websockets.connect(self.url, ping_interval=20, ping_timeout=20) as ws:
                    await ws.send(json.dumps(sub_msg))
                    while self._running:
                        msg = await ws.recv()
                        self._on_msg(msg)
            except (OSError, asyncio.TimeoutError, websockets.WebSocketException, httpx.HTTPError, ValueError):
                await asyncio.sleep(1.0)

    def _on_msg(self, raw: str):
        try:
            obj = json.loads(raw)
        except ValueError:
            return
        # subscription acks carry `result` at the top level, notifications carry `params`
        params = obj.get("params") if isinstance(obj, dict) else None
        if not isinstance(params, dict) or obj.get("method") != "eth_subscription":
            return
        log = params.get("result")
        if not isinstance(log, dict) or log.get("removed"):
            return
        tick = decode_answer_updated(log, self.decimals)
        if tick is None:
            return
        with self._lock:
            self._tick = tick
            self._received_at = time.time()
