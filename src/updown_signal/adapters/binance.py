from __future__ import annotations
from typing import List, Optional

import httpx

from updown_signal.models import Candle, PriceTick


class BinanceAdapter:
    def __init__(self, base_url: str = "https://api.binance.com", timeout: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.call_count = 0

    def _get(self, path: str, params: dict):
        with httpx.Client(timeout=self.timeout) as client:
            self.call_count += 1
            r = client.get(f"{self.base_url}{path}", params=params)
            r.raise_for_status()
            return r.json()

    @staticmethod
    def _to_candle(row: list) -> Candle:
        return Candle(
            open_time=int(row[0]),
            open=float(row[1]),
            high=float(row[2]),
            low=float(row[3]),
            close=float(row[4]),
            volume=float(row[5]),
            close_time=int(row[6]),
        )

    @classmethod
    def parse_klines(cls, rows: list, now_ms: Optional[int] = None) -> List[Candle]:
        candles = [cls._to_candle(r) for r in rows]
        # drop the in-progress candle so indicators only see closed bars
        if now_ms is not None:
            candles = [c for c in candles if c.close_time is None or c.close_time < now_ms]
        return candles

    def fetch_klines(self, symbol: str, interval: str, limit: int, now_ms: Optional[int] = None) -> List[Candle]:
        rows = self._get("/api/v3/klines", {"symbol": symbol, "interval": interval, "limit": str(limit)})
        return self.parse_klines(rows, now_ms=now_ms)

    def fetch_last_price(self, symbol: str) -> Optional[PriceTick]:
        data = self._get("/api/v3/ticker/price", {"symbol": symbol})
        try:
            px = float(data.get("price"))
        except (TypeError, ValueError):
            return None
        return PriceTick(price=px, source="binance_rest")
