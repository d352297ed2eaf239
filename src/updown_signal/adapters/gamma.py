from __future__ import annotations
import json
from typing import List, Optional

import httpx

from updown_signal.engine.prices import clean_price
from updown_signal.models import MarketPrices, MarketSnapshot, MarketWindow
from updown_signal.timing import parse_iso_ms


def _outcome_prices(m: dict) -> Optional[List[float]]:
    prices = m.get("outcomePrices")
    if isinstance(prices, str):
        try:
            prices = json.loads(prices)
        except ValueError:
            return None
    if not isinstance(prices, list) or len(prices) < 2:
        return None
    out = [clean_price(p) for p in prices[:2]]
    if any(p is None for p in out):
        return None
    return out


def to_snapshot(m: Optional[dict]) -> MarketSnapshot:
    if not m:
        return MarketSnapshot(ok=False, reason="market_not_found")

    market_id = str(m.get("id") or "")
    slug = str(m.get("slug") or "")
    end_date = str(m.get("endDate") or "")
    prices = _outcome_prices(m)
    if not (market_id or slug) or not end_date or prices is None:
        return MarketSnapshot(ok=False, reason="malformed_market")

    return MarketSnapshot(
        ok=True,
        market=MarketWindow(
            id=market_id,
            slug=slug,
            question=str(m.get("question", "")),
            end_date=end_date,
            outcome_prices=prices,
        ),
        prices=MarketPrices(up=prices[0], down=prices[1]),
    )


def flatten_event_markets(events: list) -> List[dict]:
    out: List[dict] = []
    for ev in events or []:
        for m in (ev or {}).get("markets") or []:
            if not isinstance(m, dict):
                continue
            # inherit window bounds from the parent event when the market omits them
            out.append({
                **m,
                "endDate": m.get("endDate") or ev.get("endDate"),
                "eventStartTime": m.get("eventStartTime") or ev.get("startTime"),
            })
    return out


def pick_latest_live_market(markets: List[dict], now_ms: int) -> Optional[dict]:
    live = []
    for m in markets:
        if m.get("closed"):
            continue
        end = parse_iso_ms(str(m.get("endDate") or ""))
        if end is None or end <= now_ms:
            continue
        start = parse_iso_ms(str(m.get("eventStartTime") or ""))
        if start is not None and start > now_ms:
            continue
        live.append((end, m))
    if not live:
        return None
    live.sort(key=lambda x: x[0])
    return live[0][1]


class GammaAdapter:
    def __init__(self, base_url: str, timeout: float = 15.0):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.call_count = 0

    def _counted_get(self, client: httpx.Client, url: str, **kwargs):
        self.call_count += 1
        return client.get(url, **kwargs)

    def fetch_market_by_slug(self, slug: str) -> Optional[dict]:
        with httpx.Client(timeout=self.timeout) as client:
            r = self._counted_get(client, f"{self.base_url}/markets", params={"slug": slug})
            r.raise_for_status()
            arr = r.json()
        return arr[0] if isinstance(arr, list) and arr else None

    def fetch_live_events_by_series(self, series_id: str, limit: int = 25) -> list:
        params = {"series_id": series_id, "active": "true", "closed": "false", "limit": str(limit)}
        with httpx.Client(timeout=self.timeout) as client:
            r = self._counted_get(client, f"{self.base_url}/events", params=params)
            r.raise_for_status()
            arr = r.json()
        return arr if isinstance(arr, list) else []

    def fetch_snapshot(self, now_ms: int, slug: str = "", series_id: str = "") -> MarketSnapshot:
        if slug:
            market = self.fetch_market_by_slug(slug)
        elif series_id:
            market = pick_latest_live_market(flatten_event_markets(self.fetch_live_events_by_series(series_id)), now_ms)
        else:
            return MarketSnapshot(ok=False, reason="no_market_selector")
        return to_snapshot(market)
