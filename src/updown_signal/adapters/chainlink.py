from __future__ import annotations
from typing import List, Optional

import httpx

from updown_signal.models import PriceTick

LATEST_ROUND_DATA = "0xfeaf968c"
# proxy -> current underlying aggregator, the contract that emits AnswerUpdated
AGGREGATOR = "0x245a7bfc"


def _word(data: str, i: int) -> int:
    return int(data[i * 64:(i + 1) * 64], 16)


def to_signed(value: int) -> int:
    return value - 2 ** 256 if value >= 2 ** 255 else value


def strip_hex(value: str) -> str:
    data = (value or "").lower()
    return data[2:] if data.startswith("0x") else data


def decode_latest_round(result_hex: str, decimals: int = 8) -> PriceTick:
    """Decode `latestRoundData()` -> (roundId, answer, startedAt, updatedAt, answeredInRound)."""
    data = strip_hex(result_hex)
    if len(data) < 64 * 5:
        raise ValueError("short latestRoundData result")

    answer = to_signed(_word(data, 1))
    updated_at = _word(data, 3)
    return PriceTick(price=answer / (10 ** decimals), updated_at=updated_at * 1000, source="chainlink_rpc")


def decode_address(result_hex: str) -> str:
    data = strip_hex(result_hex)
    if len(data) < 64:
        raise ValueError("short address result")
    return "0x" + data[24:64]


class ChainlinkRpcAdapter:
    def __init__(self, rpc_urls: List[str], aggregator: str, decimals: int = 8, timeout: float = 10.0):
        self.rpc_urls = [u for u in rpc_urls if u]
        self.aggregator = aggregator
        self.decimals = decimals
        self.timeout = timeout
        self.call_count = 0

    def _call(self, client: httpx.Client, url: str, data: str = LATEST_ROUND_DATA) -> str:
        self.call_count += 1
        body = {
            "jsonrpc": "2.0",
            "id": 1,
            "method": "eth_call",
            "params": [{"to": self.aggregator, "data": data}, "latest"],
        }
        r = client.post(url, json=body)
        r.raise_for_status()
        payload = r.json()
        if payload.get("error"):
            raise ValueError(f"rpc error: {payload['error']}")
        return str(payload.get("result") or "")

    def _first_ok(self, data: str, decode):
        last_err: Optional[Exception] = None
        with httpx.Client(timeout=self.timeout) as client:
            for url in self.rpc_urls:
                try:
                    return decode(self._call(client, url, data))
                except (httpx.HTTPError, ValueError) as e:
                    last_err = e
        raise last_err or ValueError("no rpc urls configured")

    def fetch_price(self) -> PriceTick:
        return self._first_ok(LATEST_ROUND_DATA, lambda result: decode_latest_round(result, self.decimals))

    def fetch_feed_address(self) -> str:
        return self._first_ok(AGGREGATOR, decode_address)
