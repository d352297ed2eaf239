from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

UP = "UP"
DOWN = "DOWN"


class Candle(BaseModel):
    open_time: int
    open: float
    high: float
    low: float
    close: float
    volume: float
    close_time: Optional[int] = None


class PriceTick(BaseModel):
    price: float
    updated_at: Optional[int] = None  # ms
    source: str = ""


class ResolvedPrices(BaseModel):
    current: Optional[PriceTick] = None  # oracle-class, used for anchoring/settlement
    spot: Optional[PriceTick] = None  # exchange-class, used for gap detection

    @property
    def current_price(self) -> Optional[float]:
        return self.current.price if self.current else None

    @property
    def spot_price(self) -> Optional[float]:
        return self.spot.price if self.spot else None


class MacdResult(BaseModel):
    macd_line: float
    signal_line: float
    histogram: float
    hist_delta: Optional[float] = None


class HeikenCandle(BaseModel):
    open: float
    high: float
    low: float
    close: float
    is_green: bool


class HeikenRun(BaseModel):
    color: Optional[str] = None  # green / red, None when there are no candles
    count: int = 0


class IndicatorSnapshot(BaseModel):
    vwap: Optional[float] = None
    vwap_slope: Optional[float] = None
    vwap_crosses: Optional[int] = None
    rsi: Optional[float] = None
    rsi_slope: Optional[float] = None
    macd: Optional[MacdResult] = None
    heiken_color: Optional[str] = None
    heiken_count: int = 0


class ProbabilityEstimate(BaseModel):
    raw_up: float
    raw_down: float
    adjusted_up: float
    adjusted_down: float
    time_decay: Optional[float] = None  # remaining / window, clamped to [0, 1]
    up_score: float = 0.0
    down_score: float = 0.0


class EdgeResult(BaseModel):
    market_up: Optional[float] = None
    market_down: Optional[float] = None
    edge_up: Optional[float] = None
    edge_down: Optional[float] = None


class Decision(BaseModel):
    action: str  # ENTER / NO_TRADE
    side: Optional[str] = None
    phase: Optional[str] = None  # EARLY / MID / LATE
    reason: str = ""


class MarketWindow(BaseModel):
    id: str = ""
    slug: str = ""
    question: str = ""
    end_date: str = ""
    outcome_prices: List[float] = Field(default_factory=list)

    @property
    def key(self) -> str:
        return self.id or self.slug


class MarketPrices(BaseModel):
    up: Optional[float] = None
    down: Optional[float] = None


class MarketSnapshot(BaseModel):
    ok: bool
    market: Optional[MarketWindow] = None
    prices: Optional[MarketPrices] = None
    reason: Optional[str] = None


class SignalKind(str, Enum):
    LOCKED = "LOCKED"
    FINALIZED = "FINALIZED"
    ARBITRAGE = "ARBITRAGE"
    STRONG_LONG = "STRONG_LONG"
    STRONG_SHORT = "STRONG_SHORT"
    REVERSAL = "REVERSAL"
    CHOPPY = "CHOPPY"
    MONITORING = "MONITORING"


class StrategySignal(BaseModel):
    kind: SignalKind
    side: Optional[str] = None
    label: str

    @property
    def is_strong(self) -> bool:
        return self.kind in (SignalKind.STRONG_LONG, SignalKind.STRONG_SHORT)


class PriceToBeatState(BaseModel):
    slug: Optional[str] = None
    value: Optional[float] = None
    set_at_ms: Optional[int] = None


class SimulationTrade(BaseModel):
    side: str  # UP / DOWN
    price_to_beat: float
    market_id: str
    opened_at_ms: Optional[int] = None


class SimulationStats(BaseModel):
    total_trades: int = 0
    wins: int = 0
    losses: int = 0
    pushes: int = 0
    last_market_id: Optional[str] = None
    active_trade: Optional[SimulationTrade] = None


class CycleState(BaseModel):
    anchor: PriceToBeatState = Field(default_factory=PriceToBeatState)
    stats: SimulationStats = Field(default_factory=SimulationStats)


class CycleInputs(BaseModel):
    candles_1m: List[Candle] = Field(default_factory=list)
    candles_5m: List[Candle] = Field(default_factory=list)
    observations: Dict[str, Optional[PriceTick]] = Field(default_factory=dict)
    market: MarketSnapshot = Field(default_factory=lambda: MarketSnapshot(ok=False, reason="not_fetched"))


class CycleRecord(BaseModel):
    timestamp_ms: int
    market_slug: Optional[str] = None
    market_id: Optional[str] = None
    time_left_min: Optional[float] = None
    elapsed_min: float = 0.0
    current_price: Optional[float] = None
    current_source: Optional[str] = None
    spot_price: Optional[float] = None
    spot_source: Optional[str] = None
    price_gap: Optional[float] = None
    price_to_beat: Optional[float] = None
    ptb_delta: Optional[float] = None
    indicators: IndicatorSnapshot
    heiken_5m: HeikenRun = Field(default_factory=HeikenRun)
    delta1: Optional[float] = None
    delta3: Optional[float] = None
    last_close: Optional[float] = None
    regime: Optional[str] = None
    probability: ProbabilityEstimate
    market_up: Optional[float] = None
    market_down: Optional[float] = None
    edge: EdgeResult
    decision: Decision
    signal: StrategySignal
    stats: SimulationStats
    events: List[dict] = Field(default_factory=list)
