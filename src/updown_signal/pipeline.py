"""One decision cycle over a consistent set of inputs.

`evaluate_cycle` never mutates the state it is given: it works on a deep copy
and returns the updated state next to the output record, so the caller owns
the only live instance.
"""
from typing import Tuple

from updown_signal.engine.edge import compute_edge, decide
from updown_signal.engine.indicators import build_snapshot, compute_heiken_ashi, count_consecutive, price_deltas
from updown_signal.engine.prices import aggregate_prices, clean_price
from updown_signal.engine.probability import apply_time_awareness, score_direction
from updown_signal.engine.regime import detect_regime
from updown_signal.engine.strategy import classify
from updown_signal.models import CycleInputs, CycleRecord, CycleState
from updown_signal.sim.paper import maybe_open_trade, observe_market, settle_on_rollover
from updown_signal.timing import minutes_until, window_timing


def evaluate_cycle(inputs: CycleInputs, state: CycleState, cfg: dict, now_ms: int) -> Tuple[CycleRecord, CycleState]:
    state = state.model_copy(deep=True)
    window_minutes = float(cfg["app"]["window_minutes"])
    src = cfg["sources"]

    prices = aggregate_prices(inputs.observations, src["current_priority"], src["spot_priority"])
    current_price = prices.current_price
    spot_price = prices.spot_price

    market = inputs.market.market if inputs.market.ok else None
    market_up = market_down = None
    if inputs.market.ok and inputs.market.prices is not None:
        market_up = clean_price(inputs.market.prices.up)
        market_down = clean_price(inputs.market.prices.down)

    timing = window_timing(window_minutes, now_ms)
    time_left = minutes_until(market.end_date, now_ms) if market else None
    if time_left is None:
        time_left = timing.remaining_minutes
    time_left = max(0.0, time_left)

    candles = inputs.candles_1m
    closes = [c.close for c in candles]
    snap = build_snapshot(candles, cfg["indicators"])
    delta1, delta3 = price_deltas(closes)

    pcfg = cfg["probability"]
    up_score, down_score, raw_up = score_direction(snap, spot_price, pcfg)
    prob = apply_time_awareness(
        raw_up,
        time_left,
        window_minutes,
        sharpness=float(pcfg.get("sharpness", 2.5)),
        neutral_band=float(pcfg.get("neutral_band", 0.02)),
    )
    prob.up_score = up_score
    prob.down_score = down_score

    edge = compute_edge(prob.adjusted_up, prob.adjusted_down, market_up, market_down)
    decision = decide(time_left, prob.adjusted_up, prob.adjusted_down, cfg["decision"])

    market_id = market.key if market else None
    market_slug = (market.slug or market.key) if market else None

    events = settle_on_rollover(state.stats, market_id, current_price, cfg["sim"].get("tie_outcome", "loss"))
    anchored = observe_market(state.anchor, market_slug, current_price, now_ms)
    if anchored:
        events.append(anchored)

    signal = classify(
        rsi=snap.rsi,
        delta1=delta1,
        delta3=delta3,
        heiken_color=snap.heiken_color,
        remaining_minutes=time_left,
        model_up=prob.adjusted_up,
        model_down=prob.adjusted_down,
        market_up=market_up,
        market_down=market_down,
        spot_price=spot_price,
        current_price=current_price,
        cfg=cfg["strategy"],
    )

    trade = maybe_open_trade(state.stats, signal, market_id, market_slug, state.anchor, now_ms)
    if trade:
        events.append({"type": "sim_open", **trade.model_dump()})

    price_to_beat = state.anchor.value if market_slug and state.anchor.slug == market_slug else None
    record = CycleRecord(
        timestamp_ms=now_ms,
        market_slug=market_slug,
        market_id=market_id,
        time_left_min=time_left,
        elapsed_min=timing.elapsed_minutes,
        current_price=current_price,
        current_source=prices.current.source if prices.current else None,
        spot_price=spot_price,
        spot_source=prices.spot.source if prices.spot else None,
        price_gap=(spot_price - current_price) if spot_price is not None and current_price is not None else None,
        price_to_beat=price_to_beat,
        ptb_delta=(current_price - price_to_beat) if current_price is not None and price_to_beat is not None else None,
        indicators=snap,
        heiken_5m=count_consecutive(compute_heiken_ashi(inputs.candles_5m)),
        delta1=delta1,
        delta3=delta3,
        last_close=closes[-1] if closes else None,
        regime=detect_regime(spot_price, snap.vwap, float(cfg["regime"].get("epsilon_pct", 0.0005))),
        probability=prob,
        market_up=market_up,
        market_down=market_down,
        edge=edge,
        decision=decision,
        signal=signal,
        stats=state.stats.model_copy(deep=True),
        events=events,
    )
    return record, state
