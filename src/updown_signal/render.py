from typing import Optional

from updown_signal.models import DOWN, UP, CycleRecord, SignalKind, StrategySignal
from updown_signal.sim.paper import win_rate

_KIND_STYLE = {
    SignalKind.LOCKED: "bold",
    SignalKind.FINALIZED: "bold yellow",
    SignalKind.ARBITRAGE: "bold",
    SignalKind.STRONG_LONG: "bold green",
    SignalKind.STRONG_SHORT: "bold red",
    SignalKind.REVERSAL: "bold",
    SignalKind.CHOPPY: "yellow",
    SignalKind.MONITORING: "cyan",
}


def _num(x: Optional[float], decimals: int = 2) -> str:
    return "-" if x is None else f"{x:,.{decimals}f}"


def _pct(p: Optional[float]) -> str:
    return "-" if p is None else f"{p * 100:.0f}%"


def fmt_time_left(minutes: Optional[float]) -> str:
    if minutes is None:
        return "--:--"
    total = max(0, int(minutes * 60))
    return f"{total // 60:02d}:{total % 60:02d}"


def signal_markup(signal: StrategySignal) -> str:
    style = _KIND_STYLE[signal.kind]
    if style == "bold" and signal.side == UP:
        style = "bold green"
    elif style == "bold" and signal.side == DOWN:
        style = "bold red"
    return f"[{style}]{signal.label}[/{style}]"


def _signed(delta: Optional[float]) -> str:
    if delta is None:
        return "-"
    return f"{'+' if delta > 0 else ''}{delta:,.2f}"


def _decision_text(record: CycleRecord) -> str:
    d = record.decision
    if d.action != "ENTER":
        return f"NO_TRADE ({d.phase or '-'})"
    return f"ENTER {d.side} ({d.phase})"


def render_frame(record: CycleRecord) -> str:
    ind = record.indicators
    stats = record.stats
    prob = record.probability
    status = (
        f"[green]IN TRADE ({stats.active_trade.side})[/green]" if stats.active_trade else "[bright_black]SCANNING...[/bright_black]"
    )
    ha = f"{ind.heiken_color} x{ind.heiken_count}" if ind.heiken_color else "-"
    ha5 = f"{record.heiken_5m.color} x{record.heiken_5m.count}" if record.heiken_5m.color else "-"
    lines = [
        f"[bold]Market:[/bold]        {record.market_slug or '-'}",
        f"[bold]Time left:[/bold]     {fmt_time_left(record.time_left_min)}",
        f"[bold]Win rate:[/bold]      {win_rate(stats):.1f}% ({stats.wins}W - {stats.losses}L)",
        f"[bold]Status:[/bold]        {status}",
        f"[bold]Action:[/bold]        {signal_markup(record.signal)}",
        f"[bold]TA predict:[/bold]    [green]LONG {_pct(prob.adjusted_up)}[/green] / [red]SHORT {_pct(prob.adjusted_down)}[/red]",
        f"[bold]Heiken Ashi:[/bold]   {ha} (5m {ha5})",
        f"[bold]RSI:[/bold]           {_num(ind.rsi, 1)} (slope {_num(ind.rsi_slope, 2)})",
        f"[bold]Delta 1/3:[/bold]     {_signed(record.delta1)} | {_signed(record.delta3)}",
        f"[bold]Regime:[/bold]        {record.regime or '-'}",
        f"[bold]Market UP/DOWN:[/bold] {_num(record.market_up, 3)} / {_num(record.market_down, 3)}",
        f"[bold]Edge UP/DOWN:[/bold]  {_num(record.edge.edge_up, 3)} / {_num(record.edge.edge_down, 3)}",
        f"[bold]Recommend:[/bold]     {_decision_text(record)}",
        f"[bold]Price to beat:[/bold] ${_num(record.price_to_beat, 0)}",
        f"[bold]Current:[/bold]       ${_num(record.current_price)} ({_signed(record.ptb_delta)})",
        f"[bold]Spot:[/bold]          ${_num(record.spot_price, 0)} gap {_num(record.price_gap)} USD",
    ]
    return "\n".join(lines)
