"""运行状态汇总与终端展示（rich）。"""

from __future__ import annotations

from typing import Any

from rich import box
from rich.console import Console
from rich.table import Table

RECENT_ITEMS = 10


def build_status(engine) -> dict[str, Any]:
    """从引擎提取可序列化的状态快照。

    Parameters
    ----------
    engine:
        已完成 setup 的 TradingEngine。

    Returns
    -------
    dict
        配置周期、策略预热所需点数、累计值，以及每个品种的持仓状态与最近的报价/交易。
    """
    cfg = engine.cfg
    totals = engine.ledger.snapshot()
    instruments: dict[str, Any] = {}
    for name, inst in engine.instruments.items():
        instruments[name] = {
            "account": inst.account,
            "holding": inst.holding,
            "initial_round": inst.initial_round,
            "cooldown": inst.cooldown,
            "cooldown_ticks": inst.cooldown_ticks,
            "history_length": len(inst.history),
            "transaction_count": len(inst.transactions),
            "net_profit": round(inst.net_profit(), 2),
            "recent_points": [p.to_dict() for p in list(inst.history)[:RECENT_ITEMS]],
            "recent_transactions": [t.to_dict() for t in inst.transactions[-RECENT_ITEMS:]],
        }
    return {
        "mode": cfg.mode if cfg else None,
        "strategy": cfg.strategy.type if cfg else None,
        "poll_interval_ms": cfg.poll_interval_ms if cfg else None,
        "short_periods": cfg.short_periods if cfg else None,
        "long_periods": cfg.long_periods if cfg else None,
        "warmup_points": engine.strategy.required_points() if engine.strategy else None,
        "total_profit": totals.total_profit,
        "total_fees": totals.total_fees,
        "instruments": instruments,
    }


def render_status(status: dict[str, Any], console: Console | None = None) -> None:
    console = console or Console()

    header = Table(title="Poller status", box=box.ROUNDED)
    header.add_column("Mode", style="cyan")
    header.add_column("Strategy")
    header.add_column("Poll (ms)", justify="right")
    header.add_column("Periods", justify="right")
    header.add_column("Warmup", justify="right")
    header.add_column("Total profit", justify="right", style="green")
    header.add_column("Total fees", justify="right", style="red")
    header.add_row(
        str(status.get("mode")),
        str(status.get("strategy")),
        str(status.get("poll_interval_ms")),
        f"{status.get('short_periods')}/{status.get('long_periods')}",
        str(status.get("warmup_points")),
        f"{status.get('total_profit', 0.0):.2f}",
        f"{status.get('total_fees', 0.0):.2f}",
    )
    console.print(header)

    table = Table(title="Instruments", box=box.ROUNDED)
    table.add_column("Ticker", style="cyan", no_wrap=True)
    table.add_column("Holding", justify="center")
    table.add_column("Initial", justify="center")
    table.add_column("Cooldown", justify="center")
    table.add_column("Points", justify="right")
    table.add_column("Txns", justify="right")
    table.add_column("Net", justify="right", style="yellow")
    table.add_column("Last bid/ask", justify="right")
    for name, inst in status.get("instruments", {}).items():
        points = inst.get("recent_points") or []
        last = f"{points[0]['bid']:.2f}/{points[0]['ask']:.2f}" if points else "-"
        cooldown = f"{inst['cooldown_ticks']}" if inst.get("cooldown") else "-"
        table.add_row(
            name,
            "yes" if inst.get("holding") else "no",
            "yes" if inst.get("initial_round") else "no",
            cooldown,
            str(inst.get("history_length", 0)),
            str(inst.get("transaction_count", 0)),
            f"{inst.get('net_profit', 0.0):.2f}",
            last,
        )
    console.print(table)

    for name, inst in status.get("instruments", {}).items():
        txns = inst.get("recent_transactions") or []
        if not txns:
            continue
        t = Table(title=f"{name} recent transactions", box=box.SIMPLE)
        t.add_column("Time")
        t.add_column("Side")
        t.add_column("Price", justify="right")
        t.add_column("Fee", justify="right")
        for txn in txns:
            t.add_row(str(txn["timestamp"]), txn["type"], f"{txn['price']:.2f}", f"{txn['fee']:.2f}")
        console.print(t)
