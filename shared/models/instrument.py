"""Instrument：单个交易品种的聚合根（历史、持仓状态、交易流水）。"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from shared.models.history import BoundedHistory
from shared.models.models import PricePoint, Side, Transaction


@dataclass
class Instrument:
    """一个品种的全部可变状态，只由该品种自己的调度任务修改。

    Attributes
    ----------
    ticker:
        交易对，如 "BTC-USD"。
    account:
        该品种在网关侧的账户标识（例如 "BTC"）。
    holding:
        True 表示当前持有风险资产而非现金。
    initial_round:
        首次观察到下行信号之前为 True，用于屏蔽第一次上行信号。
    cooldown / cooldown_ticks:
        卖出后的冷却状态与已经过的 tick 数。
    """
    ticker: str
    account: str
    history: BoundedHistory
    holding: bool = False
    initial_round: bool = True
    cooldown: bool = False
    cooldown_ticks: int = 0
    transactions: list[Transaction] = field(default_factory=list)

    @classmethod
    def create(cls, ticker: str, account: str, capacity: int) -> "Instrument":
        return cls(ticker=ticker, account=account, history=BoundedHistory(capacity))

    def add_point(self, point: PricePoint) -> None:
        self.history.push(point)

    def add_transaction(self, txn: Transaction) -> None:
        self.transactions.append(txn)
        self.holding = txn.type == Side.BUY

    def last_transaction(self) -> Transaction | None:
        return self.transactions[-1] if self.transactions else None

    def arm_cooldown(self) -> None:
        self.cooldown = True
        self.cooldown_ticks = 0

    def net_profit(self) -> float:
        """按流水汇总的净值变化：买入记负、卖出记正（均扣手续费）。"""
        total = 0.0
        for t in self.transactions:
            if t.type == Side.BUY:
                total -= t.price + t.fee
            else:
                total += t.price - t.fee
        return total

    def snapshot(self) -> dict[str, Any]:
        """导出可 JSON 序列化的快照，供持久化协作方保存。"""
        return {
            "ticker": self.ticker,
            "account": self.account,
            "initial_round": self.initial_round,
            "cooldown": self.cooldown,
            "cooldown_ticks": self.cooldown_ticks,
            "history": [p.to_dict() for p in self.history],
            "transactions": [t.to_dict() for t in self.transactions],
        }

    def restore(self, snapshot: dict[str, Any]) -> None:
        """从快照恢复。

        历史按容量截断（保留最新的点）；`holding` 由最后一笔交易推导，
        保证与流水一致。
        """
        # 先全部解析，解析失败时不修改任何状态
        points = [PricePoint.from_dict(p) for p in snapshot.get("history") or []]
        txns = [Transaction.from_dict(t) for t in snapshot.get("transactions") or []]
        initial_round = bool(snapshot.get("initial_round", self.initial_round))
        cooldown = bool(snapshot.get("cooldown", False))
        cooldown_ticks = int(snapshot.get("cooldown_ticks", 0))

        self.history = BoundedHistory(self.history.capacity, points)
        self.transactions = txns
        last = self.last_transaction()
        self.holding = last is not None and last.type == Side.BUY
        self.initial_round = initial_round
        self.cooldown = cooldown
        self.cooldown_ticks = cooldown_ticks

    def state_label(self) -> str:
        return (
            f"holding={self.holding} initial={self.initial_round} "
            f"cooldown={self.cooldown}({self.cooldown_ticks}) points={len(self.history)}"
        )
