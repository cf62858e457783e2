"""全局利润/手续费累计（唯一的跨品种共享可变状态）。"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

from shared.models.models import Side, Transaction
from shared.utils.precision import to_decimal


@dataclass(frozen=True)
class Totals:
    total_profit: float
    total_fees: float


def round_trip_profit(bought: Transaction, sold: Transaction) -> float:
    """profit = 卖价 - 卖出手续费 - 买价 - 买入手续费（十进制计算）。"""
    if bought.type != Side.BUY or sold.type != Side.SELL:
        raise ValueError("round trip must be a buy followed by a sell")
    d = to_decimal(sold.price) - to_decimal(sold.fee) - to_decimal(bought.price) - to_decimal(bought.fee)
    return float(d)


class ProfitLedger:
    """所有品种共享的累计器。

    每次修改都在同一把 asyncio.Lock 下完成，两个品种同时卖出也不会丢失更新。
    内部用 Decimal 累加，读出时转 float。
    """

    def __init__(self, total_profit: float = 0.0, total_fees: float = 0.0):
        self._profit = to_decimal(total_profit)
        self._fees = to_decimal(total_fees)
        self._lock = asyncio.Lock()

    @property
    def total_profit(self) -> float:
        return float(self._profit)

    @property
    def total_fees(self) -> float:
        return float(self._fees)

    def snapshot(self) -> Totals:
        return Totals(total_profit=self.total_profit, total_fees=self.total_fees)

    async def record(self, *, fee: float, profit: float | None = None) -> Totals:
        """记一笔成交：手续费总是累计，利润只在卖出时累计。"""
        async with self._lock:
            self._fees += to_decimal(fee)
            if profit is not None:
                self._profit += to_decimal(profit)
            return Totals(total_profit=float(self._profit), total_fees=float(self._fees))
