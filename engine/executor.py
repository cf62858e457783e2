"""执行与记账：把 buy/sell 决策变成订单、交易记录与累计值更新。

要么三次查询 + 下单全部成功并记录交易，要么什么都不记录。
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, TypeVar

from algo.sizing.fixed_fraction import FixedFractionSizer
from engine.accounting import ProfitLedger, Totals, round_trip_profit
from market.gateway import MarketGateway
from shared.models.errors import ConsistencyError, GatewayError
from shared.models.instrument import Instrument
from shared.models.models import Action, Decision, OrderRequest, OrderResult, Side, Transaction
from shared.utils.precision import fee_for, round_cents
from shared.utils.trade_logger import TradeLogger, TradeRecord

logger = logging.getLogger("poller.executor")

T = TypeVar("T")


async def bounded_call(aw: Awaitable[T], timeout: float, what: str) -> T:
    """给单次网关调用加超时；超时同样视为 GatewayError。"""
    try:
        return await asyncio.wait_for(aw, timeout=timeout)
    except asyncio.TimeoutError as exc:
        raise GatewayError(f"{what} timed out after {timeout:.1f}s") from exc


@dataclass(frozen=True)
class ExecutionReport:
    transaction: Transaction
    order: OrderRequest
    order_result: OrderResult | None
    profit: float | None
    totals: Totals


class OrderExecutor:
    """订单执行器。

    Parameters
    ----------
    gateway:
        行情/下单网关。
    ledger:
        全局利润/手续费累计器。
    usd_account:
        计价货币账户。
    fee_rate:
        手续费率（例如 0.003）。
    sizer:
        下单数量计算。
    submit_orders:
        False 时只记录订单参数而不真正下单（paper 模式）。
    timeout_secs:
        单次网关调用超时。
    """

    def __init__(
        self,
        gateway: MarketGateway,
        ledger: ProfitLedger,
        *,
        usd_account: str = "USD",
        fee_rate: float = 0.003,
        sizer: FixedFractionSizer | None = None,
        submit_orders: bool = False,
        timeout_secs: float = 10.0,
        arm_cooldown: bool = False,
        mode: str = "paper",
        trade_logger: TradeLogger | None = None,
    ):
        self.gateway = gateway
        self.ledger = ledger
        self.usd_account = usd_account
        self.fee_rate = float(fee_rate)
        self.sizer = sizer or FixedFractionSizer()
        self.submit_orders = submit_orders
        self.timeout_secs = float(timeout_secs)
        self.arm_cooldown = arm_cooldown
        self.mode = mode
        self.trade_logger = trade_logger

    @staticmethod
    def _check_consistency(instrument: Instrument, decision: Decision) -> Transaction | None:
        """校验决策与持仓一致；卖出时返回对应的买入记录，买入时返回 None。"""
        last = instrument.last_transaction()
        if decision.action == Action.BUY:
            if instrument.holding:
                raise ConsistencyError("buy decided while already holding")
            return None
        if not instrument.holding:
            raise ConsistencyError("sell decided while not holding")
        if last is None or last.type != Side.BUY:
            raise ConsistencyError("last transaction was not a buy")
        return last

    async def execute(self, instrument: Instrument, decision: Decision) -> ExecutionReport:
        """执行决策。

        Raises
        ------
        ConsistencyError
            决策与持仓状态/交易流水不一致（不会修改任何状态）。
        GatewayError
            任一网关调用失败或超时（不会记录任何交易）。
        """
        if not decision.actionable:
            raise ValueError(f"decision is not actionable: {decision.action}")
        bought = self._check_consistency(instrument, decision)
        name = instrument.ticker

        # 三个互相独立的查询并发执行，任何一个失败整个动作失败
        book, usd, coin = await asyncio.gather(
            bounded_call(self.gateway.get_order_book(name), self.timeout_secs, f"{name} order book"),
            bounded_call(self.gateway.get_account_balance(self.usd_account), self.timeout_secs, "USD balance"),
            bounded_call(self.gateway.get_account_balance(instrument.account), self.timeout_secs, f"{instrument.account} balance"),
        )

        if decision.action == Action.BUY:
            order = OrderRequest(side=Side.BUY, ticker=name, funds=self.sizer.buy_funds(usd_available=usd.available))
            price = round_cents(book.ask)
        else:
            order = OrderRequest(side=Side.SELL, ticker=name, size=self.sizer.sell_size(coin_available=coin.available))
            price = round_cents(book.bid)
        logger.info("[%s] Order params: %s", name, order.to_dict())

        result: OrderResult | None = None
        if self.submit_orders:
            if (order.funds is not None and order.funds <= 0) or (order.size is not None and order.size <= 0):
                raise GatewayError(f"Nothing to trade for {name}: {order.to_dict()}")
            result = await bounded_call(self.gateway.place_market_order(order), self.timeout_secs, f"{name} order")
            logger.info("[%s] Order result: id=%s status=%s", name, result.order_id, result.status)

        # 以下只在全部网关调用成功后执行
        fee = fee_for(price, self.fee_rate)
        txn = Transaction(type=order.side, price=price, fee=fee)
        instrument.add_transaction(txn)

        profit: float | None = None
        if bought is not None:
            profit = round_trip_profit(bought, txn)
            if self.arm_cooldown:
                instrument.arm_cooldown()
        totals = await self.ledger.record(fee=fee, profit=profit)

        if txn.type == Side.BUY:
            logger.info("[%s] Paid USD @ %.2f/coin and %.2f fee", name, txn.price, txn.fee)
        else:
            logger.info(
                "[%s] Sold for USD @ %.2f/coin and %.2f fee | TX profit %.2f | total profit %.2f | total fees %.2f",
                name,
                txn.price,
                txn.fee,
                profit,
                totals.total_profit,
                totals.total_fees,
            )

        if self.trade_logger:
            self.trade_logger.log(
                TradeRecord(
                    ts=txn.timestamp,
                    ticker=name,
                    side=txn.type.value,
                    price=txn.price,
                    fee=txn.fee,
                    profit=profit,
                    total_profit=totals.total_profit,
                    total_fees=totals.total_fees,
                    mode=self.mode,
                )
            )

        return ExecutionReport(transaction=txn, order=order, order_result=result, profit=profit, totals=totals)
