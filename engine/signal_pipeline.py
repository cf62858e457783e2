"""单品种单周期管线（拉取报价 -> 写入历史 -> 策略 -> 状态机 -> 执行）。

顺序保证：历史更新完成后才评估策略，评估完成后才决策与执行。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from algo.strategy.base import Strategy
from engine.executor import ExecutionReport, OrderExecutor, bounded_call
from market.gateway import MarketGateway
from shared.models.errors import ConsistencyError, GatewayError
from shared.models.instrument import Instrument
from shared.models.models import Decision, PricePoint, ReasonCode

logger = logging.getLogger("poller.pipeline")


@dataclass(frozen=True)
class CycleReport:
    """一次周期的结果（仅用于日志/测试，不持久化）。"""
    ticker: str
    decision: Decision
    point: PricePoint | None = None
    execution: ExecutionReport | None = None


async def fetch_point(gateway: MarketGateway, ticker: str, timeout: float) -> PricePoint:
    book = await bounded_call(gateway.get_order_book(ticker), timeout, f"{ticker} price fetch")
    return book.to_point()


async def run_cycle(
    *,
    instrument: Instrument,
    strategy: Strategy,
    gateway: MarketGateway,
    executor: OrderExecutor,
    timeout: float,
) -> CycleReport:
    """执行一个完整周期。

    ConsistencyError / GatewayError 会中止本周期并转成 `Decision.error(...)`，
    不会向调度器抛出；其余异常视为程序错误，照常向上抛。
    """
    name = instrument.ticker
    point: PricePoint | None = None
    try:
        point = await fetch_point(gateway, name, timeout)
        instrument.add_point(point)
        logger.debug("[%s] seq=%s bid=%.2f ask=%.2f", name, point.sequence, point.bid, point.ask)

        decision = strategy.evaluate(instrument)
        execution = None
        if decision.actionable:
            execution = await executor.execute(instrument, decision)
    except ConsistencyError as exc:
        decision = Decision.error(ReasonCode.CONSISTENCY, str(exc))
        logger.error("[%s] Consistency error, cycle aborted: %s | %s", name, exc, instrument.state_label())
        return CycleReport(ticker=name, decision=decision, point=point)
    except GatewayError as exc:
        decision = Decision.error(ReasonCode.GATEWAY, str(exc))
        logger.warning("[%s] Gateway error, cycle aborted: %s | %s", name, exc, instrument.state_label())
        return CycleReport(ticker=name, decision=decision, point=point)

    logger.info(
        "[%s] %s (%s): %s | %s",
        name,
        decision.action.value.upper(),
        decision.code.value,
        decision.reason,
        instrument.state_label(),
    )
    return CycleReport(ticker=name, decision=decision, point=point, execution=execution)
