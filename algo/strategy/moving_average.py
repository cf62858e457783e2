"""均线交叉策略（short/long 简单均线）。

持仓时看 ask 序列（评估是否离场），空仓时看 bid 序列（评估是否入场）。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from algo.position.state_machine import resolve_trend
from shared.models.errors import InsufficientDataError
from shared.models.history import BoundedHistory
from shared.models.instrument import Instrument
from shared.models.models import Decision, ReasonCode
from shared.utils.precision import round_cents
from .base import Strategy

logger = logging.getLogger("poller.strategy.moving")


@dataclass(frozen=True)
class Averages:
    short_avg: float
    long_avg: float
    series: str  # "ask" / "bid"

    @property
    def trend_up(self) -> bool:
        # 相等不算上行
        return self.short_avg > self.long_avg


def calc_averages(history: BoundedHistory, short_periods: int, long_periods: int, holding: bool) -> Averages:
    """计算短/长均线（四舍五入到分）。

    Parameters
    ----------
    history:
        最新在前的价格历史。
    short_periods / long_periods:
        均线窗口，要求 short < long。
    holding:
        True 时取 ask，False 时取 bid。

    Raises
    ------
    InsufficientDataError
        历史长度小于 long_periods。
    """
    if len(history) < long_periods:
        raise InsufficientDataError(long_periods, len(history))

    series = "ask" if holding else "bid"
    values = history.asks(long_periods) if holding else history.bids(long_periods)
    short_avg = round_cents(sum(values[:short_periods]) / short_periods)
    long_avg = round_cents(sum(values) / long_periods)
    return Averages(short_avg=short_avg, long_avg=long_avg, series=series)


class MovingAverageStrategy(Strategy):
    """简单移动均线交叉策略。

    Parameters
    ----------
    short_periods:
        短期均线窗口（点数）。
    long_periods:
        长期均线窗口（点数），同时也是历史容量。
    buy_fraction:
        买入时使用的可用 USD 比例（两个品种共用资金池时为 0.49）。
    """

    arms_cooldown = False

    def __init__(self, short_periods: int = 30, long_periods: int = 240, buy_fraction: float = 0.49):
        if short_periods >= long_periods:
            raise ValueError("short_periods must be less than long_periods")
        self.short_periods = int(short_periods)
        self.long_periods = int(long_periods)
        self.buy_fraction = float(buy_fraction)

    def required_points(self) -> int:
        return self.long_periods

    def evaluate(self, instrument: Instrument) -> Decision:
        try:
            avgs = calc_averages(instrument.history, self.short_periods, self.long_periods, instrument.holding)
        except InsufficientDataError as exc:
            return Decision.none(ReasonCode.INSUFFICIENT_DATA, str(exc))

        logger.debug(
            "[%s] %s short_avg=%.2f long_avg=%.2f trend_up=%s",
            instrument.ticker,
            avgs.series,
            avgs.short_avg,
            avgs.long_avg,
            avgs.trend_up,
        )
        return resolve_trend(instrument, avgs.trend_up)
