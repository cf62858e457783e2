"""多时间尺度趋势/百分比策略。

入场（空仓）：冷却 -> 数据量 -> 日内斜率 -> 单边趋势过滤 -> 极值过滤
-> 谷底形态 -> 多日确认，全部通过才买入。
离场（持仓）：相对最近一次买入价的固定百分比止盈/止损。

斜率定义：把 ask 序列（旧 -> 新）从最新点开始切成互不重叠的桶，每桶 `bucket` 个点，
`slope = (桶尾 ask - 桶首 ask) / bucket`。
越过历史起点的残缺桶会被跳过并记录日志，所以斜率数组可能比名义桶数短。
"""

from __future__ import annotations

import logging

import numpy as np

from algo.position.state_machine import check_cooldown, cooldown_ticks_for
from shared.models.errors import ConsistencyError, InsufficientDataError
from shared.models.instrument import Instrument
from shared.models.models import Decision, ReasonCode, Side
from shared.utils.precision import round_cents, to_decimal
from .base import Strategy

logger = logging.getLogger("poller.strategy.percent")

SECONDS_PER_HOUR = 3600


def bucket_slopes(asks: np.ndarray, bucket: int, *, label: str = "", ticker: str = "") -> np.ndarray:
    """计算分桶斜率。

    Parameters
    ----------
    asks:
        ask 价格序列，旧 -> 新。
    bucket:
        每个桶的点数。

    Returns
    -------
    np.ndarray
        斜率序列，旧 -> 新。
    """
    n = int(asks.size)
    if n == 0 or bucket <= 0:
        return np.empty(0, dtype=float)

    ends = np.arange(n - 1, -1, -bucket)
    starts = ends - (bucket - 1)
    valid = starts >= 0
    skipped = int((~valid).sum())
    if skipped:
        logger.debug("[%s] %s slopes: skipped %d partial bucket(s) at history start", ticker, label, skipped)

    slopes = (asks[ends[valid]] - asks[starts[valid]]) / float(bucket)
    return slopes[::-1]


def is_one_directional(slopes: np.ndarray) -> bool:
    return bool(slopes.size) and (bool(np.all(slopes > 0)) or bool(np.all(slopes < 0)))


class TrendPercentStrategy(Strategy):
    """趋势/百分比策略。

    Parameters
    ----------
    poll_interval_secs:
        轮询间隔（秒），用于把时间窗口换算为点数。
    take_profit_pct / stop_loss_pct:
        相对买入价的止盈/止损比例（已包含约 0.6% 的双边手续费）。
    cooldown_hours:
        卖出后的冷却时长；0 表示不冷却。
    bucket_minutes:
        日内斜率的分桶长度。
    day_hours:
        “一天”窗口的长度。
    confirm_days:
        多日确认窗口包含的天数。
    buy_fraction:
        买入时使用的可用 USD 比例。
    """

    def __init__(
        self,
        poll_interval_secs: float = 60.0,
        take_profit_pct: float = 0.036,
        stop_loss_pct: float = 0.044,
        cooldown_hours: float = 6.0,
        bucket_minutes: float = 20.0,
        day_hours: float = 24.0,
        confirm_days: int = 3,
        buy_fraction: float = 0.49,
    ):
        if poll_interval_secs <= 0:
            raise ValueError("poll_interval_secs must be positive")
        if confirm_days < 2:
            raise ValueError("confirm_days must be at least 2")
        self.poll_interval_secs = float(poll_interval_secs)
        self.take_profit_pct = float(take_profit_pct)
        self.stop_loss_pct = float(stop_loss_pct)
        self.cooldown_hours = float(cooldown_hours)
        self.buy_fraction = float(buy_fraction)
        self.confirm_days = int(confirm_days)

        self.day_points = max(1, int(round(day_hours * SECONDS_PER_HOUR / self.poll_interval_secs)))
        self.bucket_points = max(1, int(round(bucket_minutes * 60 / self.poll_interval_secs)))
        self.cooldown_interval_ticks = (
            cooldown_ticks_for(self.cooldown_hours * SECONDS_PER_HOUR, self.poll_interval_secs)
            if self.cooldown_hours > 0
            else 0
        )
        self.arms_cooldown = self.cooldown_interval_ticks > 0

    def required_points(self) -> int:
        return self.day_points

    def evaluate(self, instrument: Instrument) -> Decision:
        if instrument.holding:
            return self.evaluate_exit(instrument)
        return self.evaluate_entry(instrument)

    # ------------------------------------------------------------------ exit
    def evaluate_exit(self, instrument: Instrument) -> Decision:
        last = instrument.last_transaction()
        if last is None or last.type != Side.BUY:
            raise ConsistencyError("last transaction was not a buy")

        try:
            latest_bid = instrument.history.latest().bid
        except InsufficientDataError as exc:
            return Decision.none(ReasonCode.INSUFFICIENT_DATA, str(exc))

        entry = last.price
        # 阈值钉到分，边界价（例如 100 * 1.036 = 103.60）按包含处理
        target = round_cents(to_decimal(entry) * (1 + to_decimal(self.take_profit_pct)))
        stop = round_cents(to_decimal(entry) * (1 - to_decimal(self.stop_loss_pct)))
        if latest_bid >= target:
            return Decision.sell(f"Take profit: bid {latest_bid:.2f} >= {target:.2f} (entry {entry:.2f})")
        if latest_bid <= stop:
            return Decision.sell(f"Stop loss: bid {latest_bid:.2f} <= {stop:.2f} (entry {entry:.2f})")
        return Decision.none(
            ReasonCode.THRESHOLD_NOT_REACHED,
            f"Holding: bid {latest_bid:.2f} inside ({stop:.2f}, {target:.2f})",
        )

    # ----------------------------------------------------------------- entry
    def evaluate_entry(self, instrument: Instrument) -> Decision:
        name = instrument.ticker

        # 1. 冷却
        if self.arms_cooldown:
            rejected = check_cooldown(instrument, self.cooldown_interval_ticks)
            if rejected is not None:
                return rejected

        # 2. 至少一整天的数据
        try:
            day = np.asarray(instrument.history.asks(self.day_points), dtype=float)[::-1]
        except InsufficientDataError as exc:
            return Decision.none(ReasonCode.INSUFFICIENT_DATA, str(exc))

        # 3. 日内斜率
        slopes = bucket_slopes(day, self.bucket_points, label="daily", ticker=name)
        logger.debug("[%s] daily slopes (last 4): %s", name, np.round(slopes[-4:], 6).tolist())
        if slopes.size == 0:
            return Decision.none(ReasonCode.INSUFFICIENT_DATA, "No complete daily bucket")

        # 4. 单边趋势不追
        if is_one_directional(slopes):
            direction = "up" if slopes[0] > 0 else "down"
            return Decision.none(ReasonCode.SUSTAINED_TREND, f"Sustained one-directional trend ({direction}), do not chase it")

        # 5. 不在日内极值处买入
        latest = float(day[-1])
        high = float(day.max())
        low = float(day.min())
        if latest >= high:
            return Decision.none(ReasonCode.AT_EXTREMUM, f"Ask {latest:.2f} at daily high {high:.2f}")
        if latest <= low:
            return Decision.none(ReasonCode.AT_EXTREMUM, f"Ask {latest:.2f} at daily low {low:.2f}")

        # 6. 谷底：上一段下行、最新一段上行
        if slopes.size < 2 or not (slopes[-1] > 0 and slopes[-2] < 0):
            return Decision.none(ReasonCode.ENTRY_SHAPE, "Did not meet entry shape")

        # 7. 多日确认
        span = min(len(instrument.history), self.confirm_days * self.day_points)
        multi_day = np.asarray(instrument.history.asks(span), dtype=float)[::-1]
        weekly = bucket_slopes(multi_day, self.day_points, label="multi-day", ticker=name)
        logger.debug("[%s] multi-day slopes: %s", name, np.round(weekly, 6).tolist())
        if weekly.size == 0 or is_one_directional(weekly):
            return Decision.none(
                ReasonCode.WEEKLY_TREND,
                "Daily trough sits inside a sustained multi-day trend",
            )

        return Decision.buy(f"Coming out of a dip -> BUY {name}")
