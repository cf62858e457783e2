"""持仓状态机：方向信号 + 持仓状态 -> 决策。

状态：Initial×NotHolding / Steady×NotHolding / Steady×Holding，
冷却（Cooldown）是 NotHolding 的子状态。

| trend_up | holding | initial_round | 结果 |
|----------|---------|---------------|------|
| True     | True    | -             | none（持有）|
| True     | False   | True          | none（首轮忽略），initial_round 不变 |
| True     | False   | False         | buy |
| False    | True    | -             | sell |
| False    | False   | True          | none，initial_round -> False |
| False    | False   | False         | none（持币）|
"""

from __future__ import annotations

from shared.models.instrument import Instrument
from shared.models.models import Decision, ReasonCode


def resolve_trend(instrument: Instrument, trend_up: bool) -> Decision:
    """根据方向信号推进状态机。

    唯一会被修改的状态是 `initial_round`（一次性、单向地 True -> False）。
    """
    name = instrument.ticker
    if trend_up:
        if instrument.holding:
            return Decision.none(ReasonCode.HOLD, "Price UP + Have Position -> Do Nothing")
        if instrument.initial_round:
            return Decision.none(ReasonCode.INITIAL_ROUND, "Ignored uptick since it's the initial round")
        return Decision.buy(f"Price UP + No Position -> BUY {name}")

    if instrument.holding:
        return Decision.sell(f"Price DOWN + Have Position -> SELL {name}")
    if instrument.initial_round:
        # 第一次下行：解除首轮屏蔽，下一次上行就是干净的买点
        instrument.initial_round = False
        return Decision.none(ReasonCode.INITIAL_ROUND, "Flipped initial round off, next uptick is a clean buy")
    return Decision.none(ReasonCode.HOLD_CASH, "Price DOWN + No Position -> Do Nothing")


def cooldown_ticks_for(cooldown_secs: float, poll_interval_secs: float) -> int:
    """把冷却时长换算成 tick 数（至少 1）。"""
    if poll_interval_secs <= 0:
        raise ValueError("poll_interval_secs must be positive")
    return max(1, int(round(cooldown_secs / poll_interval_secs)))


def check_cooldown(instrument: Instrument, interval_ticks: int) -> Decision | None:
    """冷却闸门：冷却中返回拒绝决策，否则返回 None 继续后续判断。

    每次评估先累加计数；计数达到 `interval_ticks` 时清除冷却并放行，
    因此卖出后前 `interval_ticks - 1` 次评估都会被拒绝。
    """
    if not instrument.cooldown:
        return None
    instrument.cooldown_ticks += 1
    if instrument.cooldown_ticks >= interval_ticks:
        instrument.cooldown = False
        instrument.cooldown_ticks = 0
        return None
    return Decision.none(
        ReasonCode.COOLDOWN,
        f"On cooldown ({instrument.cooldown_ticks}/{interval_ticks} ticks)",
    )
