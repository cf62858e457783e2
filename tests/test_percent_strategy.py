import numpy as np
import pytest

from algo.strategy.percent import TrendPercentStrategy, bucket_slopes, is_one_directional
from shared.models.errors import ConsistencyError
from shared.models.models import Action, PricePoint, ReasonCode, Side, Transaction

from poller_testkit import interpolate, make_instrument

# 1 分钟轮询、“一天” = 60 点、20 点一个桶、三天 = 180 点
# 最后一天：108 -> 104 -> 100 -> 105（先跌后涨，最新价在日内高低点之间）
TROUGH = {0: 100, 59: 112, 119: 100, 120: 108, 139: 104, 159: 100, 179: 105}
FALLING_WEEK = {0: 130, 59: 120, 119: 110, 120: 108, 139: 104, 159: 100, 179: 105}
TWO_DAYS = {0: 100, 59: 112, 60: 108, 79: 104, 99: 100, 119: 105}


@pytest.fixture
def strat() -> TrendPercentStrategy:
    return TrendPercentStrategy(
        poll_interval_secs=60,
        day_hours=1,
        bucket_minutes=20,
        confirm_days=3,
        cooldown_hours=0,
    )


def _inst(anchors: dict[int, float], length: int, capacity: int = 180):
    return make_instrument(capacity=capacity, asks=interpolate(anchors, length))


def test_derived_window_sizes(strat):
    assert strat.day_points == 60
    assert strat.bucket_points == 20
    assert strat.arms_cooldown is False
    assert strat.required_points() == 60


def test_confirm_days_needs_at_least_two_days():
    with pytest.raises(ValueError):
        TrendPercentStrategy(confirm_days=1)


def test_bucket_slopes_use_disjoint_buckets_anchored_at_newest():
    asks = np.arange(10, dtype=float)  # 旧 -> 新
    slopes = bucket_slopes(asks, 4)
    # 桶 [6..9]、[2..5]；[0..1] 不完整被跳过
    assert slopes.tolist() == [0.75, 0.75]
    assert bucket_slopes(np.empty(0), 4).size == 0


def test_three_days_give_three_daily_buckets():
    asks = np.concatenate([np.full(60, 1.0), np.linspace(1, 2, 60), np.linspace(2, 1, 60)])
    weekly = bucket_slopes(asks, 60)
    assert weekly.size == 3
    assert weekly[0] == 0.0
    assert weekly[1] > 0 > weekly[2]


def test_is_one_directional():
    assert is_one_directional(np.array([0.1, 0.2]))
    assert is_one_directional(np.array([-0.1, -0.2]))
    assert not is_one_directional(np.array([-0.1, 0.2]))
    assert not is_one_directional(np.array([0.0, 0.1]))
    assert not is_one_directional(np.empty(0))


def test_needs_a_full_day(strat):
    d = strat.evaluate(make_instrument(capacity=180, asks=[100.0] * 59))
    assert d.action == Action.NONE
    assert d.code == ReasonCode.INSUFFICIENT_DATA


def test_monotonic_day_is_a_sustained_trend(strat):
    inst = make_instrument(capacity=180, asks=list(np.linspace(100, 110, 60)))
    d = strat.evaluate(inst)
    assert d.code == ReasonCode.SUSTAINED_TREND


def test_rejects_buy_at_daily_high(strat):
    inst = _inst({0: 105, 20: 104, 40: 100, 59: 110}, 60)
    d = strat.evaluate(inst)
    assert d.code == ReasonCode.AT_EXTREMUM
    assert "high" in d.reason


def test_rejects_buy_at_daily_low(strat):
    inst = _inst({0: 105, 20: 110, 40: 104, 59: 100}, 60)
    d = strat.evaluate(inst)
    assert d.code == ReasonCode.AT_EXTREMUM
    assert "low" in d.reason


def test_rejects_wrong_entry_shape(strat):
    inst = _inst({0: 100, 40: 110, 59: 105}, 60)
    d = strat.evaluate(inst)
    assert d.code == ReasonCode.ENTRY_SHAPE


def test_daily_trough_inside_multi_day_downtrend_is_rejected(strat):
    d = strat.evaluate(_inst(FALLING_WEEK, 180))
    assert d.code == ReasonCode.WEEKLY_TREND


def test_single_day_has_no_multi_day_confirmation(strat):
    d = strat.evaluate(_inst({0: 108, 19: 104, 39: 100, 59: 105}, 60))
    assert d.code == ReasonCode.WEEKLY_TREND


def test_buys_coming_out_of_a_dip(strat):
    d = strat.evaluate(_inst(TROUGH, 180))
    assert d.action == Action.BUY
    assert "BTC-USD" in d.reason


def test_two_day_window_can_confirm():
    strat = TrendPercentStrategy(poll_interval_secs=60, day_hours=1, confirm_days=2, cooldown_hours=0)
    d = strat.evaluate(_inst(TWO_DAYS, 120, capacity=120))
    assert d.action == Action.BUY


def test_partial_confirmation_window_still_uses_available_days(strat):
    # 只有两天数据时按两天的桶确认
    d = strat.evaluate(_inst(TWO_DAYS, 120, capacity=120))
    assert d.action == Action.BUY


def test_cooldown_blocks_entry_for_interval_minus_one_ticks():
    strat = TrendPercentStrategy(poll_interval_secs=60, day_hours=1, bucket_minutes=20, cooldown_hours=0.05)
    assert strat.cooldown_interval_ticks == 3
    assert strat.arms_cooldown is True

    inst = _inst(TROUGH, 180)
    inst.arm_cooldown()
    codes = [strat.evaluate(inst).code for _ in range(2)]
    assert codes == [ReasonCode.COOLDOWN, ReasonCode.COOLDOWN]
    assert strat.evaluate(inst).action == Action.BUY


def _holding(bid: float):
    inst = make_instrument(capacity=180, asks=[100.0])
    inst.add_transaction(Transaction(type=Side.BUY, price=100.0, fee=0.3))
    inst.add_point(PricePoint(bid=bid, ask=bid + 0.5))
    return inst


def test_take_profit(strat):
    d = strat.evaluate(_holding(104.0))
    assert d.action == Action.SELL
    assert d.reason.startswith("Take profit")


def test_stop_loss(strat):
    d = strat.evaluate(_holding(95.0))
    assert d.action == Action.SELL
    assert d.reason.startswith("Stop loss")


@pytest.mark.parametrize(
    "bid, prefix",
    [(103.60, "Take profit"), (95.60, "Stop loss")],
)
def test_exit_thresholds_are_inclusive(strat, bid, prefix):
    d = strat.evaluate(_holding(bid))
    assert d.action == Action.SELL
    assert d.reason.startswith(prefix)


@pytest.mark.parametrize("bid", [103.59, 95.61, 100.0])
def test_holds_inside_band(strat, bid):
    d = strat.evaluate(_holding(bid))
    assert d.action == Action.NONE
    assert d.code == ReasonCode.THRESHOLD_NOT_REACHED


def test_holding_without_buy_is_a_consistency_error(strat):
    inst = make_instrument(capacity=180, asks=[100.0])
    inst.holding = True
    with pytest.raises(ConsistencyError):
        strat.evaluate(inst)
