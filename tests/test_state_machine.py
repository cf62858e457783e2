import pytest

from algo.position.state_machine import check_cooldown, cooldown_ticks_for, resolve_trend
from shared.models.models import Action, ReasonCode, Side, Transaction

from poller_testkit import make_instrument


def test_first_uptick_is_ignored_during_initial_round():
    inst = make_instrument()
    d = resolve_trend(inst, trend_up=True)
    assert d.action == Action.NONE
    assert d.code == ReasonCode.INITIAL_ROUND
    assert inst.initial_round is True


def test_first_downtick_flips_initial_round_then_uptick_buys():
    inst = make_instrument()
    d = resolve_trend(inst, trend_up=False)
    assert d.action == Action.NONE
    assert d.code == ReasonCode.INITIAL_ROUND
    assert inst.initial_round is False

    d = resolve_trend(inst, trend_up=True)
    assert d.action == Action.BUY
    assert "BUY BTC-USD" in d.reason


def test_down_without_position_after_initial_round_holds_cash():
    inst = make_instrument()
    inst.initial_round = False
    d = resolve_trend(inst, trend_up=False)
    assert d.action == Action.NONE
    assert d.code == ReasonCode.HOLD_CASH


def test_holding_position_up_does_nothing_and_down_sells():
    inst = make_instrument()
    inst.initial_round = False
    inst.add_transaction(Transaction(type=Side.BUY, price=100.0, fee=0.3))

    up = resolve_trend(inst, trend_up=True)
    assert up.action == Action.NONE
    assert up.code == ReasonCode.HOLD

    down = resolve_trend(inst, trend_up=False)
    assert down.action == Action.SELL


def test_cooldown_ticks_for_rounds_and_has_floor():
    assert cooldown_ticks_for(6 * 3600, 60) == 360
    assert cooldown_ticks_for(10, 60) == 1
    with pytest.raises(ValueError):
        cooldown_ticks_for(60, 0)


def test_cooldown_rejects_interval_minus_one_evaluations():
    inst = make_instrument()
    inst.arm_cooldown()
    interval = 4

    results = [check_cooldown(inst, interval) for _ in range(interval)]
    rejected = [r for r in results if r is not None]
    assert len(rejected) == interval - 1
    assert all(r.code == ReasonCode.COOLDOWN for r in rejected)
    assert results[-1] is None
    assert inst.cooldown is False
    assert inst.cooldown_ticks == 0


def test_no_cooldown_passes_through():
    inst = make_instrument()
    assert check_cooldown(inst, 5) is None
    assert inst.cooldown_ticks == 0
