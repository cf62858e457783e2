import pytest

from algo.strategy.moving_average import MovingAverageStrategy, calc_averages
from shared.models.errors import InsufficientDataError
from shared.models.models import Action, ReasonCode, Side, Transaction

from poller_testkit import make_instrument


def test_calc_averages_uses_bids_when_flat_and_asks_when_holding():
    inst = make_instrument(bids=[1, 2, 3, 4], asks=[8, 6, 4, 2])

    flat = calc_averages(inst.history, 2, 4, holding=False)
    assert flat.series == "bid"
    assert flat.short_avg == 3.5
    assert flat.long_avg == 2.5
    assert flat.trend_up is True

    held = calc_averages(inst.history, 2, 4, holding=True)
    assert held.series == "ask"
    assert held.short_avg == 3.0
    assert held.long_avg == 5.0
    assert held.trend_up is False


def test_equal_averages_are_not_an_uptrend():
    inst = make_instrument(bids=[5, 5, 5, 5])
    assert calc_averages(inst.history, 2, 4, holding=False).trend_up is False


def test_calc_averages_insufficient_history():
    inst = make_instrument(bids=[1, 2, 3])
    with pytest.raises(InsufficientDataError):
        calc_averages(inst.history, 2, 4, holding=False)


def test_insufficient_data_returns_none_without_touching_state():
    strat = MovingAverageStrategy(short_periods=2, long_periods=4)
    inst = make_instrument(bids=[3, 2, 1])

    d = strat.evaluate(inst)
    assert d.action == Action.NONE
    assert d.code == ReasonCode.INSUFFICIENT_DATA
    assert inst.initial_round is True
    assert inst.holding is False


def test_crossover_sequence_flip_then_buy():
    strat = MovingAverageStrategy(short_periods=2, long_periods=4)
    inst = make_instrument(bids=[4, 3, 2, 1])

    first = strat.evaluate(inst)
    assert first.code == ReasonCode.INITIAL_ROUND
    assert inst.initial_round is False

    inst = make_instrument(bids=[4, 3, 2, 1, 5, 6])
    inst.initial_round = False
    assert strat.evaluate(inst).action == Action.BUY


def test_holding_and_ask_average_falls_sells():
    strat = MovingAverageStrategy(short_periods=2, long_periods=4)
    inst = make_instrument(bids=[1, 2, 3, 4], asks=[8, 6, 4, 2])
    inst.initial_round = False
    inst.add_transaction(Transaction(type=Side.BUY, price=8.0, fee=0.02))

    assert strat.evaluate(inst).action == Action.SELL


def test_evaluation_is_deterministic():
    strat = MovingAverageStrategy(short_periods=2, long_periods=4)
    inst = make_instrument(bids=[4, 3, 2, 1, 5, 6])
    inst.initial_round = False
    assert strat.evaluate(inst) == strat.evaluate(inst)


def test_short_must_be_less_than_long():
    with pytest.raises(ValueError):
        MovingAverageStrategy(short_periods=4, long_periods=4)
