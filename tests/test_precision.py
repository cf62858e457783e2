from shared.utils.precision import fee_for, round_cents


def test_round_cents_half_away_from_zero():
    assert round_cents(1.005) == 1.01
    assert round_cents(2.675) == 2.68
    assert round_cents(-1.005) == -1.01
    assert round_cents(100.004) == 100.0


def test_fee_uses_decimal_product():
    # 105 * 0.003 在 float 中是 0.31499999999999995
    assert fee_for(105, 0.003) == 0.32
    assert fee_for(100, 0.003) == 0.3
    assert fee_for(0, 0.003) == 0.0
