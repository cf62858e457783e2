"""金额精度工具（分位四舍五入，half away from zero）。

所有价格/手续费/利润都在这里“钉死”到 2 位小数，避免 float 噪声
（例如 105 * 0.003 -> 0.31499999999999995）导致舍入方向错误。
"""

from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP
from typing import Union

Number = Union[int, float, Decimal]

CENT = Decimal("0.01")


def to_decimal(value: Number) -> Decimal:
    """float 走 `str()`（最短 repr），保留人类可读的十进制值。"""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_cents(value: Number) -> float:
    """四舍五入到分（0.005 -> 0.01，-0.005 -> -0.01）。"""
    return float(to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP))


def fee_for(price: Number, fee_rate: Number) -> float:
    """按费率计算手续费，先用 Decimal 相乘再舍入到分。"""
    return round_cents(to_decimal(price) * to_decimal(fee_rate))
