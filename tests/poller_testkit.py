"""测试共用的构造函数。"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import numpy as np

from shared.models.instrument import Instrument
from shared.models.models import PricePoint

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def make_instrument(
    ticker: str = "BTC-USD",
    *,
    capacity: int = 240,
    bids: list[float] | None = None,
    asks: list[float] | None = None,
) -> Instrument:
    """按 旧 -> 新 的顺序灌入报价；只给 bids 时 ask = bid。"""
    inst = Instrument.create(ticker, ticker.split("-")[0], capacity)
    bids = list(bids if bids is not None else (asks or []))
    asks = list(asks if asks is not None else bids)
    for i, (b, a) in enumerate(zip(bids, asks)):
        inst.add_point(PricePoint(bid=b, ask=a, sequence=i, timestamp=T0 + timedelta(minutes=i)))
    return inst


def interpolate(anchors: dict[int, float], length: int) -> list[float]:
    """按锚点线性插值生成 旧 -> 新 的价格序列。"""
    xs = sorted(anchors)
    return list(np.interp(np.arange(length), xs, [anchors[x] for x in xs]))
