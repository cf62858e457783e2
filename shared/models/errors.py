"""交易周期内的异常分类。

- `InsufficientDataError`：历史长度不足，策略层会转成 `Decision.none(...)`；
- `ConsistencyError`：不变量被破坏（例如持仓标志与最后一笔交易不一致）；
- `GatewayError`：行情/下单网关失败或超时。

后两者会中止当前周期，但不会影响下一次 tick 或其他品种。
"""

from __future__ import annotations


class CycleError(Exception):
    """单个品种周期内可中止该周期的异常基类。"""


class InsufficientDataError(CycleError):
    def __init__(self, required: int, available: int):
        self.required = int(required)
        self.available = int(available)
        super().__init__(f"Data history not long enough: need {self.required}, have {self.available}")


class ConsistencyError(CycleError):
    pass


class GatewayError(CycleError):
    pass
