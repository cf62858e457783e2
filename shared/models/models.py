"""核心数据结构：PricePoint/Transaction/Decision 以及网关返回值。"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_ts(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if value is None:
        return _utc_now()
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


@dataclass(frozen=True)
class PricePoint:
    """某一时刻的最优买卖价快照（一次轮询产出一个）。"""
    bid: float
    ask: float
    sequence: int | None = None
    bid_size: float | None = None
    ask_size: float | None = None
    timestamp: datetime = field(default_factory=_utc_now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "sequence": self.sequence,
            "bid": self.bid,
            "ask": self.ask,
            "bid_size": self.bid_size,
            "ask_size": self.ask_size,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PricePoint":
        return cls(
            bid=float(data["bid"]),
            ask=float(data["ask"]),
            sequence=data.get("sequence"),
            bid_size=data.get("bid_size"),
            ask_size=data.get("ask_size"),
            timestamp=_parse_ts(data.get("timestamp")),
        )


class Side(str, Enum):
    BUY = "buy"
    SELL = "sell"


@dataclass(frozen=True)
class Transaction:
    """一笔已执行的买/卖记录，只由执行与记账层创建。"""
    type: Side
    price: float
    fee: float
    timestamp: datetime = field(default_factory=_utc_now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "type": self.type.value,
            "price": self.price,
            "fee": self.fee,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Transaction":
        return cls(
            type=Side(data["type"]),
            price=float(data["price"]),
            fee=float(data["fee"]),
            timestamp=_parse_ts(data.get("timestamp")),
        )


class Action(str, Enum):
    BUY = "buy"
    SELL = "sell"
    NONE = "none"
    ERROR = "error"


class ReasonCode(str, Enum):
    """不下单时的原因分类（机器可读）。"""
    OK = "ok"
    INSUFFICIENT_DATA = "insufficient_data"
    INITIAL_ROUND = "initial_round"
    HOLD = "hold"
    HOLD_CASH = "hold_cash"
    COOLDOWN = "cooldown"
    SUSTAINED_TREND = "sustained_trend"
    AT_EXTREMUM = "at_extremum"
    ENTRY_SHAPE = "entry_shape"
    WEEKLY_TREND = "weekly_trend"
    THRESHOLD_NOT_REACHED = "threshold_not_reached"
    CONSISTENCY = "consistency"
    GATEWAY = "gateway"


@dataclass(frozen=True)
class Decision:
    """每个周期的决策结果（tagged result）。

    预期内的“什么都不做”用 `Action.NONE` + `code` 表达，而不是抛异常。
    """
    action: Action
    reason: str
    code: ReasonCode = ReasonCode.OK

    @property
    def actionable(self) -> bool:
        return self.action in (Action.BUY, Action.SELL)

    @classmethod
    def buy(cls, reason: str) -> "Decision":
        return cls(Action.BUY, reason)

    @classmethod
    def sell(cls, reason: str) -> "Decision":
        return cls(Action.SELL, reason)

    @classmethod
    def none(cls, code: ReasonCode, reason: str) -> "Decision":
        return cls(Action.NONE, reason, code)

    @classmethod
    def error(cls, code: ReasonCode, reason: str) -> "Decision":
        return cls(Action.ERROR, reason, code)


@dataclass(frozen=True)
class OrderBook:
    """网关返回的最优一档报价。"""
    bid: float
    ask: float
    bid_size: float | None = None
    ask_size: float | None = None
    sequence: int | None = None

    def to_point(self) -> PricePoint:
        return PricePoint(
            bid=self.bid,
            ask=self.ask,
            sequence=self.sequence,
            bid_size=self.bid_size,
            ask_size=self.ask_size,
        )


@dataclass(frozen=True)
class AccountBalance:
    account: str
    available: float


@dataclass(frozen=True)
class OrderRequest:
    """市价单参数：买单用 funds（计价货币），卖单用 size（基础货币）。"""
    side: Side
    ticker: str
    funds: float | None = None
    size: float | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"type": "market", "side": self.side.value, "product_id": self.ticker}
        if self.funds is not None:
            out["funds"] = self.funds
        if self.size is not None:
            out["size"] = self.size
        return out


@dataclass(frozen=True)
class OrderResult:
    order_id: str
    status: str
    raw: dict[str, Any] | None = None
