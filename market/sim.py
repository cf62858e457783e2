"""本地模拟网关，便于离线开发/测试（不触网）。"""

from __future__ import annotations

import asyncio
import itertools
import random
from typing import Iterable, Mapping, Sequence

from market.gateway import MarketGateway
from shared.models.errors import GatewayError
from shared.models.models import AccountBalance, OrderBook, OrderRequest, OrderResult, Side

DEFAULT_START_PRICES = {"BTC-USD": 30000.0, "ETH-USD": 2000.0}


class SimulatedGateway(MarketGateway):
    """模拟网关。

    报价来源二选一：
    - `quotes`：每个 ticker 一串 (bid, ask)，调用 `advance()` 前进一步，走到末尾后停在最后一个；
    - `random_walk=True`：每次读取报价都会随机游走一步。

    成交按当前报价即时撮合，并更新内存里的余额。

    Parameters
    ----------
    balances:
        初始余额（account -> available）。
    delays:
        按方法名注入的延迟（秒），用于测试超时。
    """

    def __init__(
        self,
        quotes: Mapping[str, Sequence[tuple[float, float]]] | None = None,
        *,
        balances: Mapping[str, float] | None = None,
        usd_account: str = "USD",
        random_walk: bool = False,
        volatility: float = 0.001,
        spread: float = 0.0005,
        seed: int | None = None,
        delays: Mapping[str, float] | None = None,
    ):
        self.usd_account = usd_account
        self.balances: dict[str, float] = dict(balances or {usd_account: 1000.0})
        self.random_walk = random_walk
        self.volatility = float(volatility)
        self.spread = float(spread)
        self.delays = dict(delays or {})
        self._rng = random.Random(seed)
        self._scripts = {t: list(qs) for t, qs in (quotes or {}).items()}
        self._cursor = {t: 0 for t in self._scripts}
        self._mid: dict[str, float] = {}
        self._seq = itertools.count(1)
        self._order_ids = itertools.count(1)
        self._failures: dict[str, list[Exception]] = {}
        self.orders: list[OrderRequest] = []
        self.calls: list[str] = []

    @classmethod
    def with_random_walk(
        cls,
        tickers: Iterable[str],
        *,
        usd_account: str = "USD",
        start_usd: float = 1000.0,
        seed: int | None = None,
    ) -> "SimulatedGateway":
        gw = cls(balances={usd_account: start_usd}, usd_account=usd_account, random_walk=True, seed=seed)
        for t in tickers:
            gw._mid[t] = DEFAULT_START_PRICES.get(t, 100.0)
        return gw

    # ------------------------------------------------------------- test hooks
    def set_quote(self, ticker: str, bid: float, ask: float) -> None:
        self._scripts[ticker] = [(float(bid), float(ask))]
        self._cursor[ticker] = 0

    def advance(self, steps: int = 1, ticker: str | None = None) -> None:
        """脚本报价前进 `steps` 步；指定 ticker 时只推进该品种。"""
        for t, script in self._scripts.items():
            if ticker is not None and t != ticker:
                continue
            self._cursor[t] = min(self._cursor[t] + steps, len(script) - 1)

    def fail_next(self, method: str, exc: Exception | None = None, times: int = 1) -> None:
        """让下 `times` 次对 `method` 的调用失败。"""
        err = exc or GatewayError(f"simulated {method} failure")
        self._failures.setdefault(method, []).extend([err] * times)

    # -------------------------------------------------------------- internals
    async def _enter(self, method: str) -> None:
        self.calls.append(method)
        delay = self.delays.get(method)
        if delay:
            await asyncio.sleep(delay)
        pending = self._failures.get(method)
        if pending:
            raise pending.pop(0)

    def _quote(self, ticker: str) -> tuple[float, float]:
        if ticker in self._scripts and self._scripts[ticker]:
            return self._scripts[ticker][self._cursor[ticker]]
        if self.random_walk:
            mid = self._mid.get(ticker, DEFAULT_START_PRICES.get(ticker, 100.0))
            mid *= 1 + self._rng.gauss(0.0, self.volatility)
            self._mid[ticker] = mid
            half = mid * self.spread / 2
            return round(mid - half, 2), round(mid + half, 2)
        raise GatewayError(f"No quote for {ticker}")

    # -------------------------------------------------------------- interface
    async def get_order_book(self, ticker: str) -> OrderBook:
        await self._enter("get_order_book")
        bid, ask = self._quote(ticker)
        return OrderBook(bid=bid, ask=ask, bid_size=1.0, ask_size=1.0, sequence=next(self._seq))

    async def get_account_balance(self, account: str) -> AccountBalance:
        await self._enter("get_account_balance")
        return AccountBalance(account=account, available=float(self.balances.get(account, 0.0)))

    async def place_market_order(self, order: OrderRequest) -> OrderResult:
        await self._enter("place_market_order")
        base = order.ticker.split("-")[0]
        bid, ask = self._current_quote(order.ticker)
        if order.side == Side.BUY:
            funds = float(order.funds or 0.0)
            if funds <= 0 or funds > self.balances.get(self.usd_account, 0.0) + 1e-9:
                raise GatewayError(f"Insufficient funds for buy: {funds}")
            self.balances[self.usd_account] = self.balances.get(self.usd_account, 0.0) - funds
            self.balances[base] = self.balances.get(base, 0.0) + funds / ask
        else:
            size = float(order.size or 0.0)
            if size <= 0 or size > self.balances.get(base, 0.0) + 1e-12:
                raise GatewayError(f"Insufficient size for sell: {size}")
            self.balances[base] = self.balances.get(base, 0.0) - size
            self.balances[self.usd_account] = self.balances.get(self.usd_account, 0.0) + size * bid
        self.orders.append(order)
        return OrderResult(order_id=f"sim-{next(self._order_ids)}", status="done", raw=order.to_dict())

    def _current_quote(self, ticker: str) -> tuple[float, float]:
        """当前报价（不推进随机游走）。"""
        if ticker in self._scripts and self._scripts[ticker]:
            return self._scripts[ticker][self._cursor[ticker]]
        mid = self._mid.get(ticker, DEFAULT_START_PRICES.get(ticker, 100.0))
        half = mid * self.spread / 2
        return round(mid - half, 2), round(mid + half, 2)
