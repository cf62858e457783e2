"""行情/下单网关（ccxt 实盘 / 本地模拟）。

核心只依赖三个调用：最优报价、账户余额、市价单。
所有调用都是 request/response、可失败、彼此独立；失败统一抛 GatewayError。
"""

from __future__ import annotations

import asyncio
import functools
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable

import ccxt

from shared.models.errors import GatewayError
from shared.models.models import AccountBalance, OrderBook, OrderRequest, OrderResult, Side

logger = logging.getLogger("poller.gateway")


def to_ccxt_symbol(ticker: str) -> str:
    """"BTC-USD" -> "BTC/USD"（已是 ccxt 格式则原样返回）。"""
    return ticker.replace("-", "/") if "/" not in ticker else ticker


class MarketGateway(ABC):
    """网关抽象基类。"""

    @abstractmethod
    async def get_order_book(self, ticker: str) -> OrderBook:
        """拉取最优一档买卖价。"""
        raise NotImplementedError

    @abstractmethod
    async def get_account_balance(self, account: str) -> AccountBalance:
        """查询账户可用余额。"""
        raise NotImplementedError

    @abstractmethod
    async def place_market_order(self, order: OrderRequest) -> OrderResult:
        """下市价单：买单按 funds，卖单按 size。"""
        raise NotImplementedError

    async def close(self) -> None:
        return None


class CcxtGateway(MarketGateway):
    """基于 ccxt 的网关（默认 coinbase）。

    ccxt 的同步调用放到默认线程池里执行，不阻塞事件循环，
    因此不同品种的周期可以并行推进。

    Parameters
    ----------
    exchange_id:
        ccxt 交易所 id。
    exchange:
        可选的已构建 ccxt 交易所实例（测试注入）。
    """

    def __init__(
        self,
        exchange_id: str = "coinbase",
        *,
        api_key: str | None = None,
        api_secret: str | None = None,
        password: str | None = None,
        sandbox: bool = False,
        exchange: Any = None,
    ):
        if exchange is None:
            exchange_cls = getattr(ccxt, exchange_id, None)
            if exchange_cls is None:
                raise ValueError(f"Unsupported exchange: {exchange_id}")
            params: dict[str, Any] = {"enableRateLimit": True}
            if api_key:
                params["apiKey"] = api_key
            if api_secret:
                params["secret"] = api_secret
            if password:
                params["password"] = password
            exchange = exchange_cls(params)
            if sandbox:
                exchange.set_sandbox_mode(True)
        self.exchange = exchange

    async def _call(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, functools.partial(fn, *args, **kwargs))
        except ccxt.BaseError as exc:
            raise GatewayError(f"{getattr(fn, '__name__', 'call')} failed: {exc}") from exc

    async def get_order_book(self, ticker: str) -> OrderBook:
        ob = await self._call(self.exchange.fetch_order_book, to_ccxt_symbol(ticker))
        bids = ob.get("bids") or []
        asks = ob.get("asks") or []
        if not bids or not asks:
            raise GatewayError(f"Empty order book for {ticker}")
        return OrderBook(
            bid=float(bids[0][0]),
            ask=float(asks[0][0]),
            bid_size=float(bids[0][1]) if len(bids[0]) > 1 else None,
            ask_size=float(asks[0][1]) if len(asks[0]) > 1 else None,
            sequence=ob.get("nonce"),
        )

    async def get_account_balance(self, account: str) -> AccountBalance:
        balance = await self._call(self.exchange.fetch_balance)
        entry = balance.get(account) or {}
        return AccountBalance(account=account, available=float(entry.get("free") or 0.0))

    async def place_market_order(self, order: OrderRequest) -> OrderResult:
        symbol = to_ccxt_symbol(order.ticker)
        if order.side == Side.BUY:
            if order.funds is None:
                raise GatewayError("market buy requires funds")
            if self.exchange.has.get("createMarketBuyOrderWithCost"):
                res = await self._call(self.exchange.create_market_buy_order_with_cost, symbol, order.funds)
            else:
                res = await self._call(
                    self.exchange.create_order,
                    symbol,
                    "market",
                    "buy",
                    order.funds,
                    None,
                    {"createMarketBuyOrderRequiresPrice": False},
                )
        else:
            if order.size is None:
                raise GatewayError("market sell requires size")
            res = await self._call(self.exchange.create_order, symbol, "market", "sell", order.size)
        return OrderResult(order_id=str(res.get("id")), status=str(res.get("status") or "open"), raw=res)


def build_gateway(cfg, *, logger_: logging.Logger | None = None) -> MarketGateway:
    """根据配置选择网关。

    - 配置了 api_key：使用 ccxt（paper 模式下同样读取真实行情与余额）；
    - 未配置 api_key 且为 paper 模式：使用本地随机游走模拟网关。
    """
    from market.sim import SimulatedGateway

    log = logger_ or logger
    ex = cfg.exchange
    if ex.api_key:
        log.info("Using ccxt gateway: %s (sandbox=%s)", ex.name, ex.sandbox)
        return CcxtGateway(
            ex.name,
            api_key=ex.api_key,
            api_secret=ex.api_secret,
            password=ex.password,
            sandbox=ex.sandbox,
        )
    if cfg.mode == "live":
        raise ValueError("live mode requires exchange.api_key")
    log.info("No exchange credentials configured, using simulated gateway")
    return SimulatedGateway.with_random_walk([i.ticker for i in cfg.instruments], usd_account=ex.usd_account)
