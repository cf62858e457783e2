from unittest.mock import MagicMock

import ccxt
import pytest

from market.gateway import CcxtGateway, build_gateway, to_ccxt_symbol
from market.sim import SimulatedGateway
from shared.config.config_loader import parse_config
from shared.models.errors import GatewayError
from shared.models.models import OrderRequest, Side


@pytest.fixture
def exchange():
    ex = MagicMock()
    ex.has = {"createMarketBuyOrderWithCost": True}
    ex.fetch_order_book = MagicMock(return_value={"bids": [[99.5, 2.0]], "asks": [[100.5, 1.0]], "nonce": 7})
    ex.fetch_balance = MagicMock(return_value={"USD": {"free": 250.0}, "BTC": {"free": 0.1}})
    ex.create_market_buy_order_with_cost = MagicMock(return_value={"id": "o-1", "status": "closed"})
    ex.create_order = MagicMock(return_value={"id": "o-2", "status": "open"})
    return ex


def test_ticker_symbol_mapping():
    assert to_ccxt_symbol("BTC-USD") == "BTC/USD"
    assert to_ccxt_symbol("ETH/USD") == "ETH/USD"


@pytest.mark.asyncio
async def test_order_book_and_balances(exchange):
    gw = CcxtGateway(exchange=exchange)

    book = await gw.get_order_book("BTC-USD")
    exchange.fetch_order_book.assert_called_once_with("BTC/USD")
    assert (book.bid, book.ask, book.sequence) == (99.5, 100.5, 7)

    usd = await gw.get_account_balance("USD")
    missing = await gw.get_account_balance("ETH")
    assert usd.available == 250.0
    assert missing.available == 0.0


@pytest.mark.asyncio
async def test_market_orders_use_funds_for_buys_and_size_for_sells(exchange):
    gw = CcxtGateway(exchange=exchange)

    res = await gw.place_market_order(OrderRequest(side=Side.BUY, ticker="BTC-USD", funds=122.5))
    exchange.create_market_buy_order_with_cost.assert_called_once_with("BTC/USD", 122.5)
    assert res.order_id == "o-1"

    await gw.place_market_order(OrderRequest(side=Side.SELL, ticker="BTC-USD", size=0.1))
    exchange.create_order.assert_called_once_with("BTC/USD", "market", "sell", 0.1)


@pytest.mark.asyncio
async def test_ccxt_errors_become_gateway_errors(exchange):
    exchange.fetch_balance.side_effect = ccxt.NetworkError("boom")
    gw = CcxtGateway(exchange=exchange)
    with pytest.raises(GatewayError):
        await gw.get_account_balance("USD")


@pytest.mark.asyncio
async def test_empty_book_is_a_gateway_error(exchange):
    exchange.fetch_order_book.return_value = {"bids": [], "asks": []}
    with pytest.raises(GatewayError):
        await CcxtGateway(exchange=exchange).get_order_book("BTC-USD")


def test_build_gateway_falls_back_to_simulation_in_paper_mode():
    cfg = parse_config({"mode": "paper"})
    assert isinstance(build_gateway(cfg), SimulatedGateway)

    with pytest.raises(ValueError):
        build_gateway(parse_config({"mode": "live"}))


@pytest.mark.asyncio
async def test_simulated_gateway_scripts_and_failures():
    gw = SimulatedGateway({"BTC-USD": [(1.0, 1.5), (2.0, 2.5)]})
    assert (await gw.get_order_book("BTC-USD")).bid == 1.0
    gw.advance(ticker="ETH-USD")
    assert (await gw.get_order_book("BTC-USD")).bid == 1.0
    gw.advance()
    gw.advance()
    assert (await gw.get_order_book("BTC-USD")).bid == 2.0

    gw.fail_next("get_order_book")
    with pytest.raises(GatewayError):
        await gw.get_order_book("BTC-USD")
    assert (await gw.get_order_book("BTC-USD")).ask == 2.5
