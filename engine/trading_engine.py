"""轮询交易引擎（TradingEngine）。

目标是“一眼能看懂”：配置 → 网关 → 每个品种一个定时任务（拉价/策略/执行） → 总结。
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from typing import Any, Awaitable, Callable

from algo.sizing.fixed_fraction import FixedFractionSizer
from algo.strategy.base import Strategy
from algo.strategy.registry import build_strategy
from engine.accounting import ProfitLedger
from engine.base_engine import BaseEngine, EngineResult
from engine.executor import OrderExecutor
from engine.signal_pipeline import CycleReport, run_cycle
from market.gateway import MarketGateway, build_gateway
from market.sim import SimulatedGateway
from shared.config.config_loader import load_config
from shared.config.schema import MainConfig
from shared.models.instrument import Instrument
from shared.models.models import PricePoint
from shared.state.backup_store import BackupStore
from shared.utils.logging import setup_logger
from shared.utils.trade_logger import TradeLogger

logger = logging.getLogger("poller.engine")

SleepFn = Callable[[float], Awaitable[Any]]
CycleHook = Callable[[CycleReport], Any]

RECENT_REPORTS = 100


class TradingEngine(BaseEngine):
    """每个品种一个独立的定时任务，按固定间隔执行 拉价 → 决策 → 执行。

    Parameters
    ----------
    cfg_path / cfg_obj:
        配置文件路径，或已构建的配置对象（优先）。
    max_ticks:
        每个品种执行多少个周期后退出；None 表示一直运行直到 `stop()`。
    gateway:
        可选的网关实例（测试注入）；默认按配置构建。
    sleep:
        周期之间的等待函数，默认 `asyncio.sleep`。
    on_cycle:
        每个周期结束后的回调，参数为 CycleReport。
    """

    def __init__(
        self,
        *,
        cfg_path: str = "config/config.yml",
        cfg_obj: MainConfig | None = None,
        max_ticks: int | None = None,
        gateway: MarketGateway | None = None,
        sleep: SleepFn | None = None,
        on_cycle: CycleHook | None = None,
    ):
        self._cfg_path = cfg_path
        self._cfg_obj = cfg_obj
        self._max_ticks = max_ticks
        self._gateway = gateway
        self._sleep: SleepFn = sleep or asyncio.sleep
        self._on_cycle = on_cycle
        self._stopping = False

        self.cfg: MainConfig | None = None
        self.gateway: MarketGateway | None = None
        self.strategy: Strategy | None = None
        self.ledger = ProfitLedger()
        self.executor: OrderExecutor | None = None
        self.backup_store: BackupStore | None = None
        self.trade_logger: TradeLogger | None = None
        self.instruments: dict[str, Instrument] = {}
        self.ticks: dict[str, int] = {}
        self.reports: dict[str, deque[CycleReport]] = {}

    # ---------------------------------------------------------------- setup
    def setup(self) -> None:
        """构建全部协作方；重复调用无副作用。"""
        if self.cfg is not None:
            return
        cfg = self._cfg_obj or load_config(self._cfg_path)
        self.cfg = cfg
        setup_logger(
            "poller",
            level=getattr(logging, cfg.log_level.upper(), logging.INFO),
            log_file=cfg.storage.debug_log,
        )

        self.strategy = build_strategy(
            cfg.strategy,
            poll_interval_secs=cfg.poll_interval_secs,
            short_periods=cfg.short_periods,
            long_periods=cfg.long_periods,
        )
        self.gateway = self._gateway or build_gateway(cfg, logger_=logger)
        submit_orders = cfg.mode == "live" or isinstance(self.gateway, SimulatedGateway)

        if cfg.storage.trade_log_enabled:
            self.trade_logger = TradeLogger(cfg.storage.trade_log_dir)
        if cfg.storage.backup_enabled:
            self.backup_store = BackupStore(cfg.storage.backup_dir)

        self.executor = OrderExecutor(
            self.gateway,
            self.ledger,
            usd_account=cfg.exchange.usd_account,
            fee_rate=cfg.fee_rate,
            sizer=FixedFractionSizer(getattr(self.strategy, "buy_fraction", 0.49)),
            submit_orders=submit_orders,
            timeout_secs=cfg.request_timeout_secs,
            arm_cooldown=self.strategy.arms_cooldown,
            mode=cfg.mode,
            trade_logger=self.trade_logger,
        )

        for inst_cfg in cfg.instruments:
            inst = Instrument.create(inst_cfg.ticker, inst_cfg.account or inst_cfg.ticker, cfg.long_periods)
            if self.backup_store is not None:
                self.backup_store.rehydrate(inst)
            self.instruments[inst.ticker] = inst
            self.ticks[inst.ticker] = 0
            self.reports[inst.ticker] = deque(maxlen=RECENT_REPORTS)

        logger.info(
            "Engine ready: mode=%s strategy=%s poll=%.1fs periods=%d/%d warmup=%d instruments=%s submit_orders=%s",
            cfg.mode,
            getattr(self.strategy, "strategy_id", type(self.strategy).__name__),
            cfg.poll_interval_secs,
            cfg.short_periods,
            cfg.long_periods,
            self.strategy.required_points(),
            ",".join(self.instruments),
            submit_orders,
        )

    # ------------------------------------------------------------------ run
    def run(self) -> EngineResult:
        try:
            return asyncio.run(self.run_async())
        except KeyboardInterrupt:
            logger.info("Interrupted, stopping.")
            return EngineResult(summary=self._build_summary())

    async def run_async(self) -> EngineResult:
        self.setup()
        self._stopping = False
        try:
            await asyncio.gather(*(self._instrument_loop(inst) for inst in self.instruments.values()))
        finally:
            await self._shutdown()
        return EngineResult(summary=self._build_summary())

    def stop(self) -> None:
        """请求停止：各品种在当前周期结束后退出。"""
        self._stopping = True

    async def _instrument_loop(self, instrument: Instrument) -> None:
        assert self.cfg is not None
        interval = self.cfg.poll_interval_secs
        loop = asyncio.get_running_loop()
        next_at = loop.time()
        name = instrument.ticker

        while not self._stopping:
            if self._max_ticks is not None and self.ticks[name] >= self._max_ticks:
                break
            await self.run_once(instrument)

            # 固定频率：下一次触发时间按间隔累加，不受本周期耗时影响
            next_at += interval
            if self._stopping or (self._max_ticks is not None and self.ticks[name] >= self._max_ticks):
                break
            await self._sleep(max(0.0, next_at - loop.time()))

    async def run_once(self, instrument: Instrument) -> CycleReport | None:
        """执行单个品种的一个周期；任何失败都只影响本周期。"""
        assert self.cfg is not None and self.strategy is not None
        assert self.gateway is not None and self.executor is not None
        name = instrument.ticker
        self.ticks[name] = self.ticks.get(name, 0) + 1
        report: CycleReport | None = None
        try:
            report = await run_cycle(
                instrument=instrument,
                strategy=self.strategy,
                gateway=self.gateway,
                executor=self.executor,
                timeout=self.cfg.request_timeout_secs,
            )
        except Exception:
            logger.exception("[%s] Unexpected error in cycle %d", name, self.ticks[name])
            return None

        self.reports.setdefault(name, deque(maxlen=RECENT_REPORTS)).append(report)
        self._persist(instrument, report.point)
        if self._on_cycle is not None:
            self._on_cycle(report)
        return report

    def _persist(self, instrument: Instrument, point: PricePoint | None) -> None:
        if self.backup_store is None:
            return
        assert self.cfg is not None
        try:
            self.backup_store.save(instrument)
            if point is not None and self.cfg.storage.history_log_enabled:
                self.backup_store.append_point(instrument.ticker, point)
        except OSError as exc:
            logger.warning("[%s] Backup failed: %s", instrument.ticker, exc)

    async def _shutdown(self) -> None:
        if self.trade_logger is not None:
            self.trade_logger.close()
        if self.gateway is not None:
            await self.gateway.close()

    def _build_summary(self) -> dict[str, Any]:
        totals = self.ledger.snapshot()
        return {
            "mode": self.cfg.mode if self.cfg else None,
            "total_profit": totals.total_profit,
            "total_fees": totals.total_fees,
            "instruments": {
                name: {
                    "ticks": self.ticks.get(name, 0),
                    "holding": inst.holding,
                    "points": len(inst.history),
                    "transactions": len(inst.transactions),
                }
                for name, inst in self.instruments.items()
            },
        }
