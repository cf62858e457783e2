"""配置架构定义（Pydantic Schema）。

目标：
- 让配置成为“强类型 + 可演进”的边界协议；
- 启动阶段尽早失败，避免 typo/类型错误在实盘中“隐蔽爆炸”；
- 尽量消灭业务代码里的 `cfg.get(...)` 与深层字典索引。
"""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from shared.models.history import MAX_HISTORY_CAPACITY

MIN_POLL_INTERVAL_MS = 5000
MAX_BUY_FRACTION = 0.98


class ExchangeConfig(BaseModel):
    """交易所（网关）配置。"""
    name: str = "coinbase"
    api_key: Optional[str] = None
    api_secret: Optional[str] = None
    password: Optional[str] = None
    sandbox: bool = False
    usd_account: str = "USD"
    model_config = ConfigDict(extra="forbid")


class InstrumentConfig(BaseModel):
    """单个交易品种。"""
    ticker: str
    account: Optional[str] = None

    model_config = ConfigDict(extra="forbid")

    @model_validator(mode="after")
    def _default_account(self) -> "InstrumentConfig":
        if not self.account:
            # "BTC-USD" -> "BTC"
            self.account = self.ticker.split("-")[0].upper()
        return self


class StrategyConfig(BaseModel):
    """策略配置（type + params）。

    说明：
    - 策略参数不允许“散落在顶层”：必须进入 `params`；
    - `strategy:` 下的扁平字段会被自动挪到 `params`，从而实现：
      - 用户写起来方便
      - schema 又能做到严格（forbid extra keys）
    """
    type: Literal["moving", "percent"] = "moving"
    params: Dict[str, Any] = Field(default_factory=dict)
    model_config = ConfigDict(extra="forbid")

    @model_validator(mode="before")
    @classmethod
    def _pack_flat_params(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        if "params" in data and isinstance(data.get("params"), dict) and set(data.keys()) <= {"type", "params"}:
            return data
        strat_type = data.get("type", "moving")
        params = {k: v for k, v in data.items() if k not in {"type", "params"}}
        existing = data.get("params")
        if isinstance(existing, dict):
            params = {**params, **existing}
        return {"type": strat_type, "params": params}

    @model_validator(mode="after")
    def _check_buy_fraction(self) -> "StrategyConfig":
        frac = self.params.get("buy_fraction")
        if frac is not None and not (0 < float(frac) <= MAX_BUY_FRACTION):
            raise ValueError(f"strategy.buy_fraction must be in (0, {MAX_BUY_FRACTION}]")
        return self


class StorageConfig(BaseModel):
    """本地落盘配置（历史备份 / 长期价格记录 / 交易 CSV / 调试日志）。"""
    backup_enabled: bool = True
    backup_dir: str = "logs/backup"
    history_log_enabled: bool = True
    trade_log_enabled: bool = True
    trade_log_dir: str = "logs/trades"
    debug_log: Optional[str] = "logs/debug.txt"
    model_config = ConfigDict(extra="forbid")


class MainConfig(BaseModel):
    """应用总配置。"""
    mode: Literal["paper", "live"] = "paper"
    poll_interval_ms: int = 60000
    short_periods: int = 30
    long_periods: int = 240
    fee_rate: float = 0.003
    request_timeout_ms: Optional[int] = None
    log_level: str = "INFO"

    exchange: ExchangeConfig = Field(default_factory=ExchangeConfig)
    strategy: StrategyConfig = Field(default_factory=StrategyConfig)
    instruments: List[InstrumentConfig] = Field(
        default_factory=lambda: [
            InstrumentConfig(ticker="BTC-USD"),
            InstrumentConfig(ticker="ETH-USD"),
        ]
    )
    storage: StorageConfig = Field(default_factory=StorageConfig)

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    @model_validator(mode="after")
    def _check_periods(self) -> "MainConfig":
        if self.poll_interval_ms < MIN_POLL_INTERVAL_MS:
            raise ValueError(f"poll_interval_ms cannot be less than {MIN_POLL_INTERVAL_MS}")
        if self.short_periods <= 0:
            raise ValueError("short_periods must be positive")
        if self.short_periods >= self.long_periods:
            raise ValueError("short_periods must be less than long_periods")
        if self.long_periods > MAX_HISTORY_CAPACITY:
            raise ValueError(f"long_periods cannot exceed {MAX_HISTORY_CAPACITY}")
        if not (0 <= self.fee_rate < 1):
            raise ValueError("fee_rate must be in [0, 1)")
        if self.request_timeout_ms is not None and self.request_timeout_ms <= 0:
            raise ValueError("request_timeout_ms must be positive")
        if not self.instruments:
            raise ValueError("at least one instrument is required")
        tickers = [i.ticker for i in self.instruments]
        if len(set(tickers)) != len(tickers):
            raise ValueError("instrument tickers must be unique")
        if self.strategy.type == "percent":
            day_hours = float(self.strategy.params.get("day_hours", 24.0))
            confirm_days = int(self.strategy.params.get("confirm_days", 3))
            if confirm_days < 2:
                raise ValueError("strategy.confirm_days must be at least 2")
            day_points = max(1, int(round(day_hours * 3600 * 1000 / self.poll_interval_ms)))
            # 多日确认要在完整的 confirm_days 个日桶上比较方向
            if self.long_periods < confirm_days * day_points:
                raise ValueError(
                    f"percent strategy needs long_periods >= {confirm_days * day_points} "
                    f"({confirm_days} days of points)"
                )
        return self

    @property
    def poll_interval_secs(self) -> float:
        return self.poll_interval_ms / 1000.0

    @property
    def request_timeout_secs(self) -> float:
        """单次网关调用超时：默认取轮询间隔的一半。"""
        if self.request_timeout_ms is not None:
            return self.request_timeout_ms / 1000.0
        return self.poll_interval_secs / 2
