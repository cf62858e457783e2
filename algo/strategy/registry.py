"""策略注册表：字符串 -> Strategy 实现。

约定：engine 只负责 orchestration，策略实例必须由配置驱动构建。
"""

from __future__ import annotations

import inspect
from typing import Any, Mapping

from algo.strategy.base import Strategy
from algo.strategy.moving_average import MovingAverageStrategy
from algo.strategy.percent import TrendPercentStrategy
from shared.config.schema import StrategyConfig

_REGISTRY: dict[str, type[Strategy]] = {}


def register_strategy(name: str, cls: type[Strategy]) -> None:
    _REGISTRY[name] = cls


def get_strategy_cls(name: str) -> type[Strategy]:
    if name not in _REGISTRY:
        raise ValueError(f"Unknown strategy: {name}")
    return _REGISTRY[name]


def _filter_init_kwargs(cls: type, params: Mapping[str, Any]) -> dict[str, Any]:
    """过滤出 __init__ 支持的参数，避免配置里多字段导致报错。"""
    try:
        sig = inspect.signature(cls.__init__)
    except (TypeError, ValueError):
        return dict(params)

    if any(p.kind == inspect.Parameter.VAR_KEYWORD for p in sig.parameters.values()):
        return dict(params)

    allowed = {name for name in sig.parameters.keys() if name != "self"}
    return {k: v for k, v in params.items() if k in allowed}


def build_strategy(
    cfg: StrategyConfig | Mapping[str, Any] | None,
    *,
    poll_interval_secs: float,
    short_periods: int,
    long_periods: int,
) -> Strategy:
    """从配置构建策略实例。

    顶层的轮询间隔与均线周期会作为默认参数注入，`params` 中的同名字段优先。

    支持：
    - StrategyConfig（来自 shared.config.schema）
    - dict（含 type + 参数字段）
    """
    if cfg is None:
        name, params = "moving", {}
    elif isinstance(cfg, StrategyConfig):
        name = str(cfg.type)
        params = dict(cfg.params or {})
    elif isinstance(cfg, Mapping):
        name = str(cfg.get("type") or "moving")
        params = dict(cfg)
        params.pop("type", None)
    else:
        raise ValueError("strategy cfg must be StrategyConfig or dict")

    base = {
        "poll_interval_secs": poll_interval_secs,
        "short_periods": short_periods,
        "long_periods": long_periods,
    }
    cls = get_strategy_cls(name)
    kwargs = _filter_init_kwargs(cls, {**base, **params})
    strat = cls(**kwargs)
    setattr(strat, "strategy_id", name)
    return strat


# 默认注册
register_strategy("moving", MovingAverageStrategy)
register_strategy("percent", TrendPercentStrategy)
