"""bid/ask 轮询交易机器人统一命令行入口。

通过子命令驱动不同任务：

- `runner`：按固定间隔轮询每个品种的报价，执行策略并下单（paper/live）。
- `test`：运行单元测试。
"""

from __future__ import annotations

import argparse
from dataclasses import dataclass
from typing import Any

from analysis.status import build_status, render_status
from engine.trading_engine import TradingEngine
from shared.config.config_loader import apply_overrides, load_config


@dataclass
class CliArgs:
    """命令行参数结构。

    config: 配置文件路径
    task: 要运行的任务类型 (runner/test)
    """
    config: str
    task: str
    max_ticks: int | None = None  # 每个品种跑多少个周期后退出
    poll_ms: int | None = None
    short: int | None = None
    long: int | None = None
    strategy: str | None = None


def build_parser() -> argparse.ArgumentParser:
    """构建 CLI 参数解析器。"""
    parser = argparse.ArgumentParser(prog="poller", description="bid/ask 轮询交易机器人")

    def _add_config_arg(p: argparse.ArgumentParser, *, default: Any) -> None:
        p.add_argument(
            "--config",
            default=default,
            help="配置文件路径 (默认: config/config.yml)",
        )

    # 允许 `python main.py --config ... runner`（全局）与 `python main.py runner --config ...`（子命令）
    _add_config_arg(parser, default="config/config.yml")

    sub = parser.add_subparsers(dest="task")

    p_runner = sub.add_parser("runner", help="轮询主循环")
    _add_config_arg(p_runner, default=argparse.SUPPRESS)
    p_runner.add_argument("--max-ticks", type=int, default=None, help="每个品种跑多少个周期后退出")
    p_runner.add_argument("--poll-ms", type=int, default=None, help="覆盖 poll_interval_ms")
    p_runner.add_argument("--short", type=int, default=None, help="覆盖 short_periods")
    p_runner.add_argument("--long", type=int, default=None, help="覆盖 long_periods")
    p_runner.add_argument("--strategy", choices=["moving", "percent"], default=None, help="覆盖策略类型")

    p_test = sub.add_parser("test", help="运行 pytest")
    _add_config_arg(p_test, default=argparse.SUPPRESS)

    return parser


def parse_args(argv: list[str] | None = None) -> CliArgs:
    """解析命令行参数。

    Parameters
    ----------
    argv:
        传入的参数列表；为 None 时读取 sys.argv。
    """
    parser = build_parser()
    ns = parser.parse_args(argv)
    return CliArgs(
        config=str(getattr(ns, "config", "config/config.yml")),
        task=ns.task or "runner",
        max_ticks=getattr(ns, "max_ticks", None),
        poll_ms=getattr(ns, "poll_ms", None),
        short=getattr(ns, "short", None),
        long=getattr(ns, "long", None),
        strategy=getattr(ns, "strategy", None),
    )


def main(argv: list[str] | None = None) -> Any:
    """程序主入口，返回对应子命令的结果（runner 返回 summary dict）。"""
    args = parse_args(argv)

    if args.task == "runner":
        cfg = apply_overrides(
            load_config(args.config),
            poll_interval_ms=args.poll_ms,
            short_periods=args.short,
            long_periods=args.long,
            strategy=args.strategy,
        )
        engine = TradingEngine(cfg_obj=cfg, max_ticks=args.max_ticks)
        result = engine.run()
        render_status(build_status(engine))
        return result.summary

    if args.task == "test":
        import pytest

        return pytest.main(["-q"])

    raise ValueError(f"Unknown task: {args.task}")


if __name__ == "__main__":
    main()
