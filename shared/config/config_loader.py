"""配置加载。

支持 YAML 配置、环境变量占位符 `${VAR}` 展开，以及 .env/.env.local 自动加载；
展开后的 dict 交给 pydantic schema 做严格校验。
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any, Mapping

import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

from shared.config.schema import MainConfig

_ENV_PATTERN = re.compile(r"\$\{([^}]+)\}")


def _load_envs(cfg_path: Path) -> None:
    """
    加载配置文件目录与其上级目录下的 .env/.env.local（不覆盖已有环境变量）。
    """
    candidates = [
        cfg_path.parent / ".env",
        cfg_path.parent / ".env.local",
        cfg_path.parent.parent / ".env",
        cfg_path.parent.parent / ".env.local",
    ]
    for env_file in candidates:
        if env_file.exists():
            load_dotenv(env_file, override=False)


def expand_env(value: Any) -> Any:
    """递归展开 `${VAR}`；变量缺失时抛错，避免静默替换为空。"""
    if isinstance(value, str):
        def replacer(match: re.Match) -> str:
            var_name = match.group(1)
            if var_name not in os.environ:
                raise ValueError(f"Missing environment variable: {var_name}")
            return os.environ[var_name]

        return _ENV_PATTERN.sub(replacer, value)
    if isinstance(value, dict):
        return {k: expand_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [expand_env(v) for v in value]
    return value


def parse_config(raw: Mapping[str, Any]) -> MainConfig:
    """校验 raw dict 并返回 MainConfig；校验失败统一转成 ValueError。"""
    try:
        return MainConfig.model_validate(dict(raw))
    except ValidationError as exc:
        raise ValueError(f"Invalid config: {exc}") from exc


def load_config(path: str, load_env: bool = True, expand: bool = True) -> MainConfig:
    """从 YAML 读取并解析配置。

    Parameters
    ----------
    path:
        配置文件路径。
    load_env:
        是否自动加载 .env/.env.local。
    expand:
        是否展开 `${VAR}` 占位符。

    Returns
    -------
    MainConfig
        解析后的配置对象。

    Raises
    ------
    FileNotFoundError
        配置文件不存在。
    ValueError
        校验失败或缺失环境变量。
    """
    cfg_path = Path(path)
    if not cfg_path.exists():
        raise FileNotFoundError(f"Config file not found: {cfg_path}")

    if load_env:
        _load_envs(cfg_path)

    with cfg_path.open("r", encoding="utf-8") as f:
        raw_cfg: dict[str, Any] = yaml.safe_load(f) or {}

    if not isinstance(raw_cfg, dict):
        raise ValueError("Config root must be a dict")

    cfg = expand_env(raw_cfg) if expand else raw_cfg
    return parse_config(cfg)


def apply_overrides(cfg: MainConfig, **overrides: Any) -> MainConfig:
    """把 CLI 覆盖项合并进配置并重新校验（None 表示不覆盖）。"""
    data = cfg.model_dump()
    for key, value in overrides.items():
        if value is None:
            continue
        if key == "strategy":
            data["strategy"]["type"] = value
        else:
            data[key] = value
    return parse_config(data)
