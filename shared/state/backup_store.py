"""品种快照的本地 JSON 备份与长期价格记录。

- 快照：每个品种一个文件（`<dir>/<ticker>.backup.json`），每个周期结束后整体覆盖写入；
  启动时读回并按容量截断。损坏的备份只记录日志并忽略，不阻止启动。
- 长期记录：`<dir>/<ticker>.history.jsonl`，每个周期追加一行报价，从不截断，供离线研究。
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

from shared.models.instrument import Instrument
from shared.models.models import PricePoint

logger = logging.getLogger("poller.backup")


def _json_dumps(obj: Any) -> str:
    return json.dumps(obj, ensure_ascii=False, default=str, allow_nan=False)


class BackupStore:
    def __init__(self, base_dir: str | Path):
        self.base_dir = Path(base_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def path_for(self, ticker: str) -> Path:
        return self.base_dir / f"{ticker}.backup.json"

    def history_path_for(self, ticker: str) -> Path:
        return self.base_dir / f"{ticker}.history.jsonl"

    def save(self, instrument: Instrument) -> Path:
        path = self.path_for(instrument.ticker)
        tmp = path.with_suffix(".json.tmp")
        tmp.write_text(_json_dumps(instrument.snapshot()), encoding="utf-8")
        # 先写临时文件再替换，避免进程中断留下半截 JSON
        os.replace(tmp, path)
        return path

    def append_point(self, ticker: str, point: PricePoint) -> Path:
        """向长期记录追加一行（追加写，不读回已有内容）。"""
        path = self.history_path_for(ticker)
        with path.open("a", encoding="utf-8") as f:
            f.write(_json_dumps(point.to_dict()) + "\n")
        return path

    def load(self, ticker: str) -> dict[str, Any] | None:
        path = self.path_for(ticker)
        if not path.exists():
            return None
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("[%s] Ignoring unreadable backup %s: %s", ticker, path, exc)
            return None
        if not isinstance(data, dict):
            logger.warning("[%s] Ignoring malformed backup %s", ticker, path)
            return None
        return data

    def rehydrate(self, instrument: Instrument) -> bool:
        """用备份恢复品种状态；没有可用备份时返回 False。"""
        snap = self.load(instrument.ticker)
        if snap is None:
            return False
        try:
            instrument.restore(snap)
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning("[%s] Ignoring invalid backup contents: %s", instrument.ticker, exc)
            return False
        logger.info("[%s] Restored from backup: %s", instrument.ticker, instrument.state_label())
        return True
