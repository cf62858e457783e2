"""交易日志持久化（CSV 日切）。"""

import csv
from dataclasses import dataclass
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Optional, TextIO


@dataclass
class TradeRecord:
    """单笔成交记录。"""
    ts: Any
    ticker: str
    side: str
    price: float
    fee: float
    profit: float | None
    total_profit: float
    total_fees: float
    mode: str


HEADER = ["ts", "ticker", "side", "price", "fee", "profit", "total_profit", "total_fees", "mode"]


class TradeLogger:
    """按日切 CSV 记录交易。

    Parameters
    ----------
    base_dir:
        输出目录。
    """

    def __init__(self, base_dir: str | Path = "logs/trades"):
        self.base_dir = Path(base_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)
        self.current_date: date | None = None
        self.file: Optional[TextIO] = None
        self.writer: Any = None

    def _ensure_file(self):
        today = datetime.now(timezone.utc).date()
        if self.current_date == today and self.file:
            return

        if self.file:
            self.file.close()

        self.current_date = today
        file_path = self.base_dir / f"trades_{today}.csv"
        new_file = not file_path.exists()
        self.file = file_path.open("a", newline="", encoding="utf-8")
        self.writer = csv.writer(self.file)
        if new_file:
            self.writer.writerow(HEADER)

    def log(self, record: TradeRecord):
        """写入一条交易记录。"""
        self._ensure_file()
        ts = record.ts
        if isinstance(ts, datetime):
            ts_val = ts.strftime("%Y-%m-%d %H:%M:%S")
        else:
            ts_val = str(ts)

        if self.writer is None or self.file is None:
            raise RuntimeError("TradeLogger not initialized")

        self.writer.writerow(
            [
                ts_val,
                record.ticker,
                record.side,
                f"{record.price:.2f}",
                f"{record.fee:.2f}",
                f"{record.profit:.2f}" if record.profit is not None else "",
                f"{record.total_profit:.2f}",
                f"{record.total_fees:.2f}",
                record.mode,
            ]
        )
        self.file.flush()

    def close(self):
        """关闭当前文件句柄。"""
        if self.file:
            self.file.close()
            self.file = None
            self.writer = None
