"""定长价格历史（最新在前）。"""

from __future__ import annotations

from collections import deque
from itertools import islice
from typing import Deque, Iterable, Iterator

from shared.models.errors import InsufficientDataError
from shared.models.models import PricePoint

MAX_HISTORY_CAPACITY = 4320  # 3 天 @ 1 分钟轮询


class BoundedHistory:
    """按容量 FIFO 淘汰的价格缓冲区。

    Notes
    -----
    - 下标 0 是最新的点；
    - 只按容量淘汰，不按时间淘汰：轮询很慢时旧数据会一直保留；
    - 不支持乱序插入，调用方保证按到达顺序 push。
    """

    def __init__(self, capacity: int, points: Iterable[PricePoint] | None = None):
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self.capacity = int(capacity)
        self._points: Deque[PricePoint] = deque(maxlen=self.capacity)
        if points is not None:
            # points 为最新在前的序列，超出容量的旧点直接丢弃
            for p in points:
                if len(self._points) >= self.capacity:
                    break
                self._points.append(p)

    def push(self, point: PricePoint) -> None:
        # deque(maxlen) 的 appendleft 会自动从右端（最旧）淘汰
        self._points.appendleft(point)

    def __len__(self) -> int:
        return len(self._points)

    def __iter__(self) -> Iterator[PricePoint]:
        return iter(self._points)

    def latest(self) -> PricePoint:
        if not self._points:
            raise InsufficientDataError(1, 0)
        return self._points[0]

    def window_from(self, n: int) -> list[PricePoint]:
        """返回最近 n 个点（最新在前）。"""
        if n > len(self._points):
            raise InsufficientDataError(n, len(self._points))
        if n <= 0:
            return []
        return list(islice(self._points, n))

    def bids(self, n: int) -> list[float]:
        return [p.bid for p in self.window_from(n)]

    def asks(self, n: int) -> list[float]:
        return [p.ask for p in self.window_from(n)]
