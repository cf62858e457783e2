from abc import ABC, abstractmethod

from shared.models.instrument import Instrument
from shared.models.models import Decision


class Strategy(ABC):
    """策略接口：读取品种的历史与持仓状态，输出一个 Decision。"""

    # 卖出后是否进入冷却（由执行层在卖出成交后调用 instrument.arm_cooldown()）
    arms_cooldown: bool = False

    @abstractmethod
    def evaluate(self, instrument: Instrument) -> Decision:
        """
        预期内的“不操作”通过 Decision.none(...) 返回；
        不变量被破坏时抛出 ConsistencyError。
        """
        ...

    def required_points(self) -> int:
        """开始产生信号所需的最少历史点数。"""
        return 1
