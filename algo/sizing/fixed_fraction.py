from dataclasses import dataclass

from shared.utils.precision import round_cents


@dataclass(frozen=True)
class FixedFractionSizer:
    """买入用可用 USD 的固定比例；卖出清空全部持仓。"""
    buy_fraction: float = 0.49

    def buy_funds(self, *, usd_available: float) -> float:
        return round_cents(usd_available * self.buy_fraction)

    def sell_size(self, *, coin_available: float) -> float:
        return float(coin_available)
