"""执行引擎层（engine）。

TradingEngine 负责调度每个品种的轮询周期，`run() -> EngineResult` 为统一出口；
单周期逻辑在 signal_pipeline，下单与记账在 executor/accounting。
"""
