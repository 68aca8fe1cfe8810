from nixfleet.application.orchestration.strategy_engine import (
    StrategyEngine,
    plan_batches,
)

__all__ = ["StrategyEngine", "plan_batches"]
