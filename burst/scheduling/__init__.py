from .deadline import DAY_MS, DeadlineScheduler, build_target_instant
from .prewarm import PreWarmPlanner

__all__ = ["DAY_MS", "DeadlineScheduler", "build_target_instant", "PreWarmPlanner"]
