from .dispatcher import BurstDispatcher, DispatchState
from .orchestrator import BatchOrchestrator
from .sequential import SequentialRunner

__all__ = ["BurstDispatcher", "DispatchState", "BatchOrchestrator", "SequentialRunner"]
