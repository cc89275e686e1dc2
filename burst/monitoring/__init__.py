from .metrics import CompletionTracker, summarize_latencies
from .stats import aggregate, compute_qps, round_half_up

__all__ = ["CompletionTracker", "aggregate", "compute_qps", "round_half_up", "summarize_latencies"]
