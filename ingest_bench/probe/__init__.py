from .lag_stats import LagSample, LagTracker, SignalLagStats
from .latency_probe import LatencyProbe

__all__ = ["LagSample", "LagTracker", "LatencyProbe", "SignalLagStats"]
