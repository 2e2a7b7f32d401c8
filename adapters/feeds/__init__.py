from .replay import RecordedVitals, ReplayReadingSource
from .smoothing import MovingAverageSource

__all__ = ["MovingAverageSource", "RecordedVitals", "ReplayReadingSource"]
