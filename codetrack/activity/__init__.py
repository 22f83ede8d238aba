"""Activity module - records editor events into the interval buffer."""

from .buffer import ActivityBuffer
from .recorder import ActivityRecorder

__all__ = ["ActivityBuffer", "ActivityRecorder"]
