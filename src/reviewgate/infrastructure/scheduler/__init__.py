# Card Scheduler Adapters
from .fsrs_adapter import FsrsCardScheduler

__all__ = ["FsrsCardScheduler"]
