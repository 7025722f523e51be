"""Download queue core: data model, intents, reducer and store."""

from .models import (
    TaskStatus, Task, QueueState, Video, VideoRef, DownloadLocator, Notification
)
from .intents import (
    Intent, Enqueue, MarkStarting, MarkInProgress, UpdateProgress, MarkReady,
    MarkError, Pause, Resume, Retry, Remove, ClearFinished, SetBudget
)
from .reducer import reduce, next_status
from .store import QueueStore
from .selection import build_video_refs, resolve_quality

__all__ = [
    "TaskStatus", "Task", "QueueState", "Video", "VideoRef", "DownloadLocator",
    "Notification", "Intent", "Enqueue", "MarkStarting", "MarkInProgress",
    "UpdateProgress", "MarkReady", "MarkError", "Pause", "Resume", "Retry",
    "Remove", "ClearFinished", "SetBudget", "reduce", "next_status",
    "QueueStore", "build_video_refs", "resolve_quality",
]
