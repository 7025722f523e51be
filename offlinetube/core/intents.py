"""
The closed set of intents the queue store accepts.

User intents come from the presentation layer (enqueue, pause, resume, retry,
remove, clear finished, budget changes). Outcome intents come from the
scheduler when an executor request resolves; they may carry the admission
attempt they belong to so a late answer for an earlier attempt is ignored.
"""

from dataclasses import dataclass
from typing import Optional, Tuple

from .models import DownloadLocator, VideoRef


@dataclass(frozen=True)
class Intent:
    """Base class for store intents."""


@dataclass(frozen=True)
class TaskIntent(Intent):
    """Intent addressed to a single task."""
    task_id: str


@dataclass(frozen=True)
class OutcomeIntent(TaskIntent):
    """Executor outcome for one admission attempt of a task."""
    attempt: Optional[int] = None


@dataclass(frozen=True)
class Enqueue(Intent):
    videos: Tuple[VideoRef, ...]

    def __init__(self, videos):
        object.__setattr__(self, "videos", tuple(videos))


@dataclass(frozen=True)
class MarkStarting(TaskIntent):
    pass


@dataclass(frozen=True)
class MarkInProgress(OutcomeIntent):
    pass


@dataclass(frozen=True)
class UpdateProgress(OutcomeIntent):
    progress: int = 0


@dataclass(frozen=True)
class MarkReady(OutcomeIntent):
    locator: Optional[DownloadLocator] = None


@dataclass(frozen=True)
class MarkError(OutcomeIntent):
    message: str = "Download failed"


@dataclass(frozen=True)
class Pause(TaskIntent):
    pass


@dataclass(frozen=True)
class Resume(TaskIntent):
    pass


@dataclass(frozen=True)
class Retry(TaskIntent):
    pass


@dataclass(frozen=True)
class Remove(TaskIntent):
    pass


@dataclass(frozen=True)
class ClearFinished(Intent):
    pass


@dataclass(frozen=True)
class SetBudget(Intent):
    budget: int
