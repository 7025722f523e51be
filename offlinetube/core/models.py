"""
Data model of the download queue: tasks, their lifecycle status and the
immutable queue snapshot the store hands out to readers.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterator, List, Optional, Tuple


class TaskStatus(str, Enum):
    """Download task lifecycle status."""
    QUEUED = "queued"
    STARTING = "starting"
    IN_PROGRESS = "in_progress"
    READY = "ready"
    ERROR = "error"
    PAUSED = "paused"


# Statuses that occupy a slot of the concurrency budget
IN_FLIGHT_STATUSES = frozenset({TaskStatus.STARTING, TaskStatus.IN_PROGRESS})

# Statuses removed by ClearFinished
FINISHED_STATUSES = frozenset({TaskStatus.READY, TaskStatus.ERROR})

# Statuses a user can pause from
PAUSABLE_STATUSES = frozenset({TaskStatus.QUEUED, TaskStatus.STARTING, TaskStatus.IN_PROGRESS})

# Statuses retry/resume bring back to the queue
RETRYABLE_STATUSES = frozenset({TaskStatus.ERROR, TaskStatus.PAUSED})


@dataclass(frozen=True)
class DownloadLocator:
    """Where a finished file can be fetched from."""
    url: str
    filename: str


@dataclass(frozen=True)
class Video:
    """A video record as returned by the catalog."""
    id: str
    title: str
    thumbnail_url: str = ""
    duration_label: str = "N/A"
    upload_date_label: str = "Unknown date"
    view_count_label: str = "N/A views"
    channel_name: str = ""
    available_qualities: Tuple[str, ...] = ()
    description: Optional[str] = None
    published_at: Optional[str] = None
    playlist_id: Optional[str] = None


@dataclass(frozen=True)
class VideoRef:
    """Enqueue input: a video with its quality already resolved."""
    id: str
    title: str
    quality: str
    thumbnail_url: str = ""


@dataclass(frozen=True)
class Task:
    """One video's download lifecycle record."""
    id: str
    title: str
    selected_quality: str
    thumbnail_url: str = ""
    status: TaskStatus = TaskStatus.QUEUED
    progress: int = 0
    download_locator: Optional[DownloadLocator] = None
    error_message: Optional[str] = None
    attempt: int = 0

    @property
    def effective_progress(self) -> int:
        """Progress used for the overall figure; ready counts as complete."""
        if self.status == TaskStatus.READY:
            return 100
        return self.progress

    @property
    def is_in_flight(self) -> bool:
        return self.status in IN_FLIGHT_STATUSES

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "title": self.title,
            "thumbnail_url": self.thumbnail_url,
            "selected_quality": self.selected_quality,
            "status": self.status.value,
            "progress": self.progress,
            "download_url": self.download_locator.url if self.download_locator else None,
            "filename": self.download_locator.filename if self.download_locator else None,
            "error_message": self.error_message,
            "attempt": self.attempt,
        }


@dataclass(frozen=True)
class QueueState:
    """
    Immutable queue snapshot.

    Tasks keep insertion order and are unique by id. Every change produces a
    new QueueState; readers never see a partially applied update.
    ``next_attempt`` only grows, so an attempt number is never handed out
    twice, not even to a task that was removed and enqueued again.
    """
    tasks: Tuple[Task, ...] = ()
    budget: int = 2
    next_attempt: int = 1

    def __iter__(self) -> Iterator[Task]:
        return iter(self.tasks)

    def __len__(self) -> int:
        return len(self.tasks)

    def __contains__(self, task_id: object) -> bool:
        return any(task.id == task_id for task in self.tasks)

    def get(self, task_id: str) -> Optional[Task]:
        for task in self.tasks:
            if task.id == task_id:
                return task
        return None

    @property
    def ids(self) -> List[str]:
        return [task.id for task in self.tasks]

    @property
    def in_flight_count(self) -> int:
        return sum(1 for task in self.tasks if task.is_in_flight)

    @property
    def available_slots(self) -> int:
        return max(0, self.budget - self.in_flight_count)

    def queued_tasks(self) -> List[Task]:
        """Tasks waiting for admission, in insertion order."""
        return [task for task in self.tasks if task.status == TaskStatus.QUEUED]

    def count_by_status(self) -> Dict[TaskStatus, int]:
        counts = {status: 0 for status in TaskStatus}
        for task in self.tasks:
            counts[task.status] += 1
        return counts

    @property
    def overall_progress(self) -> float:
        """Average effective progress over all tasks, 0 for an empty queue."""
        if not self.tasks:
            return 0.0
        return sum(task.effective_progress for task in self.tasks) / len(self.tasks)


@dataclass(frozen=True)
class Notification:
    """Transient user-facing message about a task outcome."""
    level: str
    title: str
    description: str
    task_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {
            "level": self.level,
            "title": self.title,
            "description": self.description,
            "task_id": self.task_id,
        }
