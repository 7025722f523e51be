"""
Queue service: wires the store, the scheduler and the user's quality
preferences together behind the operations the API exposes.
"""

from collections import deque
from typing import Any, Callable, Deque, Dict, Iterable, List, Mapping, Optional, Tuple

from ..config.logging_config import get_logger
from ..core.intents import (
    ClearFinished, Enqueue, Pause, Remove, Resume, Retry, SetBudget, TaskIntent
)
from ..core.models import Notification, QueueState, Task, Video
from ..core.scheduler import SchedulerLoop
from ..core.selection import build_video_refs
from ..core.store import QueueStore
from ..utils.exceptions import NotFoundError
from .catalog import CatalogCache
from .executor_client import DownloadExecutorClient

logger = get_logger(__name__)

NotificationListener = Callable[[Notification], None]


class QueueService:
    """Facade over the download queue for the presentation layer."""

    def __init__(
        self,
        store: QueueStore,
        executor_client: DownloadExecutorClient,
        global_quality: str,
        catalog: Optional[CatalogCache] = None,
        completion_check: bool = True,
        on_outcome: Optional[Callable[[str], None]] = None,
        max_notifications: int = 50
    ):
        self.store = store
        self.executor_client = executor_client
        self.catalog = catalog or CatalogCache()
        self.global_quality = global_quality
        self.video_qualities: Dict[str, str] = {}
        self.notifications: Deque[Notification] = deque(maxlen=max_notifications)
        self._notification_listeners: List[NotificationListener] = []
        self.scheduler = SchedulerLoop(
            store,
            executor_client,
            completion_check=completion_check,
            notify=self._publish,
            on_outcome=on_outcome,
        )

    @classmethod
    def from_settings(
        cls,
        app_settings,
        executor_client: Optional[DownloadExecutorClient] = None,
        catalog: Optional[CatalogCache] = None,
        on_outcome: Optional[Callable[[str], None]] = None
    ) -> "QueueService":
        return cls(
            store=QueueStore(budget=app_settings.MAX_CONCURRENT_DOWNLOADS),
            executor_client=executor_client or DownloadExecutorClient.from_settings(app_settings),
            global_quality=app_settings.DEFAULT_VIDEO_QUALITY.value,
            catalog=catalog,
            completion_check=app_settings.EXECUTOR_COMPLETION_CHECK,
            on_outcome=on_outcome,
        )

    @property
    def state(self) -> QueueState:
        return self.store.state

    def start(self) -> None:
        self.scheduler.start()

    async def stop(self) -> None:
        await self.scheduler.stop()
        await self.executor_client.close()

    # Notifications

    def _publish(self, notification: Notification) -> None:
        self.notifications.append(notification)
        for listener in list(self._notification_listeners):
            try:
                listener(notification)
            except Exception as e:
                logger.error(f"Notification listener failed: {e}", exc_info=True)

    def subscribe_notifications(self, listener: NotificationListener) -> Callable[[], None]:
        self._notification_listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._notification_listeners:
                self._notification_listeners.remove(listener)

        return unsubscribe

    # Snapshot

    def snapshot(self, state: Optional[QueueState] = None) -> Dict[str, Any]:
        if state is None:
            state = self.store.state
        return {
            "tasks": [task.to_dict() for task in state.tasks],
            "budget": state.budget,
            "in_flight": state.in_flight_count,
            "overall_progress": round(state.overall_progress, 1),
            "notifications": [notification.to_dict() for notification in self.notifications],
        }

    # Selection

    def enqueue_selection(
        self,
        selected_ids: Iterable[str],
        videos: Optional[Iterable[Video]] = None,
        video_qualities: Optional[Mapping[str, str]] = None
    ) -> Tuple[List[str], List[str]]:
        """
        Enqueue the selected videos.

        ``videos`` are added to the catalog first, so a caller can enqueue
        videos this process has not fetched itself. Returns the ids added and
        the ids skipped (unknown, duplicate or already queued).
        """
        if videos:
            self.catalog.add(videos)

        qualities = dict(self.video_qualities)
        if video_qualities:
            qualities.update(video_qualities)

        selected = list(selected_ids)
        refs = build_video_refs(selected, self.catalog.as_mapping(), qualities, self.global_quality)

        before = set(self.store.state.ids)
        self.store.dispatch(Enqueue(refs))
        added = [ref.id for ref in refs if ref.id not in before]
        added_set = set(added)

        skipped = []
        for video_id in selected:
            if video_id not in added_set and video_id not in skipped:
                skipped.append(video_id)

        logger.info(
            f"Enqueued {len(added)} of {len(selected)} selected video(s)",
            extra={"added": len(added), "skipped": len(skipped)}
        )
        return added, skipped

    # Task actions

    def _task_action(self, intent: TaskIntent) -> Task:
        if intent.task_id not in self.store.state:
            raise NotFoundError(f"Task {intent.task_id} not found", resource="task")
        return self.store.dispatch(intent).get(intent.task_id)

    def pause(self, task_id: str) -> Task:
        return self._task_action(Pause(task_id))

    def resume(self, task_id: str) -> Task:
        return self._task_action(Resume(task_id))

    def retry(self, task_id: str) -> Task:
        return self._task_action(Retry(task_id))

    def remove(self, task_id: str) -> None:
        if task_id not in self.store.state:
            raise NotFoundError(f"Task {task_id} not found", resource="task")
        self.store.dispatch(Remove(task_id))

    def clear_finished(self) -> int:
        before = len(self.store.state)
        after = len(self.store.dispatch(ClearFinished()))
        return before - after

    # Settings

    def set_budget(self, budget: int) -> int:
        return self.store.dispatch(SetBudget(budget)).budget

    def set_global_quality(self, quality: str) -> None:
        logger.info(f"Default quality set to {quality}")
        self.global_quality = quality

    def set_video_quality(self, video_id: str, quality: Optional[str]) -> None:
        """Per-video override for future enqueues; None clears it."""
        if quality:
            self.video_qualities[video_id] = quality
        else:
            self.video_qualities.pop(video_id, None)

    def settings_dict(self) -> Dict[str, Any]:
        return {
            "concurrent_downloads": self.store.state.budget,
            "default_quality": self.global_quality,
            "video_qualities": dict(self.video_qualities),
        }
