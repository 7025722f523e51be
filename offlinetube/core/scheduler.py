"""
Scheduler loop: admits queued tasks while the concurrency budget allows and
turns executor outcomes back into store intents.
"""

import asyncio
from typing import Callable, Dict, Optional, Tuple

from .intents import MarkStarting, MarkInProgress, UpdateProgress, MarkReady, MarkError
from .models import Notification, QueueState, Task
from .store import QueueStore
from ..config.logging_config import get_logger
from ..services.executor_client import (
    DownloadExecutorClient, Rejected, Completed, Failed, FailureReason
)

logger = get_logger(__name__)

NotificationSink = Callable[[Notification], None]
OutcomeSink = Callable[[str], None]


class SchedulerLoop:
    """
    Drives queued tasks through the download executor.

    On every store snapshot the loop computes the free slots
    (``budget - in_flight``) and admits that many queued tasks in insertion
    order. Each admission runs as its own asyncio task; its outcome is
    dispatched back tagged with the admission attempt, so answers for removed,
    paused or re-admitted tasks fall through as no-ops.
    """

    def __init__(
        self,
        store: QueueStore,
        executor_client: DownloadExecutorClient,
        completion_check: bool = True,
        notify: Optional[NotificationSink] = None,
        on_outcome: Optional[OutcomeSink] = None
    ):
        self.store = store
        self.executor_client = executor_client
        self.completion_check = completion_check
        self._notify = notify
        self._on_outcome = on_outcome
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._running: Dict[Tuple[str, int], asyncio.Task] = {}
        self._admitting = False
        self._readmit = False

    @property
    def is_running(self) -> bool:
        return self._unsubscribe is not None

    @property
    def running_tasks(self) -> Dict[Tuple[str, int], asyncio.Task]:
        """Outstanding executor coroutines keyed by (task id, attempt)."""
        return dict(self._running)

    def start(self) -> None:
        """Subscribe to the store and admit whatever is already queued."""
        if self.is_running:
            return
        self._loop = asyncio.get_running_loop()
        self._unsubscribe = self.store.subscribe(self._on_state_change)
        logger.info("Download scheduler started", extra={"budget": self.store.state.budget})
        self._on_state_change(self.store.state)

    async def stop(self) -> None:
        """
        Unsubscribe and cancel outstanding executor coroutines.

        Only local bookkeeping stops; a process the executor already launched
        keeps running on its side.
        """
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

        pending = list(self._running.values())
        for job in pending:
            job.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._running.clear()
        logger.info("Download scheduler stopped", extra={"cancelled": len(pending)})

    def _on_state_change(self, state: QueueState) -> None:
        if self._admitting:
            self._readmit = True
            return

        self._admitting = True
        try:
            while True:
                self._readmit = False
                self._admit(self.store.state)
                if not self._readmit:
                    break
        finally:
            self._admitting = False

    def _admit(self, state: QueueState) -> None:
        available = state.available_slots
        if available <= 0:
            return

        for candidate in state.queued_tasks()[:available]:
            before = self.store.state
            after = self.store.dispatch(MarkStarting(candidate.id))
            if after is before:
                continue
            task = after.get(candidate.id)
            if task is None or not task.is_in_flight:
                continue

            logger.info(
                f"Admitting {task.id} ({task.selected_quality}), attempt {task.attempt}",
                extra={"task_id": task.id, "attempt": task.attempt, "in_flight": after.in_flight_count}
            )
            key = (task.id, task.attempt)
            self._running[key] = self._loop.create_task(self._execute(task))

    def _is_current(self, task_id: str, attempt: int) -> bool:
        task = self.store.state.get(task_id)
        return task is not None and task.attempt == attempt and task.is_in_flight

    async def _execute(self, task: Task) -> None:
        key = (task.id, task.attempt)
        try:
            outcome = await self.executor_client.start_download(task.id, task.title, task.selected_quality)

            if isinstance(outcome, Rejected):
                self._record("rejected")
                self._fail(task, outcome.message)
                return

            self._record("accepted")
            if not self.completion_check:
                self._succeed(task, outcome.locator)
                return

            self.store.dispatch(MarkInProgress(task_id=task.id, attempt=task.attempt))
            result = await self.executor_client.wait_for_completion(
                outcome.locator,
                on_progress=lambda progress: self.store.dispatch(
                    UpdateProgress(task_id=task.id, attempt=task.attempt, progress=progress)
                ),
                should_continue=lambda: self._is_current(task.id, task.attempt),
            )

            if isinstance(result, Completed):
                self._record("completed")
                self._succeed(task, result.locator)
            elif isinstance(result, Failed) and result.reason == FailureReason.ABANDONED:
                logger.debug(f"Stopped tracking {task.id}, attempt {task.attempt}", extra={"task_id": task.id})
            else:
                self._record("failed")
                self._fail(task, result.message)

        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Unexpected error while downloading {task.id}: {e}", exc_info=True)
            self._record("error")
            self._fail(task, f"Unexpected error: {e}")
        finally:
            if self._running.get(key) is asyncio.current_task():
                del self._running[key]

    def _succeed(self, task: Task, locator) -> None:
        before = self.store.state
        after = self.store.dispatch(MarkReady(task_id=task.id, attempt=task.attempt, locator=locator))
        if after is before:
            logger.debug(f"Dropped late success for {task.id}", extra={"task_id": task.id})
            return
        self._emit(Notification(
            level="info",
            title="Download ready",
            description=f'"{task.title}" is ready to save.',
            task_id=task.id,
        ))

    def _fail(self, task: Task, message: str) -> None:
        before = self.store.state
        after = self.store.dispatch(MarkError(task_id=task.id, attempt=task.attempt, message=message))
        if after is before:
            logger.debug(f"Dropped late failure for {task.id}", extra={"task_id": task.id})
            return
        self._emit(Notification(
            level="error",
            title="Download failed",
            description=f'"{task.title}": {message}',
            task_id=task.id,
        ))

    def _emit(self, notification: Notification) -> None:
        if self._notify is None:
            return
        try:
            self._notify(notification)
        except Exception as e:
            logger.error(f"Notification sink failed: {e}", exc_info=True)

    def _record(self, outcome: str) -> None:
        if self._on_outcome is not None:
            self._on_outcome(outcome)
