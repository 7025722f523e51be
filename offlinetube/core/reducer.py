"""
Pure reducer for the download queue.

``reduce(state, intent)`` returns the next QueueState. Every (status, intent)
pair is defined: either the documented transition or a no-op. A no-op returns
the very same state object so the store can skip notifying subscribers.
"""

from dataclasses import replace
from typing import Callable, Dict, Optional, Type

from .intents import (
    Intent, TaskIntent, OutcomeIntent, Enqueue, MarkStarting, MarkInProgress,
    UpdateProgress, MarkReady, MarkError, Pause, Resume, Retry, Remove,
    ClearFinished, SetBudget
)
from .models import (
    Task, TaskStatus, QueueState, FINISHED_STATUSES, PAUSABLE_STATUSES,
    RETRYABLE_STATUSES
)
from ..config.logging_config import get_logger

logger = get_logger(__name__)


# Source statuses from which a single-task intent applies, and the status it
# leads to. Pairs missing from this table are no-ops.
TRANSITIONS: Dict[Type[TaskIntent], tuple] = {
    MarkStarting: (
        frozenset({TaskStatus.QUEUED, TaskStatus.ERROR, TaskStatus.PAUSED}),
        TaskStatus.STARTING,
    ),
    MarkInProgress: (frozenset({TaskStatus.STARTING}), TaskStatus.IN_PROGRESS),
    UpdateProgress: (frozenset({TaskStatus.IN_PROGRESS}), TaskStatus.IN_PROGRESS),
    MarkReady: (
        frozenset({TaskStatus.STARTING, TaskStatus.IN_PROGRESS}),
        TaskStatus.READY,
    ),
    MarkError: (
        frozenset({TaskStatus.STARTING, TaskStatus.IN_PROGRESS}),
        TaskStatus.ERROR,
    ),
    Pause: (PAUSABLE_STATUSES, TaskStatus.PAUSED),
    Resume: (RETRYABLE_STATUSES, TaskStatus.QUEUED),
    Retry: (RETRYABLE_STATUSES, TaskStatus.QUEUED),
}


def next_status(status: TaskStatus, intent_type: Type[TaskIntent]) -> Optional[TaskStatus]:
    """
    Status a task in ``status`` moves to under ``intent_type``.

    Returns None when the intent does not apply (no-op). Remove is not a
    status transition and always returns None.
    """
    entry = TRANSITIONS.get(intent_type)
    if entry is None:
        return None
    sources, target = entry
    if status not in sources:
        return None
    return target


def _replace_task(state: QueueState, task_id: str, updated: Task) -> QueueState:
    return replace(
        state,
        tasks=tuple(updated if task.id == task_id else task for task in state.tasks),
    )


def _enqueue(state: QueueState, intent: Enqueue) -> QueueState:
    seen = set(state.ids)
    new_tasks = []
    for video in intent.videos:
        if video.id in seen:
            continue
        seen.add(video.id)
        new_tasks.append(Task(
            id=video.id,
            title=video.title,
            thumbnail_url=video.thumbnail_url,
            selected_quality=video.quality,
        ))

    if not new_tasks:
        return state

    logger.info(
        f"Added {len(new_tasks)} task(s) to the download queue",
        extra={"task_ids": [task.id for task in new_tasks]}
    )
    return replace(state, tasks=state.tasks + tuple(new_tasks))


def _apply_task_intent(state: QueueState, intent: TaskIntent) -> QueueState:
    task = state.get(intent.task_id)
    if task is None:
        logger.debug(
            f"Ignoring {type(intent).__name__} for unknown task {intent.task_id}",
            extra={"task_id": intent.task_id}
        )
        return state

    if isinstance(intent, OutcomeIntent) and intent.attempt is not None and intent.attempt != task.attempt:
        logger.debug(
            f"Ignoring stale {type(intent).__name__} for task {task.id}",
            extra={"task_id": task.id, "attempt": intent.attempt, "current_attempt": task.attempt}
        )
        return state

    target = next_status(task.status, type(intent))
    if target is None:
        return state

    if isinstance(intent, MarkStarting):
        attempt = max(state.next_attempt, task.attempt + 1)
        updated = replace(
            task, status=target, progress=0, error_message=None,
            download_locator=None, attempt=attempt,
        )
        state = replace(state, next_attempt=attempt + 1)
    elif isinstance(intent, MarkInProgress):
        updated = replace(task, status=target)
    elif isinstance(intent, UpdateProgress):
        progress = max(0, min(99, int(intent.progress)))
        if progress == task.progress:
            return state
        updated = replace(task, progress=progress)
    elif isinstance(intent, MarkReady):
        updated = replace(task, status=target, progress=100, download_locator=intent.locator)
    elif isinstance(intent, MarkError):
        updated = replace(task, status=target, progress=0, error_message=intent.message)
    elif isinstance(intent, Pause):
        updated = replace(task, status=target)
    else:
        # Resume / Retry
        updated = replace(task, status=target, progress=0, error_message=None)

    if updated.status != task.status:
        logger.info(
            f"Task {task.id} status changed: {task.status.value} -> {updated.status.value}",
            extra={"task_id": task.id, "title": task.title, "status": updated.status.value}
        )
    return _replace_task(state, task.id, updated)


def _remove(state: QueueState, intent: Remove) -> QueueState:
    if intent.task_id not in state:
        return state
    logger.info(f"Removed task {intent.task_id} from the download queue", extra={"task_id": intent.task_id})
    return replace(state, tasks=tuple(task for task in state.tasks if task.id != intent.task_id))


def _clear_finished(state: QueueState, intent: ClearFinished) -> QueueState:
    remaining = tuple(task for task in state.tasks if task.status not in FINISHED_STATUSES)
    cleared = len(state.tasks) - len(remaining)
    if not cleared:
        return state
    logger.info(f"Cleared {cleared} finished task(s)", extra={"cleared": cleared})
    return replace(state, tasks=remaining)


def _set_budget(state: QueueState, intent: SetBudget) -> QueueState:
    budget = max(0, int(intent.budget))
    if budget == state.budget:
        return state
    logger.info(f"Concurrency budget changed: {state.budget} -> {budget}", extra={"budget": budget})
    return replace(state, budget=budget)


_HANDLERS: Dict[Type[Intent], Callable[[QueueState, Intent], QueueState]] = {
    Enqueue: _enqueue,
    Remove: _remove,
    ClearFinished: _clear_finished,
    SetBudget: _set_budget,
}


def reduce(state: QueueState, intent: Intent) -> QueueState:
    """Apply ``intent`` to ``state`` and return the resulting snapshot."""
    handler = _HANDLERS.get(type(intent))
    if handler is not None:
        return handler(state, intent)
    if type(intent) in TRANSITIONS:
        return _apply_task_intent(state, intent)
    logger.warning(f"Ignoring unsupported intent {intent!r}")
    return state
