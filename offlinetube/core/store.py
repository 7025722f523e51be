"""
Queue State Store: the single owner of download task state.
"""

from typing import Callable, List

from .intents import Intent
from .models import QueueState
from .reducer import reduce
from ..config.logging_config import get_logger

logger = get_logger(__name__)

Listener = Callable[[QueueState], None]
Reducer = Callable[[QueueState, Intent], QueueState]


class QueueStore:
    """
    State container wrapping the pure reducer with subscriptions.

    ``dispatch`` applies an intent synchronously and notifies subscribers with
    the new snapshot. Dispatches issued by a subscriber while notifications are
    running are applied immediately; subscribers are then notified once more
    with the latest snapshot after the current round finishes.
    """

    def __init__(self, budget: int = 2, reducer: Reducer = reduce):
        self._state = QueueState(tasks=(), budget=max(0, budget))
        self._reducer = reducer
        self._listeners: List[Listener] = []
        self._notifying = False
        self._pending_notification = False

    @property
    def state(self) -> QueueState:
        """Current immutable snapshot."""
        return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener`` and return a function that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def dispatch(self, intent: Intent) -> QueueState:
        """Apply ``intent`` and return the resulting snapshot."""
        new_state = self._reducer(self._state, intent)
        if new_state is self._state:
            return new_state

        self._state = new_state
        self._notify()
        return self._state

    def _notify(self) -> None:
        if self._notifying:
            self._pending_notification = True
            return

        self._notifying = True
        try:
            while True:
                self._pending_notification = False
                snapshot = self._state
                for listener in list(self._listeners):
                    try:
                        listener(snapshot)
                    except Exception as e:
                        logger.error(f"Queue listener {listener!r} failed: {e}", exc_info=True)
                if not self._pending_notification:
                    break
        finally:
            self._notifying = False
