"""
Progress event channel.

Listeners register with ``subscribe``; the orchestrator is the single
producer and ``publish`` delivers each event synchronously, in order, to
every listener before the next step starts.
"""

import logging
from typing import Callable, List

from automate_installer.models import ProgressEvent

logger = logging.getLogger(__name__)

ProgressListener = Callable[[ProgressEvent], None]


class ProgressChannel:
    """Ordered, synchronous observer registry for ProgressEvents."""

    def __init__(self) -> None:
        self._listeners: List[ProgressListener] = []

    def subscribe(self, listener: ProgressListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener: ProgressListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def publish(self, event: ProgressEvent) -> None:
        logger.debug("Progress %d%% [%d] %s", event.percent, event.step_index, event.message)
        for listener in list(self._listeners):
            listener(event)
