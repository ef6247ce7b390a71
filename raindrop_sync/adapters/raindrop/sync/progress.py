"""Best-effort progress reporting for long imports."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from raindrop_sync.adapters.raindrop.models import ProgressUpdate
from raindrop_sync.adapters.raindrop.sync.constants import MAX_RUNNING_PERCENT

if TYPE_CHECKING:
    from raindrop_sync.adapters.raindrop.sync.protocols import ProgressSink

logger = logging.getLogger(__name__)


@dataclass
class ProgressState:
    current: int = 0
    total: int = 0

    def running_percent(self) -> int:
        if self.total <= 0:
            return 0
        return min(MAX_RUNNING_PERCENT, self.current * 100 // self.total)


class ProgressChannel:
    """Fire-and-forget progress notifications.

    Delivery never affects the run: with no listener updates are dropped, and
    a failing listener is logged at debug level and ignored.
    """

    def __init__(self, listener: ProgressSink | None = None) -> None:
        self._listener = listener

    @property
    def has_listener(self) -> bool:
        return self._listener is not None

    def publish(self, update: ProgressUpdate) -> None:
        if self._listener is None:
            return
        try:
            self._listener(update)
        except Exception as exc:
            logger.debug(
                "progress_delivery_failed",
                extra={"error": str(exc), "error_type": type(exc).__name__},
            )

    def advance(self, state: ProgressState) -> None:
        """Count one imported item and publish the capped running percentage."""
        if state.total <= 0:
            return
        state.current += 1
        update = ProgressUpdate(
            percent=state.running_percent(), current=state.current, total=state.total
        )
        self.publish(update)

    def complete(self, state: ProgressState) -> None:
        self.publish(ProgressUpdate(percent=100, current=state.current, total=state.total))
