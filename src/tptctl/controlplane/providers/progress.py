"""Progress relay for long-running cloud operations.

The cloud resource client publishes free-text progress messages on a
bounded queue; a daemon thread drains it into the output sink. The thread
is never joined and is dropped when the process exits.
"""

from __future__ import annotations

import threading
from queue import Full, Queue
from typing import Callable

from ... import output
from ...shared.logging import get_logger

logger = get_logger(__name__)

DEFAULT_MAX_QUEUE_SIZE = 100


class ProgressRelay:
    """Forward messages from a queue to a sink on a background thread."""

    def __init__(
        self,
        sink: Callable[[str], None] = output.info,
        max_queue_size: int = DEFAULT_MAX_QUEUE_SIZE,
    ):
        self.sink = sink
        self.queue: Queue[str] = Queue(maxsize=max_queue_size)
        self._thread: threading.Thread | None = None

    def start(self) -> ProgressRelay:
        if self._thread is None:
            self._thread = threading.Thread(
                target=self._drain, name="progress-relay", daemon=True
            )
            self._thread.start()
        return self

    def _drain(self) -> None:
        while True:
            message = self.queue.get()
            self.sink(message)
            self.queue.task_done()

    def publish(self, message: str) -> bool:
        """Queue a message; drop it if the relay is backed up."""
        try:
            self.queue.put_nowait(message)
            return True
        except Full:
            logger.warning("progress queue full, dropping message", message=message)
            return False
