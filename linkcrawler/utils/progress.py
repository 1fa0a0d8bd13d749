"""
Progress notifications emitted while crawling.
"""

import logging
from collections import deque
from typing import Callable, Deque, List, Optional


class ProgressChannel:
    """
    Append-only channel for human-readable progress messages.

    Messages are logged, kept in a bounded history and optionally handed to a
    callback. A `max_history` of 0 keeps no history. Emitting never raises
    into the caller.
    """

    def __init__(self, max_history: int = 1000,
                 callback: Optional[Callable[[str], None]] = None):
        if max_history < 0:
            raise ValueError("max_history must be non-negative")
        self.history: Deque[str] = deque(maxlen=max_history)
        self.callback = callback
        self.logger = logging.getLogger(__name__)

    def emit(self, message: str):
        """Publish a progress message."""
        self.history.append(message)
        self.logger.info(message)

        if self.callback:
            try:
                self.callback(message)
            except Exception as e:
                self.logger.warning(f"Progress callback failed: {e}")

    def recent(self, count: Optional[int] = None) -> List[str]:
        """Return the most recent messages, oldest first."""
        messages = list(self.history)
        if count is not None:
            messages = messages[-count:] if count > 0 else []
        return messages
