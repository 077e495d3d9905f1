"""Trailing-edge throttle for renderer notifications."""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_WINDOW = 0.05


class UpdateThrottle:
    """Coalesce bursts of updates into one trailing notification.

    Every :meth:`schedule` call restarts a single timer on the running
    event loop; the most recent ``notify`` fires once ``window`` seconds
    pass without another call.  Close the throttle when the consuming
    view goes away so no notification lands after teardown.

    Example::

        with UpdateThrottle(window=0.05) as throttle:
            async for event in runner.iter(source, messages):
                throttle.schedule(lambda: render(event.messages))
            throttle.flush()

    Args:
        window: Quiescence period in seconds.
    """

    def __init__(self, window: float = DEFAULT_WINDOW):
        if window < 0:
            raise ValueError("window must be non-negative")
        self.window = window
        self._handle: asyncio.TimerHandle | None = None
        self._notify: Callable[[], Any] | None = None
        self._closed = False
        self._tasks: set[asyncio.Future] = set()

    @property
    def pending(self) -> bool:
        return self._handle is not None

    @property
    def closed(self) -> bool:
        return self._closed

    def schedule(self, notify: Callable[[], Any]) -> None:
        """(Re)arm the timer so *notify* runs after the window."""
        if self._closed:
            logger.debug("Ignoring update scheduled on a closed throttle")
            return
        self.cancel()
        loop = asyncio.get_running_loop()
        self._notify = notify
        self._handle = loop.call_later(self.window, self._fire)

    def cancel(self) -> bool:
        """Drop the pending notification. Returns whether one was pending."""
        if self._handle is None:
            return False
        self._handle.cancel()
        self._handle = None
        self._notify = None
        return True

    def flush(self) -> None:
        """Run the pending notification now instead of waiting."""
        if self._handle is None:
            return
        self._handle.cancel()
        self._fire()

    def close(self) -> None:
        self.cancel()
        self._closed = True

    def _fire(self) -> None:
        notify = self._notify
        self._handle = None
        self._notify = None
        if notify is None:
            return
        result = notify()
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    def __enter__(self) -> UpdateThrottle:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
