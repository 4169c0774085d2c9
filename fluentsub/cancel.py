"""Cooperative cancellation for a pipeline invocation.

A single `threading.Event` is threaded through the whole run. Setting it
asks every stage to stop waiting at its next suspension point; it never
kills work that is already in flight.
"""

from __future__ import annotations

import asyncio
import logging
import signal
import threading

logger = logging.getLogger(__name__)

CANCEL_CHECK_INTERVAL = 0.1


def new_cancel_event() -> threading.Event:
    """Create a fresh, unset cancellation event."""
    return threading.Event()


def install_signal_handlers(cancel_event: threading.Event) -> None:
    """Install SIGINT/SIGTERM handlers that set `cancel_event`.

    Args:
        cancel_event: Event to set when a termination signal arrives.
    """

    def signal_handler(signum: int, frame: object) -> None:
        sig_name = signal.Signals(signum).name
        logger.info(f"Received {sig_name}, requesting cancellation")
        cancel_event.set()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)
    logger.debug("Signal handlers installed for SIGINT and SIGTERM")


def is_cancelled(cancel_event: threading.Event | None) -> bool:
    """Return True if cancellation has been requested on `cancel_event`."""
    return cancel_event is not None and cancel_event.is_set()


async def wait_for_cancel(cancel_event: threading.Event | None, timeout: float) -> bool:
    """Sleep up to `timeout` seconds, waking early if cancellation is requested.

    Returns:
        True if the event was set before the timeout elapsed.
    """
    if cancel_event is None:
        await asyncio.sleep(timeout)
        return False

    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not cancel_event.is_set():
        remaining = deadline - loop.time()
        if remaining <= 0:
            return False
        await asyncio.sleep(min(CANCEL_CHECK_INTERVAL, remaining))
    return True
