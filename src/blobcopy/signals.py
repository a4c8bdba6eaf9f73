# src/blobcopy/signals.py
"""
Stops a copy run on SIGINT or SIGTERM.

Copies run on the storage service, so interrupting blobcopy never cancels
one. It only stops watching the copy in flight, which is then reported as
pending, and starts no further copies.
"""

import asyncio
import logging
import os
import signal
from types import FrameType
from typing import Any, Dict, Optional, Tuple

logger: logging.Logger = logging.getLogger(__name__)

_HANDLED_SIGNALS: Tuple[signal.Signals, ...] = (signal.SIGINT, signal.SIGTERM)


class GracefulShutdown:
    """
    Sets the yielded event on the first signal and exits on the second.

    Usage::

        async with GracefulShutdown() as stop:
            engine = ReplicationEngine(backend, shutdown_event=stop)
    """

    def __init__(self) -> None:
        self._stop: asyncio.Event = asyncio.Event()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._previous: Dict[signal.Signals, Any] = {}

    def _on_signal(self, sig: int, _: Optional[FrameType]) -> None:
        if self._stop.is_set():
            logger.critical("Interrupted again, exiting now.")
            os._exit(1)
        logger.warning(
            f"{signal.strsignal(sig)}: no further copies will be started. "
            "Interrupt again to exit immediately."
        )
        if self._loop is not None:
            self._loop.call_soon_threadsafe(self._stop.set)

    async def __aenter__(self) -> asyncio.Event:
        self._loop = asyncio.get_running_loop()
        for sig in _HANDLED_SIGNALS:
            try:
                self._previous[sig] = signal.signal(sig, self._on_signal)
            except (ValueError, OSError) as e:
                # Outside the main thread
                logger.warning(f"Could not set handler for {sig.name}: {e}")
        return self._stop

    async def __aexit__(self, *args: Any) -> None:
        while self._previous:
            sig, handler = self._previous.popitem()
            try:
                signal.signal(sig, handler)
            except (ValueError, OSError) as e:
                logger.warning(f"Could not restore handler for {sig.name}: {e}")
