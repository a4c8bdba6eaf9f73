# src/blobcopy/monitor.py
"""
Polling of a single in-flight server-side copy.

The monitor watches the destination object's copy status until the backend
reports a terminal state, the wait budget runs out, or a shutdown is
requested. Stopping the monitor never stops the copy itself: the backend
keeps copying whether or not anyone is watching.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from blobcopy.backend import ObjectRef
from blobcopy.models import CopyProgress, CopyState

logger: logging.Logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, CopyProgress], None]


@dataclass(frozen=True)
class MonitorOutcome:
    """
    The last observed state of a copy and how long it took.

    Attributes:
        progress (CopyProgress): The last status read from the backend.
        elapsed_seconds (int): Copy duration. For successful copies this is
            the backend's completion time minus the copy start time.
    """

    progress: CopyProgress
    elapsed_seconds: int


def copy_duration(progress: CopyProgress, started_at: datetime) -> Optional[int]:
    """
    Computes the duration of a finished copy from the backend's own record.

    Args:
        progress (CopyProgress): A status carrying a completion time.
        started_at (datetime): When the copy was requested, timezone-aware.

    Returns:
        Optional[int]: Whole seconds, never negative, or None if the backend
            reported no completion time.
    """
    if progress.completion_time is None:
        return None
    seconds: float = (progress.completion_time - started_at).total_seconds()
    # Clocks of this host and the backend are not synchronized
    return max(0, int(seconds))


class CopyMonitor:
    """
    Polls a destination object until its copy reaches a terminal state.

    The wait between polls is bounded and wakes up early when the shutdown
    event is set. Clock and interval are injectable so the loop can be driven
    deterministically.
    """

    def __init__(
        self,
        poll_interval_s: float = 0.5,
        max_wait_s: float = 1800.0,
        shutdown_event: Optional[asyncio.Event] = None,
        clock: Callable[[], float] = time.monotonic,
        on_progress: Optional[ProgressCallback] = None,
    ) -> None:
        """
        Args:
            poll_interval_s (float): Delay between status checks.
            max_wait_s (float): Wait budget for one copy.
            shutdown_event (asyncio.Event, optional): Stops polling when set.
            clock (Callable[[], float]): Monotonic clock in seconds.
            on_progress (ProgressCallback, optional): Called with the object
                name and status on every pending poll.
        """
        self._poll_interval_s: float = poll_interval_s
        self._max_wait_s: float = max_wait_s
        self._shutdown_event: Optional[asyncio.Event] = shutdown_event
        self._clock: Callable[[], float] = clock
        self._on_progress: Optional[ProgressCallback] = on_progress

    async def wait(
        self,
        destination: ObjectRef,
        started_at: datetime,
        asynchronous: bool = False,
    ) -> MonitorOutcome:
        """
        Waits for the copy onto `destination` to finish.

        Args:
            destination (ObjectRef): The object being copied to.
            started_at (datetime): When the copy was requested.
            asynchronous (bool): Return a pending outcome without polling.

        Returns:
            MonitorOutcome: The last observed status. A copy still pending when
                the wait budget runs out is reported as pending, not raised.
        """
        pending: CopyProgress = CopyProgress(state=CopyState.PENDING)
        if asynchronous:
            return MonitorOutcome(progress=pending, elapsed_seconds=0)

        start: float = self._clock()
        deadline: float = start + self._max_wait_s
        progress: CopyProgress = pending

        while True:
            progress = await destination.copy_status()

            if progress.state is CopyState.SUCCESS:
                break
            if progress.state.is_terminal:
                logger.warning(
                    f"Copy of '{destination.name}' ended as "
                    f"{progress.state.value}: {progress.status_description}"
                )
                break

            self._report(destination.name, progress)

            if self._clock() >= deadline:
                logger.warning(
                    f"Gave up waiting for '{destination.name}' after "
                    f"{self._max_wait_s:.0f}s; the copy is still pending."
                )
                break
            if await self._sleep():
                logger.warning(
                    f"Shutdown requested, no longer watching '{destination.name}'."
                )
                break

        elapsed: Optional[int] = None
        if progress.state is CopyState.SUCCESS:
            elapsed = copy_duration(progress, started_at)
        if elapsed is None:
            elapsed = int(self._clock() - start)
        return MonitorOutcome(progress=progress, elapsed_seconds=elapsed)

    def _report(self, name: str, progress: CopyProgress) -> None:
        fraction: Optional[float] = progress.fraction_complete
        if fraction is None:
            logger.debug(f"Copy of '{name}' is pending")
        else:
            logger.debug(f"{fraction:.1%} copied of '{name}'")
        if self._on_progress is not None:
            self._on_progress(name, progress)

    async def _sleep(self) -> bool:
        """
        Waits one poll interval.

        Returns:
            bool: True if a shutdown was requested during or before the wait.
        """
        if self._shutdown_event is None:
            await asyncio.sleep(self._poll_interval_s)
            return False
        if self._shutdown_event.is_set():
            return True
        try:
            await asyncio.wait_for(
                self._shutdown_event.wait(), timeout=self._poll_interval_s
            )
            return True
        except asyncio.TimeoutError:
            return False
