# src/blobcopy/engine.py
"""Core orchestration logic for copying objects between containers."""

import asyncio
import logging
from datetime import timedelta
from typing import AsyncIterator, Optional

from blobcopy.backend import ObjectRef, StorageBackend
from blobcopy.comparator import ObjectComparator
from blobcopy.config import AppConfig
from blobcopy.exceptions import BackendError, ConfigError
from blobcopy.initiator import CopyInitiation, CopyInitiator, InitiationStatus
from blobcopy.models import (
    CopyResult,
    CopyState,
    CopyStatus,
    DirectUrl,
    Endpoint,
)
from blobcopy.monitor import CopyMonitor, MonitorOutcome, ProgressCallback

logger: logging.Logger = logging.getLogger(__name__)


def resolve_object_name(
    backend: StorageBackend,
    source: Endpoint,
    destination: Endpoint,
    object_name: Optional[str] = None,
) -> str:
    """
    Determines which object a single-object copy addresses.

    The explicit name wins, then the destination's, then the source's, then
    the name the backend derives from a direct source URL.

    Args:
        backend (StorageBackend): Derives names from direct URLs.
        source (Endpoint): The source endpoint.
        destination (Endpoint): The destination endpoint.
        object_name (str, optional): An explicit object name.

    Returns:
        str: The object name.

    Raises:
        ConfigError: If no name can be resolved.
    """
    name: Optional[str] = object_name or destination.object_name or source.object_name
    if not name and isinstance(source.location, DirectUrl):
        name = backend.object_name_from_url(source.location.url)
    if not name:
        raise ConfigError(
            f"Unknown object name for {destination.describe()}; "
            "please ensure this value is set."
        )
    return name


def _check_destination(destination: Endpoint) -> None:
    if destination.is_direct_url:
        raise ConfigError(
            "The destination must be addressed by account and container, "
            "not by a direct URL."
        )


class ReplicationEngine:
    """
    Copies one object or a whole container from a source to a destination.

    Objects are processed strictly one at a time. A failure or conflict on
    one object is recorded in its result and never stops the remaining ones;
    only configuration errors are raised.
    """

    def __init__(
        self,
        backend: StorageBackend,
        app_config: Optional[AppConfig] = None,
        shutdown_event: Optional[asyncio.Event] = None,
        on_progress: Optional[ProgressCallback] = None,
        monitor: Optional[CopyMonitor] = None,
    ) -> None:
        """
        Initializes the engine.

        Args:
            backend (StorageBackend): Resolves endpoints to objects.
            app_config (AppConfig, optional): Operational parameters.
            shutdown_event (asyncio.Event, optional): Event to signal graceful
                shutdown. Stops polling and further copies when set.
            on_progress (ProgressCallback, optional): Receives copy progress
                of pending copies.
            monitor (CopyMonitor, optional): A preconfigured monitor, e.g.
                with an injected clock.
        """
        self._backend: StorageBackend = backend
        self._config: AppConfig = app_config or AppConfig()
        self._shutdown_event: Optional[asyncio.Event] = shutdown_event
        self._comparator: ObjectComparator = ObjectComparator()
        self._initiator: CopyInitiator = CopyInitiator(
            delegation_expiry=timedelta(minutes=self._config.delegation_expiry_minutes)
        )
        self._monitor: CopyMonitor = monitor or CopyMonitor(
            poll_interval_s=self._config.poll_interval_s,
            max_wait_s=self._config.max_wait_s,
            shutdown_event=shutdown_event,
            on_progress=on_progress,
        )

    async def copy_object(
        self,
        source: Endpoint,
        destination: Endpoint,
        object_name: Optional[str] = None,
    ) -> CopyResult:
        """
        Copies a single object from `source` to `destination`.

        The destination container is created first if it is missing and
        `create_destination_container` is enabled.

        Args:
            source (Endpoint): The source endpoint. Its `force` and
                `asynchronous` flags drive the copy.
            destination (Endpoint): The destination endpoint.
            object_name (str, optional): The object to copy; see
                `resolve_object_name` for the fallbacks.

        Returns:
            CopyResult: The outcome for this object.

        Raises:
            ConfigError: If the destination is not account based or the object
                name cannot be resolved. Raised before any request is made.
        """
        _check_destination(destination)
        return await self._copy_object(
            source,
            destination,
            object_name,
            ensure_container=self._config.create_destination_container,
        )

    async def _copy_object(
        self,
        source: Endpoint,
        destination: Endpoint,
        object_name: Optional[str],
        ensure_container: bool,
    ) -> CopyResult:
        name: str = resolve_object_name(self._backend, source, destination, object_name)
        try:
            if ensure_container:
                await self._backend.create_container_if_missing(destination)
            source_ref: ObjectRef = self._backend.get_object(source, name)
            dest_ref: ObjectRef = self._backend.get_object(destination, name)
            return await self._copy(source, source_ref, dest_ref, name)
        except Exception as e:
            logger.exception(f"An unexpected error occurred copying '{name}'")
            return CopyResult(
                object_name=name,
                status=CopyStatus.FAILED,
                error=f"{type(e).__name__}: {e}",
            )

    async def _copy(
        self,
        source: Endpoint,
        source_ref: ObjectRef,
        dest_ref: ObjectRef,
        name: str,
    ) -> CopyResult:
        # 1. Skip objects that are already identical unless forced
        if not source.force and await self._comparator.identical(source_ref, dest_ref):
            logger.warning(f"Skipping: {name} (identical on destination)")
            return CopyResult(object_name=name, status=CopyStatus.SKIPPED)

        # 2. Ask the destination to pull the source
        initiation: CopyInitiation = await self._initiator.begin_copy(
            source, source_ref, dest_ref
        )
        if initiation.status is InitiationStatus.CONFLICT:
            return CopyResult(object_name=name, status=CopyStatus.CONFLICT)
        if initiation.status is InitiationStatus.FAILED:
            return CopyResult(
                object_name=name, status=CopyStatus.FAILED, error=initiation.error
            )

        # 3. Watch the copy unless the caller does not want to wait
        outcome: MonitorOutcome = await self._monitor.wait(
            dest_ref, initiation.started_at, asynchronous=source.asynchronous
        )
        state: CopyState = outcome.progress.state
        status: CopyStatus
        error: Optional[str] = None
        if state is CopyState.SUCCESS:
            status = CopyStatus.COMPLETED
            logger.info(f"Copied '{name}' in {outcome.elapsed_seconds}s")
        elif state is CopyState.PENDING:
            status = CopyStatus.PENDING
        else:
            status = CopyStatus.FAILED
            error = outcome.progress.status_description or f"Copy {state.value}"

        return CopyResult(
            object_name=name,
            status=status,
            elapsed_seconds=outcome.elapsed_seconds,
            bytes_copied=outcome.progress.bytes_copied,
            total_bytes=outcome.progress.total_bytes,
            error=error,
        )

    async def copy_all_objects(
        self,
        source: Endpoint,
        destination: Endpoint,
    ) -> AsyncIterator[CopyResult]:
        """
        Copies every object of the source container, one at a time.

        Results are yielded lazily in listing order. A direct-URL source has no
        container to list and degrades to a single `copy_object`.

        Args:
            source (Endpoint): The source endpoint.
            destination (Endpoint): The destination endpoint.

        Yields:
            CopyResult: One result per listed object.

        Raises:
            ConfigError: If the destination is not account based.
            BackendError: If the destination container cannot be created or
                the source container cannot be listed.
        """
        _check_destination(destination)
        if source.is_direct_url:
            yield await self.copy_object(source, destination)
            return

        if self._config.create_destination_container:
            try:
                await self._backend.create_container_if_missing(destination)
            except Exception as e:
                raise BackendError(
                    f"Could not create container '{destination.describe()}': {e}"
                ) from e

        logger.info(f"Copying all objects from '{source.describe()}'")
        listing: AsyncIterator[str] = self._backend.list_objects(source).__aiter__()
        while True:
            try:
                name: str = await listing.__anext__()
            except StopAsyncIteration:
                break
            except Exception as e:
                raise BackendError(
                    f"Could not list objects in '{source.describe()}': {e}"
                ) from e

            if self._shutdown_event is not None and self._shutdown_event.is_set():
                logger.warning("Shutdown initiated, not starting further copies.")
                break
            # The container was handled once above
            yield await self._copy_object(
                source, destination, name, ensure_container=False
            )
