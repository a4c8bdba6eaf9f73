# src/blobcopy/initiator.py
"""Starts server-side copies from a readable source URL."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable, Optional

from blobcopy.backend import ObjectRef
from blobcopy.exceptions import CopyConflictError
from blobcopy.models import DirectUrl, Endpoint

logger: logging.Logger = logging.getLogger(__name__)


class InitiationStatus(Enum):
    """Whether the backend accepted a copy request."""

    STARTED = "started"
    CONFLICT = "conflict"
    FAILED = "failed"


@dataclass(frozen=True)
class CopyInitiation:
    """
    The outcome of asking the backend to begin a copy.

    Attributes:
        status (InitiationStatus): Whether the copy was started.
        started_at (datetime): When the copy was requested, in UTC.
        error (str, optional): Failure detail when `status` is FAILED.
    """

    status: InitiationStatus
    started_at: datetime
    error: Optional[str] = None


def build_source_url(url: str, token: Optional[str]) -> str:
    """
    Appends a delegated access token to an object URL.

    Args:
        url (str): The canonical object URL.
        token (str, optional): A query-string token, with or without its
            leading ``?``.

    Returns:
        str: The readable source URL.
    """
    if not token:
        return url
    token = token.lstrip("?")
    separator: str = "&" if "?" in url else "?"
    return f"{url}{separator}{token}"


class CopyInitiator:
    """Asks a destination object to pull its content from a source object."""

    def __init__(
        self,
        delegation_expiry: timedelta = timedelta(minutes=10),
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        """
        Args:
            delegation_expiry (timedelta): Lifetime of the read-only token
                minted for account-based sources.
            now (Callable[[], datetime]): Returns the current UTC time.
        """
        self._delegation_expiry: timedelta = delegation_expiry
        self._now: Callable[[], datetime] = now

    async def source_url(self, source: Endpoint, source_ref: ObjectRef) -> str:
        """
        Resolves the URL the destination will read from.

        Args:
            source (Endpoint): The source endpoint.
            source_ref (ObjectRef): The source object.

        Returns:
            str: The direct URL as given, or the object's URL signed with a
                freshly minted read-only token.
        """
        if isinstance(source.location, DirectUrl):
            return source.location.url
        token: Optional[str] = await source_ref.mint_read_delegation(
            self._delegation_expiry
        )
        if token is None:
            logger.debug(
                f"No credential to sign '{source_ref.name}'; "
                "copying from its public URL."
            )
        return build_source_url(source_ref.url, token)

    async def begin_copy(
        self,
        source: Endpoint,
        source_ref: ObjectRef,
        destination_ref: ObjectRef,
    ) -> CopyInitiation:
        """
        Begins a server-side copy of `source_ref` onto `destination_ref`.

        A conflict with a copy already pending on the destination and any
        other initiation error are returned, not raised.

        Args:
            source (Endpoint): The source endpoint.
            source_ref (ObjectRef): The object to copy from.
            destination_ref (ObjectRef): The object to copy to.

        Returns:
            CopyInitiation: The outcome and the copy start time.
        """
        started_at: datetime = self._now()
        try:
            url: str = await self.source_url(source, source_ref)
            await destination_ref.begin_server_side_copy(url)
        except CopyConflictError:
            logger.error(
                f"Conflict with copy for '{destination_ref.name}': "
                "a copy onto it is already pending."
            )
            return CopyInitiation(InitiationStatus.CONFLICT, started_at)
        except Exception as e:
            logger.error(
                f"Failed to start copy of '{destination_ref.name}': "
                f"{type(e).__name__} - {e}"
            )
            return CopyInitiation(
                InitiationStatus.FAILED, started_at, error=f"{type(e).__name__}: {e}"
            )

        logger.info(f"Copying: {destination_ref.name}")
        return CopyInitiation(InitiationStatus.STARTED, started_at)
