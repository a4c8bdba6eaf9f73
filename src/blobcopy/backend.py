# src/blobcopy/backend.py
"""
Storage backend interface consumed by the replication engine.

The engine never talks to a provider SDK directly. It resolves endpoints to
`ObjectRef` handles through a `StorageBackend` and drives the copy through
them, which keeps the engine testable against an in-memory backend.
"""

from datetime import timedelta
from typing import AsyncIterator, Optional, Protocol
from urllib.parse import ParseResult, unquote, urlparse

from blobcopy.exceptions import BackendError
from blobcopy.models import CopyProgress, Endpoint, ObjectMetadata


class ObjectRef(Protocol):
    """A handle on a single object, whether or not it exists yet."""

    @property
    def name(self) -> str:
        """The object name within its container."""
        ...

    @property
    def url(self) -> str:
        """The canonical address of the object, without any token."""
        ...

    async def exists(self) -> bool:
        """Whether the object exists at its location."""
        ...

    async def fetch_metadata(self) -> ObjectMetadata:
        """Fetches the content checksum and length of the object."""
        ...

    async def mint_read_delegation(self, expiry: timedelta) -> Optional[str]:
        """
        Mints a read-only token scoped to this object.

        Returns None when the location has no credential to sign with.
        """
        ...

    async def begin_server_side_copy(self, source_url: str) -> None:
        """
        Asks the backend to pull `source_url` into this object.

        Raises:
            CopyConflictError: If a copy onto this object is already pending.
        """
        ...

    async def copy_status(self) -> CopyProgress:
        """Refreshes and returns the status of the last copy onto this object."""
        ...


class StorageBackend(Protocol):
    """Resolves endpoints to containers and objects."""

    def get_object(self, endpoint: Endpoint, name: Optional[str] = None) -> ObjectRef:
        """
        Returns a handle on an object of `endpoint`.

        Args:
            endpoint (Endpoint): The endpoint holding the object.
            name (str, optional): The object name. Ignored for direct URLs.
        """
        ...

    def object_name_from_url(self, url: str) -> Optional[str]:
        """
        Derives the object name addressed by a direct URL.

        Args:
            url (str): The direct URL.

        Returns:
            Optional[str]: The object name, or None if the URL names none.
        """
        ...

    def list_objects(self, endpoint: Endpoint) -> AsyncIterator[str]:
        """Yields the full name of every object in the endpoint's container."""
        ...

    async def create_container_if_missing(self, endpoint: Endpoint) -> None:
        """Creates the endpoint's container if it does not exist."""
        ...

    async def close(self) -> None:
        """Releases any clients held by the backend."""
        ...


def last_path_segment(url: str) -> Optional[str]:
    """Returns the unquoted last segment of the URL path, or None."""
    segment: str = urlparse(url).path.rstrip("/").rpartition("/")[2]
    return unquote(segment) or None


class UrlObjectRef:
    """
    An `ObjectRef` for a source URL the backend cannot address natively.

    Any fully-qualified URL, e.g. a pre-signed link into another provider,
    can still be handed to the destination as a copy source. The object is
    never inspected, so it always counts as missing and is copied.
    """

    def __init__(self, url: str) -> None:
        self._url: str = url

    @property
    def name(self) -> str:
        return last_path_segment(self._url) or ""

    @property
    def url(self) -> str:
        parsed: ParseResult = urlparse(self._url)
        return f"{parsed.scheme}://{parsed.netloc}{parsed.path}"

    async def exists(self) -> bool:
        return False

    async def fetch_metadata(self) -> ObjectMetadata:
        raise BackendError(f"Cannot read metadata of '{self.url}'.")

    async def mint_read_delegation(self, expiry: timedelta) -> Optional[str]:
        return None

    async def begin_server_side_copy(self, source_url: str) -> None:
        raise BackendError(f"'{self.url}' cannot be a copy destination.")

    async def copy_status(self) -> CopyProgress:
        raise BackendError(f"'{self.url}' cannot be a copy destination.")
