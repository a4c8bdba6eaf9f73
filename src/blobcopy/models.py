# src/blobcopy/models.py
"""
Data model shared by the replication engine and the storage backends.

Endpoints, copy states and per-object results are immutable dataclasses so
that a single run can hand out per-object copies without sharing mutable
state between iterations.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Optional, Union
from urllib.parse import ParseResult, urlparse


@dataclass(frozen=True)
class AccountLocation:
    """
    A container addressed through a storage account.

    Attributes:
        account_name (str): The storage account name.
        container_name (str): The container (bucket) name.
        account_key (str, optional): The shared account key. When absent the
            container is accessed anonymously.
    """

    account_name: str
    container_name: str
    account_key: Optional[str] = field(default=None, repr=False)

    @property
    def is_anonymous(self) -> bool:
        """Whether requests against this location carry no credential."""
        return not self.account_key


@dataclass(frozen=True, repr=False)
class DirectUrl:
    """
    A single object addressed by a fully-qualified, optionally pre-signed URL.

    The object name it addresses depends on the URL style of the provider and
    is derived by the storage backend.

    Attributes:
        url (str): The object URL, including any query string token.
    """

    url: str

    def __repr__(self) -> str:
        parsed: ParseResult = urlparse(self.url)
        return f"DirectUrl(url={parsed.scheme}://{parsed.netloc}{parsed.path!s})"


Location = Union[AccountLocation, DirectUrl]


@dataclass(frozen=True)
class Endpoint:
    """
    Identifies a storage location plus the options for copying from or to it.

    Attributes:
        location (Location): Where the objects live.
        object_name (str, optional): A specific object. Absent in container
            mode, where names come from the source listing.
        asynchronous (bool): Return right after the copy has been initiated,
            without waiting for it to finish.
        force (bool): Copy even if the destination already holds an identical
            object.
    """

    location: Location
    object_name: Optional[str] = None
    asynchronous: bool = False
    force: bool = False

    @property
    def is_direct_url(self) -> bool:
        """Whether the endpoint is a single pre-addressed object URL."""
        return isinstance(self.location, DirectUrl)

    def with_object(self, name: str) -> "Endpoint":
        """
        Returns a copy of this endpoint naming a single object.

        Args:
            name (str): The object name.

        Returns:
            Endpoint: A new endpoint; this one is left untouched.
        """
        return replace(self, object_name=name)

    def describe(self, name: Optional[str] = None) -> str:
        """
        Renders a human-readable address for log messages.

        Args:
            name (str, optional): The object name to append.

        Returns:
            str: A string like ``account/container/name``.
        """
        if isinstance(self.location, DirectUrl):
            return repr(self.location)
        base: str = f"{self.location.account_name}/{self.location.container_name}"
        object_name: Optional[str] = name or self.object_name
        return f"{base}/{object_name}" if object_name else base


class CopyState(Enum):
    """State of a server-side copy as reported by the backend."""

    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"
    ABORTED = "aborted"

    @property
    def is_terminal(self) -> bool:
        return self is not CopyState.PENDING


class CopyStatus(Enum):
    """Outcome of copying one object."""

    SKIPPED = "skipped"
    COMPLETED = "completed"
    PENDING = "pending"
    CONFLICT = "conflict"
    FAILED = "failed"


@dataclass(frozen=True)
class ObjectMetadata:
    """
    Content attributes used to compare two objects.

    Attributes:
        checksum (bytes, optional): The content MD5 recorded by the backend.
        length (int): The object size in bytes.
    """

    checksum: Optional[bytes]
    length: int


@dataclass(frozen=True)
class CopyProgress:
    """
    A snapshot of a destination object's copy status.

    Attributes:
        state (CopyState): The copy state.
        bytes_copied (int, optional): Bytes copied so far.
        total_bytes (int, optional): Size of the source object.
        completion_time (datetime, optional): When the backend finished the
            copy, timezone-aware.
        status_description (str, optional): Backend detail for failures.
    """

    state: CopyState
    bytes_copied: Optional[int] = None
    total_bytes: Optional[int] = None
    completion_time: Optional[datetime] = None
    status_description: Optional[str] = None

    @property
    def fraction_complete(self) -> Optional[float]:
        """Fraction of bytes copied, or None if the backend gave no totals."""
        if self.bytes_copied is None or not self.total_bytes:
            return None
        return self.bytes_copied / self.total_bytes


@dataclass(frozen=True)
class CopyResult:
    """
    The result of copying a single object.

    Attributes:
        object_name (str): The object that was processed.
        status (CopyStatus): What happened to it.
        elapsed_seconds (int): Duration of the copy. 0 when skipped, in
            conflict, or started asynchronously.
        bytes_copied (int, optional): Last observed progress.
        total_bytes (int, optional): Last observed object size.
        error (str, optional): Failure detail when `status` is FAILED.
    """

    object_name: str
    status: CopyStatus
    elapsed_seconds: int = 0
    bytes_copied: Optional[int] = None
    total_bytes: Optional[int] = None
    error: Optional[str] = None
