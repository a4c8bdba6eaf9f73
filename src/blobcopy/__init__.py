# src/blobcopy/__init__.py
"""
blobcopy: server-side copies of blobs between storage containers.

This package copies a single object or a whole container from one storage
account to another by asking the storage service to pull the data itself,
skipping objects that are already identical on the destination.

The primary entry point for programmatic use is the `ReplicationEngine` class.
"""

from typing import List

from blobcopy.engine import ReplicationEngine
from blobcopy.models import (
    AccountLocation,
    CopyResult,
    CopyStatus,
    DirectUrl,
    Endpoint,
)

__all__: List[str] = [
    "AccountLocation",
    "CopyResult",
    "CopyStatus",
    "DirectUrl",
    "Endpoint",
    "ReplicationEngine",
]
