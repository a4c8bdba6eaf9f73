# src/blobcopy/comparator.py
"""Skip-if-unchanged check between a source and a destination object."""

import logging
from typing import Tuple

from blobcopy.backend import ObjectRef
from blobcopy.models import ObjectMetadata

logger: logging.Logger = logging.getLogger(__name__)


class ObjectComparator:
    """
    Decides whether two objects hold the same content.

    Objects are identical when both exist and their content checksum and
    length match exactly. Any failure to read either side counts as "not
    identical", so an unreadable destination gets copied over rather than
    silently skipped.
    """

    async def identical(self, source: ObjectRef, destination: ObjectRef) -> bool:
        """
        Compares the source and destination objects.

        Args:
            source (ObjectRef): The object to copy from.
            destination (ObjectRef): The object to copy to.

        Returns:
            bool: True if both exist with equal checksum and length.
        """
        if not (await self._exists(source) and await self._exists(destination)):
            return False

        try:
            source_meta: ObjectMetadata = await source.fetch_metadata()
            dest_meta: ObjectMetadata = await destination.fetch_metadata()
        except Exception as e:
            logger.debug(
                f"Could not fetch metadata to compare '{source.name}': "
                f"{type(e).__name__} - {e}"
            )
            return False

        if source_meta.checksum is None or dest_meta.checksum is None:
            # Without a checksum on both sides equal sizes prove nothing
            return False
        return _key(source_meta) == _key(dest_meta)

    async def _exists(self, ref: ObjectRef) -> bool:
        try:
            return await ref.exists()
        except Exception as e:
            logger.debug(
                f"Treating '{ref.name}' as missing: {type(e).__name__} - {e}"
            )
            return False


def _key(meta: ObjectMetadata) -> Tuple[bytes, int]:
    return (meta.checksum or b"", meta.length)
