# src/blobcopy/azure_backend.py
"""
Azure Blob Storage implementation of the storage backend.

Built on the async clients of `azure-storage-blob`. Copies use "Copy Blob
From URL": the destination account pulls the source bytes itself, so no data
flows through this process.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple

from azure.core.credentials import AzureNamedKeyCredential
from azure.core.exceptions import HttpResponseError, ResourceExistsError
from azure.storage.blob import BlobClient as SyncBlobClient
from azure.storage.blob import BlobSasPermissions, generate_blob_sas
from azure.storage.blob.aio import BlobClient, BlobServiceClient, ContainerClient

from blobcopy.backend import ObjectRef, UrlObjectRef, last_path_segment
from blobcopy.exceptions import ConfigError, CopyConflictError
from blobcopy.models import (
    AccountLocation,
    CopyProgress,
    CopyState,
    DirectUrl,
    Endpoint,
    ObjectMetadata,
)

logger: logging.Logger = logging.getLogger(__name__)

_COPY_STATES: Dict[str, CopyState] = {
    "pending": CopyState.PENDING,
    "success": CopyState.SUCCESS,
    "failed": CopyState.FAILED,
    "aborted": CopyState.ABORTED,
}


def _parse_copy_progress(progress: Optional[str]) -> Tuple[Optional[int], Optional[int]]:
    """
    Parses the ``"<bytes copied>/<total bytes>"`` progress string of a copy.

    Args:
        progress (str, optional): The raw progress value.

    Returns:
        Tuple[Optional[int], Optional[int]]: Bytes copied and total bytes, or
            Nones if the value is missing or malformed.
    """
    if not progress or "/" not in progress:
        return None, None
    copied, _, total = progress.partition("/")
    try:
        return int(copied), int(total)
    except ValueError:
        logger.debug(f"Ignoring malformed copy progress '{progress}'")
        return None, None


class AzureBlobRef:
    """An `ObjectRef` backed by an async `BlobClient`."""

    def __init__(
        self,
        blob_client: BlobClient,
        location: Optional[AccountLocation] = None,
    ) -> None:
        """
        Args:
            blob_client (BlobClient): The client addressing the blob.
            location (AccountLocation, optional): The account location the
                blob belongs to. Absent for blobs addressed by direct URL.
        """
        self._client: BlobClient = blob_client
        self._location: Optional[AccountLocation] = location

    @property
    def name(self) -> str:
        return self._client.blob_name

    @property
    def url(self) -> str:
        return self._client.url

    async def exists(self) -> bool:
        return await self._client.exists()

    async def fetch_metadata(self) -> ObjectMetadata:
        properties: Any = await self._client.get_blob_properties()
        md5: Optional[bytearray] = properties.content_settings.content_md5
        return ObjectMetadata(
            checksum=bytes(md5) if md5 else None,
            length=properties.size,
        )

    async def mint_read_delegation(self, expiry: timedelta) -> Optional[str]:
        if self._location is None or self._location.is_anonymous:
            return None
        return generate_blob_sas(
            account_name=self._location.account_name,
            container_name=self._location.container_name,
            blob_name=self.name,
            account_key=self._location.account_key,
            permission=BlobSasPermissions(read=True),
            expiry=datetime.now(timezone.utc) + expiry,
        )

    async def begin_server_side_copy(self, source_url: str) -> None:
        try:
            await self._client.start_copy_from_url(source_url)
        except ResourceExistsError as e:
            raise CopyConflictError(
                f"A copy onto '{self.name}' is already pending."
            ) from e
        except HttpResponseError as e:
            if e.status_code == 409:
                raise CopyConflictError(
                    f"A copy onto '{self.name}' is already pending."
                ) from e
            raise

    async def copy_status(self) -> CopyProgress:
        properties: Any = await self._client.get_blob_properties()
        copy: Any = properties.copy
        state: CopyState = _COPY_STATES.get(
            (copy.status or "").lower(), CopyState.PENDING
        )
        bytes_copied, total_bytes = _parse_copy_progress(copy.progress)
        return CopyProgress(
            state=state,
            bytes_copied=bytes_copied,
            total_bytes=total_bytes,
            completion_time=copy.completion_time,
            status_description=copy.status_description,
        )


class AzureBlobBackend:
    """
    A `StorageBackend` for Azure Blob Storage accounts.

    One `BlobServiceClient` is kept per account and credential for the
    lifetime of the backend. Use it as an async context manager so the
    underlying HTTP sessions are closed.
    """

    def __init__(
        self, account_url_template: str = "https://{account}.blob.core.windows.net"
    ) -> None:
        """
        Args:
            account_url_template (str): Blob service URL with an ``{account}``
                placeholder, overridable to target an emulator.
        """
        self._account_url_template: str = account_url_template
        self._service_clients: Dict[Tuple[str, Optional[str]], BlobServiceClient] = {}
        self._url_clients: List[BlobClient] = []

    async def __aenter__(self) -> "AzureBlobBackend":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    def _service_client(self, location: AccountLocation) -> BlobServiceClient:
        """
        Returns the cached service client for a location's account.

        Args:
            location (AccountLocation): The account location.

        Returns:
            BlobServiceClient: An anonymous client if the location has no key,
                else one authorized with the shared key.
        """
        cache_key: Tuple[str, Optional[str]] = (
            location.account_name,
            location.account_key,
        )
        client: Optional[BlobServiceClient] = self._service_clients.get(cache_key)
        if client is None:
            account_url: str = self._account_url_template.format(
                account=location.account_name
            )
            credential: Optional[AzureNamedKeyCredential] = None
            if not location.is_anonymous:
                credential = AzureNamedKeyCredential(
                    location.account_name, location.account_key
                )
            client = BlobServiceClient(account_url, credential=credential)
            self._service_clients[cache_key] = client
            logger.debug(f"Created blob service client for '{account_url}'")
        return client

    def _container_client(self, endpoint: Endpoint) -> ContainerClient:
        if not isinstance(endpoint.location, AccountLocation):
            raise ConfigError(
                f"{endpoint.describe()} is not addressed by account and container."
            )
        return self._service_client(endpoint.location).get_container_client(
            endpoint.location.container_name
        )

    def get_object(self, endpoint: Endpoint, name: Optional[str] = None) -> ObjectRef:
        if isinstance(endpoint.location, DirectUrl):
            try:
                blob_client: BlobClient = BlobClient.from_blob_url(endpoint.location.url)
            except ValueError:
                # Not a blob URL, e.g. a pre-signed link into another provider
                logger.debug(f"Copying {endpoint.describe()} without inspecting it")
                return UrlObjectRef(endpoint.location.url)
            self._url_clients.append(blob_client)
            return AzureBlobRef(blob_client)

        object_name: Optional[str] = name or endpoint.object_name
        if not object_name:
            raise ConfigError(
                f"Unknown object name for {endpoint.describe()}; "
                "please ensure this value is set."
            )
        container: ContainerClient = self._container_client(endpoint)
        return AzureBlobRef(container.get_blob_client(object_name), endpoint.location)

    def object_name_from_url(self, url: str) -> Optional[str]:
        """
        Derives the blob name from a direct URL the way the SDK parses it.

        Handles both ``https://acct.blob.core.windows.net/c/dir/a.txt`` and
        path-style emulator URLs such as
        ``http://127.0.0.1:10000/acct/c/a.txt``. URLs the SDK rejects are
        named by their last path segment.

        Args:
            url (str): The direct URL.

        Returns:
            Optional[str]: The blob name, or None if the URL names none.
        """
        try:
            with SyncBlobClient.from_blob_url(url) as client:
                return client.blob_name
        except ValueError:
            return last_path_segment(url)

    async def list_objects(self, endpoint: Endpoint) -> AsyncIterator[str]:
        container: ContainerClient = self._container_client(endpoint)
        async for blob in container.list_blobs():
            yield blob.name

    async def create_container_if_missing(self, endpoint: Endpoint) -> None:
        container: ContainerClient = self._container_client(endpoint)
        try:
            await container.create_container()
            logger.info(f"Created container '{endpoint.describe()}'")
        except ResourceExistsError:
            logger.debug(f"Container '{endpoint.describe()}' already exists")

    async def close(self) -> None:
        for blob_client in self._url_clients:
            await blob_client.close()
        self._url_clients.clear()
        for client in self._service_clients.values():
            await client.close()
        self._service_clients.clear()

