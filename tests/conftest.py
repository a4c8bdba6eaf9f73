# tests/conftest.py
"""
Pytest configuration and fixtures for the blobcopy test suite.

This module provides:
- An in-memory storage backend that scripts copy states, conflicts and
  failures for the unit tests.
- Factories for source and destination endpoints.
- Docker fixtures running an Azurite storage emulator for the e2e tests.
"""

import hashlib
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, AsyncIterator, Callable, Dict, List, Optional, Tuple
from urllib.parse import urlparse

import pytest
import requests
from requests.exceptions import ConnectionError

from blobcopy.config import AppConfig
from blobcopy.exceptions import ConfigError, CopyConflictError
from blobcopy.models import (
    AccountLocation,
    CopyProgress,
    CopyState,
    DirectUrl,
    Endpoint,
    ObjectMetadata,
)

# --- Constants ---
AZURITE_ACCOUNT: str = "devstoreaccount1"
AZURITE_KEY: str = (
    "Eby8vdM02xNOcqFlqUwJPLlmEtlCDXJ1OUzFT50uSRZ6IFsu"
    "Fq2UVErCz4I6tq/K1SZFPTOtr/KBHBeksoGMGw=="
)


# --- In-memory backend ---
@dataclass
class FakeBlob:
    """An object held by the in-memory backend."""

    content: bytes
    checksum: Optional[bytes] = None
    copy_status: Optional[CopyProgress] = None

    @classmethod
    def of(cls, content: bytes) -> "FakeBlob":
        return cls(content=content, checksum=hashlib.md5(content).digest())


@dataclass
class FakeStore:
    """
    Shared state of the in-memory backend.

    Attributes:
        containers: Objects per (account, container).
        copy_scripts: Copy states returned by successive status polls, per
            destination object name. The last state repeats.
        conflicts: Destination names whose copy initiation conflicts.
        copy_errors: Destination names whose copy initiation fails.
        metadata_errors: Object names whose metadata fetch fails.
        copy_calls: Every (source url, destination name) copy requested.
        status_polls: Number of status polls per destination name.
        listing_error: Raised by the listing after its first object.
        container_error: Raised when a container is created.
    """

    containers: Dict[Tuple[str, str], Dict[str, FakeBlob]] = field(
        default_factory=dict
    )
    copy_scripts: Dict[str, List[CopyProgress]] = field(default_factory=dict)
    conflicts: set = field(default_factory=set)
    copy_errors: set = field(default_factory=set)
    metadata_errors: set = field(default_factory=set)
    copy_calls: List[Tuple[str, str]] = field(default_factory=list)
    status_polls: Dict[str, int] = field(default_factory=dict)
    listing_error: Optional[Exception] = None
    container_error: Optional[Exception] = None

    def container(self, account: str, name: str) -> Dict[str, FakeBlob]:
        return self.containers.setdefault((account, name), {})

    def put(self, account: str, container: str, name: str, content: bytes) -> None:
        self.container(account, container)[name] = FakeBlob.of(content)

    def resolve_url(self, url: str) -> Tuple[Dict[str, FakeBlob], str]:
        parsed = urlparse(url)
        container, _, name = parsed.path.lstrip("/").partition("/")
        return self.container(parsed.netloc, container), name


class FakeRef:
    """An `ObjectRef` over the in-memory store."""

    def __init__(
        self,
        store: FakeStore,
        account: str,
        container: str,
        name: str,
        signed: bool,
    ) -> None:
        self._store: FakeStore = store
        self._account: str = account
        self._container: str = container
        self._name: str = name
        self._signed: bool = signed

    @property
    def _blobs(self) -> Dict[str, FakeBlob]:
        return self._store.container(self._account, self._container)

    @property
    def name(self) -> str:
        return self._name

    @property
    def url(self) -> str:
        return f"memory://{self._account}/{self._container}/{self._name}"

    async def exists(self) -> bool:
        return self._name in self._blobs

    async def fetch_metadata(self) -> ObjectMetadata:
        if self._name in self._store.metadata_errors:
            raise OSError(f"metadata unavailable for {self._name}")
        blob: FakeBlob = self._blobs[self._name]
        return ObjectMetadata(checksum=blob.checksum, length=len(blob.content))

    async def mint_read_delegation(self, expiry: timedelta) -> Optional[str]:
        if not self._signed:
            return None
        return f"sig=read&se={int(expiry.total_seconds())}"

    async def begin_server_side_copy(self, source_url: str) -> None:
        self._store.copy_calls.append((source_url, self._name))
        if self._name in self._store.conflicts:
            raise CopyConflictError(f"copy pending on {self._name}")
        if self._name in self._store.copy_errors:
            raise RuntimeError(f"copy rejected for {self._name}")

        blobs, source_name = self._store.resolve_url(source_url.split("?")[0])
        source: FakeBlob = blobs[source_name]
        size: int = len(source.content)
        self._blobs[self._name] = FakeBlob(
            content=source.content,
            checksum=source.checksum,
            copy_status=CopyProgress(
                state=CopyState.SUCCESS,
                bytes_copied=size,
                total_bytes=size,
                completion_time=datetime.now(timezone.utc),
            ),
        )

    async def copy_status(self) -> CopyProgress:
        polls: int = self._store.status_polls.get(self._name, 0)
        self._store.status_polls[self._name] = polls + 1
        script: Optional[List[CopyProgress]] = self._store.copy_scripts.get(self._name)
        if script:
            return script[min(polls, len(script) - 1)]
        return self._blobs[self._name].copy_status


class InMemoryBackend:
    """A `StorageBackend` keeping objects in a `FakeStore`."""

    def __init__(self, store: FakeStore) -> None:
        self.store: FakeStore = store
        self.created_containers: List[Tuple[str, str]] = []
        self.closed: bool = False

    def get_object(self, endpoint: Endpoint, name: Optional[str] = None) -> FakeRef:
        if isinstance(endpoint.location, DirectUrl):
            parsed = urlparse(endpoint.location.url)
            container, _, object_name = parsed.path.lstrip("/").partition("/")
            return FakeRef(self.store, parsed.netloc, container, object_name, False)
        object_name = name or endpoint.object_name
        if not object_name:
            raise ConfigError("unknown object name")
        location: AccountLocation = endpoint.location
        return FakeRef(
            self.store,
            location.account_name,
            location.container_name,
            object_name,
            not location.is_anonymous,
        )

    def object_name_from_url(self, url: str) -> Optional[str]:
        return urlparse(url).path.lstrip("/").partition("/")[2] or None

    async def list_objects(self, endpoint: Endpoint) -> AsyncIterator[str]:
        location: AccountLocation = endpoint.location
        names: List[str] = list(
            self.store.container(location.account_name, location.container_name)
        )
        for i, name in enumerate(names):
            if self.store.listing_error is not None and i == 1:
                raise self.store.listing_error
            yield name

    async def create_container_if_missing(self, endpoint: Endpoint) -> None:
        if self.store.container_error is not None:
            raise self.store.container_error
        location: AccountLocation = endpoint.location
        self.store.container(location.account_name, location.container_name)
        self.created_containers.append(
            (location.account_name, location.container_name)
        )

    async def close(self) -> None:
        self.closed = True


# --- Application Fixtures ---
@pytest.fixture(scope="function")
def store() -> FakeStore:
    """Provide an empty in-memory store."""
    return FakeStore()


@pytest.fixture(scope="function")
def backend(store: FakeStore) -> InMemoryBackend:
    """Provide an in-memory backend over the `store` fixture."""
    return InMemoryBackend(store)


@pytest.fixture(scope="function")
def app_config() -> AppConfig:
    """Provide an AppConfig that polls without sleeping."""
    return AppConfig(poll_interval_s=0.0, max_wait_s=5.0)


@pytest.fixture(scope="function")
def endpoints() -> Callable[..., Tuple[Endpoint, Endpoint]]:
    """
    Provide a factory for a source/destination endpoint pair.

    The source lives in account ``src``, container ``in``; the destination in
    account ``dst``, container ``out``.
    """

    def _factory(
        object_name: Optional[str] = None,
        force: bool = False,
        asynchronous: bool = False,
    ) -> Tuple[Endpoint, Endpoint]:
        source: Endpoint = Endpoint(
            location=AccountLocation("src", "in", account_key="src-key"),
            object_name=object_name,
            force=force,
            asynchronous=asynchronous,
        )
        destination: Endpoint = Endpoint(
            location=AccountLocation("dst", "out", account_key="dst-key"),
            object_name=object_name,
        )
        return source, destination

    return _factory


# --- Docker Fixtures ---
@pytest.fixture(scope="session")
def docker_compose_file(pytestconfig: pytest.Config) -> str:
    """
    Locate the docker-compose.yml file for the e2e suite.

    Args:
        pytestconfig (pytest.Config): The pytest configuration object.

    Returns:
        str: The absolute path to the docker-compose.yml file.
    """
    return str(Path(pytestconfig.rootdir) / "tests" / "docker-compose.yml")


@pytest.fixture(scope="session")
def docker_compose_project_name() -> str:
    """Define a static project name for the Docker stack."""
    return "blobcopy-tests"


def _is_azurite_responsive(url: str) -> bool:
    """
    Check if the Azurite blob endpoint answers HTTP requests.

    Args:
        url (str): The blob service URL of the emulated account.

    Returns:
        bool: True if the service is responsive, False otherwise.
    """
    try:
        response: requests.Response = requests.get(f"{url}?comp=list")
        # Unauthenticated requests are refused, but only by a running service
        return response.status_code in (200, 400, 403)
    except ConnectionError:
        return False


@pytest.fixture(scope="session")
def azurite_service(docker_ip: str, docker_services: Any) -> Dict[str, str]:
    """
    Ensure the Azurite blob service is running and return its details.

    Args:
        docker_ip (str): The IP address of the Docker host.
        docker_services (Any): The pytest-docker services fixture.

    Returns:
        Dict[str, str]: The account name, key and URL template.
    """
    port: int = docker_services.port_for("azurite", 10000)
    account_url: str = f"http://{docker_ip}:{port}/{AZURITE_ACCOUNT}"
    docker_services.wait_until_responsive(
        timeout=30.0, pause=0.1, check=lambda: _is_azurite_responsive(account_url)
    )
    return {
        "account_name": AZURITE_ACCOUNT,
        "account_key": AZURITE_KEY,
        "account_url_template": f"http://{docker_ip}:{port}/{{account}}",
    }
