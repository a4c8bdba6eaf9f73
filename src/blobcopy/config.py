# src/blobcopy/config.py
"""
Configuration for blobcopy.

This module centralizes all configuration, resolving endpoint details from
command-line overrides or environment variables and providing typed
dataclasses for use throughout the application.
"""

import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

from blobcopy.exceptions import ConfigError
from blobcopy.models import AccountLocation, DirectUrl, Endpoint, Location

ENV_PREFIX: str = "BLOBCOPY"


def _get_env_var(name: str, default: Optional[str] = None) -> str:
    """
    Retrieves a required environment variable.

    Args:
        name (str): The name of the environment variable.
        default (str, optional): The default value if the variable is not set.

    Returns:
        str: The value of the environment variable.
    """
    value: Optional[str] = os.environ.get(name, default)
    if not value:
        raise ConfigError(f"Environment variable '{name}' must be set.")
    return value


def _resolve(
    overrides: Mapping[str, Optional[str]], key: str, env_name: str
) -> Optional[str]:
    """Returns the override for `key` if given, else the environment value."""
    value: Optional[str] = overrides.get(key)
    if value:
        return value
    return os.environ.get(env_name) or None


def load_location(
    role: str,
    overrides: Optional[Mapping[str, Optional[str]]] = None,
    allow_url: bool = False,
) -> Location:
    """
    Builds the location of one side of the copy.

    Every value may be given in `overrides` (keys ``account_name``,
    ``container``, ``account_key`` and ``url``); missing values are read from
    ``BLOBCOPY_<ROLE>_ACCOUNT_NAME``, ``BLOBCOPY_<ROLE>_CONTAINER``,
    ``BLOBCOPY_<ROLE>_ACCOUNT_KEY`` and ``BLOBCOPY_<ROLE>_URL``.

    Args:
        role (str): Either ``"source"`` or ``"destination"``.
        overrides (Mapping[str, Optional[str]], optional): Values taking
            precedence over the environment.
        allow_url (bool): Whether a direct object URL may address this side.

    Returns:
        Location: A `DirectUrl` if a URL was given and allowed, else an
            `AccountLocation`.
    """
    overrides = overrides or {}
    prefix: str = f"{ENV_PREFIX}_{role.upper()}"

    if allow_url:
        url: Optional[str] = _resolve(overrides, "url", f"{prefix}_URL")
        if url:
            return DirectUrl(url=url)

    account_name: str = overrides.get("account_name") or _get_env_var(
        f"{prefix}_ACCOUNT_NAME"
    )
    container: str = overrides.get("container") or _get_env_var(
        f"{prefix}_CONTAINER"
    )
    account_key: Optional[str] = _resolve(
        overrides, "account_key", f"{prefix}_ACCOUNT_KEY"
    )
    return AccountLocation(
        account_name=account_name,
        container_name=container,
        account_key=account_key,
    )


@dataclass(frozen=True)
class AppConfig:
    """
    Defines the application's operational parameters.

    Attributes:
        poll_interval_s (float): Delay between copy status checks.
        max_wait_s (float): Longest time to watch a single copy before
            reporting it as still pending.
        delegation_expiry_minutes (int): Lifetime of the read-only token
            minted for a source object.
        create_destination_container (bool): Create the destination
            container before copying if it does not exist.
        account_url_template (str): Blob service URL for an account; the
            ``{account}`` placeholder is replaced with the account name.
    """

    poll_interval_s: float = 0.5
    max_wait_s: float = 1800.0
    delegation_expiry_minutes: int = 10
    create_destination_container: bool = True
    account_url_template: str = field(
        default_factory=lambda: os.environ.get(
            f"{ENV_PREFIX}_ACCOUNT_URL_TEMPLATE",
            "https://{account}.blob.core.windows.net",
        )
    )

    def __post_init__(self) -> None:
        if self.poll_interval_s < 0:
            raise ConfigError("poll_interval_s must not be negative.")
        if self.max_wait_s < 0:
            raise ConfigError("max_wait_s must not be negative.")
        if self.delegation_expiry_minutes <= 0:
            raise ConfigError("delegation_expiry_minutes must be positive.")
        if "{account}" not in self.account_url_template:
            raise ConfigError(
                "account_url_template must contain an '{account}' placeholder."
            )


@dataclass(frozen=True)
class Config:
    """
    Top-level configuration container for a copy run.

    Attributes:
        source (Endpoint): Where objects are copied from.
        destination (Endpoint): Where objects are copied to.
        app (AppConfig): General application settings.
    """

    source: Endpoint
    destination: Endpoint
    app: AppConfig = field(default_factory=AppConfig)

    def __post_init__(self) -> None:
        if self.destination.is_direct_url:
            raise ConfigError(
                "The destination must be addressed by account and container, "
                "not by a direct URL."
            )
