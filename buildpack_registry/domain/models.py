"""
Pydantic models for the buildpack registry cache.

This module defines the data models used throughout the package:
- Registry cache configuration
- Cache handles (remote URL plus on-disk root)
- Index entries as stored, one JSON object per line, in the registry index
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from buildpack_registry.domain.errors import ValidationError
from buildpack_registry.domain.reference import parse_digest, parse_reference

DEFAULT_REGISTRY_URL = "https://github.com/buildpacks/registry-index"
DEFAULT_REGISTRY_DIR = "registry"
DEFAULT_REMOTE_NAME = "origin"

HOME_ENV_VAR = "BUILDPACK_REGISTRY_HOME"
URL_ENV_VAR = "BUILDPACK_REGISTRY_URL"
DIR_PREFIX_ENV_VAR = "BUILDPACK_REGISTRY_DIR_PREFIX"


# ---------------------------------------------------------------------------
# Configuration Models
# ---------------------------------------------------------------------------


class RegistrySettings(BaseModel):
    """
    Configuration for locating and maintaining registry caches.

    Passed explicitly to the locator so tests can substitute alternate
    URLs and roots without touching process-wide state.
    """

    default_url: str = Field(
        default=DEFAULT_REGISTRY_URL,
        description="Remote index URL used when the caller does not name one.",
    )
    dir_prefix: str = Field(
        default=DEFAULT_REGISTRY_DIR,
        description="Fixed directory name mixed with the URL hash to form the cache root.",
    )
    remote_name: str = Field(
        default=DEFAULT_REMOTE_NAME,
        description="Name of the single remote a valid mirror pulls from.",
    )
    home: Optional[Path] = Field(
        default=None,
        description="Base directory holding one cache root per remote URL.",
    )

    @classmethod
    def from_env(cls) -> "RegistrySettings":
        """Build settings from environment variables, falling back to defaults."""
        home = os.environ.get(HOME_ENV_VAR)
        return cls(
            default_url=os.environ.get(URL_ENV_VAR, DEFAULT_REGISTRY_URL),
            dir_prefix=os.environ.get(DIR_PREFIX_ENV_VAR, DEFAULT_REGISTRY_DIR),
            home=Path(home).expanduser() if home else None,
        )


class CacheHandle(BaseModel):
    """Identifies one cache instance: the remote it mirrors and where it lives."""
    model_config = ConfigDict(frozen=True)

    remote_url: str
    root: Path


class RemoteConfig(BaseModel):
    """A remote as configured on a local mirror."""
    name: str
    urls: List[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Index Models
# ---------------------------------------------------------------------------


class Buildpack(BaseModel):
    """
    One published, immutable version of a buildpack in the registry index.

    Serialised as a single JSON line using the index's short field names
    (``ns`` and ``addr``).
    """
    model_config = ConfigDict(populate_by_name=True, strict=True)

    namespace: str = Field(default="", alias="ns")
    name: str = ""
    version: str = ""
    yanked: bool = False
    address: str = Field(default="", alias="addr")

    @property
    def id(self) -> str:
        return f"{self.namespace}/{self.name}"

    def to_index_line(self) -> str:
        """Render the entry as it appears in an index file (without newline)."""
        return self.model_dump_json(by_alias=True)

    def validate_address(self) -> None:
        """
        Check that ``address`` pins an immutable image digest.

        Resolution does not call this itself; callers handing the address to
        an image puller are expected to.

        Raises:
            ValidationError: if the address is empty, is not an image
                reference, or is a mutable tag rather than a digest reference
        """
        if self.address == "":
            raise ValidationError("address is a required field")

        parse_reference(self.address)

        try:
            parse_digest(self.address)
        except ValidationError as e:
            raise ValidationError(f"'{self.address}' is not a digest reference") from e


class Entry(BaseModel):
    """All index entries for one namespace/name, in index file order."""
    buildpacks: List[Buildpack] = Field(default_factory=list)
