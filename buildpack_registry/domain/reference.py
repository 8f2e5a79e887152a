"""
Parsing of OCI image references used as buildpack addresses.

Two flavours are supported:

* ``parse_reference(value)`` accepts either a tag reference
  (``registry/repo[:tag]``, the tag defaulting to ``latest``) or a digest
  reference (``registry/repo@sha256:<hex>``).
* ``parse_digest(value)`` only accepts digest references, i.e. addresses that
  pin immutable content.
"""
from __future__ import annotations

import re
from typing import Optional
from urllib.parse import urlsplit

from pydantic import BaseModel

from buildpack_registry.domain.errors import ValidationError

DEFAULT_REGISTRY = "index.docker.io"
DEFAULT_TAG = "latest"
DIGEST_ALGORITHM = "sha256"

_TAG_CHARS = re.compile(r"^[A-Za-z0-9_.-]+$")
_REPOSITORY_CHARS = re.compile(r"^[a-z0-9_./-]+$")
_DIGEST_HEX = re.compile(r"^[a-f0-9]{64}$")
_REGISTRY_HOST = re.compile(r"^(?:[A-Za-z0-9._~-]+|\[[0-9A-Fa-f:.]+\])(?::[0-9]*)?$")


class ImageReference(BaseModel):
    """A parsed image reference."""
    registry: str
    repository: str
    tag: Optional[str] = None
    digest: Optional[str] = None

    @property
    def name(self) -> str:
        base = f"{self.registry}/{self.repository}"
        if self.digest:
            return f"{base}@{self.digest}"
        return f"{base}:{self.tag}"


def _check_element(label: str, value: str, pattern: re.Pattern, min_len: int, max_len: int) -> None:
    if not min_len <= len(value) <= max_len:
        raise ValidationError(
            f"{label} must be between {min_len} and {max_len} characters in length: {value}"
        )
    if not pattern.match(value):
        raise ValidationError(f"{label} contains invalid characters: {value}")


def _check_registry(registry: str) -> None:
    if registry == "":
        return
    # A registry must be a valid URI authority (host[:port]) and nothing more.
    if not _REGISTRY_HOST.match(registry) or urlsplit(f"//{registry}").netloc != registry:
        raise ValidationError(f"registries must be valid RFC 3986 URI authorities: {registry}")


def _split_repository(name: str) -> tuple[str, str]:
    """Split ``name`` into (registry, repository) and validate both."""
    if not name:
        raise ValidationError("a repository name must be specified")

    registry = ""
    repository = name
    parts = name.split("/", 1)
    if len(parts) == 2 and ("." in parts[0] or ":" in parts[0] or parts[0] == "localhost"):
        registry, repository = parts

    _check_element("repository", repository, _REPOSITORY_CHARS, 2, 255)
    _check_registry(registry)

    if not registry:
        registry = DEFAULT_REGISTRY
        if "/" not in repository:
            repository = f"library/{repository}"
    return registry, repository


def parse_tag(value: str) -> ImageReference:
    """Parse a tag reference; a missing tag defaults to ``latest``."""
    base = value
    tag = ""
    parts = value.split(":")
    # A trailing ":<something/with/slashes>" is a registry port, not a tag.
    if len(parts) > 1 and "/" not in parts[-1]:
        base = ":".join(parts[:-1])
        tag = parts[-1]

    if tag:
        _check_element("tag", tag, _TAG_CHARS, 1, 128)

    registry, repository = _split_repository(base)
    return ImageReference(registry=registry, repository=repository, tag=tag or DEFAULT_TAG)


def parse_digest(value: str) -> ImageReference:
    """Parse a digest reference (``repo@sha256:<64 hex chars>``)."""
    parts = value.split("@")
    if len(parts) != 2:
        raise ValidationError(
            f"a digest must contain exactly one '@' separator (e.g. registry/repository@digest) saw: {value}"
        )

    base, digest = parts
    prefix = f"{DIGEST_ALGORITHM}:"
    if not digest.startswith(prefix):
        raise ValidationError(f"unsupported digest algorithm: {digest}")
    if not _DIGEST_HEX.match(digest[len(prefix):]):
        raise ValidationError(f"invalid checksum digest format: {digest}")

    # "repo:tag@sha256:..." is accepted; the tag is dropped in favour of the digest.
    try:
        tagged = parse_tag(base)
        registry, repository = tagged.registry, tagged.repository
    except ValidationError:
        registry, repository = _split_repository(base)

    return ImageReference(registry=registry, repository=repository, digest=digest)


def parse_reference(value: str) -> ImageReference:
    """
    Parse ``value`` as either a tag or a digest reference.

    Validation is weak: the registry defaults to Docker Hub and the tag to
    ``latest`` when they are omitted.
    """
    try:
        return parse_tag(value)
    except ValidationError:
        pass
    try:
        return parse_digest(value)
    except ValidationError as e:
        raise ValidationError(f"could not parse reference: {value}") from e
