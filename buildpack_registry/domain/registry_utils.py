from __future__ import annotations

from pathlib import PurePosixPath
from typing import Iterable, Optional, Tuple

import semver

from buildpack_registry.domain.errors import ParseError

REGISTRY_URN_PREFIX = "urn:cnb:registry:"


def parse_registry_id(registry_id: str) -> Tuple[str, str, str]:
    """
    Split a coordinate such as ``heroku/java@1.2.0`` into (namespace, name, version).

    The version is ``""`` when omitted. A ``urn:cnb:registry:`` prefix is accepted.
    """
    locator = registry_id
    if locator.startswith(REGISTRY_URN_PREFIX):
        locator = locator[len(REGISTRY_URN_PREFIX):]

    id_part, _, version = locator.partition("@")
    parts = id_part.split("/")
    if "@" in version or len(parts) != 2 or not all(parts) or any(p in (".", "..") for p in parts):
        raise ParseError(f"invalid registry ID: {registry_id}")

    return parts[0], parts[1], version


def shard_path(name: str) -> PurePosixPath:
    """
    Directory (relative to the index root) holding the index files for ``name``.

    Names shorter than three characters get their own directory; longer names
    are spread over two levels taken from their first four characters.
    """
    if len(name) < 3:
        return PurePosixPath(name)
    if len(name) == 3:
        return PurePosixPath(name[:2], name[2:3])
    return PurePosixPath(name[:2], name[2:4])


def index_file_name(namespace: str, name: str) -> str:
    return f"{namespace}_{name}"


def _parse_version(version: str) -> Optional[semver.Version]:
    # The index stores versions without a "v"; a version that already carries
    # one would read as "vv..." and is therefore not a valid version.
    # Shorthand versions such as "1.2" are only valid without a prerelease
    # or build suffix.
    core = version.split("+", 1)[0].split("-", 1)[0]
    if core != version and core.count(".") != 2:
        return None
    try:
        return semver.Version.parse(version, optional_minor_and_patch=True)
    except (ValueError, TypeError):
        return None


def compare_versions(a: str, b: str) -> int:
    """
    Compare two index versions, returning -1, 0 or 1.

    Build metadata is ignored. An invalid version is lower than any valid
    one and equal to any other invalid one.
    """
    va = _parse_version(a)
    vb = _parse_version(b)
    if va is None and vb is None:
        return 0
    if va is None:
        return -1
    if vb is None:
        return 1
    return va.compare(vb)


def highest_version(buildpacks: Iterable):
    """
    Return the buildpack with the highest version, or None for an empty iterable.

    Ties keep the first one seen. Yanked entries are not skipped.
    """
    highest = None
    for bp in buildpacks:
        if highest is None or compare_versions(bp.version, highest.version) > 0:
            highest = bp
    return highest
