"""
Local cache of a git-hosted buildpack registry index.

This service handles:
- Locating the on-disk cache root for a registry URL
- Cloning, validating, resetting and pulling the local index mirror
- Resolving ``namespace/name[@version]`` coordinates to index entries

One process owns a cache root. Within that process a lock serialises
creation, reset and refresh with the index reads that follow them.
"""
from __future__ import annotations

import errno
import hashlib
import logging
import os
import shutil
import tempfile
import threading
from pathlib import Path
from typing import Optional

from buildpack_registry.data.index_reader import IndexReader
from buildpack_registry.domain.errors import (
    CacheCorruptionError,
    ConfigurationError,
    CreationError,
    NotFoundError,
    RefreshError,
    RegistryError,
    ResetError,
)
from buildpack_registry.domain.models import Buildpack, CacheHandle, Entry, RegistrySettings
from buildpack_registry.domain.registry_utils import highest_version, parse_registry_id
from buildpack_registry.storage.git_source_control import GitSourceControlClient
from buildpack_registry.storage.source_control import SourceControlClient

logger = logging.getLogger(__name__)


# ========================================================================
# Cache Location
# ========================================================================

def locate_cache(
    home: Path,
    remote_url: str,
    settings: Optional[RegistrySettings] = None,
) -> CacheHandle:
    """
    Compute the cache root for ``remote_url`` under ``home``.

    The root is ``home/<dir_prefix>-<sha256(remote_url)>``, so each remote
    gets its own cache and the same remote always maps to the same place.

    Raises:
        ConfigurationError: if ``home`` does not exist
    """
    settings = settings or RegistrySettings()
    home = Path(home)
    try:
        home.stat()
    except OSError as e:
        raise ConfigurationError(f"registry home is not accessible: {home}: {e}") from e

    key = hashlib.sha256(remote_url.encode("utf-8")).hexdigest()
    root = home / f"{settings.dir_prefix}-{key}"
    logger.debug(f"Registry cache for {remote_url} is {root}")
    return CacheHandle(remote_url=remote_url, root=root)


def locate_default_cache(home: Path, settings: Optional[RegistrySettings] = None) -> CacheHandle:
    """Locate the cache for the configured default registry URL."""
    settings = settings or RegistrySettings()
    return locate_cache(home, settings.default_url, settings)


class RegistryCache:
    """
    A self-healing local mirror of one registry index.

    Every lookup first makes sure the mirror exists, points at the right
    remote and is up to date; an invalid mirror is deleted and cloned again.
    """

    def __init__(
        self,
        handle: CacheHandle,
        source_control: Optional[SourceControlClient] = None,
        settings: Optional[RegistrySettings] = None,
    ):
        self.handle = handle
        self.source_control = source_control or GitSourceControlClient()
        self.settings = settings or RegistrySettings()
        self.reader = IndexReader(handle.root)
        self._lock = threading.RLock()

    @classmethod
    def from_home(
        cls,
        home: Path,
        remote_url: Optional[str] = None,
        source_control: Optional[SourceControlClient] = None,
        settings: Optional[RegistrySettings] = None,
    ) -> "RegistryCache":
        settings = settings or RegistrySettings()
        handle = locate_cache(home, remote_url or settings.default_url, settings)
        return cls(handle, source_control=source_control, settings=settings)

    @property
    def url(self) -> str:
        return self.handle.remote_url

    @property
    def root(self) -> Path:
        return self.handle.root

    # ========================================================================
    # Mirror Lifecycle
    # ========================================================================

    def _create_cache(self) -> None:
        """Clone the remote into a temporary directory and move it into place."""
        tmp_dir = Path(tempfile.mkdtemp(prefix=f"{self.settings.dir_prefix}-"))
        try:
            logger.info(f"Cloning registry {self.url}...")
            try:
                repository = self.source_control.clone(self.url, tmp_dir)
            except Exception as e:
                raise CreationError(f"could not clone {self.url}: {e}") from e

            self._move_into_place(repository.worktree_root)
            logger.info(f"Registry cache created at: {self.root}")
        finally:
            # Gone already when the rename succeeded.
            shutil.rmtree(tmp_dir, ignore_errors=True)

    def _move_into_place(self, worktree: Path) -> None:
        try:
            os.rename(worktree, self.root)
            return
        except OSError as e:
            if e.errno != errno.EXDEV:
                raise CreationError(f"could not move {worktree} to {self.root}: {e}") from e
            logger.debug(f"{worktree} and {self.root} are on different filesystems, staging a copy")

        # Stage next to the root so the final rename stays on one filesystem.
        staging = Path(tempfile.mkdtemp(prefix=f".{self.root.name}-", dir=self.root.parent))
        try:
            staged = staging / "mirror"
            shutil.copytree(worktree, staged, symlinks=True)
            os.rename(staged, self.root)
        except OSError as e:
            raise CreationError(f"could not move {worktree} to {self.root}: {e}") from e
        finally:
            shutil.rmtree(staging, ignore_errors=True)

    def _validate_cache(self) -> None:
        """
        Raise CacheCorruptionError unless the mirror has exactly one remote,
        named after the configured remote, with exactly one URL equal to the
        configured registry URL.
        """
        try:
            repository = self.source_control.open(self.root)
        except Exception as e:
            raise CacheCorruptionError(f"could not open registry cache: {e}") from e

        try:
            remotes = repository.remotes()
        except Exception as e:
            raise CacheCorruptionError(f"could not access registry cache: {e}") from e

        if len(remotes) != 1 or len(remotes[0].urls) != 1:
            raise CacheCorruptionError("invalid registry cache remotes")
        if remotes[0].name != self.settings.remote_name:
            raise CacheCorruptionError(f"invalid registry cache remote: {remotes[0].name}")
        if remotes[0].urls[0] != self.url:
            raise CacheCorruptionError("invalid registry cache origin")

    def _reset_cache(self) -> None:
        logger.info(f"Removing registry cache at {self.root}")
        try:
            if self.root.is_dir() and not self.root.is_symlink():
                shutil.rmtree(self.root)
            else:
                self.root.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            raise ResetError(f"could not reset registry cache: {e}") from e

    def initialize(self) -> None:
        """
        Make sure a valid mirror of the registry exists at ``root``.

        A missing mirror is cloned. A mirror that fails validation is deleted
        and cloned once more; if that fails the error is raised.

        Raises:
            CreationError: cloning or moving the clone into place failed
            ResetError: the invalid mirror could not be deleted
        """
        with self._lock:
            # A dangling symlink is not absent; it goes through reset.
            if not self.root.exists() and not self.root.is_symlink():
                try:
                    self._create_cache()
                except CreationError as e:
                    e.wrap("could not create registry cache")
                    raise

            try:
                self._validate_cache()
                return
            except CacheCorruptionError as e:
                logger.warning(f"Registry cache at {self.root} is invalid: {e}")

            self._reset_cache()
            try:
                self._create_cache()
            except CreationError as e:
                e.wrap("could not create registry cache")
                raise

    def refresh(self) -> None:
        """
        Initialize the mirror, then pull the latest index from the remote.

        Raises:
            RefreshError: the mirror could not be opened or the pull failed
        """
        with self._lock:
            self.initialize()

            remote_name = self.settings.remote_name
            try:
                repository = self.source_control.open(self.root)
            except Exception as e:
                raise RefreshError(f"could not open ({self.root}): {e}") from e

            try:
                updated = repository.pull(remote_name)
            except Exception as e:
                raise RefreshError(f"could not pull {remote_name} into ({self.root}): {e}") from e

        if updated:
            logger.info(f"Registry cache {self.root} updated from {self.url}")
        else:
            logger.debug(f"Registry cache {self.root} already up to date")

    def ensure_ready(self) -> None:
        """Bring the mirror into a valid, up-to-date state. Safe to call repeatedly."""
        self.refresh()

    # ========================================================================
    # Index Resolution
    # ========================================================================

    def index_path(self, namespace: str, name: str) -> Path:
        return self.reader.index_path(namespace, name)

    def read_entry(self, namespace: str, name: str) -> Entry:
        """Read the index entries for a buildpack without refreshing the mirror."""
        return self.reader.read_entry(namespace, name)

    def list_buildpacks(self, namespace: str, name: str) -> Entry:
        """Bring the mirror up to date, then read the entries for a buildpack."""
        with self._lock:
            self.ensure_ready()
            return self.read_entry(namespace, name)

    def locate_buildpack(self, coordinate: str) -> Buildpack:
        """
        Resolve ``namespace/name[@version]`` to an index entry.

        Without a version the highest semantic version wins (yanked entries
        included); with a version the first entry whose version string is
        exactly equal is returned. The entry's address is not validated here,
        callers should use ``Buildpack.validate_address()`` before pulling it.

        Raises:
            RegistryError: the cache could not be brought up to date
            ParseError: malformed coordinate or index file
            NotFoundError: unknown buildpack, empty index or unknown version
        """
        with self._lock:
            try:
                self.ensure_ready()
            except RegistryError as e:
                e.wrap("refreshing cache")
                raise

            namespace, name, version = parse_registry_id(coordinate)

            try:
                entry = self.read_entry(namespace, name)
            except RegistryError as e:
                e.wrap("reading entry")
                raise

        if not entry.buildpacks:
            raise NotFoundError(f"no entries for buildpack: {coordinate}")

        if not version:
            return highest_version(entry.buildpacks)

        for bp in entry.buildpacks:
            if bp.version == version:
                return bp

        raise NotFoundError(f"could not find version for buildpack: {coordinate}")
