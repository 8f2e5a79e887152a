from abc import ABC, abstractmethod
from pathlib import Path
from typing import List

from buildpack_registry.domain.models import RemoteConfig


class SourceRepository(ABC):
    """
    An opened local mirror of a version-controlled index.
    """

    @property
    @abstractmethod
    def worktree_root(self) -> Path:
        """Root directory of the checked-out working tree."""
        pass

    @abstractmethod
    def remotes(self) -> List[RemoteConfig]:
        """List the remotes configured on the mirror."""
        pass

    @abstractmethod
    def pull(self, remote_name: str) -> bool:
        """
        Fetch and merge from the named remote.

        Returns False when the mirror was already up to date, True when new
        commits were merged. Any other outcome raises.
        """
        pass


class SourceControlClient(ABC):
    """
    Abstract base class for the transport that clones and opens index mirrors.
    """

    @abstractmethod
    def clone(self, url: str, dest: Path) -> SourceRepository:
        """Clone ``url`` into the (empty or missing) directory ``dest``."""
        pass

    @abstractmethod
    def open(self, path: Path) -> SourceRepository:
        """Open an existing mirror; raises if ``path`` is not one."""
        pass
