from pathlib import Path
from typing import List, Optional
import logging

import git

from buildpack_registry.domain.models import RemoteConfig
from buildpack_registry.storage.source_control import SourceControlClient, SourceRepository

logger = logging.getLogger(__name__)


class GitRepository(SourceRepository):
    def __init__(self, repo: git.Repo):
        self._repo = repo

    @property
    def worktree_root(self) -> Path:
        return Path(self._repo.working_tree_dir)

    def remotes(self) -> List[RemoteConfig]:
        return [
            RemoteConfig(name=remote.name, urls=list(remote.urls))
            for remote in self._repo.remotes
        ]

    def _head_sha(self) -> Optional[str]:
        try:
            return self._repo.head.commit.hexsha
        except ValueError:
            # Empty repository, nothing checked out yet.
            return None

    def pull(self, remote_name: str) -> bool:
        before = self._head_sha()
        self._repo.remote(remote_name).pull(ff_only=True)
        after = self._head_sha()
        logger.debug(f"Pulled {remote_name} in {self.worktree_root}: {before} -> {after}")
        return before != after


class GitSourceControlClient(SourceControlClient):
    """Source control client backed by GitPython (requires a ``git`` executable)."""

    def clone(self, url: str, dest: Path) -> GitRepository:
        logger.debug(f"Cloning {url} into {dest}")
        return GitRepository(git.Repo.clone_from(url, str(dest)))

    def open(self, path: Path) -> GitRepository:
        return GitRepository(git.Repo(str(path)))
