import json
import os
import shutil
from pathlib import Path
from typing import Dict, List

import pytest

# GitPython refuses to import without a git executable unless told otherwise;
# tests that need git skip themselves.
os.environ.setdefault("GIT_PYTHON_REFRESH", "quiet")

from buildpack_registry.domain.models import Buildpack, RemoteConfig, RegistrySettings
from buildpack_registry.domain.registry_utils import index_file_name, shard_path
from buildpack_registry.services.registry_cache import RegistryCache, locate_cache
from buildpack_registry.storage.source_control import SourceControlClient, SourceRepository

REGISTRY_URL = "https://example.com/buildpacks/registry-index"
OTHER_URL = "https://example.com/other/registry-index"

DIGEST = "sha256:" + "a" * 64
METADATA_FILE = ".fake-remote.json"


def make_buildpack(version: str, namespace: str = "example", name: str = "java", yanked: bool = False) -> Buildpack:
    return Buildpack(
        namespace=namespace,
        name=name,
        version=version,
        yanked=yanked,
        address=f"example.com/{namespace}/{name}@{DIGEST}",
    )


def write_index(tree: Path, namespace: str, name: str, lines: List[str]) -> Path:
    """Write raw index lines for namespace/name into a registry tree."""
    path = tree / shard_path(name) / index_file_name(namespace, name)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("".join(f"{line}\n" for line in lines), encoding="utf-8")
    return path


def write_buildpacks(tree: Path, buildpacks: List[Buildpack]) -> Path:
    first = buildpacks[0]
    return write_index(tree, first.namespace, first.name, [bp.to_index_line() for bp in buildpacks])


class FakeRepository(SourceRepository):
    def __init__(self, client: "FakeSourceControlClient", path: Path):
        self.client = client
        self.path = path

    def _metadata(self) -> dict:
        return json.loads((self.path / METADATA_FILE).read_text(encoding="utf-8"))

    @property
    def worktree_root(self) -> Path:
        return self.path

    def remotes(self) -> List[RemoteConfig]:
        return [RemoteConfig(**r) for r in self._metadata()["remotes"]]

    def pull(self, remote_name: str) -> bool:
        self.client.pull_calls += 1
        if self.client.pull_error is not None:
            raise self.client.pull_error

        metadata = self._metadata()
        remote = next((r for r in metadata["remotes"] if r["name"] == remote_name), None)
        if remote is None:
            raise ValueError(f"Remote named '{remote_name}' didn't exist")

        url = remote["urls"][0]
        revision = self.client.revisions[url]
        if metadata["revision"] == revision:
            return False

        shutil.copytree(self.client.registries[url], self.path, dirs_exist_ok=True)
        metadata["revision"] = revision
        (self.path / METADATA_FILE).write_text(json.dumps(metadata), encoding="utf-8")
        return True


class FakeSourceControlClient(SourceControlClient):
    """
    Serves registries from local directories. A mirror is any directory
    holding the metadata file written at clone time.
    """

    def __init__(self):
        self.registries: Dict[str, Path] = {}
        self.revisions: Dict[str, int] = {}
        self.clone_calls = 0
        self.pull_calls = 0
        self.clone_error = None
        self.pull_error = None

    def add_registry(self, url: str, tree: Path) -> None:
        self.registries[url] = tree
        self.revisions[url] = 1

    def publish(self, url: str) -> None:
        """Mark the remote tree as changed since the last pull."""
        self.revisions[url] += 1

    def clone(self, url: str, dest: Path) -> FakeRepository:
        self.clone_calls += 1
        if self.clone_error is not None:
            raise self.clone_error
        if url not in self.registries:
            raise RuntimeError(f"repository not found: {url}")

        shutil.copytree(self.registries[url], dest, dirs_exist_ok=True)
        metadata = {"remotes": [{"name": "origin", "urls": [url]}], "revision": self.revisions[url]}
        (dest / METADATA_FILE).write_text(json.dumps(metadata), encoding="utf-8")
        return FakeRepository(self, dest)

    def open(self, path: Path) -> FakeRepository:
        if not (path / METADATA_FILE).is_file():
            raise FileNotFoundError(f"not a mirror: {path}")
        return FakeRepository(self, path)


def set_remotes(root: Path, remotes: List[dict]) -> None:
    """Rewrite the remotes of an existing fake mirror."""
    metadata_path = root / METADATA_FILE
    metadata = json.loads(metadata_path.read_text(encoding="utf-8"))
    metadata["remotes"] = remotes
    metadata_path.write_text(json.dumps(metadata), encoding="utf-8")


@pytest.fixture
def home(tmp_path):
    d = tmp_path / "home"
    d.mkdir()
    return d


@pytest.fixture
def remote_tree(tmp_path):
    tree = tmp_path / "remote"
    tree.mkdir()
    write_buildpacks(tree, [make_buildpack("1.0.0"), make_buildpack("2.1.0"), make_buildpack("1.9.9")])
    return tree


@pytest.fixture
def fake_scm(remote_tree):
    client = FakeSourceControlClient()
    client.add_registry(REGISTRY_URL, remote_tree)
    return client


@pytest.fixture
def settings():
    return RegistrySettings(default_url=REGISTRY_URL)


@pytest.fixture
def cache(home, fake_scm, settings):
    return RegistryCache(locate_cache(home, REGISTRY_URL, settings), source_control=fake_scm, settings=settings)
