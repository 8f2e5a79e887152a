from pathlib import Path
from typing import Optional

from buildpack_registry.domain.models import RegistrySettings
from buildpack_registry.services.registry_cache import RegistryCache
from buildpack_registry.storage.git_source_control import GitSourceControlClient
from buildpack_registry.storage.source_control import SourceControlClient

_DEFAULT_HOME_DIR = Path.home() / ".pack"

_settings: Optional[RegistrySettings] = None
_source_control: Optional[SourceControlClient] = None
_registry_cache: Optional[RegistryCache] = None

def get_settings() -> RegistrySettings:
    global _settings
    if _settings is None:
        _settings = RegistrySettings.from_env()
    return _settings

def get_home_dir() -> Path:
    d = get_settings().home or _DEFAULT_HOME_DIR
    d.mkdir(parents=True, exist_ok=True)
    return d

def get_source_control() -> SourceControlClient:
    global _source_control
    if _source_control is None:
        _source_control = GitSourceControlClient()
    return _source_control

def get_registry_cache() -> RegistryCache:
    global _registry_cache
    if _registry_cache is None:
        _registry_cache = RegistryCache.from_home(
            get_home_dir(),
            source_control=get_source_control(),
            settings=get_settings(),
        )
    return _registry_cache

def reset_dependencies() -> None:
    """Forget the cached singletons so the next call re-reads the environment."""
    global _settings, _source_control, _registry_cache
    _settings = None
    _source_control = None
    _registry_cache = None
