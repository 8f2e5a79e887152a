from __future__ import annotations

from typing import Optional
import logging

from fastapi import APIRouter, Depends, HTTPException, Query

from buildpack_registry.core.dependencies import get_registry_cache
from buildpack_registry.domain.errors import (
    ConfigurationError,
    NotFoundError,
    ParseError,
    RegistryError,
    ValidationError,
)
from buildpack_registry.domain.registry_utils import parse_registry_id
from buildpack_registry.services.registry_cache import RegistryCache

logger = logging.getLogger(__name__)
router = APIRouter()

_STATUS_BY_ERROR = [
    (NotFoundError, 404),
    (ParseError, 400),
    (ValidationError, 422),
    (ConfigurationError, 500),
]


def _http_error(e: RegistryError) -> HTTPException:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(e, error_type):
            break
    else:
        # Cache could not be created, reset or refreshed from upstream.
        status_code = 502
        logger.error(f"Registry cache failure: {e}", exc_info=True)
    return HTTPException(status_code=status_code, detail={"kind": e.kind, "message": str(e)})


def _coordinate(namespace: str, name: str, version: Optional[str] = None) -> str:
    """Build a registry coordinate from path parameters."""
    if "@" in namespace or "@" in name:
        raise ParseError(f"invalid registry ID: {namespace}/{name}")
    coordinate = f"{namespace}/{name}"
    if version:
        coordinate = f"{coordinate}@{version}"
    return coordinate


# ---------------------------------------------------------------------------
# 1. GET /buildpacks/{namespace}/{name}
# ---------------------------------------------------------------------------

@router.get("/buildpacks/{namespace}/{name}")
def resolve_buildpack(
    namespace: str,
    name: str,
    version: Optional[str] = Query(default=None),
    cache: RegistryCache = Depends(get_registry_cache),
) -> dict:
    """
    Resolve a buildpack to its pinned image address.

    Without ``version`` the highest version in the index is returned.
    """
    try:
        bp = cache.locate_buildpack(_coordinate(namespace, name, version))
        bp.validate_address()
    except RegistryError as e:
        raise _http_error(e)

    return bp.model_dump(by_alias=True)


# ---------------------------------------------------------------------------
# 2. GET /buildpacks/{namespace}/{name}/versions
# ---------------------------------------------------------------------------

@router.get("/buildpacks/{namespace}/{name}/versions")
def list_buildpack_versions(
    namespace: str,
    name: str,
    cache: RegistryCache = Depends(get_registry_cache),
) -> dict:
    """All index entries for a buildpack, in index order (yanked ones included)."""
    try:
        namespace, name, _ = parse_registry_id(_coordinate(namespace, name))
        entry = cache.list_buildpacks(namespace, name)
    except RegistryError as e:
        raise _http_error(e)

    return {"Data": [bp.model_dump(by_alias=True) for bp in entry.buildpacks]}


# ---------------------------------------------------------------------------
# 3. POST /refresh
# ---------------------------------------------------------------------------

@router.post("/refresh")
def refresh_registry(cache: RegistryCache = Depends(get_registry_cache)) -> dict:
    """Create, repair or update the local registry mirror."""
    try:
        cache.ensure_ready()
    except RegistryError as e:
        raise _http_error(e)

    return {"status": "ok", "root": str(cache.root), "url": cache.url}
