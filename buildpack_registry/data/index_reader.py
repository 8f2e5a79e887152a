"""
Read buildpack index files from a registry index checkout.

Each index file lists every published version of one namespace/name, one
JSON object per line, in the order the versions were added to the index.
"""
from __future__ import annotations

import logging
from pathlib import Path

from pydantic import ValidationError as PydanticValidationError

from buildpack_registry.domain.errors import NotFoundError, ParseError
from buildpack_registry.domain.models import Buildpack, Entry
from buildpack_registry.domain.registry_utils import index_file_name, shard_path

logger = logging.getLogger(__name__)


class IndexReader:
    """Reads entries from the sharded index files under ``root``."""

    def __init__(self, root: Path):
        self.root = root

    def index_path(self, namespace: str, name: str) -> Path:
        return self.root / shard_path(name) / index_file_name(namespace, name)

    def read_entry(self, namespace: str, name: str) -> Entry:
        """
        Load all entries for ``namespace/name``.

        Returns:
            Entry with buildpacks in file order

        Raises:
            NotFoundError: if no index file exists for the buildpack
            ParseError: if any line is not a valid entry, or the file cannot
                be read to the end; no partial result is returned
        """
        bp_id = f"{namespace}/{name}"
        index = self.index_path(namespace, name)
        logger.debug(f"Reading index for {bp_id} from {index}")

        if not index.is_file():
            raise NotFoundError(f"could not find buildpack: {bp_id}")

        try:
            f = open(index, "r", encoding="utf-8")
        except OSError as e:
            raise ParseError(f"could not open index for buildpack: {bp_id}: {e}") from e

        entry = Entry()
        with f:
            try:
                for line_no, line in enumerate(f, start=1):
                    try:
                        bp = Buildpack.model_validate_json(line.rstrip("\r\n"))
                    except PydanticValidationError as e:
                        logger.debug(f"Invalid entry on line {line_no} of {index}: {e}")
                        raise ParseError(
                            f"could not parse index for buildpack: {bp_id}: line {line_no}"
                        ) from e
                    entry.buildpacks.append(bp)
            except (OSError, UnicodeDecodeError) as e:
                raise ParseError(f"could not read index for buildpack: {bp_id}: {e}") from e

        logger.debug(f"Loaded {len(entry.buildpacks)} entries for {bp_id}")
        return entry
