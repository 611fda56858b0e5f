"""Content-addressed on-disk cache of chunk embeddings.

Layout::

    <root>/<fingerprint of the lower-cased file path>/
        0000.json      one JSON float array per chunk
        0001.json
        ...
        _chunks        number of artifacts, written last

Every artifact's modification time is stamped to the source file's
modification time; comparing the first artifact's stamp with the source
is the staleness check, no content is re-read for it.  The cache is a
disposable optimisation: anything unexpected on disk is a miss and the
file gets embedded again.

Each file directory has a single writer (the ingestion of that file).
"""

from __future__ import annotations

import json
import logging
import os
import re
import shutil
import tempfile
from datetime import datetime
from os import PathLike
from pathlib import Path
from typing import TYPE_CHECKING

from ragfusion.hashing import path_fingerprint
from ragfusion.models import to_timestamp_ns

if TYPE_CHECKING:
    from ragfusion.config import Settings

logger = logging.getLogger(__name__)

MANIFEST_NAME = "_chunks"
_ARTIFACT = re.compile(r"^(\d{4,})\.json$")


class CacheCorruptedError(Exception):
    """Raised internally when a cache directory cannot be trusted."""


class EmbeddingCache:
    """Per-file vector cache rooted at *root*."""

    def __init__(self, root: str | PathLike[str]) -> None:
        self.root = Path(root)

    @classmethod
    def from_settings(cls, settings: Settings) -> EmbeddingCache:
        return cls(settings.collection_cache_dir)

    def directory_for(self, path: str | PathLike[str]) -> Path:
        return self.root / path_fingerprint(path)

    # -- reads ----------------------------------------------------------------

    def load(self, path: str | PathLike[str], modified: datetime) -> list[list[float]] | None:
        """Return the cached vectors of *path*, or ``None`` on any miss.

        A miss is an absent or empty directory, a stamp that differs from
        *modified*, or a corrupt directory.
        """
        directory = self.directory_for(path)
        if not directory.is_dir():
            return None
        try:
            artifacts = _list_artifacts(directory)
            if not artifacts:
                return None
            stamp = artifacts[0].stat().st_mtime_ns // 1000
            if stamp != to_timestamp_ns(modified) // 1000:
                logger.debug("Stale cache for %s in %s", path, directory)
                return None
            return _read_artifacts(directory, artifacts)
        except (OSError, CacheCorruptedError) as exc:
            logger.warning("Ignoring corrupt cache for %s in %s: %s", path, directory, exc)
            return None

    # -- writes ---------------------------------------------------------------

    def reset(self, path: str | PathLike[str]) -> Path:
        """Drop whatever is cached for *path* and return a fresh, empty directory."""
        directory = self.directory_for(path)
        if directory.exists():
            shutil.rmtree(directory)
        directory.mkdir(parents=True)
        return directory

    def store(self, path: str | PathLike[str], modified: datetime, vectors: list[list[float]]) -> Path:
        """Write *vectors* as artifacts ``0000.json``, ``0001.json``, … for *path*."""
        directory = self.directory_for(path)
        directory.mkdir(parents=True, exist_ok=True)
        stamp_ns = to_timestamp_ns(modified)
        for index, vector in enumerate(vectors):
            artifact = directory / f"{index:04d}.json"
            _write_atomic(artifact, json.dumps(vector))
            os.utime(artifact, ns=(stamp_ns, stamp_ns))
        _write_atomic(directory / MANIFEST_NAME, str(len(vectors)))
        return directory

    def clear(self) -> None:
        """Delete the whole cache root."""
        if self.root.exists():
            shutil.rmtree(self.root)


def _list_artifacts(directory: Path) -> list[Path]:
    indexed: list[tuple[int, Path]] = []
    for entry in directory.iterdir():
        match = _ARTIFACT.match(entry.name)
        if match:
            indexed.append((int(match.group(1)), entry))
    indexed.sort()
    for expected, (index, entry) in enumerate(indexed):
        if index != expected:
            raise CacheCorruptedError(f"missing chunk {expected:04d} (found {entry.name})")
    return [entry for _, entry in indexed]


def _read_artifacts(directory: Path, artifacts: list[Path]) -> list[list[float]]:
    manifest = directory / MANIFEST_NAME
    if not manifest.is_file():
        raise CacheCorruptedError("incomplete write (no manifest)")
    try:
        expected = int(manifest.read_text(encoding="utf-8").strip())
    except ValueError as exc:
        raise CacheCorruptedError(f"unreadable manifest: {exc}") from exc
    if expected != len(artifacts):
        raise CacheCorruptedError(f"manifest lists {expected} chunks, found {len(artifacts)}")

    vectors: list[list[float]] = []
    for artifact in artifacts:
        try:
            data = json.loads(artifact.read_text(encoding="utf-8"))
        except ValueError as exc:
            raise CacheCorruptedError(f"{artifact.name}: {exc}") from exc
        if not isinstance(data, list) or not all(
            isinstance(x, (int, float)) and not isinstance(x, bool) for x in data
        ):
            raise CacheCorruptedError(f"{artifact.name}: not a float array")
        vectors.append([float(x) for x in data])
    return vectors


def _write_atomic(target: Path, content: str) -> None:
    fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=".tmp-", suffix=target.suffix)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(content)
        os.replace(tmp_name, target)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
