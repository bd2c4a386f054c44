"""JSON checkpoint files with atomic replace semantics."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path

from .constants import CHECKPOINT_DIR

logger = logging.getLogger(__name__)

_SUFFIX = ".json"


def _fsync_directory(directory: Path) -> None:
    """Flush a rename in *directory* to disk where the platform allows it."""
    if not hasattr(os, "O_DIRECTORY"):
        return
    fd = os.open(directory, os.O_RDONLY | os.O_DIRECTORY)
    try:
        os.fsync(fd)
    finally:
        os.close(fd)


class CheckpointStore:
    """Directory of named JSON snapshots.

    Each ``save`` writes to a temporary file in the same directory and then
    renames it over the target, so a reader only ever sees the previous or
    the new snapshot.
    """

    def __init__(self, directory: Path | None = None) -> None:
        self.directory = Path(directory or CHECKPOINT_DIR)

    def path_for(self, key: str) -> Path:
        if not key or key != Path(key).name or key in (".", ".."):
            raise ValueError(f"Invalid checkpoint key: {key!r}")
        return self.directory / f"{key}{_SUFFIX}"

    def save(self, key: str, snapshot: dict) -> Path:
        """Atomically overwrite the checkpoint *key* with *snapshot*."""
        target = self.path_for(key)
        self.directory.mkdir(parents=True, exist_ok=True)

        fd, tmp_name = tempfile.mkstemp(prefix=f".{key}.", suffix=".tmp", dir=self.directory)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(snapshot, f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, target)
            _fsync_directory(self.directory)
        except BaseException:
            logger.error("Failed to write checkpoint %s", target)
            Path(tmp_name).unlink(missing_ok=True)
            raise

        logger.info("Progress saved to %s", target)
        return target

    def load(self, key: str) -> dict | None:
        """Return the snapshot stored under *key*, or None if there is none."""
        target = self.path_for(key)
        if not target.exists():
            return None
        try:
            with open(target, encoding="utf-8") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Ignoring unreadable checkpoint %s: %s", target, exc)
            return None

    def delete(self, key: str) -> bool:
        target = self.path_for(key)
        if not target.exists():
            return False
        target.unlink()
        return True

    def keys(self) -> list[str]:
        if not self.directory.exists():
            return []
        return sorted(p.stem for p in self.directory.glob(f"*{_SUFFIX}"))
