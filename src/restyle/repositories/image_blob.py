"""File-backed storage for design image blobs.

Blobs are named deterministically from the design id and a role tag
(original_<id>, generated_<id>) inside a single directory. The metadata
table references them by absolute path.
"""

import os
import tempfile
from pathlib import Path
from uuid import UUID

import structlog

logger = structlog.get_logger(__name__)

ORIGINAL = "original"
GENERATED = "generated"


class ImageBlobStore:
    """Reads and writes image bytes under a blob directory."""

    def __init__(self, root: Path):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def path_for(self, role: str, design_id: UUID) -> Path:
        return self.root / f"{role}_{design_id}"

    def write(self, role: str, design_id: UUID, data: bytes) -> str:
        """Atomically write a blob.

        Data goes to a temporary file in the same directory which is then
        renamed over the target, so readers never see a partial image.

        Returns:
            Absolute path of the written blob
        """
        target = self.path_for(role, design_id).resolve()
        fd, tmp_name = tempfile.mkstemp(dir=self.root, prefix=f".{target.name}.")
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(data)
            os.replace(tmp_name, target)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        return str(target)

    def read(self, path: str | None) -> bytes | None:
        """Load a blob, or None if it is missing, unreadable or empty."""
        if not path:
            return None
        try:
            data = Path(path).read_bytes()
        except OSError as e:
            logger.warning("blob.unreadable", path=path, error=str(e))
            return None
        return data or None

    def has_data(self, path: str | None) -> bool:
        """True if the blob is an existing, non-empty file."""
        if not path:
            return False
        try:
            return Path(path).is_file() and Path(path).stat().st_size > 0
        except OSError:
            return False

    def remove(self, path: str | None) -> bool:
        """Delete a blob. A missing file is logged, not raised.

        Returns:
            True if a file was deleted
        """
        if not path:
            return False
        try:
            Path(path).unlink()
        except FileNotFoundError:
            logger.warning("blob.delete_missing", path=path)
            return False
        except OSError as e:
            logger.error("blob.delete_failed", path=path, error=str(e))
            return False
        logger.debug("blob.deleted", path=path)
        return True
