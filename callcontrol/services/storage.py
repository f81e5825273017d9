import logging
import os
import tempfile
from pathlib import Path
from typing import Optional

from callcontrol.core.config import settings
from callcontrol.core.exceptions import StorageError

logger = logging.getLogger(__name__)


class AudioStorage:
    """Durable audio storage on the local filesystem, served under /media."""

    def __init__(self, root: Optional[str] = None, public_base_url: Optional[str] = None):
        self.root = Path(root or settings.storage_root).resolve()
        self.public_base_url = (public_base_url or settings.storage_public_base_url).rstrip("/")

    def _path(self, key: str) -> Path:
        path = (self.root / key.lstrip("/")).resolve()
        if self.root not in path.parents:
            raise StorageError(f"Invalid storage key: {key}")
        return path

    def upload(self, key: str, data: bytes, content_type: str = "audio/mpeg") -> str:
        """Write ``data`` under ``key``, replacing any previous object."""
        path = self._path(key)
        tmp_name = None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".upload-")
            with os.fdopen(fd, "wb") as handle:
                handle.write(data)
            os.replace(tmp_name, path)
        except OSError as exc:
            if tmp_name is not None:
                Path(tmp_name).unlink(missing_ok=True)
            raise StorageError(f"Could not store {key}: {exc}") from exc
        logger.info("Stored %s (%s bytes, %s)", key, len(data), content_type)
        return key

    def public_url(self, key: str) -> str:
        return f"{self.public_base_url}/{key.lstrip('/')}"

    def exists(self, key: str) -> bool:
        return self._path(key).is_file()

    def read(self, key: str) -> bytes:
        try:
            return self._path(key).read_bytes()
        except OSError as exc:
            raise StorageError(f"Could not read {key}: {exc}") from exc
