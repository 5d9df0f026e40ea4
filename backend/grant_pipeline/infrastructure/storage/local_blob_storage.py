"""Local filesystem blob storage for downloaded attachment files."""

import logging
from pathlib import Path

from grant_pipeline.application.interfaces.blob_storage import BlobStorage

logger = logging.getLogger(__name__)


class LocalBlobStorage(BlobStorage):
    """Resolves ``storage_path`` values relative to a root directory.

    Paths that escape the root are treated as missing.
    """

    def __init__(self, root_dir: str):
        self._root = Path(root_dir).resolve()
        self._root.mkdir(parents=True, exist_ok=True)

    async def read(self, storage_path: str) -> bytes | None:
        file_path = (self._root / storage_path.lstrip("/")).resolve()
        if not file_path.is_relative_to(self._root):
            logger.warning("Rejected storage path outside blob root: %s", storage_path)
            return None
        if not file_path.is_file():
            return None
        content = file_path.read_bytes()
        logger.debug("Read %s from blob storage (%d bytes)", storage_path, len(content))
        return content

