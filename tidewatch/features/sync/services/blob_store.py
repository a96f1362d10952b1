import logging
from pathlib import Path
from typing import Dict, Optional

from tidewatch.features.common.exceptions.sync_exceptions import PersistenceError

logger = logging.getLogger(__name__)

class BlobStore:
    """Whole-value key/blob storage."""

    async def load_blob(self, key: str) -> Optional[bytes]:
        raise NotImplementedError

    async def save_blob(self, key: str, data: bytes) -> None:
        raise NotImplementedError

class FileBlobStore(BlobStore):
    """Stores each blob as one file under a base directory."""

    def __init__(self, base_dir: str = "data"):
        """Initialize the file storage with a base directory."""
        self.base_dir = Path(base_dir)
        self._ensure_storage_dir()

    def _ensure_storage_dir(self) -> None:
        """Ensure the storage directory exists."""
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def get_file_path(self, key: str) -> Path:
        return self.base_dir / f"{key}.json"

    async def load_blob(self, key: str) -> Optional[bytes]:
        file_path = self.get_file_path(key)
        if not file_path.exists():
            return None
        try:
            with open(file_path, 'rb') as f:
                return f.read()
        except OSError as e:
            logger.error(f"Error reading {file_path}: {str(e)}")
            raise PersistenceError(f"Error reading {file_path}: {str(e)}") from e

    async def save_blob(self, key: str, data: bytes) -> None:
        file_path = self.get_file_path(key)
        tmp_path = file_path.with_suffix(".tmp")
        try:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, 'wb') as f:
                f.write(data)
            # Readers never see a half-written file
            tmp_path.replace(file_path)
        except OSError as e:
            logger.error(f"Error saving {file_path}: {str(e)}")
            raise PersistenceError(f"Error saving {file_path}: {str(e)}") from e

class MemoryBlobStore(BlobStore):
    """In-process blob storage."""

    def __init__(self, blobs: Optional[Dict[str, bytes]] = None):
        self.blobs: Dict[str, bytes] = dict(blobs or {})

    async def load_blob(self, key: str) -> Optional[bytes]:
        return self.blobs.get(key)

    async def save_blob(self, key: str, data: bytes) -> None:
        self.blobs[key] = bytes(data)
