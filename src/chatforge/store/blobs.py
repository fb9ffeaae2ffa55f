"""File-backed blob storage for generated artifacts."""

import uuid
from pathlib import Path

PNG_MAGIC = b"\x89PNG\r\n\x1a\n"
JPEG_MAGIC = b"\xff\xd8\xff"
WEBP_MAGIC = b"RIFF"


def sniff_extension(data: bytes) -> str:
    """Guess a file extension from the leading bytes."""
    if data.startswith(PNG_MAGIC):
        return ".png"
    if data.startswith(JPEG_MAGIC):
        return ".jpg"
    if data.startswith(WEBP_MAGIC) and data[8:12] == b"WEBP":
        return ".webp"
    return ".bin"


class BlobStore:
    """Stores bytes under opaque ids and hands out stable URLs.

    Each blob is one file in ``root``. Its URL is ``base_url`` joined with the
    storage id.
    """

    def __init__(self, root: Path, base_url: str) -> None:
        """Initialize the store.

        Args:
            root: Directory holding the blob files.
            base_url: Public prefix for blob URLs.
        """
        self.root = root
        self.base_url = base_url.rstrip("/")

    def store(self, data: bytes) -> str:
        """Write bytes and return their storage id.

        Raises:
            ValueError: If ``data`` is empty.
        """
        if not data:
            raise ValueError("Refusing to store an empty blob")

        self.root.mkdir(parents=True, exist_ok=True)
        storage_id = uuid.uuid4().hex + sniff_extension(data)
        path = self.root / storage_id
        tmp_path = path.with_suffix(path.suffix + ".tmp")
        tmp_path.write_bytes(data)
        tmp_path.replace(path)
        return storage_id

    def get_url(self, storage_id: str) -> str | None:
        """Return the URL for a stored blob, or None if it is missing."""
        if not self._path(storage_id).exists():
            return None
        return f"{self.base_url}/{storage_id}"

    def read(self, storage_id: str) -> bytes | None:
        path = self._path(storage_id)
        if not path.exists():
            return None
        return path.read_bytes()

    def delete(self, storage_id: str) -> bool:
        """Delete a blob. Returns True if it existed."""
        path = self._path(storage_id)
        if not path.exists():
            return False
        path.unlink()
        return True

    def _path(self, storage_id: str) -> Path:
        # storage ids are generated here, never taken as paths from callers
        if "/" in storage_id or "\\" in storage_id or storage_id.startswith("."):
            raise ValueError(f"Invalid storage id: {storage_id!r}")
        return self.root / storage_id
