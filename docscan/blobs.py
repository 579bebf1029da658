"""Revocable in-memory handles for original image bytes."""

import logging
import threading
import uuid

logger = logging.getLogger(__name__)

HANDLE_PREFIX = "blob:docscan/"


class BlobStore:
    """Keeps original uploads addressable by handle until they are revoked."""

    def __init__(self):
        self._lock = threading.Lock()
        self._blobs: dict[str, bytes] = {}

    def __len__(self) -> int:
        return len(self._blobs)

    def __contains__(self, handle: str) -> bool:
        return handle in self._blobs

    def create(self, data: bytes) -> str:
        handle = f"{HANDLE_PREFIX}{uuid.uuid4()}"
        with self._lock:
            self._blobs[handle] = data
        logger.debug("Created %s (%d bytes)", handle, len(data))
        return handle

    def get(self, handle: str) -> bytes:
        try:
            return self._blobs[handle]
        except KeyError:
            raise KeyError(f"Unknown or revoked blob handle: {handle}") from None

    def revoke(self, handle: str | None) -> None:
        """Release a handle. Unknown handles are ignored."""
        if handle is None:
            return
        with self._lock:
            if self._blobs.pop(handle, None) is not None:
                logger.debug("Revoked %s", handle)
