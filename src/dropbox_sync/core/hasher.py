"""Block-structured content hash matching the Dropbox ``content_hash`` field."""

import base64
import hashlib
from typing import Optional, Union

from ..utils.logging import get_logger

BLOCK_SIZE = 4 * 1024 * 1024
READ_CHUNK_SIZE = 1024 * 1024

logger = get_logger(__name__)


class HasherStateError(RuntimeError):
    """Raised when a hasher is used after its digest was taken."""
    pass


class ContentHasher:
    """Incremental content hasher.

    The stream is cut into 4 MiB blocks, every block is hashed with SHA-256
    and the concatenated block digests are hashed again. ``update`` can be fed
    arbitrary chunk sizes; the result only depends on the bytes.

    The hasher is consumed by ``digest``: any further ``update`` or
    ``digest`` raises ``HasherStateError``.

    Example:
        hasher = ContentHasher()
        for chunk in chunks:
            hasher.update(chunk)
        content_hash = hasher.digest()
    """

    def __init__(self):
        self._overall = hashlib.sha256()
        self._block = hashlib.sha256()
        self._block_pos = 0
        self._consumed = False

    @property
    def consumed(self) -> bool:
        return self._consumed

    def update(self, data: Union[bytes, bytearray, memoryview]) -> None:
        """Feed the next chunk of the stream."""
        self._check_usable()

        view = memoryview(data)
        offset = 0
        while offset < len(view):
            if self._block_pos == BLOCK_SIZE:
                self._overall.update(self._block.digest())
                self._block = hashlib.sha256()
                self._block_pos = 0

            end = min(len(view), offset + BLOCK_SIZE - self._block_pos)
            self._block.update(view[offset:end])
            self._block_pos += end - offset
            offset = end

    def digest(self, encoding: Optional[str] = "hex") -> Union[str, bytes]:
        """Finish the stream and return the hash.

        Args:
            encoding: 'hex' (the API format), 'base64', or None/'raw' for bytes

        Returns:
            The content hash in the requested encoding
        """
        self._check_usable()
        if encoding not in ("hex", "base64", "raw", None):
            raise ValueError(f"Unsupported digest encoding: {encoding!r}")

        if self._block_pos > 0:
            self._overall.update(self._block.digest())
        self._consumed = True
        self._block = None

        raw = self._overall.digest()
        self._overall = None

        if encoding == "hex":
            return raw.hex()
        elif encoding == "base64":
            return base64.b64encode(raw).decode("ascii")
        return raw

    def _check_usable(self) -> None:
        if self._consumed:
            raise HasherStateError("Hasher can't be used anymore; digest() was already called")


def compute_content_hash(data: bytes) -> str:
    """Content hash of an in-memory byte string."""
    hasher = ContentHasher()
    hasher.update(data)
    return hasher.digest()


def file_content_hash(path: str, chunk_size: int = READ_CHUNK_SIZE) -> str:
    """Content hash of a local file, or '' if it is missing or unreadable."""
    hasher = ContentHasher()
    try:
        with open(path, 'rb') as f:
            while True:
                chunk = f.read(chunk_size)
                if not chunk:
                    break
                hasher.update(chunk)
    except FileNotFoundError:
        return ""
    except OSError as e:
        logger.error("Error reading local file for hashing", path=path, error=str(e))
        return ""

    return hasher.digest()
