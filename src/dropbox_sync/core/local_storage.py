"""Non-blocking access to the local filesystem holding the mirror."""

import asyncio
import os
import shutil
import stat
import tempfile
from functools import partial
from typing import AsyncIterator, List

from .hasher import file_content_hash

FILE_MODE = 0o644


class LocalStorage:
    """Local filesystem operations used by the reconciler.

    Every call runs in the default executor so hashing large files or
    walking big trees does not stall the event loop.
    """

    async def _run(self, func, *args, **kwargs):
        return await asyncio.get_event_loop().run_in_executor(None, partial(func, *args, **kwargs))

    async def ensure_directory(self, path: str) -> None:
        await self._run(os.makedirs, path, exist_ok=True)

    async def exists(self, path: str) -> bool:
        return await self._run(os.path.lexists, path)

    async def is_directory(self, path: str) -> bool:
        """True for real directories; symlinks to directories count as files."""
        def check():
            try:
                return stat.S_ISDIR(os.lstat(path).st_mode)
            except FileNotFoundError:
                return False
        return await self._run(check)

    async def content_hash(self, path: str) -> str:
        """Content hash of a local file, '' if there is none."""
        return await self._run(file_content_hash, path)

    async def remove_file(self, path: str) -> None:
        await self._run(os.unlink, path)

    async def remove_tree(self, path: str) -> None:
        await self._run(shutil.rmtree, path)

    async def write_stream(self, path: str, chunks: AsyncIterator[bytes]) -> int:
        """Write a byte stream to ``path``, replacing it only once complete.

        The data goes to a temporary file in the target directory which is
        renamed over ``path`` after the stream ends, so readers see either the
        old or the new content. On failure the temporary file is removed.

        Returns:
            Number of bytes written
        """
        directory = os.path.dirname(path) or "."
        fd, temp_path = await self._run(
            tempfile.mkstemp, dir=directory, prefix=".", suffix=".dbsync-part"
        )
        written = 0
        try:
            with os.fdopen(fd, 'wb') as f:
                async for chunk in chunks:
                    await self._run(f.write, chunk)
                    written += len(chunk)
            # mkstemp creates 0600 files
            await self._run(os.chmod, temp_path, FILE_MODE)
            await self._run(os.replace, temp_path, path)
        except BaseException:
            try:
                os.unlink(temp_path)
            except FileNotFoundError:
                pass
            raise

        return written

    async def list_tree(self, root: str, only_directories: bool = False) -> List[str]:
        """All paths below ``root`` (hidden ones included), not ``root`` itself."""
        def walk():
            paths = []
            for dirpath, dirnames, filenames in os.walk(root):
                paths.extend(os.path.join(dirpath, name) for name in dirnames)
                if not only_directories:
                    paths.extend(os.path.join(dirpath, name) for name in filenames)
            return paths
        return await self._run(walk)
