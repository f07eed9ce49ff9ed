import inspect
from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager
from typing import Any, Optional

import aiofiles

DEFAULT_CHUNK_SIZE = 1024 * 1024


async def iter_chunks(resource: Any, chunk_size: int = DEFAULT_CHUNK_SIZE) -> AsyncIterator[bytes]:
    """Iterate a writable resource as byte chunks.

    Parameters
    ----------
    resource : Any
        Bytes, string, async iterable, iterable of chunks or an object with a
        sync or async ``read(size)`` method.
    chunk_size : int, default=1024 * 1024
        Read size for file-like resources.

    Yields
    ------
    bytes
        Non-empty chunks.
    """
    if isinstance(resource, str):
        resource = resource.encode('utf-8')
    if isinstance(resource, (bytes, bytearray, memoryview)):
        if resource:
            yield bytes(resource)
        return
    if hasattr(resource, 'read'):
        while True:
            chunk = resource.read(chunk_size)
            if inspect.isawaitable(chunk):
                chunk = await chunk
            if not chunk:
                return
            yield chunk.encode('utf-8') if isinstance(chunk, str) else bytes(chunk)
    elif hasattr(resource, '__aiter__'):
        async for chunk in resource:
            if chunk:
                yield chunk.encode('utf-8') if isinstance(chunk, str) else bytes(chunk)
    else:
        for chunk in resource:
            if chunk:
                yield chunk.encode('utf-8') if isinstance(chunk, str) else bytes(chunk)


class AsyncFileReader(AbstractAsyncContextManager[Any]):
    """Async local file stream reader.

    Attributes
    ----------
    location : str
        Absolute file path.
    mode : str = 'rb'
        Read mode.
    chunk_size : int
        Chunk size used when iterating.
    """

    def __init__(self, location: str, mode: str = 'rb', chunk_size: int = DEFAULT_CHUNK_SIZE):
        assert mode in ['rb', 'r', 'rt'], f"invalid mode: '{mode}'"
        self.location = location
        self.mode = mode
        self.chunk_size = chunk_size
        self.stream: Any = None

    async def __aenter__(self) -> 'AsyncFileReader':
        self.stream = await aiofiles.open(self.location, self.mode)
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.stream.close()

    async def read(self, chunk: Optional[int] = None) -> Any:
        return await self.stream.read(-1 if chunk is None else chunk)

    async def __aiter__(self) -> AsyncIterator[Any]:
        while True:
            data = await self.read(self.chunk_size)
            if not data:
                return
            yield data
