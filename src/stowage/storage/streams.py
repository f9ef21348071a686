"""Async byte streams passed between clients.

``get_object`` hands back a :class:`ChunkReader`; ``put_object`` accepts
anything with an awaitable ``read(size)``, so a copy pipes one client's
download straight into another client's upload.
"""

from collections.abc import AsyncIterator
from typing import Protocol

_CHUNK_SIZE = 64 * 1024


class AsyncReader(Protocol):
    """Source of bytes for an upload."""

    async def read(self, size: int = -1) -> bytes:
        """Return up to ``size`` bytes, or ``b""`` at end of stream."""
        ...


class ChunkReader:
    """Wraps an async iterator of byte chunks.

    Can be consumed either by iterating chunks or through ``read(size)``,
    which buffers across chunk boundaries. Closing it closes the underlying
    iterator (and with it any open file or HTTP body).
    """

    def __init__(self, chunks: AsyncIterator[bytes]) -> None:
        self._chunks = chunks
        self._buffer = bytearray()
        self._eof = False

    def __aiter__(self) -> "ChunkReader":
        return self

    async def __anext__(self) -> bytes:
        if self._buffer:
            data = bytes(self._buffer)
            self._buffer.clear()
            return data
        if self._eof:
            raise StopAsyncIteration
        try:
            return await self._chunks.__anext__()
        except StopAsyncIteration:
            self._eof = True
            raise

    async def read(self, size: int = -1) -> bytes:
        while not self._eof and (size < 0 or len(self._buffer) < size):
            try:
                self._buffer += await self._chunks.__anext__()
            except StopAsyncIteration:
                self._eof = True
        if size < 0:
            size = len(self._buffer)
        data = bytes(self._buffer[:size])
        del self._buffer[:size]
        return data

    async def aclose(self) -> None:
        aclose = getattr(self._chunks, "aclose", None)
        if aclose is not None:
            await aclose()
        self._eof = True

    async def __aenter__(self) -> "ChunkReader":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()


async def iter_bytes(data: bytes, chunk_size: int = _CHUNK_SIZE) -> AsyncIterator[bytes]:
    """Yield ``data`` in chunks."""
    for start in range(0, len(data), chunk_size):
        yield data[start : start + chunk_size]


async def read_exactly(reader: AsyncReader, size: int) -> bytes:
    """Read ``size`` bytes, or fewer only when the stream ends first."""
    chunks = []
    remaining = size
    while remaining > 0:
        chunk = await reader.read(min(remaining, _CHUNK_SIZE * 16))
        if not chunk:
            break
        chunks.append(chunk)
        remaining -= len(chunk)
    return b"".join(chunks)


async def count_remaining(reader: AsyncReader) -> int:
    """Drain ``reader`` and return how many bytes were left."""
    extra = 0
    while True:
        chunk = await reader.read(_CHUNK_SIZE)
        if not chunk:
            return extra
        extra += len(chunk)
