"""MCP transports — the duplex byte stream under the codec.

Each transport satisfies the :class:`MCPTransport` protocol, providing
``connect``, ``receive``, ``send``, and ``close``.  Every stream-level
failure surfaces as :class:`~mcpserve.protocol.errors.TransportClosed`.
"""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import Any, Protocol, runtime_checkable

from mcpserve.protocol.errors import FrameTooLargeError, TransportClosed

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 4 * 1024 * 1024


@runtime_checkable
class MCPTransport(Protocol):
    """Abstract transport carrying newline-delimited frames."""

    async def connect(self) -> None: ...
    async def receive(self) -> bytes: ...
    async def send(self, data: bytes) -> None: ...
    async def close(self) -> None: ...


class StreamTransport:
    """Transport over an asyncio ``StreamReader`` and a writer."""

    def __init__(self, reader: asyncio.StreamReader | None = None, writer: Any = None) -> None:
        self._reader = reader
        self._writer = writer
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def connect(self) -> None:
        """Streams are supplied at construction; nothing to do."""

    async def receive(self) -> bytes:
        """Return the next non-empty line, without its terminator.

        Raises:
            TransportClosed: On EOF, I/O failure, or after :meth:`close`.
            FrameTooLargeError: The line exceeded the reader limit; the
                whole line, up to and including its newline, has been
                discarded and the stream remains usable.
        """
        if self._closed or self._reader is None:
            msg = "Transport not connected"
            raise TransportClosed(msg)

        while True:
            try:
                line = await self._reader.readuntil(b"\n")
            except asyncio.IncompleteReadError as exc:
                # EOF: a final frame may lack its newline.
                line = exc.partial
            except asyncio.LimitOverrunError as exc:
                await self._skip_line(exc.consumed)
                raise FrameTooLargeError(self._reader_limit()) from exc
            except OSError as exc:
                raise TransportClosed(str(exc)) from exc

            if not line:
                msg = "Transport closed"
                raise TransportClosed(msg)
            stripped = line.strip()
            if stripped:
                return stripped

    async def _skip_line(self, consumed: int) -> None:
        assert self._reader is not None
        while True:
            try:
                await self._reader.readexactly(consumed)
                await self._reader.readuntil(b"\n")
                return
            except asyncio.LimitOverrunError as exc:
                consumed = exc.consumed
            except asyncio.IncompleteReadError:
                return
            except OSError as exc:
                raise TransportClosed(str(exc)) from exc

    async def send(self, data: bytes) -> None:
        """Write one frame and wait for the buffer to drain."""
        if self._closed or self._writer is None:
            msg = "Transport not connected"
            raise TransportClosed(msg)
        try:
            self._writer.write(data)
            await self._writer.drain()
        except (OSError, RuntimeError) as exc:
            raise TransportClosed(str(exc)) from exc

    async def close(self) -> None:
        """Close the writer side; further calls are no-ops."""
        if self._closed:
            return
        self._closed = True
        if self._writer is not None:
            try:
                self._writer.close()
            except OSError:
                logger.debug("Ignoring error while closing transport writer", exc_info=True)

    def _reader_limit(self) -> int:
        limit = getattr(self._reader, "_limit", DEFAULT_LIMIT)
        return limit if isinstance(limit, int) else DEFAULT_LIMIT


class StdioTransport(StreamTransport):
    """Speaks newline-delimited JSON over the process's stdin and stdout."""

    def __init__(self, limit: int = DEFAULT_LIMIT) -> None:
        super().__init__()
        self._limit = limit

    async def connect(self) -> None:
        """Attach asyncio streams to the stdin/stdout pipes."""
        loop = asyncio.get_running_loop()

        reader = asyncio.StreamReader(limit=self._limit)
        protocol = asyncio.StreamReaderProtocol(reader)
        await loop.connect_read_pipe(lambda: protocol, sys.stdin)

        transport, writer_protocol = await loop.connect_write_pipe(
            asyncio.streams.FlowControlMixin, sys.stdout
        )
        writer = asyncio.StreamWriter(transport, writer_protocol, reader, loop)

        self._reader = reader
        self._writer = writer

    def _reader_limit(self) -> int:
        return self._limit
