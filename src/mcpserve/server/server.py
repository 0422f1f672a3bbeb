"""MCPServer — runs one MCP session over a transport.

Data flows transport -> codec -> dispatcher -> (session | registry) ->
dispatcher -> outbox -> writer task -> codec -> transport.  The writer task
is the only code that touches the outbound stream.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from mcpserve.config.models import ServerSettings
from mcpserve.protocol import codec
from mcpserve.protocol.errors import (
    FrameTooLargeError,
    InternalError,
    MalformedMessageError,
    TransportClosed,
)
from mcpserve.protocol.models import Implementation, JsonRpcResponse, Message
from mcpserve.protocol.transport import StdioTransport
from mcpserve.server.dispatcher import Dispatcher
from mcpserve.server.registry import ToolRegistry
from mcpserve.server.session import Session

if TYPE_CHECKING:
    from mcpserve.protocol.transport import MCPTransport

logger = logging.getLogger(__name__)

_FLUSH_TIMEOUT = 5.0


class MCPServer:
    """An MCP tool server.

    Usage::

        registry = ToolRegistry()

        @registry.tool()
        def echo(text: str) -> str:
            return text

        MCPServer(registry).run_stdio()
    """

    def __init__(
        self,
        registry: ToolRegistry | None = None,
        *,
        settings: ServerSettings | None = None,
    ) -> None:
        self._settings = settings or ServerSettings()
        self._registry = registry if registry is not None else ToolRegistry(
            timeout=self._settings.tool_timeout
        )

    @property
    def registry(self) -> ToolRegistry:
        return self._registry

    @property
    def settings(self) -> ServerSettings:
        return self._settings

    def create_session(self) -> Session:
        """Build a fresh session carrying this server's identity and capabilities."""
        return Session(
            Implementation(name=self._settings.name, version=self._settings.version),
            {"tools": {"listChanged": self._settings.list_changed}},
            supported_versions=self._settings.protocol_versions,
            instructions=self._settings.instructions,
        )

    def run_stdio(self) -> None:
        """Serve one session over stdin/stdout until the peer disconnects."""
        asyncio.run(self.serve(StdioTransport(limit=self._settings.max_message_bytes)))

    async def serve(self, transport: MCPTransport) -> None:
        """Run one session over *transport* until it closes or a fatal error occurs."""
        await transport.connect()

        session = self.create_session()
        outbox: asyncio.Queue[Message] = asyncio.Queue()
        dispatcher = Dispatcher(
            session,
            self._registry,
            outbox.put_nowait,
            max_concurrency=self._settings.max_concurrency,
            page_size=self._settings.page_size,
            list_changed=self._settings.list_changed,
        )

        loop = asyncio.get_running_loop()

        def on_registry_change() -> None:
            # Registry mutations may come from handler threads.
            loop.call_soon_threadsafe(dispatcher.notify_tools_changed)

        self._registry.subscribe(on_registry_change)
        reader = asyncio.create_task(self._read_loop(transport, dispatcher))
        writer = asyncio.create_task(self._write_loop(transport, outbox))
        logger.info("Session %s started", session.session_id)

        try:
            await asyncio.wait({reader, writer}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            self._registry.unsubscribe(on_registry_change)
            if not reader.done():
                reader.cancel()
            await asyncio.gather(reader, return_exceptions=True)

            await dispatcher.shutdown()
            if not writer.done():
                try:
                    await asyncio.wait_for(outbox.join(), timeout=_FLUSH_TIMEOUT)
                except asyncio.TimeoutError:
                    logger.warning("Timed out flushing %d outbound message(s)", outbox.qsize())

            session.close()
            writer.cancel()
            await asyncio.gather(writer, return_exceptions=True)
            await transport.close()

        error = None if reader.cancelled() else reader.exception()
        if error is not None:
            raise error

    async def _read_loop(self, transport: MCPTransport, dispatcher: Dispatcher) -> None:
        while True:
            try:
                frame = await transport.receive()
            except TransportClosed as exc:
                logger.info("Transport closed: %s", exc)
                return
            except FrameTooLargeError as exc:
                logger.warning("Dropping oversized message: %s", exc)
                continue

            try:
                message = codec.decode(frame)
            except MalformedMessageError as exc:
                dispatcher.reject(exc)
                continue

            dispatcher.dispatch(message)
            if dispatcher.fatal_error is not None:
                return
            await asyncio.sleep(0)

    async def _write_loop(self, transport: MCPTransport, outbox: asyncio.Queue[Message]) -> None:
        while True:
            message = await outbox.get()
            try:
                await transport.send(_encode(message))
            except TransportClosed as exc:
                logger.info("Transport closed while writing: %s", exc)
                outbox.task_done()
                _discard(outbox)
                return
            outbox.task_done()


def _encode(message: Message) -> bytes:
    try:
        return codec.encode(message)
    except (TypeError, ValueError) as exc:
        if not isinstance(message, JsonRpcResponse):
            raise
        logger.error("Response for id %r is not JSON serializable: %s", message.id, exc)
        error = InternalError("Result is not JSON serializable")
        return codec.encode(codec.error_response(message.id, error.to_error()))


def _discard(outbox: asyncio.Queue[Message]) -> None:
    while not outbox.empty():
        outbox.get_nowait()
        outbox.task_done()
