"""Shared fixtures: an in-memory transport and a scripted MCP peer."""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator, Callable
from typing import Any

import pytest

from mcpserve.protocol.errors import TransportClosed
from mcpserve.server.registry import ToolRegistry
from mcpserve.server.server import MCPServer

PROTOCOL_VERSION = "2025-06-18"


def _reject_constant(name: str) -> Any:
    msg = f"outbound frame contains {name}, which is not JSON"
    raise AssertionError(msg)


class MemoryTransport:
    """In-process transport: the test feeds frames in and inspects frames out."""

    def __init__(self) -> None:
        self.inbound: asyncio.Queue[bytes | None] = asyncio.Queue()
        self.sent: list[dict[str, Any]] = []
        self.connected = False
        self.closed = False

    async def connect(self) -> None:
        self.connected = True

    async def receive(self) -> bytes:
        frame = await self.inbound.get()
        if frame is None:
            msg = "Transport closed"
            raise TransportClosed(msg)
        return frame

    async def send(self, data: bytes) -> None:
        if self.closed:
            msg = "Transport closed"
            raise TransportClosed(msg)
        assert data.endswith(b"\n")
        assert data.count(b"\n") == 1
        self.sent.append(json.loads(data, parse_constant=_reject_constant))

    async def close(self) -> None:
        self.closed = True

    def feed(self, message: dict[str, Any] | str | bytes) -> None:
        if isinstance(message, dict):
            message = json.dumps(message)
        if isinstance(message, str):
            message = message.encode()
        self.inbound.put_nowait(message)

    def eof(self) -> None:
        self.inbound.put_nowait(None)

    async def wait_until(
        self, predicate: Callable[[list[dict[str, Any]]], bool], timeout: float = 2.0
    ) -> None:
        async def _poll() -> None:
            while not predicate(self.sent):
                await asyncio.sleep(0.005)

        await asyncio.wait_for(_poll(), timeout=timeout)

    def responses(self, request_id: Any) -> list[dict[str, Any]]:
        return [m for m in self.sent if "method" not in m and m.get("id") == request_id]

    def notifications(self, method: str) -> list[dict[str, Any]]:
        return [m for m in self.sent if m.get("method") == method]


class Peer:
    """Drives an :class:`MCPServer` session the way an MCP client would."""

    def __init__(self, server: MCPServer) -> None:
        self.server = server
        self.transport = MemoryTransport()
        self._task: asyncio.Task[None] | None = None
        self._next_id = 1

    async def start(self) -> None:
        self._task = asyncio.create_task(self.server.serve(self.transport))

    def send_request(
        self, method: str, params: dict[str, Any] | None = None, *, request_id: Any = None
    ) -> Any:
        if request_id is None:
            request_id = self._next_id
            self._next_id += 1
        message: dict[str, Any] = {"jsonrpc": "2.0", "id": request_id, "method": method}
        if params is not None:
            message["params"] = params
        self.transport.feed(message)
        return request_id

    async def request(
        self, method: str, params: dict[str, Any] | None = None, *, request_id: Any = None
    ) -> dict[str, Any]:
        rid = self.send_request(method, params, request_id=request_id)
        await self.transport.wait_until(lambda _sent: bool(self.transport.responses(rid)))
        return self.transport.responses(rid)[0]

    def notify(self, method: str, params: dict[str, Any] | None = None) -> None:
        message: dict[str, Any] = {"jsonrpc": "2.0", "method": method}
        if params is not None:
            message["params"] = params
        self.transport.feed(message)

    async def initialize(
        self,
        version: str = PROTOCOL_VERSION,
        capabilities: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        response = await self.request(
            "initialize",
            {
                "protocolVersion": version,
                "capabilities": capabilities or {},
                "clientInfo": {"name": "test-client", "version": "1.0"},
            },
        )
        self.notify("notifications/initialized")
        return response

    async def close(self) -> None:
        self.transport.eof()
        await self.wait_closed()

    async def wait_closed(self, timeout: float = 2.0) -> None:
        if self._task is not None:
            await asyncio.wait_for(self._task, timeout=timeout)


@pytest.fixture
def registry() -> ToolRegistry:
    registry = ToolRegistry()

    @registry.tool(
        description="Echo the text back.",
        input_schema={
            "type": "object",
            "properties": {"text": {"type": "string"}},
            "required": ["text"],
        },
    )
    def echo(text: str) -> str:
        return text

    return registry


@pytest.fixture
async def peer(registry: ToolRegistry) -> AsyncIterator[Peer]:
    peer = Peer(MCPServer(registry))
    await peer.start()
    yield peer
    if not peer.transport.closed:
        await peer.close()


@pytest.fixture
async def ready_peer(peer: Peer) -> Peer:
    await peer.initialize()
    # A ping round-trip guarantees the initialized notification was processed.
    await peer.request("ping")
    return peer


@pytest.fixture
def make_peer() -> Callable[[MCPServer], Peer]:
    return Peer
