"""Dispatcher — routes inbound messages and correlates responses.

The dispatcher is the only component that produces outbound messages.  It
hands them to a single ``send`` callable (the server's outbox), which keeps
writes serialized on the stream.

Lifecycle requests (``initialize``, ``ping``) and readiness checks run
inline, in arrival order, so a ``notifications/initialized`` that follows
``initialize`` on the wire always sees the session already initializing.
Tool requests each get their own task; the read loop never waits on them.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

from opentelemetry import trace
from pydantic import ValidationError

from mcpserve.protocol import codec
from mcpserve.protocol.errors import (
    InternalError,
    InvalidParamsError,
    MalformedMessageError,
    MethodNotFoundError,
    ProtocolError,
    RequestCancelledError,
    describe_validation_error,
)
from mcpserve.protocol.models import (
    CallToolParams,
    CancelledParams,
    JsonRpcNotification,
    JsonRpcRequest,
    JsonRpcResponse,
    ListToolsParams,
    Message,
    RequestId,
)
from mcpserve.server.errors import SessionClosedError
from mcpserve.utils.telemetry import (
    ATTR_ERROR_CODE,
    ATTR_METHOD,
    ATTR_PROTOCOL_VERSION,
    ATTR_REQUEST_ID,
    ATTR_SESSION_ID,
    ATTR_TOOL_IS_ERROR,
    ATTR_TOOL_NAME,
    get_tracer,
)

if TYPE_CHECKING:
    from mcpserve.server.registry import ToolRegistry
    from mcpserve.server.session import Session

logger = logging.getLogger(__name__)
_tracer = get_tracer(__name__)

TOOLS_LIST_CHANGED = "notifications/tools/list_changed"

RequestHandler = Callable[[dict[str, Any] | None], Awaitable[dict[str, Any]]]


class Dispatcher:
    """Per-session message router.

    Usage::

        dispatcher = Dispatcher(session, registry, outbox.put_nowait)
        dispatcher.dispatch(codec.decode(line))
        ...
        await dispatcher.shutdown()
    """

    def __init__(
        self,
        session: Session,
        registry: ToolRegistry,
        send: Callable[[Message], None],
        *,
        max_concurrency: int = 8,
        page_size: int | None = None,
        list_changed: bool = True,
    ) -> None:
        self._session = session
        self._registry = registry
        self._send = send
        self._semaphore = asyncio.Semaphore(max_concurrency)
        self._page_size = page_size
        self._list_changed = list_changed
        self._in_flight: dict[RequestId, asyncio.Task[None]] = {}
        self._cancel_reasons: dict[RequestId, str] = {}
        self._closing = False
        self.fatal_error: ProtocolError | None = None

        self._requests: dict[str, RequestHandler] = {
            "tools/list": self._list_tools,
            "tools/call": self._call_tool,
        }
        self._notifications: dict[str, Callable[[dict[str, Any] | None], None]] = {
            "notifications/initialized": self._on_initialized,
            "notifications/cancelled": self._on_cancelled,
        }

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    def dispatch(self, message: Message) -> None:
        """Route one decoded inbound message."""
        method = getattr(message, "method", "")
        try:
            self._session.ensure_open(method)
        except SessionClosedError as exc:
            logger.debug("%s", exc)
            return

        if isinstance(message, JsonRpcRequest):
            self._dispatch_request(message)
        elif isinstance(message, JsonRpcNotification):
            self._dispatch_notification(message)
        else:
            logger.debug("Ignoring response for id %r; no requests are outstanding", message.id)

    def reject(self, error: MalformedMessageError) -> None:
        """Answer a malformed frame, or drop it when its id is unrecoverable."""
        if error.request_id is None:
            logger.warning("Dropping malformed message: %s", error.message)
            return
        logger.warning("Malformed request %r: %s", error.request_id, error.message)
        self._reply(codec.error_response(error.request_id, error.to_error()))

    def notify_tools_changed(self) -> None:
        """Announce a committed registry change, if the peer should hear about it."""
        if self._closing or not self._list_changed:
            return
        if not self._session.is_ready or not self._session.peer_wants_list_changed:
            return
        self._reply(codec.notification(TOOLS_LIST_CHANGED))

    async def shutdown(self) -> None:
        """Cancel in-flight requests; their results are discarded."""
        self._closing = True
        tasks = list(self._in_flight.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._in_flight.clear()
        self._cancel_reasons.clear()

    # -- requests -----------------------------------------------------------

    def _dispatch_request(self, request: JsonRpcRequest) -> None:
        if request.id in self._in_flight:
            logger.warning("Dropping request with duplicate in-flight id %r", request.id)
            return

        try:
            if request.method == "initialize":
                result = self._session.initialize(request.params).model_dump(
                    by_alias=True, exclude_none=True
                )
                self._reply(codec.result_response(request.id, result))
                return
            if request.method == "ping":
                self._reply(codec.result_response(request.id, {}))
                return

            handler = self._requests.get(request.method)
            if handler is None:
                raise MethodNotFoundError(request.method)
            self._session.ensure_ready(request.method)
        except ProtocolError as exc:
            self._reply(codec.error_response(request.id, exc.to_error()))
            if exc.fatal:
                logger.error("Fatal protocol error: %s", exc.message)
                self.fatal_error = exc
            return

        task = asyncio.create_task(self._run_request(request, handler))
        self._in_flight[request.id] = task
        task.add_done_callback(lambda _t, rid=request.id: self._forget(rid, _t))

    async def _run_request(self, request: JsonRpcRequest, handler: RequestHandler) -> None:
        with _tracer.start_as_current_span(f"mcp.{request.method}") as span:
            span.set_attribute(ATTR_METHOD, request.method)
            span.set_attribute(ATTR_REQUEST_ID, str(request.id))
            span.set_attribute(ATTR_SESSION_ID, self._session.session_id)
            if self._session.protocol_version:
                span.set_attribute(ATTR_PROTOCOL_VERSION, self._session.protocol_version)

            response: JsonRpcResponse
            try:
                async with self._semaphore:
                    result = await handler(request.params)
                response = codec.result_response(request.id, result)
            except ProtocolError as exc:
                span.set_attribute(ATTR_ERROR_CODE, exc.code)
                response = codec.error_response(request.id, exc.to_error())
            except Exception as exc:
                logger.exception("Unhandled error while serving %s", request.method)
                error = InternalError(f"Internal error: {exc}")
                span.set_attribute(ATTR_ERROR_CODE, error.code)
                response = codec.error_response(request.id, error.to_error())

        if self._closing or self._session.is_closed:
            logger.debug("Discarding late response for id %r", request.id)
            return
        self._reply(response)

    def _forget(self, request_id: RequestId, task: asyncio.Task[None]) -> None:
        if self._in_flight.get(request_id) is task:
            del self._in_flight[request_id]
        reason = self._cancel_reasons.pop(request_id, None)

        # A peer-cancelled task may never have started, so the reply is sent from here.
        if task.cancelled() and reason is not None and not self._closing:
            if self._session.is_closed:
                return
            logger.info("Request %r cancelled by peer", request_id)
            self._reply(
                codec.error_response(request_id, RequestCancelledError(reason).to_error())
            )

    async def _list_tools(self, params: dict[str, Any] | None) -> dict[str, Any]:
        request = _parse(ListToolsParams, params)
        tools = self._registry.list()

        if self._page_size is None:
            return {"tools": [tool.to_wire() for tool in tools]}

        offset = _decode_cursor(request.cursor) if request.cursor else 0
        if offset > len(tools):
            msg = "Invalid cursor"
            raise InvalidParamsError(msg)
        page = tools[offset : offset + self._page_size]
        result: dict[str, Any] = {"tools": [tool.to_wire() for tool in page]}
        next_offset = offset + self._page_size
        if next_offset < len(tools):
            result["nextCursor"] = _encode_cursor(next_offset)
        return result

    async def _call_tool(self, params: dict[str, Any] | None) -> dict[str, Any]:
        request = _parse(CallToolParams, params)
        span = trace.get_current_span()
        span.set_attribute(ATTR_TOOL_NAME, request.name)

        result = await self._registry.invoke(request.name, request.arguments)

        span.set_attribute(ATTR_TOOL_IS_ERROR, result.is_error)
        return result.to_wire()

    # -- notifications ------------------------------------------------------

    def _dispatch_notification(self, notification: JsonRpcNotification) -> None:
        handler = self._notifications.get(notification.method)
        if handler is None:
            logger.debug("Ignoring notification %s", notification.method)
            return
        handler(notification.params)

    def _on_initialized(self, _params: dict[str, Any] | None) -> None:
        self._session.mark_initialized()

    def _on_cancelled(self, params: dict[str, Any] | None) -> None:
        try:
            cancel = CancelledParams.model_validate(params or {})
        except ValidationError:
            logger.warning("Ignoring malformed cancellation: %r", params)
            return

        task = self._in_flight.get(cancel.request_id)
        if task is None:
            logger.debug("Cancellation for unknown or finished request %r", cancel.request_id)
            return
        self._cancel_reasons[cancel.request_id] = cancel.reason or ""
        task.cancel()

    def _reply(self, message: Message) -> None:
        self._send(message)


def _parse(model: Any, params: dict[str, Any] | None) -> Any:
    try:
        return model.model_validate(params or {})
    except ValidationError as exc:
        raise InvalidParamsError("Invalid params", data=describe_validation_error(exc)) from exc


def _encode_cursor(offset: int) -> str:
    return base64.urlsafe_b64encode(f"offset:{offset}".encode()).decode()


def _decode_cursor(cursor: str) -> int:
    try:
        prefix, _, value = base64.urlsafe_b64decode(cursor.encode()).decode().partition(":")
        offset = int(value)
    except (binascii.Error, UnicodeDecodeError, ValueError) as exc:
        msg = "Invalid cursor"
        raise InvalidParamsError(msg) from exc
    if prefix != "offset" or offset < 0:
        msg = "Invalid cursor"
        raise InvalidParamsError(msg)
    return offset
