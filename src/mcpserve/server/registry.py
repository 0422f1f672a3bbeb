"""ToolRegistry — name-keyed tool descriptors with validated invocation.

The registry owns the mapping from tool name to :class:`ToolDescriptor`.
Mutations are committed under a lock and only then announced to
subscribers, so a ``notifications/tools/list_changed`` can never overtake
the change that caused it.

Usage::

    registry = ToolRegistry()

    @registry.tool(description="Echo the given text back.")
    def echo(text: str) -> str:
        return text

    result = await registry.invoke("echo", {"text": "hi"})
    result.to_wire()  # {"content": [{"type": "text", "text": "hi"}], "isError": False}
"""

from __future__ import annotations

import asyncio
import copy
import inspect
import json
import logging
import threading
import typing
from collections.abc import Awaitable, Callable
from typing import Annotated, Any, Literal

from jsonschema import SchemaError
from jsonschema.validators import validator_for
from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, create_model, field_validator

from mcpserve.server.errors import (
    SchemaValidationError,
    ToolExecutionError,
    ToolInvocationError,
    ToolTimeoutError,
    UnknownToolError,
)

logger = logging.getLogger(__name__)

ToolHandler = Callable[[dict[str, Any]], Any]
RegistryListener = Callable[[], None]

# ---------------------------------------------------------------------------
# Content blocks
# ---------------------------------------------------------------------------


class TextContent(BaseModel):
    """Plain text content block."""

    type: Literal["text"] = "text"
    text: str

    def to_wire(self) -> dict[str, Any]:
        return {"type": "text", "text": self.text}


class DataContent(BaseModel):
    """Structured data content block."""

    type: Literal["data"] = "data"
    data: Any = None

    def to_wire(self) -> dict[str, Any]:
        return {"type": "data", "data": self.data}


class ResourceLink(BaseModel):
    """A reference to a resource the client may fetch separately."""

    model_config = {"populate_by_name": True}

    type: Literal["resource_link"] = "resource_link"
    uri: str
    name: str
    mime_type: str | None = Field(default=None, alias="mimeType")
    description: str | None = None

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


ContentBlock = Annotated[TextContent | DataContent | ResourceLink, Field(discriminator="type")]

_BLOCK_TYPES = (TextContent, DataContent, ResourceLink)


# ---------------------------------------------------------------------------
# Invocation results
# ---------------------------------------------------------------------------


class ToolErrorInfo(BaseModel):
    """Error descriptor attached to a failed invocation."""

    code: str
    message: str
    detail: Any = None


class ToolInvocationResult(BaseModel):
    """Outcome of ``tools/call``: ordered content blocks or an error descriptor."""

    content: list[ContentBlock] = []
    structured_content: dict[str, Any] | None = None
    is_error: bool = False
    error: ToolErrorInfo | None = None

    @classmethod
    def from_text(cls, text: str) -> ToolInvocationResult:
        return cls(content=[TextContent(text=text)])

    @classmethod
    def from_error(cls, exc: ToolInvocationError) -> ToolInvocationResult:
        """Build an error-flagged result; the text block repeats the message for display."""
        return cls(
            content=[TextContent(text=exc.message)],
            is_error=True,
            error=ToolErrorInfo(code=exc.code, message=exc.message, detail=exc.detail),
        )

    def to_wire(self) -> dict[str, Any]:
        """Render the ``tools/call`` result payload."""
        data: dict[str, Any] = {
            "content": [block.to_wire() for block in self.content],
            "isError": self.is_error,
        }
        if self.structured_content is not None:
            data["structuredContent"] = self.structured_content
        if self.error is not None:
            error: dict[str, Any] = {"code": self.error.code, "message": self.error.message}
            if self.error.detail is not None:
                error["detail"] = self.error.detail
            data["error"] = error
        return data


# ---------------------------------------------------------------------------
# Tool descriptor
# ---------------------------------------------------------------------------


class ToolDescriptor(BaseModel):
    """A named tool: metadata, input schema and the bound handler.

    The input schema is checked against its JSON Schema metaschema on
    construction, so a broken schema fails at registration rather than on
    the first call.
    """

    model_config = {"frozen": True}

    name: str = Field(min_length=1)
    title: str | None = None
    description: str = ""
    input_schema: dict[str, Any] = Field(default_factory=lambda: {"type": "object"})
    output_schema: dict[str, Any] | None = None
    annotations: dict[str, Any] | None = None
    handler: ToolHandler

    _validator: Any = PrivateAttr(default=None)

    @field_validator("input_schema")
    @classmethod
    def _check_input_schema(cls, schema: dict[str, Any]) -> dict[str, Any]:
        try:
            validator_for(schema).check_schema(schema)
        except SchemaError as exc:
            msg = f"invalid input schema: {exc.message}"
            raise ValueError(msg) from exc
        return schema

    def model_post_init(self, __context: Any) -> None:
        self._validator = validator_for(self.input_schema)(self.input_schema)

    def validate_arguments(self, arguments: dict[str, Any]) -> list[str]:
        """Return schema violations for *arguments*; empty when valid."""
        errors = sorted(self._validator.iter_errors(arguments), key=lambda e: list(e.path))
        messages: list[str] = []
        for err in errors:
            path = ".".join(str(part) for part in err.path)
            messages.append(f"{path}: {err.message}" if path else err.message)
        return messages

    def to_wire(self) -> dict[str, Any]:
        """Render the descriptor as a ``tools/list`` entry."""
        data: dict[str, Any] = {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema,
        }
        if self.title is not None:
            data["title"] = self.title
        if self.output_schema is not None:
            data["outputSchema"] = self.output_schema
        if self.annotations is not None:
            data["annotations"] = self.annotations
        return data


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class ToolRegistry:
    """Insertion-ordered mapping from tool name to :class:`ToolDescriptor`."""

    def __init__(self, *, timeout: float | None = None) -> None:
        self._tools: dict[str, ToolDescriptor] = {}
        self._lock = threading.Lock()
        self._listeners: list[RegistryListener] = []
        self.timeout = timeout

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def names(self) -> list[str]:
        with self._lock:
            return list(self._tools)

    def get(self, name: str) -> ToolDescriptor | None:
        with self._lock:
            return self._tools.get(name)

    def list(self) -> list[ToolDescriptor]:
        """Snapshot of all descriptors in insertion order."""
        with self._lock:
            return list(self._tools.values())

    def register(self, descriptor: ToolDescriptor) -> None:
        """Insert *descriptor*, replacing any tool with the same name."""
        with self._lock:
            replaced = descriptor.name in self._tools
            self._tools[descriptor.name] = descriptor
        logger.debug("%s tool %s", "Replaced" if replaced else "Registered", descriptor.name)
        self._notify()

    def unregister(self, name: str) -> bool:
        """Remove the named tool; return whether it existed."""
        with self._lock:
            removed = self._tools.pop(name, None) is not None
        if removed:
            logger.debug("Unregistered tool %s", name)
            self._notify()
        return removed

    def tool(
        self,
        name: str | None = None,
        *,
        title: str | None = None,
        description: str | None = None,
        input_schema: dict[str, Any] | None = None,
        annotations: dict[str, Any] | None = None,
    ) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        """Decorator registering a keyword-argument function as a tool.

        Without *input_schema* the schema is derived from the function
        signature; without *description* the docstring is used.
        """

        def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
            self.register(
                ToolDescriptor(
                    name=name or fn.__name__,
                    title=title,
                    description=description or inspect.getdoc(fn) or "",
                    input_schema=input_schema or schema_from_signature(fn),
                    annotations=annotations,
                    handler=_keyword_handler(fn),
                )
            )
            return fn

        return decorator

    def subscribe(self, listener: RegistryListener) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: RegistryListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def invoke(self, name: str, arguments: dict[str, Any] | None = None) -> ToolInvocationResult:
        """Validate *arguments* and run the named tool.

        Never raises for tool-level failures: unknown names, schema
        violations, handler exceptions and timeouts all come back as an
        error-flagged :class:`ToolInvocationResult`.
        """
        descriptor = self.get(name)
        try:
            if descriptor is None:
                raise UnknownToolError(name)

            args = copy.deepcopy(arguments) if arguments else {}
            violations = descriptor.validate_arguments(args)
            if violations:
                raise SchemaValidationError(name, violations)

            outcome = await self._run_handler(descriptor, args)
        except ToolInvocationError as exc:
            logger.info("Tool %s failed: %s", name, exc.message)
            return ToolInvocationResult.from_error(exc)

        return coerce_result(outcome)

    async def _run_handler(self, descriptor: ToolDescriptor, args: dict[str, Any]) -> Any:
        try:
            if self.timeout is None:
                return await _call(descriptor.handler, args)
            try:
                return await asyncio.wait_for(_call(descriptor.handler, args), timeout=self.timeout)
            except asyncio.TimeoutError as exc:
                raise ToolTimeoutError(descriptor.name, self.timeout) from exc
        except ToolInvocationError:
            raise
        except Exception as exc:
            logger.exception("Handler for tool %s raised", descriptor.name)
            raise ToolExecutionError(descriptor.name, str(exc) or type(exc).__name__) from exc

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener()
            except Exception:
                logger.exception("Registry listener failed")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def _call(handler: ToolHandler, args: dict[str, Any]) -> Any:
    """Run *handler*, pushing synchronous handlers onto a worker thread."""
    if inspect.iscoroutinefunction(handler):
        return await handler(args)
    result = await asyncio.to_thread(handler, args)
    if inspect.isawaitable(result):
        result = await typing.cast("Awaitable[Any]", result)
    return result


def _keyword_handler(fn: Callable[..., Any]) -> ToolHandler:
    if inspect.iscoroutinefunction(fn):

        async def call_async(args: dict[str, Any]) -> Any:
            return await fn(**args)

        return call_async

    def call(args: dict[str, Any]) -> Any:
        return fn(**args)

    return call


def schema_from_signature(fn: Callable[..., Any]) -> dict[str, Any]:
    """Derive a JSON Schema for *fn*'s keyword arguments via pydantic."""
    hints = typing.get_type_hints(fn)
    fields: dict[str, Any] = {}
    extra = "forbid"
    for param in inspect.signature(fn).parameters.values():
        if param.kind is param.VAR_KEYWORD:
            extra = "allow"
            continue
        if param.kind is param.VAR_POSITIONAL:
            continue
        annotation = hints.get(param.name, Any)
        default = ... if param.default is inspect.Parameter.empty else param.default
        fields[param.name] = (annotation, default)

    model = create_model(
        f"{fn.__name__}_arguments", __config__=ConfigDict(extra=extra), **fields
    )
    schema = model.model_json_schema()
    schema.pop("title", None)
    schema.setdefault("properties", {})
    return schema


def coerce_result(value: Any) -> ToolInvocationResult:
    """Wrap whatever a handler returned into a :class:`ToolInvocationResult`."""
    if isinstance(value, ToolInvocationResult):
        return value
    if value is None:
        return ToolInvocationResult()
    if isinstance(value, str):
        return ToolInvocationResult.from_text(value)
    if isinstance(value, _BLOCK_TYPES):
        return ToolInvocationResult(content=[value])
    if isinstance(value, dict):
        return ToolInvocationResult(
            content=[TextContent(text=json.dumps(value, default=str, allow_nan=False))],
            structured_content=value,
        )
    if isinstance(value, (list, tuple)):
        blocks: list[Any] = []
        for item in value:
            if isinstance(item, _BLOCK_TYPES):
                blocks.append(item)
            elif isinstance(item, str):
                blocks.append(TextContent(text=item))
            else:
                blocks.append(DataContent(data=item))
        return ToolInvocationResult(content=blocks)
    return ToolInvocationResult(content=[TextContent(text=str(value))])
