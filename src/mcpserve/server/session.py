"""Session — per-connection lifecycle state and capability negotiation.

States move strictly forward::

    UNINITIALIZED --initialize--> INITIALIZING --initialized--> READY --close--> CLOSED

Any state may jump to ``CLOSED`` when the transport goes away.
"""

from __future__ import annotations

import logging
import re
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import ValidationError

from mcpserve.protocol.errors import (
    InvalidParamsError,
    InvalidRequestError,
    NotReadyError,
    UnsupportedVersionError,
    describe_validation_error,
)
from mcpserve.protocol.models import (
    SUPPORTED_PROTOCOL_VERSIONS,
    Implementation,
    InitializeParams,
    InitializeResult,
)
from mcpserve.server.errors import SessionClosedError

logger = logging.getLogger(__name__)

LIFECYCLE_METHODS = frozenset({"initialize", "ping"})
_VERSION_RE = re.compile(r"\d{4}-\d{2}-\d{2}")


class SessionState(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    CLOSED = "closed"


class Session:
    """Negotiated state of one connection.

    Holds the agreed protocol version, both capability sets and the client's
    identity.  Client capabilities are stored verbatim; this core only reads
    the ``tools.listChanged`` opt-out from them.
    """

    def __init__(
        self,
        server_info: Implementation,
        server_capabilities: dict[str, Any],
        *,
        supported_versions: list[str] | None = None,
        instructions: str | None = None,
    ) -> None:
        self.session_id = uuid4().hex
        self.server_info = server_info
        self.server_capabilities = server_capabilities
        self.supported_versions = sorted(
            supported_versions or SUPPORTED_PROTOCOL_VERSIONS, reverse=True
        )
        self.instructions = instructions
        self.state = SessionState.UNINITIALIZED
        self.protocol_version: str | None = None
        self.client_info: Implementation | None = None
        self.client_capabilities: dict[str, Any] = {}

    @property
    def is_ready(self) -> bool:
        return self.state is SessionState.READY

    @property
    def is_closed(self) -> bool:
        return self.state is SessionState.CLOSED

    @property
    def peer_wants_list_changed(self) -> bool:
        """``False`` only when the client explicitly opted out."""
        # Clients that omit tools.listChanged still get notifications.
        tools = self.client_capabilities.get("tools")
        if isinstance(tools, dict) and tools.get("listChanged") is False:
            return False
        return True

    def initialize(self, params: dict[str, Any] | None) -> InitializeResult:
        """Handle the ``initialize`` request.

        Raises:
            InvalidRequestError: The session was already initialized.
            InvalidParamsError: The params do not match the initialize shape.
            UnsupportedVersionError: No version acceptable to both sides.
        """
        self.ensure_open("initialize")
        if self.state is not SessionState.UNINITIALIZED:
            msg = "Session already initialized"
            raise InvalidRequestError(msg)

        try:
            request = InitializeParams.model_validate(params or {})
        except ValidationError as exc:
            raise InvalidParamsError(
                "Invalid initialize params", data=describe_validation_error(exc)
            ) from exc

        version = self.negotiate_version(request.protocol_version)

        self.protocol_version = version
        self.client_info = request.client_info
        self.client_capabilities = dict(request.capabilities)
        self.state = SessionState.INITIALIZING
        logger.info(
            "Session %s initializing with %s %s (protocol %s)",
            self.session_id,
            request.client_info.name,
            request.client_info.version,
            version,
        )

        return InitializeResult(
            protocol_version=version,
            capabilities=self.server_capabilities,
            server_info=self.server_info,
            instructions=self.instructions,
        )

    def negotiate_version(self, requested: str) -> str:
        """Pick the highest version the server supports that the client accepts.

        Versions are ISO dates, so string order is release order.  A client
        asking for a newer revision is offered the newest older one.
        """
        if requested in self.supported_versions:
            return requested
        if not _VERSION_RE.fullmatch(requested):
            raise UnsupportedVersionError(requested, self.supported_versions)
        for version in self.supported_versions:
            if version < requested:
                return version
        raise UnsupportedVersionError(requested, self.supported_versions)

    def mark_initialized(self) -> None:
        """Handle ``notifications/initialized``."""
        if self.state is SessionState.INITIALIZING:
            self.state = SessionState.READY
            logger.info("Session %s ready", self.session_id)
            return
        logger.warning(
            "Ignoring initialized notification in state %s", self.state.value
        )

    def ensure_ready(self, method: str) -> None:
        """Raise unless ordinary requests may be served."""
        self.ensure_open(method)
        if self.state is not SessionState.READY and method not in LIFECYCLE_METHODS:
            raise NotReadyError(method)

    def ensure_open(self, method: str = "") -> None:
        if self.state is SessionState.CLOSED:
            raise SessionClosedError(method)

    def close(self) -> None:
        if self.state is not SessionState.CLOSED:
            logger.info("Session %s closed", self.session_id)
        self.state = SessionState.CLOSED
