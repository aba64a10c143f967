"""Core domain models and exceptions."""

from .exceptions import (
    AgentBaseException,
    ConfigurationError,
    BrowserError,
    ExecutionFailure,
    TransportFailure,
    MalformedResponse,
)
from .models import (
    OperationType,
    OperationPreset,
    ResourceReference,
    IframeSnapshot,
    PageSnapshot,
    SnapshotError,
    SnapshotResult,
    parse_snapshot,
    ResolutionStrategy,
    ElementMatch,
    ResolutionResult,
    ReasoningRequest,
    ReasoningResponse,
    ExchangeState,
    AgentExchange,
    ActionResult,
)

__all__ = [
    # Exceptions
    "AgentBaseException",
    "ConfigurationError",
    "BrowserError",
    "ExecutionFailure",
    "TransportFailure",
    "MalformedResponse",
    # Models
    "OperationType",
    "OperationPreset",
    "ResourceReference",
    "IframeSnapshot",
    "PageSnapshot",
    "SnapshotError",
    "SnapshotResult",
    "parse_snapshot",
    "ResolutionStrategy",
    "ElementMatch",
    "ResolutionResult",
    "ReasoningRequest",
    "ReasoningResponse",
    "ExchangeState",
    "AgentExchange",
    "ActionResult",
]
