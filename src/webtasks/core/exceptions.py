"""
Custom exception hierarchy for the web tasks agent.

Only failures that cross a component boundary are exceptions. A token that
matches nothing on the page is not one of them: the resolver reports it as
the ``not found`` status string and the caller decides what to show.

Boundaries that stop propagation:
- ElementResolver and SnapshotSerializer never raise to their callers
- AgentOrchestrator turns TransportFailure into a visible error message
- PresetRunner turns ExecutionFailure into an unsuccessful ActionResult
"""

from typing import Optional, Dict, Any


class AgentBaseException(Exception):
    """
    Base exception for all agent errors.

    Catching ``AgentBaseException`` catches every error raised by this
    package, and each instance carries a machine-readable code plus a
    context dict for logging.
    """

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize base exception.

        Args:
            message: Human-readable error description
            error_code: Machine-readable error code for classification
            context: Additional context data for debugging
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.context = context or {}

    def __str__(self) -> str:
        """String representation with error code."""
        if self.context:
            return f"[{self.error_code}] {self.message} | Context: {self.context}"
        return f"[{self.error_code}] {self.message}"


class ConfigurationError(AgentBaseException):
    """
    Raised when configuration is invalid or missing.

    Examples:
    - REASONING_SERVICE_URL not set
    - Plain-HTTP service URL outside localhost
    - Timer values out of range

    This is a FATAL error - the application should not start.
    """
    pass


class BrowserError(AgentBaseException):
    """
    Browser/Playwright lifecycle errors.

    Examples:
    - Browser not installed
    - Context creation failure
    """
    pass


class ExecutionFailure(AgentBaseException):
    """
    Script evaluation on the hosted page raised.

    Examples:
    - Invalid CSS selector inside a compiled preset
    - Execution context destroyed by a navigation mid-evaluation

    Reported to the caller as a visible message, never fatal.
    """

    def __init__(
        self,
        message: str,
        script: Optional[str] = None,
        **kwargs
    ):
        """
        Initialize execution failure.

        Args:
            message: Error description
            script: Script source that failed (truncated for the context)
        """
        context = kwargs.pop("context", {})
        context.update({"script": script[:120] if script else None})
        super().__init__(message, context=context, **kwargs)


class TransportFailure(AgentBaseException):
    """
    Reasoning-service request failed.

    Covers connection errors, timeouts and any non-success status code.
    There is no automatic retry: the user re-submits explicitly.
    """

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        status_code: Optional[int] = None,
        **kwargs
    ):
        """
        Initialize transport failure.

        Args:
            message: Error description
            url: Endpoint that was called
            status_code: HTTP status code if a response arrived
        """
        context = kwargs.pop("context", {})
        context.update({
            "url": url,
            "status_code": status_code
        })
        super().__init__(message, context=context, **kwargs)
        self.status_code = status_code


class MalformedResponse(TransportFailure):
    """
    Response body is not JSON or lacks a string ``answer``.

    Handled exactly like a TransportFailure.
    """
    pass
