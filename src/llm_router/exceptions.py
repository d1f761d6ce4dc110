"""Custom exceptions for the LLM backend router."""

from typing import Any, Dict, Optional


class RouterError(Exception):
    """Base exception for routing failures."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or "ROUTER_ERROR"
        self.details = details or {}


class NoProviderAvailable(RouterError):
    """No backend could be selected for a request."""

    def __init__(self, configurable: Optional[list[str]] = None, **kwargs):
        names = configurable or []
        if len(names) > 1:
            listed = ", ".join(names[:-1]) + f", or {names[-1]}"
        else:
            listed = "".join(names) or "a backend"
        super().__init__(
            f"No providers available. Configure {listed}.",
            error_code="NO_PROVIDER_AVAILABLE",
            **kwargs,
        )
        self.configurable = names


class ConfigurationError(RouterError):
    """Invalid router or registry configuration."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, error_code="CONFIGURATION_ERROR", **kwargs)


class BackendError(Exception):
    """Failure reported by a backend while generating."""

    def __init__(
        self,
        message: str,
        backend: Optional[str] = None,
        status: Optional[int] = None,
        retryable: bool = False,
    ):
        super().__init__(message)
        self.message = message
        self.backend = backend
        self.status = status
        self.retryable = retryable


class TransportError(BackendError):
    """Connection refused, reset or timed out."""

    def __init__(self, message: str, backend: Optional[str] = None, timed_out: bool = False):
        # Timeouts already consumed the full request budget.
        super().__init__(message, backend=backend, retryable=not timed_out)
        self.timed_out = timed_out


class BackendHTTPError(BackendError):
    """Backend answered with a non-success HTTP status."""

    def __init__(self, message: str, backend: Optional[str] = None, status: Optional[int] = None):
        retryable = status is not None and (status == 429 or status >= 500)
        super().__init__(message, backend=backend, status=status, retryable=retryable)


class StreamParseError(BackendError):
    """A stream frame carried an authoritative error."""


class ProbeFailure(Exception):
    """Health probe failed. Never leaves ``Backend.health_check``."""


__all__ = [
    "RouterError",
    "NoProviderAvailable",
    "ConfigurationError",
    "BackendError",
    "TransportError",
    "BackendHTTPError",
    "StreamParseError",
    "ProbeFailure",
]
