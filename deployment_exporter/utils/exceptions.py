"""Exception types and narrow exception tuples for the exporter.

This module provides the exporter's own exception hierarchy plus exception
type tuples for use in narrow exception handlers, replacing broad
`except Exception:` with specific exception types. Programming errors
(NameError, AttributeError, etc.) bubble up immediately while expected
operational errors are handled gracefully.

Usage:
    from deployment_exporter.utils.exceptions import KUBE_API_ERRORS, log_and_continue

    try:
        deployments = client.list_deployments(namespace)
    except KUBE_API_ERRORS as e:
        log_and_continue(e, "poll_list", logger)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from kubernetes.client.exceptions import ApiException
from urllib3.exceptions import HTTPError as Urllib3HTTPError

if TYPE_CHECKING:
    from types import TracebackType


# =============================================================================
# Exporter Exceptions
# =============================================================================


class ExporterError(Exception):
    """Base class for all exporter errors."""


class InvalidObjectError(ExporterError):
    """An orchestrator object is missing required identity fields.

    Raised by the snapshot evaluator; callers drop the offending event or
    entity and keep processing.
    """

    def __init__(self, message: str, obj_kind: str = "Deployment") -> None:
        super().__init__(message)
        self.obj_kind = obj_kind


class MetricsUnavailableError(ExporterError):
    """The pod metrics API (metrics.k8s.io) is absent or not answering."""


class KubeConfigError(ExporterError):
    """No usable Kubernetes client configuration could be loaded."""


# =============================================================================
# Exception Type Tuples
# =============================================================================

# Errors raised by the orchestrator API client
# Use for: list/watch/get calls against the Kubernetes API server
KUBE_API_ERRORS: tuple[type[BaseException], ...] = (
    ApiException,         # Non-2xx response from the API server
    Urllib3HTTPError,     # Protocol errors, read timeouts, broken streams
    ConnectionError,      # Connection refused, reset, aborted
    TimeoutError,         # Socket/connect timeout
    OSError,              # Low-level I/O errors
)

# Decoding exceptions for malformed orchestrator payloads
# Use for: quantity parsing, missing nested fields
PARSE_ERRORS: tuple[type[BaseException], ...] = (
    KeyError,              # Missing expected key
    TypeError,             # Wrong type in data structure
    ValueError,            # Invalid value format (bad quantity string)
    ArithmeticError,       # decimal.InvalidOperation from quantity parsing
)


# =============================================================================
# Utility Functions
# =============================================================================

def log_and_continue(
    e: BaseException,
    context: str,
    logger_instance: logging.Logger,
    level: int = logging.WARNING,
) -> None:
    """Log exception with context, allowing the caller to continue.

    Use this for expected errors that should not stop a feeder loop.

    Args:
        e: The exception that was caught
        context: Short description of the operation (e.g., "watch_open")
        logger_instance: Logger to use for logging
        level: Logging level (default: WARNING)
    """
    logger_instance.log(
        level,
        f"[{context}] Caught {type(e).__name__}: {e}",
    )


class ExceptionContext:
    """Context manager for exception handling with automatic logging.

    Usage:
        with ExceptionContext("pod_list", logger, KUBE_API_ERRORS):
            pods = client.list_pods(namespace, selector)
        # Exceptions in KUBE_API_ERRORS are logged and suppressed
        # Other exceptions propagate normally
    """

    def __init__(
        self,
        context: str,
        logger_instance: logging.Logger,
        exception_types: tuple[type[BaseException], ...],
    ) -> None:
        self.context = context
        self.logger = logger_instance
        self.exception_types = exception_types
        self.error: BaseException | None = None

    def __enter__(self) -> "ExceptionContext":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> bool:
        if exc_type is not None and issubclass(exc_type, self.exception_types):
            self.error = exc_val
            log_and_continue(exc_val, self.context, self.logger)
            return True
        return False
