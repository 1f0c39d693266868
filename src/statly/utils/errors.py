"""
Error handling utilities and boundaries for Statly.

Provides the exception taxonomy shared by the stats client, the editor and
the refresh engine, plus the error boundaries used by the daemon loop.
"""

import logging
from functools import wraps
from typing import Any, Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

# Type variable for generic function decoration
F = TypeVar("F", bound=Callable[..., Any])

# Annotation shown with a render state that is backed by the stats cache
STALE_DATA_SERVED = "Using cached data"


def error_boundary(
    *,
    reraise: bool = False,
    default_return: Any = None,
    log_level: int = logging.ERROR,
) -> Callable[[F], F]:
    """
    Decorator to create consistent error boundaries around functions.

    Args:
        reraise: If True, re-raise the exception after logging
        default_return: Value to return if error occurs and not reraising
        log_level: Logging level for the error (default: ERROR)

    Returns:
        Decorated function with error handling

    Example:
        >>> @error_boundary(default_return={})
        ... def update_widgets(now):
        ...     return manager.update_widgets(now)
    """

    def decorator(func: F) -> F:
        @wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except Exception as e:
                logger.log(
                    log_level,
                    f"Error in {func.__name__}: {e}",
                    exc_info=True,
                    extra={"function": func.__name__, "module": func.__module__},
                )

                if reraise:
                    raise

                return default_return

        return wrapper  # type: ignore

    return decorator


def safe_execute(
    func: Callable[[], Any],
    *,
    on_error: Optional[Callable[[Exception], Any]] = None,
    default: Any = None,
) -> Any:
    """
    Safely execute a function with error handling.

    Useful for one-off operations where a decorator isn't appropriate.

    Args:
        func: Function to execute
        on_error: Optional callback to call if error occurs (receives exception)
        default: Default value to return on error

    Returns:
        Function result, or default value on error
    """
    try:
        return func()
    except Exception as e:
        logger.error(f"Error in safe_execute: {e}", exc_info=True)
        if on_error:
            on_error(e)
        return default


class StatlyError(Exception):
    """Base exception for all Statly-specific errors."""

    pass


class ConfigurationError(StatlyError):
    """Raised when a widget configuration or the settings file is invalid."""

    pass


class EntitlementError(StatlyError):
    """Raised when an operation exceeds what the current tier allows."""

    pass


class StatsClientError(StatlyError):
    """
    Base class for failures of a single stats fetch.

    Attributes:
        message: Short user-facing description of the failure
    """

    message = "Unable to load stats"

    def __init__(self, detail: Optional[str] = None):
        self.detail = detail
        super().__init__(self.message if detail is None else f"{self.message}: {detail}")


class InvalidEndpoint(StatsClientError):
    """Raised when the endpoint URL cannot be parsed."""

    message = "Invalid endpoint URL"


class TransportError(StatsClientError):
    """Raised on connection failures and timeouts."""

    message = "Network error"


class ServerError(StatsClientError):
    """Raised when the endpoint answers with anything other than HTTP 200."""

    message = "Server error"

    def __init__(self, status_code: int, detail: Optional[str] = None):
        self.status_code = status_code
        self.detail = detail
        StatlyError.__init__(self, f"{self.message}: {status_code}")


class DecodeError(StatsClientError):
    """Raised when the response body is not a valid stats payload."""

    message = "Invalid data format from endpoint"

    def __init__(self, detail: Optional[str] = None):
        self.detail = detail
        # The detail is for logs only; the user sees the generic message
        StatlyError.__init__(self, self.message)
