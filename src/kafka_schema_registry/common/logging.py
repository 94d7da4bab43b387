"""
Logging utilities for kafka_schema_registry.

Structured context goes through ``extra=`` so JSON formatters configured by the
host application can pick it up.
"""

import functools
import logging
import sys
from typing import Any, Callable, Dict, Optional, TypeVar

F = TypeVar("F", bound=Callable[..., Any])

DEFAULT_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

# Noisy loggers to suppress
NOISY_LOGGERS = [
    "aiohttp",
    "aiokafka",
    "urllib3",
]


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)


def setup_logging(
    level: int = logging.INFO,
    fmt: str = DEFAULT_LOG_FORMAT,
    suppress_noisy: bool = True,
) -> logging.Logger:
    """
    Attach a console handler to the package logger.

    Intended for scripts and tests; services normally configure the root
    logger themselves and only need get_logger().

    Args:
        level: Level for the package logger and its handler
        fmt: Format string for the console handler
        suppress_noisy: Raise third-party HTTP/Kafka loggers to WARNING

    Returns:
        The configured package logger
    """
    package_logger = logging.getLogger("kafka_schema_registry")
    package_logger.setLevel(level)

    if not any(getattr(h, "_ksr_console", False) for h in package_logger.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(fmt))
        handler.setLevel(level)
        handler._ksr_console = True  # type: ignore[attr-defined]
        package_logger.addHandler(handler)

    if suppress_noisy:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    return package_logger


def log_with_context(
    logger: logging.Logger,
    level: int,
    msg: str,
    **kwargs: Any,
) -> None:
    """
    Log with structured context fields.

    Args:
        logger: Logger instance
        level: Log level (logging.INFO, etc.)
        msg: Log message
        **kwargs: Additional context fields (schema_id, subject, http_status, etc.)

    Example:
        log_with_context(
            logger, logging.DEBUG, "Schema resolved",
            schema_id=schema.id,
            subject=subject,
        )
    """
    logger.log(level, msg, extra=kwargs)


def log_exception(
    logger: logging.Logger,
    exc: Exception,
    msg: str,
    level: int = logging.ERROR,
    include_traceback: bool = True,
    **kwargs: Any,
) -> None:
    """
    Log exception with context and optional traceback.

    Automatically extracts error_category, retriable and cached from SRCError.

    Args:
        logger: Logger instance
        exc: Exception to log
        msg: Context message
        level: Log level (default: ERROR)
        include_traceback: Include full traceback (default: True)
        **kwargs: Additional context fields
    """
    error_category = kwargs.get("error_category")
    if error_category is None and hasattr(exc, "category"):
        cat = exc.category
        error_category = cat.value if hasattr(cat, "value") else str(cat)
        kwargs["error_category"] = error_category

    for flag in ("retriable", "cached"):
        if flag not in kwargs and hasattr(exc, flag):
            kwargs[flag] = getattr(exc, flag)

    # Long causes (e.g. whole response bodies) are truncated
    error_msg = str(exc)
    if len(error_msg) > 500:
        error_msg = error_msg[:500] + "..."
    kwargs["error_message"] = error_msg

    if include_traceback:
        logger.log(level, msg, exc_info=exc, extra=kwargs)
    else:
        logger.log(level, msg, extra=kwargs)


def _is_coroutine_function(func: Callable) -> bool:
    """Check if function is a coroutine function."""
    import asyncio

    return asyncio.iscoroutinefunction(func)


def _extract_instance_context(obj: Any) -> Dict[str, Any]:
    """
    Extract loggable context from instance attributes.

    Args:
        obj: Object instance

    Returns:
        Dict with identifier fields
    """
    ctx: Dict[str, Any] = {}

    for attr in ["base_url", "subject", "schema_id"]:
        if hasattr(obj, attr):
            value = getattr(obj, attr)
            if value is not None:
                ctx[attr] = value

    return ctx


def logged_operation(
    level: int = logging.DEBUG,
    log_start: bool = False,
    operation_name: Optional[str] = None,
) -> Callable[[F], F]:
    """
    Decorator for automatic operation logging on class methods.

    Failures are logged without traceback at WARNING; SRCError already
    carries its own cause description.

    Args:
        level: Log level for completion message
        log_start: Also log when operation starts
        operation_name: Override operation name (default: method_name)

    Example:
        class SchemaRegistryClient(LoggedClass):
            @logged_operation(level=logging.DEBUG)
            async def fetch_by_id(self, schema_id):
                ...
    """

    def decorator(func: F) -> F:
        if _is_coroutine_function(func):

            @functools.wraps(func)
            async def async_wrapper(self, *args, **kwargs):
                _logger = getattr(self, "_logger", None) or get_logger(
                    self.__class__.__module__
                )
                op_name = operation_name or func.__name__
                full_op = f"{self.__class__.__name__}.{op_name}"

                if log_start:
                    log_with_context(_logger, level, f"{full_op} starting")

                try:
                    result = await func(self, *args, **kwargs)
                    log_with_context(_logger, level, f"{full_op} completed")
                    return result
                except Exception as e:
                    log_exception(
                        _logger,
                        e,
                        f"{full_op} failed",
                        level=logging.WARNING,
                        include_traceback=False,
                    )
                    raise

            return async_wrapper  # type: ignore
        else:

            @functools.wraps(func)
            def sync_wrapper(self, *args, **kwargs):
                _logger = getattr(self, "_logger", None) or get_logger(
                    self.__class__.__module__
                )
                op_name = operation_name or func.__name__
                full_op = f"{self.__class__.__name__}.{op_name}"

                if log_start:
                    log_with_context(_logger, level, f"{full_op} starting")

                try:
                    result = func(self, *args, **kwargs)
                    log_with_context(_logger, level, f"{full_op} completed")
                    return result
                except Exception as e:
                    log_exception(
                        _logger,
                        e,
                        f"{full_op} failed",
                        level=logging.WARNING,
                        include_traceback=False,
                    )
                    raise

            return sync_wrapper  # type: ignore

    return decorator


class LoggedClass:
    """
    Mixin providing logging infrastructure for classes.

    Provides:
    - self._logger: Logger instance
    - self._log(): Log with auto-extracted context
    """

    log_component: Optional[str] = None  # Optional logger name suffix

    def __init__(self, *args, **kwargs):
        logger_name = self.__class__.__module__
        if self.log_component:
            logger_name = f"{logger_name}.{self.log_component}"
        self._logger = get_logger(logger_name)
        super().__init__(*args, **kwargs)

    def _log(self, level: int, msg: str, **extra: Any) -> None:
        """
        Log with automatic context extraction from instance.

        Args:
            level: Log level
            msg: Log message
            **extra: Additional context fields
        """
        context = _extract_instance_context(self)
        context.update(extra)
        log_with_context(self._logger, level, msg, **context)
