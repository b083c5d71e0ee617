"""Timing and exception-logging decorators plus a scoped log context."""

import functools
import inspect
import logging
import time
from collections.abc import Callable
from typing import Any, ParamSpec, TypeVar

from waffle_intel.commons.telemetry.logger import (
    get_log_context,
    get_logger,
    log_context_var,
)

P = ParamSpec("P")
R = TypeVar("R")


def timed(
    *,
    logger: logging.Logger | None = None,
    level: int = logging.DEBUG,
    threshold_ms: float | None = None,
    operation: str | None = None,
) -> Callable[[Callable[P, R]], Callable[P, R]]:
    """Log how long the decorated callable took.

    Args:
        logger: Logger to use. Defaults to the callable's module logger.
        level: Log level of the timing record.
        threshold_ms: Only log calls slower than this.
        operation: Name recorded in the ``operation`` field. Defaults to the
            callable's qualified name.

    Returns:
        Decorator usable on sync and async callables.
    """

    def decorator(fn: Callable[P, R]) -> Callable[P, R]:
        log = logger or get_logger(fn.__module__)
        name = operation or fn.__qualname__

        def _emit(start: float, failed: bool) -> None:
            elapsed_ms = (time.perf_counter() - start) * 1000
            if threshold_ms is not None and elapsed_ms < threshold_ms:
                return
            log.log(
                level,
                f"{name} {'failed' if failed else 'completed'}",
                extra={"operation": name, "duration_ms": round(elapsed_ms, 2)},
            )

        if inspect.iscoroutinefunction(fn):

            @functools.wraps(fn)
            async def async_wrapper(*args: P.args, **kwargs: P.kwargs) -> Any:
                start = time.perf_counter()
                failed = True
                try:
                    result = await fn(*args, **kwargs)  # type: ignore[misc]
                    failed = False
                    return result
                finally:
                    _emit(start, failed)

            return async_wrapper  # type: ignore[return-value]

        @functools.wraps(fn)
        def sync_wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            start = time.perf_counter()
            failed = True
            try:
                result = fn(*args, **kwargs)
                failed = False
                return result
            finally:
                _emit(start, failed)

        return sync_wrapper

    return decorator


def log_exceptions(
    *,
    logger: logging.Logger | None = None,
    level: int = logging.ERROR,
    message: str | None = None,
) -> Callable[[Callable[P, R]], Callable[P, R]]:
    """Log any exception escaping the decorated coroutine, then re-raise it.

    Args:
        logger: Logger to use. Defaults to the callable's module logger.
        level: Log level of the exception record.
        message: Message prefix. Defaults to ``Exception in <qualname>``.
    """

    def decorator(fn: Callable[P, R]) -> Callable[P, R]:
        log = logger or get_logger(fn.__module__)
        msg = message or f"Exception in {fn.__qualname__}"

        @functools.wraps(fn)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> Any:
            try:
                return await fn(*args, **kwargs)  # type: ignore[misc]
            except Exception as e:
                log.log(
                    level,
                    msg,
                    exc_info=True,
                    extra={"exception_type": type(e).__name__},
                )
                raise

        return wrapper  # type: ignore[return-value]

    return decorator


class LogContext:
    """Temporarily extend the logging context.

    Works as a sync or async context manager::

        with LogContext(content_key="waffles/a.mp4"):
            ...
    """

    def __init__(self, **kwargs: Any) -> None:
        self.context = kwargs
        self._previous: dict[str, Any] = {}

    def __enter__(self) -> "LogContext":
        self._previous = get_log_context()
        log_context_var.set({**self._previous, **self.context})
        return self

    def __exit__(self, *args: Any) -> None:
        log_context_var.set(self._previous)

    async def __aenter__(self) -> "LogContext":
        return self.__enter__()

    async def __aexit__(self, *args: Any) -> None:
        self.__exit__(*args)
