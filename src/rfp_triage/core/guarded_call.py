"""
Guarded generation call: race a slow, fallible operation against a timer.

The caller always gets a value of the declared output shape back:

* the operation's own value when it settles successfully within budget,
* the precomputed fallback when it times out or fails.

The operation gets exactly one attempt. When the timer wins, the operation
is disowned, not cancelled: it keeps running in the background and whatever
it eventually produces is dropped.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import (
    Any,
    Awaitable,
    Callable,
    Generic,
    Optional,
    Set,
    Type,
    TypeVar,
)

from pydantic import BaseModel, ValidationError

from .logging import get_logger
from .metrics import metrics

_LOG = get_logger(__name__)

T = TypeVar("T")

# Disowned operations still running after their race was lost. The event loop
# only keeps weak references to tasks.
_ABANDONED: Set["asyncio.Future[Any]"] = set()


class ResultKind(str, Enum):
    SUCCESS = "success"
    FALLBACK_USED = "fallback_used"


class CauseKind(str, Enum):
    TIMEOUT = "timeout"
    OPERATION_ERROR = "operation_error"


class FallbackSchemaError(TypeError):
    """A fallback value does not satisfy its flow's output schema."""


@dataclass(frozen=True)
class FallbackCause:
    kind: CauseKind
    details: str
    error: Optional[BaseException] = None

    @classmethod
    def timeout(cls, timeout_ms: int) -> "FallbackCause":
        return cls(CauseKind.TIMEOUT, f"operation did not settle within {timeout_ms} ms")

    @classmethod
    def operation_error(cls, error: BaseException) -> "FallbackCause":
        return cls(CauseKind.OPERATION_ERROR, f"{type(error).__name__}: {error}", error)


@dataclass(frozen=True)
class GuardedResult(Generic[T]):
    kind: ResultKind
    value: T
    cause: Optional[FallbackCause] = None

    @classmethod
    def success(cls, value: T) -> "GuardedResult[T]":
        return cls(ResultKind.SUCCESS, value)

    @classmethod
    def fallback_used(cls, value: T, cause: FallbackCause) -> "GuardedResult[T]":
        return cls(ResultKind.FALLBACK_USED, value, cause)

    @property
    def degraded(self) -> bool:
        return self.kind is ResultKind.FALLBACK_USED


def validate_fallback(fallback: Any, output_schema: Type[BaseModel]) -> BaseModel:
    """Coerce ``fallback`` into an ``output_schema`` instance or fail loudly."""
    if isinstance(fallback, output_schema):
        return fallback
    try:
        return output_schema.model_validate(fallback)
    except ValidationError as exc:
        raise FallbackSchemaError(
            f"fallback does not satisfy {output_schema.__name__}: {exc}"
        ) from exc


def _check_output(value: Any, output_schema: Optional[Type[BaseModel]]) -> None:
    if output_schema is None or isinstance(value, output_schema):
        return
    output_schema.model_validate(value)


def _discard_late_result(task: "asyncio.Future[Any]") -> None:
    _ABANDONED.discard(task)
    if task.cancelled():
        return
    # Retrieve the exception so the loop does not report it as unhandled.
    exc = task.exception()
    _LOG.debug(
        "Discarded late result of abandoned operation",
        extra={"error_type": type(exc).__name__ if exc else None},
    )


def _abandon(task: "asyncio.Future[Any]") -> None:
    _ABANDONED.add(task)
    task.add_done_callback(_discard_late_result)


async def guarded_call(
    operation: Callable[[], Awaitable[T]],
    timeout_ms: int,
    fallback: T,
    *,
    output_schema: Optional[Type[BaseModel]] = None,
    logger: Optional[logging.Logger] = None,
    name: str = "guarded_call",
) -> GuardedResult[T]:
    """Run ``operation`` with a hard ``timeout_ms`` budget.

    Args:
        operation: Zero-argument callable returning an awaitable of the output.
        timeout_ms: Budget in milliseconds, measured from this call.
        fallback: Precomputed output returned on timeout or failure.
        output_schema: When given, a successful value that does not validate
            against it counts as an operation failure, and ``fallback`` must
            validate against it (``FallbackSchemaError`` otherwise).
        logger: Where degradation is reported; defaults to this module's logger.
        name: Flow name attached to log records.

    Returns:
        ``GuardedResult`` carrying either the operation's value or ``fallback``.
    """
    if isinstance(timeout_ms, bool) or not isinstance(timeout_ms, int) or timeout_ms <= 0:
        raise ValueError(f"timeout_ms must be a positive integer, got {timeout_ms!r}")
    if output_schema is not None:
        fallback = validate_fallback(fallback, output_schema)

    log = logger or _LOG
    started = time.perf_counter()

    try:
        task = asyncio.ensure_future(operation())
    except Exception as exc:
        return _fall_back(log, name, fallback, FallbackCause.operation_error(exc), timeout_ms, started)

    try:
        await asyncio.wait({task}, timeout=timeout_ms / 1000)
    except asyncio.CancelledError:
        # The caller went away; the operation is disowned like on timeout.
        _abandon(task)
        raise

    # A task that finished by the time the wait returned wins the tie.
    if not task.done():
        _abandon(task)
        return _fall_back(log, name, fallback, FallbackCause.timeout(timeout_ms), timeout_ms, started)

    if task.cancelled():
        cause = FallbackCause.operation_error(asyncio.CancelledError("operation was cancelled"))
        return _fall_back(log, name, fallback, cause, timeout_ms, started)

    exc = task.exception()
    if exc is not None:
        return _fall_back(log, name, fallback, FallbackCause.operation_error(exc), timeout_ms, started)

    value = task.result()
    try:
        _check_output(value, output_schema)
    except ValidationError as invalid:
        return _fall_back(log, name, fallback, FallbackCause.operation_error(invalid), timeout_ms, started)

    metrics.record_guarded_success()
    log.debug(
        "Guarded call succeeded",
        extra={"flow": name, "elapsed_ms": _elapsed_ms(started)},
    )
    return GuardedResult.success(value)


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


def _fall_back(
    log: logging.Logger,
    name: str,
    fallback: T,
    cause: FallbackCause,
    timeout_ms: int,
    started: float,
) -> GuardedResult[T]:
    extra = {
        "flow": name,
        "cause": cause.kind.value,
        "timeout_ms": timeout_ms,
        "elapsed_ms": _elapsed_ms(started),
    }
    if cause.kind is CauseKind.TIMEOUT:
        metrics.record_fallback(timed_out=True)
        log.warning(f"{name} timed out, using fallback: {cause.details}", extra=extra)
    else:
        metrics.record_fallback(timed_out=False)
        extra["error_type"] = type(cause.error).__name__
        log.error(
            f"{name} failed, using fallback: {cause.details}",
            exc_info=cause.error,
            extra=extra,
        )
    return GuardedResult.fallback_used(fallback, cause)


class GuardedFlow(Generic[T]):
    """Reusable guarded wrapper around an async function.

    The fallback is checked against ``output_schema`` once, here, so a flow
    with a malformed fallback cannot even be defined. Each call returns a deep
    copy of it so callers can never mutate the configured value.
    """

    def __init__(
        self,
        fn: Callable[..., Awaitable[T]],
        *,
        timeout_ms: int,
        fallback: Any,
        output_schema: Type[BaseModel],
        name: Optional[str] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        if isinstance(timeout_ms, bool) or not isinstance(timeout_ms, int) or timeout_ms <= 0:
            raise ValueError(f"timeout_ms must be a positive integer, got {timeout_ms!r}")
        self._fn = fn
        self.timeout_ms = timeout_ms
        self.output_schema = output_schema
        self.fallback = validate_fallback(fallback, output_schema)
        self.name = name or fn.__name__
        self.logger = logger
        self.__doc__ = fn.__doc__

    async def __call__(
        self,
        *args: Any,
        timeout_ms: Optional[int] = None,
        logger: Optional[logging.Logger] = None,
        **kwargs: Any,
    ) -> GuardedResult[T]:
        return await guarded_call(
            lambda: self._fn(*args, **kwargs),
            timeout_ms if timeout_ms is not None else self.timeout_ms,
            self.fallback.model_copy(deep=True),
            output_schema=self.output_schema,
            logger=logger or self.logger,
            name=self.name,
        )

    def __repr__(self) -> str:
        return f"GuardedFlow(name={self.name!r}, timeout_ms={self.timeout_ms})"


def guarded(
    *,
    timeout_ms: int,
    fallback: Any,
    output_schema: Type[BaseModel],
    name: Optional[str] = None,
) -> Callable[[Callable[..., Awaitable[T]]], GuardedFlow[T]]:
    """Decorator form of ``GuardedFlow``."""

    def wrap(fn: Callable[..., Awaitable[T]]) -> GuardedFlow[T]:
        return GuardedFlow(
            fn,
            timeout_ms=timeout_ms,
            fallback=fallback,
            output_schema=output_schema,
            name=name,
        )

    return wrap
