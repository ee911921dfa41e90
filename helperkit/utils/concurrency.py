"""
Concurrent keyed transforms.

`transform_all` takes a mapping whose values are either already in flight
(`Pending`, or any awaitable) or plain values (`Raw`, or anything else) that
need an async transform applied. Every entry runs as its own asyncio task and
the call resolves to a dict with exactly the input keys once all of them have
settled.

The first failing entry aborts the whole call with a `KeyedTransformError`
naming its key. Entries still running at that point are cancelled and awaited
before the error propagates, so nothing spawned here outlives the call.
"""

from __future__ import annotations

import asyncio
import functools
import inspect
from dataclasses import dataclass
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    Generic,
    Hashable,
    List,
    Mapping,
    Optional,
    Tuple,
    TypeVar,
    Union,
)

from helperkit.utils import metrics
from helperkit.utils.common import is_awaitable
from helperkit.utils.error_handler import KeyedTransformError, TransformUsageError
from helperkit.utils.logger import add_transform_context, get_logger

K = TypeVar("K", bound=Hashable)
T = TypeVar("T")
R = TypeVar("R")

logger = get_logger(__name__)


@dataclass(frozen=True)
class Pending(Generic[T]):
    """An entry that is already in flight; awaited as-is, never transformed."""

    awaitable: Awaitable[T]


@dataclass(frozen=True)
class Raw(Generic[T]):
    """A plain entry value that must be passed through the transform."""

    value: T


Transform = Callable[[Any], Union[Awaitable[R], R]]


def classify(value: Any) -> Union[Pending[Any], Raw[Any]]:
    """Tag a mapping value as Pending or Raw.

    Explicit tags win; otherwise anything awaitable counts as pending.
    """
    if isinstance(value, (Pending, Raw)):
        return value
    if is_awaitable(value):
        return Pending(value)
    return Raw(value)


async def _apply(transform: Transform, value: Any) -> Any:
    result = transform(value)
    if is_awaitable(result):
        result = await result
    return result


async def _await(awaitable: Awaitable[T]) -> T:
    return await awaitable


def _close_unstarted(entries: List[Union[Pending[Any], Raw[Any]]]) -> None:
    # Coroutines handed to us but never scheduled would warn on GC.
    for entry in entries:
        if isinstance(entry, Pending) and inspect.iscoroutine(entry.awaitable):
            entry.awaitable.close()


async def _discard(tasks: "list[asyncio.Future[Any]]") -> None:
    """Cancel unfinished tasks and reap every outcome nobody will read."""
    stragglers = [task for task in tasks if not task.done()]
    for task in stragglers:
        task.cancel()
    if stragglers:
        metrics.TRANSFORM_ENTRIES_TOTAL.labels(result="cancelled").inc(len(stragglers))
    await asyncio.gather(*tasks, return_exceptions=True)


def _failure(task: "asyncio.Future[Any]") -> Optional[BaseException]:
    if task.cancelled():
        return asyncio.CancelledError()
    return task.exception()


async def transform_all(
    mapping: Mapping[K, Any],
    transform: Optional[Transform] = None,
) -> Dict[K, Any]:
    """Resolve every value of `mapping` concurrently, keeping its keys.

    Args:
        mapping: Keys to values. Values are `Pending`/awaitables (awaited
            directly) or `Raw`/plain values (passed to `transform`).
        transform: Unary callable returning an awaitable (or a plain result)
            for each raw value. Optional only when every value is pending.

    Returns:
        A dict with the same keys, in input order, holding settled results.

    Raises:
        TransformUsageError: A raw value was given without a transform. No
            entry is started in that case.
        KeyedTransformError: The first entry to fail, with `.key` and the
            original exception as `.cause` / `__cause__`.
    """
    entries: List[Tuple[K, Union[Pending[Any], Raw[Any]]]] = [
        (key, classify(value)) for key, value in mapping.items()
    ]
    if not entries:
        return {}

    if transform is None:
        for key, entry in entries:
            if isinstance(entry, Raw):
                _close_unstarted([e for _, e in entries])
                raise TransformUsageError(key)

    owners: Dict["asyncio.Future[Any]", K] = {}
    for key, entry in entries:
        if isinstance(entry, Pending):
            coro = _await(entry.awaitable)
        else:
            coro = _apply(transform, entry.value)
        owners[asyncio.ensure_future(coro)] = key

    logger.debug("transform_all started", entries=len(owners))

    settled: Dict[K, Any] = {}
    outstanding = len(owners)
    pending = set(owners)
    completed = False
    try:
        while outstanding:
            done, pending = await asyncio.wait(
                pending, return_when=asyncio.FIRST_COMPLETED
            )
            for task in done:
                key = owners[task]
                cause = _failure(task)
                if cause is not None:
                    metrics.TRANSFORM_ENTRIES_TOTAL.labels(result="failed").inc()
                    logger.warning(
                        "transform entry failed",
                        error_type=type(cause).__name__,
                        **add_transform_context(key, "settle"),
                    )
                    if isinstance(cause, (Exception, asyncio.CancelledError)):
                        raise KeyedTransformError(key, cause) from cause
                    raise cause
                settled[key] = task.result()
                outstanding -= 1
                metrics.TRANSFORM_ENTRIES_TOTAL.labels(result="ok").inc()
        completed = True
    finally:
        if not completed:
            await _discard(list(owners))

    return {key: settled[key] for key, _ in entries}


def bind_transform(func: Callable[..., R], *args: Any, **kwargs: Any) -> Callable[[Any], R]:
    """Fix trailing arguments so `func(value, *args, **kwargs)` becomes unary."""

    @functools.wraps(func)
    def _unary(value: Any) -> R:
        return func(value, *args, **kwargs)

    return _unary
