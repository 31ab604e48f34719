"""Bridges between coframe awaitables and an asyncio event loop."""
import asyncio
from typing import Any, Generic, Optional, TypeVar

from attr import field, frozen
from typing_extensions import override

from coframe.runtime.awaitable import Awaitable
from coframe.runtime.driver import create_root
from coframe.runtime.frame import Handle
from coframe.runtime.task import Task
from coframe.runtime.types import Error, ResultCell, Value

T = TypeVar("T")


@frozen
class FutureCancelledError(Exception):
    """The asyncio future awaited through `AwaitFuture` was cancelled."""

    future: "asyncio.Future[Any]" = field(repr=False)


@frozen(weakref_slot=False)
class AsyncioSleep(Awaitable[None]):
    seconds: float
    loop: Optional[asyncio.AbstractEventLoop] = field(eq=False, default=None, repr=False)

    @override
    def ready(self) -> bool:
        return False

    @override
    def suspend(self, continuation: Handle) -> Optional[Handle]:
        loop = self.loop if self.loop is not None else asyncio.get_running_loop()
        # The awaiting frame may be running on another thread, and call_later is not thread-safe
        loop.call_soon_threadsafe(loop.call_later, self.seconds, continuation.resume)
        return None

    @override
    def resume(self) -> None:
        return None


@frozen(weakref_slot=False)
class AwaitFuture(Awaitable[T], Generic[T]):
    """Suspends until an asyncio future is done. Must be awaited on the future's loop thread."""

    future: "asyncio.Future[T]"

    @override
    def ready(self) -> bool:
        return self.future.done()

    @override
    def suspend(self, continuation: Handle) -> Optional[Handle]:
        self.future.add_done_callback(lambda _future: continuation.resume())
        return None

    @override
    def resume(self) -> T:
        if self.future.cancelled():
            # Delivered to the awaiting task like any other error, rather than as a BaseException
            raise FutureCancelledError(self.future)
        return self.future.result()


# Roots started for asyncio futures, kept alive until their future is settled
_pending_roots: set[Task[Any]] = set()


def _settle(future: "asyncio.Future[T]", root: Task[T], result: ResultCell[T]) -> None:
    _pending_roots.discard(root)
    try:
        if future.cancelled():
            return
        match result:
            case Value(value=value):
                future.set_result(value)
            case Error(exception=FutureCancelledError()):
                future.cancel()
            case Error(exception=exception):
                future.set_exception(exception)
    finally:
        root.close()


def to_asyncio_future(
    awaitable: Awaitable[T], loop: Optional[asyncio.AbstractEventLoop] = None
) -> "asyncio.Future[T]":
    """Starts `awaitable` and returns a future that asyncio code can await for its result."""
    target_loop = loop if loop is not None else asyncio.get_running_loop()
    future: asyncio.Future[T] = target_loop.create_future()

    def on_done(result: ResultCell[Any]) -> None:
        target_loop.call_soon_threadsafe(_settle, future, root, result)

    root: Task[T] = create_root(awaitable, on_done)
    _pending_roots.add(root)
    root.start()
    return future
