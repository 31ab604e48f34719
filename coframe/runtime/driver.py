"""Driving code: the callers that start a chain of tasks and own its root frame until it completes."""
import logging
import threading
from typing import Callable, Generic, Optional, TypeVar

from attr import field, mutable
from typing_extensions import override

from coframe.runtime import static_configuration
from coframe.runtime.awaitable import Awaitable
from coframe.runtime.frame import Handle
from coframe.runtime.instrumentation import FrameInstrumentation
from coframe.runtime.task import Task, TaskPromise, create_task
from coframe.runtime.types import ResultCell, ResultT

T = TypeVar("T")

OnDone = Callable[[ResultCell[ResultT]], None]

logger = logging.getLogger(__name__)


@mutable(eq=False, weakref_slot=False)
class RootTaskPromise(TaskPromise[ResultT], Generic[ResultT]):
    """A task promise that reports completion to plain code instead of resuming an awaiting frame."""

    _on_done: OnDone[ResultT] = field(kw_only=True)

    @override
    def final_suspend(self) -> Optional[Handle]:
        self._on_done(self.result)
        return super().final_suspend()


async def _await(awaitable: Awaitable[T]) -> T:
    return await awaitable


def create_root(
    awaitable: Awaitable[T], on_done: OnDone[T], *, instrumentation: Optional[FrameInstrumentation] = None
) -> Task[T]:
    """Wraps `awaitable` in a root task that has not yet been started."""
    return create_task(
        _await(awaitable),
        name=f"root[{type(awaitable).__name__}]",
        promise=RootTaskPromise(on_done=on_done),
        instrumentation=instrumentation,
    )


def spawn(
    awaitable: Awaitable[T], on_done: OnDone[T], *, instrumentation: Optional[FrameInstrumentation] = None
) -> Task[T]:
    """Starts a root task for `awaitable`. The caller must own the returned task until `on_done` is called."""
    root = create_root(awaitable, on_done, instrumentation=instrumentation)
    root.start()
    return root


def sync_wait(
    awaitable: Awaitable[T],
    *,
    timeout: Optional[float] = None,
    instrumentation: Optional[FrameInstrumentation] = None,
) -> T:
    """Runs `awaitable` to completion, blocking the calling thread while it is suspended.

    Continuations handed to other threads (timers, I/O callbacks) finish the chain on those threads; this thread
    only waits. Raises `TimeoutError` if the chain has not completed after `timeout` seconds, in which case the root
    frame is destroyed.
    """
    if timeout is None:
        timeout = static_configuration.DEFAULT_SYNC_WAIT_TIMEOUT
    done = threading.Event()

    def on_done(_result: ResultCell[T]) -> None:
        done.set()

    with spawn(awaitable, on_done, instrumentation=instrumentation) as root:
        if not done.wait(timeout):
            logger.debug("Timed out after %s seconds waiting for %s", timeout, root.name)
            raise TimeoutError(f"{root.name} did not complete within {timeout} seconds")
        return root.result()
