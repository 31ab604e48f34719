import heapq
import itertools
import logging
import threading
import time
from collections import deque
from functools import partial
from typing import Any, Callable, Iterator, Optional, TypeVar

from attr import Factory, field, frozen, mutable, setters
from typing_extensions import override

from coframe.runtime.awaitable import Awaitable
from coframe.runtime.driver import create_root
from coframe.runtime.frame import Handle
from coframe.runtime.instrumentation import FrameInstrumentation
from coframe.runtime.task import Task
from coframe.runtime.types import ResultCell

T = TypeVar("T")

Callback = Callable[[], Any]

logger = logging.getLogger(__name__)


def _do_nothing() -> None:
    pass


def _resume_unless_destroyed(continuation: Handle) -> None:
    # Timers and queued resumes outlive a root that was closed before it completed
    if continuation.is_destroyed():
        logger.debug("Dropping resume of destroyed frame %s", continuation.name)
        return
    continuation.resume()


@mutable(eq=False, weakref_slot=False)
class TimerHandle:
    when: float = field(on_setattr=setters.frozen)
    callback: Callback = field(on_setattr=setters.frozen)
    cancelled: bool = False

    def cancel(self) -> None:
        self.cancelled = True


@mutable(eq=False)
class Scheduler:
    """A minimal single-threaded run loop for task chains.

    Callbacks and timers run on whichever thread is inside `run_until_complete`. `call_soon` and `call_later` may be
    called from any thread, which is how continuations handed to other execution agents get back onto the loop.
    """

    instrumentation: Optional[FrameInstrumentation] = field(default=None, on_setattr=setters.frozen)
    _ready: deque[Callback] = Factory(deque)
    _timers: list[tuple[float, int, TimerHandle]] = Factory(list)
    _sequence: Iterator[int] = Factory(itertools.count)
    _condition: threading.Condition = Factory(threading.Condition)
    _owned_tasks: set[Task] = Factory(set)

    def call_soon(self, callback: Callback) -> None:
        with self._condition:
            self._ready.append(callback)
            self._condition.notify()

    def call_later(self, delay: float, callback: Callback) -> TimerHandle:
        timer = TimerHandle(when=time.monotonic() + delay, callback=callback)
        with self._condition:
            heapq.heappush(self._timers, (timer.when, next(self._sequence), timer))
            self._condition.notify()
        return timer

    def schedule(self) -> "Reschedule":
        """Awaitable that suspends the awaiting frame and queues it to be resumed by this loop."""
        return Reschedule(self)

    def sleep(self, seconds: float) -> "Delay":
        return Delay(self, seconds)

    def spawn(self, awaitable: Awaitable[Any]) -> None:
        """Starts `awaitable` on this loop without waiting for it. The scheduler owns the root until it completes."""

        def on_done(_result: ResultCell[Any]) -> None:
            self.call_soon(partial(self._release, root))

        root: Task[Any] = create_root(awaitable, on_done, instrumentation=self.instrumentation)
        with self._condition:
            self._owned_tasks.add(root)
        self.call_soon(root.start)

    def _release(self, root: Task[Any]) -> None:
        with self._condition:
            self._owned_tasks.discard(root)
        try:
            # Errors from fire-and-forget tasks surface from the loop
            root.result()
        finally:
            root.close()

    def run_until_complete(self, awaitable: Awaitable[T]) -> T:
        def on_done(_result: ResultCell[T]) -> None:
            # Wakes the loop if the root completed on another thread
            self.call_soon(_do_nothing)

        with create_root(awaitable, on_done, instrumentation=self.instrumentation) as root:
            self.call_soon(root.start)
            while not root.is_done():
                self._run_once()
            return root.result()

    def _run_once(self) -> None:
        with self._condition:
            while not self._ready:
                now = time.monotonic()
                self._move_expired_timers_to_ready(now)
                if self._ready:
                    break
                # With no timers pending this waits for another thread to call `call_soon`
                timeout = self._timers[0][0] - now if self._timers else None
                self._condition.wait(timeout)
            # Callbacks queued by this batch run in the next one
            batch_size = len(self._ready)

        for _ in range(batch_size):
            # Popped one at a time so that a raising callback leaves the rest of the batch queued
            with self._condition:
                callback = self._ready.popleft()
            callback()

    def _move_expired_timers_to_ready(self, now: float) -> None:
        while self._timers and self._timers[0][0] <= now:
            _, _, timer = heapq.heappop(self._timers)
            if timer.cancelled:
                continue
            logger.debug("Timer due at %s fired at %s", timer.when, now)
            self._ready.append(timer.callback)


@frozen(weakref_slot=False)
class Reschedule(Awaitable[None]):
    scheduler: Scheduler

    @override
    def ready(self) -> bool:
        return False

    @override
    def suspend(self, continuation: Handle) -> Optional[Handle]:
        self.scheduler.call_soon(partial(_resume_unless_destroyed, continuation))
        return None

    @override
    def resume(self) -> None:
        return None


@frozen(weakref_slot=False)
class Delay(Awaitable[None]):
    scheduler: Scheduler
    seconds: float

    @override
    def ready(self) -> bool:
        return self.seconds <= 0

    @override
    def suspend(self, continuation: Handle) -> Optional[Handle]:
        self.scheduler.call_later(self.seconds, partial(_resume_unless_destroyed, continuation))
        return None

    @override
    def resume(self) -> None:
        return None
