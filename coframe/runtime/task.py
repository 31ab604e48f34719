import functools
import inspect
from typing import Any, Awaitable as NativeAwaitable, Callable, Generic, Optional, ParamSpec, cast, overload

from attr import mutable
from typing_extensions import override

from coframe.runtime.awaitable import Awaitable
from coframe.runtime.exceptions import (
    ContinuationAlreadySetError,
    InvalidResumeError,
    InvalidYieldError,
    ResultAlreadyConsumedError,
    ResultNotReadyError,
)
from coframe.runtime.frame import Frame, FrameOwner, Handle, launch
from coframe.runtime.instrumentation import FrameInstrumentation
from coframe.runtime.promise import Promise
from coframe.runtime.types import EMPTY, Empty, Error, FrameStatus, ResultCell, ResultT, Value

P = ParamSpec("P")


@mutable(eq=False, weakref_slot=False)
class TaskPromise(Promise, Generic[ResultT]):
    result: ResultCell[ResultT] = EMPTY
    result_consumed: bool = False
    _continuation: Optional[Handle] = None

    @property
    def continuation(self) -> Optional[Handle]:
        return self._continuation

    def set_continuation(self, continuation: Handle, frame_name: str) -> None:
        if self._continuation is not None:
            raise ContinuationAlreadySetError(frame_name)
        self._continuation = continuation

    @override
    def on_create(self, frame: Frame) -> "Task[ResultT]":
        return Task(frame)

    @override
    def on_suspend(self, yielded: Any, handle: Handle) -> Optional[Handle]:
        if not isinstance(yielded, Awaitable):
            raise InvalidYieldError(handle.name, yielded)
        return yielded.suspend(handle)

    @override
    def on_return(self, value: Any) -> None:
        self.result = Value(value)

    @override
    def on_unhandled_error(self, error: BaseException) -> None:
        self.result = Error(error)

    @override
    def final_suspend(self) -> Optional[Handle]:
        # Hand the continuation back to the trampoline so the awaiter runs next, then park until the owner destroys
        # the frame.
        return self._continuation

    def take_result(self) -> ResultCell[ResultT]:
        result = self.result
        if not isinstance(result, Empty):
            self.result = EMPTY
            self.result_consumed = True
        return result


@mutable(eq=False, weakref_slot=False)
class Task(FrameOwner, Awaitable[ResultT], Generic[ResultT]):
    """A lazily started, awaitable deferred computation.

    A task runs when it is first awaited or explicitly started. When it completes, whoever awaited it is resumed
    through the frame's trampoline, so arbitrarily deep chains of tasks awaiting tasks use constant stack.

    An error raised by the body is only observed by whoever retrieves the task's result. A caller that never does so
    silently discards the error.
    """

    def _get_promise(self) -> TaskPromise[ResultT]:
        return cast(TaskPromise[ResultT], self._get_frame().promise)

    def start(self) -> None:
        frame = self._get_frame()
        if frame.status is not FrameStatus.CREATED:
            raise InvalidResumeError(frame.name, frame.status)
        frame.resume()

    def result(self) -> ResultT:
        frame = self._get_frame()
        promise = self._get_promise()
        match promise.take_result():
            case Value(value=value):
                return cast(ResultT, value)
            case Error(exception=exception):
                raise exception
            case _:
                if promise.result_consumed:
                    raise ResultAlreadyConsumedError(frame.name)
                raise ResultNotReadyError(frame.name)

    @override
    def ready(self) -> bool:
        return self._get_frame().is_done()

    @override
    def suspend(self, continuation: Handle) -> Optional[Handle]:
        frame = self._get_frame()
        self._get_promise().set_continuation(continuation, frame.name)
        if frame.status is FrameStatus.CREATED:
            # Start the awaited task in place of the awaiter.
            return frame.handle
        # Already running elsewhere, e.g. suspended on a timer. Its final suspend resumes the awaiter.
        return None

    @override
    def resume(self) -> ResultT:
        return self.result()


TaskFunction = Callable[P, NativeAwaitable[ResultT]]


@overload
def task(fn: TaskFunction[P, ResultT]) -> Callable[P, Task[ResultT]]:
    ...


@overload
def task(
    *, instrumentation: Optional[FrameInstrumentation] = None
) -> Callable[[TaskFunction[P, ResultT]], Callable[P, Task[ResultT]]]:
    ...


def task(
    fn: Optional[TaskFunction[P, ResultT]] = None, *, instrumentation: Optional[FrameInstrumentation] = None
) -> Any:
    def decorate(task_function: TaskFunction[P, ResultT]) -> Callable[P, Task[ResultT]]:
        @functools.wraps(task_function)
        def create(*args: P.args, **kwargs: P.kwargs) -> Task[ResultT]:
            return create_task(
                task_function(*args, **kwargs), name=task_function.__qualname__, instrumentation=instrumentation
            )

        return create

    if fn is not None:
        return decorate(fn)
    return decorate


def create_task(
    body: NativeAwaitable[ResultT],
    *,
    name: Optional[str] = None,
    promise: Optional[TaskPromise[ResultT]] = None,
    instrumentation: Optional[FrameInstrumentation] = None,
) -> Task[ResultT]:
    if not (inspect.iscoroutine(body) or inspect.isgenerator(body)):
        raise TypeError(f"Expected a coroutine, got {body!r}")
    return cast(
        Task[ResultT],
        launch(
            body,
            promise if promise is not None else TaskPromise(),
            name=name if name is not None else getattr(body, "__qualname__", type(body).__name__),
            instrumentation=instrumentation,
        ),
    )
