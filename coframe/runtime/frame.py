import weakref
from typing import TYPE_CHECKING, Any, Coroutine, Generator, Optional, Union, cast

from attr import field, frozen, mutable, setters
from typing_extensions import Self

from coframe.runtime import static_configuration
from coframe.runtime.exceptions import (
    ConcurrentResumeError,
    FrameAlreadyDestroyedError,
    FrameRunningError,
    InvalidResumeError,
    InvalidStateError,
    MovedFromError,
)
from coframe.runtime.instrumentation import NO_OP_INSTRUMENTATION, FrameInstrumentation
from coframe.runtime.types import FrameStatus

if TYPE_CHECKING:
    from coframe.runtime.promise import Promise

Body = Union[Generator[Any, Any, Any], Coroutine[Any, Any, Any]]


@mutable(eq=False)
class Frame:
    """The suspended state of one coroutine invocation.

    The native generator or coroutine object holds the captured locals and the resume point. The frame adds the
    completion status and the promise that mediates between the body and whoever owns the frame.
    """

    _body: Body = field(on_setattr=setters.frozen, repr=False)
    promise: "Promise" = field(on_setattr=setters.frozen, repr=False)
    name: str = field(on_setattr=setters.frozen)
    instrumentation: FrameInstrumentation = field(default=NO_OP_INSTRUMENTATION, on_setattr=setters.frozen, repr=False)
    status: FrameStatus = FrameStatus.CREATED
    resume_count: int = 0

    @property
    def handle(self) -> "Handle":
        return Handle(weakref.ref(self), self.name)

    def is_done(self) -> bool:
        return self.status.is_done

    def resume(self) -> None:
        # Trampoline: a step may nominate the next frame to run, which is then run from this loop rather than from
        # inside the previous step, so chains of transfers use constant stack.
        next_frame: Optional[Frame] = self
        while next_frame is not None:
            next_frame = next_frame._step()

    def _step(self) -> Optional["Frame"]:
        if self.status is FrameStatus.RUNNING:
            raise ConcurrentResumeError(self.name)
        if not self.status.is_resumable:
            raise InvalidResumeError(self.name, self.status)

        self.status = FrameStatus.RUNNING
        self.resume_count += 1
        self.instrumentation.on_frame_resume_start(self)
        try:
            transfer_to = self._run_body()
        finally:
            self.instrumentation.on_frame_resume_end(self)
        return transfer_to.get_frame() if transfer_to is not None else None

    def _run_body(self) -> Optional["Handle"]:
        try:
            yielded = self._body.send(None)
        except StopIteration as stop:
            self.status = FrameStatus.COMPLETED
            self.promise.on_return(stop.value)
            return self.promise.final_suspend()
        except InvalidStateError as error:
            self.status = FrameStatus.FAILED
            self.promise.on_unhandled_error(error)
            raise
        except Exception as error:
            self.status = FrameStatus.FAILED
            self.promise.on_unhandled_error(error)
            return self.promise.final_suspend()
        except BaseException as error:
            self.status = FrameStatus.FAILED
            # Recorded so that the result reports the failure, but the continuation is not resumed
            self.promise.on_unhandled_error(error)
            raise
        self.status = FrameStatus.SUSPENDED
        return self.promise.on_suspend(yielded, self.handle)

    def destroy(self) -> None:
        if self.status is FrameStatus.RUNNING:
            raise FrameRunningError(self.name)
        if self.status is FrameStatus.DESTROYED:
            raise FrameAlreadyDestroyedError(self.name)
        self.status = FrameStatus.DESTROYED
        try:
            # Runs pending `finally` blocks and context manager exits of a suspended body
            self._body.close()
        finally:
            self.instrumentation.on_frame_destroyed(self)


@frozen(weakref_slot=False)
class Handle:
    """A non-owning reference to a frame. Holding a handle never keeps a frame alive."""

    _frame_ref: "weakref.ReferenceType[Frame]"
    name: str = field(eq=False)

    def get_frame(self) -> Frame:
        frame = self._frame_ref()
        if frame is None:
            raise InvalidResumeError(self.name, FrameStatus.DESTROYED)
        return frame

    def resume(self) -> None:
        self.get_frame().resume()

    def is_done(self) -> bool:
        frame = self._frame_ref()
        return frame is None or frame.is_done()

    def is_destroyed(self) -> bool:
        frame = self._frame_ref()
        return frame is None or frame.status is FrameStatus.DESTROYED

    def destroy(self) -> None:
        frame = self._frame_ref()
        if frame is None:
            raise FrameAlreadyDestroyedError(self.name)
        frame.destroy()


@mutable(eq=False, weakref_slot=static_configuration.ENABLE_WEAK_REFERENCE_SUPPORT)
class FrameOwner:
    """Exclusively owns one frame. Ownership moves with `move()`; it is never shared."""

    _frame: Optional[Frame]

    def _get_frame(self) -> Frame:
        if self._frame is None:
            raise MovedFromError(type(self))
        return self._frame

    @property
    def handle(self) -> Handle:
        return self._get_frame().handle

    @property
    def name(self) -> str:
        return self._get_frame().name

    @property
    def status(self) -> FrameStatus:
        return self._get_frame().status

    def is_done(self) -> bool:
        return self._get_frame().is_done()

    def move(self) -> Self:
        frame = self._get_frame()
        self._frame = None
        return type(self)(frame)

    def close(self) -> None:
        frame = self._frame
        if frame is None:
            return
        self._frame = None
        if frame.status is not FrameStatus.DESTROYED:
            frame.destroy()

    def __enter__(self) -> Self:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def __del__(self) -> None:
        if getattr(self, "_frame", None) is not None:
            self.close()


def launch(
    body: Body, promise: "Promise", *, name: str, instrumentation: Optional[FrameInstrumentation] = None
) -> FrameOwner:
    frame = Frame(
        body=body,
        promise=promise,
        name=name,
        instrumentation=instrumentation if instrumentation is not None else NO_OP_INSTRUMENTATION,
    )
    owner = promise.on_create(frame)
    if not promise.initial_suspend():
        frame.resume()
    return cast(FrameOwner, owner)
