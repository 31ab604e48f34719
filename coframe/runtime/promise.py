from abc import ABCMeta, abstractmethod
from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from coframe.runtime.frame import Frame, FrameOwner, Handle


class Promise(metaclass=ABCMeta):
    """Lifecycle hooks through which a frame's body communicates with the frame's owner.

    `on_suspend` receives whatever the body yielded. It, and `final_suspend`, may return a handle to transfer control
    to: the frame's trampoline resumes that handle next instead of returning to the resumer.
    """

    __slots__ = ()

    @abstractmethod
    def on_create(self, frame: "Frame") -> "FrameOwner":
        ...

    def initial_suspend(self) -> bool:
        # Frames are always lazy: no body code runs before the first explicit resume.
        return True

    @abstractmethod
    def on_suspend(self, yielded: Any, handle: "Handle") -> Optional["Handle"]:
        ...

    @abstractmethod
    def on_return(self, value: Any) -> None:
        ...

    @abstractmethod
    def on_unhandled_error(self, error: BaseException) -> None:
        ...

    @abstractmethod
    def final_suspend(self) -> Optional["Handle"]:
        ...
