import sys
from contextlib import contextmanager
from types import FrameType
from typing import Iterator, Optional

from attr import mutable
from typing_extensions import override

from coframe.runtime.awaitable import Awaitable
from coframe.runtime.frame import Handle


@mutable
class ResourceTracker:
    acquired: int = 0
    released: int = 0

    @contextmanager
    def acquire(self) -> Iterator[None]:
        self.acquired += 1
        try:
            yield
        finally:
            self.released += 1


@mutable(eq=False)
class ManualEvent(Awaitable[None]):
    """Parks the awaiting frame until `set` is called by the test."""

    is_set: bool = False
    continuation: Optional[Handle] = None

    @override
    def ready(self) -> bool:
        return self.is_set

    @override
    def suspend(self, continuation: Handle) -> Optional[Handle]:
        self.continuation = continuation
        return None

    @override
    def resume(self) -> None:
        return None

    def set(self) -> None:
        self.is_set = True
        if (continuation := self.continuation) is not None:
            self.continuation = None
            continuation.resume()


def stack_depth() -> int:
    depth = 0
    frame: Optional[FrameType] = sys._getframe(1)
    while frame is not None:
        depth += 1
        frame = frame.f_back
    return depth
