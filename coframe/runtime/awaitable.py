from abc import ABCMeta, abstractmethod
from typing import Generator, Generic, Optional, TypeVar

from attr import frozen

from coframe.runtime.frame import Handle

T = TypeVar("T")


class Awaitable(Generic[T], metaclass=ABCMeta):
    """A suspension point.

    `ready` is consulted first; if it returns False the awaiting frame suspends and `suspend` receives its handle.
    The awaitable must arrange for that handle to be resumed at most once, after the awaited event. `suspend` may
    instead return a handle to run immediately in place of the awaiting frame (tail resumption). After the awaiting
    frame is resumed `resume` produces the value or raises the captured error.
    """

    __slots__ = ()

    @abstractmethod
    def ready(self) -> bool:
        ...

    @abstractmethod
    def suspend(self, continuation: Handle) -> Optional[Handle]:
        ...

    @abstractmethod
    def resume(self) -> T:
        ...

    def __await__(self) -> Generator["Awaitable[T]", None, T]:
        if not self.ready():
            yield self
        return self.resume()


@frozen(weakref_slot=False)
class Ready(Awaitable[T], Generic[T]):
    value: T

    def ready(self) -> bool:
        return True

    def suspend(self, continuation: Handle) -> Optional[Handle]:  # pragma: no cover
        return continuation

    def resume(self) -> T:
        return self.value
