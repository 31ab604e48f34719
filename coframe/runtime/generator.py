import functools
import inspect
from typing import Any, Callable, Generic, Iterator, Optional, ParamSpec, cast, overload

from attr import mutable
from typing_extensions import Self, override

from coframe.runtime.exceptions import NoCurrentValueError
from coframe.runtime.frame import Frame, FrameOwner, Handle, launch
from coframe.runtime.instrumentation import FrameInstrumentation
from coframe.runtime.promise import Promise
from coframe.runtime.types import NO_VALUE, YieldT

P = ParamSpec("P")


@mutable(eq=False, weakref_slot=False)
class GeneratorPromise(Promise, Generic[YieldT]):
    current_value: YieldT = NO_VALUE
    return_value: Any = None
    _error: Optional[BaseException] = None

    @override
    def on_create(self, frame: Frame) -> "Generator[YieldT]":
        return Generator(frame)

    @override
    def on_suspend(self, yielded: Any, handle: Handle) -> Optional[Handle]:
        self.current_value = yielded
        return None

    @override
    def on_return(self, value: Any) -> None:
        self.current_value = NO_VALUE
        self.return_value = value

    @override
    def on_unhandled_error(self, error: BaseException) -> None:
        self.current_value = NO_VALUE
        self._error = error

    @override
    def final_suspend(self) -> Optional[Handle]:
        # Park: the owner observes completion and destroys the frame when it is dropped.
        return None

    def take_error(self) -> Optional[BaseException]:
        error, self._error = self._error, None
        return error


@mutable(eq=False, weakref_slot=False)
class Generator(FrameOwner, Generic[YieldT]):
    """A lazy, pull-based, single-pass sequence.

    Nothing runs until the first pull. Each pull resumes the body exactly once. Dropping or closing the generator
    destroys the frame, which runs the body's pending cleanup.
    """

    def _get_promise(self) -> GeneratorPromise[YieldT]:
        return cast(GeneratorPromise[YieldT], self._get_frame().promise)

    def begin(self) -> "GeneratorIterator[YieldT]":
        return GeneratorIterator(self).advance()

    def __iter__(self) -> "GeneratorIterator[YieldT]":
        return GeneratorIterator(self)


@mutable(eq=False, weakref_slot=False)
class GeneratorIterator(Generic[YieldT]):
    # Holds the owner rather than the frame so that `for value in make_generator():` keeps the frame alive.
    _generator: Generator[YieldT]
    # True when the frame has been advanced but the produced value has not yet been returned from __next__
    _positioned: bool = False

    def is_done(self) -> bool:
        return self._generator.is_done()

    @property
    def value(self) -> YieldT:
        frame = self._generator._get_frame()
        current_value = self._generator._get_promise().current_value
        # Also reached before the first advance, when nothing has been produced yet
        if frame.is_done() or current_value is NO_VALUE:
            raise NoCurrentValueError(frame.name, frame.status)
        return current_value

    def advance(self) -> Self:
        self._generator._get_frame().resume()
        self._positioned = True
        if (error := self._generator._get_promise().take_error()) is not None:
            raise error
        return self

    def __iter__(self) -> Self:
        return self

    def __next__(self) -> YieldT:
        if self.is_done():
            raise StopIteration
        if not self._positioned:
            self.advance()
        self._positioned = False
        if self.is_done():
            raise StopIteration(self._generator._get_promise().return_value)
        return self._generator._get_promise().current_value


GeneratorFunction = Callable[P, Iterator[YieldT]]


@overload
def generator(fn: GeneratorFunction[P, YieldT]) -> Callable[P, Generator[YieldT]]:
    ...


@overload
def generator(
    *, instrumentation: Optional[FrameInstrumentation] = None
) -> Callable[[GeneratorFunction[P, YieldT]], Callable[P, Generator[YieldT]]]:
    ...


def generator(
    fn: Optional[GeneratorFunction[P, YieldT]] = None, *, instrumentation: Optional[FrameInstrumentation] = None
) -> Any:
    def decorate(generator_function: GeneratorFunction[P, YieldT]) -> Callable[P, Generator[YieldT]]:
        @functools.wraps(generator_function)
        def create(*args: P.args, **kwargs: P.kwargs) -> Generator[YieldT]:
            body = generator_function(*args, **kwargs)
            if not inspect.isgenerator(body):
                raise TypeError(f"{generator_function.__qualname__} did not return a generator: {body!r}")
            return cast(
                Generator[YieldT],
                launch(
                    body,
                    GeneratorPromise(),
                    name=generator_function.__qualname__,
                    instrumentation=instrumentation,
                ),
            )

        return create

    if fn is not None:
        return decorate(fn)
    return decorate
