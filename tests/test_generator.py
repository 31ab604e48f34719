import gc
import itertools
import weakref
from typing import Iterator

import pytest

from coframe.runtime.exceptions import InvalidResumeError, NoCurrentValueError
from coframe.runtime.generator import Generator, generator
from coframe.runtime.types import FrameStatus

from .instrumentation import CallRecordingInstrumentation
from .utils import ResourceTracker


@generator
def one_to(n: int) -> Iterator[int]:
    yield from range(1, n + 1)


def test_finite_sequence():
    gen = one_to(5)
    iterator = iter(gen)

    assert list(iterator) == [1, 2, 3, 4, 5]
    assert iterator.is_done()
    with pytest.raises(InvalidResumeError):
        iterator.advance()
    # The Python iterator protocol keeps reporting exhaustion
    with pytest.raises(StopIteration):
        next(iterator)


def test_begin_positions_on_first_value():
    gen = one_to(3)
    iterator = gen.begin()
    assert gen.handle.get_frame().resume_count == 1
    assert not iterator.is_done()
    assert iterator.value == 1
    # Reading the value does not resume the frame
    assert iterator.value == 1
    assert gen.handle.get_frame().resume_count == 1

    assert iterator.advance().value == 2
    assert iterator.advance().value == 3
    assert iterator.advance().is_done()
    with pytest.raises(NoCurrentValueError):
        _ = iterator.value


def test_value_before_first_advance_is_unavailable():
    gen = one_to(3)
    iterator = iter(gen)
    with pytest.raises(NoCurrentValueError) as exc_info:
        _ = iterator.value
    assert exc_info.value.status is FrameStatus.CREATED
    assert gen.status is FrameStatus.CREATED

    assert next(iterator) == 1
    assert iterator.value == 1


def test_python_iteration_continues_from_begin():
    gen = one_to(3)
    iterator = gen.begin()
    assert list(iterator) == [1, 2, 3]
    assert gen.handle.get_frame().resume_count == 4


def test_empty_sequence_begins_at_end():
    gen = one_to(0)
    iterator = gen.begin()
    assert iterator.is_done()
    assert gen.status is FrameStatus.COMPLETED


def test_creating_a_generator_runs_nothing():
    calls: list[str] = []

    @generator
    def record() -> Iterator[int]:
        calls.append("started")
        yield 1

    gen = record()
    assert calls == []
    assert gen.status is FrameStatus.CREATED
    gen.close()
    assert calls == []


@pytest.mark.known_frames("naturals")
@pytest.mark.parametrize("pulls", [0, 1, 10])
def test_infinite_generator_is_lazy(pulls: int, test_instrumentation: CallRecordingInstrumentation):
    computed: list[int] = []

    @generator(instrumentation=test_instrumentation)
    def naturals() -> Iterator[int]:
        for value in itertools.count():
            computed.append(value)
            yield value

    with naturals() as gen:
        assert list(itertools.islice(gen, pulls)) == list(range(pulls))

    assert computed == list(range(pulls))
    test_instrumentation.assert_resumes_and_reset(*["naturals"] * pulls)


def test_cleanup_on_early_drop():
    tracker = ResourceTracker()

    @generator
    def naturals_holding_resource() -> Iterator[int]:
        with tracker.acquire():
            yield from itertools.count()

    gen = naturals_holding_resource()
    generator_ref = weakref.ref(gen)
    iterator = iter(gen)
    assert [next(iterator) for _ in range(3)] == [0, 1, 2]
    assert (tracker.acquired, tracker.released) == (1, 0)

    del gen
    # The iterator keeps the generator alive
    assert (tracker.acquired, tracker.released) == (1, 0)

    del iterator
    gc.collect()
    assert generator_ref() is None
    assert (tracker.acquired, tracker.released) == (1, 1)


def test_cleanup_on_close_runs_once():
    tracker = ResourceTracker()

    @generator
    def holding_resource() -> Iterator[int]:
        with tracker.acquire():
            yield 1
            yield 2

    gen = holding_resource()
    assert next(iter(gen)) == 1
    gen.close()
    gen.close()
    del gen
    gc.collect()
    assert (tracker.acquired, tracker.released) == (1, 1)


def test_cleanup_after_completion_runs_once():
    tracker = ResourceTracker()

    @generator
    def holding_resource() -> Iterator[int]:
        with tracker.acquire():
            yield 1

    with holding_resource() as gen:
        assert list(gen) == [1]
        assert (tracker.acquired, tracker.released) == (1, 1)
    assert (tracker.acquired, tracker.released) == (1, 1)


class ExpectedError(Exception):
    pass


@pytest.mark.parametrize("k", [0, 1, 3])
def test_error_after_k_values(k: int):
    error = ExpectedError(k)

    @generator
    def fail_after() -> Iterator[int]:
        yield from range(k)
        raise error

    iterator = iter(fail_after())
    assert [next(iterator) for _ in range(k)] == list(range(k))

    with pytest.raises(ExpectedError) as exc_info:
        next(iterator)
    assert exc_info.value is error

    # Iteration has ended; the error is not raised again
    assert iterator.is_done()
    with pytest.raises(StopIteration):
        next(iterator)


def test_error_before_first_value_is_raised_by_begin():
    @generator
    def fail_immediately() -> Iterator[int]:
        raise ExpectedError()
        yield 1  # required to make this a generator

    gen = fail_immediately()
    with pytest.raises(ExpectedError):
        gen.begin()
    assert gen.status is FrameStatus.FAILED


def test_return_value_is_forwarded_through_yield_from():
    @generator
    def inner() -> Iterator[int]:
        yield 1
        return "inner-result"

    results: list[str] = []

    @generator
    def outer() -> Iterator[int]:
        results.append((yield from inner()))
        yield 2

    assert list(outer()) == [1, 2]
    assert results == ["inner-result"]


def test_move_transfers_ownership():
    tracker = ResourceTracker()

    @generator
    def holding_resource() -> Iterator[int]:
        with tracker.acquire():
            yield 1
            yield 2

    gen = holding_resource()
    iterator = gen.begin()
    assert iterator.value == 1

    moved = gen.move()
    assert isinstance(moved, Generator)
    del gen
    gc.collect()
    # The moved-from generator's destruction does not touch the frame
    assert (tracker.acquired, tracker.released) == (1, 0)
    assert next(iter(moved)) == 2
    assert (tracker.acquired, tracker.released) == (1, 0)

    del iterator
    moved.close()
    assert (tracker.acquired, tracker.released) == (1, 1)


def test_decorating_a_plain_function_is_rejected():
    @generator
    def not_a_generator() -> Iterator[int]:
        return iter([1])

    with pytest.raises(TypeError):
        not_a_generator()
