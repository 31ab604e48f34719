from typing import Any, ClassVar

from attr import frozen

from coframe.runtime.types import ErrorKind, FrameStatus


class InvalidStateError(Exception):
    """A building block was used outside its invariants. Never captured into a result cell."""

    kind: ClassVar[ErrorKind] = ErrorKind.INVALID_STATE


@frozen
class InvalidResumeError(InvalidStateError):
    kind: ClassVar[ErrorKind] = ErrorKind.INVALID_RESUME

    frame_name: str
    status: FrameStatus


@frozen
class FrameRunningError(InvalidStateError):
    frame_name: str


@frozen
class ContinuationAlreadySetError(InvalidStateError):
    kind: ClassVar[ErrorKind] = ErrorKind.CONTINUATION_ALREADY_SET

    frame_name: str


@frozen
class ConcurrentResumeError(InvalidStateError):
    kind: ClassVar[ErrorKind] = ErrorKind.CONCURRENT_RESUME

    frame_name: str


@frozen
class InvalidYieldError(InvalidStateError):
    kind: ClassVar[ErrorKind] = ErrorKind.INVALID_YIELD

    frame_name: str
    yielded: Any


@frozen
class ResultNotReadyError(InvalidStateError):
    kind: ClassVar[ErrorKind] = ErrorKind.RESULT_NOT_READY

    frame_name: str


@frozen
class ResultAlreadyConsumedError(InvalidStateError):
    kind: ClassVar[ErrorKind] = ErrorKind.RESULT_ALREADY_CONSUMED

    frame_name: str


@frozen
class MovedFromError(InvalidStateError):
    kind: ClassVar[ErrorKind] = ErrorKind.MOVED_FROM

    owner_type: type


@frozen
class FrameAlreadyDestroyedError(InvalidStateError):
    frame_name: str


@frozen
class NoCurrentValueError(InvalidStateError):
    frame_name: str
    status: FrameStatus
