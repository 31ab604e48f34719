import enum
from typing import Any, Generic, TypeVar, Union

from attr import frozen

T = TypeVar("T")
ResultT = TypeVar("ResultT")
YieldT = TypeVar("YieldT")


class FrameStatus(enum.Enum):
    CREATED = "created"
    RUNNING = "running"
    SUSPENDED = "suspended"
    COMPLETED = "completed"
    FAILED = "failed"
    DESTROYED = "destroyed"

    @property
    def is_done(self) -> bool:
        return self in _DONE_STATUSES

    @property
    def is_resumable(self) -> bool:
        return self is FrameStatus.CREATED or self is FrameStatus.SUSPENDED


_DONE_STATUSES = frozenset({FrameStatus.COMPLETED, FrameStatus.FAILED, FrameStatus.DESTROYED})


class ErrorKind(enum.Enum):
    INVALID_RESUME = "invalid-resume"
    INVALID_STATE = "invalid-state"
    CONTINUATION_ALREADY_SET = "continuation-already-set"
    CONCURRENT_RESUME = "concurrent-resume"
    INVALID_YIELD = "invalid-yield"
    RESULT_NOT_READY = "result-not-ready"
    RESULT_ALREADY_CONSUMED = "result-already-consumed"
    MOVED_FROM = "moved-from"


@frozen(weakref_slot=False)
class Empty:
    pass


@frozen(weakref_slot=False)
class Value(Generic[T]):
    value: T


@frozen(weakref_slot=False)
class Error:
    exception: BaseException


ResultCell = Union[Empty, Value[T], Error]

EMPTY = Empty()


@frozen(eq=False, weakref_slot=False)
class _NoValue:
    def __repr__(self) -> str:
        return "NO_VALUE"


# Marks a generator promise that has not yet stored a yielded value.
NO_VALUE: Any = _NoValue()
