import logging
from abc import ABCMeta, abstractmethod
from typing import TYPE_CHECKING

from attr import frozen

if TYPE_CHECKING:
    from coframe.runtime.frame import Frame

logger = logging.getLogger(__name__)


class FrameInstrumentation(metaclass=ABCMeta):
    @abstractmethod
    def on_frame_resume_start(self, frame: "Frame") -> None:
        ...

    @abstractmethod
    def on_frame_resume_end(self, frame: "Frame") -> None:
        ...

    @abstractmethod
    def on_frame_destroyed(self, frame: "Frame") -> None:
        ...


@frozen
class NoOpFrameInstrumentation(FrameInstrumentation):
    def on_frame_resume_start(self, frame: "Frame") -> None:  # pragma: no cover
        pass

    def on_frame_resume_end(self, frame: "Frame") -> None:  # pragma: no cover
        pass

    def on_frame_destroyed(self, frame: "Frame") -> None:  # pragma: no cover
        pass


@frozen
class LoggingFrameInstrumentation(FrameInstrumentation):
    level: int = logging.DEBUG

    def on_frame_resume_start(self, frame: "Frame") -> None:
        logger.log(self.level, "Resuming %s from %s", frame.name, frame.status.value)

    def on_frame_resume_end(self, frame: "Frame") -> None:
        logger.log(self.level, "Frame %s is now %s", frame.name, frame.status.value)

    def on_frame_destroyed(self, frame: "Frame") -> None:
        logger.log(self.level, "Destroyed %s", frame.name)


NO_OP_INSTRUMENTATION = NoOpFrameInstrumentation()
