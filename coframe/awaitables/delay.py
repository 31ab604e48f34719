import logging
import threading
from typing import Optional

from attr import frozen
from typing_extensions import override

from coframe.runtime.awaitable import Awaitable
from coframe.runtime.frame import Handle

logger = logging.getLogger(__name__)


@frozen(weakref_slot=False)
class ThreadedDelay(Awaitable[None]):
    """Resumes the awaiting frame from a dedicated timer thread after `seconds`.

    Every suspension starts its own thread, and the rest of the chain then runs on that thread. Prefer
    `Scheduler.sleep` or `AsyncioSleep`, which hand the continuation to an existing loop instead.
    """

    seconds: float

    @override
    def ready(self) -> bool:
        return False

    @override
    def suspend(self, continuation: Handle) -> Optional[Handle]:
        timer = threading.Timer(self.seconds, continuation.resume)
        timer.daemon = True
        logger.debug("Resuming %s from a timer thread in %s seconds", continuation.name, self.seconds)
        timer.start()
        return None

    @override
    def resume(self) -> None:
        return None
