import asyncio
from typing import AsyncIterator, Collection

import pytest
import pytest_asyncio
from aiotools import VirtualClock

from coframe.runtime import static_configuration

# This is necessary to enable testing that there are no dangling references to frame owners
static_configuration.ENABLE_WEAK_REFERENCE_SUPPORT = True

# This is necessary to get pretty assertion failure messages from the test instrumentation module
pytest.register_assert_rewrite("tests.instrumentation")

from coframe.runtime.scheduler import Scheduler  # noqa: E402

from .instrumentation import CallRecordingInstrumentation  # noqa: E402


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "known_frames(*names): frames recorded by the test instrumentation")


@pytest.fixture()
def known_frames(request: pytest.FixtureRequest) -> Collection[str]:
    marker = request.node.get_closest_marker("known_frames")
    if marker is None:
        return ()
    return tuple(marker.args)


@pytest.fixture()
def test_instrumentation(known_frames: Collection[str]) -> CallRecordingInstrumentation:
    return CallRecordingInstrumentation(known_frames=known_frames)


@pytest.fixture()
def scheduler(test_instrumentation: CallRecordingInstrumentation) -> Scheduler:
    return Scheduler(instrumentation=test_instrumentation)


@pytest_asyncio.fixture()
async def virtual_clock() -> AsyncIterator[VirtualClock]:
    virtual_clock = VirtualClock()
    with virtual_clock.patch_loop():
        yield virtual_clock
        # Ensure any pending timer callbacks are run
        await asyncio.sleep(1)
