from typing import Optional

# Frame owners (Generator, Task) only get a __weakref__ slot when this is enabled before import.
ENABLE_WEAK_REFERENCE_SUPPORT = False

DEFAULT_SYNC_WAIT_TIMEOUT: Optional[float] = None
