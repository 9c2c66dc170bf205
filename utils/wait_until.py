import threading
import time
from typing import Callable, Optional


class WaitUntilTimeoutError(TimeoutError):
    pass


class WaitUntilCancelled(Exception):
    pass


def wait_until(
    predicate: Callable[[], bool],
    *,
    timeout: float,
    retry_interval: float = 3,
    stop_event: Optional[threading.Event] = None,
) -> None:
    deadline = time.monotonic() + timeout
    while True:
        if stop_event is not None and stop_event.is_set():
            raise WaitUntilCancelled("wait cancelled")
        if predicate():
            return
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise WaitUntilTimeoutError(f"condition not met within {timeout}s")
        if stop_event is not None:
            stop_event.wait(min(retry_interval, remaining))
        else:
            # KeyboardInterrupt raised here unwinds the caller's wait
            time.sleep(min(retry_interval, remaining))
