# Copyright (C) 2021 Zurich Instruments
#
# This software may be modified and distributed under the terms
# of the MIT license. See the LICENSE file for details.

"""Helper functions used in daqkit"""
import time
import logging
from functools import lru_cache
from typing import Callable, Any, Optional, Tuple

from zhinst.daqkit.exceptions import OperationTimeoutError

logger = logging.getLogger(__name__)


def lazy_property(property_function: Callable):
    """Read only property that is only evaluated once per instance.

    The value is kept in a lru cache keyed by the instance, the instance
    therefore needs to be hashable.

    Args:
        property_function (Callable): property function

    Returns
        Any: Return value of the property function

    """
    return property(lru_cache()(property_function))


def wait_for(
    condition: Callable[[], Any],
    timeout: float,
    *,
    sleep_time: float = 0.1,
    backoff: float = 1.0,
    max_sleep: float = 1.0,
    cancel: Optional[Callable[[], bool]] = None,
    message: str = None,
) -> Any:
    """Block until ``condition`` returns a truthy value.

    The data server offers no push notification for state changes, every wait
    is therefore a polling loop. This function is the single implementation
    of such a loop. The condition is evaluated once immediately and then after
    every sleep interval. After each interval the interval is multiplied by
    ``backoff`` (capped at ``max_sleep``).

    Args:
        condition (Callable): Callable without arguments. The loop ends as soon
            as it returns a truthy value.
        timeout (float): Cumulative deadline in seconds.
        sleep_time (float): Initial sleep interval in seconds. (default = 0.1)
        backoff (float): Factor applied to the sleep interval after every
            iteration. (default = 1.0, constant interval)
        max_sleep (float): Upper bound for the sleep interval. (default = 1.0)
        cancel (Callable): Optional callable checked before every sleep. If it
            returns True the wait is abandoned. (default = None)
        message (str): Message of the timeout error.

    Returns:
        Any: The truthy value returned by ``condition`` or False if the wait
            was cancelled.

    Raises:
        OperationTimeoutError: if ``condition`` did not become truthy before
            the deadline.
    """
    deadline = time.time() + timeout
    interval = sleep_time
    result = condition()
    while not result:
        if cancel is not None and cancel():
            logger.debug("Wait loop cancelled by the caller")
            return False
        remaining = deadline - time.time()
        if remaining <= 0:
            raise OperationTimeoutError(
                message if message else f"Condition not met within {timeout}s."
            )
        time.sleep(min(interval, remaining))
        interval = min(interval * backoff, max(max_sleep, sleep_time))
        result = condition()
    return result


def wait_for_node_data(
    session, path: str, timeout: float = 20.0, recording_time: float = 0.1
) -> Tuple:
    """Poll the session until data for a path arrives.

    The path must already be subscribed. All data polled in the meantime for
    other subscribed paths is discarded.

    Args:
        session (Session): Session to the data server.
        path (str): Path for which the data is expected.
        timeout (float): Cumulative deadline in seconds. (default = 20)
        recording_time (float): Recording time of each single poll.
            (default = 0.1)

    Returns:
        tuple[Chunk]: Chunks received for the path in the first poll that
            contained it.

    Raises:
        OperationTimeoutError: if no data arrived for the path in time.
    """
    path = path.lower()

    def poll_path():
        return session.poll(recording_time, timeout=recording_time).get(path)

    return wait_for(
        poll_path,
        timeout,
        sleep_time=0,
        message=f"No data received for {path} within {timeout}s.",
    )
