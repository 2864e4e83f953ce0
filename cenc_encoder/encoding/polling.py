"""Encoding status polling.

The poller is a small state machine:

    POLLING --FINISHED status--> FINISHED
    POLLING --ERROR/CANCELED/TRANSFER_ERROR status--> FAILED
    POLLING --deadline exceeded--> FAILED

Each step waits one interval and then queries the status, so the first
query happens one interval after the encoding was started.
"""

import time
from typing import Any, Callable

from aws_lambda_powertools import Logger

from ..shared.exceptions import EncodingFailedError, EncodingTimeoutError, RemoteCallError
from ..shared.models import EncodingStatus, PollState

logger = Logger(service="status-poller")


def status_of(task: Any) -> EncodingStatus:
    """Normalize the status of an SDK task (enum or plain string).

    Raises:
        RemoteCallError: If the service reports a status this client does not know
    """
    raw = str(getattr(task.status, "value", task.status))
    try:
        return EncodingStatus(raw)
    except ValueError:
        raise RemoteCallError(
            f"Encoding service reported unknown status '{raw}'",
            operation="get_status",
            details={"status": raw},
        ) from None


def collect_error_messages(task: Any) -> list[str]:
    """Collect the text of ERROR messages attached to a status task.

    Args:
        task: Status task returned by the encoding service

    Returns:
        Message texts in the order reported, empty when there are none
    """
    messages = getattr(task, "messages", None) or []
    collected = []
    for message in messages:
        message_type = getattr(message.type, "value", message.type)
        if str(message_type) == "ERROR" and message.text:
            collected.append(message.text)
    return collected


class EncodingStatusPoller:
    """Polls an encoding until it reaches a terminal status.

    Attributes:
        state: Current PollState
        observations: Statuses seen so far, oldest first
    """

    def __init__(
        self,
        get_status: Callable[[str], Any],
        interval: float = 5.0,
        max_wait: float | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        on_status: Callable[[EncodingStatus], None] | None = None,
    ) -> None:
        """Initialize the poller.

        Args:
            get_status: Callable returning the status task for an encoding ID
            interval: Seconds to wait before each status query
            max_wait: Deadline in seconds; None polls until a terminal status
            sleep: Sleep function (injectable for tests)
            clock: Monotonic clock (injectable for tests)
            on_status: Called with every observed status
        """
        self._get_status = get_status
        self.interval = interval
        self.max_wait = max_wait
        self._sleep = sleep
        self._clock = clock
        self._on_status = on_status
        self.state = PollState.POLLING
        self.observations: list[EncodingStatus] = []

    def wait(self, encoding_id: str) -> Any:
        """Poll until the encoding finishes.

        Args:
            encoding_id: ID of the started encoding

        Returns:
            The status task that reported FINISHED

        Raises:
            EncodingFailedError: On the first failed terminal status
            EncodingTimeoutError: If the deadline passes first
        """
        started = self._clock()

        while True:
            task = self.step(encoding_id)
            if self.state == PollState.FINISHED:
                return task

            if self.max_wait is not None and self._clock() - started >= self.max_wait:
                self.state = PollState.FAILED
                last = self.observations[-1].value if self.observations else None
                logger.error(
                    "Polling deadline exceeded",
                    extra={"encoding_id": encoding_id, "max_wait_seconds": self.max_wait},
                )
                raise EncodingTimeoutError(encoding_id, self.max_wait, last)

    def step(self, encoding_id: str) -> Any:
        """Wait one interval, query status once and advance the state.

        Raises:
            EncodingFailedError: If the queried status is a failure
            RuntimeError: If called after a terminal state was reached
        """
        if self.state.is_terminal:
            raise RuntimeError(f"Poller already in terminal state {self.state.value}")

        self._sleep(self.interval)
        task = self._get_status(encoding_id)
        try:
            status = status_of(task)
        except RemoteCallError:
            self.state = PollState.FAILED
            raise
        self.observations.append(status)
        if self._on_status is not None:
            self._on_status(status)

        logger.info(
            "Encoding status",
            extra={
                "encoding_id": encoding_id,
                "status": status.value,
                "progress": getattr(task, "progress", None),
            },
        )

        if status == EncodingStatus.FINISHED:
            self.state = PollState.FINISHED
        elif status.is_failure:
            self.state = PollState.FAILED
            messages = collect_error_messages(task)
            for text in messages:
                logger.error("Encoding task error", extra={"encoding_id": encoding_id, "text": text})
            raise EncodingFailedError(encoding_id, status.value, messages)

        return task
