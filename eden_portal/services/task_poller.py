"""Polling loop that waits for a generation task to finish."""

import asyncio
import logging
from enum import Enum
from typing import Optional

from ..exceptions import TaskFailedError
from ..models.task import MediaType, Task
from .eden_client import EdenClient

logger = logging.getLogger(__name__)


class PollerState(str, Enum):
    IDLE = "idle"
    POLLING = "polling"
    DONE = "done"


class TaskPoller:
    """Drives the create flow: submit a task, then poll until it is terminal.

    There is no retry limit. A caller that wants to give up cancels the
    coroutine (for instance through ``asyncio.wait_for``).
    """

    def __init__(self, client: EdenClient, interval: Optional[float] = None):
        """Initialize the task poller.

        Args:
            client: Eden client used for submission and polling
            interval: Seconds between polls, defaults to the configured value
        """
        self.client = client
        self.interval = client.settings.task_poll_interval if interval is None else interval
        self.state = PollerState.IDLE
        self.task_id: Optional[str] = None
        self.poll_count = 0
        self.last_task: Optional[Task] = None

    async def submit(
        self,
        prompt: str,
        media_type: MediaType = MediaType.IMAGE,
        model_preference: Optional[str] = None,
    ) -> str:
        """Create a task and wait for its creation URI.

        Returns:
            URI of the produced creation

        Raises:
            TaskFailedError: If the task ends in the failed state
        """
        task_id = await self.client.create_task(prompt, media_type, model_preference)
        return await self.wait(task_id)

    async def wait(self, task_id: str) -> str:
        """Poll ``task_id`` until it completes with a URI or fails.

        Errors raised while polling are not retried; they end the flow and
        propagate to the caller.
        """
        self.task_id = task_id
        self.poll_count = 0
        self.last_task = None
        self.state = PollerState.POLLING
        logger.info(f"Polling task {task_id} every {self.interval}s")

        try:
            while True:
                task = await self.client.poll_task(task_id)
                self.poll_count += 1
                self.last_task = task

                if task.is_completed and task.creation_uri:
                    logger.info(f"Task {task_id} completed after {self.poll_count} polls")
                    return task.creation_uri

                if task.is_failed:
                    logger.warning(f"Task {task_id} failed after {self.poll_count} polls")
                    raise TaskFailedError(task_id)

                logger.debug(f"Task {task_id} is {task.status}, polling again")
                await asyncio.sleep(self.interval)
        finally:
            self.state = PollerState.DONE
