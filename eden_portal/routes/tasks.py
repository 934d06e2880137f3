"""Generation task routes: submit a task and poll it."""

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from ..deps import get_client
from ..exceptions import EdenError, ValidationError
from ..schemas import TaskCreateRequest, TaskCreateResponse, TaskPollRequest, TaskPollResponse
from ..services.eden_client import EdenClient

logger = logging.getLogger(__name__)

router = APIRouter(tags=["tasks"])


@router.post("", response_model=TaskCreateResponse)
async def create_task(
    task_data: TaskCreateRequest,
    client: EdenClient = Depends(get_client),
) -> TaskCreateResponse:
    """Submit a generation task to Eden.

    Args:
        task_data: Prompt and media type
        client: Eden client

    Returns:
        The upstream task id

    Raises:
        HTTPException: If the submission fails
    """
    try:
        logger.info(f"Creating {task_data.type.value} task: {task_data.text_input[:100]}")

        task_id = await client.create_task(
            task_data.text_input, task_data.type, task_data.model_preference
        )

        return TaskCreateResponse(task_id=task_id)

    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except EdenError as e:
        logger.error(f"Error creating task: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal server error",
        )


@router.post("/poll", response_model=TaskPollResponse)
async def poll_task(
    poll_data: TaskPollRequest,
    client: EdenClient = Depends(get_client),
) -> TaskPollResponse:
    """Check a task once.

    Returns the creation URI once the task completed, ``null`` while it is
    still running. A failed task is reported as a 500.
    """
    try:
        task = await client.poll_task(poll_data.task_id)

        if task.is_completed and task.creation_uri:
            return TaskPollResponse(uri=task.creation_uri)

        if task.is_failed:
            logger.warning(f"Task {task.task_id} failed")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Task failed",
            )

        return TaskPollResponse(uri=None)

    except HTTPException:
        raise
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except EdenError as e:
        logger.error(f"Error polling task {poll_data.task_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal server error",
        )
