"""Session routes: create sessions, send messages and read session state."""

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from ..deps import get_client
from ..exceptions import EdenError, ValidationError
from ..models.session import SessionCreateOptions
from ..schemas import SessionIdResponse, SessionRequest
from ..services.eden_client import EdenClient

logger = logging.getLogger(__name__)

router = APIRouter(tags=["sessions"])


@router.post("", response_model=SessionIdResponse)
async def create_or_send(
    session_data: SessionRequest,
    client: EdenClient = Depends(get_client),
) -> SessionIdResponse:
    """Create a session, or send a message when ``session_id`` is given.

    Args:
        session_data: Session options or message
        client: Eden client

    Returns:
        The session id

    Raises:
        HTTPException: 400 on missing fields, 500 on upstream failure
    """
    try:
        if session_data.session_id:
            if not session_data.content:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="content is required when sending a message",
                )

            logger.info(f"Sending message to session {session_data.session_id}")
            session_id = await client.send_session_message(
                session_data.session_id,
                session_data.content,
                session_data.attachments,
                session_data.agent_ids,
            )
            return SessionIdResponse(session_id=session_id)

        if not session_data.agent_ids:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="agent_ids is required and must be a non-empty array",
            )

        options = SessionCreateOptions(
            agent_ids=session_data.agent_ids,
            content=session_data.content,
            scenario=session_data.scenario,
            budget=session_data.budget,
            title=session_data.title,
            autonomy_settings=session_data.autonomy_settings,
        )
        session_id = await client.create_session(options)
        return SessionIdResponse(session_id=session_id)

    except HTTPException:
        raise
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except EdenError as e:
        logger.error(f"Failed to process session request: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal server error",
        )


@router.get("/{session_id}")
async def get_session(
    session_id: str,
    client: EdenClient = Depends(get_client),
) -> dict:
    """Get a session with its messages.

    Raises:
        HTTPException: If the session is not found
    """
    try:
        logger.debug(f"Getting session: {session_id}")

        session = await client.get_session(session_id)

        if not session:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Session not found",
            )

        return {"session": session.model_dump(by_alias=True)}

    except HTTPException:
        raise
    except EdenError as e:
        logger.error(f"Failed to get session {session_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal server error",
        )
