"""Chat route: start a session with an agent or message an existing one."""

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from ..deps import get_client
from ..exceptions import EdenError, ValidationError
from ..models.session import SessionCreateOptions
from ..schemas import ChatRequest, SessionIdResponse
from ..services.eden_client import EdenClient

logger = logging.getLogger(__name__)

router = APIRouter(tags=["chat"])


@router.post("", response_model=SessionIdResponse)
async def chat(
    chat_data: ChatRequest,
    client: EdenClient = Depends(get_client),
) -> SessionIdResponse:
    """Start or continue a conversation.

    Without ``sessionId`` a session with ``agentId`` is created (``message``
    becomes its first message when given). With ``sessionId`` the
    ``message`` is sent to it. Clients then poll ``GET /api/sessions/{id}``.

    Raises:
        HTTPException: 400 when neither form applies
    """
    try:
        if not chat_data.session_id and chat_data.agent_id:
            logger.info(f"Starting chat session with agent {chat_data.agent_id}")
            session_id = await client.create_session(
                SessionCreateOptions(agent_ids=[chat_data.agent_id], content=chat_data.message or None)
            )
            return SessionIdResponse(session_id=session_id)

        if chat_data.session_id and chat_data.message and chat_data.message.strip():
            logger.info(f"Sending chat message to session {chat_data.session_id}")
            session_id = await client.send_session_message(chat_data.session_id, chat_data.message)
            return SessionIdResponse(session_id=session_id)

        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid request parameters",
        )

    except HTTPException:
        raise
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except EdenError as e:
        logger.error(f"Unexpected error in chat endpoint: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal server error",
        )
