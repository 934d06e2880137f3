"""Chat flow: send a message, then reconcile the session until the reply lands."""

import asyncio
import logging
from typing import List, Optional

from ..exceptions import ValidationError
from ..models.session import SessionCreateOptions, SessionMessage
from .eden_client import EdenClient
from .session_poller import MessagesCallback, SessionPoller

logger = logging.getLogger(__name__)


class ChatSession:
    """One conversation view: selected agents, the session and its poller."""

    def __init__(
        self,
        client: EdenClient,
        agent_ids: Optional[List[str]] = None,
        poller: Optional[SessionPoller] = None,
        on_messages: Optional[MessagesCallback] = None,
    ):
        """Initialize the chat session.

        Args:
            client: Eden client
            agent_ids: Agents to talk to, defaults to the configured agent
            poller: Session poller, a new one is created when omitted
            on_messages: Observer for message list updates
        """
        self.client = client
        if agent_ids is None and client.settings.eden_agent_id:
            agent_ids = [client.settings.eden_agent_id]
        self.agent_ids: List[str] = list(agent_ids or [])
        self.poller = poller or SessionPoller(client, on_messages=on_messages)

    @property
    def session_id(self) -> Optional[str]:
        return self.poller.session_id

    @property
    def messages(self) -> List[SessionMessage]:
        return self.poller.messages

    @property
    def is_loading(self) -> bool:
        return self.poller.is_loading

    def select_agent(self, agent_id: str) -> None:
        self.agent_ids = [agent_id]

    async def send_message(self, content: str, attachments: Optional[List[str]] = None) -> str:
        """Send ``content`` and start polling for the assistant's turn.

        The first message creates the session with the selected agents;
        later messages are appended to it. Session creation takes no
        attachments, so a first message carrying some creates an empty
        session and then posts the message to it.

        Returns:
            The session id being polled

        Raises:
            ValidationError: If the content is empty or no agent is selected
        """
        if not content or not content.strip():
            raise ValidationError("Message cannot be empty")

        if self.session_id is None:
            if not self.agent_ids:
                raise ValidationError("Select an agent before starting a chat")
            if not attachments:
                session_id = await self.client.create_session(
                    SessionCreateOptions(agent_ids=self.agent_ids, content=content)
                )
            else:
                created_id = await self.client.create_session(
                    SessionCreateOptions(agent_ids=self.agent_ids)
                )
                session_id = await self.client.send_session_message(
                    created_id, content, attachments, self.agent_ids
                )
        else:
            session_id = await self.client.send_session_message(
                self.session_id, content, attachments, self.agent_ids or None
            )

        await self.poller.start(session_id)
        return session_id

    async def wait_for_reply(self, timeout: Optional[float] = None) -> Optional[SessionMessage]:
        """Wait for the current poll to end.

        Returns:
            The completed assistant message, or None if polling stopped
            without one (failure or timeout)
        """
        try:
            await asyncio.wait_for(self.poller.wait(), timeout)
        except asyncio.TimeoutError:
            logger.warning(f"No reply in session {self.session_id} after {timeout}s, giving up")
            self.poller.stop()
        return self.poller.reply

    def start_new_chat(self) -> None:
        self.poller.reset()
