"""Session polling and reconciliation of assistant turns.

The decision of whether the latest assistant turn is finished lives in the
pure function :func:`evaluate_tick`. :class:`SessionPoller` owns the poll
loop around it and is the only place holding mutable poll state.
"""

import asyncio
import inspect
import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Callable, List, Optional, Tuple

from ..exceptions import EdenError
from ..models.session import FinishReason, Session, SessionMessage
from .eden_client import EdenClient

logger = logging.getLogger(__name__)

MessagesCallback = Callable[[List[SessionMessage]], Any]


@dataclass(frozen=True)
class PollCursor:
    """Local reconciliation state, discarded on reset."""
    last_processed_message_id: Optional[str] = None
    expecting_new_message: bool = False


class CompletionReason(str, Enum):
    NOT_EXPECTING = "not_expecting"
    STOPPED = "stopped"
    TOOL_CALLS_COMPLETED = "tool_calls_completed"
    SESSION_IDLE = "session_idle"


@dataclass(frozen=True)
class TickDecision:
    cursor: PollCursor
    done: bool
    reason: Optional[CompletionReason] = None
    message: Optional[SessionMessage] = None


def _stopped_with_content(message: SessionMessage, session: Session) -> bool:
    return message.finish_reason == FinishReason.STOP and message.has_content


def _tool_calls_completed(message: SessionMessage, session: Session) -> bool:
    return message.finish_reason == FinishReason.TOOL_CALLS and all(
        call.is_completed for call in message.tool_calls
    )


def _session_idle(message: SessionMessage, session: Session) -> bool:
    # Fallback for messages that never report a finish reason.
    has_output = message.has_content or bool(message.tool_calls)
    return has_output and not session.is_processing and not session.has_active_requests


COMPLETION_PREDICATES: Tuple[Tuple[CompletionReason, Callable[[SessionMessage, Session], bool]], ...] = (
    (CompletionReason.STOPPED, _stopped_with_content),
    (CompletionReason.TOOL_CALLS_COMPLETED, _tool_calls_completed),
    (CompletionReason.SESSION_IDLE, _session_idle),
)


def evaluate_tick(cursor: PollCursor, session: Session) -> TickDecision:
    """Decide whether polling ``session`` can stop.

    Args:
        cursor: State left by previous ticks
        session: Freshly fetched session snapshot

    Returns:
        The decision, carrying the cursor to keep afterwards. A turn is only
        ever completed with a message id different from the last processed
        one, so an unchanged snapshot cannot complete twice.
    """
    latest = session.latest_assistant_message()

    if not cursor.expecting_new_message:
        return TickDecision(cursor=cursor, done=True, reason=CompletionReason.NOT_EXPECTING, message=latest)

    if latest is None or latest.id == cursor.last_processed_message_id:
        return TickDecision(cursor=cursor, done=False, message=latest)

    for reason, predicate in COMPLETION_PREDICATES:
        if predicate(latest, session):
            new_cursor = PollCursor(last_processed_message_id=latest.id, expecting_new_message=False)
            return TickDecision(cursor=new_cursor, done=True, reason=reason, message=latest)

    return TickDecision(cursor=cursor, done=False, message=latest)


def _running_task() -> Optional["asyncio.Task"]:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None


class SessionPoller:
    """Owner of the single poll loop of one chat view.

    ``start``, ``stop`` and ``reset`` are the only mutators. Starting a new
    poll always cancels the previous loop, whichever session it was for.
    Ticks of one loop run one after another; a tick that belongs to a loop
    which has since been stopped is dropped before it touches any state.
    """

    def __init__(
        self,
        client: EdenClient,
        interval: Optional[float] = None,
        on_messages: Optional[MessagesCallback] = None,
    ):
        """Initialize the session poller.

        Args:
            client: Eden client used to fetch sessions
            interval: Seconds between ticks, defaults to the configured value
            on_messages: Called with the message list after every fetch
        """
        self.client = client
        self.interval = client.settings.session_poll_interval if interval is None else interval
        self.on_messages = on_messages

        self.session_id: Optional[str] = None
        self.messages: List[SessionMessage] = []
        self.cursor = PollCursor()
        self.is_loading = False
        self.last_decision: Optional[TickDecision] = None
        self.reply: Optional[SessionMessage] = None

        self._loop_task: Optional[asyncio.Task] = None
        self._generation = 0

    @property
    def is_polling(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    async def start(self, session_id: str) -> None:
        """Poll ``session_id`` until a new assistant turn is complete."""
        self.stop()

        generation = self._generation
        self.session_id = session_id
        self.cursor = replace(self.cursor, expecting_new_message=True)
        self.reply = None
        self.is_loading = True
        logger.info(f"Started polling session {session_id}")

        await self._tick(generation)

        if generation == self._generation and self.is_loading:
            self._loop_task = asyncio.create_task(self._run(generation))

    def stop(self) -> None:
        """Cancel the poll loop, if any, and clear the loading state."""
        self._generation += 1
        task, self._loop_task = self._loop_task, None
        if task is not None and not task.done() and task is not _running_task():
            task.cancel()
        self.is_loading = False

    def reset(self) -> None:
        """Forget the session and return to the initial state."""
        self.stop()
        self.session_id = None
        self.messages = []
        self.cursor = PollCursor()
        self.last_decision = None
        self.reply = None
        logger.debug("Session poller reset")

    async def tick(self) -> Optional[TickDecision]:
        """Run one poll tick against the current loop."""
        return await self._tick(self._generation)

    async def wait(self) -> None:
        """Wait until the current poll loop has ended."""
        task = self._loop_task
        if task is not None:
            await asyncio.wait({task})

    async def _run(self, generation: int) -> None:
        while generation == self._generation:
            await asyncio.sleep(self.interval)
            if generation != self._generation:
                break
            await self._tick(generation)

    async def _tick(self, generation: int) -> Optional[TickDecision]:
        session_id = self.session_id
        if session_id is None:
            self.stop()
            return None

        try:
            session = await self.client.get_session(session_id)
        except EdenError as e:
            if generation == self._generation:
                logger.error(f"Polling session {session_id} failed, stopping: {str(e)}")
                self.stop()
            return None

        if generation != self._generation:
            logger.debug(f"Dropping stale poll result for session {session_id}")
            return None

        if session is None:
            logger.warning(f"Session {session_id} not found, stopping poll")
            self.stop()
            return None

        try:
            await self._set_messages(session.messages)
        except Exception:
            logger.exception(f"Message observer failed for session {session_id}, stopping poll")
            self.stop()
            return None
        if generation != self._generation:
            return None

        decision = evaluate_tick(self.cursor, session)
        self.last_decision = decision

        if decision.reason == CompletionReason.NOT_EXPECTING:
            logger.warning(f"Poll tick for session {session_id} while not expecting a message, stopping")
            self.stop()
        elif decision.done:
            self.cursor = decision.cursor
            self.reply = decision.message
            logger.info(
                f"Session {session_id} turn {decision.cursor.last_processed_message_id} "
                f"complete ({decision.reason.value})"
            )
            self.stop()

        return decision

    async def _set_messages(self, messages: List[SessionMessage]) -> None:
        self.messages = list(messages)
        if self.on_messages is None:
            return
        result = self.on_messages(self.messages)
        if inspect.isawaitable(result):
            await result
