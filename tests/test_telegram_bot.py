"""Tests for the Telegram front-end handlers."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from conftest import assistant_message, make_session
from eden_portal.bots.telegram_bot import TELEGRAM_MESSAGE_LIMIT, TelegramBot, split_message
from eden_portal.models.task import MediaType, Task
from eden_portal.services.session_poller import SessionPoller


@pytest.fixture
def telegram_bot(test_settings, mock_eden_client) -> TelegramBot:
    return TelegramBot(test_settings, client=mock_eden_client)


@pytest.fixture
def incoming_message() -> AsyncMock:
    """Incoming Telegram message; ``answer`` returns an editable status message."""
    message = AsyncMock()
    message.chat = MagicMock(id=42)
    message.answer.return_value = AsyncMock()
    return message


class TestTelegramBot:
    """Test generation and chat handling."""

    def test_one_chat_session_per_chat(self, telegram_bot):
        first = telegram_bot.chat_for(1)

        assert telegram_bot.chat_for(1) is first
        assert telegram_bot.chat_for(2) is not first
        assert first.agent_ids == ["agent-1"]

    @pytest.mark.asyncio
    async def test_generate_image(self, telegram_bot, mock_eden_client, incoming_message):
        mock_eden_client.create_task.return_value = "T1"
        mock_eden_client.poll_task.side_effect = [
            Task(task_id="T1", status="processing"),
            Task(task_id="T1", status="completed", creation_uri="https://cdn.test/fox.png"),
        ]

        await telegram_bot._generate(incoming_message, "a red fox", MediaType.IMAGE)

        incoming_message.answer_photo.assert_awaited_once()
        assert incoming_message.answer_photo.await_args.args[0] == "https://cdn.test/fox.png"
        incoming_message.answer.return_value.delete.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_generate_video(self, telegram_bot, mock_eden_client, incoming_message):
        mock_eden_client.create_task.return_value = "T1"
        mock_eden_client.poll_task.return_value = Task(task_id="T1", status="completed", creation_uri="https://cdn.test/v.mp4")

        await telegram_bot._generate(incoming_message, "waves", MediaType.VIDEO)

        mock_eden_client.create_task.assert_awaited_once_with("waves", MediaType.VIDEO, None)
        incoming_message.answer_video.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_generate_failed(self, telegram_bot, mock_eden_client, incoming_message):
        mock_eden_client.create_task.return_value = "T1"
        mock_eden_client.poll_task.return_value = Task(task_id="T1", status="failed")

        await telegram_bot._generate(incoming_message, "a red fox", MediaType.IMAGE)

        status_msg = incoming_message.answer.return_value
        assert "failed" in status_msg.edit_text.await_args.args[0]
        incoming_message.answer_photo.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_generate_without_prompt(self, telegram_bot, mock_eden_client, incoming_message):
        await telegram_bot._generate(incoming_message, None, MediaType.IMAGE)

        incoming_message.answer.assert_awaited_once_with("Usage: /image <prompt>")
        mock_eden_client.create_task.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_chat_relays_reply(self, telegram_bot, mock_eden_client, incoming_message):
        tool_calls = [
            {
                "id": "t1",
                "tool": "create",
                "status": "completed",
                "result": [{"output": [{"url": "https://cdn.test/out.png"}]}],
            }
        ]
        mock_eden_client.create_session.return_value = "s1"
        mock_eden_client.get_session.return_value = make_session(
            [assistant_message("m1", "Here it is", "stop", tool_calls=tool_calls)]
        )
        chat = telegram_bot.chat_for(42)
        chat.poller = SessionPoller(mock_eden_client, interval=0)

        await telegram_bot._chat(incoming_message, "draw a fox")

        status_msg = incoming_message.answer.return_value
        assert status_msg.edit_text.await_args.args[0] == "Here it is"
        incoming_message.answer.assert_any_await("https://cdn.test/out.png", parse_mode=None)
        assert chat.session_id == "s1"

    @pytest.mark.asyncio
    async def test_chat_splits_long_reply(self, telegram_bot, mock_eden_client, incoming_message):
        """Replies over Telegram's limit are edited in part and sent on in follow-ups."""
        long_reply = "a" * 5000
        mock_eden_client.create_session.return_value = "s1"
        mock_eden_client.get_session.return_value = make_session([assistant_message("m1", long_reply, "stop")])
        chat = telegram_bot.chat_for(42)
        chat.poller = SessionPoller(mock_eden_client, interval=0)

        await telegram_bot._chat(incoming_message, "write a lot")

        edited = incoming_message.answer.return_value.edit_text.await_args.args[0]
        assert len(edited) == TELEGRAM_MESSAGE_LIMIT
        incoming_message.answer.assert_any_await("a" * (5000 - TELEGRAM_MESSAGE_LIMIT), parse_mode=None)


class TestSplitMessage:
    """Test splitting replies to Telegram's message limit."""

    def test_short_text_is_one_chunk(self):
        assert split_message("hello") == ["hello"]

    def test_empty_text(self):
        assert split_message("") == []

    def test_prefers_line_breaks(self):
        text = "x" * 30 + "\n" + "y" * 30

        assert split_message(text, limit=40) == ["x" * 30, "y" * 30]

    def test_hard_split_without_line_breaks(self):
        chunks = split_message("z" * 100, limit=40)

        assert chunks == ["z" * 40, "z" * 40, "z" * 20]
        assert all(len(chunk) <= 40 for chunk in chunks)
