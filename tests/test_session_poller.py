"""Tests for session reconciliation and the session poll loop."""

import asyncio

import pytest

from conftest import assistant_message, make_session, user_message
from eden_portal.exceptions import ProtocolError, TransportError
from eden_portal.models.session import SessionMessage
from eden_portal.services.session_poller import (
    CompletionReason,
    PollCursor,
    SessionPoller,
    evaluate_tick,
)

EXPECTING = PollCursor(expecting_new_message=True)


def sessions_in_order(*sessions):
    """get_session side effect returning ``sessions`` in turn, repeating the last."""
    remaining = list(sessions)

    async def fetch(session_id):
        return remaining.pop(0) if len(remaining) > 1 else remaining[0]

    return fetch


class TestEvaluateTick:
    """Test the pure completion decision."""

    def test_stop_with_content_completes(self):
        session = make_session([user_message("u1"), assistant_message("m1", "Hello!", "stop")], status="processing")

        decision = evaluate_tick(EXPECTING, session)

        assert decision.done
        assert decision.reason == CompletionReason.STOPPED
        assert decision.cursor == PollCursor(last_processed_message_id="m1", expecting_new_message=False)
        assert decision.message.id == "m1"

    def test_stop_without_content_waits(self):
        session = make_session([assistant_message("m1", "", "stop")], status="processing")

        decision = evaluate_tick(EXPECTING, session)

        assert not decision.done
        assert decision.cursor is EXPECTING

    def test_completed_tool_calls(self):
        tool_calls = [{"id": "t1", "tool": "create", "status": "completed"}, {"id": "t2", "tool": "create", "status": "completed"}]
        session = make_session([assistant_message("m1", "", "tool_calls", tool_calls=tool_calls)], status="processing")

        decision = evaluate_tick(EXPECTING, session)

        assert decision.done
        assert decision.reason == CompletionReason.TOOL_CALLS_COMPLETED

    def test_pending_tool_call_waits_while_processing(self):
        tool_calls = [{"id": "t1", "tool": "create", "status": "completed"}, {"id": "t2", "tool": "create", "status": "pending"}]
        session = make_session([assistant_message("m1", "", "tool_calls", tool_calls=tool_calls)], status="processing")

        assert not evaluate_tick(EXPECTING, session).done

    def test_idle_session_completes_without_finish_reason(self):
        session = make_session([assistant_message("m1", "Done.")], status="", active_requests=[])

        decision = evaluate_tick(EXPECTING, session)

        assert decision.done
        assert decision.reason == CompletionReason.SESSION_IDLE

    def test_active_requests_keep_polling(self):
        session = make_session([assistant_message("m1", "Partial")], active_requests=["r1"])

        assert not evaluate_tick(EXPECTING, session).done

    def test_processing_session_keeps_polling(self):
        session = make_session([assistant_message("m1", "Partial")], status="processing")

        assert not evaluate_tick(EXPECTING, session).done

    def test_empty_message_on_idle_session_waits(self):
        session = make_session([assistant_message("m1", "")])

        assert not evaluate_tick(EXPECTING, session).done

    def test_already_processed_message_never_completes_twice(self):
        cursor = PollCursor(last_processed_message_id="m1", expecting_new_message=True)
        session = make_session([assistant_message("m1", "Hello!", "stop")])

        decision = evaluate_tick(cursor, session)

        assert not decision.done
        assert decision.cursor is cursor

    def test_no_assistant_message_yet(self):
        session = make_session([user_message("u1")])

        assert not evaluate_tick(EXPECTING, session).done

    def test_latest_assistant_message_is_used(self):
        session = make_session(
            [assistant_message("m1", "old", "stop"), user_message("u2"), assistant_message("m2", "new", "stop"), user_message("u3")]
        )

        decision = evaluate_tick(PollCursor(last_processed_message_id="m1", expecting_new_message=True), session)

        assert decision.done
        assert decision.cursor.last_processed_message_id == "m2"

    def test_not_expecting_stops_without_touching_cursor(self):
        cursor = PollCursor(last_processed_message_id="m0", expecting_new_message=False)
        session = make_session([assistant_message("m1", "Hello!", "stop")])

        decision = evaluate_tick(cursor, session)

        assert decision.done
        assert decision.reason == CompletionReason.NOT_EXPECTING
        assert decision.cursor is cursor


class TestSessionPoller:
    """Test the poll loop lifecycle."""

    @pytest.mark.asyncio
    async def test_stops_only_when_message_finishes(self, mock_eden_client):
        """An unchanged message keeps the loop alive until it reports stop with content."""
        pending = make_session([user_message("u1"), assistant_message("m1")], status="processing")
        finished = make_session([user_message("u1"), assistant_message("m1", "Here you go", "stop")], status="processing")
        mock_eden_client.get_session.side_effect = sessions_in_order(pending, pending, finished)
        poller = SessionPoller(mock_eden_client, interval=0)

        await poller.start("s1")
        await poller.wait()

        assert mock_eden_client.get_session.await_count == 3
        assert poller.cursor.last_processed_message_id == "m1"
        assert not poller.cursor.expecting_new_message
        assert not poller.is_loading
        assert not poller.is_polling
        assert poller.reply.content == "Here you go"
        assert [message.id for message in poller.messages] == ["u1", "m1"]

    @pytest.mark.asyncio
    async def test_immediate_completion_arms_no_loop(self, mock_eden_client):
        mock_eden_client.get_session.side_effect = sessions_in_order(
            make_session([assistant_message("m1", "Hi", "stop")])
        )
        poller = SessionPoller(mock_eden_client, interval=0)

        await poller.start("s1")

        assert mock_eden_client.get_session.await_count == 1
        assert not poller.is_polling
        assert poller.reply.id == "m1"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [TransportError("down"), ProtocolError("no session")])
    async def test_fetch_error_fails_closed(self, mock_eden_client, error):
        pending = make_session([assistant_message("m1")], status="processing")
        calls = []

        async def fetch(session_id):
            calls.append(session_id)
            if len(calls) == 2:
                raise error
            return pending

        mock_eden_client.get_session.side_effect = fetch
        poller = SessionPoller(mock_eden_client, interval=0)

        await poller.start("s1")
        await poller.wait()

        assert len(calls) == 2
        assert not poller.is_loading
        assert poller.cursor == EXPECTING
        assert poller.reply is None

    @pytest.mark.asyncio
    async def test_missing_session_stops(self, mock_eden_client):
        mock_eden_client.get_session.return_value = None
        poller = SessionPoller(mock_eden_client, interval=0)

        await poller.start("gone")

        assert not poller.is_loading
        assert not poller.is_polling
        assert poller.messages == []

    @pytest.mark.asyncio
    async def test_observer_sees_every_fetch(self, mock_eden_client):
        pending = make_session([user_message("u1")], status="processing")
        finished = make_session([user_message("u1"), assistant_message("m1", "Hi", "stop")])
        mock_eden_client.get_session.side_effect = sessions_in_order(pending, finished)
        seen = []

        async def on_messages(messages):
            seen.append([message.id for message in messages])

        poller = SessionPoller(mock_eden_client, interval=0, on_messages=on_messages)

        await poller.start("s1")
        await poller.wait()

        assert seen == [["u1"], ["u1", "m1"]]

    @pytest.mark.asyncio
    async def test_failing_observer_stops_poll(self, mock_eden_client):
        mock_eden_client.get_session.side_effect = sessions_in_order(
            make_session([assistant_message("m1")], status="processing")
        )

        def on_messages(messages):
            raise RuntimeError("render failed")

        poller = SessionPoller(mock_eden_client, interval=0, on_messages=on_messages)

        await poller.start("s1")

        assert not poller.is_loading
        assert not poller.is_polling

    @pytest.mark.asyncio
    async def test_start_cancels_previous_loop(self, mock_eden_client):
        endless = make_session([assistant_message("m1")], session_id="s1", status="processing")
        finished = make_session([assistant_message("m9", "Done", "stop")], session_id="s2")

        async def fetch(session_id):
            return endless if session_id == "s1" else finished

        mock_eden_client.get_session.side_effect = fetch
        poller = SessionPoller(mock_eden_client, interval=0.01)

        await poller.start("s1")
        first_loop = poller._loop_task
        assert poller.is_polling

        await poller.start("s2")
        await asyncio.wait({first_loop})

        assert first_loop.cancelled()
        assert poller.session_id == "s2"
        assert poller.reply.id == "m9"
        assert not poller.is_polling

    @pytest.mark.asyncio
    async def test_stale_tick_is_dropped(self, mock_eden_client):
        release = asyncio.Event()
        fetched = asyncio.Event()

        async def fetch(session_id):
            fetched.set()
            await release.wait()
            return make_session([assistant_message("m1", "Late", "stop")])

        mock_eden_client.get_session.side_effect = fetch
        poller = SessionPoller(mock_eden_client, interval=0)
        poller.session_id = "s1"
        poller.cursor = EXPECTING

        in_flight = asyncio.create_task(poller.tick())
        await fetched.wait()
        poller.stop()
        release.set()

        assert await in_flight is None
        assert poller.messages == []
        assert poller.cursor == EXPECTING

    @pytest.mark.asyncio
    async def test_next_turn_needs_a_new_message(self, mock_eden_client):
        first = make_session([assistant_message("m1", "One", "stop")])
        second = make_session([assistant_message("m1", "One", "stop"), user_message("u2"), assistant_message("m2", "Two", "stop")])
        mock_eden_client.get_session.side_effect = sessions_in_order(first, first, first, second)
        poller = SessionPoller(mock_eden_client, interval=0)

        await poller.start("s1")
        assert poller.reply.id == "m1"

        await poller.start("s1")
        await poller.wait()

        assert poller.reply.id == "m2"
        assert poller.cursor.last_processed_message_id == "m2"
        assert mock_eden_client.get_session.await_count == 4

    @pytest.mark.asyncio
    async def test_reset(self, mock_eden_client):
        mock_eden_client.get_session.side_effect = sessions_in_order(
            make_session([assistant_message("m1", "Hi", "stop")])
        )
        poller = SessionPoller(mock_eden_client, interval=0)
        await poller.start("s1")

        poller.reset()

        assert poller.session_id is None
        assert poller.messages == []
        assert poller.cursor == PollCursor()
        assert poller.reply is None
        assert not poller.is_loading

    @pytest.mark.asyncio
    async def test_tick_without_session(self, mock_eden_client):
        poller = SessionPoller(mock_eden_client, interval=0)

        assert await poller.tick() is None
        mock_eden_client.get_session.assert_not_awaited()


class TestSessionMessage:
    """Test that session messages dump with the keys Eden sent."""

    def test_alternate_keys_round_trip(self):
        message = SessionMessage.model_validate(
            {"_id": "m1", "role": "assistant", "session": "s1", "thought": "hmm", "createdAt": "2024-01-01"}
        )

        assert message.session_id == "s1"
        assert message.thinking == "hmm"

        dumped = message.model_dump(by_alias=True)
        assert dumped["session"] == "s1"
        assert dumped["thought"] == "hmm"
        assert "session_id" not in dumped
        assert "thinking" not in dumped
        assert dumped["_id"] == "m1"
        assert dumped["createdAt"] == "2024-01-01"

    def test_primary_keys_round_trip(self):
        message = SessionMessage.model_validate({"_id": "m1", "session_id": "s1", "thinking": "hmm"})

        dumped = message.model_dump(by_alias=True)

        assert dumped["session_id"] == "s1"
        assert dumped["thinking"] == "hmm"
        assert "session" not in dumped

    def test_nested_in_session(self):
        session = make_session([assistant_message("m1", "Hi", "stop", thought="hmm")])

        dumped = session.model_dump(by_alias=True)

        assert dumped["messages"][0]["thought"] == "hmm"
        assert session.messages[0].model_dump()["thinking"] == "hmm"
