import asyncio

import pytest

from aether_chat.core.history import CONTEXT_WINDOW
from aether_chat.core.session import SessionManager
from aether_chat.core.state import FALLBACK_MESSAGE
from aether_chat.core.types import Role
from aether_chat.errors import AuthenticationError, BackendError, ConfigurationError
from helpers import ScriptedStreamClient, call, text, wait_for


class TestChatSession:

    @pytest.mark.asyncio
    async def test_plain_reply(self, make_session, plain_bot):
        session = make_session(plain_bot, ScriptedStreamClient([text("Hi "), text("there!")]))

        reply = await session.send("hello")

        assert reply.role == Role.MODEL
        assert reply.text == "Hi there!"
        assert not reply.streaming
        assert not session.is_streaming
        assert [m.role for m in session.messages] == [Role.MODEL, Role.USER, Role.MODEL]

    @pytest.mark.asyncio
    async def test_action_call_without_text(self, make_session, support_bot):
        session = make_session(support_bot, ScriptedStreamClient([call("X")]))

        reply = await session.send("Can I message you on WhatsApp?")

        assert reply.text == "Opening WhatsApp..."
        assert reply.action_invoked == "X"
        assert not reply.streaming

    @pytest.mark.asyncio
    async def test_unknown_action_is_recorded(self, make_session, support_bot):
        session = make_session(support_bot, ScriptedStreamClient([text("ok"), call("nope"), text("late")]))

        reply = await session.send("do something")

        assert reply.text == "I've triggered the requested action for you."
        assert reply.action_invoked == "nope"

    @pytest.mark.asyncio
    async def test_backend_failure_mid_stream(self, make_session, plain_bot, notifier):
        client = ScriptedStreamClient([text("Partial ans")], error=BackendError("502 from upstream"))
        session = make_session(plain_bot, client)

        reply = await session.send("hello")

        assert reply.text == FALLBACK_MESSAGE
        assert not reply.streaming
        assert not session.is_streaming
        assert notifier.notifications == [(BackendError.category, BackendError.user_message)]

    @pytest.mark.asyncio
    async def test_unexpected_exception_is_contained(self, make_session, plain_bot, notifier):
        session = make_session(plain_bot, ScriptedStreamClient(error=KeyError("boom")))

        reply = await session.send("hello")

        assert reply.text == FALLBACK_MESSAGE
        assert notifier.notifications[0][0] == "Connection Error"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [AuthenticationError("expired"), ConfigurationError("no base url")])
    async def test_errors_are_reported_by_category(self, make_session, plain_bot, notifier, error):
        session = make_session(plain_bot, ScriptedStreamClient(error=error))

        reply = await session.send("hello")

        assert reply.text == FALLBACK_MESSAGE
        assert notifier.notifications == [(error.category, error.user_message)]

    @pytest.mark.asyncio
    async def test_empty_stream_gets_fallback(self, make_session, plain_bot):
        session = make_session(plain_bot, ScriptedStreamClient([]))

        reply = await session.send("hello")

        assert reply.text == FALLBACK_MESSAGE

    @pytest.mark.asyncio
    async def test_second_submission_is_rejected_while_streaming(self, make_session, plain_bot):
        client = ScriptedStreamClient([text("one"), text(" two")], block_after=1)
        session = make_session(plain_bot, client)

        first = session.submit("first")
        await wait_for(lambda: session.messages[-1].text == "one")

        assert session.submit("second") is None
        assert await session.send("third") is None

        client.release.set()
        reply = await first

        assert reply.text == "one two"
        assert client.opened == 1
        assert [m.text for m in session.messages if m.role == Role.USER] == ["first"]

    @pytest.mark.asyncio
    async def test_blank_input_is_ignored(self, make_session, plain_bot):
        client = ScriptedStreamClient([text("x")])
        session = make_session(plain_bot, client)

        assert await session.send("   ") is None
        assert client.opened == 0
        assert len(session.messages) == 1

    @pytest.mark.asyncio
    async def test_context_is_bounded_and_excludes_new_text(self, make_session, plain_bot):
        client = ScriptedStreamClient([text("ok")])
        session = make_session(plain_bot, client)

        for i in range(8):
            await session.send(f"question {i}")

        for _, history, new_text in client.calls:
            assert len(history) <= CONTEXT_WINDOW
            assert all(m.text != new_text for m in history if m.role == Role.USER)
            assert not any(m.streaming for m in history)
        assert len(client.calls[-1][1]) == CONTEXT_WINDOW

    @pytest.mark.asyncio
    async def test_cancel_keeps_partial_text(self, make_session, plain_bot):
        client = ScriptedStreamClient([text("Half an "), text("answer")], block_after=1)
        session = make_session(plain_bot, client)

        task = session.submit("hello")
        await wait_for(lambda: session.messages[-1].text == "Half an ")
        await session.cancel()

        assert task.cancelled()
        assert session.messages[-1].text == "Half an "
        assert not session.messages[-1].streaming
        assert client.closed == 1

    @pytest.mark.asyncio
    async def test_cancel_before_first_chunk(self, make_session, plain_bot):
        session = make_session(plain_bot, ScriptedStreamClient([text("x")], block_after=0))

        session.submit("hello")
        await session.cancel()

        assert session.messages[-1].text == FALLBACK_MESSAGE
        assert not session.is_streaming

    @pytest.mark.asyncio
    async def test_cancel_without_turn_is_a_no_op(self, make_session, plain_bot):
        session = make_session(plain_bot, ScriptedStreamClient())

        await session.cancel()
        await session.close()

        assert len(session.messages) == 1

    @pytest.mark.asyncio
    async def test_switch_bot_while_streaming(self, make_session, support_bot, sales_bot):
        client = ScriptedStreamClient([text("From A"), text(" more from A")], block_after=1)
        session = make_session(support_bot, client)

        task = session.submit("hello")
        await wait_for(lambda: session.messages[-1].text == "From A")
        await session.switch_bot(sales_bot)
        client.release.set()
        await asyncio.sleep(0)

        assert task.cancelled()
        assert session.bot is sales_bot
        assert len(session.messages) == 1
        assert session.messages[0].text == sales_bot.greeting
        assert client.closed == 1

    @pytest.mark.asyncio
    async def test_session_keeps_bot_snapshot(self, make_session, support_bot):
        session = make_session(support_bot, ScriptedStreamClient([call("X")]))
        edited = support_bot.model_copy(update={"actions": ()})

        reply = await session.send("whatsapp")

        assert edited.actions == ()
        assert reply.text == "Opening WhatsApp..."


class TestSessionManager:

    @pytest.mark.asyncio
    async def test_open_reuses_session(self, make_session, plain_bot):
        manager = SessionManager(lambda bot: make_session(bot, ScriptedStreamClient()))

        first = manager.open("site", "visitor-1", plain_bot)
        again = manager.open("site", "visitor-1", plain_bot)
        other = manager.open("site", "visitor-2", plain_bot)

        assert first is again
        assert other is not first
        assert len(manager) == 2

    @pytest.mark.asyncio
    async def test_close_all_cancels_open_turns(self, make_session, plain_bot):
        client = ScriptedStreamClient([text("x"), text("y")], block_after=1)
        manager = SessionManager(lambda bot: make_session(bot, client))
        session = manager.open("site", "visitor-1", plain_bot)

        task = session.submit("hello")
        await wait_for(lambda: session.messages[-1].text == "x")
        await manager.close_all()

        assert task.cancelled()
        assert len(manager) == 0
        assert manager.get("site", "visitor-1") is None
