import pytest

from aether_chat.ai.actions import ActionDescriptor
from aether_chat.ai.stream import StreamConsumer, TurnSink
from aether_chat.core.models import FunctionCall, StreamChunk
from aether_chat.errors import AuthenticationError, BackendError
from helpers import ScriptedStreamClient, call, text


class RecordingSink(TurnSink):
    def __init__(self) -> None:
        self.events: list[tuple[str, object]] = []

    def on_text(self, delta: str) -> None:
        self.events.append(("text", delta))

    def on_action(self, descriptor: ActionDescriptor) -> None:
        self.events.append(("action", descriptor))


class TestStreamConsumer:

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "deltas",
        [[], ["Hello"], ["Hel", "lo", ", ", "world"], ["a"] * 30],
    )
    async def test_text_is_concatenation_of_deltas(self, plain_bot, deltas):
        client = ScriptedStreamClient([text(d) for d in deltas])
        sink = RecordingSink()

        result = await StreamConsumer(client).consume(plain_bot, [], "hi", sink)

        assert result.text == "".join(deltas)
        assert [e[1] for e in sink.events] == deltas
        assert result.action is None

    @pytest.mark.asyncio
    async def test_first_call_wins(self, support_bot):
        client = ScriptedStreamClient(
            [text("Let me "), call("X"), text("ignored"), call("call"), text("also ignored")]
        )
        sink = RecordingSink()

        result = await StreamConsumer(client).consume(support_bot, [], "whatsapp please", sink)

        assert result.text == "Let me "
        assert result.action.action_id == "X"
        assert result.ignored_chunks == 3
        assert [kind for kind, _ in sink.events] == ["text", "action"]

    @pytest.mark.asyncio
    async def test_text_in_same_chunk_as_call_is_ignored(self, support_bot):
        chunk = StreamChunk(text_delta="noise", function_call=FunctionCall("trigger_action", {"action_id": "X"}))
        sink = RecordingSink()

        result = await StreamConsumer(ScriptedStreamClient([chunk])).consume(support_bot, [], "hi", sink)

        assert result.text == ""
        assert sink.events == [("action", result.action)]

    @pytest.mark.asyncio
    async def test_other_function_names_still_count_as_the_call(self, support_bot):
        client = ScriptedStreamClient([call("X", name="something_else"), text("ignored")])

        result = await StreamConsumer(client).consume(support_bot, [], "hi", RecordingSink())

        assert result.action.action_id == "X"
        assert result.text == ""

    @pytest.mark.asyncio
    async def test_unclassified_errors_become_backend_errors(self, plain_bot):
        client = ScriptedStreamClient([text("part")], error=ConnectionResetError("socket closed"))

        with pytest.raises(BackendError):
            await StreamConsumer(client).consume(plain_bot, [], "hi", RecordingSink())
        assert client.closed == 1

    @pytest.mark.asyncio
    async def test_classified_errors_pass_through(self, plain_bot):
        client = ScriptedStreamClient(error=AuthenticationError("token expired"))

        with pytest.raises(AuthenticationError):
            await StreamConsumer(client).consume(plain_bot, [], "hi", RecordingSink())

    @pytest.mark.asyncio
    async def test_stream_is_closed_after_completion(self, plain_bot):
        client = ScriptedStreamClient([text("a"), text("b")])

        await StreamConsumer(client).consume(plain_bot, [], "hi", RecordingSink())

        assert client.opened == client.closed == 1
