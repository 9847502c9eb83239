"""
Tests for the Event Dispatcher

Drives the dispatcher with raw control channel messages and checks the
transcript and the outbound messages.
"""

import json

import pytest

from src.realtime.dispatcher import EventDispatcher
from src.realtime.tools import ToolInvoker
from src.realtime.transcript import Role, TranscriptStore

from tests.conftest import RecordingSender


def user_delta(item_id, delta):
    return {"type": "conversation.item.input_audio_transcription.delta", "item_id": item_id, "delta": delta}


def user_completed(item_id, transcript):
    return {"type": "conversation.item.input_audio_transcription.completed", "item_id": item_id, "transcript": transcript}


def assistant_delta(item_id, delta):
    return {"type": "response.audio_transcript.delta", "item_id": item_id, "delta": delta}


def function_call_done(name, arguments, call_id):
    return {
        "type": "response.done",
        "response": {
            "id": "resp_1",
            "status": "completed",
            "output": [{"type": "function_call", "name": name, "arguments": arguments, "call_id": call_id}],
        },
    }


@pytest.fixture
def harness(echo_registry):
    sender = RecordingSender()
    store = TranscriptStore()
    invoker = ToolInvoker(echo_registry, sender)
    dispatcher = EventDispatcher(store, invoker, sender, sender.is_open)
    return dispatcher, store, sender


class TestTranscriptRouting:
    """Tests for transcript-building events."""

    @pytest.mark.asyncio
    async def test_user_deltas_then_completed(self, harness):
        """Deltas build the entry; completion replaces it and asks for a response."""
        dispatcher, store, sender = harness

        await dispatcher.dispatch(json.dumps(user_delta("u1", "Hel")))
        await dispatcher.dispatch(json.dumps(user_delta("u1", "lo")))
        assert store.get("u1").text == "Hello"

        await dispatcher.dispatch(json.dumps(user_completed("u1", "Hello")))

        entries = store.ordered_entries()
        assert len(entries) == 1
        assert entries[0].role is Role.USER
        assert entries[0].text == "Hello"
        assert sender.types() == ["response.create"]

    @pytest.mark.asyncio
    async def test_blank_transcript_placeholder(self, harness):
        """Whitespace-only transcripts become [inaudible]."""
        dispatcher, store, sender = harness

        await dispatcher.dispatch(user_completed("u2", "   "))

        assert store.get("u2").text == "[inaudible]"
        assert store.get("u2").role is Role.USER
        assert sender.types() == ["response.create"]

    @pytest.mark.asyncio
    async def test_completed_replaces_deltas(self, harness):
        """The final transcript wins over accumulated deltas."""
        dispatcher, store, _ = harness

        await dispatcher.dispatch(user_delta("u3", "Helo"))
        await dispatcher.dispatch(user_completed("u3", "Hello"))

        assert store.get("u3").text == "Hello"

    @pytest.mark.asyncio
    async def test_completed_while_closed_sends_nothing(self, echo_registry):
        """response.create is only sent while the channel is open."""
        sender = RecordingSender(open_=False)
        store = TranscriptStore()
        dispatcher = EventDispatcher(store, ToolInvoker(echo_registry, sender), sender, sender.is_open)

        await dispatcher.dispatch(user_completed("u4", "Hi"))

        assert store.get("u4").text == "Hi"
        assert sender.messages == []

    @pytest.mark.asyncio
    async def test_assistant_deltas(self, harness):
        """Assistant deltas append to an assistant entry."""
        dispatcher, store, sender = harness

        for chunk in ["We have ", "**Pegasus 41**", "."]:
            await dispatcher.dispatch(assistant_delta("a1", chunk))

        entry = store.get("a1")
        assert entry.role is Role.ASSISTANT
        assert entry.text == "We have **Pegasus 41**."
        assert sender.messages == []

    @pytest.mark.asyncio
    async def test_item_created_text(self, harness):
        """A created item with text becomes an entry."""
        dispatcher, store, _ = harness

        await dispatcher.dispatch({
            "type": "conversation.item.created",
            "item": {"id": "user_1", "role": "user", "content": [{"type": "input_text", "text": "Hi"}]},
        })
        await dispatcher.dispatch({
            "type": "conversation.item.created",
            "item": {"id": "user_1", "role": "user", "content": [{"type": "input_text", "text": "Hi again"}]},
        })

        assert len(store) == 1
        assert store.get("user_1").text == "Hi again"

    @pytest.mark.asyncio
    async def test_item_created_without_text_ignored(self, harness):
        """Audio items without inline text wait for transcription."""
        dispatcher, store, _ = harness

        await dispatcher.dispatch({
            "type": "conversation.item.created",
            "item": {"id": "u5", "role": "user", "content": [{"type": "input_audio"}]},
        })
        await dispatcher.dispatch({
            "type": "conversation.item.created",
            "item": {"id": "fc1", "type": "function_call", "content": [{"text": "x"}]},
        })

        assert len(store) == 0

    @pytest.mark.asyncio
    async def test_interleaved_entries_keep_creation_order(self, harness):
        """Entries stay in first-seen order while updates interleave."""
        dispatcher, store, _ = harness

        await dispatcher.dispatch(user_delta("u1", "Any "))
        await dispatcher.dispatch(assistant_delta("a1", "Sure"))
        await dispatcher.dispatch(user_delta("u1", "shoes?"))

        assert [e.id for e in store.ordered_entries()] == ["u1", "a1"]
        assert store.get("u1").text == "Any shoes?"


class TestToolRouting:
    """Tests for function calls in response.done."""

    @pytest.mark.asyncio
    async def test_function_call_round_trip(self, harness):
        """One output then one response.create per call."""
        dispatcher, _, sender = harness

        await dispatcher.dispatch(function_call_done("echo", '{"brand": "Nike"}', "call_1"))
        await dispatcher.drain_tool_calls()

        assert sender.types() == ["conversation.item.create", "response.create"]
        item = sender.messages[0]["item"]
        assert item["call_id"] == "call_1"
        assert json.loads(item["output"]) == {"echo": {"brand": "Nike"}}
        assert dispatcher.pending_tool_calls == 0

    @pytest.mark.asyncio
    async def test_unknown_tool_sends_nothing(self, harness):
        """Unknown tools are dropped."""
        dispatcher, _, sender = harness

        await dispatcher.dispatch(function_call_done("nope", "{}", "call_2"))
        await dispatcher.drain_tool_calls()

        assert sender.messages == []

    @pytest.mark.asyncio
    async def test_bad_arguments_then_next_event(self, harness):
        """A bad tool call does not stop later events."""
        dispatcher, store, sender = harness

        await dispatcher.dispatch(function_call_done("echo", "{broken", "call_3"))
        await dispatcher.drain_tool_calls()
        await dispatcher.dispatch(assistant_delta("a1", "Still here"))

        assert sender.messages == []
        assert store.get("a1").text == "Still here"


class TestIgnoredEvents:
    """Tests for events that do not change state."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [
        {"type": "session.created", "session": {}},
        {"type": "response.audio.delta", "delta": "AAAA"},
        {"type": "error", "error": {"message": "oops"}},
        {"type": "conversation.item.input_audio_transcription.delta", "delta": "no id"},
    ])
    async def test_no_side_effects(self, harness, payload):
        dispatcher, store, sender = harness

        await dispatcher.dispatch(payload)

        assert len(store) == 0
        assert sender.messages == []

    @pytest.mark.asyncio
    async def test_malformed_json_then_valid(self, harness):
        """A malformed message is skipped and the next one processed."""
        dispatcher, store, _ = harness

        await dispatcher.dispatch("{this is not json")
        await dispatcher.dispatch(user_delta("u1", "ok"))

        assert store.get("u1").text == "ok"
        assert dispatcher.stats["events"] == 2
        assert dispatcher.stats["ignored"] == 1
