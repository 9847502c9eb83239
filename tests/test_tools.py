"""
Tests for the tool registry and invoker.
"""

import json

import pytest

from src.realtime.errors import ArgumentParseError
from src.realtime.tools import ToolInvoker, ToolRegistry, ToolSpec, parse_arguments

from tests.conftest import RecordingSender


class TestToolRegistry:
    """Tests for ToolRegistry."""

    def test_manifest_in_registration_order(self):
        """Manifest lists tools as function specs, in order."""
        registry = ToolRegistry()

        async def noop(arguments):
            return None

        registry.register(ToolSpec("b", "second"), noop)
        registry.register(ToolSpec("a", "first"), noop)

        manifest = registry.manifest()
        assert [t["name"] for t in manifest] == ["b", "a"]
        assert all(t["type"] == "function" for t in manifest)
        assert manifest[0]["parameters"] == {"type": "object", "properties": {}}

    def test_duplicate_name_rejected(self, echo_registry):
        """Tool names are unique."""
        async def other(arguments):
            return None

        with pytest.raises(ValueError, match="already registered"):
            echo_registry.register(ToolSpec("echo", "again"), other)

    def test_lookup(self, echo_registry):
        assert "echo" in echo_registry
        assert echo_registry.get("missing") is None
        assert len(echo_registry) == 1


class TestParseArguments:
    """Tests for parse_arguments()."""

    def test_valid_object(self):
        assert parse_arguments("t", '{"brand": "Nike"}') == {"brand": "Nike"}

    @pytest.mark.parametrize("raw", ["{not json", "[1]", '"text"', None])
    def test_invalid(self, raw):
        """Anything but a JSON object is rejected."""
        with pytest.raises(ArgumentParseError) as exc:
            parse_arguments("lookupInventory", raw)
        assert exc.value.tool_name == "lookupInventory"


class TestToolInvoker:
    """Tests for ToolInvoker."""

    @pytest.mark.asyncio
    async def test_success_sends_output_then_response(self, echo_registry):
        """A result is sent first, then exactly one response.create."""
        sender = RecordingSender()
        invoker = ToolInvoker(echo_registry, sender)

        assert await invoker.invoke("echo", '{"x": 1}', "call_1") is True

        assert sender.types() == ["conversation.item.create", "response.create"]
        item = sender.messages[0]["item"]
        assert item["type"] == "function_call_output"
        assert item["call_id"] == "call_1"
        assert json.loads(item["output"]) == {"echo": {"x": 1}}
        assert invoker.stats == {"completed": 1, "dropped": 0}

    @pytest.mark.asyncio
    async def test_bad_arguments_dropped(self, echo_registry):
        """Unparseable arguments send nothing."""
        sender = RecordingSender()
        invoker = ToolInvoker(echo_registry, sender)

        assert await invoker.invoke("echo", "{oops", "call_2") is False
        assert sender.messages == []
        assert invoker.stats["dropped"] == 1

    @pytest.mark.asyncio
    async def test_unknown_tool_dropped(self, echo_registry):
        """Unregistered tools send nothing."""
        sender = RecordingSender()
        invoker = ToolInvoker(echo_registry, sender)

        assert await invoker.invoke("transferToHuman", "{}", "call_3") is False
        assert sender.messages == []

    @pytest.mark.asyncio
    async def test_handler_failure_dropped(self):
        """A raising handler sends nothing."""
        registry = ToolRegistry()

        async def broken(arguments):
            raise RuntimeError("catalog exploded")

        registry.register(ToolSpec("broken", "fails"), broken)
        sender = RecordingSender()
        invoker = ToolInvoker(registry, sender)

        assert await invoker.invoke("broken", "{}", "call_4") is False
        assert sender.messages == []

    @pytest.mark.asyncio
    async def test_closed_channel_skips_response_create(self, echo_registry):
        """No response.create when the output could not be sent."""
        sender = RecordingSender(open_=False)
        invoker = ToolInvoker(echo_registry, sender)

        assert await invoker.invoke("echo", "{}", "call_5") is False
        assert sender.messages == []
