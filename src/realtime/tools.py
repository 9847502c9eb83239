"""
Tool Invocation Module

Registry of locally implemented tools and the invoker that runs them when
the remote agent asks for a function call.

A successful call produces exactly two outbound messages, in order: the
function_call_output item correlated by call id, then response.create so
the agent continues using the result.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional

from src.logger import get_logger, summarize

from .errors import ArgumentParseError, UnknownToolError
from .events import function_call_output, response_create

logger = get_logger(__name__)

ToolHandler = Callable[[Dict[str, Any]], Awaitable[Any]]
Sender = Callable[[Dict[str, Any]], bool]


@dataclass
class ToolSpec:
    """Description of a tool as advertised to the remote agent."""
    name: str
    description: str
    parameters: Dict[str, Any] = field(default_factory=lambda: {"type": "object", "properties": {}})

    def to_dict(self) -> Dict[str, Any]:
        """Wire form used in the session tool manifest."""
        return {
            "type": "function",
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters,
        }


class ToolRegistry:
    """
    Ordered registry of tools by name.

    Usage:
        registry = ToolRegistry()
        registry.register(ToolSpec("lookupInventory", "..."), lookup_inventory)
        registry.manifest()  # [{"type": "function", "name": "lookupInventory", ...}]
    """

    def __init__(self) -> None:
        self._specs: Dict[str, ToolSpec] = {}
        self._handlers: Dict[str, ToolHandler] = {}

    def register(self, spec: ToolSpec, handler: ToolHandler) -> None:
        """Register a tool. Names must be unique."""
        if spec.name in self._specs:
            raise ValueError(f"Tool '{spec.name}' is already registered")
        self._specs[spec.name] = spec
        self._handlers[spec.name] = handler

    def get(self, name: str) -> Optional[ToolHandler]:
        return self._handlers.get(name)

    def specs(self) -> List[ToolSpec]:
        return list(self._specs.values())

    def manifest(self) -> List[Dict[str, Any]]:
        """Tool manifest in registration order."""
        return [spec.to_dict() for spec in self._specs.values()]

    def __contains__(self, name: object) -> bool:
        return name in self._specs

    def __len__(self) -> int:
        return len(self._specs)


def parse_arguments(name: str, raw_arguments: str) -> Dict[str, Any]:
    """
    Parse the JSON argument string of a tool call.

    Raises:
        ArgumentParseError: If the arguments are not a JSON object
    """
    try:
        parsed = json.loads(raw_arguments)
    except (TypeError, json.JSONDecodeError) as e:
        raise ArgumentParseError(name, str(raw_arguments), str(e)) from e
    if not isinstance(parsed, dict):
        raise ArgumentParseError(name, raw_arguments, "expected a JSON object")
    return parsed


class ToolInvoker:
    """
    Executes registered tools on behalf of the remote agent.

    The invoker only holds a send callable, never the connection. Sends
    made after the channel closed are dropped by that callable.
    """

    def __init__(self, registry: ToolRegistry, send: Sender):
        self._registry = registry
        self._send = send
        self._completed = 0
        self._dropped = 0

    @property
    def registry(self) -> ToolRegistry:
        return self._registry

    async def invoke(self, name: str, raw_arguments: str, call_id: str) -> bool:
        """
        Run a tool and send its result back over the control channel.

        Args:
            name: Tool name requested by the agent
            raw_arguments: JSON-encoded argument object
            call_id: Correlation id supplied by the agent

        Returns:
            True if a result was produced and handed to the channel
        """
        try:
            arguments = parse_arguments(name, raw_arguments)
            handler = self._registry.get(name)
            if handler is None:
                raise UnknownToolError(name)
        except ArgumentParseError as e:
            self._dropped += 1
            logger.error(f"Dropping tool call {call_id}: {e}")
            return False
        except UnknownToolError as e:
            self._dropped += 1
            logger.warning(f"{e} (call {call_id})")
            return False

        logger.info(f"Tool call {name} ({call_id}) => {summarize(arguments)}")

        try:
            result = await handler(arguments)
        except Exception:
            self._dropped += 1
            logger.exception(f"Tool '{name}' failed for call {call_id}")
            return False

        logger.debug(f"Tool result {name} ({call_id}) => {summarize(result)}")

        sent = self._send(function_call_output(call_id, result))
        if sent:
            self._send(response_create())
        else:
            logger.info(f"Channel closed before result of {name} ({call_id}) could be sent")
        self._completed += 1
        return sent

    @property
    def stats(self) -> Dict[str, int]:
        return {"completed": self._completed, "dropped": self._dropped}
