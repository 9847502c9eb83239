"""
Agent Profile Module

An agent profile bundles what the session sends to the realtime service
(instructions and tool manifest) with the local tool implementations.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List

from src.realtime.tools import ToolRegistry, ToolSpec


@dataclass
class AgentProfile:
    """
    Configuration of one conversational agent.

    Attributes:
        name: Short identifier
        public_description: One-line summary for humans
        instructions: System instructions sent in session.update
        registry: Tools the agent may call
    """
    name: str
    public_description: str
    instructions: str
    registry: ToolRegistry = field(default_factory=ToolRegistry)

    @property
    def tools(self) -> List[ToolSpec]:
        return self.registry.specs()

    def describe(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.public_description,
            "tools": [spec.name for spec in self.tools],
        }
