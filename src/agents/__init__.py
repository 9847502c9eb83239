"""
Agents Package

Agent profiles: instructions plus the tools an agent may call.
"""

from src.agents.profile import AgentProfile
from src.agents.inventory import CatalogClient, build_inventory_agent

__all__ = [
    "AgentProfile",
    "CatalogClient",
    "build_inventory_agent",
]
