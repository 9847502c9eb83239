"""
Realtime Inventory Voice Agent - Source Package

A voice-and-text shopping assistant built on the OpenAI Realtime API
over WebRTC, with a product-catalog tool backed by a CSV inventory.

This package provides:
- Realtime session control (transport, configuration, event dispatch)
- Incrementally built conversation transcript
- Tool calling with an inventory lookup tool
- A small backend issuing ephemeral credentials and recommendations
- CLI interface for interaction
"""

__version__ = "1.0.0"

from src.config import settings

__all__ = ["settings", "__version__"]
