"""
Inventory Agent Module

The default agent: answers questions about store products and calls the
`lookupInventory` tool, which queries the catalog backend's
/api/recommend endpoint.

Usage:
    from src.agents.inventory import build_inventory_agent

    agent = build_inventory_agent()
    agent.registry.manifest()
"""

import asyncio
from typing import Any, Dict, Optional

import aiohttp

from src.config import settings
from src.logger import get_logger, summarize
from src.messages import msg
from src.realtime.tools import ToolRegistry, ToolSpec

from .profile import AgentProfile

logger = get_logger(__name__)

ANY = "any"

INVENTORY_INSTRUCTIONS = """
You are an agent who answers user questions about store products from the store inventory.
Call the "lookupInventory" tool with productName, subCategory, priceRange and brand.
Do not call the tool unless the USER explicitly asks to look for a product.
After the tool returns results, read the 'recommendations' array to finalize your answer,
giving a few options and their descriptions. If none match, politely say so.
Start the conversation with 'Hello, what are you looking for today?'
""".strip()

SUBCATEGORIES = (
    "Running", "Training", "Walking", "Sneakers", "Shorts", "Leggings", "Tops",
    "Jackets", "Hoodies", "Track Pants", "Socks", "Bags", "Hats", "Sunglasses",
    "Fitness", "Electronics", "Balls", "Rackets", "Cricket", "Basketball",
    "Rugby", "Goggles", "Swimwear", "Weights", "Cardio", "Benches",
)

LOOKUP_INVENTORY = ToolSpec(
    name="lookupInventory",
    description=(
        "Look up products in the store inventory. "
        "Provide productName, subCategory, priceRange and brand if known. "
        "Returns 'recommendations'; each has product name, short description, price, brand and SKU. "
        "Unknown parameters must have the value 'any'. "
        "Do not set values for fields the user did not explicitly mention "
        "(e.g. 'Adidas Hoodie' has productName 'any'). "
        "subCategory must be one of the categories listed in its description. "
        "If the user asks for a broad type of product (e.g. 'a fitness watch'), ask for a price range "
        "first, then look up with only subCategory and priceRange set and everything else 'any'."
    ),
    parameters={
        "type": "object",
        "properties": {
            "productName": {
                "type": "string",
                "description": "Name of product",
            },
            "subCategory": {
                "type": "string",
                "description": ", ".join(f"'{name}'" for name in SUBCATEGORIES),
            },
            "priceRange": {
                "type": "object",
                "properties": {
                    "min": {"type": "number", "description": "Minimum price"},
                    "max": {"type": "number", "description": "Maximum price"},
                },
                "required": ["min", "max"],
                "additionalProperties": False,
            },
            "brand": {
                "type": "string",
                "description": "e.g. 'Nike', 'Adidas', 'Asics', 'Reebok'",
            },
        },
        "required": ["productName", "subCategory", "priceRange", "brand"],
    },
)


def normalize_filters(arguments: Dict[str, Any]) -> Dict[str, Any]:
    """
    Fill missing text filters with the "any" sentinel.

    priceRange is passed through only when it is an object.
    """
    filters: Dict[str, Any] = {}
    for key in ("productName", "subCategory", "brand"):
        value = arguments.get(key)
        filters[key] = value if isinstance(value, str) and value.strip() else ANY
    price_range = arguments.get("priceRange")
    if isinstance(price_range, dict):
        filters["priceRange"] = price_range
    return filters


class CatalogClient:
    """
    HTTP client for the product catalog's recommend endpoint.

    Network failures are reported as an unsuccessful result instead of an
    exception, so the agent can tell the user the catalog is unavailable.
    """

    def __init__(self, endpoint: Optional[str] = None, timeout_s: Optional[float] = None):
        self._endpoint = endpoint or settings.realtime.recommend_endpoint
        self._timeout = aiohttp.ClientTimeout(total=timeout_s or settings.realtime.http_timeout_s)

    async def recommend(self, filters: Dict[str, Any]) -> Dict[str, Any]:
        try:
            async with aiohttp.ClientSession(timeout=self._timeout) as session:
                async with session.post(self._endpoint, json=filters) as response:
                    response.raise_for_status()
                    return await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            logger.error(f"Catalog lookup failed: {e}")
            return {
                "success": False,
                "recommendations": [],
                "message": msg("catalog.unavailable"),
            }


def build_inventory_agent(client: Optional[CatalogClient] = None) -> AgentProfile:
    """Create the inventory agent with its lookupInventory tool."""
    catalog = client or CatalogClient()

    async def lookup_inventory(arguments: Dict[str, Any]) -> Dict[str, Any]:
        filters = normalize_filters(arguments)
        logger.info(f"lookupInventory => {summarize(filters)}")
        result = await catalog.recommend(filters)
        count = len(result.get("recommendations") or []) if isinstance(result, dict) else 0
        logger.info(f"lookupInventory returned {count} recommendation(s)")
        return result

    registry = ToolRegistry()
    registry.register(LOOKUP_INVENTORY, lookup_inventory)

    return AgentProfile(
        name="inventoryAgent",
        public_description="Handles queries about store products.",
        instructions=INVENTORY_INSTRUCTIONS,
        registry=registry,
    )
