"""
FastAPI Backend Server

Collaborator services for the realtime voice client:
- GET  /api/session    mint an ephemeral Realtime API credential
- POST /api/recommend  filter the product inventory
- GET  /api/health     liveness
"""

import asyncio
import time
from collections import defaultdict
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional, Union

import aiohttp
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.middleware.base import BaseHTTPMiddleware

from src.config import settings
from src.logger import get_logger, init_logging, summarize
from src.messages import msg
from src.services.catalog import ANY, InventoryCatalog, InventoryFilter

logger = get_logger(__name__)


# Pydantic models for API
class PriceRange(BaseModel):
    # Bounds may be "any" or missing; only numeric bounds filter
    min: Optional[Union[float, str]] = None
    max: Optional[Union[float, str]] = None

    @staticmethod
    def _bound(value: Any) -> Optional[float]:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return float(value)
        return None

    @property
    def lower(self) -> Optional[float]:
        return self._bound(self.min)

    @property
    def upper(self) -> Optional[float]:
        return self._bound(self.max)


class RecommendRequest(BaseModel):
    productName: str = ANY
    subCategory: str = ANY
    brand: str = ANY
    shortDescription: str = ANY
    priceRange: Optional[PriceRange] = None

    def to_filter(self) -> InventoryFilter:
        price = self.priceRange or PriceRange()
        return InventoryFilter(
            product_name=self.productName,
            sub_category=self.subCategory,
            brand=self.brand,
            short_description=self.shortDescription,
            price_min=price.lower,
            price_max=price.upper,
        )


# Catalog loaded at startup
catalog: Optional[InventoryCatalog] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Load the inventory on startup."""
    global catalog

    init_logging()
    catalog = InventoryCatalog.load(settings.catalog.path)

    yield

    catalog = None


# Rate limiting middleware
class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Simple in-memory rate limiting for credential minting.
    Limits /api/session requests per IP address within a time window.
    """

    def __init__(self, app, requests_limit: int = 60, window_seconds: int = 60):
        super().__init__(app)
        self.requests_limit = requests_limit
        self.window_seconds = window_seconds
        self.request_counts: Dict[str, list] = defaultdict(list)

    async def dispatch(self, request: Request, call_next):
        if request.url.path != "/api/session":
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            client_ip = forwarded.split(",")[0].strip()

        current_time = time.time()
        cutoff_time = current_time - self.window_seconds
        self.request_counts[client_ip] = [
            ts for ts in self.request_counts[client_ip] if ts > cutoff_time
        ]

        if len(self.request_counts[client_ip]) >= self.requests_limit:
            return JSONResponse(
                status_code=429,
                content={
                    "detail": msg("error.rate_limited"),
                    "retry_after": self.window_seconds
                },
                headers={"Retry-After": str(self.window_seconds)}
            )

        self.request_counts[client_ip].append(current_time)

        return await call_next(request)


app = FastAPI(
    title="Realtime Inventory Agent API",
    description="Ephemeral credentials and product recommendations for the realtime voice client",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    RateLimitMiddleware,
    requests_limit=settings.server.rate_limit_requests,
    window_seconds=settings.server.rate_limit_window,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.server.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_catalog() -> InventoryCatalog:
    """Get the catalog instance."""
    if catalog is None:
        raise HTTPException(status_code=503, detail=msg("error.catalog_not_ready"))
    return catalog


async def create_realtime_session() -> Dict[str, Any]:
    """Ask the Realtime API for an ephemeral client secret."""
    settings.openai.validate()
    timeout = aiohttp.ClientTimeout(total=settings.realtime.http_timeout_s)
    headers = {
        "Authorization": f"Bearer {settings.openai.api_key}",
        "Content-Type": "application/json",
    }
    body = {"model": settings.openai.realtime_model}

    async with aiohttp.ClientSession(timeout=timeout) as session:
        async with session.post(settings.openai.sessions_url, headers=headers, json=body) as response:
            response.raise_for_status()
            return await response.json()


@app.get("/api/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "inventory_items": len(catalog) if catalog is not None else 0,
    }


@app.get("/api/session")
async def realtime_session():
    """Mint an ephemeral credential for one realtime session."""
    logger.info("GET /api/session")
    try:
        data = await create_realtime_session()
    except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
        logger.error(f"Error fetching ephemeral key: {e}")
        return JSONResponse(status_code=500, content={"error": msg("error.internal")})

    logger.debug(f"Ephemeral key response: {summarize({k: v for k, v in data.items() if k != 'client_secret'})}")
    return data


@app.post("/api/recommend")
async def recommend(request: RecommendRequest):
    """Recommend products matching the given filters."""
    logger.info(f"POST /api/recommend {summarize(request.model_dump())}")
    return get_catalog().recommend(request.to_filter())


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "api_server:app",
        host=settings.server.host,
        port=settings.server.port,
        reload=settings.is_development,
    )
