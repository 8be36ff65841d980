"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import asdict

from fastapi import FastAPI, Request

from nutrition_aggregator.api.admin import router as admin_router
from nutrition_aggregator.api.models import BulkLookupRequest
from nutrition_aggregator.app_logging import configure_logging
from nutrition_aggregator.containers import AppContainer
from nutrition_aggregator.services.aggregator import AggregatorService


def _aggregator(request: Request) -> AggregatorService:
    container: AppContainer = request.app.state.container
    return container.aggregator


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging()
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info(
            "Nutrition providers: %s",
            ", ".join(app.state.container.aggregator.available_providers()) or "none",
        )
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    app.include_router(admin_router)

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.get("/nutrition/barcode/{code}")
    async def lookup_barcode(code: str, request: Request) -> dict[str, object]:
        """Resolve a barcode through the provider waterfall."""
        result = await _aggregator(request).lookup_barcode(code)
        return asdict(result)

    @app.get("/nutrition/search")
    async def search_food(q: str, request: Request) -> dict[str, object]:
        """Search every provider with quota left."""
        result = await _aggregator(request).search_food(q)
        return asdict(result)

    @app.get("/nutrition/brand")
    async def search_by_brand(name: str, request: Request) -> dict[str, object]:
        """Search products by brand."""
        result = await _aggregator(request).search_by_brand(name)
        return asdict(result)

    @app.get("/nutrition/category")
    async def search_by_category(name: str, request: Request) -> dict[str, object]:
        """Search products by category."""
        result = await _aggregator(request).search_by_category(name)
        return asdict(result)

    @app.get("/nutrition/product/{source}/{product_id}")
    async def get_product(source: str, product_id: str, request: Request) -> dict[str, object]:
        """Fetch a product from one provider by its own id."""
        result = await _aggregator(request).get_product_by_id(product_id, source)
        return asdict(result)

    @app.post("/nutrition/bulk")
    async def bulk_lookup(payload: BulkLookupRequest, request: Request) -> dict[str, object]:
        """Resolve many barcodes at once."""
        result = await _aggregator(request).get_bulk_products(payload.barcodes)
        return asdict(result)

    @app.get("/nutrition/barcode/{code}/guidelines")
    async def barcode_guidelines(code: str, request: Request) -> dict[str, object]:
        """Check a product against dietary guidelines."""
        aggregator = _aggregator(request)
        result = await aggregator.lookup_barcode(code)
        if result.data is None:
            return {"success": False, "error": result.error}
        report = aggregator.check_dietary_guidelines(result.data)
        return {"success": True, "product": result.data.name, **asdict(report)}

    @app.get("/nutrition/recommendations")
    async def recommendations(request: Request) -> dict[str, object]:
        """Return the regional reference daily intake."""
        return asdict(_aggregator(request).dietary_recommendations())

    @app.get("/nutrition/usage")
    async def usage(request: Request) -> dict[str, object]:
        """Return provider quota usage."""
        aggregator = _aggregator(request)
        return {
            "providers": {
                name: asdict(stats) for name, stats in aggregator.usage_stats().items()
            },
            "utilization": aggregator.quota_utilization(),
            "best_available": aggregator.best_available_provider(),
            "next_reset": aggregator.next_quota_reset().isoformat(),
        }

    @app.get("/nutrition/cache")
    async def cache_stats(request: Request) -> dict[str, object]:
        """Return cache counters."""
        return asdict(_aggregator(request).cache_stats())

    @app.get("/nutrition/providers")
    async def providers(request: Request) -> dict[str, object]:
        """List configured providers in priority order."""
        aggregator = _aggregator(request)
        return {
            "providers": aggregator.available_providers(),
            "has_available": aggregator.has_available_provider(),
        }

    return app
