"""Shared test fixtures."""

import asyncio
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, timedelta

import pytest

from nutrition_aggregator.config import Settings
from nutrition_aggregator.containers import AppContainer
from nutrition_aggregator.domain.nutrition import (
    FoodItem,
    ProviderCapabilities,
    ProviderDescriptor,
)
from nutrition_aggregator.services.aggregator import AggregatorService
from nutrition_aggregator.services.cache import KVCacheStore
from nutrition_aggregator.services.providers import ProviderAdapter
from nutrition_aggregator.services.quota import QuotaTracker
from nutrition_aggregator.services.storage import InMemoryKVStore


def make_item(name: str = "Apple", **overrides: object) -> FoodItem:
    """Build a normalized food item with sensible defaults."""
    values: dict[str, object] = {
        "id": f"item-{name.lower().replace(' ', '-')}",
        "name": name,
        "calories": 52.0,
        "protein": 0.3,
        "carbs": 14.0,
        "fat": 0.2,
        "serving_size": "100g",
        "source": "fake",
        "confidence": 0.5,
    }
    values.update(overrides)
    return FoodItem(**values)  # type: ignore[arg-type]


@dataclass
class FakeClock:
    """Manually advanced UTC clock."""

    now: datetime = field(default_factory=lambda: datetime(2025, 3, 10, 12, tzinfo=UTC))

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@dataclass
class FakeToday:
    """Manually advanced calendar date."""

    current: date = date(2025, 3, 10)

    def __call__(self) -> date:
        return self.current


@dataclass
class FakeProvider(ProviderAdapter):
    """Provider returning canned results and recording calls."""

    name: str
    priority: int
    search_results: list[FoodItem] = field(default_factory=list)
    barcodes: dict[str, FoodItem] = field(default_factory=dict)
    available: bool = True
    error: Exception | None = None
    delay_seconds: float = 0.0
    capabilities: ProviderCapabilities = field(default_factory=ProviderCapabilities)
    calls: list[tuple[str, str]] = field(default_factory=list)

    @property
    def descriptor(self) -> ProviderDescriptor:
        return ProviderDescriptor(
            name=self.name, priority=self.priority, capabilities=self.capabilities
        )

    def is_available(self) -> bool:
        return self.available

    async def search_food(self, query: str) -> list[FoodItem]:
        await self._record("search", query)
        return list(self.search_results)

    async def lookup_barcode(self, code: str) -> FoodItem | None:
        await self._record("barcode", code)
        return self.barcodes.get(code)

    async def _record(self, action: str, value: str) -> None:
        self.calls.append((action, value))
        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)
        if self.error is not None:
            raise self.error


@dataclass
class FakeCatalogProvider(FakeProvider):
    """Provider that also supports brand, category and id lookups."""

    brand_results: list[FoodItem] = field(default_factory=list)
    category_results: list[FoodItem] = field(default_factory=list)
    products: dict[str, FoodItem] = field(default_factory=dict)
    capabilities: ProviderCapabilities = field(
        default_factory=lambda: ProviderCapabilities(brand_search=True, category_search=True)
    )

    async def search_by_brand(self, brand: str) -> list[FoodItem]:
        await self._record("brand", brand)
        return list(self.brand_results)

    async def search_by_category(self, category: str) -> list[FoodItem]:
        await self._record("category", category)
        return list(self.category_results)

    async def get_product(self, product_id: str) -> FoodItem | None:
        await self._record("product", product_id)
        return self.products.get(product_id)


def build_aggregator(
    providers: list[FakeProvider],
    quotas: dict[str, int | None] | None = None,
    **options: object,
) -> AggregatorService:
    """Wire an aggregator over in-memory state for the given fakes."""
    store = InMemoryKVStore()
    resolved_quotas = quotas or {}
    quota = QuotaTracker(
        store=store,
        quotas={provider.name: resolved_quotas.get(provider.name) for provider in providers},
        priorities={provider.name: provider.priority for provider in providers},
        today=FakeToday(),
    )
    return AggregatorService(
        providers=providers,
        cache=KVCacheStore(store=store),
        quota=quota,
        **options,  # type: ignore[arg-type]
    )


@pytest.fixture
def settings() -> Settings:
    return Settings(
        admin_token="admin-token",
        supabase_url=None,
        supabase_service_key=None,
        fatsecret_consumer_key=None,
        fatsecret_consumer_secret=None,
        spoonacular_api_key=None,
        nutritionix_app_id=None,
        nutritionix_app_key=None,
        usda_api_key=None,
    )


@pytest.fixture
def store() -> InMemoryKVStore:
    return InMemoryKVStore()


@pytest.fixture
def provider() -> FakeCatalogProvider:
    nutella = make_item(
        "Nutella",
        brand="Ferrero",
        barcode="3017620422003",
        calories=539.0,
        protein=6.3,
        carbs=57.5,
        fat=30.9,
        sugar=56.3,
        sodium=42.0,
        fiber=0.0,
        source="openfoodfacts",
    )
    return FakeCatalogProvider(
        name="openfoodfacts",
        priority=1,
        search_results=[nutella],
        barcodes={"3017620422003": nutella},
        brand_results=[nutella],
        category_results=[nutella],
        products={"3017620422003": nutella},
    )


@pytest.fixture
def container(
    settings: Settings, store: InMemoryKVStore, provider: FakeCatalogProvider
) -> AppContainer:
    cache = KVCacheStore(store=store)
    quota = QuotaTracker(
        store=store,
        quotas={provider.name: None},
        priorities={provider.name: provider.priority},
    )
    aggregator = AggregatorService(
        providers=[provider],
        cache=cache,
        quota=quota,
        batch_delay_seconds=0,
    )

    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=settings,
        store=store,
        cache=cache,
        quota=quota,
        aggregator=aggregator,
        close_resources=close_resources,
    )
