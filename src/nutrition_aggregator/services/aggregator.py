"""Multi-provider nutrition lookup orchestration."""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import TypeVar

from nutrition_aggregator.domain.nutrition import (
    CACHE_SOURCE,
    BulkResult,
    BulkSummary,
    CacheStats,
    FoodItem,
    LookupResult,
    ProviderUsage,
    SearchResult,
)
from nutrition_aggregator.domain.regional import DailyRecommendations, GuidelineReport
from nutrition_aggregator.services.cache import CacheStore
from nutrition_aggregator.services.providers import (
    BrandSearchable,
    CategorySearchable,
    ProductLookup,
    ProviderAdapter,
)
from nutrition_aggregator.services.quota import NO_PROVIDER, QuotaTracker
from nutrition_aggregator.services.regional import RegionalEnhancer

NO_PROVIDERS_ERROR = "No nutrition providers configured"
NOT_FOUND_ERROR = "Product not found in any database"

_T = TypeVar("_T")

_logger = logging.getLogger(__name__)


def barcode_cache_key(code: str) -> str:
    """Return the cache key used for barcode lookups."""
    return f"barcode:{code}"


def product_cache_key(source: str, product_id: str) -> str:
    """Return the cache key used for provider id lookups."""
    return f"product:{source}:{product_id}"


def dedupe_key(item: FoodItem) -> str:
    """Identity used to merge results from different providers."""
    return f"{item.name.lower()}-{(item.brand or 'no-brand').lower()}"


@dataclass
class AggregatorService:
    """Resolves barcodes and queries against several nutrition providers.

    Barcode lookups walk the providers in priority order and stop at the
    first hit. Searches fan out to every admitted provider concurrently and
    merge the results. Cache and quota state are shared across calls.
    Public methods never raise; failures come back as unsuccessful results.
    """

    providers: Sequence[ProviderAdapter]
    cache: CacheStore
    quota: QuotaTracker
    enhancer: RegionalEnhancer = field(default_factory=RegionalEnhancer)
    batch_size: int = 5
    batch_delay_seconds: float = 0.1
    provider_timeout_seconds: float = 10.0
    max_search_results: int = 20

    def __post_init__(self) -> None:
        if self.batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        available = []
        for provider in self.providers:
            if provider.is_available():
                available.append(provider)
            else:
                _logger.info(
                    "Provider %s unavailable: missing credentials", provider.descriptor.name
                )
        self._providers = sorted(available, key=lambda provider: provider.descriptor.priority)
        _logger.info(
            "Nutrition aggregator initialised with providers: %s",
            ", ".join(self.available_providers()) or "none",
        )

    async def lookup_barcode(self, code: str) -> LookupResult:
        """Look up a barcode, trying providers until one knows the product."""
        code = code.strip()
        if not code:
            return LookupResult(success=False, error="Barcode must not be empty")
        if not self._providers:
            return LookupResult(success=False, error=NO_PROVIDERS_ERROR)

        key = barcode_cache_key(code)
        cached = self.cache.get(key)
        if cached is not None:
            return LookupResult(
                success=True,
                data=cached,
                source=CACHE_SOURCE,
                confidence=cached.confidence,
                cache_hit=True,
            )

        for provider in self._providers:
            name = provider.descriptor.name
            if not self.quota.can_make_call(name):
                _logger.info("Skipping %s for barcode %s: quota exhausted", name, code)
                continue
            found, item = await self._attempt(
                name, f"barcode {code}", lambda: provider.lookup_barcode(code)
            )
            if not found:
                continue
            self.quota.track_call(name)
            if item is None:
                continue
            item = self.enhancer.enhance(item)
            self.cache.set(key, item)
            return LookupResult(
                success=True,
                data=item,
                source=name,
                confidence=item.confidence,
            )

        return LookupResult(success=False, source=NO_PROVIDER, error=NOT_FOUND_ERROR)

    async def search_food(self, query: str) -> SearchResult:
        """Search every admitted provider and merge the results."""
        return await self._search(
            query,
            label="search",
            supports=lambda provider: True,
            call=lambda provider, text: provider.search_food(text),
        )

    async def search_by_brand(self, brand: str) -> SearchResult:
        """Search providers that support brand search."""
        return await self._search(
            brand,
            label="brand search",
            supports=lambda provider: (
                provider.descriptor.capabilities.brand_search
                and isinstance(provider, BrandSearchable)
            ),
            call=lambda provider, text: provider.search_by_brand(text),  # type: ignore[attr-defined]
        )

    async def search_by_category(self, category: str) -> SearchResult:
        """Search providers that support category search."""
        return await self._search(
            category,
            label="category search",
            supports=lambda provider: (
                provider.descriptor.capabilities.category_search
                and isinstance(provider, CategorySearchable)
            ),
            call=lambda provider, text: provider.search_by_category(text),  # type: ignore[attr-defined]
        )

    async def get_product_by_id(self, product_id: str, source: str) -> LookupResult:
        """Fetch a product from one named provider by its provider-local id."""
        product_id = product_id.strip()
        if not product_id:
            return LookupResult(success=False, error="Product id must not be empty")
        provider = next(
            (item for item in self._providers if item.descriptor.name == source), None
        )
        if provider is None:
            return LookupResult(success=False, error=f"Provider {source} not available")

        key = product_cache_key(source, product_id)
        cached = self.cache.get(key)
        if cached is not None:
            return LookupResult(
                success=True,
                data=cached,
                source=CACHE_SOURCE,
                confidence=cached.confidence,
                cache_hit=True,
            )
        if not self.quota.can_make_call(source):
            _logger.info("Cannot call %s for product %s: quota exhausted", source, product_id)
            return LookupResult(success=False, error=f"Quota exhausted for {source}")

        fetch = (
            provider.get_product
            if isinstance(provider, ProductLookup)
            else provider.lookup_barcode
        )
        found, item = await self._attempt(
            source, f"product {product_id}", lambda: fetch(product_id)
        )
        if not found:
            return LookupResult(success=False, source=source, error=f"{source} request failed")
        self.quota.track_call(source)
        if item is None:
            return LookupResult(success=False, source=source, error=NOT_FOUND_ERROR)
        item = self.enhancer.enhance(item)
        self.cache.set(key, item)
        return LookupResult(success=True, data=item, source=source, confidence=item.confidence)

    async def get_bulk_products(self, barcodes: Sequence[str]) -> BulkResult:
        """Look up many barcodes in polite, concurrent batches."""
        unique = list(dict.fromkeys(barcodes))
        results: dict[str, FoodItem | None] = {}
        errors: dict[str, str] = {}
        found = not_found = 0

        for start in range(0, len(unique), self.batch_size):
            batch = unique[start : start + self.batch_size]
            outcomes = await asyncio.gather(
                *(self.lookup_barcode(code) for code in batch), return_exceptions=True
            )
            for code, outcome in zip(batch, outcomes, strict=True):
                results[code] = None
                if isinstance(outcome, BaseException):
                    _logger.warning("Bulk lookup failed for %s: %s", code, outcome)
                    errors[code] = str(outcome) or type(outcome).__name__
                elif outcome.success:
                    results[code] = outcome.data
                    found += 1
                elif outcome.error == NOT_FOUND_ERROR:
                    not_found += 1
                else:
                    errors[code] = outcome.error or "Unknown error"
            if start + self.batch_size < len(unique):
                await asyncio.sleep(self.batch_delay_seconds)

        return BulkResult(
            success=found > 0,
            results=results,
            errors=errors,
            summary=BulkSummary(
                total=len(unique), found=found, not_found=not_found, errors=len(errors)
            ),
        )

    def usage_stats(self) -> dict[str, ProviderUsage]:
        """Return quota usage per provider."""
        return self.quota.usage_stats()

    def cache_stats(self) -> CacheStats:
        """Return cache size and hit/miss counters."""
        return self.cache.stats()

    def clear_cache(self) -> None:
        """Empty the cache."""
        self.cache.clear()

    def available_providers(self) -> list[str]:
        """Return configured provider names in priority order."""
        return [provider.descriptor.name for provider in self._providers]

    def best_available_provider(self) -> str:
        """Return the highest-priority provider that still has quota."""
        for provider in self._providers:
            if self.quota.can_make_call(provider.descriptor.name):
                return provider.descriptor.name
        return NO_PROVIDER

    def has_available_provider(self) -> bool:
        """Return True if any configured provider still has quota."""
        return self.best_available_provider() != NO_PROVIDER

    def reset_daily_quotas(self) -> None:
        """Zero today's call counters."""
        self.quota.reset_daily()
        _logger.info("Daily provider quotas reset")

    def next_quota_reset(self) -> datetime:
        """Return when daily counters roll over next."""
        return self.quota.next_reset_time()

    def quota_utilization(self) -> dict[str, float]:
        """Return today's usage percentage per configured provider."""
        return {name: self.quota.utilization(name) for name in self.available_providers()}

    def dietary_recommendations(self) -> DailyRecommendations:
        """Return the regional reference daily intake."""
        return self.enhancer.dietary_recommendations()

    def check_dietary_guidelines(self, item: FoodItem) -> GuidelineReport:
        """Check an item against dietary guideline thresholds."""
        return self.enhancer.check_dietary_guidelines(item)

    async def _search(
        self,
        query: str,
        *,
        label: str,
        supports: Callable[[ProviderAdapter], bool],
        call: Callable[[ProviderAdapter, str], Awaitable[list[FoodItem]]],
    ) -> SearchResult:
        query = query.strip()
        if not query:
            return SearchResult(success=False, error="Query must not be empty")
        if not self._providers:
            return SearchResult(success=False, error=NO_PROVIDERS_ERROR)

        admitted = []
        for provider in self._providers:
            if not supports(provider):
                continue
            if not self.quota.can_make_call(provider.descriptor.name):
                _logger.info("Skipping %s for %s: quota exhausted", provider.descriptor.name, label)
                continue
            admitted.append(provider)

        outcomes = await asyncio.gather(
            *(
                self._attempt(
                    provider.descriptor.name,
                    f"{label} {query!r}",
                    lambda provider=provider: call(provider, query),
                )
                for provider in admitted
            )
        )

        merged: list[FoodItem] = []
        sources: list[str] = []
        for provider, (succeeded, items) in zip(admitted, outcomes, strict=True):
            if not succeeded or not items:
                continue
            name = provider.descriptor.name
            self.quota.track_call(name)
            sources.append(name)
            for item in items:
                enhanced = self.enhancer.enhance(item)
                if enhanced.barcode:
                    self.cache.set(barcode_cache_key(enhanced.barcode), enhanced)
                merged.append(enhanced)

        unique: dict[str, FoodItem] = {}
        for item in merged:
            unique.setdefault(dedupe_key(item), item)
        ranked = sorted(
            unique.values(),
            key=lambda item: (not item.regional_product, -item.confidence),
        )
        return SearchResult(
            success=bool(ranked),
            results=ranked[: self.max_search_results],
            total_results=len(ranked),
            sources=sources,
        )

    async def _attempt(
        self,
        provider: str,
        action: str,
        func: Callable[[], Awaitable[_T]],
    ) -> tuple[bool, _T | None]:
        """Run one provider call with a timeout; failures are logged and absorbed."""
        try:
            return True, await asyncio.wait_for(func(), self.provider_timeout_seconds)
        except TimeoutError:
            _logger.warning(
                "Provider %s timed out after %ss on %s",
                provider,
                self.provider_timeout_seconds,
                action,
            )
        except Exception as exc:
            _logger.warning("Provider %s failed on %s: %s", provider, action, exc)
        return False, None
