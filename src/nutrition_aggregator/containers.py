"""Dependency container wiring for the application."""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import create_client

from nutrition_aggregator.adapters.fatsecret_client import HttpxFatSecretClient
from nutrition_aggregator.adapters.nutritionix_client import HttpxNutritionixClient
from nutrition_aggregator.adapters.openfoodfacts_client import (
    HttpxOpenFoodFactsClient,
)
from nutrition_aggregator.adapters.spoonacular_client import HttpxSpoonacularClient
from nutrition_aggregator.adapters.supabase_kv_store import SupabaseKVStore
from nutrition_aggregator.adapters.usda_client import HttpxUsdaClient
from nutrition_aggregator.config import Settings
from nutrition_aggregator.services.aggregator import AggregatorService
from nutrition_aggregator.services.cache import KVCacheStore
from nutrition_aggregator.services.quota import QuotaTracker
from nutrition_aggregator.services.regional import REGIONAL_PROFILES, RegionalEnhancer
from nutrition_aggregator.services.storage import InMemoryKVStore, KVStore

_logger = logging.getLogger(__name__)


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    store: KVStore
    cache: KVCacheStore
    quota: QuotaTracker
    aggregator: AggregatorService
    close_resources: Callable[[], Awaitable[None]]


def build_store(settings: Settings) -> KVStore:
    """Use Supabase when configured, otherwise keep state in memory."""
    if settings.supabase_url and settings.supabase_service_key:
        return SupabaseKVStore(
            create_client(settings.supabase_url, settings.supabase_service_key)
        )
    _logger.info("Supabase not configured, using in-memory state")
    return InMemoryKVStore()


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    profile = REGIONAL_PROFILES.get(resolved_settings.regional_profile.lower())
    if profile is None:
        raise ValueError(f"Unknown regional profile: {resolved_settings.regional_profile}")

    store = build_store(resolved_settings)
    providers = [
        HttpxOpenFoodFactsClient.create(
            base_url=resolved_settings.openfoodfacts_base_url,
            user_agent=resolved_settings.openfoodfacts_user_agent,
        ),
        HttpxFatSecretClient.create(
            consumer_key=resolved_settings.fatsecret_consumer_key,
            consumer_secret=resolved_settings.fatsecret_consumer_secret,
            base_url=resolved_settings.fatsecret_base_url,
        ),
        HttpxSpoonacularClient.create(
            api_key=resolved_settings.spoonacular_api_key,
            base_url=resolved_settings.spoonacular_base_url,
        ),
        HttpxNutritionixClient.create(
            app_id=resolved_settings.nutritionix_app_id,
            app_key=resolved_settings.nutritionix_app_key,
            base_url=resolved_settings.nutritionix_base_url,
        ),
        HttpxUsdaClient.create(
            api_key=resolved_settings.usda_api_key,
            base_url=resolved_settings.usda_base_url,
        ),
    ]
    cache = KVCacheStore(
        store=store,
        default_ttl_seconds=resolved_settings.cache_ttl_seconds,
        max_entries=resolved_settings.cache_max_entries,
    )
    quota = QuotaTracker(
        store=store,
        quotas=resolved_settings.daily_quotas(),
        priorities={
            provider.descriptor.name: provider.descriptor.priority for provider in providers
        },
    )
    aggregator = AggregatorService(
        providers=providers,
        cache=cache,
        quota=quota,
        enhancer=RegionalEnhancer(profile=profile),
        batch_size=resolved_settings.bulk_batch_size,
        batch_delay_seconds=resolved_settings.bulk_batch_delay_seconds,
        provider_timeout_seconds=resolved_settings.provider_timeout_seconds,
        max_search_results=resolved_settings.max_search_results,
    )

    async def close_resources() -> None:
        for provider in providers:
            await provider.close()

    return AppContainer(
        settings=resolved_settings,
        store=store,
        cache=cache,
        quota=quota,
        aggregator=aggregator,
        close_resources=close_resources,
    )
