"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Provider credentials are optional; a provider without credentials is
    simply left out of the lookup chain. Quotas of ``None`` mean unlimited.
    """

    admin_token: str
    supabase_url: str | None = None
    supabase_service_key: str | None = None

    openfoodfacts_base_url: str = "https://world.openfoodfacts.org"
    openfoodfacts_user_agent: str = "NutritionAggregator/1.0"
    fatsecret_consumer_key: str | None = None
    fatsecret_consumer_secret: str | None = None
    fatsecret_base_url: str = "https://platform.fatsecret.com/rest/server.api"
    spoonacular_api_key: str | None = None
    spoonacular_base_url: str = "https://api.spoonacular.com/food"
    nutritionix_app_id: str | None = None
    nutritionix_app_key: str | None = None
    nutritionix_base_url: str = "https://trackapi.nutritionix.com/v2"
    usda_api_key: str | None = None
    usda_base_url: str = "https://api.nal.usda.gov/fdc/v1"

    openfoodfacts_daily_quota: int | None = None
    fatsecret_daily_quota: int | None = 5000
    spoonacular_daily_quota: int | None = 150
    nutritionix_daily_quota: int | None = 500
    usda_daily_quota: int | None = None

    cache_ttl_seconds: int = 86400
    cache_max_entries: int = 1000
    bulk_batch_size: int = 5
    bulk_batch_delay_seconds: float = 0.1
    provider_timeout_seconds: float = 10.0
    max_search_results: int = 20
    regional_profile: str = "au"
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )

    def daily_quotas(self) -> dict[str, int | None]:
        """Return the configured daily quota per provider name."""
        return {
            "openfoodfacts": self.openfoodfacts_daily_quota,
            "fatsecret": self.fatsecret_daily_quota,
            "spoonacular": self.spoonacular_daily_quota,
            "nutritionix": self.nutritionix_daily_quota,
            "usda": self.usda_daily_quota,
        }
