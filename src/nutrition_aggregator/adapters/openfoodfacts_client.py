"""Open Food Facts API client."""

from dataclasses import dataclass, field

import httpx

from nutrition_aggregator.adapters.http import request_json
from nutrition_aggregator.domain.nutrition import (
    FoodItem,
    ProviderCapabilities,
    ProviderDescriptor,
)
from nutrition_aggregator.services.normalizer import DataNormalizer
from nutrition_aggregator.services.providers import ProviderAdapter

PROVIDER_NAME = "openfoodfacts"
PAGE_SIZE = 20

_PLACEHOLDER_NAMES = ("unknown", "placeholder", "test", "sample", "example")

_FACT_KEYS = {
    "vitamin_a": "vitamin-a_100g",
    "vitamin_c": "vitamin-c_100g",
    "vitamin_d": "vitamin-d_100g",
    "vitamin_e": "vitamin-e_100g",
    "vitamin_k": "vitamin-k_100g",
    "thiamin": "vitamin-b1_100g",
    "riboflavin": "vitamin-b2_100g",
    "niacin": "vitamin-pp_100g",
    "vitamin_b6": "vitamin-b6_100g",
    "folate": "vitamin-b9_100g",
    "vitamin_b12": "vitamin-b12_100g",
    "calcium": "calcium_100g",
    "iron": "iron_100g",
    "magnesium": "magnesium_100g",
    "phosphorus": "phosphorus_100g",
    "potassium": "potassium_100g",
    "zinc": "zinc_100g",
}


def _first(mapping: dict[str, object], *keys: str) -> object | None:
    for key in keys:
        value = mapping.get(key)
        if value not in (None, ""):
            return value
    return None


def _number(value: object) -> float | None:
    try:
        return float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None


@dataclass
class HttpxOpenFoodFactsClient(ProviderAdapter):
    """HTTPX-backed Open Food Facts client. No credentials are required."""

    base_url: str
    user_agent: str
    http_client: httpx.AsyncClient
    normalizer: DataNormalizer = field(default_factory=DataNormalizer)

    @classmethod
    def create(cls, base_url: str, user_agent: str) -> "HttpxOpenFoodFactsClient":
        """Create a client with a managed httpx session."""
        return cls(
            base_url=base_url,
            user_agent=user_agent,
            http_client=httpx.AsyncClient(),
        )

    @property
    def descriptor(self) -> ProviderDescriptor:
        """Return the provider descriptor."""
        return ProviderDescriptor(
            name=PROVIDER_NAME,
            priority=1,
            capabilities=ProviderCapabilities(brand_search=True, category_search=True),
        )

    def is_available(self) -> bool:
        """Open Food Facts is a free public API."""
        return True

    async def search_food(self, query: str) -> list[FoodItem]:
        """Full-text product search."""
        return await self._search(
            {"search_terms": query, "search_simple": 1}
        )

    async def search_by_brand(self, brand: str) -> list[FoodItem]:
        """Search products tagged with a brand."""
        return await self._search(
            {"tagtype_0": "brands", "tag_contains_0": "contains", "tag_0": brand}
        )

    async def search_by_category(self, category: str) -> list[FoodItem]:
        """Search products tagged with a category."""
        return await self._search(
            {"tagtype_0": "categories", "tag_contains_0": "contains", "tag_0": category}
        )

    async def lookup_barcode(self, code: str) -> FoodItem | None:
        """Fetch a product by barcode."""
        return await self.get_product(code)

    async def get_product(self, product_id: str) -> FoodItem | None:
        """Fetch a product by its Open Food Facts code."""
        payload = await request_json(
            PROVIDER_NAME,
            self.http_client,
            "GET",
            f"{self.base_url}/api/v0/product/{product_id}.json",
            headers=self._headers(),
        )
        if payload is None or payload.get("status") != 1:
            return None
        product = payload.get("product")
        if not isinstance(product, dict) or not _is_valid_product(product):
            return None
        return self.normalizer.to_food_item(_to_record(product), PROVIDER_NAME)

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()

    async def _search(self, params: dict[str, object]) -> list[FoodItem]:
        payload = await request_json(
            PROVIDER_NAME,
            self.http_client,
            "GET",
            f"{self.base_url}/cgi/search.pl",
            params={**params, "action": "process", "json": 1, "page_size": PAGE_SIZE},
            headers=self._headers(),
        )
        products = (payload or {}).get("products")
        if not isinstance(products, list):
            return []
        return [
            self.normalizer.to_food_item(_to_record(product), PROVIDER_NAME)
            for product in products
            if isinstance(product, dict) and _is_valid_product(product)
        ]

    def _headers(self) -> dict[str, str]:
        return {"User-Agent": self.user_agent, "Accept": "application/json"}


def _is_valid_product(product: dict[str, object]) -> bool:
    """Require a real name and the four basic nutrients."""
    name = str(product.get("product_name") or "").strip().lower()
    if not name or any(placeholder in name for placeholder in _PLACEHOLDER_NAMES):
        return False
    nutriments = product.get("nutriments")
    if not isinstance(nutriments, dict):
        return False
    return all(
        _first(nutriments, *keys) is not None
        for keys in (
            ("energy-kcal_100g", "energy_kcal_100g", "energy_100g"),
            ("proteins_100g", "protein_100g"),
            ("carbohydrates_100g", "carbohydrate_100g"),
            ("fat_100g", "total_fat_100g"),
        )
    )


def _to_record(product: dict[str, object]) -> dict[str, object]:
    nutriments = product.get("nutriments")
    if not isinstance(nutriments, dict):
        nutriments = {}

    calories = _first(nutriments, "energy-kcal_100g", "energy_kcal_100g")
    energy_unit = "kcal"
    if calories is None:
        calories = nutriments.get("energy_100g")
        energy_unit = "kj"

    sodium_g = _number(nutriments.get("sodium_100g"))
    salt_g = _number(nutriments.get("salt_100g"))
    if sodium_g is not None:
        sodium_mg: float | None = sodium_g * 1000
    elif salt_g is not None:
        sodium_mg = salt_g * 400
    else:
        sodium_mg = None

    quality_errors = product.get("data_quality_errors_tags")
    return {
        "id": product.get("code"),
        "barcode": product.get("code"),
        "name": product.get("product_name"),
        "brand": product.get("brands"),
        "calories": calories,
        "energy_unit": energy_unit,
        "protein": _first(nutriments, "proteins_100g", "protein_100g"),
        "carbs": _first(nutriments, "carbohydrates_100g", "carbohydrate_100g"),
        "fat": _first(nutriments, "fat_100g", "total_fat_100g"),
        "fiber": _first(nutriments, "fiber_100g", "fibre_100g"),
        "sugar": _first(nutriments, "sugars_100g", "sugar_100g"),
        "sodium": sodium_mg,
        "serving_size": product.get("serving_size") or "100g",
        "nutrient_basis": "100g",
        "image": product.get("image_front_url") or product.get("image_url"),
        "allergens": product.get("allergens_tags") or product.get("allergen_tags"),
        "ingredients": product.get("ingredients_text"),
        "verified": isinstance(quality_errors, list) and not quality_errors,
        "nutrition_facts": {
            fact: nutriments.get(key)
            for fact, key in _FACT_KEYS.items()
            if nutriments.get(key) is not None
        },
        "health_rating": _nutriscore_rating(product.get("nutriscore_grade")),
        "description": product.get("generic_name"),
    }


def _nutriscore_rating(grade: object) -> float | None:
    """Map a Nutri-Score grade onto a 0-5 rating."""
    ratings = {"a": 5.0, "b": 4.0, "c": 3.0, "d": 2.0, "e": 1.0}
    if isinstance(grade, str):
        return ratings.get(grade.lower())
    return None
