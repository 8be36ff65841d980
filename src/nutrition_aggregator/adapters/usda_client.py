"""USDA FoodData Central API client."""

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

PROVIDER_NAME = "usda"
PAGE_SIZE = 20
GENERIC_DATA_TYPES = ["Foundation", "SR Legacy"]
BRANDED_DATA_TYPES = ["Branded"]

# FDC nutrient ids and the legacy SR nutrient numbers for the same nutrients.
_NUTRIENT_IDS = {
    1008: "calories",
    1003: "protein",
    1004: "fat",
    1005: "carbs",
    1079: "fiber",
    2000: "sugar",
    1093: "sodium",
}

_NUTRIENT_NUMBERS = {
    "208": "calories",
    "203": "protein",
    "204": "fat",
    "205": "carbs",
    "291": "fiber",
    "269": "sugar",
    "307": "sodium",
    "320": "vitamin_a",
    "401": "vitamin_c",
    "328": "vitamin_d",
    "323": "vitamin_e",
    "430": "vitamin_k",
    "404": "thiamin",
    "405": "riboflavin",
    "406": "niacin",
    "415": "vitamin_b6",
    "435": "folate",
    "418": "vitamin_b12",
    "301": "calcium",
    "303": "iron",
    "304": "magnesium",
    "305": "phosphorus",
    "306": "potassium",
    "309": "zinc",
}

_MACROS = ("calories", "protein", "carbs", "fat", "fiber", "sugar", "sodium")


@dataclass
class HttpxUsdaClient(ProviderAdapter):
    """HTTPX-backed FoodData Central client."""

    api_key: str | None
    base_url: str
    http_client: httpx.AsyncClient
    normalizer: DataNormalizer = field(default_factory=DataNormalizer)

    @classmethod
    def create(cls, api_key: str | None, base_url: str) -> "HttpxUsdaClient":
        """Create an FDC client with a managed httpx session."""
        return cls(api_key=api_key, base_url=base_url, http_client=httpx.AsyncClient())

    @property
    def descriptor(self) -> ProviderDescriptor:
        """Return the provider descriptor."""
        return ProviderDescriptor(
            name=PROVIDER_NAME,
            priority=5,
            capabilities=ProviderCapabilities(brand_search=True, category_search=True),
        )

    def is_available(self) -> bool:
        """Return True when an API key is configured."""
        return bool(self.api_key)

    async def search_food(self, query: str) -> list[FoodItem]:
        """Search generic foods by query."""
        foods = await self._search_foods(query, GENERIC_DATA_TYPES)
        return [self._to_item(food) for food in foods]

    async def search_by_brand(self, brand: str) -> list[FoodItem]:
        """Search branded foods owned by or named after the brand."""
        wanted = brand.lower()
        foods = await self._search_foods(brand, BRANDED_DATA_TYPES)
        return [
            self._to_item(food)
            for food in foods
            if wanted in f"{food.get('brandOwner') or ''} {food.get('brandName') or ''}".lower()
        ]

    async def search_by_category(self, category: str) -> list[FoodItem]:
        """Search generic foods related to a category."""
        foods = await self._search_foods(category, GENERIC_DATA_TYPES)
        return [self._to_item(food) for food in foods]

    async def lookup_barcode(self, code: str) -> FoodItem | None:
        """Find the branded food whose GTIN/UPC equals the barcode."""
        foods = await self._search_foods(code, BRANDED_DATA_TYPES)
        for food in foods:
            if str(food.get("gtinUpc") or "").lstrip("0") == code.lstrip("0"):
                return self._to_item(food)
        return None

    async def get_product(self, product_id: str) -> FoodItem | None:
        """Fetch a food by FDC id."""
        if not product_id.isdigit():
            return None
        payload = await request_json(
            PROVIDER_NAME,
            self.http_client,
            "GET",
            f"{self.base_url}/food/{product_id}",
            params={"api_key": self.api_key or ""},
        )
        if payload is None or not _has_name(payload):
            return None
        return self._to_item(payload)

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()

    async def _search_foods(
        self, query: str, data_types: list[str]
    ) -> list[dict[str, object]]:
        payload = await request_json(
            PROVIDER_NAME,
            self.http_client,
            "POST",
            f"{self.base_url}/foods/search",
            params={"api_key": self.api_key or ""},
            json={"query": query, "pageSize": PAGE_SIZE, "dataType": data_types},
        )
        foods = (payload or {}).get("foods")
        if not isinstance(foods, list):
            return []
        return [food for food in foods if isinstance(food, dict) and _has_name(food)]

    def _to_item(self, food: dict[str, object]) -> FoodItem:
        return self.normalizer.to_food_item(_to_record(food), PROVIDER_NAME)


def _has_name(food: dict[str, object]) -> bool:
    return bool(str(food.get("description") or "").strip())


def _extract_nutrients(food_nutrients: object) -> dict[str, float]:
    """Map FDC nutrient entries (search or detail shape) to named values."""
    values: dict[str, float] = {}
    if not isinstance(food_nutrients, list):
        return values
    for nutrient in food_nutrients:
        if not isinstance(nutrient, dict):
            continue
        nutrient_info = nutrient.get("nutrient") or {}
        if not isinstance(nutrient_info, dict):
            nutrient_info = {}
        nutrient_id = nutrient_info.get("id") or nutrient.get("nutrientId")
        number = str(nutrient_info.get("number") or nutrient.get("nutrientNumber") or "")
        amount = nutrient.get("amount", nutrient.get("value"))
        if amount is None:
            continue
        name = _NUTRIENT_IDS.get(nutrient_id) or _NUTRIENT_NUMBERS.get(number)  # type: ignore[arg-type]
        if name is not None and name not in values:
            values[name] = float(amount)
    return values


def _to_record(food: dict[str, object]) -> dict[str, object]:
    values = _extract_nutrients(food.get("foodNutrients"))
    serving = food.get("servingSize")
    unit = food.get("servingSizeUnit")
    record: dict[str, object] = {key: values.get(key) for key in _MACROS}
    record.update(
        {
            "id": food.get("fdcId"),
            "name": food.get("description"),
            "brand": food.get("brandName") or food.get("brandOwner"),
            "barcode": food.get("gtinUpc"),
            "serving_size": f"{serving}{unit}" if serving and unit else "100g",
            # FDC reports nutrient values per 100g for every data type.
            "nutrient_basis": "100g",
            "ingredients": food.get("ingredients"),
            "description": food.get("additionalDescriptions"),
            "verified": food.get("dataType") in GENERIC_DATA_TYPES,
            "nutrition_facts": {
                name: value for name, value in values.items() if name not in _MACROS
            },
        }
    )
    return record
