"""Nutritionix Track API client."""

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

PROVIDER_NAME = "nutritionix"

_PLACEHOLDER_NAMES = ("unknown", "placeholder", "test", "sample", "example")

# USDA SR nutrient numbers used in ``full_nutrients``.
_ATTR_IDS = {
    208: "calories",
    203: "protein",
    205: "carbs",
    204: "fat",
    291: "fiber",
    269: "sugar",
    307: "sodium",
    320: "vitamin_a",
    401: "vitamin_c",
    328: "vitamin_d",
    323: "vitamin_e",
    430: "vitamin_k",
    404: "thiamin",
    405: "riboflavin",
    406: "niacin",
    415: "vitamin_b6",
    435: "folate",
    418: "vitamin_b12",
    301: "calcium",
    303: "iron",
    304: "magnesium",
    305: "phosphorus",
    306: "potassium",
    309: "zinc",
}

_MACROS = {
    "calories": "nf_calories",
    "protein": "nf_protein",
    "carbs": "nf_total_carbohydrate",
    "fat": "nf_total_fat",
    "fiber": "nf_dietary_fiber",
    "sugar": "nf_sugars",
    "sodium": "nf_sodium",
}


@dataclass
class HttpxNutritionixClient(ProviderAdapter):
    """HTTPX-backed Nutritionix client."""

    app_id: str | None
    app_key: str | None
    base_url: str
    http_client: httpx.AsyncClient
    normalizer: DataNormalizer = field(default_factory=DataNormalizer)

    @classmethod
    def create(
        cls, app_id: str | None, app_key: str | None, base_url: str
    ) -> "HttpxNutritionixClient":
        """Create a client with a managed httpx session."""
        return cls(
            app_id=app_id,
            app_key=app_key,
            base_url=base_url,
            http_client=httpx.AsyncClient(),
        )

    @property
    def descriptor(self) -> ProviderDescriptor:
        """Return the provider descriptor."""
        return ProviderDescriptor(
            name=PROVIDER_NAME,
            priority=4,
            capabilities=ProviderCapabilities(brand_search=True),
        )

    def is_available(self) -> bool:
        """Return True when both app credentials are set."""
        return bool(self.app_id and self.app_key)

    async def search_food(self, query: str) -> list[FoodItem]:
        """Search branded and common foods."""
        payload = await self._instant(query, common=True)
        foods = [*_food_list(payload, "branded"), *_food_list(payload, "common")]
        return [self._to_item(food) for food in foods if _is_valid_food(food)]

    async def search_by_brand(self, brand: str) -> list[FoodItem]:
        """Search branded foods and keep those from the brand."""
        payload = await self._instant(brand, common=False)
        wanted = brand.lower()
        return [
            self._to_item(food)
            for food in _food_list(payload, "branded")
            if _is_valid_food(food) and wanted in str(food.get("brand_name") or "").lower()
        ]

    async def lookup_barcode(self, code: str) -> FoodItem | None:
        """Look up a branded item by UPC."""
        return await self._item({"upc": code})

    async def get_product(self, product_id: str) -> FoodItem | None:
        """Look up a branded item by Nutritionix item id."""
        return await self._item({"nix_item_id": product_id})

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()

    async def _instant(self, query: str, *, common: bool) -> dict[str, object] | None:
        return await request_json(
            PROVIDER_NAME,
            self.http_client,
            "POST",
            f"{self.base_url}/search/instant",
            json={"query": query, "detailed": True, "branded": True, "common": common},
            headers=self._headers(),
        )

    async def _item(self, params: dict[str, str]) -> FoodItem | None:
        payload = await request_json(
            PROVIDER_NAME,
            self.http_client,
            "GET",
            f"{self.base_url}/search/item",
            params=params,
            headers=self._headers(),
        )
        for food in _food_list(payload, "foods"):
            if _is_valid_food(food):
                return self._to_item(food)
        return None

    def _headers(self) -> dict[str, str]:
        return {
            "x-app-id": self.app_id or "",
            "x-app-key": self.app_key or "",
            "x-remote-user-id": "0",
        }

    def _to_item(self, food: dict[str, object]) -> FoodItem:
        return self.normalizer.to_food_item(_to_record(food), PROVIDER_NAME)


def _food_list(payload: dict[str, object] | None, key: str) -> list[dict[str, object]]:
    foods = (payload or {}).get(key)
    if not isinstance(foods, list):
        return []
    return [food for food in foods if isinstance(food, dict)]


def _is_valid_food(food: dict[str, object]) -> bool:
    name = str(food.get("food_name") or "").strip().lower()
    return bool(name) and not any(placeholder in name for placeholder in _PLACEHOLDER_NAMES)


def _to_record(food: dict[str, object]) -> dict[str, object]:
    values: dict[str, object] = {}
    full_nutrients = food.get("full_nutrients")
    if isinstance(full_nutrients, list):
        for nutrient in full_nutrients:
            if not isinstance(nutrient, dict):
                continue
            key = _ATTR_IDS.get(nutrient.get("attr_id"))  # type: ignore[arg-type]
            if key is not None and nutrient.get("value") is not None:
                values[key] = nutrient["value"]

    record: dict[str, object] = {
        key: values.get(key, food.get(field_name)) for key, field_name in _MACROS.items()
    }

    quantity = food.get("serving_qty")
    unit = food.get("serving_unit")
    weight = food.get("serving_weight_grams")
    serving_size = f"{quantity} {unit}" if quantity and unit else unit
    photo = food.get("photo")
    record.update(
        {
            "id": food.get("nix_item_id") or food.get("tag_id"),
            "name": food.get("food_name"),
            "brand": food.get("brand_name"),
            "barcode": food.get("upc"),
            "serving_size": serving_size or "100g",
            "nutrient_basis": f"{weight}g" if weight else serving_size,
            "image": photo.get("thumb") if isinstance(photo, dict) else None,
            "ingredients": food.get("nf_ingredient_statement"),
            "verified": True,
            "nutrition_facts": {
                name: value
                for name, value in values.items()
                if name not in _MACROS
            },
        }
    )
    return record
