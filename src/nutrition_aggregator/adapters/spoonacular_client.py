"""Spoonacular grocery products API client."""

from dataclasses import dataclass, field

import httpx

from nutrition_aggregator.adapters.http import request_json
from nutrition_aggregator.domain.nutrition import (
    FoodItem,
    ProviderCapabilities,
    ProviderDescriptor,
)
from nutrition_aggregator.services.normalizer import DataNormalizer
from nutrition_aggregator.services.providers import (
    ProviderAdapter,
    ProviderTransportError,
)

PROVIDER_NAME = "spoonacular"
RESULT_NUMBER = 20

_PLACEHOLDER_NAMES = ("unknown", "placeholder", "test", "sample", "example")

_MACRO_NAMES = {
    "calories": ("calories", "energy"),
    "protein": ("protein",),
    "carbs": ("carbohydrates", "carbohydrate", "net carbohydrates"),
    "fat": ("fat", "total fat"),
    "fiber": ("fiber", "dietary fiber"),
    "sugar": ("sugar", "sugars"),
    "sodium": ("sodium",),
}

_FACT_NAMES = {
    "vitamin_a": "vitamin a",
    "vitamin_c": "vitamin c",
    "vitamin_d": "vitamin d",
    "vitamin_e": "vitamin e",
    "vitamin_k": "vitamin k",
    "thiamin": "vitamin b1",
    "riboflavin": "vitamin b2",
    "niacin": "vitamin b3",
    "vitamin_b6": "vitamin b6",
    "folate": "folate",
    "vitamin_b12": "vitamin b12",
    "calcium": "calcium",
    "iron": "iron",
    "magnesium": "magnesium",
    "phosphorus": "phosphorus",
    "potassium": "potassium",
    "zinc": "zinc",
}


@dataclass
class HttpxSpoonacularClient(ProviderAdapter):
    """HTTPX-backed Spoonacular client."""

    api_key: str | None
    base_url: str
    http_client: httpx.AsyncClient
    normalizer: DataNormalizer = field(default_factory=DataNormalizer)

    @classmethod
    def create(cls, api_key: str | None, base_url: str) -> "HttpxSpoonacularClient":
        """Create a client with a managed httpx session."""
        return cls(api_key=api_key, base_url=base_url, http_client=httpx.AsyncClient())

    @property
    def descriptor(self) -> ProviderDescriptor:
        """Return the provider descriptor."""
        return ProviderDescriptor(
            name=PROVIDER_NAME,
            priority=3,
            capabilities=ProviderCapabilities(brand_search=True),
        )

    def is_available(self) -> bool:
        """Return True when an API key is configured."""
        return bool(self.api_key)

    async def search_food(self, query: str) -> list[FoodItem]:
        """Search grocery products."""
        return await self._search(query)

    async def search_by_brand(self, brand: str) -> list[FoodItem]:
        """Search grocery products and keep those from the brand."""
        wanted = brand.lower()
        return [
            item for item in await self._search(brand)
            if item.brand and wanted in item.brand.lower()
        ]

    async def lookup_barcode(self, code: str) -> FoodItem | None:
        """Fetch a grocery product by UPC."""
        return await self._product(f"{self.base_url}/products/upc/{code}")

    async def get_product(self, product_id: str) -> FoodItem | None:
        """Fetch a grocery product by Spoonacular id."""
        return await self._product(f"{self.base_url}/products/{product_id}")

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()

    async def _search(self, query: str) -> list[FoodItem]:
        payload = await self._get(
            f"{self.base_url}/products/search",
            query=query,
            number=RESULT_NUMBER,
            addProductInformation="true",
        )
        products = (payload or {}).get("products")
        if not isinstance(products, list):
            return []
        return [
            self.normalizer.to_food_item(_to_record(product), PROVIDER_NAME)
            for product in products
            if isinstance(product, dict) and _is_valid_product(product)
        ]

    async def _product(self, url: str) -> FoodItem | None:
        payload = await self._get(url)
        if payload is None or not _is_valid_product(payload):
            return None
        return self.normalizer.to_food_item(_to_record(payload), PROVIDER_NAME)

    async def _get(self, url: str, **params: object) -> dict[str, object] | None:
        payload = await request_json(
            PROVIDER_NAME,
            self.http_client,
            "GET",
            url,
            params={**params, "apiKey": self.api_key or ""},
            headers={"Accept": "application/json"},
        )
        if payload is not None and payload.get("status") == "failure":
            if payload.get("code") == 404:
                return None
            raise ProviderTransportError(
                PROVIDER_NAME, str(payload.get("message") or "request failed")
            )
        return payload


def _nutrient_map(product: dict[str, object]) -> dict[str, object]:
    nutrition = product.get("nutrition")
    nutrients = nutrition.get("nutrients") if isinstance(nutrition, dict) else None
    if not isinstance(nutrients, list):
        return {}
    return {
        str(nutrient["name"]).lower(): nutrient.get("amount")
        for nutrient in nutrients
        if isinstance(nutrient, dict) and nutrient.get("name")
    }


def _is_valid_product(product: dict[str, object]) -> bool:
    title = str(product.get("title") or "").strip().lower()
    if not title or any(placeholder in title for placeholder in _PLACEHOLDER_NAMES):
        return False
    return bool(_nutrient_map(product))


def _to_record(product: dict[str, object]) -> dict[str, object]:
    nutrients = _nutrient_map(product)

    def pick(*names: str) -> object | None:
        for name in names:
            if nutrients.get(name) is not None:
                return nutrients[name]
        return None

    servings = product.get("servings")
    basis = None
    if isinstance(servings, dict) and servings.get("size") and servings.get("unit"):
        basis = f"{servings['size']}{servings['unit']}"
    serving_size = product.get("serving_size") or product.get("servingSize") or basis
    images = product.get("images")

    record: dict[str, object] = {
        key: pick(*names) for key, names in _MACRO_NAMES.items()
    }
    record.update(
        {
            "id": product.get("id"),
            "name": product.get("title"),
            "brand": product.get("brand"),
            "barcode": product.get("upc"),
            "serving_size": serving_size or "100g",
            "nutrient_basis": basis or serving_size or "100g",
            "image": images[0] if isinstance(images, list) and images else product.get("image"),
            "ingredients": product.get("ingredientList"),
            "description": product.get("description"),
            "verified": True,
            "nutrition_facts": {
                fact: nutrients[name]
                for fact, name in _FACT_NAMES.items()
                if nutrients.get(name) is not None
            },
        }
    )
    return record
