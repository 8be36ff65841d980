"""FatSecret Platform API client."""

import re
from dataclasses import dataclass, field

import httpx

from nutrition_aggregator.adapters.http import request_json
from nutrition_aggregator.adapters.oauth_signer import HmacSha1Signer, RequestSigner
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

PROVIDER_NAME = "fatsecret"
MAX_RESULTS = 20

_PLACEHOLDER_NAMES = ("unknown", "placeholder", "test", "sample", "example")

# "Per 100g - Calories: 52kcal | Fat: 0.17g | Carbs: 13.81g | Protein: 0.26g"
_DESCRIPTION_PATTERN = re.compile(
    r"Per\s+(?P<basis>.+?)\s+-\s+"
    r"Calories:\s*(?P<calories>[\d.]+)\s*kcal\s*\|\s*"
    r"Fat:\s*(?P<fat>[\d.]+)\s*g\s*\|\s*"
    r"Carbs:\s*(?P<carbs>[\d.]+)\s*g\s*\|\s*"
    r"Protein:\s*(?P<protein>[\d.]+)\s*g",
    re.IGNORECASE,
)

_FACT_KEYS = (
    "saturated_fat",
    "cholesterol",
    "potassium",
    "calcium",
    "iron",
    "vitamin_a",
    "vitamin_c",
    "vitamin_d",
)


def _as_list(value: object) -> list[dict[str, object]]:
    """FatSecret returns a bare object instead of a one-element list."""
    if isinstance(value, list):
        return [item for item in value if isinstance(item, dict)]
    if isinstance(value, dict):
        return [value]
    return []


def _has_valid_name(food: dict[str, object]) -> bool:
    name = str(food.get("food_name") or "").strip().lower()
    return bool(name) and not any(placeholder in name for placeholder in _PLACEHOLDER_NAMES)


@dataclass
class HttpxFatSecretClient(ProviderAdapter):
    """HTTPX-backed FatSecret client signing every call with OAuth 1.0a."""

    consumer_key: str | None
    consumer_secret: str | None
    base_url: str
    http_client: httpx.AsyncClient
    signer: RequestSigner | None = None
    normalizer: DataNormalizer = field(default_factory=DataNormalizer)

    def __post_init__(self) -> None:
        if self.signer is None and self.is_available():
            self.signer = HmacSha1Signer(
                consumer_key=self.consumer_key or "",
                consumer_secret=self.consumer_secret or "",
            )

    @classmethod
    def create(
        cls, consumer_key: str | None, consumer_secret: str | None, base_url: str
    ) -> "HttpxFatSecretClient":
        """Create a client with a managed httpx session."""
        return cls(
            consumer_key=consumer_key,
            consumer_secret=consumer_secret,
            base_url=base_url,
            http_client=httpx.AsyncClient(),
        )

    @property
    def descriptor(self) -> ProviderDescriptor:
        """Return the provider descriptor."""
        return ProviderDescriptor(
            name=PROVIDER_NAME,
            priority=2,
            capabilities=ProviderCapabilities(brand_search=True),
        )

    def is_available(self) -> bool:
        """Return True when both consumer credentials are set."""
        return bool(self.consumer_key and self.consumer_secret)

    async def search_food(self, query: str) -> list[FoodItem]:
        """Search foods using ``foods.search``."""
        return [
            self.normalizer.to_food_item(record, PROVIDER_NAME)
            for record in await self._search_records(query)
        ]

    async def search_by_brand(self, brand: str) -> list[FoodItem]:
        """Search foods and keep those whose brand matches."""
        wanted = brand.lower()
        return [
            self.normalizer.to_food_item(record, PROVIDER_NAME)
            for record in await self._search_records(brand)
            if wanted in str(record.get("brand") or "").lower()
        ]

    async def lookup_barcode(self, code: str) -> FoodItem | None:
        """Resolve a barcode to a food id, then fetch the food."""
        payload = await self._call("food.find_id_for_barcode", barcode=code)
        food_id = (payload or {}).get("food_id")
        if isinstance(food_id, dict):
            food_id = food_id.get("value")
        if not food_id or str(food_id) == "0":
            return None
        record = await self._food_record(str(food_id))
        if record is None:
            return None
        return self.normalizer.to_food_item({**record, "barcode": code}, PROVIDER_NAME)

    async def get_product(self, product_id: str) -> FoodItem | None:
        """Fetch a food with its servings using ``food.get.v2``."""
        record = await self._food_record(product_id)
        if record is None:
            return None
        return self.normalizer.to_food_item(record, PROVIDER_NAME)

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()

    async def _food_record(self, food_id: str) -> dict[str, object] | None:
        payload = await self._call("food.get.v2", food_id=food_id)
        food = (payload or {}).get("food")
        if not isinstance(food, dict) or not _has_valid_name(food):
            return None
        servings = food.get("servings")
        serving_list = _as_list(servings.get("serving")) if isinstance(servings, dict) else []
        if not serving_list:
            return None
        return _serving_record(food, serving_list[0])

    async def _search_records(self, expression: str) -> list[dict[str, object]]:
        payload = await self._call(
            "foods.search", search_expression=expression, max_results=str(MAX_RESULTS)
        )
        foods = (payload or {}).get("foods")
        if not isinstance(foods, dict):
            return []
        records = []
        for food in _as_list(foods.get("food")):
            if not _has_valid_name(food):
                continue
            record = _description_record(food)
            if record is not None:
                records.append(record)
        return records

    async def _call(self, method: str, **params: str) -> dict[str, object] | None:
        if self.signer is None:
            raise ProviderTransportError(PROVIDER_NAME, "missing consumer credentials")
        data = {"method": method, "format": "json", **params}
        payload = await request_json(
            PROVIDER_NAME,
            self.http_client,
            "POST",
            self.base_url,
            data=data,
            headers=self.signer.sign("POST", self.base_url, data),
        )
        error = (payload or {}).get("error")
        if isinstance(error, dict):
            raise ProviderTransportError(
                PROVIDER_NAME, f"error {error.get('code')}: {error.get('message')}"
            )
        return payload


def _description_record(food: dict[str, object]) -> dict[str, object] | None:
    """Parse the nutrient summary that search results carry instead of servings."""
    match = _DESCRIPTION_PATTERN.search(str(food.get("food_description") or ""))
    if match is None:
        return None
    return {
        "id": food.get("food_id"),
        "name": food.get("food_name"),
        "brand": food.get("brand_name"),
        "calories": match["calories"],
        "protein": match["protein"],
        "carbs": match["carbs"],
        "fat": match["fat"],
        "serving_size": match["basis"],
        "nutrient_basis": match["basis"],
        "verified": True,
    }


def _serving_record(food: dict[str, object], serving: dict[str, object]) -> dict[str, object]:
    amount = serving.get("metric_serving_amount")
    unit = serving.get("metric_serving_unit")
    description = serving.get("serving_description")
    basis = f"{amount}{unit}" if amount and unit else description
    return {
        "id": food.get("food_id"),
        "name": food.get("food_name"),
        "brand": food.get("brand_name"),
        "calories": serving.get("calories"),
        "protein": serving.get("protein"),
        "carbs": serving.get("carbohydrate"),
        "fat": serving.get("fat"),
        "fiber": serving.get("fiber"),
        "sugar": serving.get("sugar"),
        "sodium": serving.get("sodium"),
        "serving_size": description or basis,
        "nutrient_basis": basis,
        "verified": True,
        "nutrition_facts": {
            key: serving[key] for key in _FACT_KEYS if serving.get(key) is not None
        },
    }
