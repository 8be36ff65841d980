"""Nutrition domain models."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Literal

MealCategory = Literal["breakfast", "lunch", "dinner", "snack"]

CACHE_SOURCE = "cache"


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


@dataclass(frozen=True)
class FoodItem:
    """Canonical nutrition record with all nutrient values per 100g.

    Sodium is expressed in milligrams, every other nutrient in grams.
    Optional nutrients stay ``None`` when the source did not report them so
    that callers can tell "unknown" apart from zero.
    """

    id: str
    name: str
    calories: float
    protein: float
    carbs: float
    fat: float
    serving_size: str
    source: str
    confidence: float
    verified: bool = False
    brand: str | None = None
    barcode: str | None = None
    fiber: float | None = None
    sugar: float | None = None
    sodium: float | None = None
    nutrition_facts: dict[str, float] | None = None
    image: str | None = None
    allergens: list[str] | None = None
    ingredients: list[str] | None = None
    regional_product: bool | None = None
    health_rating: float | None = None
    category: MealCategory = "lunch"
    timestamp: datetime = field(default_factory=_utcnow)
    quantity: float = 1.0
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.source:
            raise ValueError("FoodItem.source must not be empty")
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence out of range: {self.confidence}")
        for name in ("calories", "protein", "carbs", "fat", "fiber", "sugar", "sodium"):
            value = getattr(self, name)
            if value is not None and value < 0:
                raise ValueError(f"{name} must not be negative: {value}")


@dataclass(frozen=True)
class ProviderCapabilities:
    """Operations a provider supports beyond the required ones."""

    search: bool = True
    barcode: bool = True
    brand_search: bool = False
    category_search: bool = False


@dataclass(frozen=True)
class ProviderDescriptor:
    """Static description of an external nutrition provider."""

    name: str
    priority: int
    capabilities: ProviderCapabilities = field(default_factory=ProviderCapabilities)


@dataclass(frozen=True)
class LookupResult:
    """Outcome of a single barcode or product lookup."""

    success: bool
    data: FoodItem | None = None
    source: str | None = None
    confidence: float | None = None
    cache_hit: bool = False
    error: str | None = None


@dataclass(frozen=True)
class SearchResult:
    """Merged outcome of a fan-out search."""

    success: bool
    results: list[FoodItem] = field(default_factory=list)
    total_results: int = 0
    sources: list[str] = field(default_factory=list)
    error: str | None = None


@dataclass(frozen=True)
class BulkSummary:
    """Counters for a bulk barcode lookup."""

    total: int
    found: int
    not_found: int
    errors: int


@dataclass(frozen=True)
class BulkResult:
    """Per-barcode results of a bulk lookup."""

    success: bool
    results: dict[str, FoodItem | None]
    errors: dict[str, str]
    summary: BulkSummary


@dataclass(frozen=True)
class ProviderUsage:
    """Quota usage for one provider. ``None`` quota means unlimited."""

    calls_today: int
    calls_this_month: int
    quota: int | None
    remaining: int | None


@dataclass(frozen=True)
class CacheStats:
    """Cache size and lookup counters."""

    size: int
    hits: int
    misses: int
    hit_rate: float = 0.0
