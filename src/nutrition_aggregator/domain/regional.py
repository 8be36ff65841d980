"""Regional product domain models."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class DailyRecommendations:
    """Reference daily intake for an adult in a region."""

    energy_kj: float
    calories: float
    protein_g: float
    carbs_g: float
    fat_g: float
    fiber_g: float
    sodium_mg: float


@dataclass(frozen=True)
class RegionalProfile:
    """Keyword lists and conventions used to recognise a regional market."""

    code: str
    brands: tuple[str, ...]
    retailers: tuple[str, ...]
    indicators: tuple[str, ...]
    barcode_prefix: str
    min_barcode_length: int
    recommendations: DailyRecommendations


@dataclass(frozen=True)
class RegionalProductInfo:
    """Detection outcome for a single product."""

    is_regional: bool
    brand: str | None = None
    retailer: str | None = None
    health_rating: float | None = None
    nutrition_panel_compliant: bool = False
    metric_serving: bool = False


@dataclass(frozen=True)
class GuidelineReport:
    """Dietary-guideline check for a product."""

    is_healthy: bool
    recommendations: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
