"""Heuristic enrichment for regionally-specific products."""

import logging
import re
from dataclasses import dataclass, field, replace

from nutrition_aggregator.domain.nutrition import FoodItem
from nutrition_aggregator.domain.regional import (
    DailyRecommendations,
    GuidelineReport,
    RegionalProductInfo,
    RegionalProfile,
)

REGIONAL_CONFIDENCE_BOOST = 0.1

_logger = logging.getLogger(__name__)

AUSTRALIA = RegionalProfile(
    code="au",
    brands=(
        "Coles", "Woolworths", "ALDI", "IGA", "Arnott's", "Bega",
        "Dairy Farmers", "Golden Circle", "SPC", "Cadbury", "Tim Tam",
        "Vegemite", "Weet-Bix", "Uncle Tobys", "Masterfoods", "Kraft",
        "Nestle", "Fonterra", "Sanitarium", "Leggo's", "Continental",
        "Red Rooster", "Hungry Jack's", "Guzman y Gomez", "Boost Juice",
        "Zambrero", "Oporto", "Grill'd",
    ),
    retailers=(
        "Coles", "Woolworths", "Woolies", "ALDI", "IGA", "Foodland", "Drakes",
        "Ritchies", "Supabarn", "Harris Farm Markets", "FoodWorks",
        "Dan Murphy's", "BWS",
    ),
    indicators=(
        "made in australia", "product of australia", "grown in australia",
        "australian owned", "australian made", "proudly australian",
        "australian beef", "australian lamb", "australian chicken",
        "australian dairy", "australian honey", "australian wheat",
    ),
    barcode_prefix="93",
    min_barcode_length=8,
    recommendations=DailyRecommendations(
        energy_kj=8700,
        calories=2080,
        protein_g=64,
        carbs_g=310,
        fat_g=70,
        fiber_g=30,
        sodium_mg=2000,
    ),
)

REGIONAL_PROFILES = {AUSTRALIA.code: AUSTRALIA}

_METRIC_SERVING = re.compile(
    r"\d\s*(g|kg|mg|ml|l)\b|\b(grams?|millilit(?:re|er)s?|lit(?:re|er)s?)\b",
    re.IGNORECASE,
)

# (pattern, metric amount per unit, metric unit); fluid ounces before ounces.
_IMPERIAL_CONVERSIONS = (
    (r"fl\.?\s*oz|fluid\s+ounces?", 30.0, "ml"),
    (r"cups?", 250.0, "ml"),
    (r"tablespoons?|tbsp", 15.0, "ml"),
    (r"teaspoons?|tsp", 5.0, "ml"),
    (r"ounces?|oz", 28.0, "g"),
    (r"pounds?|lbs?", 454.0, "g"),
)


def _contains_any(haystacks: list[str], needles: tuple[str, ...]) -> str | None:
    # Whole words only: "IGA" must not match "rigatoni".
    for needle in needles:
        pattern = re.compile(rf"(?<!\w){re.escape(needle.lower())}(?!\w)")
        if any(pattern.search(haystack) for haystack in haystacks):
            return needle
    return None


def _format_amount(value: float) -> str:
    rounded = round(value, 1)
    if rounded == int(rounded):
        return str(int(rounded))
    return str(rounded)


@dataclass
class RegionalEnhancer:
    """Flags products from one regional market and enriches them.

    Detection is best-effort: a product counts as regional when its brand,
    a retailer name, an origin phrase or its barcode prefix matches the
    profile. ``enhance`` never raises; on any failure the item is returned
    unchanged.
    """

    profile: RegionalProfile = field(default_factory=lambda: AUSTRALIA)

    def detect(self, item: FoodItem) -> RegionalProductInfo:
        """Evaluate every regional signal for an item."""
        name = item.name.lower()
        brand = (item.brand or "").lower()
        description = str(item.metadata.get("description", "")).lower()
        ingredients = ", ".join(item.ingredients or []).lower()
        barcode = item.barcode or ""

        matched_brand = _contains_any([name, brand], self.profile.brands)
        retailer = _contains_any([name, brand], self.profile.retailers)
        indicator = _contains_any([name, description, ingredients], self.profile.indicators)
        barcode_match = (
            barcode.startswith(self.profile.barcode_prefix)
            and len(barcode) >= self.profile.min_barcode_length
        )
        is_regional = bool(matched_brand or retailer or indicator or barcode_match)

        return RegionalProductInfo(
            is_regional=is_regional,
            brand=(item.brand or matched_brand) if matched_brand else None,
            retailer=retailer,
            health_rating=self._health_rating(item),
            nutrition_panel_compliant=all(
                value > 0 for value in (item.calories, item.protein, item.fat, item.carbs)
            ),
            metric_serving=bool(_METRIC_SERVING.search(item.serving_size)),
        )

    def enhance(self, item: FoodItem) -> FoodItem:
        """Return a copy of a regional item with boosted confidence and metadata."""
        try:
            info = self.detect(item)
            if not info.is_regional:
                return item
            serving_size = item.serving_size
            if not info.metric_serving:
                serving_size = self.convert_serving_size(serving_size)
            return replace(
                item,
                regional_product=True,
                confidence=min(item.confidence + REGIONAL_CONFIDENCE_BOOST, 1.0),
                health_rating=(
                    info.health_rating
                    if info.health_rating is not None
                    else item.health_rating
                ),
                verified=item.verified or info.nutrition_panel_compliant,
                serving_size=serving_size,
            )
        except Exception:
            _logger.debug("Regional enhancement skipped for %s", item.id, exc_info=True)
            return item

    @staticmethod
    def convert_serving_size(serving_size: str) -> str:
        """Rewrite imperial serving units as metric amounts."""
        converted = serving_size
        for unit_pattern, amount, unit in _IMPERIAL_CONVERSIONS:
            pattern = re.compile(
                rf"(?:(\d+(?:\.\d+)?)\s*|\b)(?:{unit_pattern})\b", re.IGNORECASE
            )

            def _convert(match: re.Match[str], amount: float = amount, unit: str = unit) -> str:
                quantity = float(match.group(1)) if match.group(1) else 1.0
                return f"{_format_amount(quantity * amount)}{unit}"

            converted = pattern.sub(_convert, converted)
        return converted

    def dietary_recommendations(self) -> DailyRecommendations:
        """Return the profile's reference daily intake."""
        return self.profile.recommendations

    @staticmethod
    def check_dietary_guidelines(item: FoodItem) -> GuidelineReport:
        """Compare per-100g values against common dietary guideline thresholds."""
        recommendations: list[str] = []
        warnings: list[str] = []
        if item.sodium is not None and item.sodium > 400:
            warnings.append("High sodium content - consider lower sodium alternatives")
        if item.sugar is not None and item.sugar > 15:
            warnings.append("High sugar content - consider lower sugar alternatives")
        if item.fiber is not None and item.fiber > 3:
            recommendations.append("Good source of dietary fiber")
        elif item.fiber is not None and item.fiber < 1:
            warnings.append("Low fiber content")
        if item.protein > 10:
            recommendations.append("Good source of protein")
        return GuidelineReport(
            is_healthy=not warnings and bool(recommendations),
            recommendations=recommendations,
            warnings=warnings,
        )

    @staticmethod
    def _health_rating(item: FoodItem) -> float | None:
        rating = item.metadata.get("health_rating")
        if isinstance(rating, int | float) and 0 <= rating <= 5:
            return float(rating)
        return None
