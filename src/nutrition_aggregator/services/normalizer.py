"""Normalization of provider records into canonical food items."""

import re
from collections.abc import Mapping
from dataclasses import dataclass
from uuid import uuid4

from nutrition_aggregator.domain.nutrition import FoodItem, MealCategory

KJ_PER_KCAL = 4.184
DEFAULT_SERVING_WEIGHT_G = 100.0
VERIFICATION_THRESHOLD = 0.7

_UNIT_PATTERN = re.compile(
    r"(\d+(?:[.,]\d+)?)\s*"
    r"(fl\.?\s*oz|fluid\s+ounces?|kilograms?|kg|milligrams?|mg|grams?|grammes?|g"
    r"|millilit(?:re|er)s?|ml|lit(?:re|er)s?|l|ounces?|oz|pounds?|lbs?)\b",
    re.IGNORECASE,
)

_GRAMS_PER_UNIT = {
    "kg": 1000.0,
    "mg": 0.001,
    "g": 1.0,
    "ml": 1.0,
    "l": 1000.0,
    "fl oz": 29.57,
    "oz": 28.35,
    "lb": 453.59,
}

# Checked in order; plural forms are matched by the optional "s".
_CONTAINER_WEIGHTS_G = (
    ("tablespoon", 15.0),
    ("tbsp", 15.0),
    ("teaspoon", 5.0),
    ("tsp", 5.0),
    ("cup", 250.0),
    ("slice", 30.0),
    ("piece", 50.0),
    ("serving", 100.0),
    ("serve", 100.0),
    ("portion", 150.0),
    ("packet", 50.0),
    ("pack", 100.0),
    ("container", 150.0),
    ("bottle", 500.0),
    ("can", 400.0),
    ("tin", 400.0),
    ("jar", 300.0),
    ("bag", 200.0),
    ("box", 300.0),
    ("tub", 500.0),
    ("pot", 150.0),
    ("sachet", 10.0),
)

_SERVING_REWRITES = (
    (re.compile(r"\bgrams?\b", re.IGNORECASE), "g"),
    (re.compile(r"\bmillilit(?:re|er)s?\b", re.IGNORECASE), "ml"),
    (re.compile(r"\blit(?:re|er)s?\b", re.IGNORECASE), "l"),
    (re.compile(r"\bounces?\b", re.IGNORECASE), "oz"),
    (re.compile(r"\bpounds?\b", re.IGNORECASE), "lb"),
)

_CATEGORY_KEYWORDS: tuple[tuple[MealCategory, tuple[str, ...]], ...] = (
    (
        "breakfast",
        (
            "cereal", "oat", "muesli", "toast", "pancake", "waffle", "yogurt",
            "yoghurt", "milk", "egg", "bacon", "sausage",
        ),
    ),
    (
        "lunch",
        ("sandwich", "wrap", "salad", "soup", "pasta", "rice", "chicken", "fish", "meat"),
    ),
    (
        "dinner",
        (
            "steak", "roast", "grill", "bake", "casserole", "curry", "stew",
            "lasagna", "pizza",
        ),
    ),
    (
        "snack",
        (
            "chip", "crisp", "candy", "chocolate", "cookie", "biscuit", "nut",
            "fruit", "bar",
        ),
    ),
)

_REQUIRED_FIELDS = ("name", "calories", "protein", "carbs", "fat")
_OPTIONAL_FIELDS = ("fiber", "sugar", "sodium", "brand", "barcode", "image")
_VERIFICATION_FIELDS = (
    "verified",
    "verified_by",
    "quality_score",
    "completeness_score",
    "data_quality",
)
_RATING_FIELDS = ("health_star_rating", "health_rating", "star_rating", "rating")


def _canonical_unit(unit: str) -> str:
    unit = re.sub(r"\s+", " ", unit.lower().replace(".", ""))
    if unit.startswith(("fl", "fluid")):
        return "fl oz"
    if unit.startswith(("kilogram", "kg")):
        return "kg"
    if unit.startswith(("milligram", "mg")):
        return "mg"
    if unit.startswith(("millilit", "ml")):
        return "ml"
    if unit.startswith("gram") or unit == "g":
        return "g"
    if unit.startswith("lit") or unit == "l":
        return "l"
    if unit.startswith(("ounce", "oz")):
        return "oz"
    return "lb"


def _as_float(value: object) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None
    if number != number:  # NaN
        return None
    return number


def _as_text(value: object) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _as_list(value: object) -> list[str]:
    if isinstance(value, str):
        items = value.split(",")
    elif isinstance(value, list | tuple):
        items = [str(item) for item in value if item is not None]
    else:
        return []
    return [item.strip() for item in items if item.strip()]


@dataclass
class DataNormalizer:
    """Turns one provider's flattened record into a ``FoodItem``.

    Records are plain mappings using the keys ``name``, ``brand``,
    ``calories``, ``protein``, ``carbs``, ``fat``, ``fiber``, ``sugar``,
    ``sodium`` (mg), ``serving_size``, ``nutrient_basis``, ``energy_unit``,
    ``barcode``, ``image``, ``nutrition_facts`` and the verification and
    rating signals. Nutrient values refer to ``nutrient_basis`` (falling back
    to ``serving_size``) and are rescaled to 100g.
    """

    default_serving_weight_g: float = DEFAULT_SERVING_WEIGHT_G

    def extract_serving_weight(self, serving_size: str | None) -> float:
        """Return the gram equivalent of a free-text serving description."""
        if not serving_size:
            return self.default_serving_weight_g
        match = _UNIT_PATTERN.search(serving_size)
        if match:
            amount = float(match.group(1).replace(",", "."))
            grams = amount * _GRAMS_PER_UNIT[_canonical_unit(match.group(2))]
            if grams > 0:
                return grams
        lowered = serving_size.lower()
        for word, weight in _CONTAINER_WEIGHTS_G:
            if re.search(rf"\b{word}s?\b", lowered):
                return weight
        return self.default_serving_weight_g

    @staticmethod
    def normalize_calories(value: float, unit: str | None = "kcal") -> float:
        """Convert an energy value to kcal."""
        if unit and unit.lower() == "kj":
            return value / KJ_PER_KCAL
        return value

    @staticmethod
    def normalize_serving_size(serving_size: str | None) -> str:
        """Shorten spelled-out units in a serving description."""
        if not serving_size or not serving_size.strip():
            return "100g"
        normalized = serving_size.strip()
        for pattern, replacement in _SERVING_REWRITES:
            normalized = pattern.sub(replacement, normalized)
        return normalized

    @staticmethod
    def infer_category(
        name: str, calories: float, protein: float, carbs: float
    ) -> MealCategory:
        """Guess the meal a food belongs to from its name, then its macros."""
        lowered = name.lower()
        for category, keywords in _CATEGORY_KEYWORDS:
            if any(keyword in lowered for keyword in keywords):
                return category
            if category == "snack" and calories < 200:
                return "snack"
        if protein > 20:
            return "dinner"
        if carbs > 50:
            return "lunch"
        if calories < 300:
            return "snack"
        return "lunch"

    @staticmethod
    def is_verified(raw: Mapping[str, object]) -> bool:
        """Return True if the record carries a verification or quality signal."""
        for key in _VERIFICATION_FIELDS:
            value = raw.get(key)
            if value is True:
                return True
            if isinstance(value, int | float) and not isinstance(value, bool):
                if value > VERIFICATION_THRESHOLD:
                    return True
        return False

    def calculate_confidence(self, raw: Mapping[str, object]) -> float:
        """Score record completeness in [0, 1].

        Required fields weigh 1, optional fields 0.5, and a verified record
        adds 1 to both the score and the total.
        """
        score = 0.0
        total = 0.0
        for key in _REQUIRED_FIELDS:
            total += 1
            value = raw.get(key)
            if key == "name":
                if _as_text(value):
                    score += 1
            elif (_as_float(value) or 0.0) > 0:
                score += 1
        for key in _OPTIONAL_FIELDS:
            total += 1
            if raw.get(key):
                score += 0.5
        if self.is_verified(raw):
            score += 1
            total += 1
        return max(0.0, min(score / total, 1.0))

    def to_food_item(self, raw: Mapping[str, object], source: str) -> FoodItem:
        """Build a per-100g ``FoodItem`` from a flattened provider record."""
        serving_size = self.normalize_serving_size(_as_text(raw.get("serving_size")))
        basis = _as_text(raw.get("nutrient_basis")) or serving_size
        factor = 100.0 / self.extract_serving_weight(basis)

        def per_100g(key: str) -> float | None:
            value = _as_float(raw.get(key))
            if value is None:
                return None
            return round(max(0.0, value * factor), 2)

        energy = _as_float(raw.get("calories")) or 0.0
        calories = round(
            max(0.0, self.normalize_calories(energy, _as_text(raw.get("energy_unit"))))
            * factor,
            2,
        )
        protein = per_100g("protein") or 0.0
        carbs = per_100g("carbs") or 0.0
        fat = per_100g("fat") or 0.0
        name = _as_text(raw.get("name")) or "Unknown Food"

        facts: dict[str, float] = {}
        raw_facts = raw.get("nutrition_facts")
        if isinstance(raw_facts, Mapping):
            for key, value in raw_facts.items():
                number = _as_float(value)
                if number is not None:
                    facts[str(key)] = round(max(0.0, number * factor), 4)

        metadata: dict[str, object] = {}
        for key in _RATING_FIELDS:
            rating = _as_float(raw.get(key))
            if rating is not None and 0 <= rating <= 5:
                metadata["health_rating"] = rating
                break
        description = _as_text(raw.get("description"))
        if description:
            metadata["description"] = description

        allergens = _as_list(raw.get("allergens"))
        ingredients = _as_list(raw.get("ingredients"))
        return FoodItem(
            id=_as_text(raw.get("id")) or f"{source}-{uuid4().hex[:12]}",
            name=name,
            brand=_as_text(raw.get("brand")),
            calories=calories,
            protein=protein,
            carbs=carbs,
            fat=fat,
            fiber=per_100g("fiber"),
            sugar=per_100g("sugar"),
            sodium=per_100g("sodium"),
            serving_size=serving_size,
            barcode=_as_text(raw.get("barcode")),
            image=_as_text(raw.get("image")),
            source=source,
            confidence=self.calculate_confidence(raw),
            verified=self.is_verified(raw),
            nutrition_facts=facts or None,
            allergens=allergens or None,
            ingredients=ingredients or None,
            category=self.infer_category(name, calories, protein, carbs),
            metadata=metadata,
        )
