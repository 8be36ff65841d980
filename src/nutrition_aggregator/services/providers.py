"""Provider adapter interfaces."""

from typing import Protocol, runtime_checkable

from nutrition_aggregator.domain.nutrition import FoodItem, ProviderDescriptor


class ProviderTransportError(RuntimeError):
    """Raised by an adapter when its upstream call fails."""

    def __init__(self, provider: str, message: str) -> None:
        super().__init__(f"{provider}: {message}")
        self.provider = provider


class ProviderAdapter(Protocol):
    """Interface every external nutrition provider implements.

    ``None`` and ``[]`` mean "nothing found here"; transport and protocol
    failures raise ``ProviderTransportError``. Adapters never touch the
    cache or quota state.
    """

    @property
    def descriptor(self) -> ProviderDescriptor:
        """Return the provider's name, priority and capabilities."""

    def is_available(self) -> bool:
        """Return True if credentials are configured. Performs no I/O."""

    async def search_food(self, query: str) -> list[FoodItem]:
        """Search foods by free text."""

    async def lookup_barcode(self, code: str) -> FoodItem | None:
        """Look up a product by barcode."""


@runtime_checkable
class BrandSearchable(Protocol):
    """Provider capability: search by brand name."""

    async def search_by_brand(self, brand: str) -> list[FoodItem]:
        """Search products from a brand."""


@runtime_checkable
class CategorySearchable(Protocol):
    """Provider capability: search by product category."""

    async def search_by_category(self, category: str) -> list[FoodItem]:
        """Search products in a category."""


@runtime_checkable
class ProductLookup(Protocol):
    """Provider capability: fetch a product by its provider-local id."""

    async def get_product(self, product_id: str) -> FoodItem | None:
        """Fetch a product by id."""
