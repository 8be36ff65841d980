"""Tests for the HTTP API."""

from fastapi.testclient import TestClient

from nutrition_aggregator.api.app import create_app
from nutrition_aggregator.containers import AppContainer
from nutrition_aggregator.services.aggregator import NOT_FOUND_ERROR
from tests.conftest import FakeCatalogProvider

NUTELLA_BARCODE = "3017620422003"
ADMIN_HEADERS = {"X-Admin-Token": "admin-token"}


def test_health(container: AppContainer) -> None:
    client = TestClient(create_app(container))

    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_barcode_lookup_then_cache_hit(container: AppContainer) -> None:
    client = TestClient(create_app(container))

    first = client.get(f"/nutrition/barcode/{NUTELLA_BARCODE}").json()
    second = client.get(f"/nutrition/barcode/{NUTELLA_BARCODE}").json()

    assert first["success"] is True
    assert first["source"] == "openfoodfacts"
    assert first["cache_hit"] is False
    assert first["data"]["name"] == "Nutella"
    assert first["data"]["brand"] == "Ferrero"
    assert second["source"] == "cache"
    assert second["cache_hit"] is True


def test_barcode_not_found(container: AppContainer) -> None:
    client = TestClient(create_app(container))

    data = client.get("/nutrition/barcode/0000000000000").json()

    assert data["success"] is False
    assert data["data"] is None
    assert data["error"] == NOT_FOUND_ERROR


def test_search_endpoints(container: AppContainer, provider: FakeCatalogProvider) -> None:
    client = TestClient(create_app(container))

    search = client.get("/nutrition/search", params={"q": "nutella"}).json()
    brand = client.get("/nutrition/brand", params={"name": "Ferrero"}).json()
    category = client.get("/nutrition/category", params={"name": "spreads"}).json()

    assert search["success"] is True
    assert search["total_results"] == 1
    assert search["sources"] == ["openfoodfacts"]
    assert search["results"][0]["barcode"] == NUTELLA_BARCODE
    assert brand["results"][0]["name"] == "Nutella"
    assert category["success"] is True
    assert [action for action, _ in provider.calls] == ["search", "brand", "category"]


def test_search_requires_query(container: AppContainer) -> None:
    client = TestClient(create_app(container))

    assert client.get("/nutrition/search").status_code == 422


def test_product_by_id(container: AppContainer) -> None:
    client = TestClient(create_app(container))

    found = client.get(f"/nutrition/product/openfoodfacts/{NUTELLA_BARCODE}").json()
    unknown = client.get(f"/nutrition/product/mystery/{NUTELLA_BARCODE}").json()

    assert found["success"] is True
    assert found["data"]["name"] == "Nutella"
    assert unknown["success"] is False
    assert unknown["error"] == "Provider mystery not available"


def test_bulk_lookup(container: AppContainer) -> None:
    client = TestClient(create_app(container))

    response = client.post(
        "/nutrition/bulk", json={"barcodes": [NUTELLA_BARCODE, "0000000000000"]}
    )

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["summary"] == {"total": 2, "found": 1, "not_found": 1, "errors": 0}
    assert data["results"][NUTELLA_BARCODE]["name"] == "Nutella"
    assert data["results"]["0000000000000"] is None


def test_bulk_lookup_rejects_oversized_batches(container: AppContainer) -> None:
    client = TestClient(create_app(container))

    response = client.post(
        "/nutrition/bulk", json={"barcodes": [str(code) for code in range(501)]}
    )

    assert response.status_code == 422


def test_guidelines(container: AppContainer) -> None:
    client = TestClient(create_app(container))

    report = client.get(f"/nutrition/barcode/{NUTELLA_BARCODE}/guidelines").json()
    missing = client.get("/nutrition/barcode/0000000000000/guidelines").json()

    assert report["success"] is True
    assert report["product"] == "Nutella"
    assert report["is_healthy"] is False
    assert report["warnings"] == [
        "High sugar content - consider lower sugar alternatives",
        "Low fiber content",
    ]
    assert missing == {"success": False, "error": NOT_FOUND_ERROR}


def test_recommendations(container: AppContainer) -> None:
    client = TestClient(create_app(container))

    data = client.get("/nutrition/recommendations").json()

    assert data["energy_kj"] == 8700
    assert data["fiber_g"] == 30


def test_usage_cache_and_providers(container: AppContainer) -> None:
    client = TestClient(create_app(container))
    client.get(f"/nutrition/barcode/{NUTELLA_BARCODE}")

    usage = client.get("/nutrition/usage").json()
    cache = client.get("/nutrition/cache").json()
    providers = client.get("/nutrition/providers").json()

    assert usage["providers"]["openfoodfacts"] == {
        "calls_today": 1,
        "calls_this_month": 1,
        "quota": None,
        "remaining": None,
    }
    assert usage["utilization"] == {"openfoodfacts": 0.0}
    assert usage["best_available"] == "openfoodfacts"
    assert "T00:00:00" in usage["next_reset"]
    assert cache == {"size": 1, "hits": 0, "misses": 1, "hit_rate": 0.0}
    assert providers == {"providers": ["openfoodfacts"], "has_available": True}


def test_admin_endpoints_require_token(container: AppContainer) -> None:
    client = TestClient(create_app(container))

    assert client.delete("/admin/cache").status_code == 401
    assert (
        client.post("/admin/quotas/reset", headers={"X-Admin-Token": "wrong"}).status_code
        == 401
    )
    assert client.post("/admin/cache/cleanup").status_code == 401


def test_admin_clear_cache(container: AppContainer) -> None:
    client = TestClient(create_app(container))
    client.get(f"/nutrition/barcode/{NUTELLA_BARCODE}")

    response = client.delete("/admin/cache", headers=ADMIN_HEADERS)

    assert response.status_code == 200
    assert response.json() == {"status": "cleared"}
    assert container.aggregator.cache_stats().size == 0


def test_admin_reset_quotas_and_cleanup(container: AppContainer) -> None:
    client = TestClient(create_app(container))
    client.get(f"/nutrition/barcode/{NUTELLA_BARCODE}")

    reset = client.post("/admin/quotas/reset", headers=ADMIN_HEADERS).json()
    cleanup = client.post("/admin/cache/cleanup", headers=ADMIN_HEADERS).json()

    assert reset["status"] == "reset"
    assert reset["next_reset"]
    assert container.aggregator.usage_stats()["openfoodfacts"].calls_today == 0
    assert cleanup == {"removed": 0}
