"""Admin API endpoints with simple token auth."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status

if TYPE_CHECKING:
    from nutrition_aggregator.containers import AppContainer

router = APIRouter(prefix="/admin", tags=["admin"])


def _get_admin_token(request: Request) -> str:
    container: AppContainer = request.app.state.container
    return container.settings.admin_token


async def require_admin(
    x_admin_token: str | None = Header(default=None),
    admin_token: str = Depends(_get_admin_token),
) -> None:
    """Ensure requests include a valid admin token."""
    if not x_admin_token or x_admin_token != admin_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)


@router.delete("/cache", dependencies=[Depends(require_admin)])
async def clear_cache(request: Request) -> dict[str, str]:
    """Drop every cached nutrition record."""
    container: AppContainer = request.app.state.container
    container.aggregator.clear_cache()
    return {"status": "cleared"}


@router.post("/quotas/reset", dependencies=[Depends(require_admin)])
async def reset_quotas(request: Request) -> dict[str, object]:
    """Zero today's provider call counters."""
    container: AppContainer = request.app.state.container
    container.aggregator.reset_daily_quotas()
    return {
        "status": "reset",
        "next_reset": container.aggregator.next_quota_reset().isoformat(),
    }


@router.post("/cache/cleanup", dependencies=[Depends(require_admin)])
async def cleanup_cache(request: Request) -> dict[str, int]:
    """Purge expired cache entries."""
    container: AppContainer = request.app.state.container
    return {"removed": container.cache.cleanup_expired()}
