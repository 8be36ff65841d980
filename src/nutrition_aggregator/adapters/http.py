"""Shared httpx helpers for provider adapters."""

import httpx

from nutrition_aggregator.services.providers import ProviderTransportError

REQUEST_TIMEOUT_SECONDS = 15


async def request_json(
    provider: str,
    http_client: httpx.AsyncClient,
    method: str,
    url: str,
    **kwargs: object,
) -> dict[str, object] | None:
    """Send a request and decode its JSON object body.

    Returns ``None`` on 404. Any other HTTP or transport failure and any
    non-object body raises ``ProviderTransportError``.
    """
    try:
        response = await http_client.request(
            method, url, timeout=REQUEST_TIMEOUT_SECONDS, **kwargs  # type: ignore[arg-type]
        )
    except httpx.HTTPError as exc:
        raise ProviderTransportError(provider, str(exc) or type(exc).__name__) from exc
    if response.status_code == 404:
        return None
    try:
        response.raise_for_status()
    except httpx.HTTPStatusError as exc:
        raise ProviderTransportError(
            provider, f"HTTP {response.status_code} for {response.url.path}"
        ) from exc
    try:
        payload = response.json()
    except ValueError as exc:
        raise ProviderTransportError(provider, "invalid JSON payload") from exc
    if not isinstance(payload, dict):
        raise ProviderTransportError(provider, "unexpected JSON payload")
    return payload
