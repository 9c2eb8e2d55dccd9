"""Shared HTTP plumbing for the JSON source clients.

Hey future me - every JSON client (catalog, MusicBrainz, Chartmetric, registry API) funnels
its requests through send_with_retry(). It owns exactly three concerns:
  1. take a rate-limiter token before each attempt
  2. retry 429s (Retry-After honoured, else exponential backoff) up to max_retries
  3. translate transport failures into the domain taxonomy
Callers still look at the status code themselves - a 404 means NoDataFound for one
source and "invalid id" for another, so that mapping stays in the client.
"""

import logging
from typing import Any

import httpx

from songscout.domain.exceptions import MalformedResponseError, SourceUnavailableError
from songscout.infrastructure.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

DEFAULT_MAX_RETRIES = 3


def _parse_retry_after(response: httpx.Response) -> float | None:
    value = response.headers.get("Retry-After")
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        return None


async def send_with_retry(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    limiter: RateLimiter,
    source: str,
    max_retries: int = DEFAULT_MAX_RETRIES,
    **kwargs: Any,
) -> httpx.Response:
    """Send a rate-limited request, retrying on 429.

    Args:
        client: HTTP client to use
        method: HTTP method
        url: Absolute URL or path relative to the client's base_url
        limiter: Shared limiter of the source
        source: Source name for errors and logs
        max_retries: Retries on 429 before giving up
        **kwargs: Passed through to httpx (params, json, data, headers)

    Returns:
        The first non-429 response

    Raises:
        SourceUnavailableError: On timeout, connection error, 5xx or exhausted 429 retries
    """
    for attempt in range(max_retries + 1):
        try:
            async with limiter:
                response = await client.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            raise SourceUnavailableError(f"{source} request timed out: {url}", source) from e
        except httpx.HTTPError as e:
            raise SourceUnavailableError(f"{source} request failed: {e}", source) from e

        if response.status_code == 429:
            if attempt >= max_retries:
                raise SourceUnavailableError(
                    f"{source} rate limited (429) after {max_retries} retries: {url}", source
                )
            wait_time = await limiter.handle_rate_limit_response(_parse_retry_after(response))
            logger.warning(
                f"{source} 429 (attempt {attempt + 1}/{max_retries}), "
                f"waited {wait_time:.1f}s, retrying {url}"
            )
            continue

        if response.status_code >= 500:
            raise SourceUnavailableError(
                f"{source} server error {response.status_code}: {url}", source
            )

        return response

    # Loop always returns or raises
    raise SourceUnavailableError(f"{source} request failed: {url}", source)


def json_body(response: httpx.Response, source: str) -> Any:
    """Decode a JSON body or raise MalformedResponseError."""
    try:
        return response.json()
    except ValueError as e:
        raise MalformedResponseError(
            f"{source} returned non-JSON body (status {response.status_code})", source
        ) from e


def json_objects(value: Any, source: str, what: str) -> list[dict[str, Any]]:
    """Check that ``value`` is a list of JSON objects (``None`` counts as empty).

    Raises:
        MalformedResponseError: If it is not a list or any item is not an object
    """
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(item, dict) for item in value):
        raise MalformedResponseError(f"{source}: {what} is not a list of objects", source)
    return value


def json_object(value: Any, source: str, what: str) -> dict[str, Any]:
    """Check that ``value`` is a JSON object."""
    if not isinstance(value, dict):
        raise MalformedResponseError(f"{source}: {what} is not an object", source)
    return value
