"""
Async JSON-over-HTTP requests with retry for the REST API wrappers.

The Apple Music and Notion wrappers share one request loop:

    - Up to MAX_ATTEMPTS attempts per request
    - Rate limiting (429, and 503 for Apple Music) waits for Retry-After
    - Authentication failures call a hook that drops the cached token,
      then retry with freshly built headers
    - Server errors and network failures back off exponentially (1s, 2s, ...)
    - Any other 4xx fails immediately

The wrappers translate the resulting HttpRequestError into their own
SourceError / SinkError so callers never see this module's exception.

Usage:
    async with aiohttp.ClientSession(timeout=DEFAULT_TIMEOUT) as session:
        data = await request_json(
            session, "GET", url,
            headers=lambda: {"Authorization": f"Bearer {token()}"},
        )
"""

import asyncio
from collections.abc import Awaitable, Callable, Collection
from typing import Any

import aiohttp

from music_soup.core.exceptions import MusicSoupError
from music_soup.core.logger import get_logger


DEFAULT_TIMEOUT = aiohttp.ClientTimeout(total=30)
MAX_ATTEMPTS = 3
DEFAULT_RETRY_AFTER = 5.0

logger = get_logger(__name__)


class HttpRequestError(MusicSoupError):
    """
    Raised when a request fails for good.

    Attributes:
        status_code: Last HTTP status, or None for network failures.
        is_auth_error: True if the last attempt was rejected as unauthorized.
        is_rate_limit: True if the last attempt was rate limited.
    """

    def __init__(
        self,
        message: str,
        details: dict | None = None,
        status_code: int | None = None,
        is_auth_error: bool = False,
        is_rate_limit: bool = False
    ) -> None:
        super().__init__(message, details)
        self.status_code = status_code
        self.is_auth_error = is_auth_error
        self.is_rate_limit = is_rate_limit


def parse_retry_after(value: str | None, default: float = DEFAULT_RETRY_AFTER) -> float:
    """Return the Retry-After header in seconds, or the default if absent or unparseable."""
    if not value:
        return default
    try:
        return max(0.0, float(value))
    except ValueError:
        return default


async def request_json(
    session: aiohttp.ClientSession,
    method: str,
    url: str,
    *,
    headers: Callable[[], dict[str, str]],
    json: dict[str, Any] | None = None,
    params: dict[str, Any] | None = None,
    rate_limit_statuses: Collection[int] = (429,),
    auth_statuses: Collection[int] = (401,),
    on_auth_failure: Callable[[], None] | None = None,
    max_attempts: int = MAX_ATTEMPTS,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep
) -> dict[str, Any]:
    """
    Send a request and return the decoded JSON body.

    Args:
        session: Open aiohttp session.
        method: HTTP method.
        url: Absolute URL.
        headers: Builds the request headers. Called again on every attempt
                 so a regenerated token is picked up.
        json: JSON body, if any.
        params: Query parameters, if any.
        rate_limit_statuses: Statuses that mean "wait Retry-After and retry".
        auth_statuses: Statuses that mean "token rejected".
        on_auth_failure: Called before retrying after an auth status.
        max_attempts: Total attempts including the first.
        sleep: Awaitable sleep, replaced in tests.

    Returns:
        The JSON body as a dictionary (empty for 204 responses).

    Raises:
        HttpRequestError: When attempts are exhausted, a non-retryable
                          status is returned, or a successful response
                          carries a body that is not a JSON object.
        ValueError: If max_attempts is less than 1.
    """
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")

    last_error = HttpRequestError(f"{method} {url} was not attempted")

    for attempt in range(max_attempts):
        is_last = attempt == max_attempts - 1
        try:
            async with session.request(
                method, url, headers=headers(), json=json, params=params
            ) as response:
                status = response.status

                if status in rate_limit_statuses:
                    wait = parse_retry_after(response.headers.get("Retry-After"))
                    last_error = HttpRequestError(
                        f"Rate limited ({status})",
                        details={"url": url, "status_code": status, "retry_after": wait},
                        status_code=status,
                        is_rate_limit=True
                    )
                    if not is_last:
                        logger.warning(
                            f"Rate limited by {response.url.host}, waiting {wait:.0f}s "
                            f"(attempt {attempt + 1}/{max_attempts})"
                        )
                        await sleep(wait)
                    continue

                if status in auth_statuses:
                    last_error = HttpRequestError(
                        f"Authentication failed ({status})",
                        details={"url": url, "status_code": status},
                        status_code=status,
                        is_auth_error=True
                    )
                    logger.warning(
                        f"Authentication rejected by {response.url.host} "
                        f"(attempt {attempt + 1}/{max_attempts})"
                    )
                    if on_auth_failure is not None:
                        on_auth_failure()
                    continue

                if status == 204:
                    return {}

                if status >= 400:
                    body = await response.text()
                    last_error = HttpRequestError(
                        f"HTTP {status}: {body[:300]}",
                        details={"url": url, "status_code": status, "body": body},
                        status_code=status
                    )
                    if status < 500:
                        raise last_error
                else:
                    return await _read_json_object(response, url)

        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            last_error = HttpRequestError(
                f"Request failed: {e}",
                details={"url": url, "original_error": str(e)}
            )

        if not is_last:
            wait = 2 ** attempt
            logger.warning(
                f"{method} {url} failed: {last_error}. Retrying in {wait}s "
                f"(attempt {attempt + 1}/{max_attempts})"
            )
            await sleep(wait)

    logger.error(f"{method} {url} failed after {max_attempts} attempts: {last_error}")
    raise last_error


async def _read_json_object(response: aiohttp.ClientResponse, url: str) -> dict[str, Any]:
    """
    Decode a successful response body.

    A body that is not JSON, or JSON that is not an object, fails at once
    without a retry.
    """
    try:
        data = await response.json(content_type=None)
    except ValueError as e:
        raise HttpRequestError(
            f"Invalid JSON in HTTP {response.status} response: {e}",
            details={"url": url, "status_code": response.status, "original_error": str(e)},
            status_code=response.status
        ) from e

    if not isinstance(data, dict):
        raise HttpRequestError(
            f"Expected a JSON object in HTTP {response.status} response, got {type(data).__name__}",
            details={"url": url, "status_code": response.status},
            status_code=response.status
        )
    return data
