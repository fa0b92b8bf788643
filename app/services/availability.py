"""Best-effort availability checks for embed URLs."""

from __future__ import annotations

import logging
from urllib.parse import urlparse

import httpx

logger = logging.getLogger(__name__)

_BROWSER_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/131.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.5",
}

_HTML_CONTENT_TYPES = ("text/html", "application/xhtml+xml")


class AvailabilityProbe:
    """Ask the check-video endpoint whether an embed URL is currently playable.

    ``check`` never raises: an answer that cannot be confirmed counts as
    unavailable.
    """

    def __init__(self, http_client: httpx.AsyncClient, endpoint: str) -> None:
        self._client = http_client
        self._endpoint = endpoint

    async def check(self, url: str) -> bool:
        try:
            response = await self._client.post(self._endpoint, json={"url": url})
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("Availability check for %s failed: %s", url, exc)
            return False

        try:
            payload = response.json()
        except ValueError:
            logger.warning(
                "Availability check for %s returned a non-JSON response: %s",
                url,
                response.text[:200],
            )
            return False

        if not isinstance(payload, dict):
            return False
        available = payload.get("available")
        if not isinstance(available, bool):
            logger.debug("Availability check for %s returned %r", url, payload)
            return False
        return available


def _is_error_redirect(final_url: str) -> bool:
    path = urlparse(final_url).path.lower()
    return "/404" in path or "/error" in path


async def check_embed_reachable(
    http_client: httpx.AsyncClient, url: str, *, timeout: float = 10.0
) -> bool:
    """Fetch ``url`` and report whether it looks like a live embed page."""

    parsed = urlparse(url)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        return False

    try:
        response = await http_client.get(
            url,
            follow_redirects=True,
            timeout=timeout,
            headers={**_BROWSER_HEADERS, "Referer": url},
        )
    except httpx.HTTPError as exc:
        logger.debug("Embed probe for %s failed: %s", url, exc)
        return False

    if response.status_code >= 400:
        logger.debug("Embed probe for %s answered %s", url, response.status_code)
        return False
    if _is_error_redirect(str(response.url)):
        return False
    content_type = response.headers.get("content-type", "").lower()
    return any(kind in content_type for kind in _HTML_CONTENT_TYPES)
