"""Raw page retrieval for URL sources."""

import logging
import re
from typing import Optional
from urllib.parse import urlparse

import httpx

from mealie_transformer.app.core.config import get_settings
from mealie_transformer.app.core.errors import InvalidInputError, SourceUnreachableError

logger = logging.getLogger(__name__)


def is_absolute_http_url(url: str) -> bool:
    try:
        parsed = urlparse((url or "").strip())
    except ValueError:
        return False
    return parsed.scheme in {"http", "https"} and bool(parsed.netloc)


def _declared_charset(content_type: str) -> Optional[str]:
    if "charset=" not in content_type.lower():
        return None
    try:
        return content_type.lower().split("charset=")[1].split(";")[0].strip().strip("\"'")
    except (IndexError, AttributeError):
        return None


def decode_markup(content: bytes, content_type: str) -> str:
    """Decode a response body using the declared charset, then ``<meta charset>``, then UTF-8."""
    encoding = _declared_charset(content_type) or "utf-8"
    try:
        return content.decode(encoding)
    except (UnicodeDecodeError, LookupError):
        pass

    text = content.decode("utf-8", errors="replace")
    meta_match = re.search(r'<meta[^>]+charset=["\']?([^"\'>\s;]+)', text, re.I)
    if meta_match:
        detected = meta_match.group(1).lower()
        if detected and detected != "utf-8":
            try:
                return content.decode(detected)
            except (UnicodeDecodeError, LookupError):
                pass
    return text


async def fetch_html(url: str, transport: Optional[httpx.AsyncBaseTransport] = None) -> str:
    """Fetch a page once, following redirects.

    Raises SourceUnreachableError on transport errors and non-2xx responses.
    """
    if not is_absolute_http_url(url):
        raise InvalidInputError("Please enter a valid http(s) URL.")

    settings = get_settings()
    headers = {
        "User-Agent": settings.scraper_user_agent,
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        "Accept-Language": "en-US,en;q=0.9",
        "Connection": "keep-alive",
    }
    if settings.scraper_cookies:
        headers["Cookie"] = settings.scraper_cookies
    timeout = httpx.Timeout(settings.fetch_timeout_seconds, connect=5.0)

    try:
        async with httpx.AsyncClient(
            timeout=timeout, follow_redirects=True, headers=headers, transport=transport
        ) as client:
            response = await client.get(url)
    except httpx.TimeoutException as exc:
        logger.warning("Timed out fetching %s: %s", url, exc)
        raise SourceUnreachableError("timed out") from exc
    except httpx.HTTPError as exc:
        logger.warning("Network error fetching %s: %s", url, exc)
        raise SourceUnreachableError(f"network error: {exc}") from exc

    if not response.is_success:
        reason = response.reason_phrase or "request failed"
        logger.warning("Fetching %s returned status %s", url, response.status_code)
        raise SourceUnreachableError(reason, status_code=response.status_code)

    text = decode_markup(response.content, response.headers.get("content-type", ""))
    logger.info("Fetched %s: status=%s, chars=%d", url, response.status_code, len(text))
    return text
