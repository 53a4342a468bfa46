import logging
import time

from presale_radio.config import settings

logger = logging.getLogger(__name__)


def resolve_media_url(ref: str | None) -> str | None:
    """Turn a stored media reference into a URL a browser can fetch.

    Absolute URLs pass through; bare storage keys are served from MEDIA_BASE_URL.
    """
    if not ref:
        return None
    if ref.startswith(("http://", "https://", "//")):
        return ref
    if not settings.MEDIA_BASE_URL:
        logger.debug("MEDIA_BASE_URL not set, returning storage key %s as-is", ref)
        return ref
    return f"{settings.MEDIA_BASE_URL.rstrip('/')}/{ref.lstrip('/')}"


def artwork_url(ref: str | None, cache_key: str | None = None, now: float | None = None) -> str:
    """Artwork URL with cache-busting query params, falling back to the placeholder image."""
    url = resolve_media_url(ref) or settings.PLACEHOLDER_ART_URL
    separator = "&" if "?" in url else "?"
    stamp = int((now if now is not None else time.time()) * 1000)
    return f"{url}{separator}v={stamp}&t={cache_key or 'default'}"
