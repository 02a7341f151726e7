import logging

from django.conf import settings
from django.core.cache import cache

logger = logging.getLogger(__name__)

KEY_PREFIX = "public_page"


def _normalize(path):
    path = "/" + (path or "").strip().strip("/")
    return path if path != "/" else "/"


def path_cache_key(path):
    return f"{KEY_PREFIX}:{_normalize(path)}"


def get_cached_payload(path):
    return cache.get(path_cache_key(path))


def cache_public_payload(path, payload, timeout=None):
    if timeout is None:
        timeout = getattr(settings, "PUBLIC_PAGE_CACHE_SECONDS", 300)
    cache.set(path_cache_key(path), payload, timeout=timeout)
    return payload


def revalidate_path(path):
    """Drop the cached public payload for a route so the next read rebuilds it."""
    cache.delete(path_cache_key(path))
    logger.info("public_path_revalidated", extra={"path": _normalize(path)})


def revalidate_paths(paths):
    for path in paths:
        revalidate_path(path)
