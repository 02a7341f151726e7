"""
Product analytics through the PostHog SDK.

One client per process: the SDK queues `capture()` calls and a background
consumer delivers them. Request handlers call `flush()` once before
responding so the events of a request are sent before the response goes
out. Delivery errors stay inside the SDK and are logged by it.
"""
import logging
from functools import lru_cache

from django.conf import settings
from posthog import Posthog

logger = logging.getLogger(__name__)

# The SDK insists on a non-empty key even for a disabled client
DISABLED_API_KEY = "phc_disabled"


def build_analytics(api_key=None, host=None, timeout=None):
    api_key = (api_key or "").strip()
    if not api_key:
        logger.info("analytics_disabled", extra={"reason": "POSTHOG_API_KEY not set"})
    return Posthog(
        project_api_key=api_key or DISABLED_API_KEY,
        host=host or None,
        timeout=timeout or 3,
        disabled=not api_key,
        send=bool(api_key),
    )


@lru_cache(maxsize=None)
def get_analytics():
    return build_analytics(
        api_key=getattr(settings, "POSTHOG_API_KEY", ""),
        host=getattr(settings, "POSTHOG_HOST", None),
        timeout=getattr(settings, "ANALYTICS_TIMEOUT", None),
    )
