from dataclasses import dataclass

from django.conf import settings

from .models import ProcessedWebhook

PREMIUM_TIER_CATEGORY = "event_premium_tier"


@dataclass(frozen=True)
class ChipWebhookConfig:
    """
    Everything the webhook needs from the environment, resolved once and
    handed to the processor instead of being read ad hoc from settings.
    """

    public_key: str = ""
    provider: str = ProcessedWebhook.PROVIDER_CHIP
    default_currency: str = "MYR"
    premium_category: str = PREMIUM_TIER_CATEGORY
    request_redelivery_on_failure: bool = True

    @property
    def is_configured(self):
        return bool((self.public_key or "").strip())

    @classmethod
    def from_settings(cls):
        return cls(
            public_key=getattr(settings, "CHIP_WEBHOOK_SECRET", "") or "",
            default_currency=getattr(settings, "DEFAULT_CURRENCY", "MYR") or "MYR",
            request_redelivery_on_failure=getattr(settings, "CHIP_WEBHOOK_REDELIVER_ON_FAILURE", True),
        )
