from django.db import models


class ProcessedWebhook(models.Model):
    """
    One row per webhook delivery that was applied. The unique constraint on
    (provider, external_event_id) is what keeps duplicate deliveries from
    being applied twice.
    """

    PROVIDER_CHIP = "chip"
    PROVIDERS = ((PROVIDER_CHIP, "CHIP"),)

    provider = models.CharField(max_length=40, choices=PROVIDERS)
    external_event_id = models.CharField(max_length=255)
    status = models.CharField(max_length=40, blank=True)
    raw_payload = models.JSONField(null=True, blank=True)
    received_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-received_at"]
        unique_together = ("provider", "external_event_id")

    def __str__(self):
        return f"{self.provider}:{self.external_event_id}"
