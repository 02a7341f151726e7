import logging

from rest_framework import permissions
from rest_framework.response import Response
from rest_framework.views import APIView

from common.analytics import get_analytics

from .chip import verify_webhook_signature
from .config import ChipWebhookConfig
from .services import ChipWebhookProcessor
from .webhooks import MalformedWebhook, parse_webhook

logger = logging.getLogger(__name__)

GENERIC_ERROR = "Something went wrong processing the webhook"


class ChipWebhookView(APIView):
    """
    Receives CHIP purchase callbacks.

    The body is read raw (never through request.data) because the signature
    covers the exact bytes the gateway sent.
    """

    authentication_classes = []
    permission_classes = [permissions.AllowAny]

    # Overridable through as_view(config=..., analytics_factory=...) in tests
    config = None
    analytics_factory = None

    def get_config(self):
        return self.config or ChipWebhookConfig.from_settings()

    def get_processor(self, config):
        analytics = self.analytics_factory() if self.analytics_factory else get_analytics()
        return ChipWebhookProcessor(config=config, analytics=analytics)

    def post(self, request, *args, **kwargs):
        config = self.get_config()
        if not config.is_configured:
            logger.warning("chip_webhook_not_configured")
            return Response({"message": "Not configured", "ok": False})

        body = request.body
        signature = request.headers.get("x-signature")
        if not signature:
            logger.warning("chip_webhook_rejected", extra={"reason": "missing x-signature header"})
            return Response({"message": GENERIC_ERROR, "ok": False}, status=500)

        if not verify_webhook_signature(body, signature, config.public_key):
            logger.warning("chip_webhook_rejected", extra={"reason": "invalid signature"})
            return Response({"message": "Invalid signature", "ok": False}, status=401)

        try:
            event = parse_webhook(body)
        except MalformedWebhook as exc:
            logger.error("chip_webhook_malformed", extra={"error": str(exc)})
            return Response({"message": GENERIC_ERROR, "ok": False}, status=500)

        logger.info(
            "chip_webhook_received",
            extra={"status": event.status, "payment_id": event.payment_id},
        )

        processor = self.get_processor(config)
        try:
            result = processor.process(event)
        except Exception:
            logger.exception("chip_webhook_processing_error", extra={"payment_id": event.payment_id})
            return Response({"message": GENERIC_ERROR, "ok": False}, status=500)
        finally:
            processor.analytics.flush()

        if not result.acknowledge:
            # Non-2xx makes the gateway redeliver the callback later
            return Response({"message": result.detail or GENERIC_ERROR, "ok": False}, status=500)

        logger.info(
            "chip_webhook_processed",
            extra={"payment_id": event.payment_id, "outcome": result.outcome},
        )
        return Response({"result": event.purchase.raw, "ok": True})
