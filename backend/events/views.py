import logging
import time

from django.conf import settings
from django.shortcuts import get_object_or_404
from rest_framework import permissions, status
from rest_framework.response import Response
from rest_framework.views import APIView

from common.cache import cache_public_payload, get_cached_payload
from payments.chip import ChipClient, ChipError, webhook_callback_url
from payments.config import PREMIUM_TIER_CATEGORY

from .models import Event, EventPremiumUpgrade
from .serializers import (
    EventPremiumUpgradeSerializer,
    PremiumUpgradeRequestSerializer,
    PublicEventSerializer,
)

logger = logging.getLogger(__name__)


def _published_events():
    return Event.objects.filter(is_published=True).prefetch_related("ticket_types")


class PublicEventListView(APIView):
    """Storefront listing. Cached under /events until a webhook revalidates it."""

    authentication_classes = []
    permission_classes = [permissions.AllowAny]

    def get(self, request):
        payload = get_cached_payload("/events")
        if payload is None:
            data = PublicEventSerializer(_published_events(), many=True).data
            payload = cache_public_payload("/events", {"results": data})
        return Response(payload)


class PublicEventDetailView(APIView):
    authentication_classes = []
    permission_classes = [permissions.AllowAny]

    def get(self, request, slug):
        path = f"/events/{slug}"
        payload = get_cached_payload(path)
        if payload is None:
            event = get_object_or_404(_published_events(), slug=slug)
            payload = cache_public_payload(path, PublicEventSerializer(event).data)
        return Response(payload)


class PremiumUpgradeCheckoutView(APIView):
    """
    Starts the premium upgrade of an event: creates the CHIP purchase and a
    pending EventPremiumUpgrade keyed by its id. The webhook completes it.
    """

    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, slug):
        event = get_object_or_404(Event, slug=slug)
        user = request.user
        if event.organizer_id != user.id:
            return Response({"detail": "Only the event organizer can upgrade this event."}, status=403)
        if event.is_premium_event:
            return Response({"detail": "Event is already premium."}, status=400)

        serializer = PremiumUpgradeRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        tier = serializer.validated_data["premium_tier"]

        client = ChipClient()
        if not client.is_configured:
            return Response(
                {"detail": "CHIP is not configured (CHIP_SECRET_KEY / CHIP_BRAND_ID missing)."},
                status=503,
            )

        reference = f"premium_{event.id}_{int(time.time() * 1000)}"
        app_url = settings.PUBLIC_APP_URL
        try:
            purchase = client.create_purchase(
                amount=tier.price,
                currency=settings.DEFAULT_CURRENCY,
                email=user.email,
                full_name=user.get_full_name() or user.get_username(),
                products=[
                    {
                        "name": f"Premium Tier: {tier.name}",
                        "quantity": 1,
                        "price": tier.price,
                        "category": PREMIUM_TIER_CATEGORY,
                    }
                ],
                notes=f'Upgrade event "{event.title}" to {tier.name} tier ({tier.max_tickets_per_event} tickets)',
                success_callback=webhook_callback_url(request),
                success_redirect=f"{app_url}/events/{event.slug}?upgrade_success=true",
                failure_redirect=f"{app_url}/events/{event.slug}?upgrade_cancelled=true",
                reference=reference,
            )
        except ChipError as exc:
            logger.error(
                "premium_upgrade_checkout_failed",
                extra={"event_id": event.id, "premium_tier_id": tier.id, "error": str(exc)},
            )
            return Response({"detail": str(exc)}, status=502)

        purchase_id = purchase.get("id")
        checkout_url = purchase.get("checkout_url")
        if not purchase_id or not checkout_url:
            return Response({"detail": "CHIP did not return id/checkout_url."}, status=502)

        upgrade = EventPremiumUpgrade.objects.create(
            id=purchase_id,
            event=event,
            premium_tier=tier,
            organizer=user,
            amount=tier.price,
            status=EventPremiumUpgrade.Status.PENDING,
            metadata={
                "upgradeType": PREMIUM_TIER_CATEGORY,
                "transactionId": reference,
                "paymentMethod": "chip",
            },
        )
        logger.info(
            "premium_upgrade_checkout_created",
            extra={
                "event_id": event.id,
                "premium_tier_id": tier.id,
                "upgrade_id": upgrade.id,
                "reference": reference,
            },
        )
        return Response(
            {"checkout_url": checkout_url, "upgrade_id": upgrade.id},
            status=status.HTTP_201_CREATED,
        )


class PremiumUpgradeStatusView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request, slug, upgrade_id):
        upgrade = get_object_or_404(
            EventPremiumUpgrade.objects.select_related("event"),
            pk=upgrade_id,
            event__slug=slug,
        )
        if upgrade.organizer_id != request.user.id:
            return Response({"detail": "Not allowed."}, status=403)
        return Response(EventPremiumUpgradeSerializer(upgrade).data)
