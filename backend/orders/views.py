import logging

from django.conf import settings
from django.db import transaction
from django.shortcuts import get_object_or_404
from rest_framework import permissions, status
from rest_framework.response import Response
from rest_framework.views import APIView

from events.models import Event
from payments.chip import ChipClient, ChipError, webhook_callback_url

from .models import Order, OrderItem
from .serializers import OrderCheckoutSerializer

logger = logging.getLogger(__name__)


class OrderCheckoutView(APIView):
    """
    Ticket checkout for a published event.

    Records a pending order for the cart, opens a CHIP purchase for it and
    keeps the purchase id as the order's transaction id, which is what the
    payment webhook settles. Guests may check out; a signed-in buyer is
    linked to the order.
    """

    permission_classes = [permissions.AllowAny]

    def post(self, request, slug):
        event = get_object_or_404(Event.objects.filter(is_published=True), slug=slug)
        user = request.user if request.user.is_authenticated else None

        serializer = OrderCheckoutSerializer(data=request.data, context={"event": event, "user": user})
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        client = ChipClient()
        if not client.is_configured:
            return Response(
                {"detail": "CHIP is not configured (CHIP_SECRET_KEY / CHIP_BRAND_ID missing)."},
                status=503,
            )

        app_url = settings.PUBLIC_APP_URL
        try:
            # The order only survives if CHIP accepted the purchase
            with transaction.atomic():
                order = Order.objects.create(
                    user=user,
                    event=event,
                    email=data["email"],
                    full_name=data["full_name"],
                    phone=data.get("phone", ""),
                    total_amount=data["total_amount"],
                    payment_method="chip",
                )
                OrderItem.objects.bulk_create(
                    [
                        OrderItem(order=order, ticket_type=ticket_type, quantity=quantity, price=ticket_type.price)
                        for ticket_type, quantity in data["lines"]
                    ]
                )
                purchase = client.create_purchase(
                    amount=data["total_amount"],
                    currency=settings.DEFAULT_CURRENCY,
                    email=data["email"],
                    full_name=data["full_name"],
                    phone=data.get("phone", ""),
                    products=[
                        {"name": ticket_type.name, "quantity": quantity, "price": ticket_type.price}
                        for ticket_type, quantity in data["lines"]
                    ],
                    notes=event.title,
                    success_callback=webhook_callback_url(request),
                    success_redirect=f"{app_url}/confirmation/{order.id}?status=success",
                    failure_redirect=f"{app_url}/confirmation/{order.id}?status=failure",
                    reference=f"Order #{order.id}",
                )
                purchase_id = purchase.get("id")
                checkout_url = purchase.get("checkout_url")
                if not purchase_id or not checkout_url:
                    raise ChipError("CHIP did not return id/checkout_url.")
                order.transaction_id = purchase_id
                order.save(update_fields=["transaction_id", "updated_at"])
        except ChipError as exc:
            logger.error("order_checkout_failed", extra={"event_id": event.id, "error": str(exc)})
            return Response({"detail": str(exc)}, status=502)

        logger.info(
            "order_checkout_created",
            extra={
                "order_id": order.id,
                "event_id": event.id,
                "payment_id": purchase_id,
                "amount": float(order.total_amount),
            },
        )
        return Response(
            {"checkout_url": checkout_url, "order_id": order.id},
            status=status.HTTP_201_CREATED,
        )
