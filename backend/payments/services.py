"""
Reconciliation of CHIP purchase callbacks against orders and premium upgrades.

Each handler that mutates data runs in a single transaction together with
the ProcessedWebhook row for the delivery, so a redelivered callback is
detected and never applied twice.
"""
import logging
from dataclasses import dataclass

from django.db import transaction
from django.db.models import F
from django.utils import timezone

from common.analytics import get_analytics
from common.cache import revalidate_paths
from events.models import Event, EventPremiumUpgrade
from orders.models import Order

from .config import ChipWebhookConfig
from .models import ProcessedWebhook
from .webhooks import (
    PaymentCanceled,
    PaymentFailed,
    PaymentPaid,
    PaymentPending,
    PaymentViewed,
    UnknownStatus,
)

logger = logging.getLogger(__name__)


class Outcome:
    APPLIED = "applied"
    DUPLICATE = "duplicate"
    IGNORED = "ignored"
    NOT_FOUND = "not_found"
    FAILED = "failed"


@dataclass(frozen=True)
class ReconciliationResult:
    outcome: str
    detail: str = ""
    acknowledge: bool = True


def get_order_for_payment(payment_id, lock=False):
    if not payment_id:
        return None
    qs = Order.objects.select_related("user", "event", "event__organizer").prefetch_related(
        "items__ticket_type"
    )
    if lock:
        qs = qs.select_for_update(of=("self",))
    return qs.filter(transaction_id=payment_id).first()


def get_premium_upgrade_for_payment(payment_id, lock=False):
    if not payment_id:
        return None
    qs = EventPremiumUpgrade.objects.select_related("event", "premium_tier", "organizer")
    if lock:
        qs = qs.select_for_update(of=("self",))
    return qs.filter(pk=payment_id).first()


class ChipWebhookProcessor:
    def __init__(self, config=None, analytics=None, revalidate=None):
        self.config = config or ChipWebhookConfig.from_settings()
        self.analytics = analytics if analytics is not None else get_analytics()
        self.revalidate = revalidate or revalidate_paths

    def process(self, event):
        if isinstance(event, UnknownStatus):
            logger.warning(
                "chip_webhook_unhandled_status",
                extra={"status": event.raw_status, "payment_id": event.payment_id},
            )
            return ReconciliationResult(Outcome.IGNORED, f"Unhandled status '{event.raw_status}'")
        if isinstance(event, PaymentPending):
            logger.info("chip_webhook_pending", extra={"status": event.status, "payment_id": event.payment_id})
            return ReconciliationResult(Outcome.IGNORED, "No action for pending purchases")
        if isinstance(event, PaymentViewed):
            return ReconciliationResult(Outcome.IGNORED, "No action for viewed purchases")

        if not event.payment_id:
            logger.warning("chip_webhook_missing_id", extra={"status": event.status})
            return ReconciliationResult(Outcome.IGNORED, "Purchase id missing")

        if isinstance(event, PaymentPaid):
            return self.handle_paid(event)
        if isinstance(event, PaymentFailed):
            return self._handle_unsuccessful(event, Order.PaymentStatus.FAILED, "Payment Failed")
        if isinstance(event, PaymentCanceled):
            return self._handle_unsuccessful(event, Order.PaymentStatus.CANCELED, "Payment Canceled")
        return ReconciliationResult(Outcome.IGNORED, "Unsupported event")

    # --- helpers ---

    def _record(self, event):
        """Store the delivery in the ledger. False when it was already applied."""
        _, created = ProcessedWebhook.objects.get_or_create(
            provider=self.config.provider,
            external_event_id=event.event_id,
            defaults={"status": event.status, "raw_payload": event.purchase.raw},
        )
        return created

    def _order_properties(self, event, order):
        purchase = event.purchase
        # property names match the storefront's client-side events
        return {
            "paymentId": purchase.id,
            "orderId": order.id,
            "eventId": order.event_id,
            "amount": float(purchase.amount),
            "paymentMethod": purchase.payment_method,
            "currency": purchase.currency_or(self.config.default_currency),
            "isPremiumEvent": bool(order.event and order.event.is_premium_event),
        }

    # --- handlers ---

    def handle_paid(self, event):
        purchase = event.purchase
        if purchase.category == self.config.premium_category:
            return self.handle_premium_upgrade(event)

        with transaction.atomic():
            order = get_order_for_payment(purchase.id, lock=True)
            if order is not None:
                if not self._record(event):
                    logger.info("chip_webhook_duplicate", extra={"payment_id": purchase.id, "status": event.status})
                    return ReconciliationResult(Outcome.DUPLICATE, "Delivery already processed")
                if order.is_paid:
                    logger.warning(
                        "chip_payment_already_paid",
                        extra={"payment_id": purchase.id, "order_id": order.id},
                    )
                    return ReconciliationResult(Outcome.IGNORED, f"Order {order.id} already paid")
                tickets = self._mark_paid(order, purchase)

        if order is None:
            # The purchase may belong to a premium upgrade whose product category was not sent
            if get_premium_upgrade_for_payment(purchase.id) is not None:
                return self.handle_premium_upgrade(event)
            logger.warning("chip_order_not_found", extra={"payment_id": purchase.id, "status": event.status})
            return ReconciliationResult(Outcome.NOT_FOUND, "No order for payment")

        self.analytics.capture(
            distinct_id=order.analytics_id,
            event="Payment Completed",
            properties=self._order_properties(event, order),
        )
        logger.info(
            "chip_payment_completed",
            extra={
                "payment_id": purchase.id,
                "order_id": order.id,
                "event_id": order.event_id,
                "tickets": tickets,
                "amount": float(purchase.amount),
            },
        )
        return ReconciliationResult(Outcome.APPLIED, f"Order {order.id} paid")

    def _mark_paid(self, order, purchase):
        """Flip a pending order to paid and count its tickets. Returns the tickets added."""
        order.payment_status = Order.PaymentStatus.PAID
        order.payment_method = purchase.payment_method
        order.save(update_fields=["payment_status", "payment_method", "updated_at"])

        if not order.event_id:
            return 0
        tickets = order.ticket_count()
        Event.objects.filter(pk=order.event_id).update(
            tickets_sold=F("tickets_sold") + tickets,
            updated_at=timezone.now(),
        )
        return tickets

    def _handle_unsuccessful(self, event, status, analytics_event):
        purchase = event.purchase
        with transaction.atomic():
            order = get_order_for_payment(purchase.id, lock=True)
            if order is None:
                if get_premium_upgrade_for_payment(purchase.id) is not None:
                    logger.info(
                        "chip_premium_upgrade_not_paid",
                        extra={"payment_id": purchase.id, "status": event.status},
                    )
                    return ReconciliationResult(Outcome.IGNORED, "Premium upgrade left pending")
                logger.warning("chip_order_not_found", extra={"payment_id": purchase.id, "status": event.status})
                return ReconciliationResult(Outcome.NOT_FOUND, "No order for payment")

            if order.is_paid:
                # Paid is terminal: tickets were already counted for this order
                logger.warning(
                    "chip_payment_downgrade_ignored",
                    extra={"payment_id": purchase.id, "order_id": order.id, "status": status},
                )
                return ReconciliationResult(Outcome.IGNORED, f"Order {order.id} already paid")

            if not self._record(event):
                logger.info("chip_webhook_duplicate", extra={"payment_id": purchase.id, "status": event.status})
                return ReconciliationResult(Outcome.DUPLICATE, "Delivery already processed")

            order.payment_status = status
            order.save(update_fields=["payment_status", "updated_at"])

        self.analytics.capture(
            distinct_id=order.analytics_id,
            event=analytics_event,
            properties=self._order_properties(event, order),
        )
        # A cancellation is the buyer's choice, a failure needs a look
        log = logger.warning if status == Order.PaymentStatus.FAILED else logger.info
        log(
            f"chip_payment_{status}",
            extra={"payment_id": purchase.id, "order_id": order.id, "event_id": order.event_id},
        )
        return ReconciliationResult(Outcome.APPLIED, f"Order {order.id} {status}")

    def handle_premium_upgrade(self, event):
        purchase = event.purchase
        try:
            with transaction.atomic():
                upgrade = get_premium_upgrade_for_payment(purchase.id, lock=True)
                if upgrade is None:
                    logger.warning("chip_premium_upgrade_not_found", extra={"payment_id": purchase.id})
                    return ReconciliationResult(Outcome.NOT_FOUND, "No premium upgrade for payment")
                if upgrade.is_completed or not self._record(event):
                    logger.info("chip_webhook_duplicate", extra={"payment_id": purchase.id, "status": event.status})
                    return ReconciliationResult(Outcome.DUPLICATE, "Premium upgrade already completed")

                upgrade.status = EventPremiumUpgrade.Status.COMPLETED
                upgrade.save(update_fields=["status", "updated_at"])

                tier = upgrade.premium_tier
                if tier is None:
                    logger.warning("chip_premium_tier_missing", extra={"upgrade_id": upgrade.id})
                    return ReconciliationResult(Outcome.APPLIED, "Upgrade completed without tier")

                Event.objects.filter(pk=upgrade.event_id).update(
                    is_premium_event=True,
                    premium_tier=tier,
                    max_tickets_per_event=tier.max_tickets_per_event,
                    updated_at=timezone.now(),
                )
        except Exception as exc:
            logger.exception("chip_premium_upgrade_failed", extra={"payment_id": purchase.id})
            return ReconciliationResult(
                Outcome.FAILED,
                f"Premium upgrade could not be applied: {exc}",
                acknowledge=not self.config.request_redelivery_on_failure,
            )

        self.revalidate(upgrade.event.public_paths())
        self.analytics.capture(
            distinct_id=str(upgrade.organizer_id),
            event="event_upgraded_to_premium",
            properties={
                "eventId": upgrade.event_id,
                "premiumTierId": tier.id,
                "paymentMethod": "chip",
                "amount": float(upgrade.amount),
            },
        )
        logger.info(
            "chip_event_upgraded",
            extra={"event_id": upgrade.event_id, "premium_tier_id": tier.id, "payment_id": purchase.id},
        )
        return ReconciliationResult(Outcome.APPLIED, f"Event {upgrade.event_id} upgraded")
