from decimal import Decimal
from unittest import mock

from django.contrib.auth import get_user_model
from django.db import DatabaseError
from django.test import override_settings
from rest_framework.test import APITestCase

from events.models import Event, EventPremiumUpgrade, PremiumTier
from orders.models import Order, OrderItem
from payments.tests.utils import (
    OTHER_PRIVATE_KEY,
    PUBLIC_KEY_PEM,
    RecordingAnalytics,
    chip_payload,
    encode,
    sign,
)


User = get_user_model()

WEBHOOK_URL = "/api/webhooks/chip"


@override_settings(CHIP_WEBHOOK_SECRET=PUBLIC_KEY_PEM, CHIP_WEBHOOK_REDELIVER_ON_FAILURE=True)
class ChipWebhookViewTests(APITestCase):
    def setUp(self):
        self.organizer = User.objects.create_user(username="org", email="org@example.com", password="OrgPass123")
        self.buyer = User.objects.create_user(username="buyer", email="buyer@example.com", password="BuyPass123")
        self.event = Event.objects.create(title="Rock Fest", slug="rock-fest", organizer=self.organizer)
        self.order = Order.objects.create(user=self.buyer, event=self.event, transaction_id="pay_1")
        OrderItem.objects.create(order=self.order, quantity=1)

        self.analytics = RecordingAnalytics()
        patcher = mock.patch("payments.views.get_analytics", return_value=self.analytics)
        patcher.start()
        self.addCleanup(patcher.stop)

    def _post(self, body, signature=None, url=WEBHOOK_URL):
        extra = {}
        if signature is not None:
            extra["HTTP_X_SIGNATURE"] = signature
        return self.client.post(url, data=body, content_type="application/json", **extra)

    def test_paid_webhook_is_applied_and_echoed(self):
        payload = chip_payload(payment_id="pay_1", status="paid", total=10000)
        body = encode(payload)
        res = self._post(body, sign(body))

        self.assertEqual(res.status_code, 200, res.data)
        self.assertEqual(res.data, {"result": payload, "ok": True})
        self.order.refresh_from_db()
        self.event.refresh_from_db()
        self.assertEqual(self.order.payment_status, Order.PaymentStatus.PAID)
        self.assertEqual(self.event.tickets_sold, 1)
        self.assertEqual(self.analytics.events(), ["Payment Completed"])
        self.assertEqual(self.analytics.flush_calls, 1)

    def test_duplicate_delivery_is_acknowledged_without_double_count(self):
        body = encode(chip_payload(status="paid"))
        for _ in range(2):
            res = self._post(body, sign(body))
            self.assertEqual(res.status_code, 200)
        self.event.refresh_from_db()
        self.assertEqual(self.event.tickets_sold, 1)

    @override_settings(CHIP_WEBHOOK_SECRET="")
    def test_not_configured_is_soft_disabled(self):
        body = encode(chip_payload(status="paid"))
        res = self._post(body, sign(body))
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.data, {"message": "Not configured", "ok": False})
        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, Order.PaymentStatus.PENDING)

    def test_missing_signature_returns_500(self):
        res = self._post(encode(chip_payload(status="paid")))
        self.assertEqual(res.status_code, 500)
        self.assertFalse(res.data["ok"])
        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, Order.PaymentStatus.PENDING)

    def test_invalid_signature_returns_401_without_mutation(self):
        body = encode(chip_payload(status="paid"))
        res = self._post(body, sign(body, key=OTHER_PRIVATE_KEY))
        self.assertEqual(res.status_code, 401)
        self.assertEqual(res.data, {"message": "Invalid signature", "ok": False})
        self.order.refresh_from_db()
        self.event.refresh_from_db()
        self.assertEqual(self.order.payment_status, Order.PaymentStatus.PENDING)
        self.assertEqual(self.event.tickets_sold, 0)

    def test_unparseable_body_returns_500(self):
        body = b"definitely not json"
        res = self._post(body, sign(body))
        self.assertEqual(res.status_code, 500)
        self.assertFalse(res.data["ok"])

    def test_unknown_status_is_acknowledged(self):
        payload = chip_payload(status="refunded")
        body = encode(payload)
        res = self._post(body, sign(body))
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.data["result"], payload)
        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, Order.PaymentStatus.PENDING)

    def test_unknown_payment_is_acknowledged(self):
        body = encode(chip_payload(payment_id="pay_nobody", status="paid"))
        res = self._post(body, sign(body))
        self.assertEqual(res.status_code, 200)
        self.assertTrue(res.data["ok"])

    def test_legacy_route_uses_same_contract(self):
        for url in ("/webhooks/chip", "/webhooks/chip/", "/api/webhooks/chip/"):
            with self.subTest(url=url):
                body = encode(chip_payload(payment_id="pay_nobody", status="pending"))
                res = self._post(body, sign(body), url=url)
                self.assertEqual(res.status_code, 200)

    def test_failed_premium_upgrade_requests_redelivery(self):
        tier = PremiumTier.objects.create(name="Gold", max_tickets_per_event=300, price=Decimal("49.00"))
        EventPremiumUpgrade.objects.create(
            id="pay_up",
            event=self.event,
            premium_tier=tier,
            organizer=self.organizer,
            amount=Decimal("49.00"),
        )
        body = encode(chip_payload(payment_id="pay_up", status="paid", category="event_premium_tier"))
        with mock.patch("payments.services.Event.objects.filter", side_effect=DatabaseError("boom")):
            res = self._post(body, sign(body))
        self.assertEqual(res.status_code, 500)
        self.assertFalse(res.data["ok"])
        self.assertEqual(self.analytics.flush_calls, 1)

        # The gateway retries and the upgrade goes through
        res = self._post(body, sign(body))
        self.assertEqual(res.status_code, 200)
        self.event.refresh_from_db()
        self.assertTrue(self.event.is_premium_event)
        self.assertEqual(self.event.max_tickets_per_event, 300)

    @override_settings(CHIP_WEBHOOK_REDELIVER_ON_FAILURE=False)
    def test_failed_premium_upgrade_can_be_acknowledged(self):
        tier = PremiumTier.objects.create(name="Gold", max_tickets_per_event=300, price=Decimal("49.00"))
        EventPremiumUpgrade.objects.create(
            id="pay_up",
            event=self.event,
            premium_tier=tier,
            organizer=self.organizer,
            amount=Decimal("49.00"),
        )
        body = encode(chip_payload(payment_id="pay_up", status="paid", category="event_premium_tier"))
        with mock.patch("payments.services.Event.objects.filter", side_effect=DatabaseError("boom")):
            res = self._post(body, sign(body))
        self.assertEqual(res.status_code, 200)

    def test_unexpected_error_returns_500(self):
        body = encode(chip_payload(status="paid"))
        with mock.patch("payments.views.ChipWebhookProcessor.process", side_effect=RuntimeError("boom")):
            res = self._post(body, sign(body))
        self.assertEqual(res.status_code, 500)
        self.assertEqual(self.analytics.flush_calls, 1)
