from decimal import Decimal
from unittest import mock

from django.contrib.auth import get_user_model
from django.test import override_settings
from rest_framework.test import APIClient, APITestCase

from events.models import Event, EventPremiumUpgrade, PremiumTier
from payments.chip import ChipError


User = get_user_model()


@override_settings(
    CHIP_SECRET_KEY="sk_test",
    CHIP_BRAND_ID="brand-1",
    PUBLIC_APP_URL="https://app.ticketcare.test",
    PUBLIC_API_URL="https://api.ticketcare.test",
)
class PremiumUpgradeCheckoutTests(APITestCase):
    def setUp(self):
        self.organizer = User.objects.create_user(
            username="org", email="org@example.com", password="OrgPass123", first_name="Aina", last_name="Lee"
        )
        self.client = APIClient()
        self.client.force_authenticate(user=self.organizer)
        self.event = Event.objects.create(title="Jazz Night", slug="jazz-night", organizer=self.organizer)
        self.tier = PremiumTier.objects.create(name="Gold", max_tickets_per_event=500, price=Decimal("99.00"))
        self.url = f"/api/events/{self.event.slug}/upgrade"

    @mock.patch("events.views.ChipClient.create_purchase")
    def test_creates_pending_upgrade_keyed_by_purchase_id(self, mock_create):
        mock_create.return_value = {"id": "pur_123", "checkout_url": "https://gate.test/p/pur_123"}
        res = self.client.post(self.url, {"premium_tier_id": self.tier.id}, format="json")

        self.assertEqual(res.status_code, 201, res.data)
        self.assertEqual(res.data, {"checkout_url": "https://gate.test/p/pur_123", "upgrade_id": "pur_123"})
        upgrade = EventPremiumUpgrade.objects.get(pk="pur_123")
        self.assertEqual(upgrade.status, EventPremiumUpgrade.Status.PENDING)
        self.assertEqual(upgrade.premium_tier, self.tier)
        self.assertEqual(upgrade.amount, Decimal("99.00"))
        self.assertEqual(upgrade.metadata["upgradeType"], "event_premium_tier")

        kwargs = mock_create.call_args.kwargs
        self.assertEqual(kwargs["products"][0]["category"], "event_premium_tier")
        self.assertEqual(kwargs["full_name"], "Aina Lee")
        self.assertEqual(kwargs["success_callback"], "https://api.ticketcare.test/api/webhooks/chip")
        self.assertEqual(
            kwargs["success_redirect"],
            "https://app.ticketcare.test/events/jazz-night?upgrade_success=true",
        )

    def test_only_the_organizer_can_upgrade(self):
        other = User.objects.create_user(username="other", email="other@example.com", password="OtherPass123")
        self.client.force_authenticate(user=other)
        res = self.client.post(self.url, {"premium_tier_id": self.tier.id}, format="json")
        self.assertEqual(res.status_code, 403)

    def test_requires_authentication(self):
        res = APIClient().post(self.url, {"premium_tier_id": self.tier.id}, format="json")
        self.assertEqual(res.status_code, 401)

    def test_already_premium_event_is_rejected(self):
        self.event.is_premium_event = True
        self.event.save(update_fields=["is_premium_event"])
        res = self.client.post(self.url, {"premium_tier_id": self.tier.id}, format="json")
        self.assertEqual(res.status_code, 400)

    def test_inactive_tier_is_rejected(self):
        self.tier.is_active = False
        self.tier.save(update_fields=["is_active"])
        res = self.client.post(self.url, {"premium_tier_id": self.tier.id}, format="json")
        self.assertEqual(res.status_code, 400)
        self.assertIn("premium_tier_id", res.data)

    @override_settings(CHIP_SECRET_KEY="")
    def test_unconfigured_gateway_returns_503(self):
        res = self.client.post(self.url, {"premium_tier_id": self.tier.id}, format="json")
        self.assertEqual(res.status_code, 503)
        self.assertFalse(EventPremiumUpgrade.objects.exists())

    @mock.patch("events.views.ChipClient.create_purchase", side_effect=ChipError("CHIP responded 500: oops"))
    def test_gateway_error_returns_502(self, _mock_create):
        res = self.client.post(self.url, {"premium_tier_id": self.tier.id}, format="json")
        self.assertEqual(res.status_code, 502)
        self.assertFalse(EventPremiumUpgrade.objects.exists())

    @mock.patch("events.views.ChipClient.create_purchase", return_value={"id": "pur_1"})
    def test_incomplete_gateway_response_returns_502(self, _mock_create):
        res = self.client.post(self.url, {"premium_tier_id": self.tier.id}, format="json")
        self.assertEqual(res.status_code, 502)


class PremiumUpgradeStatusTests(APITestCase):
    def setUp(self):
        self.organizer = User.objects.create_user(username="org", email="org@example.com", password="OrgPass123")
        self.event = Event.objects.create(title="Jazz Night", slug="jazz-night", organizer=self.organizer)
        self.upgrade = EventPremiumUpgrade.objects.create(
            id="pur_9",
            event=self.event,
            organizer=self.organizer,
            amount=Decimal("99.00"),
            status=EventPremiumUpgrade.Status.COMPLETED,
        )

    def test_organizer_sees_upgrade_status(self):
        self.client.force_authenticate(user=self.organizer)
        res = self.client.get("/api/events/jazz-night/upgrade/pur_9")
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.data["status"], "completed")
        self.assertEqual(res.data["event_slug"], "jazz-night")

    def test_other_user_is_forbidden(self):
        other = User.objects.create_user(username="other", email="other@example.com", password="OtherPass123")
        self.client.force_authenticate(user=other)
        res = self.client.get("/api/events/jazz-night/upgrade/pur_9")
        self.assertEqual(res.status_code, 403)

    def test_unknown_upgrade_is_404(self):
        self.client.force_authenticate(user=self.organizer)
        res = self.client.get("/api/events/jazz-night/upgrade/nope")
        self.assertEqual(res.status_code, 404)
