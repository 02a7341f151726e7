from rest_framework import serializers

from .models import Event, EventPremiumUpgrade, PremiumTier, TicketType


class TicketTypeSerializer(serializers.ModelSerializer):
    class Meta:
        model = TicketType
        fields = ["id", "name", "price"]


class PublicEventSerializer(serializers.ModelSerializer):
    remaining_capacity = serializers.IntegerField(read_only=True)
    ticket_types = TicketTypeSerializer(many=True, read_only=True)

    class Meta:
        model = Event
        fields = [
            "id",
            "title",
            "slug",
            "description",
            "starts_at",
            "is_premium_event",
            "tickets_sold",
            "max_tickets_per_event",
            "remaining_capacity",
            "ticket_types",
        ]


class PremiumUpgradeRequestSerializer(serializers.Serializer):
    premium_tier_id = serializers.PrimaryKeyRelatedField(
        queryset=PremiumTier.objects.filter(is_active=True),
        source="premium_tier",
    )


class EventPremiumUpgradeSerializer(serializers.ModelSerializer):
    event_slug = serializers.CharField(source="event.slug", read_only=True)

    class Meta:
        model = EventPremiumUpgrade
        fields = ["id", "status", "amount", "premium_tier", "event_slug", "created_at"]
