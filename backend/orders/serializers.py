from collections import OrderedDict
from decimal import Decimal

from rest_framework import serializers

from events.models import TicketType

MAX_TICKETS_PER_LINE = 50


class CheckoutItemSerializer(serializers.Serializer):
    ticket_type_id = serializers.IntegerField()
    quantity = serializers.IntegerField(min_value=1, max_value=MAX_TICKETS_PER_LINE)


class OrderCheckoutSerializer(serializers.Serializer):
    """
    Cart submitted at checkout. Needs `event` in the context; ticket types
    are resolved against that event and the total is checked against its
    remaining capacity.
    """

    items = CheckoutItemSerializer(many=True, allow_empty=False)
    email = serializers.EmailField(required=False, allow_blank=True)
    full_name = serializers.CharField(max_length=150, required=False, allow_blank=True)
    phone = serializers.CharField(max_length=30, required=False, allow_blank=True)

    def validate(self, attrs):
        event = self.context["event"]
        user = self.context.get("user")

        quantities = OrderedDict()
        for item in attrs["items"]:
            key = item["ticket_type_id"]
            quantities[key] = quantities.get(key, 0) + item["quantity"]

        ticket_types = TicketType.objects.filter(event=event, id__in=quantities).in_bulk()
        unknown = [tid for tid in quantities if tid not in ticket_types]
        if unknown:
            raise serializers.ValidationError(
                {"items": f"Ticket types {unknown} do not belong to this event."}
            )

        requested = sum(quantities.values())
        if requested > event.remaining_capacity:
            raise serializers.ValidationError(
                {"items": f"Only {event.remaining_capacity} tickets left for this event."}
            )

        email = attrs.get("email") or getattr(user, "email", "")
        if not email:
            raise serializers.ValidationError({"email": "An email is required to check out."})
        full_name = attrs.get("full_name") or (user.get_full_name() or user.get_username() if user else "")

        lines = [(ticket_types[tid], qty) for tid, qty in quantities.items()]
        attrs["lines"] = lines
        attrs["email"] = email
        attrs["full_name"] = full_name or email
        attrs["total_amount"] = sum((tt.price * qty for tt, qty in lines), Decimal("0"))
        return attrs
