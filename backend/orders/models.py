from django.conf import settings
from django.db import models
from django.db.models import Sum

from events.models import Event, TicketType


class Order(models.Model):
    class PaymentStatus:
        PENDING = "pending"
        PAID = "paid"
        FAILED = "failed"
        CANCELED = "canceled"

        CHOICES = [
            (PENDING, "Pending"),
            (PAID, "Paid"),
            (FAILED, "Failed"),
            (CANCELED, "Canceled"),
        ]

    # Guests check out without an account; their contact details live on the order.
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="orders",
    )
    email = models.EmailField(blank=True)
    full_name = models.CharField(max_length=150, blank=True)
    phone = models.CharField(max_length=30, blank=True)
    event = models.ForeignKey(
        Event,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="orders",
    )
    # Gateway purchase id; the webhook correlates on it.
    transaction_id = models.CharField(max_length=80, unique=True, null=True, blank=True)
    payment_status = models.CharField(
        max_length=10,
        choices=PaymentStatus.CHOICES,
        default=PaymentStatus.PENDING,
    )
    payment_method = models.CharField(max_length=60, blank=True)
    total_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return f"Order {self.id} ({self.payment_status})"

    @property
    def is_paid(self):
        return self.payment_status == self.PaymentStatus.PAID

    @property
    def analytics_id(self):
        if self.user_id:
            return str(self.user_id)
        return self.email or f"order-{self.id}"

    def ticket_count(self):
        """Total tickets across the order's items (each line counts its quantity)."""
        cache = getattr(self, "_prefetched_objects_cache", {})
        if "items" in cache:
            return sum(item.quantity or 0 for item in cache["items"])
        return self.items.aggregate(total=Sum("quantity"))["total"] or 0


class OrderItem(models.Model):
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name="items")
    ticket_type = models.ForeignKey(
        TicketType,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="order_items",
    )
    quantity = models.PositiveIntegerField(default=1)
    price = models.DecimalField(max_digits=10, decimal_places=2, default=0)

    def __str__(self):
        return f"{self.quantity} x {getattr(self.ticket_type, 'name', 'ticket')}"
