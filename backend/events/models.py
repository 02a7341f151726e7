from django.conf import settings
from django.db import models

# Cap applied to events that have not been upgraded to a premium tier.
FREE_TIER_MAX_TICKETS = 20


class PremiumTier(models.Model):
    name = models.CharField(max_length=80)
    max_tickets_per_event = models.PositiveIntegerField()
    price = models.DecimalField(max_digits=10, decimal_places=2)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["price"]

    def __str__(self):
        return f"{self.name} ({self.max_tickets_per_event} tickets)"


class Event(models.Model):
    title = models.CharField(max_length=200)
    slug = models.SlugField(max_length=200, unique=True)
    organizer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="events",
    )
    description = models.TextField(blank=True)
    starts_at = models.DateTimeField(null=True, blank=True)
    is_published = models.BooleanField(default=False)
    is_premium_event = models.BooleanField(default=False)
    premium_tier = models.ForeignKey(
        PremiumTier,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="events",
    )
    tickets_sold = models.PositiveIntegerField(default=0)
    max_tickets_per_event = models.PositiveIntegerField(default=FREE_TIER_MAX_TICKETS)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["starts_at", "id"]

    def __str__(self):
        return self.title

    @property
    def remaining_capacity(self):
        return max(self.max_tickets_per_event - self.tickets_sold, 0)

    def public_paths(self):
        """Storefront routes that render this event and must be revalidated on change."""
        return ["/events", f"/events/{self.slug}"]


class TicketType(models.Model):
    event = models.ForeignKey(Event, on_delete=models.CASCADE, related_name="ticket_types")
    name = models.CharField(max_length=120)
    price = models.DecimalField(max_digits=10, decimal_places=2, default=0)

    class Meta:
        ordering = ["price", "id"]

    def __str__(self):
        return f"{self.event.title} - {self.name}"


class EventPremiumUpgrade(models.Model):
    class Status:
        PENDING = "pending"
        COMPLETED = "completed"

        CHOICES = [
            (PENDING, "Pending"),
            (COMPLETED, "Completed"),
        ]

    # Primary key is the gateway purchase id so the webhook can look it up directly.
    id = models.CharField(max_length=80, primary_key=True)
    event = models.ForeignKey(Event, on_delete=models.CASCADE, related_name="premium_upgrades")
    premium_tier = models.ForeignKey(
        PremiumTier,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="upgrades",
    )
    organizer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="premium_upgrades",
    )
    amount = models.DecimalField(max_digits=10, decimal_places=2)
    status = models.CharField(max_length=12, choices=Status.CHOICES, default=Status.PENDING)
    metadata = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return f"Upgrade {self.id} ({self.status})"

    @property
    def is_completed(self):
        return self.status == self.Status.COMPLETED
