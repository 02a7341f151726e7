from django.urls import path

from .views import (
    PremiumUpgradeCheckoutView,
    PremiumUpgradeStatusView,
    PublicEventDetailView,
    PublicEventListView,
)

urlpatterns = [
    path("", PublicEventListView.as_view(), name="public-events"),
    path("<slug:slug>", PublicEventDetailView.as_view(), name="public-event-detail"),
    path("<slug:slug>/upgrade", PremiumUpgradeCheckoutView.as_view(), name="event-premium-upgrade"),
    path(
        "<slug:slug>/upgrade/<str:upgrade_id>",
        PremiumUpgradeStatusView.as_view(),
        name="event-premium-upgrade-status",
    ),
]
