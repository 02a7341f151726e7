from django.http import JsonResponse
from django.urls import include, path
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from events.views import PublicEventListView
from payments.views import ChipWebhookView


# === Healthcheck ===
def healthcheck(request):
    """
    Simple liveness endpoint for load balancers and uptime checks.
    """
    return JsonResponse({"status": "ok"}, status=200)


urlpatterns = [
    path("healthz/", healthcheck, name="healthcheck"),

    # Auth (organizer dashboard tokens)
    path("api/auth/token", TokenObtainPairView.as_view(), name="auth-token"),
    path("api/auth/refresh", TokenRefreshView.as_view(), name="auth-refresh"),

    # API
    path("api/events", PublicEventListView.as_view()),
    path("api/events/", include("events.urls")),
    path("api/events/", include("orders.urls")),
    path("api/webhooks/", include("payments.urls")),

    # Legacy deployment variant still configured on the gateway dashboard
    path("webhooks/chip", ChipWebhookView.as_view(), name="chip-webhook-legacy"),
    path("webhooks/chip/", ChipWebhookView.as_view()),
]
