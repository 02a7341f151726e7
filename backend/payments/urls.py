from django.urls import path

from .views import ChipWebhookView

urlpatterns = [
    path("chip", ChipWebhookView.as_view(), name="chip-webhook"),
    path("chip/", ChipWebhookView.as_view()),
]
