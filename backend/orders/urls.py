from django.urls import path

from .views import OrderCheckoutView

urlpatterns = [
    path("<slug:slug>/checkout", OrderCheckoutView.as_view(), name="event-checkout"),
]
