from django.urls import path
from . import views

urlpatterns = [
    # Health check
    path("health", views.health, name="health"),

    # Document change events forwarded by the Firestore trigger relay
    path("events/firestore", views.firestore_event, name="firestore_event"),

    # Manual incoming-call notification (testing)
    path("calls/test-notify", views.call_test_notify, name="call_test_notify"),

    # Stripe
    path("payments/create-payment-intent", views.create_payment_intent, name="create_payment_intent"),
]
