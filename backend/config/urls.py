from django.contrib import admin
from django.urls import path

from bookings.api import BookingCancelView, BookingDetailView, BookingPaymentView
from payments.api import StripeWebhookView

urlpatterns = [
    path("admin/", admin.site.urls),
    path(
        "api/bookings/<int:booking_id>/",
        BookingDetailView.as_view(),
        name="booking-detail",
    ),
    path(
        "api/bookings/<int:booking_id>/cancel/",
        BookingCancelView.as_view(),
        name="booking-cancel",
    ),
    path(
        "api/bookings/<int:booking_id>/payment/",
        BookingPaymentView.as_view(),
        name="booking-payment",
    ),
    path("api/webhooks/stripe/", StripeWebhookView.as_view(), name="stripe-webhook"),
]
