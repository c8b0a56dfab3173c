import logging

import stripe
from django.shortcuts import get_object_or_404
from django.utils import timezone
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from bookings.models import Booking, BookingStatus, PaymentStatus
from bookings.serializers import GuestBookingSerializer, PaymentIntentSerializer
from bookings.services.capability_tokens import BookingAction
from bookings.services.token_gate import HasBookingCapability
from payments.services.checkout import create_payment_intent

logger = logging.getLogger(__name__)

CANCELLABLE_STATUSES = [BookingStatus.PENDING, BookingStatus.WAITING_PAYMENT, BookingStatus.CONFIRMED]
PAYABLE_PAYMENT_STATUSES = [PaymentStatus.NONE, PaymentStatus.PENDING, PaymentStatus.FAILED]


class GuestBookingBaseView(APIView):
    """Base for guest link endpoints; access comes from the link, never a session."""

    authentication_classes: list = []
    permission_classes = [HasBookingCapability]
    accepted_actions: tuple = ()

    def get_booking(self, booking_id) -> Booking:
        params = self.request.query_params
        return get_object_or_404(
            Booking.objects.select_related("restaurant", "tenant"),
            pk=booking_id,
            tenant_id=params.get("tenant_id"),
            restaurant_id=params.get("restaurant_id"),
        )


class BookingDetailView(GuestBookingBaseView):
    accepted_actions = (BookingAction.VIEW, BookingAction.MANAGE)

    def get(self, request, booking_id, *args, **kwargs):
        booking = self.get_booking(booking_id)
        return Response(GuestBookingSerializer(booking).data)


class BookingCancelView(GuestBookingBaseView):
    accepted_actions = (BookingAction.CANCEL, BookingAction.MANAGE)

    def post(self, request, booking_id, *args, **kwargs):
        booking = self.get_booking(booking_id)
        if booking.status == BookingStatus.CANCELLED:
            return Response(GuestBookingSerializer(booking).data)

        cancelled = Booking.objects.filter(
            pk=booking.pk,
            status__in=CANCELLABLE_STATUSES,
        ).exclude(
            payment_status=PaymentStatus.PAID,
        ).update(status=BookingStatus.CANCELLED, updated_at=timezone.now())
        booking.refresh_from_db()

        if not cancelled and booking.status != BookingStatus.CANCELLED:
            detail = "This booking can no longer be cancelled online."
            if booking.payment_status == PaymentStatus.PAID:
                detail = "Paid bookings are cancelled by the restaurant so the payment can be refunded."
            return Response({"detail": detail}, status=status.HTTP_409_CONFLICT)

        logger.info("Booking %s cancelled by guest link", booking.pk)
        return Response(GuestBookingSerializer(booking).data)


class BookingPaymentView(GuestBookingBaseView):
    accepted_actions = (BookingAction.PAYMENT,)

    def post(self, request, booking_id, *args, **kwargs):
        booking = self.get_booking(booking_id)
        if (
            booking.status != BookingStatus.WAITING_PAYMENT
            or booking.payment_status not in PAYABLE_PAYMENT_STATUSES
        ):
            return Response(
                {"detail": "This booking is not awaiting payment."},
                status=status.HTTP_409_CONFLICT,
            )
        if booking.payment_amount_cents is None:
            return Response(
                {"detail": "No payment is due for this booking."},
                status=status.HTTP_409_CONFLICT,
            )

        try:
            intent = create_payment_intent(
                booking=booking,
                amount_cents=booking.payment_amount_cents,
                currency=booking.currency,
            )
        except stripe.StripeError as exc:
            logger.exception("Failed to create payment intent for booking %s: %s", booking.pk, exc)
            return Response({"detail": "Payment provider unavailable."}, status=status.HTTP_502_BAD_GATEWAY)

        Booking.objects.filter(
            pk=booking.pk,
            payment_status__in=[PaymentStatus.NONE, PaymentStatus.FAILED],
        ).update(payment_status=PaymentStatus.PENDING, updated_at=timezone.now())

        serializer = PaymentIntentSerializer(
            {
                "payment_intent": intent.id,
                "client_secret": intent.client_secret,
                "amount": intent.amount,
                "currency": intent.currency,
            }
        )
        return Response(serializer.data, status=status.HTTP_201_CREATED)
