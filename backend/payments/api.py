import logging

import stripe
from django.conf import settings
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from payments.errors import StorageUnavailable
from payments.services.webhooks import process_stripe_event

logger = logging.getLogger(__name__)


class StripeWebhookView(APIView):
    """Receive Stripe payment events and reconcile bookings."""

    permission_classes: list = []
    authentication_classes: list = []

    def post(self, request, *args, **kwargs):
        payload = request.body
        sig_header = request.META.get("HTTP_STRIPE_SIGNATURE")
        if not settings.STRIPE_WEBHOOK_SECRET:
            logger.error("Stripe webhook secret not configured.")
            return Response(status=status.HTTP_500_INTERNAL_SERVER_ERROR)

        try:
            event = stripe.Webhook.construct_event(
                payload, sig_header, settings.STRIPE_WEBHOOK_SECRET
            )
        except ValueError:
            logger.warning("Invalid payload received on Stripe webhook.")
            return Response(status=status.HTTP_400_BAD_REQUEST)
        except stripe.SignatureVerificationError:
            logger.warning("Invalid Stripe signature.")
            return Response(status=status.HTTP_400_BAD_REQUEST)

        try:
            outcome = process_stripe_event(event)
        except StorageUnavailable as exc:
            logger.error("Stripe event could not be recorded, asking for retry: %s", exc)
            return Response(
                {"detail": "Temporarily unavailable."},
                status=status.HTTP_503_SERVICE_UNAVAILABLE,
            )

        return Response(
            {"received": True, "event_id": outcome.event_id, "outcome": outcome.outcome},
            status=status.HTTP_200_OK,
        )
