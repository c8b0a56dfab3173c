from __future__ import annotations

import enum
import logging

from rest_framework import permissions

from bookings.services.capability_tokens import BookingAction, verify

logger = logging.getLogger(__name__)

ACCESS_DENIED_MESSAGE = "Access denied."


class GateDecision(enum.Enum):
    ALLOW = "allow"
    DENY = "deny"


def authorize(
    presented_digest,
    booking_id,
    tenant_id,
    restaurant_id,
    required_action,
    *,
    key_id: str | None = None,
) -> GateDecision:
    if verify(presented_digest, booking_id, tenant_id, restaurant_id, required_action, key_id=key_id):
        return GateDecision.ALLOW
    logger.info("Rejected booking link for booking %s (action=%s)", booking_id, required_action)
    return GateDecision.DENY


def _parse_id(value):
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class HasBookingCapability(permissions.BasePermission):
    """
    Admit a request only when it carries a valid capability link for the booking.

    The view declares ``accepted_actions``; the link's ``action`` must be one of
    them and the digest must verify for exactly that action. Runs before the
    handler, so a denied request never loads the booking.
    """

    message = ACCESS_DENIED_MESSAGE

    def has_permission(self, request, view):
        params = request.query_params
        action = params.get("action", "")
        accepted = getattr(view, "accepted_actions", ())
        if action not in {BookingAction(a).value for a in accepted}:
            logger.info("Booking link action %r not accepted by %s", action, view.__class__.__name__)
            return False

        decision = authorize(
            params.get("hash"),
            _parse_id(view.kwargs.get("booking_id")),
            _parse_id(params.get("tenant_id")),
            _parse_id(params.get("restaurant_id")),
            action,
            key_id=params.get("kid") or None,
        )
        return decision is GateDecision.ALLOW
