"""
Signed capability tokens for guest booking links.

A token grants one action on one booking. It is an HMAC-SHA256 digest over the
booking id, tenant id, restaurant id and action, so nothing is stored: the
server recomputes the digest whenever a link is presented. Validity lasts as
long as the signing key stays in the keyring.
"""

from __future__ import annotations

import hashlib
import hmac

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from django.db import models

DIGEST_LENGTH = hashlib.sha256().digest_size * 2


class BookingAction(models.TextChoices):
    VIEW = "view", "View booking"
    MANAGE = "manage", "Manage booking"
    CANCEL = "cancel", "Cancel booking"
    PAYMENT = "payment", "Pay for booking"


def current_key_id() -> str:
    return settings.BOOKING_LINK_KEY_ID


def _keyring() -> dict[str, str]:
    keys = dict(getattr(settings, "BOOKING_LINK_RETIRED_KEYS", {}) or {})
    keys[current_key_id()] = settings.BOOKING_LINK_SECRET
    return keys


def _signing_key(key_id: str | None) -> bytes | None:
    keyring = _keyring()
    secret = keyring.get(key_id or current_key_id())
    if secret is None:
        return None
    if not secret:
        raise ImproperlyConfigured("BOOKING_LINK_SECRET is not configured.")
    return secret.encode("utf-8")


def _validate_id(name: str, value) -> int:
    # bool is an int subclass; True must not sign as booking 1.
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValueError(f"{name} must be a non-negative integer")
    return value


def _canonical_message(booking_id, tenant_id, restaurant_id, action) -> bytes:
    booking_id = _validate_id("booking_id", booking_id)
    tenant_id = _validate_id("tenant_id", tenant_id)
    restaurant_id = _validate_id("restaurant_id", restaurant_id)
    action = BookingAction(action)
    # Digits and lowercase action names never contain ":", so the fields cannot shift.
    return f"{booking_id}:{tenant_id}:{restaurant_id}:{action.value}".encode("ascii")


def derive(
    booking_id: int,
    tenant_id: int,
    restaurant_id: int,
    action: BookingAction | str,
    *,
    key_id: str | None = None,
) -> str:
    """Return the hex digest authorising ``action`` on the booking.

    Raises ``ValueError`` for malformed ids, an unknown action or an unknown key id.
    """

    message = _canonical_message(booking_id, tenant_id, restaurant_id, action)
    key = _signing_key(key_id)
    if key is None:
        raise ValueError(f"Unknown booking link key id: {key_id}")
    return hmac.new(key, message, hashlib.sha256).hexdigest()


def verify(
    candidate,
    booking_id,
    tenant_id,
    restaurant_id,
    action,
    *,
    key_id: str | None = None,
) -> bool:
    """Check a presented digest in constant time. Never raises for bad input."""

    if not isinstance(candidate, str) or len(candidate) != DIGEST_LENGTH:
        return False
    try:
        message = _canonical_message(booking_id, tenant_id, restaurant_id, action)
    except ValueError:
        return False

    key = _signing_key(key_id)
    if key is None:
        return False
    expected = hmac.new(key, message, hashlib.sha256).hexdigest()
    return hmac.compare_digest(candidate.lower().encode("utf-8"), expected.encode("ascii"))
