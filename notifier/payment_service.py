"""
Stripe payment intents for the mobile checkout.
"""
import logging
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Dict, Optional

import stripe

from .constants import DEFAULT_CURRENCY

logger = logging.getLogger("notifier")


class InvalidAmount(ValueError):
    pass


def to_minor_units(amount: Any) -> int:
    """
    Convert a major-unit amount (e.g. 19.99 EUR) to Stripe's minor units,
    rounding half up. Raises InvalidAmount for missing, non-numeric or
    non-positive amounts.
    """
    if amount is None or isinstance(amount, bool):
        raise InvalidAmount("amount is required")
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, ValueError):
        raise InvalidAmount(f"amount is not a number: {amount!r}")
    if not value.is_finite() or value <= 0:
        raise InvalidAmount("amount must be greater than 0")

    try:
        cents = (value * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    except InvalidOperation:
        # More digits than the decimal context can hold
        raise InvalidAmount(f"amount is too large: {amount!r}")
    if cents <= 0:
        raise InvalidAmount("amount must be greater than 0")
    return int(cents)


@dataclass
class PaymentIntentResult:
    success: bool
    client_secret: Optional[str] = None
    payment_intent_id: Optional[str] = None
    error: Optional[str] = None


class PaymentService:
    """Creates Stripe PaymentIntents with the server-side secret key."""

    def is_configured(self) -> bool:
        return bool(os.environ.get("STRIPE_SECRET_KEY"))

    def create_payment_intent(
        self,
        amount_minor: int,
        currency: str = DEFAULT_CURRENCY,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> PaymentIntentResult:
        stripe.api_key = os.environ.get("STRIPE_SECRET_KEY")

        metadata = {
            **(metadata or {}),
            "created_at": datetime.now(timezone.utc).isoformat(),
        }
        currency = (currency or DEFAULT_CURRENCY).lower()

        logger.info(f"[PAYMENT] Creating PaymentIntent: {amount_minor} {currency}")
        try:
            intent = stripe.PaymentIntent.create(
                amount=amount_minor,
                currency=currency,
                automatic_payment_methods={"enabled": True},
                metadata=metadata,
            )
        except stripe.StripeError as e:
            logger.error(f"[PAYMENT] Stripe error: {e}")
            return PaymentIntentResult(success=False, error=getattr(e, "user_message", None) or str(e))

        logger.info(f"[PAYMENT] PaymentIntent created: {intent.id}")
        return PaymentIntentResult(
            success=True,
            client_secret=intent.client_secret,
            payment_intent_id=intent.id,
        )


# Singleton instance
payment_service = PaymentService()
