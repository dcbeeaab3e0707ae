# app/services/payments.py
import logging
from decimal import ROUND_HALF_UP, Decimal
from functools import lru_cache

import stripe

from app.core.config import get_settings

logger = logging.getLogger(__name__)

# Currencies Stripe charges in whole units
ZERO_DECIMAL_CURRENCIES = {
    "bif", "clp", "djf", "gnf", "jpy", "kmf", "krw", "mga",
    "pyg", "rwf", "ugx", "vnd", "vuv", "xaf", "xof", "xpf",
}


class PaymentError(Exception):
    pass


def to_minor_units(amount: Decimal, currency: str) -> int:
    """Convert a price like Decimal("9.99") to the integer Stripe expects (999)."""
    if currency.lower() in ZERO_DECIMAL_CURRENCIES:
        return int(Decimal(amount).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class PaymentGateway:
    """Stripe Checkout calls used by the shop."""

    def __init__(self, api_key: str, webhook_secret: str, currency: str):
        self.api_key = api_key
        self.webhook_secret = webhook_secret
        self.currency = currency

    def create_checkout_session(
        self,
        *,
        purchase_id: int,
        user_id: int,
        product_id: int,
        title: str,
        description: str | None,
        amount: Decimal,
        success_url: str,
        cancel_url: str,
    ):
        product_data = {"name": title}
        if description:
            product_data["description"] = description[:500]

        try:
            session = stripe.checkout.Session.create(
                api_key=self.api_key,
                mode="payment",
                line_items=[
                    {
                        "price_data": {
                            "currency": self.currency,
                            "unit_amount": to_minor_units(amount, self.currency),
                            "product_data": product_data,
                        },
                        "quantity": 1,
                    }
                ],
                client_reference_id=str(purchase_id),
                metadata={
                    "purchase_id": str(purchase_id),
                    "user_id": str(user_id),
                    "product_id": str(product_id),
                },
                success_url=success_url,
                cancel_url=cancel_url,
            )
        except stripe.StripeError as e:
            logger.error("Stripe checkout creation failed for purchase %s: %s", purchase_id, e)
            raise PaymentError("Could not start checkout") from e

        logger.info("Created checkout session %s for purchase %s", session.id, purchase_id)
        return session

    def retrieve_checkout_session(self, session_id: str):
        try:
            return stripe.checkout.Session.retrieve(session_id, api_key=self.api_key)
        except stripe.StripeError as e:
            logger.error("Stripe session lookup %s failed: %s", session_id, e)
            raise PaymentError("Could not verify payment") from e

    def construct_event(self, payload: bytes, signature: str | None):
        """Verify a webhook payload. Raises ValueError or stripe.SignatureVerificationError."""
        if not self.webhook_secret:
            raise ValueError("Webhook secret is not configured")
        return stripe.Webhook.construct_event(payload, signature, self.webhook_secret)


@lru_cache
def get_payment_gateway() -> PaymentGateway:
    settings = get_settings()
    return PaymentGateway(
        api_key=settings.stripe_secret_key,
        webhook_secret=settings.stripe_webhook_secret,
        currency=settings.currency,
    )
