import logging
from typing import Optional

import stripe
from fastapi import Request

logger = logging.getLogger(__name__)

DEFAULT_CURRENCY = "usd"


def to_minor_units(price: float) -> int:
    """Convert a price in major units to the integer cents Stripe expects (truncating)."""
    return int(price * 100)


class PaymentIntentBridge:
    """Creates Stripe PaymentIntents and hands back only the client secret."""

    def __init__(self, secret_key: str, timeout: int = 10, client: Optional[stripe.StripeClient] = None):
        self.secret_key = secret_key
        self.timeout = timeout
        self._client = client

    @property
    def client(self) -> stripe.StripeClient:
        # Built on first use so the app can start without a key configured
        if self._client is None:
            if not self.secret_key:
                raise RuntimeError("STRIPE_SECRET_KEY is not configured")
            self._client = stripe.StripeClient(
                self.secret_key,
                http_client=stripe.RequestsClient(timeout=self.timeout),
                max_network_retries=0,
            )
        return self._client

    def create_intent(self, amount: int, currency: str = DEFAULT_CURRENCY) -> str:
        intent = self.client.payment_intents.create(
            params={
                "amount": amount,
                "currency": currency,
                "payment_method_types": ["card"],
            }
        )
        logger.info("Created payment intent %s for %d %s", intent.id, amount, currency)
        return intent.client_secret


def get_payment_bridge(request: Request) -> PaymentIntentBridge:
    bridge = getattr(request.app.state, "payments", None)
    if bridge is None:
        raise RuntimeError("Payment bridge is not initialised; the application lifespan has not run")
    return bridge
