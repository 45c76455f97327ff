import os
from pathlib import Path
from dotenv import load_dotenv
import stripe

BASE_DIR = Path(__file__).resolve().parent.parent
load_dotenv(dotenv_path=BASE_DIR / ".env")

stripe.api_key = os.getenv("STRIPE_SECRET_KEY")


def create_checkout_session(order):
    """Open a hosted checkout page for ``order``; returns the Stripe session."""
    currency = os.getenv("STRIPE_CURRENCY", "usd")
    line_items = [
        {
            "price_data": {
                "currency": currency,
                "product_data": {
                    "name": item.name,
                    "images": [item.image] if item.image else [],
                },
                "unit_amount": item.price,
            },
            "quantity": item.quantity,
        }
        for item in order.items
    ]
    return stripe.checkout.Session.create(
        payment_method_types=["card"],
        line_items=line_items,
        mode="payment",
        success_url=os.getenv("CHECKOUT_SUCCESS_URL", "http://localhost:5173/checkout/success"),
        cancel_url=os.getenv("CHECKOUT_CANCEL_URL", "http://localhost:5173/checkout/cancel"),
        metadata={"orderId": order.id, "totalAmount": str(order.total_amount)},
        idempotency_key=f"checkout-{order.id}",
    )


def verify_webhook(payload: bytes, signature: str | None) -> None:
    """Check the Stripe-Signature header; raises ``stripe.SignatureVerificationError``."""
    stripe.WebhookSignature.verify_header(
        payload.decode("utf-8"),
        signature or "",
        os.getenv("STRIPE_WEBHOOK_SECRET", ""),
        stripe.Webhook.DEFAULT_TOLERANCE,
    )
