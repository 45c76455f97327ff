import hashlib
import hmac
import itertools
import json
import os
import time
from types import SimpleNamespace

import pytest

# Point the app at throwaway settings before anything imports it
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test"
os.environ["STRIPE_SECRET_KEY"] = "sk_test_dummy"

from fastapi.testclient import TestClient  # noqa: E402
from jose import jwt  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from storefront.database import Base, build_engine  # noqa: E402
from storefront.main import app as fastapi_app  # noqa: E402
from storefront.models import Product  # noqa: E402

SHIPPING_ADDRESS = {
    "street": "12 Market Street",
    "city": "Springfield",
    "state": "IL",
    "zip_code": "62701",
    "country": "US",
    "phone_number": "+1-555-0100",
    "email_address": "buyer@example.com",
}


@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'storefront_test.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def client(monkeypatch, session_factory):
    monkeypatch.setattr("storefront.routes.SessionLocal", session_factory)
    monkeypatch.setattr("storefront.main.SessionLocal", session_factory)
    with TestClient(fastapi_app) as c:
        yield c


@pytest.fixture
def add_product(session_factory):
    def _add(product_id, price, stock, name=None, image=""):
        with session_factory() as s:
            s.add(Product(
                id=product_id,
                name=name or product_id.title(),
                price=price,
                image=image,
                stock=stock,
                owner_id="seller-1",
            ))
            s.commit()
    return _add


@pytest.fixture
def stock_of(session_factory):
    def _stock(product_id):
        with session_factory() as s:
            return s.get(Product, product_id).stock
    return _stock


@pytest.fixture
def auth_headers():
    def _headers(user_id="customer-1", role="client"):
        token = jwt.encode({"sub": user_id, "role": role}, "test-secret", algorithm="HS256")
        return {"Authorization": f"Bearer {token}"}
    return _headers


@pytest.fixture
def checkout(mocker):
    """Stand-in for Stripe Checkout that hands out cs_test_1, cs_test_2, ..."""
    counter = itertools.count(1)

    def _create(**kwargs):
        n = next(counter)
        return SimpleNamespace(id=f"cs_test_{n}", url=f"https://checkout.stripe.com/c/pay/cs_test_{n}")

    return mocker.patch("stripe.checkout.Session.create", side_effect=_create)


def stripe_signature(payload: str, secret: str = "whsec_test", timestamp: int | None = None) -> str:
    timestamp = timestamp or int(time.time())
    digest = hmac.new(
        secret.encode("utf-8"),
        f"{timestamp}.{payload}".encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()
    return f"t={timestamp},v1={digest}"


@pytest.fixture
def send_webhook(client):
    """POST a correctly signed Stripe event to the webhook endpoint."""
    def _send(event, secret="whsec_test"):
        payload = json.dumps(event)
        return client.post(
            "/payments/webhook",
            content=payload,
            headers={"stripe-signature": stripe_signature(payload, secret)},
        )
    return _send


def completed_event(session_id, amount_total, order_id=None, event_id="evt_1"):
    return {
        "id": event_id,
        "type": "checkout.session.completed",
        "data": {
            "object": {
                "id": session_id,
                "amount_total": amount_total,
                "metadata": {"orderId": order_id or "", "totalAmount": str(amount_total)},
            }
        },
    }


def order_body(*lines, payment_method="cash_on_delivery"):
    """JSON body for POST /orders, as the storefront client sends it."""
    return {
        "items": [{"product": product, "quantity": quantity} for product, quantity in lines],
        "shippingAddress": {
            "street": SHIPPING_ADDRESS["street"],
            "city": SHIPPING_ADDRESS["city"],
            "state": SHIPPING_ADDRESS["state"],
            "zipCode": SHIPPING_ADDRESS["zip_code"],
            "country": SHIPPING_ADDRESS["country"],
            "phoneNumber": SHIPPING_ADDRESS["phone_number"],
            "emailAddress": SHIPPING_ADDRESS["email_address"],
        },
        "paymentMethod": payment_method,
    }
