from conftest import completed_event, order_body


def test_full_order_lifecycle_integration(client, add_product, auth_headers, send_webhook, checkout, stock_of):
    """
    Test the full lifecycle:
    1. Place an online order (API -> ledger + DB + Stripe mocked)
    2. Checkout completed webhook (Stripe -> API -> DB), delivered twice
    3. Operator ships the order, customer can no longer cancel
    """
    add_product("A", price=10, stock=5, name="Alpha")
    add_product("B", price=5, stock=5, name="Bravo")
    customer = auth_headers("customer-1")
    operator = auth_headers("op-1", "admin")

    # --- 1. PLACE ORDER ---
    response = client.post("/orders", json=order_body(("A", 2), ("B", 1), payment_method="online"), headers=customer)

    assert response.status_code == 201
    order = response.json()["data"]
    assert order["totalAmount"] == 25
    assert response.json()["checkoutUrl"].endswith("cs_test_1")
    assert stock_of("A") == 3
    assert stock_of("B") == 4

    # --- 2. WEBHOOK (processor charged 2 more for fees, and retried) ---
    event = completed_event("cs_test_1", 27, order["id"])
    assert send_webhook(event).json() == {"received": True}
    assert send_webhook(event).json() == {"received": True}

    paid = client.get(f"/orders/{order['id']}", headers=customer).json()["data"]
    assert paid["paymentStatus"] == "paid"
    assert paid["totalAmount"] == 27
    assert paid["status"] == "pending"

    # --- 3. SHIP ---
    shipped = client.put(
        f"/orders/{order['id']}/status",
        json={"status": "shipped", "trackingNumber": "1Z-INT-1"},
        headers=operator,
    )
    assert shipped.status_code == 200
    assert shipped.json()["data"]["paymentStatus"] == "paid"

    cancel = client.put(f"/orders/{order['id']}/cancel", headers=customer)
    assert cancel.status_code == 400
    assert stock_of("A") == 3
    assert stock_of("B") == 4


def test_cancelled_order_then_late_payment(client, add_product, auth_headers, send_webhook, checkout, stock_of):
    """A payment confirmation arriving after cancellation is recorded without reviving the order."""
    add_product("A", price=10, stock=5)
    customer = auth_headers("customer-1")

    order = client.post(
        "/orders", json=order_body(("A", 1), payment_method="online"), headers=customer,
    ).json()["data"]
    assert client.put(f"/orders/{order['id']}/cancel", headers=customer).status_code == 200
    assert stock_of("A") == 5

    assert send_webhook(completed_event("cs_test_1", 10, order["id"])).status_code == 200

    final = client.get(f"/orders/{order['id']}", headers=customer).json()["data"]
    assert final["status"] == "cancelled"
    assert final["paymentStatus"] == "paid"
    assert stock_of("A") == 5

