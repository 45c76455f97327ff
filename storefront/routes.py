from typing import Optional

from fastapi import APIRouter, Depends, Query

from storefront import orders
from storefront.auth import Identity, get_current_user, require_admin
from storefront.database import SessionLocal
from storefront.schemas import (
    CreateOrderRequest,
    OrderEnvelope,
    OrderListEnvelope,
    OrderOut,
    Pagination,
    UpdateStatusRequest,
)

router = APIRouter(prefix="/orders", tags=["orders"])


def _list_envelope(page: orders.Page) -> OrderListEnvelope:
    return OrderListEnvelope(
        data=[OrderOut.model_validate(order) for order in page.items],
        pagination=Pagination(**page.pagination()),
    )


@router.post("", status_code=201, response_model=OrderEnvelope)
def create_order_api(
    request: CreateOrderRequest,
    user: Identity = Depends(get_current_user),
):
    db = SessionLocal()
    try:
        order, checkout_url = orders.create_order(
            db,
            customer_id=user.user_id,
            lines=[orders.LineRequest(item.product, item.quantity) for item in request.items],
            shipping_address=request.shipping_address.model_dump(),
            payment_method=request.payment_method.value,
            order_notes=request.order_notes,
        )
        return OrderEnvelope(
            message="Order placed successfully",
            data=OrderOut.model_validate(order),
            checkout_url=checkout_url,
        )
    finally:
        db.close()


@router.get("/my-orders", response_model=OrderListEnvelope)
def my_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=orders.MAX_PAGE_SIZE),
    user: Identity = Depends(get_current_user),
):
    db = SessionLocal()
    try:
        return _list_envelope(orders.list_customer_orders(db, user.user_id, page, limit))
    finally:
        db.close()


@router.get("/admin/all", response_model=OrderListEnvelope)
def all_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=orders.MAX_PAGE_SIZE),
    status: Optional[str] = None,
    admin: Identity = Depends(require_admin),
):
    db = SessionLocal()
    try:
        return _list_envelope(orders.list_all_orders(db, page, limit, status))
    finally:
        db.close()


@router.get("/{order_id}", response_model=OrderEnvelope)
def get_order_api(order_id: str, user: Identity = Depends(get_current_user)):
    db = SessionLocal()
    try:
        order = orders.get_order_for(db, order_id, user.user_id, user.is_admin)
        return OrderEnvelope(data=OrderOut.model_validate(order))
    finally:
        db.close()


@router.put("/{order_id}/cancel", response_model=OrderEnvelope)
def cancel_order_api(order_id: str, user: Identity = Depends(get_current_user)):
    db = SessionLocal()
    try:
        order = orders.cancel_order(db, order_id, user.user_id)
        return OrderEnvelope(
            message="Order cancelled successfully",
            data=OrderOut.model_validate(order),
        )
    finally:
        db.close()


@router.put("/{order_id}/status", response_model=OrderEnvelope)
def update_status_api(
    order_id: str,
    request: UpdateStatusRequest,
    admin: Identity = Depends(require_admin),
):
    db = SessionLocal()
    try:
        order = orders.update_status(db, order_id, request.status, request.tracking_number)
        return OrderEnvelope(
            message="Order status updated successfully",
            data=OrderOut.model_validate(order),
        )
    finally:
        db.close()
