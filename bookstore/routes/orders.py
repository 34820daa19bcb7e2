from fastapi import APIRouter, Depends, Path

from .. import schemas
from ..auth import Principal
from ..deps import get_order_service, get_principal, require_admin
from ..orders import OrderService

router = APIRouter(prefix="/orders", tags=["orders"])


@router.get("", response_model=schemas.Envelope[schemas.OrderList])
async def list_orders(principal: Principal = Depends(get_principal), service: OrderService = Depends(get_order_service)):
    orders = service.list_orders(principal)
    return {"success": True, "data": {"orders": orders, "count": len(orders)}}


@router.get("/{order_id}", response_model=schemas.Envelope[schemas.OrderRead])
async def get_order(
    order_id: int = Path(..., gt=0),
    principal: Principal = Depends(get_principal),
    service: OrderService = Depends(get_order_service),
):
    return {"success": True, "data": service.get_order(order_id, principal)}


@router.post("", response_model=schemas.Envelope[schemas.OrderRead], status_code=201)
async def place_order(
    payload: schemas.OrderCreate,
    principal: Principal = Depends(get_principal),
    service: OrderService = Depends(get_order_service),
):
    order = service.place_order(principal, payload)
    return {"success": True, "data": order, "message": "Order placed successfully"}


@router.patch("/{order_id}/status", response_model=schemas.Envelope[schemas.OrderRead])
async def update_order_status(
    payload: schemas.OrderStatusUpdate,
    order_id: int = Path(..., gt=0),
    admin: Principal = Depends(require_admin),
    service: OrderService = Depends(get_order_service),
):
    order = service.update_status(order_id, payload.status)
    return {"success": True, "data": order, "message": "Order status updated successfully"}
