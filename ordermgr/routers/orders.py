# ordermgr/routers/orders.py
from fastapi import APIRouter, Body, Depends

from ordermgr.core.orders import OrderTransactionManager
from ordermgr.storage.db import Database, get_database

router = APIRouter(prefix="/orders", tags=["Orders"])


def get_order_manager(database: Database = Depends(get_database)) -> OrderTransactionManager:
    return OrderTransactionManager(database)


def _items(order_data: dict):
    # `order_items` es el nombre del cliente web; `items` se acepta como alias
    if "order_items" in order_data:
        return order_data.get("order_items")
    return order_data.get("items")


@router.get("/")
def list_orders(manager: OrderTransactionManager = Depends(get_order_manager)):
    """Lista todas las ordenes (mas recientes primero) con cliente e items."""
    return {"orders": manager.list_orders()}


@router.post("/")
def create_order(
    order_data: dict = Body(...),
    manager: OrderTransactionManager = Depends(get_order_manager),
):
    """
    Crea una orden con sus items en una sola transaccion.
    El total se calcula aqui; cualquier total enviado por el cliente se ignora.
    """
    order = manager.create_order(
        customer_id=order_data.get("customer_id"),
        order_name=order_data.get("order_name"),
        items=_items(order_data),
        status=order_data.get("status"),
    )
    return {"order": order}


@router.get("/{order_id}")
def get_order(order_id: str, manager: OrderTransactionManager = Depends(get_order_manager)):
    return {"order": manager.get_order(order_id)}


@router.put("/{order_id}")
def update_order(
    order_id: str,
    order_data: dict = Body(...),
    manager: OrderTransactionManager = Depends(get_order_manager),
):
    """Reemplaza la orden completa; los items no enviados desaparecen."""
    order = manager.update_order(
        order_id,
        customer_id=order_data.get("customer_id"),
        order_name=order_data.get("order_name"),
        items=_items(order_data),
        status=order_data.get("status"),
    )
    return {"order": order}


@router.delete("/{order_id}")
def delete_order(order_id: str, manager: OrderTransactionManager = Depends(get_order_manager)):
    manager.delete_order(order_id)
    return {"message": "Order deleted successfully"}
