# ordermgr/core/orders.py
"""
Gestor transaccional de ordenes.

Crea, reemplaza y elimina una orden junto con sus items como una sola unidad
atomica. El total siempre se calcula en el servidor.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from sqlalchemy import delete, insert, select, update
from sqlalchemy.orm import Session, selectinload

from ordermgr.core.errors import NotFoundError
from ordermgr.core.pricing import line_total, order_total
from ordermgr.core.schemas import LineItemInput, OrderDraft, parse_payload
from ordermgr.storage.db import Database
from ordermgr.storage.models import Customer, Order, OrderItem, Product, new_id

log = logging.getLogger(__name__)


def build_draft(customer_id, order_name, items, status=None) -> OrderDraft:
    """Valida la orden propuesta; lanza ValidationError antes de tocar la BD."""
    payload = {
        "customer_id": customer_id,
        "order_name": order_name,
        "items": items,
        "status": status,
    }
    return parse_payload(OrderDraft, payload)


def serialize_order(order: Order, with_items: bool = True) -> dict:
    """Orden con cliente e items embebidos (formato de las rutas de lectura)."""
    data = order.to_dict()
    customer = order.customer
    data["customer"] = {
        "id": order.customer_id,
        "name": customer.name if customer else None,
        "email": customer.email if customer else None,
    }
    if with_items:
        items = []
        for item in order.order_items:
            row = item.to_dict()
            row["product"] = item.product.summary() if item.product else {"id": item.product_id}
            items.append(row)
        data["order_items"] = items
    return data


class OrderTransactionManager:
    """Operaciones de escritura y lectura de ordenes sobre un `Database`."""

    def __init__(self, database: Database):
        self.database = database

    # --- Escritura ---
    def create_order(self, customer_id, order_name, items, status="pending") -> dict:
        draft = build_draft(customer_id, order_name, items, status)
        total = order_total(draft.items)
        order_id = new_id()
        now = datetime.now(timezone.utc)

        with self.database.session_scope() as session:
            self._ensure_references(session, draft)
            session.execute(
                insert(Order).values(
                    id=order_id,
                    customer_id=draft.customer_id,
                    order_name=draft.order_name,
                    total_amount=total,
                    status=draft.status,
                    created_at=now,
                    updated_at=now,
                )
            )
            self._insert_items(session, order_id, draft.items, now)
            result = self._load_header(session, order_id)

        log.info(f"Orden {order_id} creada: {len(draft.items)} items, total={total}")
        return result

    def update_order(self, order_id, customer_id, order_name, items, status=None) -> dict:
        """
        Reemplazo completo: actualiza la cabecera, borra todos los items y
        vuelve a insertar el conjunto recibido. No es un parche.
        """
        draft = build_draft(customer_id, order_name, items, status)
        total = order_total(draft.items)
        now = datetime.now(timezone.utc)

        with self.database.session_scope() as session:
            # Bloquea la fila para que un delete concurrente no se cuele
            current = session.execute(
                select(Order.id).where(Order.id == order_id).with_for_update()
            ).first()
            if current is None:
                raise NotFoundError("order", order_id)
            self._ensure_references(session, draft)

            result = session.execute(
                update(Order)
                .where(Order.id == order_id)
                .values(
                    customer_id=draft.customer_id,
                    order_name=draft.order_name,
                    total_amount=total,
                    status=draft.status,
                    updated_at=now,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                # rollback: los items no se tocan
                raise NotFoundError("order", order_id)

            session.execute(
                delete(OrderItem)
                .where(OrderItem.order_id == order_id)
                .execution_options(synchronize_session=False)
            )
            self._insert_items(session, order_id, draft.items, now)
            header = self._load_header(session, order_id)

        log.info(f"Orden {order_id} actualizada: {len(draft.items)} items, total={total}")
        return header

    def delete_order(self, order_id) -> dict:
        with self.database.session_scope() as session:
            exists = session.execute(
                select(Order.id).where(Order.id == order_id).with_for_update()
            ).first()
            if exists is None:
                raise NotFoundError("order", order_id)

            session.execute(
                delete(OrderItem)
                .where(OrderItem.order_id == order_id)
                .execution_options(synchronize_session=False)
            )
            result = session.execute(
                delete(Order)
                .where(Order.id == order_id)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                # Otra transaccion la borro entre medio: no confirmar nada
                raise NotFoundError("order", order_id)

        log.info(f"Orden {order_id} eliminada.")
        return {"deleted": True, "order_id": order_id}

    # --- Lectura ---
    def get_order(self, order_id) -> dict:
        with self.database.session_scope() as session:
            order = session.execute(
                self._with_details(select(Order).where(Order.id == order_id))
            ).scalar_one_or_none()
            if order is None:
                raise NotFoundError("order", order_id)
            return serialize_order(order)

    def list_orders(self, customer_id: Optional[str] = None, limit: Optional[int] = None) -> List[dict]:
        query = self._with_details(select(Order)).order_by(Order.created_at.desc())
        if customer_id is not None:
            query = query.where(Order.customer_id == customer_id)
        if limit:
            query = query.limit(limit)
        with self.database.session_scope() as session:
            orders = session.execute(query).scalars().all()
            return [serialize_order(o) for o in orders]

    # --- Internos ---
    @staticmethod
    def _with_details(query):
        return query.options(
            selectinload(Order.customer),
            selectinload(Order.order_items).selectinload(OrderItem.product),
        )

    @staticmethod
    def _ensure_references(session: Session, draft: OrderDraft) -> None:
        customer = session.execute(
            select(Customer.id).where(Customer.id == draft.customer_id)
        ).first()
        if customer is None:
            raise NotFoundError("customer", draft.customer_id)

        wanted = {item.product_id for item in draft.items}
        found = set(session.execute(select(Product.id).where(Product.id.in_(wanted))).scalars())
        missing = sorted(wanted - found)
        if missing:
            raise NotFoundError("product", missing[0])

    @staticmethod
    def _insert_items(session: Session, order_id: str, items: Iterable[LineItemInput], now: datetime) -> None:
        # Una sentencia por item
        for item in items:
            session.execute(
                insert(OrderItem).values(
                    id=new_id(),
                    order_id=order_id,
                    product_id=item.product_id,
                    quantity=item.quantity,
                    weight_oz=item.weight_oz,
                    unit_price=item.unit_price,
                    total_price=line_total(item.quantity, item.weight_oz, item.unit_price),
                    created_at=now,
                )
            )

    @staticmethod
    def _load_header(session: Session, order_id: str) -> dict:
        order = session.execute(
            select(Order).where(Order.id == order_id).execution_options(populate_existing=True)
        ).scalar_one()
        return order.to_dict()
