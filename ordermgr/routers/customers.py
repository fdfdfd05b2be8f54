# ordermgr/routers/customers.py
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy import delete, or_, select

from ordermgr.core.errors import NotFoundError
from ordermgr.core.orders import OrderTransactionManager
from ordermgr.core.schemas import CustomerInput, parse_payload
from ordermgr.storage.db import Database, get_database
from ordermgr.storage.models import Customer, new_id

router = APIRouter(prefix="/customers", tags=["Customers"])

SEARCH_MIN_CHARS = 2
SEARCH_LIMIT = 10
BROWSE_LIMIT = 50
RECENT_ORDERS_LIMIT = 10


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


@router.get("/")
def list_customers(database: Database = Depends(get_database)):
    with database.session_scope() as db:
        customers = db.execute(select(Customer).order_by(Customer.name)).scalars().all()
        return {"customers": [c.to_dict() for c in customers]}


@router.get("/search")
def search_customers(
    q: Optional[str] = Query(None),
    database: Database = Depends(get_database),
):
    """
    Busqueda por nombre, email o telefono (sin distinguir mayusculas).
    - Sin `q`: primeros 50 clientes por nombre.
    - `q` con menos de 2 caracteres: lista vacia.
    """
    query = select(Customer).order_by(Customer.name)
    if q is None:
        query = query.limit(BROWSE_LIMIT)
    else:
        term = q.strip()
        if len(term) < SEARCH_MIN_CHARS:
            return {"customers": []}
        pattern = f"%{_escape_like(term)}%"
        query = query.where(
            or_(
                Customer.name.ilike(pattern, escape="\\"),
                Customer.email.ilike(pattern, escape="\\"),
                Customer.phone.ilike(pattern, escape="\\"),
            )
        ).limit(SEARCH_LIMIT)

    with database.session_scope() as db:
        customers = db.execute(query).scalars().all()
        return {"customers": [c.to_dict() for c in customers]}


@router.post("/")
def create_customer(payload: dict = Body(...), database: Database = Depends(get_database)):
    data = parse_payload(CustomerInput, payload)
    with database.session_scope() as db:
        customer = Customer(id=new_id(), **data.model_dump())
        db.add(customer)
        db.flush()
        db.refresh(customer)
        return {"customer": customer.to_dict()}


@router.get("/{customer_id}")
def get_customer(customer_id: str, database: Database = Depends(get_database)):
    with database.session_scope() as db:
        customer = db.get(Customer, customer_id)
        if customer is None:
            raise NotFoundError("customer", customer_id)
        return {"customer": customer.to_dict()}


@router.put("/{customer_id}")
def update_customer(
    customer_id: str,
    payload: dict = Body(...),
    database: Database = Depends(get_database),
):
    """Reemplazo completo: los campos opcionales omitidos quedan en NULL."""
    data = parse_payload(CustomerInput, payload)
    with database.session_scope() as db:
        customer = db.get(Customer, customer_id)
        if customer is None:
            raise NotFoundError("customer", customer_id)
        for field, value in data.model_dump().items():
            setattr(customer, field, value)
        customer.updated_at = datetime.now(timezone.utc)
        db.flush()
        return {"customer": customer.to_dict()}


@router.delete("/{customer_id}")
def delete_customer(customer_id: str, database: Database = Depends(get_database)):
    with database.session_scope() as db:
        result = db.execute(
            delete(Customer)
            .where(Customer.id == customer_id)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise NotFoundError("customer", customer_id)
    return {"message": "Customer deleted successfully"}


@router.get("/{customer_id}/orders")
def customer_orders(customer_id: str, database: Database = Depends(get_database)):
    """Las 10 ordenes mas recientes del cliente, con sus items."""
    manager = OrderTransactionManager(database)
    return {"orders": manager.list_orders(customer_id=customer_id, limit=RECENT_ORDERS_LIMIT)}
