# ordermgr/routers/products.py
from fastapi import APIRouter, Body, Depends
from sqlalchemy import delete, select

from ordermgr.core.errors import NotFoundError
from ordermgr.core.schemas import ProductInput, parse_payload
from ordermgr.storage.db import Database, get_database
from ordermgr.storage.models import Product, new_id

router = APIRouter(prefix="/products", tags=["Products"])


@router.get("/")
def list_products(database: Database = Depends(get_database)):
    with database.session_scope() as db:
        products = db.execute(select(Product).order_by(Product.name)).scalars().all()
        return {"products": [p.to_dict() for p in products]}


@router.post("/")
def create_product(payload: dict = Body(...), database: Database = Depends(get_database)):
    data = parse_payload(ProductInput, payload)
    with database.session_scope() as db:
        product = Product(id=new_id(), **data.model_dump())
        db.add(product)
        db.flush()
        db.refresh(product)
        return {"product": product.to_dict()}


@router.get("/{product_id}")
def get_product(product_id: str, database: Database = Depends(get_database)):
    with database.session_scope() as db:
        product = db.get(Product, product_id)
        if product is None:
            raise NotFoundError("product", product_id)
        return {"product": product.to_dict()}


@router.put("/{product_id}")
def update_product(
    product_id: str,
    payload: dict = Body(...),
    database: Database = Depends(get_database),
):
    """
    Actualiza el producto. Los items de ordenes ya creadas conservan su
    precio unitario historico.
    """
    data = parse_payload(ProductInput, payload)
    with database.session_scope() as db:
        product = db.get(Product, product_id)
        if product is None:
            raise NotFoundError("product", product_id)
        for field, value in data.model_dump().items():
            setattr(product, field, value)
        db.flush()
        return {"product": product.to_dict()}


@router.delete("/{product_id}")
def delete_product(product_id: str, database: Database = Depends(get_database)):
    with database.session_scope() as db:
        result = db.execute(
            delete(Product)
            .where(Product.id == product_id)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise NotFoundError("product", product_id)
    return {"message": "Product deleted successfully"}
