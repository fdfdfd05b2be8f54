# ordermgr/storage/models.py
# ======================================================
# Modelos ORM: clientes, productos, ordenes e items
# ======================================================

import uuid

from sqlalchemy import (
    CheckConstraint, Column, DateTime, ForeignKey,
    Integer, Numeric, String, Text
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .db import Base


def new_id() -> str:
    return str(uuid.uuid4())


class Customer(Base):
    __tablename__ = "customers"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(255), nullable=False, index=True)
    email = Column(String(255), nullable=True)
    phone = Column(String(64), nullable=True)
    address = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    orders = relationship("Order", back_populates="customer")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    def __repr__(self):
        return f"<Customer id={self.id} name={self.name}>"


class Product(Base):
    __tablename__ = "products"
    __table_args__ = (
        CheckConstraint("units IN ('oz', 'each', 'lbs', 'grams')", name="check_units"),
        CheckConstraint("unit_price >= 0", name="check_product_unit_price"),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(255), nullable=False, index=True)
    description = Column(Text, nullable=True)
    unit_price = Column(Numeric(12, 4), nullable=False)
    units = Column(String(10), nullable=False, default="oz", server_default="oz")
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    order_items = relationship("OrderItem", back_populates="product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "unit_price": self.unit_price,
            "units": self.units,
            "created_at": self.created_at,
        }

    def summary(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "unit_price": self.unit_price,
        }

    def __repr__(self):
        return f"<Product name={self.name} price={self.unit_price}>"


class Order(Base):
    """
    Cabecera de la orden. `total_amount` es derivado: siempre es la suma de
    `total_price` de sus items al momento de escribir.
    """
    __tablename__ = "orders"
    __table_args__ = (
        CheckConstraint("status IN ('pending', 'completed', 'cancelled')", name="check_order_status"),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    customer_id = Column(String(36), ForeignKey("customers.id"), nullable=False, index=True)
    order_name = Column(String(255), nullable=False)
    total_amount = Column(Numeric(14, 2), nullable=False, default=0)
    status = Column(String(20), nullable=False, default="pending", server_default="pending")
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    customer = relationship("Customer", back_populates="orders")
    order_items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="OrderItem.created_at",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "order_name": self.order_name,
            "total_amount": self.total_amount,
            "status": self.status,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    def __repr__(self):
        return f"<Order id={self.id} customer_id={self.customer_id} total={self.total_amount}>"


class OrderItem(Base):
    """
    Linea de una orden. Guarda una foto del precio unitario; `total_price`
    se recalcula siempre a partir de cantidad, peso y precio.
    """
    __tablename__ = "order_items"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="check_item_quantity"),
        CheckConstraint("weight_oz >= 0", name="check_item_weight"),
        CheckConstraint("unit_price >= 0", name="check_item_unit_price"),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    order_id = Column(String(36), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(String(36), ForeignKey("products.id"), nullable=False)
    quantity = Column(Integer, nullable=False)
    weight_oz = Column(Numeric(12, 3), nullable=False, default=0)
    unit_price = Column(Numeric(12, 4), nullable=False)
    total_price = Column(Numeric(14, 2), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    order = relationship("Order", back_populates="order_items")
    product = relationship("Product", back_populates="order_items")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "weight_oz": self.weight_oz,
            "unit_price": self.unit_price,
            "total_price": self.total_price,
            "created_at": self.created_at,
        }

    def __repr__(self):
        return f"<OrderItem order={self.order_id} product={self.product_id} qty={self.quantity}>"
