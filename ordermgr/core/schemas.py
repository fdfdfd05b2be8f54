# ordermgr/core/schemas.py
"""
Modelos de entrada (pydantic) para ordenes, clientes y productos.

`parse_payload` convierte los errores de pydantic en `ValidationError`
nombrando el primer campo invalido.
"""
from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import List, Literal, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from ordermgr.core.errors import ValidationError
from ordermgr.core.pricing import (
    AMOUNT_LIMIT,
    PRICE_LIMIT,
    QUANTITY_MAX,
    WEIGHT_LIMIT,
    line_total,
    normalize_price,
    normalize_weight,
    order_total,
    to_decimal,
)

ORDER_STATUSES = ("pending", "completed", "cancelled")
PRODUCT_UNITS = ("oz", "each", "lbs", "grams")

OrderStatus = Literal["pending", "completed", "cancelled"]
ProductUnits = Literal["oz", "each", "lbs", "grams"]

M = TypeVar("M", bound=BaseModel)


def _decimal_before(value):
    # float -> str -> Decimal: 0.1 se queda como 0.1
    if isinstance(value, bool):
        raise ValueError("must be a number")
    if isinstance(value, float):
        try:
            return to_decimal(value)
        except InvalidOperation:
            raise ValueError("must be a number") from None
    return value


def _scaled(value: Decimal, normalize, limit: Decimal) -> Decimal:
    # el redondeo puede empujar el valor hasta la cota
    try:
        scaled = normalize(value)
    except InvalidOperation:
        raise ValueError(f"must be less than {limit}") from None
    if scaled >= limit:
        raise ValueError(f"must be less than {limit}")
    return scaled


def _blank_to_none(value):
    if isinstance(value, str) and not value.strip():
        return None
    return value


class _Input(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")


# === ORDENES ===
class LineItemInput(_Input):
    product_id: str = Field(min_length=1)
    quantity: int = Field(gt=0, le=QUANTITY_MAX)
    weight_oz: Decimal = Field(default=Decimal("0"), ge=0, lt=WEIGHT_LIMIT, allow_inf_nan=False)
    unit_price: Decimal = Field(ge=0, lt=PRICE_LIMIT, allow_inf_nan=False)

    @field_validator("quantity", mode="before")
    @classmethod
    def _no_bool_quantity(cls, value):
        if isinstance(value, bool):
            raise ValueError("must be an integer")
        return value

    @field_validator("weight_oz", "unit_price", mode="before")
    @classmethod
    def _decimals(cls, value):
        if value is None:
            raise ValueError("is required")
        return _decimal_before(value)

    @field_validator("weight_oz")
    @classmethod
    def _weight_scale(cls, value: Decimal) -> Decimal:
        return _scaled(value, normalize_weight, WEIGHT_LIMIT)

    @field_validator("unit_price")
    @classmethod
    def _price_scale(cls, value: Decimal) -> Decimal:
        return _scaled(value, normalize_price, PRICE_LIMIT)

    @model_validator(mode="after")
    def _line_fits(self):
        message = f"line total must be less than {AMOUNT_LIMIT}"
        try:
            total = line_total(self.quantity, self.weight_oz, self.unit_price)
        except InvalidOperation:
            raise ValueError(message) from None
        if total >= AMOUNT_LIMIT:
            raise ValueError(message)
        return self


class OrderDraft(_Input):
    customer_id: str = Field(min_length=1)
    order_name: str = Field(min_length=1)
    items: List[LineItemInput] = Field(min_length=1)
    status: OrderStatus = "pending"

    @field_validator("status", mode="before")
    @classmethod
    def _normalize_status(cls, value):
        if value is None:
            return "pending"
        if isinstance(value, str):
            return value.strip().lower() or "pending"
        return value

    @field_validator("items")
    @classmethod
    def _total_fits(cls, items: List[LineItemInput]) -> List[LineItemInput]:
        if order_total(items) >= AMOUNT_LIMIT:
            raise ValueError(f"order total must be less than {AMOUNT_LIMIT}")
        return items


# === CLIENTES ===
class CustomerInput(_Input):
    name: str = Field(min_length=1)
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None

    @field_validator("email", "phone", "address", mode="before")
    @classmethod
    def _empty_is_null(cls, value):
        return _blank_to_none(value)


# === PRODUCTOS ===
class ProductInput(_Input):
    name: str = Field(min_length=1)
    description: Optional[str] = None
    unit_price: Decimal = Field(ge=0, lt=PRICE_LIMIT, allow_inf_nan=False)
    units: ProductUnits = "oz"

    @field_validator("description", mode="before")
    @classmethod
    def _empty_is_null(cls, value):
        return _blank_to_none(value)

    @field_validator("unit_price", mode="before")
    @classmethod
    def _decimal(cls, value):
        return _decimal_before(value)

    @field_validator("unit_price")
    @classmethod
    def _price_scale(cls, value: Decimal) -> Decimal:
        return _scaled(value, normalize_price, PRICE_LIMIT)

    @field_validator("units", mode="before")
    @classmethod
    def _default_units(cls, value):
        if value is None or (isinstance(value, str) and not value.strip()):
            return "oz"
        return value.strip().lower() if isinstance(value, str) else value


def _field_path(loc) -> str:
    return ".".join(str(part) for part in loc) or "body"


def parse_payload(model: Type[M], payload) -> M:
    if not isinstance(payload, dict):
        raise ValidationError("body", "must be a JSON object")
    try:
        return model.model_validate(payload)
    except PydanticValidationError as exc:
        first = exc.errors()[0]
        message = first.get("msg", "invalid value")
        if first.get("type") == "missing":
            message = "is required"
        raise ValidationError(_field_path(first.get("loc", ())), message) from None
