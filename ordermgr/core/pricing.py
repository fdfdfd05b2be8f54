# ordermgr/core/pricing.py
from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Union

Number = Union[Decimal, int, float, str]

CENTS = Decimal("0.01")
PRICE_SCALE = Decimal("0.0001")   # Numeric(12, 4)
WEIGHT_SCALE = Decimal("0.001")   # Numeric(12, 3)

# Cotas exclusivas que caben en las columnas
PRICE_LIMIT = Decimal(10) ** 8     # Numeric(12, 4)
WEIGHT_LIMIT = Decimal(10) ** 9    # Numeric(12, 3)
AMOUNT_LIMIT = Decimal(10) ** 12   # Numeric(14, 2)
QUANTITY_MAX = 2 ** 31 - 1         # Integer


def to_decimal(value: Number) -> Decimal:
    """Convierte a Decimal; los float pasan por str() para no arrastrar binario."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def normalize_price(value: Number) -> Decimal:
    return to_decimal(value).quantize(PRICE_SCALE, rounding=ROUND_HALF_UP)


def normalize_weight(value: Number) -> Decimal:
    return to_decimal(value).quantize(WEIGHT_SCALE, rounding=ROUND_HALF_UP)


def line_total(quantity: int, weight_oz: Number, unit_price: Number) -> Decimal:
    """
    Total de una linea: cantidad x peso x precio unitario, redondeado a centavos.
    """
    raw = Decimal(quantity) * normalize_weight(weight_oz) * normalize_price(unit_price)
    return raw.quantize(CENTS, rounding=ROUND_HALF_UP)


def order_total(items: Iterable) -> Decimal:
    """
    Suma de los totales de linea ya redondeados, de modo que el total de la
    orden coincide exactamente con la suma de `total_price` guardada.

    Acepta objetos con atributos o dicts con las claves
    quantity / weight_oz / unit_price.
    """
    total = Decimal("0.00")
    for item in items:
        if isinstance(item, dict):
            total += line_total(item["quantity"], item["weight_oz"], item["unit_price"])
        else:
            total += line_total(item.quantity, item.weight_oz, item.unit_price)
    return total.quantize(CENTS)
