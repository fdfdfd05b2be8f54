"""
Property-based tests: el total de la orden siempre es la suma de los
totales de linea, tanto en memoria como una vez persistido.
"""
from decimal import Decimal

from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st
from sqlalchemy import select

from ordermgr.core.pricing import CENTS, line_total, order_total
from ordermgr.storage.models import OrderItem

quantity_strategy = st.integers(min_value=1, max_value=500)
weight_strategy = st.decimals(min_value=Decimal("0"), max_value=Decimal("1000"), places=3)
price_strategy = st.decimals(min_value=Decimal("0"), max_value=Decimal("9999.99"), places=2)

line_strategy = st.fixed_dictionaries({
    "product_id": st.sampled_from(["P1", "P2"]),
    "quantity": quantity_strategy,
    "weight_oz": weight_strategy,
    "unit_price": price_strategy,
})


@given(items=st.lists(line_strategy, min_size=1, max_size=50))
def test_order_total_is_sum_of_line_totals(items):
    expected = sum(
        (line_total(i["quantity"], i["weight_oz"], i["unit_price"]) for i in items),
        Decimal("0"),
    )
    assert order_total(items) == expected


@given(quantity=quantity_strategy, weight=weight_strategy, price=price_strategy)
def test_line_total_is_cent_rounding_of_exact_product(quantity, weight, price):
    exact = Decimal(quantity) * weight * price
    total = line_total(quantity, weight, price)
    assert total.as_tuple().exponent == -2
    assert abs(total - exact) <= CENTS / 2


@given(prices=st.lists(st.sampled_from([0.1, 0.2, 0.3, 0.7, 1.1, 2.67, 19.99]), min_size=1, max_size=20))
def test_float_prices_do_not_drift(prices):
    items = [{"quantity": 1, "weight_oz": 1, "unit_price": p} for p in prices]
    expected = sum((Decimal(str(p)) for p in prices), Decimal("0")).quantize(CENTS)
    assert order_total(items) == expected


@settings(max_examples=25, deadline=None, suppress_health_check=[HealthCheck.function_scoped_fixture])
@given(items=st.lists(line_strategy, min_size=1, max_size=12))
def test_persisted_total_matches_persisted_items(manager, database, seed, items):
    order = manager.create_order("C1", "Property order", items)

    with database.session_scope() as session:
        stored = session.execute(
            select(OrderItem).where(OrderItem.order_id == order["id"])
        ).scalars().all()

    assert len(stored) == len(items)
    assert order["total_amount"] == sum((i.total_price for i in stored), Decimal("0"))
    assert order["total_amount"] == order_total(items)
