"""
Sale transaction engine tests.

Verifies:
- a sale either consumes all of its lines or none of them
- tax and totals in integer cents
- cancel leaves stock alone, refund restores exactly what was consumed
- terminal states reject further transitions
- sale-number collisions surface as DuplicateIdentifier
"""

import pytest

from radstock.models import ChangeType, Sale, SaleItem, SaleStatus, StockHistory
from radstock.services import ledger_service, sales_service
from radstock.services.errors import (
    DuplicateIdentifier,
    EntityNotFound,
    InsufficientStock,
    InvalidCustomer,
    InvalidStateTransition,
    ValidationError,
)


def _line(radiator, warehouse, quantity, unit_price_cents=10000):
    return {
        "radiator_id": radiator.id,
        "warehouse_id": warehouse.id,
        "quantity": quantity,
        "unit_price_cents": unit_price_cents,
    }


def _make_sale(customer, user, lines, payment_method="Cash", notes=None):
    return sales_service.create_sale(customer.id, payment_method, notes, lines, user.id)


# =============================================================================
# TOTALS
# =============================================================================


class TestTotals:

    def test_tax_is_fifteen_percent(self):
        assert sales_service.calculate_tax_cents(20000) == 3000

    def test_tax_rounds_half_up(self):
        # 0.15 * 0.10 = 0.015 -> 0.02
        assert sales_service.calculate_tax_cents(10) == 2
        # 0.15 * 0.03 = 0.0045 -> 0.00
        assert sales_service.calculate_tax_cents(3) == 0

    def test_calculate_totals(self):
        subtotal, tax, total = sales_service.calculate_totals([
            {"quantity": 2, "unit_price_cents": 10000},
            {"quantity": 1, "unit_price_cents": 999},
        ])
        assert subtotal == 20999
        assert tax == 3150
        assert total == 24149


# =============================================================================
# CREATE
# =============================================================================


class TestCreateSale:

    def test_sale_consumes_stock_and_records_totals(
        self, db_session, radiator, warehouses, customer, staff_user, seed_stock
    ):
        wh1, _ = warehouses
        seed_stock(radiator.id, "WH1", 5)

        sale = _make_sale(customer, staff_user, [_line(radiator, wh1, 2, 10000)])

        assert sale.status is SaleStatus.COMPLETED
        assert sale.subtotal_cents == 20000
        assert sale.tax_amount_cents == 3000
        assert sale.total_amount_cents == 23000
        assert sale.payment_method == "Cash"
        assert sale.sale_number.startswith("RS")
        assert len(sale.items) == 1
        assert sale.items[0].total_price_cents == 20000
        assert ledger_service.get_quantity(radiator.id, wh1.id) == 3

        history = db_session.query(StockHistory).filter_by(sale_id=sale.id).all()
        assert len(history) == 1
        assert history[0].change_type is ChangeType.SALE
        assert history[0].quantity_change == -2

    def test_insufficient_stock_leaves_everything_untouched(
        self, db_session, radiator, warehouses, customer, staff_user, seed_stock
    ):
        wh1, _ = warehouses
        seed_stock(radiator.id, "WH1", 2)

        with pytest.raises(InsufficientStock):
            _make_sale(customer, staff_user, [_line(radiator, wh1, 3)])

        assert ledger_service.get_quantity(radiator.id, wh1.id) == 2
        assert db_session.query(Sale).count() == 0
        assert db_session.query(SaleItem).count() == 0

    def test_later_line_failure_rolls_back_earlier_lines(
        self, db_session, radiator, second_radiator, warehouses, customer, staff_user, seed_stock
    ):
        wh1, wh2 = warehouses
        seed_stock(radiator.id, "WH1", 4)
        seed_stock(second_radiator.id, "WH2", 1)

        with pytest.raises(InsufficientStock):
            _make_sale(customer, staff_user, [
                _line(radiator, wh1, 3),
                _line(second_radiator, wh2, 2),
            ])

        assert ledger_service.get_quantity(radiator.id, wh1.id) == 4
        assert ledger_service.get_quantity(second_radiator.id, wh2.id) == 1
        assert db_session.query(StockHistory).filter(StockHistory.sale_id.isnot(None)).count() == 0

    def test_unknown_customer_is_rejected(self, db_session, radiator, warehouses, staff_user, seed_stock):
        wh1, _ = warehouses
        seed_stock(radiator.id, "WH1", 5)

        with pytest.raises(InvalidCustomer):
            sales_service.create_sale(99999, "Cash", None, [_line(radiator, wh1, 1)], staff_user.id)

        assert ledger_service.get_quantity(radiator.id, wh1.id) == 5

    def test_empty_items_rejected(self, db_session, customer, staff_user):
        with pytest.raises(ValidationError):
            _make_sale(customer, staff_user, [])

    def test_unknown_radiator_rejected(self, db_session, warehouses, customer, staff_user):
        wh1, _ = warehouses
        line = {"radiator_id": 424242, "warehouse_id": wh1.id, "quantity": 1, "unit_price_cents": 100}
        with pytest.raises(EntityNotFound) as excinfo:
            _make_sale(customer, staff_user, [line])
        assert excinfo.value.entity == "radiator"

    def test_unknown_user_rejected(self, db_session, radiator, warehouses, customer, seed_stock):
        wh1, _ = warehouses
        seed_stock(radiator.id, "WH1", 5)
        with pytest.raises(EntityNotFound):
            sales_service.create_sale(customer.id, "Cash", None, [_line(radiator, wh1, 1)], 777)

    @pytest.mark.parametrize("field,value", [
        ("quantity", 0),
        ("quantity", -2),
        ("unit_price_cents", 0),
    ])
    def test_invalid_line_values_rejected(
        self, db_session, radiator, warehouses, customer, staff_user, field, value
    ):
        wh1, _ = warehouses
        line = _line(radiator, wh1, 1)
        line[field] = value
        with pytest.raises(ValidationError):
            _make_sale(customer, staff_user, [line])

    def test_payment_method_too_long_rejected(self, db_session, radiator, warehouses, customer, staff_user):
        wh1, _ = warehouses
        with pytest.raises(ValidationError):
            _make_sale(customer, staff_user, [_line(radiator, wh1, 1)], payment_method="X" * 21)

    def test_duplicate_sale_number_surfaces_and_keeps_stock(
        self, db_session, radiator, warehouses, customer, staff_user, seed_stock, monkeypatch
    ):
        wh1, _ = warehouses
        seed_stock(radiator.id, "WH1", 5)
        monkeypatch.setattr(sales_service, "next_sale_number", lambda prefix, now=None: "RS-FIXED")

        _make_sale(customer, staff_user, [_line(radiator, wh1, 1)])
        with pytest.raises(DuplicateIdentifier):
            _make_sale(customer, staff_user, [_line(radiator, wh1, 1)])

        assert ledger_service.get_quantity(radiator.id, wh1.id) == 4
        assert db_session.query(Sale).count() == 1


# =============================================================================
# CANCEL / REFUND
# =============================================================================


class TestLifecycle:

    @pytest.fixture
    def completed_sale(self, db_session, radiator, warehouses, customer, staff_user, seed_stock):
        wh1, _ = warehouses
        seed_stock(radiator.id, "WH1", 5)
        return _make_sale(customer, staff_user, [_line(radiator, wh1, 2)])

    def test_cancel_leaves_stock_unchanged(self, db_session, radiator, warehouses, completed_sale):
        wh1, _ = warehouses
        sale = sales_service.cancel_sale(completed_sale.id)

        assert sale.status is SaleStatus.CANCELLED
        assert ledger_service.get_quantity(radiator.id, wh1.id) == 3

    def test_refund_restores_consumed_quantities(
        self, db_session, radiator, warehouses, customer, staff_user, completed_sale
    ):
        wh1, _ = warehouses
        # An unrelated sale in between must not affect what the refund returns
        _make_sale(customer, staff_user, [_line(radiator, wh1, 1)])
        assert ledger_service.get_quantity(radiator.id, wh1.id) == 2

        sale = sales_service.refund_sale(completed_sale.id)

        assert sale.status is SaleStatus.REFUNDED
        assert ledger_service.get_quantity(radiator.id, wh1.id) == 4
        refunds = db_session.query(StockHistory).filter_by(change_type=ChangeType.REFUND).all()
        assert [r.quantity_change for r in refunds] == [2]
        assert refunds[0].sale_id == completed_sale.id

    def test_second_refund_rejected(self, db_session, radiator, warehouses, completed_sale):
        wh1, _ = warehouses
        sales_service.refund_sale(completed_sale.id)

        with pytest.raises(InvalidStateTransition, match=r"can be refunded\."):
            sales_service.refund_sale(completed_sale.id)
        assert ledger_service.get_quantity(radiator.id, wh1.id) == 5

    def test_cancelled_sale_cannot_be_refunded(self, db_session, radiator, warehouses, completed_sale):
        wh1, _ = warehouses
        sales_service.cancel_sale(completed_sale.id)

        with pytest.raises(InvalidStateTransition):
            sales_service.refund_sale(completed_sale.id)
        assert ledger_service.get_quantity(radiator.id, wh1.id) == 3

    def test_refunded_sale_cannot_be_cancelled(self, db_session, completed_sale):
        sales_service.refund_sale(completed_sale.id)
        with pytest.raises(InvalidStateTransition, match=r"Only completed sales can be cancelled\."):
            sales_service.cancel_sale(completed_sale.id)

    def test_unknown_sale(self, db_session):
        with pytest.raises(EntityNotFound):
            sales_service.cancel_sale(31337)


# =============================================================================
# READS
# =============================================================================


class TestReads:

    def test_list_and_date_range(self, db_session, radiator, warehouses, customer, staff_user, seed_stock):
        from datetime import timedelta
        from radstock.time_utils import utcnow

        wh1, _ = warehouses
        seed_stock(radiator.id, "WH1", 5)
        first = _make_sale(customer, staff_user, [_line(radiator, wh1, 1)])
        second = _make_sale(customer, staff_user, [_line(radiator, wh1, 1)])

        listed = sales_service.list_sales()
        assert {s.id for s in listed} == {first.id, second.id}

        now = utcnow()
        in_range = sales_service.list_sales_by_date_range(now - timedelta(hours=1), now + timedelta(hours=1))
        assert len(in_range) == 2
        assert sales_service.list_sales_by_date_range(now + timedelta(days=1), now + timedelta(days=2)) == []

    def test_date_range_must_be_ordered(self, db_session):
        from datetime import datetime
        with pytest.raises(ValidationError):
            sales_service.list_sales_by_date_range(datetime(2026, 2, 1), datetime(2026, 1, 1))

    def test_get_sale_not_found(self, db_session):
        with pytest.raises(EntityNotFound):
            sales_service.get_sale(5)
