# Overview: Pytest coverage for checkout: BOM explosion, atomic rejection, totals and receipts.

"""
Sale Transaction Tests

Covers:
1. Shared materials are summed across cart lines before validation
2. A shortfall on one material leaves every material untouched
3. Cash settlement (change, insufficient cash rejected before any write)
4. Tax / service charge arithmetic in basis points
5. Receipt numbers from the counter row, never burnt by rejected sales
"""

from decimal import Decimal

import pytest

from restopos.models import DocumentSequence, Sale, SaleLine
from restopos.services import sales_service
from restopos.services.inventory_service import (
    InsufficientStockError,
    InventoryError,
    MaterialSnapshots,
    NotFoundError,
)
from restopos.services.sales_service import (
    InsufficientCashError,
    apply_rate_bps,
    compute_totals,
)
from restopos.validation import ValidationError


@pytest.fixture
def no_tax(app, monkeypatch):
    monkeypatch.setitem(app.config, "TAX_RATE_BPS", 0)
    monkeypatch.setitem(app.config, "SERVICE_CHARGE_BPS", 0)


class TestTotals:
    def test_tax_at_eleven_percent(self):
        totals = compute_totals(100_000, tax_rate_bps=1100, service_charge_bps=0)
        assert totals.tax == 11_000
        assert totals.service_charge == 0
        assert totals.grand_total == 111_000

    def test_rate_rounds_half_up(self):
        assert apply_rate_bps(50, 1100) == 6       # 5.5 -> 6
        assert apply_rate_bps(40, 1100) == 4       # 4.4 -> 4
        assert apply_rate_bps(0, 1100) == 0

    def test_service_charge_added_to_grand_total(self):
        totals = compute_totals(200_000, tax_rate_bps=1100, service_charge_bps=500)
        assert totals.tax == 22_000
        assert totals.service_charge == 10_000
        assert totals.grand_total == 232_000


class TestBomExplosion:
    def test_shared_material_summed_across_lines(self, db_session, make_material, make_product, stock_of):
        """A needs 2 M, B needs 3 M; cart {A x2, B x1} requires 7 M."""
        m = make_material("M", 7)
        a = make_product("A", 10_000, [(m, 2)])
        b = make_product("B", 12_000, [(m, 3)])

        sales_service.submit_sale(
            [{"product_id": a.id, "quantity": 2}, {"product_id": b.id, "quantity": 1}],
            "qris",
        )

        assert stock_of(m.id) == Decimal("0")

    def test_aggregate_checked_not_line_by_line(self, db_session, make_material, make_product, stock_of):
        """Each line alone fits in 6 M but together they need 7."""
        m = make_material("M", 6)
        a = make_product("A", 10_000, [(m, 2)])
        b = make_product("B", 12_000, [(m, 3)])

        with pytest.raises(InsufficientStockError) as exc_info:
            sales_service.submit_sale(
                [{"product_id": a.id, "quantity": 2}, {"product_id": b.id, "quantity": 1}],
                "qris",
            )

        assert exc_info.value.details["required"] == 7
        assert exc_info.value.details["available"] == 6
        assert exc_info.value.material_name == "M"
        assert stock_of(m.id) == Decimal("6")
        assert db_session.query(Sale).count() == 0

    def test_fractional_quantities(self, db_session, make_material, make_product, stock_of):
        milk = make_material("Milk", "1.000", unit="liter")
        latte = make_product("Latte", 25_000, [(milk, "0.150")])

        sales_service.submit_sale([{"product_id": latte.id, "quantity": 3}], "card")

        assert stock_of(milk.id) == Decimal("0.550")


class TestAtomicRejection:
    def test_short_material_leaves_others_unchanged(self, db_session, make_material, make_product, stock_of):
        flour = make_material("Flour", 10)
        sugar = make_material("Sugar", 1)
        cake = make_product("Cake", 30_000, [(flour, 2), (sugar, 2)])

        with pytest.raises(InsufficientStockError) as exc_info:
            sales_service.submit_sale([{"product_id": cake.id, "quantity": 1}], "cash", cash_tendered=100_000)

        assert exc_info.value.material_id == sugar.id
        assert stock_of(flour.id) == Decimal("10")
        assert stock_of(sugar.id) == Decimal("1")
        assert db_session.query(Sale).count() == 0
        assert db_session.query(SaleLine).count() == 0

    def test_deleted_material_reported_as_not_found(self, db_session, make_material, make_product, stock_of):
        flour = make_material("Flour", 10)
        ghost = make_material("Ghost", 10)
        bread = make_product("Bread", 15_000, [(flour, 1), (ghost, 1)])
        ghost_id = ghost.id
        db_session.delete(ghost)
        db_session.commit()

        with pytest.raises(NotFoundError) as exc_info:
            sales_service.submit_sale([{"product_id": bread.id, "quantity": 1}], "qris")

        assert exc_info.value.entity_id == ghost_id
        assert stock_of(flour.id) == Decimal("10")

    def test_last_used_at_stamped_on_success(self, db_session, make_material, make_product):
        flour = make_material("Flour", 10)
        bread = make_product("Bread", 15_000, [(flour, 1)])
        assert flour.last_used_at is None

        sales_service.submit_sale([{"product_id": bread.id, "quantity": 1}], "qris")

        db_session.expire_all()
        assert flour.last_used_at is not None


class TestCartValidation:
    def test_empty_cart_rejected(self, db_session):
        with pytest.raises(ValidationError, match="Cart is empty"):
            sales_service.submit_sale([], "cash", cash_tendered=1000)

    def test_non_positive_quantity_rejected(self, db_session, make_material, make_product):
        m = make_material("M", 5)
        p = make_product("P", 1_000, [(m, 1)])
        with pytest.raises(ValidationError):
            sales_service.submit_sale([{"product_id": p.id, "quantity": 0}], "qris")

    def test_unknown_payment_method_rejected(self, db_session, make_material, make_product):
        m = make_material("M", 5)
        p = make_product("P", 1_000, [(m, 1)])
        with pytest.raises(ValidationError):
            sales_service.submit_sale([{"product_id": p.id, "quantity": 1}], "bitcoin")

    def test_missing_product(self, db_session):
        with pytest.raises(NotFoundError):
            sales_service.submit_sale([{"product_id": 999, "quantity": 1}], "qris")

    def test_inactive_product_rejected(self, db_session, make_material, make_product, stock_of):
        m = make_material("M", 5)
        p = make_product("P", 1_000, [(m, 1)], is_active=False)
        with pytest.raises(InventoryError):
            sales_service.submit_sale([{"product_id": p.id, "quantity": 1}], "qris")
        assert stock_of(m.id) == Decimal("5")


class TestCashSettlement:
    def test_change_computed(self, db_session, no_tax, make_material, make_product):
        m = make_material("Beans", 10)
        p = make_product("Coffee", 47_500, [(m, 1)])

        sale = sales_service.submit_sale([{"product_id": p.id, "quantity": 1}], "cash", cash_tendered=50_000)

        assert sale.grand_total == 47_500
        assert sale.cash_tendered == 50_000
        assert sale.change_due == 2_500

    def test_exact_cash_gives_zero_change(self, db_session, no_tax, make_material, make_product):
        m = make_material("Beans", 10)
        p = make_product("Coffee", 47_500, [(m, 1)])

        sale = sales_service.submit_sale([{"product_id": p.id, "quantity": 1}], "cash", cash_tendered=47_500)

        assert sale.change_due == 0

    def test_insufficient_cash_rejected_without_writes(self, db_session, no_tax, make_material, make_product, stock_of):
        m = make_material("Beans", 10)
        p = make_product("Coffee", 47_500, [(m, 1)])

        with pytest.raises(InsufficientCashError) as exc_info:
            sales_service.submit_sale([{"product_id": p.id, "quantity": 1}], "cash", cash_tendered=40_000)

        assert exc_info.value.details["shortfall"] == 7_500
        assert stock_of(m.id) == Decimal("10")
        assert db_session.query(Sale).count() == 0
        assert db_session.query(DocumentSequence).count() == 0

    def test_cash_requires_amount(self, db_session, make_material, make_product):
        m = make_material("Beans", 10)
        p = make_product("Coffee", 10_000, [(m, 1)])
        with pytest.raises(ValidationError):
            sales_service.submit_sale([{"product_id": p.id, "quantity": 1}], "cash")

    def test_non_cash_records_no_tendered_amount(self, db_session, make_material, make_product):
        m = make_material("Beans", 10)
        p = make_product("Coffee", 100_000, [(m, 1)])

        sale = sales_service.submit_sale(
            [{"product_id": p.id, "quantity": 1}], "qris", cash_tendered=500_000
        )

        assert sale.subtotal == 100_000
        assert sale.tax == 11_000
        assert sale.grand_total == 111_000
        assert sale.cash_tendered is None
        assert sale.change_due == 0


class TestReceiptsAndRecords:
    def test_receipt_numbers_sequential(self, db_session, make_material, make_product):
        m = make_material("M", 10)
        p = make_product("P", 5_000, [(m, 1)])

        first = sales_service.submit_sale([{"product_id": p.id, "quantity": 1}], "qris")
        second = sales_service.submit_sale([{"product_id": p.id, "quantity": 1}], "card")

        assert first.receipt_number == "TRX-000001"
        assert second.receipt_number == "TRX-000002"

    def test_rejected_sale_does_not_consume_number(self, db_session, make_material, make_product):
        m = make_material("M", 2)
        p = make_product("P", 5_000, [(m, 1)])

        sales_service.submit_sale([{"product_id": p.id, "quantity": 1}], "qris")
        with pytest.raises(InsufficientStockError):
            sales_service.submit_sale([{"product_id": p.id, "quantity": 5}], "qris")
        sale = sales_service.submit_sale([{"product_id": p.id, "quantity": 1}], "qris")

        assert sale.receipt_number == "TRX-000002"

    def test_sale_lines_snapshot_name_and_price(self, db_session, make_material, make_product):
        m = make_material("M", 10)
        p = make_product("Iced Tea", 8_000, [(m, 1)])

        sale = sales_service.submit_sale(
            [{"product_id": p.id, "quantity": 3, "note": "less ice"}],
            "qris",
            customer_note="table 4",
        )

        data = sale.to_dict()
        assert data["status"] == "COMPLETED"
        assert data["customer_note"] == "table 4"
        assert len(data["lines"]) == 1
        line = data["lines"][0]
        assert line["product_name"] == "Iced Tea"
        assert line["unit_price"] == 8_000
        assert line["line_total"] == 24_000
        assert line["note"] == "less ice"

    def test_list_sales_search_by_product_name(self, db_session, make_material, make_product):
        m = make_material("M", 10)
        tea = make_product("Iced Tea", 8_000, [(m, 1)])
        bread = make_product("Bread", 9_000, [(m, 1)])
        sales_service.submit_sale([{"product_id": tea.id, "quantity": 1}], "qris")
        sales_service.submit_sale([{"product_id": bread.id, "quantity": 1}], "cash", cash_tendered=20_000)

        result = sales_service.list_sales(search="tea")
        assert result["count"] == 1
        assert result["items"][0]["lines"][0]["product_name"] == "Iced Tea"

        by_method = sales_service.list_sales(payment_method="cash")
        assert by_method["count"] == 1

    def test_quote_does_not_touch_stock(self, db_session, make_material, make_product, stock_of):
        m = make_material("M", 10)
        p = make_product("P", 100_000, [(m, 4)])

        quote = sales_service.quote_cart([{"product_id": p.id, "quantity": 1}])

        assert quote["grand_total"] == 111_000
        assert stock_of(m.id) == Decimal("10")


class TestMaterialSnapshots:
    def test_each_material_read_once_per_attempt(self, db_session, make_material):
        m = make_material("M", 5)
        snapshots = MaterialSnapshots()

        first = snapshots.get(m.id)
        second = snapshots.get(m.id)

        assert first is second
        assert snapshots.reads == 1
        assert m.id in snapshots
        assert len(snapshots) == 1
