"""
Stock ledger tests.

Verifies:
- Restock creates an entry once, then increments it
- The first price sticks; set_price changes it explicitly
- Conditional decrements never drive quantity below zero
- Location inventory rows carry display names
- Employees cannot touch another location's stock
"""

import pytest

from conftest import option_ids
from tienda.models import StockEntry, Variant
from tienda.services import stock_service
from tienda.services.stock_service import StockError, decrement_stock, increment_stock, restock
from tienda.services.tenant_service import TenantAccessError
from tienda.validation import ValidationError


class TestRestock:

    def test_first_restock_creates_entry(self, db_session, red_s_stock, store_a):
        assert red_s_stock.quantity == 10
        assert red_s_stock.price_cents == 1500
        assert red_s_stock.store_id == store_a.id

    def test_second_restock_increments(self, db_session, ctx_a, shirt_a, store_a, red_s_stock):
        entry, created = restock(
            ctx_a, shirt_a.id, option_ids(shirt_a, Color="Red", Size="S"), store_a.id, 5, 1800
        )

        assert created is False
        assert entry.id == red_s_stock.id
        assert entry.quantity == 15
        # Existing price is kept
        assert entry.price_cents == 1500
        assert db_session.query(StockEntry).count() == 1

    def test_restock_fills_missing_price(self, db_session, ctx_a, shirt_a, store_a):
        ids = option_ids(shirt_a, Size="M")
        restock(ctx_a, shirt_a.id, ids, store_a.id, 2)
        entry, _ = restock(ctx_a, shirt_a.id, ids, store_a.id, 1, 2200)

        assert entry.quantity == 3
        assert entry.price_cents == 2200

    def test_same_variant_separate_per_location(self, db_session, ctx_a, shirt_a, store_a, store_a2, red_s_stock):
        entry, created = restock(
            ctx_a, shirt_a.id, option_ids(shirt_a, Size="S", Color="Red"), store_a2.id, 4, 1600
        )

        assert created is True
        assert entry.variant_id == red_s_stock.variant_id
        assert db_session.query(Variant).count() == 1
        assert db_session.query(StockEntry).count() == 2

    @pytest.mark.parametrize("quantity", [0, -3, "many", None])
    def test_non_positive_quantity_rejected(self, db_session, ctx_a, shirt_a, store_a, quantity):
        with pytest.raises(ValidationError):
            restock(ctx_a, shirt_a.id, [], store_a.id, quantity)

    def test_negative_price_rejected(self, db_session, ctx_a, shirt_a, store_a):
        with pytest.raises(ValidationError):
            restock(ctx_a, shirt_a.id, [], store_a.id, 1, -5)

    def test_foreign_store_rejected(self, db_session, ctx_a, shirt_a, store_b):
        with pytest.raises(TenantAccessError):
            restock(ctx_a, shirt_a.id, [], store_b.id, 1, 100)


class TestQuantityChanges:

    def test_decrement_within_stock(self, db_session, red_s_stock, store_a):
        decrement_stock(red_s_stock.variant_id, store_a.id, 4)
        db_session.commit()

        assert stock_service.available_quantity(red_s_stock.variant_id, store_a.id) == 6

    def test_decrement_beyond_stock_changes_nothing(self, db_session, red_s_stock, store_a):
        with pytest.raises(StockError) as exc:
            decrement_stock(red_s_stock.variant_id, store_a.id, 11)
        db_session.rollback()

        assert exc.value.details == {
            "variant_id": red_s_stock.variant_id,
            "requested_quantity": 11,
            "available": 10,
        }
        assert stock_service.available_quantity(red_s_stock.variant_id, store_a.id) == 10

    def test_decrement_missing_entry(self, db_session, red_s_stock, store_a2):
        with pytest.raises(StockError) as exc:
            decrement_stock(red_s_stock.variant_id, store_a2.id, 1)
        assert exc.value.details["available"] == 0

    def test_increment_recreates_deleted_entry(self, db_session, ctx_a, org_a, red_s_stock, store_a):
        variant_id = red_s_stock.variant_id
        stock_service.delete_stock_entry(ctx_a, red_s_stock.id)

        entry = increment_stock(org_a.id, variant_id, store_a.id, 2, price_cents=1400)
        db_session.commit()

        assert entry.quantity == 2
        assert entry.price_cents == 1400


class TestPricesAndQueries:

    def test_set_price(self, db_session, ctx_a, red_s_stock):
        entry = stock_service.set_price(ctx_a, red_s_stock.id, 1999)
        assert entry.price_cents == 1999

    def test_set_price_other_tenant(self, db_session, ctx_b, red_s_stock):
        with pytest.raises(TenantAccessError):
            stock_service.set_price(ctx_b, red_s_stock.id, 1)

    def test_get_stock(self, db_session, ctx_a, red_s_stock, store_a, store_a2):
        assert stock_service.get_stock(ctx_a, red_s_stock.variant_id, store_a.id).quantity == 10
        assert stock_service.get_stock(ctx_a, red_s_stock.variant_id, store_a2.id) is None

    def test_location_inventory_rows(self, db_session, ctx_a, red_s_stock, store_a):
        rows = stock_service.list_location_inventory(ctx_a, store_a.id)

        assert len(rows) == 1
        assert rows[0]["name"] == "Shirt (S, Red)"
        assert rows[0]["store_name"] == "Centro"
        assert rows[0]["attributes"] == {"Size": "S", "Color": "Red"}

    def test_product_stock_across_locations(self, db_session, ctx_a, shirt_a, store_a2, red_s_stock):
        restock(ctx_a, shirt_a.id, option_ids(shirt_a, Size="M"), store_a2.id, 1, 900)
        rows = stock_service.list_product_stock(ctx_a, shirt_a.id)

        assert {row["store_name"] for row in rows} == {"Centro", "Norte"}


class TestEmployeeStoreScope:

    def test_employee_cannot_read_other_location(self, db_session, seller_ctx, store_a2):
        with pytest.raises(TenantAccessError):
            stock_service.list_location_inventory(seller_ctx, store_a2.id)

    def test_employee_cannot_price_other_location(self, db_session, ctx_a, shirt_a, seller_ctx, store_a2):
        entry, _ = restock(ctx_a, shirt_a.id, [], store_a2.id, 1, 500)
        with pytest.raises(TenantAccessError):
            stock_service.set_price(seller_ctx, entry.id, 1)
