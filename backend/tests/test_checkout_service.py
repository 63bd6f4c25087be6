"""
Sale committer tests.

Verifies:
- A committed sale decrements stock and records lines and totals
- Insufficient stock on any line rolls back the whole sale
- Idempotency keys replay the first sale instead of selling twice
- Client statistics follow sales and their deletion
- Deleting a sale restores stock
"""

from decimal import Decimal

import pytest

from conftest import option_ids
from tienda.models import Client, Sale, SaleLine, StockEntry
from tienda.services import checkout_service, client_service
from tienda.services.checkout_service import CheckoutError, commit_sale, delete_sale, quote_cart
from tienda.services.stock_service import available_quantity, restock
from tienda.services.tenant_service import TenantAccessError


@pytest.fixture
def blue_m_stock(ctx_a, shirt_a, store_a):
    """2 units of Shirt (M, Blue) at store_a, 2000 cents each."""
    entry, _ = restock(ctx_a, shirt_a.id, option_ids(shirt_a, Size="M", Color="Blue"), store_a.id, 2, 2000)
    return entry


@pytest.fixture
def client_a(db_session, ctx_a):
    return client_service.create_client(ctx_a, {"name": "Carla Cliente", "discount_percentage": Decimal("10")})


class TestCommitSale:

    def test_commit_decrements_stock(self, db_session, ctx_a, store_a, red_s_stock, blue_m_stock):
        result = commit_sale(ctx_a, store_a.id, [
            {"variant_id": red_s_stock.variant_id, "quantity": 3},
            {"variant_id": blue_m_stock.variant_id, "quantity": 2},
        ])

        sale = result.sale
        assert result.replayed is False
        assert sale.subtotal_cents == 3 * 1500 + 2 * 2000
        assert sale.discount_cents == 0
        assert sale.total_cents == 8500
        assert len(sale.lines) == 2

        assert available_quantity(red_s_stock.variant_id, store_a.id) == 7
        assert available_quantity(blue_m_stock.variant_id, store_a.id) == 0

    def test_caller_price_is_ignored(self, db_session, seller_ctx, store_a, red_s_stock):
        result = commit_sale(seller_ctx, store_a.id, [
            {"variant_id": red_s_stock.variant_id, "quantity": 2, "unit_price_cents": 0},
        ])
        assert result.sale.subtotal_cents == 3000
        assert result.sale.total_cents == 3000
        assert result.sale.lines[0].unit_price_cents == 1500

    def test_discount_applied(self, db_session, ctx_a, store_a, red_s_stock):
        result = commit_sale(
            ctx_a, store_a.id,
            [{"variant_id": red_s_stock.variant_id, "quantity": 1}],
            discount_percentage="12.5",
        )
        # 1500 * 12.5% = 187.5 -> 188
        assert result.sale.discount_cents == 188
        assert result.sale.total_cents == 1312

    def test_discount_above_hundred_floors_total(self, db_session, ctx_a, store_a, red_s_stock):
        result = commit_sale(
            ctx_a, store_a.id,
            [{"variant_id": red_s_stock.variant_id, "quantity": 1}],
            discount_percentage=200,
        )
        assert result.sale.total_cents == 0

    def test_empty_cart_rejected(self, db_session, ctx_a, store_a):
        with pytest.raises(CheckoutError, match="empty"):
            commit_sale(ctx_a, store_a.id, [])
        assert db_session.query(Sale).count() == 0

    def test_duplicate_variant_lines_rejected(self, db_session, ctx_a, store_a, red_s_stock):
        with pytest.raises(CheckoutError):
            commit_sale(ctx_a, store_a.id, [
                {"variant_id": red_s_stock.variant_id, "quantity": 1},
                {"variant_id": red_s_stock.variant_id, "quantity": 1},
            ])

    def test_non_positive_quantity_rejected(self, db_session, ctx_a, store_a, red_s_stock):
        with pytest.raises(CheckoutError):
            commit_sale(ctx_a, store_a.id, [{"variant_id": red_s_stock.variant_id, "quantity": 0}])

    def test_unknown_variant_rejected(self, db_session, ctx_a, store_a):
        with pytest.raises(CheckoutError) as exc:
            commit_sale(ctx_a, store_a.id, [{"variant_id": 99999, "quantity": 1}])
        assert exc.value.details == {"variant_ids": [99999]}

    def test_unpriced_variant_rejected(self, db_session, ctx_a, shirt_a, store_a):
        entry, _ = restock(ctx_a, shirt_a.id, option_ids(shirt_a, Size="M"), store_a.id, 3)
        with pytest.raises(CheckoutError):
            commit_sale(ctx_a, store_a.id, [{"variant_id": entry.variant_id, "quantity": 1}])
        assert available_quantity(entry.variant_id, store_a.id) == 3


class TestInsufficientStock:

    def test_short_line_rolls_back_everything(self, db_session, ctx_a, store_a, red_s_stock, blue_m_stock):
        with pytest.raises(CheckoutError) as exc:
            commit_sale(ctx_a, store_a.id, [
                {"variant_id": red_s_stock.variant_id, "quantity": 4},
                {"variant_id": blue_m_stock.variant_id, "quantity": 5},
            ])

        assert exc.value.details["items"] == [{
            "variant_id": blue_m_stock.variant_id,
            "requested_quantity": 5,
            "available": 2,
        }]
        assert db_session.query(Sale).count() == 0
        assert db_session.query(SaleLine).count() == 0
        assert available_quantity(red_s_stock.variant_id, store_a.id) == 10
        assert available_quantity(blue_m_stock.variant_id, store_a.id) == 2

    def test_every_short_line_reported(self, db_session, ctx_a, store_a, red_s_stock, blue_m_stock):
        with pytest.raises(CheckoutError) as exc:
            commit_sale(ctx_a, store_a.id, [
                {"variant_id": red_s_stock.variant_id, "quantity": 11},
                {"variant_id": blue_m_stock.variant_id, "quantity": 3},
            ])
        short = {item["variant_id"] for item in exc.value.details["items"]}
        assert short == {red_s_stock.variant_id, blue_m_stock.variant_id}

    def test_sequential_sales_cannot_oversell(self, db_session, ctx_a, store_a, blue_m_stock):
        line = [{"variant_id": blue_m_stock.variant_id, "quantity": 2}]
        commit_sale(ctx_a, store_a.id, line)

        with pytest.raises(CheckoutError):
            commit_sale(ctx_a, store_a.id, line)

        assert db_session.query(Sale).count() == 1
        assert available_quantity(blue_m_stock.variant_id, store_a.id) == 0

    def test_other_location_stock_not_used(self, db_session, ctx_a, store_a2, red_s_stock):
        with pytest.raises(CheckoutError):
            commit_sale(ctx_a, store_a2.id, [
                {"variant_id": red_s_stock.variant_id, "quantity": 1},
            ])


class TestIdempotency:

    def test_same_key_replays_sale(self, db_session, ctx_a, store_a, red_s_stock):
        lines = [{"variant_id": red_s_stock.variant_id, "quantity": 2}]
        first = commit_sale(ctx_a, store_a.id, lines, idempotency_key="term-1-0001")
        second = commit_sale(ctx_a, store_a.id, lines, idempotency_key="term-1-0001")

        assert second.replayed is True
        assert second.sale.id == first.sale.id
        assert db_session.query(Sale).count() == 1
        assert available_quantity(red_s_stock.variant_id, store_a.id) == 8

    def test_keys_are_per_organization(self, db_session, ctx_a, ctx_b, store_a, store_b, red_s_stock, mug_b):
        entry, _ = restock(ctx_b, mug_b.id, [], store_b.id, 5, 300)

        commit_sale(ctx_a, store_a.id, [{"variant_id": red_s_stock.variant_id, "quantity": 1}], idempotency_key="k")
        other = commit_sale(ctx_b, store_b.id, [{"variant_id": entry.variant_id, "quantity": 1}], idempotency_key="k")

        assert other.replayed is False
        assert db_session.query(Sale).count() == 2

    def test_key_from_other_location_rejected(
        self, db_session, ctx_a, seller_ctx, shirt_a, store_a, store_a2, red_s_stock,
    ):
        red_s = option_ids(shirt_a, Size="S", Color="Red")
        restock(ctx_a, shirt_a.id, red_s, store_a2.id, 3, 1500)
        other = commit_sale(ctx_a, store_a2.id, [{"variant_id": red_s_stock.variant_id, "quantity": 1}],
                            idempotency_key="k-1")

        with pytest.raises(CheckoutError) as exc_info:
            commit_sale(seller_ctx, store_a.id, [{"variant_id": red_s_stock.variant_id, "quantity": 1}],
                        idempotency_key="k-1")

        assert exc_info.value.details == {"idempotency_key": "k-1"}
        assert db_session.query(Sale).one().id == other.sale.id
        assert available_quantity(red_s_stock.variant_id, store_a.id) == 10
        assert available_quantity(red_s_stock.variant_id, store_a2.id) == 2

    def test_replay_requires_location_access(
        self, db_session, ctx_a, seller_ctx, shirt_a, store_a2, red_s_stock,
    ):
        restock(ctx_a, shirt_a.id, option_ids(shirt_a, Size="S", Color="Red"), store_a2.id, 3, 1500)
        lines = [{"variant_id": red_s_stock.variant_id, "quantity": 1}]
        commit_sale(ctx_a, store_a2.id, lines, idempotency_key="k-2")

        with pytest.raises(TenantAccessError):
            commit_sale(seller_ctx, store_a2.id, lines, idempotency_key="k-2")

    def test_overlong_key_rejected(self, db_session, ctx_a, store_a, red_s_stock):
        with pytest.raises(CheckoutError):
            commit_sale(
                ctx_a, store_a.id,
                [{"variant_id": red_s_stock.variant_id, "quantity": 1}],
                idempotency_key="x" * 129,
            )


class TestClientStatistics:

    def test_sale_updates_client_and_uses_client_discount(self, db_session, ctx_a, store_a, red_s_stock, client_a):
        result = commit_sale(
            ctx_a, store_a.id,
            [{"variant_id": red_s_stock.variant_id, "quantity": 2}],
            client_id=client_a.id,
        )

        assert result.sale.discount_cents == 300
        assert result.sale.total_cents == 2700

        client = db_session.get(Client, client_a.id)
        assert client.purchase_count == 1
        assert client.purchase_total_cents == 2700

    def test_delete_sale_reverses_everything(self, db_session, ctx_a, store_a, red_s_stock, client_a):
        result = commit_sale(
            ctx_a, store_a.id,
            [{"variant_id": red_s_stock.variant_id, "quantity": 4}],
            client_id=client_a.id,
        )
        delete_sale(ctx_a, result.sale.id)

        assert db_session.query(Sale).count() == 0
        assert db_session.query(SaleLine).count() == 0
        assert available_quantity(red_s_stock.variant_id, store_a.id) == 10

        client = db_session.get(Client, client_a.id)
        assert client.purchase_count == 0
        assert client.purchase_total_cents == 0

    def test_delete_sale_clamps_client_stats_at_zero(self, db_session, ctx_a, store_a, red_s_stock, client_a):
        result = commit_sale(
            ctx_a, store_a.id,
            [{"variant_id": red_s_stock.variant_id, "quantity": 2}],
            client_id=client_a.id,
        )
        client = db_session.get(Client, client_a.id)
        client.purchase_count = 0
        client.purchase_total_cents = 100
        db_session.commit()

        delete_sale(ctx_a, result.sale.id)

        client = db_session.get(Client, client_a.id)
        assert client.purchase_count == 0
        assert client.purchase_total_cents == 0

    def test_delete_sale_recreates_removed_entry(self, db_session, ctx_a, store_a, red_s_stock):
        variant_id = red_s_stock.variant_id
        result = commit_sale(ctx_a, store_a.id, [{"variant_id": variant_id, "quantity": 10}])
        db_session.query(StockEntry).delete()
        db_session.commit()

        delete_sale(ctx_a, result.sale.id)

        assert available_quantity(variant_id, store_a.id) == 10

    def test_other_tenant_client_rejected(self, db_session, ctx_b, store_b, client_a, mug_b):
        entry, _ = restock(ctx_b, mug_b.id, [], store_b.id, 5, 300)
        with pytest.raises(TenantAccessError):
            commit_sale(ctx_b, store_b.id, [{"variant_id": entry.variant_id, "quantity": 1}], client_id=client_a.id)


class TestSaleQueries:

    def test_sale_details(self, db_session, ctx_a, store_a, red_s_stock):
        result = commit_sale(ctx_a, store_a.id, [{"variant_id": red_s_stock.variant_id, "quantity": 1}])
        details = checkout_service.sale_details(ctx_a, result.sale)

        assert details["store_name"] == "Centro"
        assert details["lines"][0]["name"] == "Shirt (S, Red)"
        assert details["lines"][0]["attributes"] == {"Size": "S", "Color": "Red"}

    def test_list_sales_employee_sees_own_location(
        self, db_session, ctx_a, seller_ctx, shirt_a, store_a, store_a2, red_s_stock
    ):
        other, _ = restock(ctx_a, shirt_a.id, option_ids(shirt_a, Size="M"), store_a2.id, 5, 100)
        commit_sale(ctx_a, store_a.id, [{"variant_id": red_s_stock.variant_id, "quantity": 1}])
        commit_sale(ctx_a, store_a2.id, [{"variant_id": other.variant_id, "quantity": 1}])

        assert len(checkout_service.list_sales(ctx_a)) == 2
        assert [s.store_id for s in checkout_service.list_sales(seller_ctx)] == [store_a.id]

    def test_employee_cannot_sell_at_other_location(self, db_session, seller_ctx, store_a2, red_s_stock):
        with pytest.raises(TenantAccessError):
            commit_sale(seller_ctx, store_a2.id, [{"variant_id": red_s_stock.variant_id, "quantity": 1}])


class TestQuote:

    def test_quote_clamps_and_prices(self, db_session, ctx_a, store_a, red_s_stock):
        cart = quote_cart(ctx_a, store_a.id, {red_s_stock.variant_id: 50}, discount_percentage=10)

        assert cart.lines[0].quantity == 10
        assert cart.subtotal_cents == 15000
        assert cart.total_cents == 13500
        assert db_session.query(Sale).count() == 0

    def test_quote_out_of_stock(self, db_session, ctx_a, store_a2, red_s_stock):
        with pytest.raises(CheckoutError):
            quote_cart(ctx_a, store_a2.id, {red_s_stock.variant_id: 1})
