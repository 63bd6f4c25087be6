"""
Product builder and variant resolver tests.

Verifies:
- Products are created with their characteristics and options
- The same option set (any order, duplicates) resolves to one variant
- Options must belong to the product, one per characteristic
- Display names and attribute maps
- Deletion guards (sold variants, characteristics in use)
"""

import pytest

from conftest import option_ids
from tienda.models import Variant, VariantOption, StockEntry, Characteristic
from tienda.services import catalog_service, variant_service
from tienda.services.catalog_service import CatalogError
from tienda.services.checkout_service import commit_sale
from tienda.services.tenant_service import TenantAccessError
from tienda.services.variant_service import (
    VariantError,
    canonical_option_key,
    format_variant_name,
    resolve_or_create_variant,
)


class TestProductBuilder:

    def test_create_product_with_characteristics(self, db_session, shirt_a):
        data = shirt_a.to_dict(include_characteristics=True)

        assert data["name"] == "Shirt"
        assert [c["name"] for c in data["characteristics"]] == ["Size", "Color"]
        assert [o["value"] for o in data["characteristics"][0]["options"]] == ["S", "M"]

    def test_blank_name_rejected(self, db_session, ctx_a):
        with pytest.raises(CatalogError):
            catalog_service.create_product(ctx_a, patch={"name": "   "})

    def test_duplicate_characteristic_rejected(self, db_session, ctx_a):
        with pytest.raises(CatalogError):
            catalog_service.create_product(
                ctx_a,
                patch={"name": "Cap"},
                characteristics=[{"name": "Size", "options": ["S"]}, {"name": "Size", "options": ["M"]}],
            )

    def test_duplicate_option_rejected(self, db_session, ctx_a):
        with pytest.raises(CatalogError):
            catalog_service.create_product(
                ctx_a,
                patch={"name": "Cap"},
                characteristics=[{"name": "Size", "options": ["S", "S"]}],
            )

    def test_add_characteristic_and_option(self, db_session, ctx_a, shirt_a):
        material = catalog_service.add_characteristic(ctx_a, shirt_a.id, {"name": "Material", "options": ["Cotton"]})
        option = catalog_service.add_option(ctx_a, shirt_a.id, material.id, "Linen")

        assert option.characteristic_id == material.id
        values = [o.value for o in db_session.get(Characteristic, material.id).options]
        assert values == ["Cotton", "Linen"]

    def test_update_product(self, db_session, ctx_a, shirt_a):
        product = catalog_service.update_product(ctx_a, shirt_a.id, {"name": " Polo ", "is_active": False})
        assert product.name == "Polo"
        assert product.is_active is False

        assert catalog_service.list_products(ctx_a) == []
        assert len(catalog_service.list_products(ctx_a, include_inactive=True)) == 1

    def test_list_products_search_and_category(self, db_session, ctx_a, shirt_a):
        catalog_service.create_product(ctx_a, patch={"name": "Mug", "category": "Hogar"})

        assert [p.name for p in catalog_service.list_products(ctx_a, search="shi")] == ["Shirt"]
        assert [p.name for p in catalog_service.list_products(ctx_a, category="Hogar")] == ["Mug"]


class TestVariantResolution:

    def test_canonical_option_key(self):
        assert canonical_option_key([7, 3, 7]) == "3,7"
        assert canonical_option_key(["2", 1]) == "1,2"
        assert canonical_option_key(None) == ""

    def test_non_integer_option_rejected(self):
        with pytest.raises(VariantError):
            canonical_option_key(["abc"])

    def test_same_option_set_same_variant(self, db_session, ctx_a, shirt_a):
        ids = option_ids(shirt_a, Size="S", Color="Red")

        first, created = resolve_or_create_variant(ctx_a, shirt_a.id, ids)
        second, created_again = resolve_or_create_variant(ctx_a, shirt_a.id, list(reversed(ids)) + ids[:1])

        assert created is True
        assert created_again is False
        assert first.id == second.id
        assert db_session.query(Variant).filter_by(product_id=shirt_a.id).count() == 1
        assert db_session.query(VariantOption).filter_by(variant_id=first.id).count() == 2

    def test_different_option_sets_different_variants(self, db_session, ctx_a, shirt_a):
        red_s, _ = resolve_or_create_variant(ctx_a, shirt_a.id, option_ids(shirt_a, Size="S", Color="Red"))
        blue_s, _ = resolve_or_create_variant(ctx_a, shirt_a.id, option_ids(shirt_a, Size="S", Color="Blue"))
        only_m, _ = resolve_or_create_variant(ctx_a, shirt_a.id, option_ids(shirt_a, Size="M"))

        assert len({red_s.id, blue_s.id, only_m.id}) == 3

    def test_attribute_less_product(self, db_session, ctx_b, mug_b):
        variant, created = resolve_or_create_variant(ctx_b, mug_b.id, [])
        again, _ = resolve_or_create_variant(ctx_b, mug_b.id, None)

        assert created is True
        assert variant.id == again.id
        assert variant.option_key == ""

    def test_foreign_option_rejected(self, db_session, ctx_a, shirt_a):
        other = catalog_service.create_product(
            ctx_a, patch={"name": "Cap"}, characteristics=[{"name": "Size", "options": ["L"]}]
        )
        with pytest.raises(VariantError) as exc:
            resolve_or_create_variant(ctx_a, shirt_a.id, option_ids(other, Size="L"))
        assert exc.value.details["option_ids"] == option_ids(other, Size="L")

    def test_two_options_of_one_characteristic_rejected(self, db_session, ctx_a, shirt_a):
        ids = option_ids(shirt_a, Size="S") + option_ids(shirt_a, Size="M")
        with pytest.raises(VariantError):
            resolve_or_create_variant(ctx_a, shirt_a.id, ids)

    def test_other_tenant_product_not_found(self, db_session, ctx_b, shirt_a):
        with pytest.raises(TenantAccessError):
            resolve_or_create_variant(ctx_b, shirt_a.id, [])

    def test_find_variant(self, db_session, ctx_a, shirt_a):
        ids = option_ids(shirt_a, Size="M", Color="Blue")
        assert variant_service.find_variant(ctx_a, shirt_a.id, ids) is None

        variant, _ = resolve_or_create_variant(ctx_a, shirt_a.id, ids)
        assert variant_service.find_variant(ctx_a, shirt_a.id, list(reversed(ids))).id == variant.id


class TestVariantDisplay:

    def test_format_variant_name(self):
        assert format_variant_name("Shirt", {"Size": "S", "Color": "Red"}) == "Shirt (S, Red)"
        assert format_variant_name("Mug", {}) == "Mug"

    def test_attributes_and_description(self, db_session, ctx_a, ctx_b, shirt_a):
        variant, _ = resolve_or_create_variant(ctx_a, shirt_a.id, option_ids(shirt_a, Color="Red", Size="S"))

        attributes = variant_service.get_variant_attributes(ctx_a, [variant.id])
        assert attributes == {variant.id: {"Size": "S", "Color": "Red"}}

        described = variant_service.describe_variants(ctx_a, [variant.id])
        assert described[variant.id]["name"] == "Shirt (S, Red)"
        assert described[variant.id]["product_id"] == shirt_a.id

        # Other tenants see nothing
        assert variant_service.get_variant_attributes(ctx_b, [variant.id]) == {}

    def test_list_variants(self, db_session, ctx_a, shirt_a):
        resolve_or_create_variant(ctx_a, shirt_a.id, option_ids(shirt_a, Size="S"))
        rows = variant_service.list_variants(ctx_a, shirt_a.id)

        assert len(rows) == 1
        assert rows[0]["name"] == "Shirt (S)"
        assert rows[0]["attributes"] == {"Size": "S"}


class TestCatalogDeletion:

    def test_delete_product_removes_variants_and_stock(self, db_session, ctx_a, shirt_a, red_s_stock):
        variant_id = red_s_stock.variant_id
        catalog_service.delete_product(ctx_a, shirt_a.id)

        assert db_session.get(Variant, variant_id) is None
        assert db_session.query(StockEntry).filter_by(variant_id=variant_id).count() == 0
        assert db_session.query(Characteristic).count() == 0

    def test_delete_sold_product_refused(self, db_session, ctx_a, shirt_a, store_a, red_s_stock):
        commit_sale(ctx_a, store_a.id, [{"variant_id": red_s_stock.variant_id, "quantity": 1}])

        with pytest.raises(CatalogError):
            catalog_service.delete_product(ctx_a, shirt_a.id)
        with pytest.raises(VariantError):
            variant_service.delete_variant(ctx_a, red_s_stock.variant_id)

    def test_delete_variant(self, db_session, ctx_a, red_s_stock):
        variant_id = red_s_stock.variant_id
        variant_service.delete_variant(ctx_a, variant_id)

        assert db_session.get(Variant, variant_id) is None
        assert db_session.query(StockEntry).count() == 0

    def test_delete_characteristic_in_use_refused(self, db_session, ctx_a, shirt_a):
        resolve_or_create_variant(ctx_a, shirt_a.id, option_ids(shirt_a, Size="S"))
        size, color = shirt_a.characteristics

        with pytest.raises(CatalogError):
            catalog_service.delete_characteristic(ctx_a, shirt_a.id, size.id)

        color_id = color.id
        catalog_service.delete_characteristic(ctx_a, shirt_a.id, color_id)
        assert db_session.get(Characteristic, color_id) is None
