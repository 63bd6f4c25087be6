"""
Business management API tests (superadmin only).

Verifies:
- Creating a business creates its admin account in the same transaction
- Suspension revokes the business's sessions and blocks login
- Deletion removes every row the business owns and nothing else
"""

from conftest import PASSWORD, auth_headers
from tienda.models import Organization, Product, Sale, StockEntry, Store, User


def _create(client, headers, **fields):
    body = {
        "name": "Gamma",
        "admin_email": "admin@gamma.com",
        "admin_password": PASSWORD,
        **fields,
    }
    return client.post("/api/businesses", json=body, headers=headers)


class TestCreateBusiness:

    def test_create(self, client, db_session, superadmin_headers):
        resp = _create(client, superadmin_headers, code="GAM", billing_day=5, billing_amount_cents=49900)

        assert resp.status_code == 201
        business = resp.json["business"]
        assert business["code"] == "GAM"
        assert business["billing_day"] == 5
        assert resp.json["admin"]["role"] == "admin"
        assert resp.json["admin"]["org_id"] == business["id"]

        login = client.post("/api/auth/login", json={"email": "admin@gamma.com", "password": PASSWORD})
        assert login.status_code == 200
        assert login.json["org_id"] == business["id"]

    def test_missing_admin_credentials(self, client, superadmin_headers):
        resp = client.post("/api/businesses", json={"name": "Gamma"}, headers=superadmin_headers)
        assert resp.status_code == 400

    def test_duplicate_admin_email_rolls_back(self, client, db_session, superadmin_headers, admin_a):
        resp = _create(client, superadmin_headers, admin_email="admin@acme.com")

        assert resp.status_code == 400
        assert db_session.query(Organization).filter_by(name="Gamma").count() == 0

    def test_duplicate_code(self, client, superadmin_headers, org_a):
        resp = _create(client, superadmin_headers, code="ACME")
        assert resp.status_code == 400

    def test_weak_admin_password(self, client, db_session, superadmin_headers):
        resp = _create(client, superadmin_headers, admin_password="abc")
        assert resp.status_code == 400
        assert db_session.query(Organization).count() == 0

    def test_invalid_billing_day(self, client, superadmin_headers):
        resp = _create(client, superadmin_headers, billing_day=32)
        assert resp.status_code == 400


class TestReadAndUpdate:

    def test_get_summary(self, client, superadmin_headers, org_a, admin_a, store_a, store_a2, seller_a):
        resp = client.get(f"/api/businesses/{org_a.id}", headers=superadmin_headers)

        assert resp.status_code == 200
        summary = resp.json["business"]
        assert summary["admin_email"] == "admin@acme.com"
        assert summary["store_count"] == 2
        assert summary["employee_count"] == 1
        assert [a["email"] for a in resp.json["admins"]] == ["admin@acme.com"]

    def test_missing_business_is_404(self, client, superadmin_headers):
        assert client.get("/api/businesses/9999", headers=superadmin_headers).status_code == 404

    def test_update_billing(self, client, superadmin_headers, org_a):
        resp = client.patch(
            f"/api/businesses/{org_a.id}", json={"billing_amount_cents": 25000}, headers=superadmin_headers
        )
        assert resp.status_code == 200
        assert resp.json["business"]["billing_amount_cents"] == 25000

    def test_is_active_not_patchable(self, client, superadmin_headers, org_a):
        resp = client.patch(f"/api/businesses/{org_a.id}", json={"is_active": False}, headers=superadmin_headers)
        assert resp.status_code == 400


class TestStatus:

    def test_deactivation_revokes_sessions(self, client, db_session, superadmin_headers, org_a, admin_a):
        headers = auth_headers(admin_a.id)
        assert client.get("/api/products", headers=headers).status_code == 200

        resp = client.put(f"/api/businesses/{org_a.id}/status", json={"is_active": False}, headers=superadmin_headers)
        assert resp.status_code == 200
        assert resp.json["business"]["is_active"] is False

        assert client.get("/api/products", headers=headers).status_code == 401
        login = client.post("/api/auth/login", json={"email": "admin@acme.com", "password": PASSWORD})
        assert login.status_code == 401

    def test_reactivation(self, client, db_session, superadmin_headers, org_a, admin_a):
        org_a.is_active = False
        db_session.commit()

        resp = client.put(f"/api/businesses/{org_a.id}/status", json={"is_active": True}, headers=superadmin_headers)
        assert resp.status_code == 200

        login = client.post("/api/auth/login", json={"email": "admin@acme.com", "password": PASSWORD})
        assert login.status_code == 200

    def test_status_requires_boolean(self, client, superadmin_headers, org_a):
        resp = client.put(f"/api/businesses/{org_a.id}/status", json={"is_active": "no"}, headers=superadmin_headers)
        assert resp.status_code == 400


class TestResetAdminPassword:

    def test_reset(self, client, superadmin_headers, org_a, admin_a):
        resp = client.post(
            f"/api/businesses/{org_a.id}/reset-admin-password",
            json={"password": "Otra-Clave9!"},
            headers=superadmin_headers,
        )
        assert resp.status_code == 200
        assert resp.json["admin"]["email"] == "admin@acme.com"

        login = client.post("/api/auth/login", json={"email": "admin@acme.com", "password": "Otra-Clave9!"})
        assert login.status_code == 200

    def test_unknown_admin_is_404(self, client, superadmin_headers, org_a, admin_a, admin_b):
        resp = client.post(
            f"/api/businesses/{org_a.id}/reset-admin-password",
            json={"password": "Otra-Clave9!", "admin_user_id": admin_b.id},
            headers=superadmin_headers,
        )
        assert resp.status_code == 404


class TestDeleteBusiness:

    def test_delete_purges_tenant_only(
        self, client, db_session, superadmin_headers, org_a, org_b, admin_a, admin_b,
        store_a, store_b, seller_a, red_s_stock, mug_b,
    ):
        sale = client.post(
            "/api/sales/checkout",
            json={"store_id": store_a.id, "lines": [{"variant_id": red_s_stock.variant_id, "quantity": 1}]},
            headers=auth_headers(admin_a.id),
        )
        assert sale.status_code == 201
        org_a_id, org_b_id = org_a.id, org_b.id

        resp = client.delete(f"/api/businesses/{org_a_id}", headers=superadmin_headers)
        assert resp.status_code == 200

        assert db_session.query(Organization).filter_by(id=org_a_id).count() == 0
        for model in (Store, User, Product, StockEntry, Sale):
            assert db_session.query(model).filter_by(org_id=org_a_id).count() == 0, model.__name__

        assert db_session.query(Store).filter_by(org_id=org_b_id).count() == 1
        assert db_session.query(Product).filter_by(org_id=org_b_id).count() == 1
        assert db_session.query(User).filter_by(email="admin@beta.com").count() == 1

    def test_delete_missing_is_404(self, client, superadmin_headers):
        assert client.delete("/api/businesses/9999", headers=superadmin_headers).status_code == 404
