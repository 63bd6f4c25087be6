"""
Authentication API tests.

Verifies:
- Login returns a token carrying the tenant context
- Failed logins answer 401 and are recorded
- Logout revokes the token; validate reflects it
- Inactive accounts and businesses cannot log in
"""

from conftest import PASSWORD
from tienda.models import SecurityEvent


def _login(client, email, password=PASSWORD):
    return client.post("/api/auth/login", json={"email": email, "password": password})


class TestLogin:

    def test_admin_login(self, client, admin_a, org_a):
        resp = _login(client, "Admin@Acme.com")

        assert resp.status_code == 200
        assert resp.json["token"]
        assert resp.json["role"] == "admin"
        assert resp.json["org_id"] == org_a.id
        assert resp.json["store_id"] is None
        assert "CREATE_SALE" in resp.json["permissions"]

    def test_superadmin_login(self, client, superadmin):
        resp = _login(client, "root@tienda.local")

        assert resp.status_code == 200
        assert resp.json["org_id"] is None
        assert resp.json["permissions"] == ["MANAGE_BUSINESSES"]

    def test_wrong_password_is_logged(self, client, db_session, admin_a):
        resp = _login(client, "admin@acme.com", "Wrong-Password1!")

        assert resp.status_code == 401
        event = db_session.query(SecurityEvent).filter_by(event_type="LOGIN_FAILED").one()
        assert event.success is False
        assert "admin@acme.com" in event.reason

    def test_unknown_email(self, client, db_session):
        resp = _login(client, "nobody@acme.com")
        assert resp.status_code == 401

    def test_missing_fields(self, client, db_session):
        resp = client.post("/api/auth/login", json={"email": "admin@acme.com"})
        assert resp.status_code == 400

    def test_inactive_business_cannot_login(self, client, db_session, admin_a, org_a):
        org_a.is_active = False
        db_session.commit()

        resp = _login(client, "admin@acme.com")
        assert resp.status_code == 401

    def test_inactive_user_cannot_login(self, client, db_session, admin_a):
        admin_a.is_active = False
        db_session.commit()

        resp = _login(client, "admin@acme.com")
        assert resp.status_code == 401


class TestTokenLifecycle:

    def test_validate_then_logout(self, client, admin_a):
        token = _login(client, "admin@acme.com").json["token"]
        headers = {"Authorization": f"Bearer {token}"}

        resp = client.post("/api/auth/validate", headers=headers)
        assert resp.status_code == 200
        assert resp.json["user"]["email"] == "admin@acme.com"

        resp = client.post("/api/auth/logout", headers=headers)
        assert resp.status_code == 200

        assert client.post("/api/auth/validate", headers=headers).status_code == 401
        assert client.get("/api/products", headers=headers).status_code == 401
        assert client.post("/api/auth/logout", headers=headers).status_code == 401

    def test_logout_without_header(self, client, db_session):
        assert client.post("/api/auth/logout").status_code == 401

    def test_employee_token_pins_location(self, client, seller_a, store_a):
        resp = _login(client, "ventas@acme.com")

        assert resp.json["store_id"] == store_a.id
        assert resp.json["session"]["store_id"] == store_a.id
