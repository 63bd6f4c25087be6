"""System endpoints and CLI commands."""

from tienda.models import Organization, SessionToken, User
from tienda.services.session_service import revoke_all_user_sessions


class TestSystemEndpoints:

    def test_health(self, client, db_session, org_a, store_a):
        resp = client.get("/health")

        assert resp.status_code == 200
        assert resp.json["status"] == "healthy"
        assert resp.json["checks"]["database"]["details"]["organizations"] == 1
        assert resp.json["checks"]["database"]["details"]["stores"] == 1

    def test_version(self, client, db_session):
        resp = client.get("/version")

        assert resp.status_code == 200
        assert resp.json["api_version"] == "1.0.0"
        assert "SECRET_KEY" not in resp.json

    def test_cors_headers(self, client, db_session):
        resp = client.get("/version", headers={"Origin": "http://localhost:3000"})
        assert resp.headers.get("Access-Control-Allow-Origin") == "http://localhost:3000"


class TestCli:

    def test_system_init_is_idempotent(self, app, db_session):
        runner = app.test_cli_runner()

        result = runner.invoke(args=["system", "init", "--email", "ops@tienda.local"])
        assert "PASS Created superadmin: ops@tienda.local" in result.output

        result = runner.invoke(args=["system", "init"])
        assert "Using existing superadmin" in result.output
        assert db_session.query(User).filter_by(role="superadmin").count() == 1

    def test_create_and_list_businesses(self, app, db_session):
        runner = app.test_cli_runner()

        result = runner.invoke(args=[
            "businesses", "create",
            "--name", "Tienda Centro",
            "--admin-email", "admin@centro.mx",
            "--admin-password", "Password123!",
            "--billing-day", "10",
        ])
        assert "PASS Created business: Tienda Centro" in result.output
        assert db_session.query(Organization).one().billing_day == 10

        result = runner.invoke(args=["businesses", "list"])
        assert "admin@centro.mx" in result.output

    def test_create_business_weak_password(self, app, db_session):
        result = app.test_cli_runner().invoke(args=[
            "businesses", "create", "--name", "X", "--admin-email", "a@x.mx", "--admin-password", "weak",
        ])
        assert result.output.startswith("FAIL")
        assert db_session.query(Organization).count() == 0

    def test_sessions_cleanup(self, app, db_session, admin_headers, admin_a):
        revoke_all_user_sessions(admin_a.id)

        result = app.test_cli_runner().invoke(args=["sessions", "cleanup", "--max-age-days", "0"])

        assert "PASS Deleted 1 sessions" in result.output
        assert db_session.query(SessionToken).count() == 0
