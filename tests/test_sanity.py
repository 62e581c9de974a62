"""Sanity check that the test infrastructure works."""

from pathlib import Path


async def test_db_fixture_works(db):
    """Verify the test database session is functional."""
    from sqlalchemy import text
    result = await db.execute(text("SELECT 1"))
    assert result.scalar() == 1


async def test_client_fixture_works(client):
    """Verify the test HTTP client can hit the health endpoint."""
    response = await client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["app"] == "Claims Desk"


class TestAppHygiene:
    """The app uses the lifespan API and timezone-safe timestamps."""

    def test_main_does_not_use_on_event(self):
        source = (Path(__file__).parent.parent / "claimsdesk" / "main.py").read_text()
        assert "@app.on_event" not in source

    def test_app_has_lifespan(self):
        from claimsdesk.main import app
        assert app.router.lifespan_context is not None

    def test_source_files_do_not_use_utcnow(self):
        deprecated_call = "utc" + "now()"
        src_dir = Path(__file__).parent.parent / "claimsdesk"
        violations = []
        for py_file in src_dir.rglob("*.py"):
            for i, line in enumerate(py_file.read_text().splitlines(), 1):
                if deprecated_call in line:
                    violations.append(f"{py_file.name}:{i}")
        assert not violations, f"Found deprecated utcnow() in: {violations}"


class TestWebhookSecretSetting:
    """Production config must carry a webhook secret."""

    def test_production_without_secret_is_refused(self):
        import pytest
        from pydantic import ValidationError
        from claimsdesk.config import Settings

        with pytest.raises(ValidationError, match="JOTFORM_WEBHOOK_SECRET"):
            Settings(DEBUG=False, JOTFORM_WEBHOOK_SECRET=None)

    def test_production_with_secret_is_accepted(self):
        from claimsdesk.config import Settings

        settings = Settings(DEBUG=False, JOTFORM_WEBHOOK_SECRET="s3cret")
        assert settings.JOTFORM_WEBHOOK_SECRET == "s3cret"
