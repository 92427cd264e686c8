"""
Tests for the TOTP API.

Covers:
- Health check and security headers
- Secret generation and enrollment material
- Enable / disable / status / stored secret
- Verification and lockout responses
- Reset and identity removal
"""
import time
from unittest.mock import patch

import pytest

from totpguard.auth.errors import RngUnavailable
from totpguard.auth.totp import generate_totp

from conftest import EXAMPLE_SECRET, wrong_code


def _current_code(secret: str) -> str:
    return generate_totp(secret, int(time.time()))


@pytest.fixture
def enabled_client(client_with_manager):
    """Client with identity 'alice' enabled on the example secret."""
    client, manager = client_with_manager
    manager.enable("alice", EXAMPLE_SECRET)
    return client, manager


# ============================================
# Health & Headers
# ============================================

class TestHealth:
    """Test health endpoint and response headers."""

    def test_health(self, client_with_manager):
        client, manager = client_with_manager
        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["services"]["entropy"] == "healthy"
        assert "0/3 identities" in body["services"]["registry"]

    def test_security_headers_present(self, client_with_manager):
        client, _ = client_with_manager
        response = client.get("/health")

        assert response.headers.get("X-Frame-Options") == "DENY"
        assert response.headers.get("X-Content-Type-Options") == "nosniff"
        assert response.headers.get("Cache-Control") == "no-store"
        assert "default-src 'none'" in response.headers.get("Content-Security-Policy", "")

    def test_request_id_echoed(self, client_with_manager):
        client, _ = client_with_manager
        response = client.get("/health", headers={"X-Request-ID": "abc123"})

        assert response.headers["X-Request-ID"] == "abc123"
        assert float(response.headers["X-Process-Time-Ms"]) >= 0


# ============================================
# Secret Generation
# ============================================

class TestGenerateSecret:
    """Test secret generation endpoint."""

    def test_secret_only(self, client_with_manager):
        client, manager = client_with_manager
        response = client.post("/identities/alice/totp/secret")

        assert response.status_code == 200
        body = response.json()
        assert len(body["secret"]) == 16
        assert body["provisioning_uri"] is None
        assert body["qr_code_base64"] is None
        assert not manager.is_enabled("alice")

    def test_with_account_name(self, client_with_manager):
        client, _ = client_with_manager
        response = client.post(
            "/identities/alice/totp/secret",
            json={"account_name": "alice@example.com"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["provisioning_uri"].startswith("otpauth://totp/")
        assert f"secret={body['secret']}" in body["provisioning_uri"]
        assert body["qr_code_base64"].startswith("data:image/png;base64,")

    def test_rng_unavailable(self, client_with_manager):
        client, manager = client_with_manager
        with patch.object(manager, "generate_secret", side_effect=RngUnavailable("no entropy")):
            response = client.post("/identities/alice/totp/secret")

        assert response.status_code == 503


# ============================================
# Enable / Disable / Status
# ============================================

class TestEnableDisable:
    """Test enabling, disabling and reading TOTP state."""

    def test_enable(self, client_with_manager):
        client, manager = client_with_manager
        response = client.put("/identities/alice/totp", json={"secret": EXAMPLE_SECRET})

        assert response.status_code == 200
        body = response.json()
        assert body["enabled"] is True
        assert body["verified"] is False
        assert body["has_secret"] is True
        assert body["failed_attempts"] == 0
        assert manager.get_secret("alice") == EXAMPLE_SECRET

    @pytest.mark.parametrize("secret", ["A" * 9, "A" * 17, "JBSWY3DPEHPK3PX1"])
    def test_enable_invalid_secret(self, client_with_manager, secret):
        client, manager = client_with_manager
        response = client.put("/identities/alice/totp", json={"secret": secret})

        assert response.status_code == 400
        assert not manager.is_enabled("alice")

    def test_enable_missing_body(self, client_with_manager):
        client, _ = client_with_manager
        response = client.put("/identities/alice/totp")

        assert response.status_code == 422
        assert response.json()["code"] == "VALIDATION_ERROR"

    def test_enable_capacity_exceeded(self, client_with_manager):
        client, _ = client_with_manager
        for name in ("a", "b", "c"):
            assert client.put(f"/identities/{name}/totp", json={"secret": EXAMPLE_SECRET}).status_code == 200

        response = client.put("/identities/d/totp", json={"secret": EXAMPLE_SECRET})
        assert response.status_code == 503

    def test_disable(self, enabled_client):
        client, manager = enabled_client
        response = client.delete("/identities/alice/totp")

        assert response.status_code == 204
        assert not manager.is_enabled("alice")
        assert manager.get_secret("alice") is None

    def test_disable_unknown_is_noop(self, client_with_manager):
        client, _ = client_with_manager
        assert client.delete("/identities/ghost/totp").status_code == 204

    def test_status_unknown(self, client_with_manager):
        client, _ = client_with_manager
        assert client.get("/identities/ghost/totp").status_code == 404

    def test_stored_secret(self, enabled_client):
        client, _ = enabled_client
        response = client.get("/identities/alice/totp/secret")

        assert response.status_code == 200
        assert response.json() == {"identity": "alice", "secret": EXAMPLE_SECRET}

    def test_stored_secret_missing(self, client_with_manager):
        client, _ = client_with_manager
        assert client.get("/identities/ghost/totp/secret").status_code == 404


# ============================================
# Verification
# ============================================

class TestVerify:
    """Test verification endpoint."""

    def test_correct_code(self, enabled_client):
        client, manager = enabled_client
        response = client.post(
            "/identities/alice/totp/verify",
            json={"code": _current_code(EXAMPLE_SECRET)},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["status"] == "success"
        assert body["verified"] is True
        assert manager.is_verified("alice")

    def test_wrong_code(self, enabled_client):
        client, _ = enabled_client
        bad = wrong_code(EXAMPLE_SECRET, int(time.time()), window=2)
        response = client.post("/identities/alice/totp/verify", json={"code": bad})

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is False
        assert body["status"] == "invalid_code"
        assert body["failed_attempts"] == 1

    def test_malformed_code(self, enabled_client):
        client, manager = enabled_client
        response = client.post("/identities/alice/totp/verify", json={"code": "12ab"})

        assert response.status_code == 400
        assert manager.get_failed_attempts("alice") == 0

    def test_not_enabled(self, client_with_manager):
        client, _ = client_with_manager
        response = client.post("/identities/ghost/totp/verify", json={"code": "123456"})

        assert response.status_code == 200
        assert response.json()["status"] == "not_enabled"

    def test_lockout_returns_429(self, enabled_client):
        client, _ = enabled_client
        bad = wrong_code(EXAMPLE_SECRET, int(time.time()), window=2)

        for i in range(3):
            response = client.post("/identities/alice/totp/verify", json={"code": bad})
            assert response.status_code == 200

        assert response.json()["retry_after_seconds"] > 0

        response = client.post(
            "/identities/alice/totp/verify",
            json={"code": _current_code(EXAMPLE_SECRET)},
        )
        assert response.status_code == 429
        assert int(response.headers["Retry-After"]) > 0
        assert "try again" in response.json()["detail"].lower()

        status_response = client.get("/identities/alice/totp")
        assert status_response.json()["locked_out"] is True


# ============================================
# Reset & Removal
# ============================================

class TestResetAndRemove:
    """Test soft reset and identity removal."""

    def test_reset_verification(self, enabled_client):
        client, manager = enabled_client
        client.post("/identities/alice/totp/verify", json={"code": _current_code(EXAMPLE_SECRET)})

        response = client.post("/identities/alice/totp/reset")

        assert response.status_code == 204
        assert not manager.is_verified("alice")
        assert manager.is_enabled("alice")

    def test_reset_unknown(self, client_with_manager):
        client, _ = client_with_manager
        assert client.post("/identities/ghost/totp/reset").status_code == 404

    def test_remove_identity(self, enabled_client):
        client, manager = enabled_client
        response = client.delete("/identities/alice")

        assert response.status_code == 204
        assert "alice" not in manager
        assert client.get("/identities/alice/totp").status_code == 404


# ============================================
# Entry Point
# ============================================

class TestRun:
    """Test the console entry point."""

    def test_run_serves_single_worker(self, monkeypatch):
        from totpguard.api import main

        monkeypatch.setenv("API_PORT", "9100")
        with patch("uvicorn.run") as run:
            main.run()

        run.assert_called_once_with(main.app, host="127.0.0.1", port=9100, workers=1)

    def test_manager_dependency_is_shared(self, monkeypatch):
        from totpguard.api import deps

        monkeypatch.setattr(deps, "_manager", None)
        manager = deps.get_manager()

        assert deps.get_manager() is manager
        assert manager.settings is deps.get_totp_settings()
