"""Security and error-handling tests.

Tests:
- Security headers are present on responses (HTML and JSON)
- CSP allows the YouTube / Drive embeds used by block documents
- API paths answer errors as JSON, site paths as HTML pages
- Contact form is rate limited
"""

from unittest.mock import patch

from flask import render_template

from folio import create_app
from folio.config import TestConfig, config_by_name
from folio.extensions import limiter


class TestSecurityHeaders:
    """Verify security headers are present on responses."""

    def test_x_content_type_options(self, client):
        response = client.get("/auth/login")
        assert response.headers.get("X-Content-Type-Options") == "nosniff"

    def test_x_frame_options(self, client):
        response = client.get("/auth/login")
        assert response.headers.get("X-Frame-Options") == "DENY"

    def test_referrer_policy(self, client):
        response = client.get("/auth/login")
        assert response.headers.get("Referrer-Policy") == "strict-origin-when-cross-origin"

    def test_csp_header(self, client):
        """CSP should lock down sources but allow video embeds."""
        csp = client.get("/auth/login").headers.get("Content-Security-Policy")
        assert "default-src 'self'" in csp
        assert "frame-src https://www.youtube.com https://drive.google.com" in csp
        assert "frame-ancestors 'none'" in csp

    def test_no_hsts_in_debug(self, client):
        """HSTS should NOT be set in debug/test mode."""
        response = client.get("/auth/login")
        assert response.headers.get("Strict-Transport-Security") is None

    def test_headers_on_api_responses(self, client, seed_data):
        response = client.get("/api/projects")
        assert response.headers.get("X-Content-Type-Options") == "nosniff"

    def test_headers_on_error_pages(self, client):
        response = client.get("/nonexistent-page")
        assert response.headers.get("X-Content-Type-Options") == "nosniff"
        assert response.headers.get("X-Frame-Options") == "DENY"


class TestErrorPages:

    def test_html_404(self, client):
        response = client.get("/nonexistent-page")
        assert response.status_code == 404
        assert b"This page doesn't exist" in response.data

    def test_json_404_for_api_paths(self, client):
        response = client.get("/api/nothing-here")
        assert response.status_code == 404
        assert response.get_json() == {"ok": False, "error": "Not found"}

    def test_html_500_offers_reload(self, app, client):
        def failing_render(name, **context):
            if name == "index.html":
                raise RuntimeError("template exploded")
            return render_template(name, **context)

        with patch.dict(app.config, {"PROPAGATE_EXCEPTIONS": False}), \
                patch("folio.render_template", side_effect=failing_render):
            response = client.get("/")

        assert response.status_code == 500
        assert b"Reload" in response.data

    def test_json_500_for_api_paths(self, app, client):
        with patch.dict(app.config, {"PROPAGATE_EXCEPTIONS": False}), \
                patch(
                    "folio.services.content_service.published_projects",
                    side_effect=RuntimeError("boom"),
                ):
            response = client.get("/api/projects")

        assert response.status_code == 500
        assert "Reload" in response.get_json()["error"]


class TestRateLimiting:
    """Rate limiting is off in tests (RATELIMIT_ENABLED=False) but wired to the contact form."""

    def test_disabled_in_tests(self, app):
        assert app.config.get("RATELIMIT_ENABLED") is False

    def test_contact_form_limited_to_five_per_hour(self):
        class LimitedConfig(TestConfig):
            RATELIMIT_ENABLED = True

        # The limiter is shared by every app; put it back off afterwards.
        with patch.object(limiter, "enabled", False), \
                patch.dict(config_by_name, {"testing": LimitedConfig}):
            limited_app = create_app("testing")
            client = limited_app.test_client()
            try:
                statuses = [client.post("/api/contact", json={}).status_code for _ in range(6)]
            finally:
                limiter.reset()

        assert statuses == [422] * 5 + [429]
