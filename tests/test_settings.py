"""
Tests for settings and production validation.
"""

from conftest import make_settings


class TestAllowedOrigins:

    def test_defaults_to_dev_client(self):
        settings = make_settings()

        assert settings.get_allowed_origins() == ["http://localhost:5173"]

    def test_explicit_list(self):
        settings = make_settings(allowed_origins="https://a.example.com, https://b.example.com,")

        assert settings.get_allowed_origins() == [
            "https://a.example.com",
            "https://b.example.com",
        ]

    def test_production_without_list_allows_nothing(self):
        settings = make_settings(environment="production", debug=False)

        assert settings.get_allowed_origins() == []


class TestEnvironment:

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("PORT", "4000")
        monkeypatch.setenv("WS_MAX_TOTAL_CONNECTIONS", "5")

        settings = make_settings()

        assert settings.port == 4000
        assert settings.ws_max_total_connections == 5


class TestProductionValidation:

    def test_development_passes(self):
        assert make_settings().validate_production_settings() == []

    def test_production_requires_origins_and_no_debug(self):
        errors = make_settings(environment="production", debug=True).validate_production_settings()

        assert any("DEBUG" in e for e in errors)
        assert any("ALLOWED_ORIGINS" in e for e in errors)

    def test_production_configured(self):
        settings = make_settings(
            environment="production",
            debug=False,
            allowed_origins="https://chat.example.com",
        )

        assert settings.is_production
        assert settings.validate_production_settings() == []

    def test_limits_must_be_positive(self):
        errors = make_settings(
            ws_max_total_connections=0, ws_outbound_queue_size=0
        ).validate_production_settings()

        assert len(errors) == 2
