"""
Unit Tests - Settings
"""
import pytest
from pydantic import ValidationError

from store_analytics.config import Settings


class TestSettings:
    def test_testing_environment(self, test_settings):
        assert test_settings.app_env == "testing"
        assert test_settings.rollup.timezone == "America/Los_Angeles"
        assert test_settings.rollup.schedule_cron == "0 2 * * *"
        assert test_settings.stripe.signature_tolerance_seconds == 300

    def test_environment_is_normalised(self):
        assert Settings(APP_ENV="Production").app_env == "production"

    def test_unknown_environment_rejected(self):
        with pytest.raises(ValidationError):
            Settings(APP_ENV="qa")

    def test_only_consumed_fields_are_exposed(self, test_settings):
        fields = set(Settings.model_fields)

        assert "debug" not in fields
        assert {"app_env", "api_host", "api_port", "database", "stripe", "rollup", "monitoring"} <= fields
