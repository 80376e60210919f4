"""Unit tests for admin token validation at startup."""

import logging
from unittest.mock import patch

import pytest


class TestValidateAdminToken:
    def test_empty_token_logs_warning(self, caplog):
        """No token leaves admin routes open but should log a warning."""
        from gateway.main import _validate_admin_token

        mock_settings = type("S", (), {"ADMIN_TOKEN": ""})()

        with patch("gateway.main.settings", mock_settings):
            with caplog.at_level(logging.WARNING, logger="gateway.main"):
                _validate_admin_token()

        assert "ADMIN_TOKEN is not set" in caplog.text

    def test_short_token_raises(self):
        """A token shorter than 16 chars should raise RuntimeError."""
        from gateway.main import _validate_admin_token

        mock_settings = type("S", (), {"ADMIN_TOKEN": "short"})()

        with patch("gateway.main.settings", mock_settings):
            with pytest.raises(RuntimeError, match="at least 16 characters"):
                _validate_admin_token()

    def test_valid_token_passes(self, caplog):
        """A token of at least 16 chars should pass silently."""
        from gateway.main import _validate_admin_token

        mock_settings = type("S", (), {"ADMIN_TOKEN": "a-long-enough-admin-token"})()

        with patch("gateway.main.settings", mock_settings):
            with caplog.at_level(logging.WARNING, logger="gateway.main"):
                _validate_admin_token()  # Should not raise

        assert caplog.text == ""
