"""Tests for configuration and passkey helpers."""

import warnings

import pytest

from allstats.config import (
    PasskeyTooShortError,
    StatsConfig,
    hash_passkey,
    verify_passkey,
)


class TestPasskeys:
    """Test passkey hashing and verification."""

    def test_hash_and_verify(self):
        stored = hash_passkey("a-very-long-secret-passkey")

        assert stored.startswith("pbkdf2:100000:")
        assert verify_passkey(stored, "a-very-long-secret-passkey") is True
        assert verify_passkey(stored, "wrong") is False

    def test_short_passkey_rejected(self):
        with pytest.raises(PasskeyTooShortError):
            hash_passkey("short")

    def test_short_passkey_allowed_without_validation(self):
        assert hash_passkey("short", validate=False).startswith("pbkdf2:")

    def test_malformed_hash_fails_closed(self):
        assert verify_passkey("pbkdf2:notanumber:zz:zz", "anything") is False

    def test_legacy_plaintext(self):
        assert verify_passkey("plaintext-passkey-123", "plaintext-passkey-123") is True
        assert verify_passkey("plaintext-passkey-123", "other") is False


class TestStatsConfig:
    """Test StatsConfig validation and helpers."""

    def _config(self, **kwargs):
        return StatsConfig(d1_database_id="db", cf_account_id="acct", cf_api_token="tok", **kwargs)

    def test_defaults(self):
        config = self._config()

        assert config.default_limit == 10
        assert config.query_timeout_seconds == 30.0
        assert config.sort_languages is False
        assert config.has_auth is False
        assert config.can_view_website("anything") is True

    def test_website_allow_list(self):
        config = self._config(website_ids=["a", "b"])

        assert config.can_view_website("a") is True
        assert config.can_view_website("c") is False

    def test_plaintext_passkey_warns(self):
        with pytest.warns(DeprecationWarning):
            config = self._config(passkey="plaintext-passkey-123")

        assert config.is_passkey_hashed is False
        assert config.has_auth is True

    def test_hashed_passkey_no_warning(self):
        stored = hash_passkey("a-very-long-secret-passkey")
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            config = self._config(passkey=stored)

        assert config.is_passkey_hashed is True

    @pytest.mark.parametrize("kwargs", [
        {"default_limit": -1},
        {"query_timeout_seconds": 0},
    ])
    def test_invalid_values(self, kwargs):
        with pytest.raises(ValueError):
            self._config(**kwargs)


class TestFromEnv:
    """Test environment-based configuration."""

    def test_reads_settings(self):
        config = StatsConfig.from_env({
            "ALLSTATS_D1_DATABASE_ID": "db",
            "ALLSTATS_CF_ACCOUNT_ID": "acct",
            "ALLSTATS_CF_API_TOKEN": "tok",
            "ALLSTATS_WEBSITE_IDS": "site-1, site-2,",
            "ALLSTATS_DEFAULT_LIMIT": "25",
            "ALLSTATS_SORT_LANGUAGES": "true",
        })

        assert config.d1_database_id == "db"
        assert config.website_ids == ["site-1", "site-2"]
        assert config.default_limit == 25
        assert config.sort_languages is True
        assert config.passkey is None

    def test_missing_required(self):
        with pytest.raises(ValueError, match="ALLSTATS_CF_API_TOKEN"):
            StatsConfig.from_env({
                "ALLSTATS_D1_DATABASE_ID": "db",
                "ALLSTATS_CF_ACCOUNT_ID": "acct",
            })


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
