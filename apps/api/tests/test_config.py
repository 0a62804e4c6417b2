"""
Configuration validation: SECRET_KEY strength and the production startup
hard-fail checks.
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from core.config import Settings, validate_production_config

GOOD_PROD = dict(
    environment="production",
    debug=False,
    cors_origins="https://app.growfit.example,https://admin.growfit.example",
    postgres_password="secure-password-12chars",
    token_encryption_key="fernet-key-from-env",
)


class TestSecretKey:
    def test_short_secret_key_is_rejected(self):
        with pytest.raises(ValidationError, match="SECRET_KEY"):
            Settings(SECRET_KEY="too-short")

    def test_long_secret_key_is_accepted(self):
        assert Settings(SECRET_KEY="x" * 32).SECRET_KEY == "x" * 32


class TestKidsDataRoles:
    def test_roles_are_parsed_and_normalized(self):
        s = Settings(SECRET_KEY="x" * 32, KIDS_DATA_REQUIRED_ROLES=" Client, coach ,")
        assert s.kids_data_required_roles == {"client", "coach"}

    def test_empty_disables_the_gate(self):
        assert Settings(SECRET_KEY="x" * 32, KIDS_DATA_REQUIRED_ROLES="").kids_data_required_roles == frozenset()


class TestProductionConfigValidation:
    """validate_production_config raises for bad prod config."""

    def test_valid_config_passes(self):
        validate_production_config(**GOOD_PROD)

    def test_debug_true_fails(self):
        with pytest.raises(ValueError, match="DEBUG must be False"):
            validate_production_config(**{**GOOD_PROD, "debug": True})

    @pytest.mark.parametrize("cors_origins", [None, "", "   "])
    def test_missing_cors_fails(self, cors_origins):
        with pytest.raises(ValueError, match="CORS_ORIGINS"):
            validate_production_config(**{**GOOD_PROD, "cors_origins": cors_origins})

    @pytest.mark.parametrize("password", ["postgres", "short"])
    def test_weak_postgres_password_fails(self, password):
        with pytest.raises(ValueError, match="POSTGRES_PASSWORD"):
            validate_production_config(**{**GOOD_PROD, "postgres_password": password})

    def test_database_url_skips_password_check(self):
        validate_production_config(**{**GOOD_PROD, "postgres_password": None})

    def test_missing_encryption_key_fails(self):
        with pytest.raises(ValueError, match="TOKEN_ENCRYPTION_KEY"):
            validate_production_config(**{**GOOD_PROD, "token_encryption_key": None})

    def test_all_problems_reported_together(self):
        with pytest.raises(ValueError) as exc:
            validate_production_config(
                environment="production",
                debug=True,
                cors_origins=None,
                postgres_password="postgres",
                token_encryption_key=None,
            )
        message = str(exc.value)
        for key in ("DEBUG", "CORS_ORIGINS", "POSTGRES_PASSWORD", "TOKEN_ENCRYPTION_KEY"):
            assert key in message


class TestNonProductionNotValidated:
    """Non-production configs are not validated."""

    @pytest.mark.parametrize("environment", ["development", "test", "staging"])
    def test_anything_goes(self, environment):
        validate_production_config(
            environment=environment,
            debug=True,
            cors_origins=None,
            postgres_password="postgres",
            token_encryption_key=None,
        )
