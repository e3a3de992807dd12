"""
Test configuration settings to ensure defaults and derived values are right.
"""
import pytest

from tutorhub.infrastructure.config import Settings, check_production_readiness, settings


def test_required_settings_loaded_from_env():
    assert settings.SECRET_KEY
    assert settings.MONGO_URI.startswith('mongodb://')


def test_auth_defaults():
    assert settings.JWT_ALGORITHM == "HS256"
    assert settings.JWT_EXPIRES_HOURS == 24
    assert settings.PASSWORD_RESET_TTL_MINUTES == 60
    assert settings.MAX_UPLOAD_BYTES == 10 * 1024 * 1024


def test_jwt_key_falls_back_to_secret_key():
    config = Settings(SECRET_KEY="app-secret", MONGO_URI="mongodb://localhost/x", JWT_SECRET="")
    assert config.jwt_signing_key == "app-secret"


def test_jwt_secret_wins_when_set():
    config = Settings(SECRET_KEY="app-secret", MONGO_URI="mongodb://localhost/x", JWT_SECRET="jwt-secret")
    assert config.jwt_signing_key == "jwt-secret"


def test_cors_origins_parsing():
    config = Settings(SECRET_KEY="k", MONGO_URI="mongodb://localhost/x", CORS_ORIGINS=" https://a.app, https://b.app ,")
    assert config.cors_origins == ["https://a.app", "https://b.app"]
    assert Settings(SECRET_KEY="k", MONGO_URI="mongodb://localhost/x").cors_origins == "*"


def test_admin_email_is_normalised():
    config = Settings(SECRET_KEY="k", MONGO_URI="mongodb://localhost/x", ADMIN_EMAIL=" Boss@Example.com ")
    assert config.ADMIN_EMAIL == "boss@example.com"


def test_production_rejects_debug_and_weak_secret():
    weak = Settings(SECRET_KEY="short", MONGO_URI="mongodb://localhost/x", FLASK_ENV="production")
    with pytest.raises(ValueError):
        check_production_readiness(weak)

    debug = Settings(
        SECRET_KEY="a-long-enough-production-secret", MONGO_URI="mongodb://localhost/x",
        FLASK_ENV="production", DEBUG=True,
    )
    with pytest.raises(ValueError):
        check_production_readiness(debug)


def test_development_skips_production_checks():
    check_production_readiness(Settings(SECRET_KEY="x", MONGO_URI="mongodb://localhost/x", FLASK_ENV="development"))
