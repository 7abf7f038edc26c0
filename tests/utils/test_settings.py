from datetime import timedelta

import pytest
from jose import JWTError

from app.core.config import Settings
from app.core.security import create_access_token, decode_access_token


def test_env_selects_urls():
    local = Settings(ENV="local", DATABASE_URL_LOCAL="sqlite://", REDIS_URL_LOCAL="redis://local")
    prod = Settings(ENV="prod", DATABASE_URL_PROD="postgresql://db/prod", REDIS_URL_PROD="redis://prod")
    assert local.DATABASE_URL == "sqlite://"
    assert local.REDIS_URL == "redis://local"
    assert prod.DATABASE_URL == "postgresql://db/prod"
    assert prod.REDIS_URL == "redis://prod"


def test_cors_origins_are_split():
    settings = Settings(CORS_ORIGINS="http://a.test, http://b.test,")
    assert settings.get_cors_origins() == ["http://a.test", "http://b.test"]


def test_token_round_trip():
    token = create_access_token({"sub": "mod_1", "role": "moderator", "sid": "mss_1"})
    payload = decode_access_token(token)
    assert payload["sub"] == "mod_1"
    assert payload["sid"] == "mss_1"


def test_expired_token_is_rejected():
    token = create_access_token({"sub": "mod_1"}, expires_delta=timedelta(seconds=-1))
    with pytest.raises(JWTError):
        decode_access_token(token)
