"""Settings validation."""

import pytest
from pydantic import ValidationError

from collabspace.config import INSECURE_JWT_SECRET, Settings


def test_defaults():
    s = Settings(_env_file=None)
    assert s.session_ttl_seconds == 7 * 24 * 3600
    assert s.login_max_attempts == 5
    assert s.login_window_minutes == 15
    assert s.session_cookie_name == "sid"


def test_production_requires_real_secret():
    with pytest.raises(ValidationError):
        Settings(environment="production", jwt_secret=INSECURE_JWT_SECRET)
    s = Settings(environment="production", jwt_secret="a-real-secret-value")
    assert s.environment == "production"


def test_rate_limit_backend_validated():
    with pytest.raises(ValidationError):
        Settings(rate_limit_backend="memcached")
    assert Settings(rate_limit_backend="redis").rate_limit_backend == "redis"
