import os
from datetime import datetime, timedelta, timezone

import jwt
import pytest

# Must be set before app.core.dependencies builds its engine.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("AUTO_CREATE_TABLES", "false")

from app.core.config import get_settings  # noqa: E402

TEST_JWT_SECRET = "test-secret"
TEST_CUSTOMER_ID = "00000000-0000-0000-0000-000000000002"


@pytest.fixture(autouse=True)
def _reset_settings_cache():
    # Some tests mutate env vars and clear the settings cache. Ensure we don't leak
    # a cached Settings instance (e.g. with a different JWT secret) across tests.
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def make_token(
    *,
    secret: str = TEST_JWT_SECRET,
    sub: str = TEST_CUSTOMER_ID,
    role: str | None = "CUSTOMER",
    aud: str | None = None,
    expires_in: timedelta = timedelta(hours=1),
) -> str:
    payload = {
        "sub": sub,
        "email": "customer@example.com",
        "app_metadata": {"role": role} if role is not None else {},
        "iat": int(datetime.now(timezone.utc).timestamp()),
        "exp": int((datetime.now(timezone.utc) + expires_in).timestamp()),
    }
    if aud is not None:
        payload["aud"] = aud
    token = jwt.encode(payload, secret, algorithm="HS256")
    if isinstance(token, bytes):
        token = token.decode("utf-8")
    return token


def auth_header(**kwargs) -> dict:
    return {"Authorization": f"Bearer {make_token(**kwargs)}"}
