import jwt
import pytest
from fastapi import HTTPException

from app.core.auth import get_current_customer, require_roles
from app.core.config import get_settings
from tests.conftest import make_token


def _configure(monkeypatch, audience="authenticated"):
    get_settings.cache_clear()
    monkeypatch.setenv("AUTH_JWT_SECRET", "test-secret")
    monkeypatch.setenv("AUTH_JWT_AUDIENCE", audience)
    monkeypatch.setenv("AUTH_ALLOWED_ROLES", "CUSTOMER")
    get_settings.cache_clear()


def test_accepts_matching_audience_and_keeps_token(monkeypatch):
    _configure(monkeypatch)

    token = make_token(aud="authenticated")
    customer = get_current_customer(authorization=f"Bearer {token}")
    assert customer.role == "CUSTOMER"
    assert customer.access_token == token
    assert customer.email == "customer@example.com"


def test_rejects_wrong_audience(monkeypatch):
    _configure(monkeypatch)

    with pytest.raises(HTTPException) as exc:
        get_current_customer(authorization=f"Bearer {make_token(aud='other')}")
    assert exc.value.status_code == 401


def test_ignores_user_metadata_role(monkeypatch):
    _configure(monkeypatch)

    payload = {
        "sub": "c-1",
        "app_metadata": {},
        "user_metadata": {"role": "CUSTOMER"},
        "aud": "authenticated",
    }
    token = jwt.encode(payload, "test-secret", algorithm="HS256")
    with pytest.raises(HTTPException) as exc:
        get_current_customer(authorization=f"Bearer {token}")
    assert exc.value.status_code == 403


def test_missing_secret_is_server_error(monkeypatch):
    get_settings.cache_clear()
    monkeypatch.delenv("AUTH_JWT_SECRET", raising=False)
    get_settings.cache_clear()

    with pytest.raises(HTTPException) as exc:
        get_current_customer(authorization=f"Bearer {make_token()}")
    assert exc.value.status_code == 500


def test_require_roles_filters(monkeypatch):
    _configure(monkeypatch, audience="")
    customer = get_current_customer(authorization=f"Bearer {make_token()}")

    assert require_roles("CUSTOMER")(customer=customer) is customer
    with pytest.raises(HTTPException) as exc:
        require_roles("ADMIN")(customer=customer)
    assert exc.value.status_code == 403
