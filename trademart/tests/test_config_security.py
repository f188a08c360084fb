"""
Tests for settings validation, tokens and role checks.
"""
import asyncio
from datetime import timedelta

import pytest
from fastapi.security import HTTPAuthorizationCredentials
from pydantic import ValidationError

from trademart.core.config import Settings
from trademart.core.errors import ForbiddenError, UnauthenticatedError
from trademart.core.rbac import RoleChecker, require_admin, require_buyer, require_supplier
from trademart.db.models import UserRole
from trademart.core.logging import REDACTED, redact, redact_text
from trademart.core.security import (
    create_access_token, decode_token, get_password_hash, issue_user_token, verify_password,
)

STRONG_KEY = "0123456789abcdef0123456789abcdef-prod"


def _bearer(role: str, user_id: int = 1) -> HTTPAuthorizationCredentials:
    token = create_access_token({"sub": str(user_id), "email": "u@x.test", "role": role})
    return HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)


class TestSettings:

    def test_production_rejects_weak_secret(self):
        with pytest.raises(ValidationError):
            Settings(DEBUG=False, SECRET_KEY="secret", POSTGRES_PASSWORD="s3cure-db-pass")

    def test_production_rejects_default_db_password(self):
        with pytest.raises(ValidationError):
            Settings(DEBUG=False, SECRET_KEY=STRONG_KEY, POSTGRES_PASSWORD="trademart")

    def test_seed_demo_requires_debug(self):
        with pytest.raises(ValidationError):
            Settings(DEBUG=False, SECRET_KEY=STRONG_KEY, POSTGRES_PASSWORD="s3cure-db-pass", SEED_DEMO=True)

    @pytest.mark.parametrize("threshold", [-1, 101])
    def test_qc_threshold_bounds(self, threshold):
        with pytest.raises(ValidationError):
            Settings(DEBUG=True, QC_PASS_THRESHOLD=threshold)

    def test_notification_backend_choices(self):
        with pytest.raises(ValidationError):
            Settings(DEBUG=True, NOTIFICATION_BACKEND="smtp")

    def test_database_url_assembled_from_parts(self, monkeypatch):
        monkeypatch.delenv("DATABASE_URL", raising=False)
        settings = Settings(
            DEBUG=True,
            POSTGRES_USER="tm",
            POSTGRES_PASSWORD="pw",
            POSTGRES_HOST="db.internal",
            POSTGRES_PORT="6543",
            POSTGRES_DB="market",
        )
        assert settings.DATABASE_URL == "postgresql://tm:pw@db.internal:6543/market"

    def test_defaults(self):
        settings = Settings(DEBUG=True)
        assert settings.QC_PASS_THRESHOLD == 70
        assert settings.DEFAULT_CURRENCY == "INR"


class TestTokens:

    def test_round_trip(self):
        token = create_access_token({"sub": "42", "role": "buyer"})
        payload = decode_token(token)
        assert payload["sub"] == "42"
        assert "exp" in payload

    def test_expired_token(self):
        token = create_access_token({"sub": "42"}, expires_delta=timedelta(seconds=-5))
        with pytest.raises(UnauthenticatedError):
            decode_token(token)

    def test_password_hash(self):
        hashed = get_password_hash("orders2026")
        assert verify_password("orders2026", hashed)
        assert not verify_password("orders2027", hashed)

    def test_malformed_hash_never_matches(self):
        assert not verify_password("anything", "$2b$12$test_hash")

    def test_user_token_carries_role(self):
        token, expires_in = issue_user_token(7, "s@x.test", UserRole.SUPPLIER)
        payload = decode_token(token)
        assert payload["sub"] == "7"
        assert payload["role"] == "supplier"
        assert expires_in > 0


class TestRoleChecker:

    def test_allowed_role(self):
        context = asyncio.run(require_buyer(_bearer("buyer", user_id=9)))
        assert context["user_id"] == 9
        assert context["role"] is UserRole.BUYER

    def test_admin_always_passes(self):
        context = asyncio.run(require_buyer(_bearer("admin")))
        assert context["role"] == UserRole.ADMIN

    def test_other_role_is_forbidden(self):
        with pytest.raises(ForbiddenError):
            asyncio.run(require_admin(_bearer("supplier")))

    def test_missing_credentials(self):
        with pytest.raises(UnauthenticatedError):
            asyncio.run(RoleChecker({UserRole.SUPPLIER})(None))

    def test_unknown_role_in_token(self):
        with pytest.raises(UnauthenticatedError):
            asyncio.run(require_buyer(_bearer("auditor")))


class TestRedaction:

    def test_nested_keys_are_masked(self):
        payload = {"payment_method": "wire", "meta": {"paymentReference": "TXN-99"}, "items": [{"token": "abc"}]}
        cleaned = redact(payload)
        assert cleaned["payment_method"] == "wire"
        assert cleaned["meta"]["paymentReference"] == REDACTED
        assert cleaned["items"][0]["token"] == REDACTED
        assert payload["meta"]["paymentReference"] == "TXN-99"

    def test_free_text_is_masked(self):
        assert "hunter2" not in redact_text("login failed password=hunter2 for buyer")


class TestRoleMatchesStoredRole:

    def test_token_role_round_trips_to_model_enum(self, db, make_user):
        supplier_user = make_user(UserRole.SUPPLIER)
        token, _ = issue_user_token(supplier_user.id, supplier_user.email, supplier_user.role)

        context = asyncio.run(require_supplier(HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)))

        assert context["role"] is supplier_user.role
