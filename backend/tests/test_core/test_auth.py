"""
Unit tests for JWT authentication dependencies
"""
from datetime import timedelta

import pytest
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials

from product_report.core.auth import (
    TokenUser,
    decode_token,
    get_current_user,
    get_current_user_optional,
    require_admin,
)


def bearer(token: str) -> HTTPAuthorizationCredentials:
    return HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)


class TestDecodeToken:

    def test_valid_token(self, token_factory):
        payload = decode_token(token_factory(role="admin"))

        assert payload["email"] == "editor@theproductreport.org"
        assert payload["role"] == "admin"

    def test_expired_token(self, token_factory):
        with pytest.raises(HTTPException) as exc:
            decode_token(token_factory(expires_in=timedelta(seconds=-10)))

        assert exc.value.status_code == 401
        assert exc.value.detail == "Token has expired"

    def test_wrong_secret(self, token_factory):
        with pytest.raises(HTTPException) as exc:
            decode_token(token_factory(secret="someone-else"))

        assert exc.value.status_code == 401
        assert exc.value.detail.startswith("Invalid token")


class TestDependencies:

    @pytest.mark.asyncio
    async def test_current_user_from_claims(self, token_factory):
        user = await get_current_user(bearer(token_factory(id=7, name="Ed", isAdmin=True)))

        assert user.id == "7"
        assert user.name == "Ed"
        assert user.has_admin_access

    @pytest.mark.asyncio
    async def test_missing_credentials_is_401(self):
        with pytest.raises(HTTPException) as exc:
            await get_current_user(None)

        assert exc.value.detail == "Unauthorized - Login required"

    @pytest.mark.asyncio
    async def test_optional_user_swallows_bad_tokens(self):
        assert await get_current_user_optional(None) is None
        assert await get_current_user_optional(bearer("not-a-jwt")) is None

    @pytest.mark.asyncio
    async def test_require_admin(self):
        admin = TokenUser(id="1", email="a@x.org", role="admin")
        reader = TokenUser(id="2", email="r@x.org")

        assert await require_admin(admin) is admin
        with pytest.raises(HTTPException) as exc:
            await require_admin(reader)
        assert exc.value.status_code == 403
