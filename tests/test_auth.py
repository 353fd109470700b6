"""Tests for registration, login and principal resolution."""

import pytest
from sqlalchemy.exc import IntegrityError

from homepanel.core.errors import (
    ConflictError,
    InvalidInputError,
    UnauthenticatedError,
    UnauthorizedError,
)
from homepanel.core.security import create_access_token, resolve_principal, verify_token
from homepanel.models.user import User, UserRole
from homepanel.services.auth_service import AuthService


@pytest.fixture
def auth(db):
    return AuthService(db)


class TestRegisterHouse:
    """Self-registration always creates a house admin."""

    async def test_register_creates_admin(self, auth):
        user, token = await auth.register_house("Alice", "alice@acacia.test", "secret123", " Acacia ")

        assert user.role == UserRole.ADMIN.value
        assert user.authorized is True
        assert user.house_name == "Acacia"
        assert verify_token(token).user_id == user.id

    async def test_second_admin_for_house_fails(self, auth):
        await auth.register_house("Alice", "alice@acacia.test", "secret123", "Acacia")

        with pytest.raises(ConflictError):
            await auth.register_house("Eve", "eve@acacia.test", "secret123", "Acacia")

    async def test_duplicate_email_fails(self, auth):
        await auth.register_house("Alice", "alice@acacia.test", "secret123", "Acacia")

        with pytest.raises(ConflictError):
            await auth.register_house("Alice", "alice@acacia.test", "secret123", "Birch")

    async def test_admin_index_enforced_by_storage(self, db):
        db.add(User(name="A", email="a@x.test", password_hash="h", house_name="X", role="admin"))
        db.add(User(name="B", email="b@x.test", password_hash="h", house_name="X", role="admin"))

        with pytest.raises(IntegrityError):
            await db.commit()
        await db.rollback()

    async def test_short_password(self, auth):
        with pytest.raises(InvalidInputError):
            await auth.register_house("Alice", "alice@acacia.test", "123", "Acacia")


class TestLogin:
    """Credential checks within a house."""

    @pytest.fixture
    async def registered(self, auth):
        user, _ = await auth.register_house("Alice", "alice@acacia.test", "secret123", "Acacia")
        return user

    async def test_login_success(self, auth, registered):
        user, token = await auth.login("alice@acacia.test", "secret123", "Acacia", "admin")
        assert user.id == registered.id
        assert token

    async def test_wrong_password(self, auth, registered):
        with pytest.raises(UnauthenticatedError):
            await auth.login("alice@acacia.test", "wrong-pass", "Acacia", "admin")

    async def test_wrong_house(self, auth, registered):
        with pytest.raises(UnauthenticatedError):
            await auth.login("alice@acacia.test", "secret123", "Birch", "admin")

    async def test_wrong_role(self, auth, registered):
        with pytest.raises(UnauthenticatedError):
            await auth.login("alice@acacia.test", "secret123", "Acacia", "user")

    async def test_unauthorized_member(self, auth, db, registered):
        from homepanel.core.security import hash_password

        db.add(User(
            name="Pat",
            email="pat@acacia.test",
            password_hash=hash_password("secret123"),
            house_name="Acacia",
            role="user",
            authorized=False,
        ))
        await db.commit()

        with pytest.raises(UnauthorizedError):
            await auth.login("pat@acacia.test", "secret123", "Acacia", "user")


class TestResolvePrincipal:
    """Token to principal."""

    async def test_role_comes_from_stored_user(self, db, member_user):
        token = create_access_token({"sub": member_user.id, "role": "admin", "house_name": "Birch"})

        principal = await resolve_principal(token, db)

        assert principal.role == "user"
        assert principal.house_name == "Acacia"
        assert principal.display_name == "Bob Member"

    async def test_missing_token(self, db):
        with pytest.raises(UnauthenticatedError):
            await resolve_principal(None, db)

    async def test_garbage_token(self, db):
        with pytest.raises(UnauthenticatedError):
            await resolve_principal("not-a-jwt", db)

    async def test_unknown_user(self, db):
        token = create_access_token({"sub": "ghost"})
        with pytest.raises(UnauthenticatedError):
            await resolve_principal(token, db)
