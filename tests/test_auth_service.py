"""
Nexus Compliance - Auth Service Tests

Unit tests for authentication service.
"""

import pytest
from uuid import uuid4

from app.models.user import UserRole
from app.services.auth_service import AuthService
from app.utils.security import verify_access_token, verify_refresh_token


class TestAuthService:
    """Test cases for AuthService."""

    @pytest.mark.asyncio
    async def test_register_creates_firm(self, db_session):
        """A user registering without a firm founds one as managing partner."""
        service = AuthService(db_session)

        user, org = await service.register_user(
            email="Founder@Example.com",
            password="SecurePassword123!",
            first_name="New",
            last_name="Partner",
            organization_name="Partner CPA",
        )

        assert user.email == "founder@example.com"
        assert user.hashed_password != "SecurePassword123!"
        assert user.role == UserRole.MANAGING_PARTNER
        assert org.name == "Partner CPA"
        assert org.slug.startswith("partner-cpa")

    @pytest.mark.asyncio
    async def test_register_joins_firm_as_staff(self, db_session, test_organization):
        service = AuthService(db_session)

        user, org = await service.register_user(
            email="joiner@example.com",
            password="SecurePassword123!",
            first_name="Join",
            last_name="Er",
            organization_id=test_organization.id,
        )

        assert org.id == test_organization.id
        assert user.role == UserRole.STAFF_ACCOUNTANT

    @pytest.mark.asyncio
    async def test_register_unknown_firm(self, db_session):
        with pytest.raises(ValueError, match="Organization not found"):
            await AuthService(db_session).register_user(
                email="lost@example.com",
                password="SecurePassword123!",
                first_name="Lost",
                last_name="User",
                organization_id=uuid4(),
            )

    @pytest.mark.asyncio
    async def test_register_duplicate_email(self, db_session, test_user):
        with pytest.raises(ValueError, match="Email already registered"):
            await AuthService(db_session).register_user(
                email="testuser@example.com",
                password="SecurePassword123!",
                first_name="Test",
                last_name="User",
            )

    @pytest.mark.asyncio
    async def test_authenticate_user_success(self, db_session, test_user):
        """Test successful user authentication."""
        service = AuthService(db_session)

        user = await service.authenticate_user(
            email="testuser@example.com",
            password="TestPassword123!",
        )

        assert user is not None
        assert user.last_login is not None

    @pytest.mark.asyncio
    async def test_authenticate_user_wrong_password(self, db_session, test_user):
        """Test authentication with wrong password."""
        user = await AuthService(db_session).authenticate_user(
            email="testuser@example.com",
            password="WrongPassword!",
        )
        assert user is None

    @pytest.mark.asyncio
    async def test_authenticate_user_not_found(self, db_session):
        user = await AuthService(db_session).authenticate_user(
            email="nonexistent@example.com",
            password="Password123!",
        )
        assert user is None

    @pytest.mark.asyncio
    async def test_tokens_carry_role_and_firm(self, db_session, test_user):
        tokens = AuthService(db_session).create_tokens(test_user)

        access = verify_access_token(tokens["access_token"])
        assert access["sub"] == str(test_user.id)
        assert access["role"] == "managing_partner"
        assert access["org_id"] == str(test_user.organization_id)
        assert verify_refresh_token(tokens["refresh_token"])["sub"] == str(test_user.id)
        assert tokens["token_type"] == "bearer"

    @pytest.mark.asyncio
    async def test_refresh_tokens(self, db_session, test_user):
        service = AuthService(db_session)
        tokens = service.create_tokens(test_user)

        refreshed = await service.refresh_tokens(tokens["refresh_token"])
        assert verify_access_token(refreshed["access_token"])["sub"] == str(test_user.id)

    @pytest.mark.asyncio
    async def test_access_token_cannot_refresh(self, db_session, test_user):
        service = AuthService(db_session)
        tokens = service.create_tokens(test_user)

        with pytest.raises(ValueError):
            await service.refresh_tokens(tokens["access_token"])

    @pytest.mark.asyncio
    async def test_change_password(self, db_session, test_user):
        service = AuthService(db_session)

        with pytest.raises(ValueError, match="Current password is incorrect"):
            await service.change_password(test_user, "nope", "NewPassword123!")

        assert await service.change_password(test_user, "TestPassword123!", "NewPassword123!")
        assert await service.authenticate_user("testuser@example.com", "NewPassword123!")

    @pytest.mark.asyncio
    async def test_update_profile(self, db_session, test_user):
        user = await AuthService(db_session).update_profile(
            test_user, {"first_name": "Renamed", "last_name": None},
        )
        assert user.first_name == "Renamed"
        assert user.last_name == "Managing Partner"
