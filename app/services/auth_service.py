"""
Nexus Compliance - Authentication Service

Business logic for user authentication and registration.
"""

import re
import uuid
from typing import Any, Dict, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.config import settings
from app.models.base import utcnow
from app.models.organization import Organization
from app.models.user import User, UserRole
from app.utils.security import (
    create_access_token,
    create_refresh_token,
    get_password_hash,
    verify_password,
    verify_refresh_token,
)

PROFILE_FIELDS = ("first_name", "last_name", "phone_number")


class AuthService:
    """Service for authentication operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_user_by_email(self, email: str) -> Optional[User]:
        """Get user by email address."""
        result = await self.db.execute(
            select(User)
            .options(selectinload(User.organization))
            .where(User.email == email.lower())
        )
        return result.scalar_one_or_none()

    async def get_user_by_id(self, user_id: uuid.UUID) -> Optional[User]:
        """Get user by ID."""
        result = await self.db.execute(
            select(User)
            .options(selectinload(User.organization))
            .where(User.id == user_id)
        )
        return result.scalar_one_or_none()

    async def authenticate_user(self, email: str, password: str) -> Optional[User]:
        """
        Authenticate user with email and password.

        Returns:
            User if authentication successful, None otherwise
        """
        user = await self.get_user_by_email(email)

        if not user:
            return None

        if not verify_password(password, user.hashed_password):
            return None

        user.last_login = utcnow()
        await self.db.commit()
        return user

    async def register_user(
        self,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
        organization_name: Optional[str] = None,
        organization_id: Optional[uuid.UUID] = None,
        phone_number: Optional[str] = None,
    ) -> Tuple[User, Organization]:
        """
        Register a new user.

        Joins an existing organization when organization_id is given,
        otherwise creates one and makes the user its managing partner.

        Returns:
            Tuple of (User, Organization)
        """
        existing_user = await self.get_user_by_email(email)
        if existing_user:
            raise ValueError("Email already registered")

        role = UserRole.STAFF_ACCOUNTANT
        if organization_id:
            organization = await self.db.get(Organization, organization_id)
            if not organization:
                raise ValueError("Organization not found")
        else:
            name = organization_name or f"{first_name} {last_name} CPA"
            organization = Organization(
                name=name,
                slug=self._generate_slug(name),
                settings={},
            )
            self.db.add(organization)
            await self.db.flush()  # Get organization ID
            role = UserRole.MANAGING_PARTNER

        user = User(
            email=email.lower(),
            hashed_password=get_password_hash(password),
            first_name=first_name,
            last_name=last_name,
            phone_number=phone_number,
            organization_id=organization.id,
            role=role,
            is_active=True,
        )
        self.db.add(user)

        await self.db.commit()
        await self.db.refresh(user)
        await self.db.refresh(organization)

        return user, organization

    def create_tokens(self, user: User) -> Dict[str, Any]:
        """
        Create access and refresh tokens for user.

        Returns:
            Dictionary with access_token, refresh_token, token_type, expires_in
        """
        token_data = {
            "sub": str(user.id),
            "email": user.email,
            "org_id": str(user.organization_id) if user.organization_id else None,
            "role": user.role.value if user.role else None,
        }

        return {
            "access_token": create_access_token(token_data),
            "refresh_token": create_refresh_token(token_data),
            "token_type": "bearer",
            "expires_in": settings.access_token_expire_minutes * 60,
        }

    async def refresh_tokens(self, refresh_token: str) -> Dict[str, Any]:
        """
        Issue a new token pair from a refresh token.

        Raises:
            ValueError: If the token is invalid or the user is gone or inactive
        """
        payload = verify_refresh_token(refresh_token)
        if not payload or not payload.get("sub"):
            raise ValueError("Invalid or expired refresh token")

        try:
            user = await self.get_user_by_id(uuid.UUID(payload["sub"]))
        except ValueError:
            raise ValueError("Invalid token payload")

        if not user or not user.is_active:
            raise ValueError("User not found or inactive")
        return self.create_tokens(user)

    async def update_profile(self, user: User, updates: Dict[str, Any]) -> User:
        for field in PROFILE_FIELDS:
            if updates.get(field) is not None:
                setattr(user, field, updates[field])
        await self.db.commit()
        return user

    async def change_password(
        self,
        user: User,
        current_password: str,
        new_password: str,
    ) -> bool:
        """
        Change user password.

        Returns:
            True if password changed successfully
        """
        if not verify_password(current_password, user.hashed_password):
            raise ValueError("Current password is incorrect")

        user.hashed_password = get_password_hash(new_password)
        await self.db.commit()

        return True

    def _generate_slug(self, name: str) -> str:
        """Generate URL-friendly slug from name."""
        slug = name.lower().strip()
        slug = re.sub(r'[^\w\s-]', '', slug)
        slug = re.sub(r'[\s_-]+', '-', slug)
        slug = slug.strip('-')

        # Random suffix keeps slugs unique
        suffix = uuid.uuid4().hex[:6]
        return f"{slug}-{suffix}"
