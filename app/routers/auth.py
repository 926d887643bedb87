"""
Nexus Compliance - Authentication Router

API endpoints for user authentication.
"""

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import get_async_session
from app.dependencies import get_current_active_user
from app.models.user import User
from app.schemas.auth import (
    CurrentUserResponse,
    MessageResponse,
    OrganizationResponse,
    PasswordChangeRequest,
    ProfileUpdateRequest,
    TokenRefreshRequest,
    TokenResponse,
    UserLoginRequest,
    UserRegisterRequest,
    UserResponse,
    UserWithTokenResponse,
)
from app.services.audit_service import AuditService
from app.services.auth_service import AuthService


router = APIRouter()

SESSION_COOKIE = "access_token"


def _current_user_response(user: User) -> CurrentUserResponse:
    return CurrentUserResponse(
        user=UserResponse.model_validate(user),
        organization=OrganizationResponse.model_validate(user.organization) if user.organization else None,
    )


@router.post(
    "/register",
    response_model=UserWithTokenResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a new user",
    description="Register a user. Without organization_id a new firm is created and the user becomes its managing partner.",
)
async def register(
    request: UserRegisterRequest,
    db: AsyncSession = Depends(get_async_session),
):
    """Register a new user with organization."""
    auth_service = AuthService(db)

    try:
        user, organization = await auth_service.register_user(
            email=request.email,
            password=request.password,
            first_name=request.first_name,
            last_name=request.last_name,
            organization_name=request.organization_name,
            organization_id=request.organization_id,
            phone_number=request.phone_number,
        )
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )

    tokens = auth_service.create_tokens(user)

    return UserWithTokenResponse(
        user=UserResponse.model_validate(user),
        organization=OrganizationResponse.model_validate(organization),
        tokens=TokenResponse(**tokens),
    )


@router.post(
    "/login",
    response_model=UserWithTokenResponse,
    summary="Login user",
    description="Authenticate user with email and password.",
)
async def login(
    request: UserLoginRequest,
    fastapi_request: Request,
    response: Response,
    db: AsyncSession = Depends(get_async_session),
):
    """Login with email and password."""
    auth_service = AuthService(db)

    user = await auth_service.authenticate_user(
        email=request.email,
        password=request.password,
    )

    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is deactivated",
        )

    await AuditService(db).log_action(
        "LOGIN",
        "user",
        user.id,
        user_id=user.id,
        organization_id=user.organization_id,
        ip_address=fastapi_request.client.host if fastapi_request.client else None,
        user_agent=fastapi_request.headers.get("user-agent"),
    )
    await db.commit()

    tokens = auth_service.create_tokens(user)
    response.set_cookie(
        key=SESSION_COOKIE,
        value=tokens["access_token"],
        httponly=True,
        max_age=settings.access_token_expire_minutes * 60,
        samesite="lax",
        secure=settings.is_production,
    )

    return UserWithTokenResponse(
        user=UserResponse.model_validate(user),
        organization=OrganizationResponse.model_validate(user.organization) if user.organization else None,
        tokens=TokenResponse(**tokens),
    )


@router.post(
    "/refresh",
    response_model=TokenResponse,
    summary="Refresh access token",
    description="Get a new access token using refresh token.",
)
async def refresh_token(
    request: TokenRefreshRequest,
    db: AsyncSession = Depends(get_async_session),
):
    """Refresh access token."""
    try:
        tokens = await AuthService(db).refresh_tokens(request.refresh_token)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
        )

    return TokenResponse(**tokens)


@router.post(
    "/logout",
    response_model=MessageResponse,
    summary="Logout user",
    description="Clears the session cookie and records the logout in the audit trail.",
)
async def logout(
    response: Response,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    await AuditService(db).log_action(
        "LOGOUT",
        "user",
        current_user.id,
        user_id=current_user.id,
        organization_id=current_user.organization_id,
    )
    await db.commit()
    response.delete_cookie(SESSION_COOKIE)
    return MessageResponse(message="Logged out successfully")


@router.get(
    "/me",
    response_model=CurrentUserResponse,
    summary="Get current user",
    description="Get the current authenticated user with organization.",
)
async def get_me(
    current_user: User = Depends(get_current_active_user),
):
    """Get current authenticated user."""
    return _current_user_response(current_user)


@router.put(
    "/me",
    response_model=CurrentUserResponse,
    summary="Update profile",
    description="Update the current user's name and phone number.",
)
async def update_me(
    request: ProfileUpdateRequest,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    user = await AuthService(db).update_profile(current_user, request.model_dump(exclude_unset=True))
    return _current_user_response(user)


@router.post(
    "/change-password",
    response_model=MessageResponse,
    summary="Change password",
    description="Change the current user's password.",
)
async def change_password(
    request: PasswordChangeRequest,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    """Change current user's password."""
    try:
        await AuthService(db).change_password(
            user=current_user,
            current_password=request.current_password,
            new_password=request.new_password,
        )
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )

    return MessageResponse(message="Password changed successfully")
