from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from momantza.apps.api.deps import bearer_token, get_request_context, get_services, raise_for_outcome
from momantza.core.context import RequestContext
from momantza.domain.models import User
from momantza.services.auth.service import AuthSession
from momantza.services.registry import Services


router = APIRouter(prefix="/api/auth", tags=["auth"])


class LoginRequest(BaseModel):
    email: str = Field(min_length=1, max_length=100)
    password: str = Field(min_length=1)


class RegisterRequest(LoginRequest):
    name: str = Field(min_length=1, max_length=100)


class RefreshRequest(BaseModel):
    refresh_token: str = Field(min_length=1)


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(min_length=1)
    new_password: str = Field(min_length=1)


class UserResponse(BaseModel):
    # Never includes the password hash.
    id: str
    email: str
    name: str
    organization_id: str
    role: str
    accessible_halls: list[str]
    created_at: datetime
    updated_at: datetime


class LoginResponse(BaseModel):
    user: UserResponse
    token: str
    refresh_token: str
    expires_at: datetime
    message: str


class MessageResponse(BaseModel):
    message: str


def _user_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        email=user.email,
        name=user.name,
        organization_id=user.organization_id,
        role=user.role,
        accessible_halls=list(user.accessible_halls),
        created_at=user.created_at,
        updated_at=user.updated_at,
    )


def _login_response(session: AuthSession, message: str) -> LoginResponse:
    return LoginResponse(
        user=_user_response(session.user),
        token=session.access_token,
        refresh_token=session.refresh_token,
        expires_at=session.expires_at,
        message=message,
    )


@router.post("/login", response_model=LoginResponse)
async def login(
    payload: LoginRequest,
    context: RequestContext = Depends(get_request_context),
    services: Services = Depends(get_services),
) -> LoginResponse:
    outcome = await services.auth.login(payload.email, payload.password, context)
    raise_for_outcome(outcome, "Invalid credentials")
    return _login_response(outcome.value, "Login successful")


@router.post("/logout", response_model=MessageResponse)
async def logout(token: str = Depends(bearer_token), services: Services = Depends(get_services)) -> MessageResponse:
    outcome = await services.auth.logout(token)
    raise_for_outcome(outcome, "Logout failed")
    return MessageResponse(message="Logged out successfully")


@router.get("/me", response_model=UserResponse)
async def me(
    token: str = Depends(bearer_token),
    context: RequestContext = Depends(get_request_context),
    services: Services = Depends(get_services),
) -> UserResponse:
    outcome = await services.auth.get_current_user(token, context)
    raise_for_outcome(outcome, "Invalid token")
    return _user_response(outcome.value)


@router.post("/refresh", response_model=LoginResponse)
async def refresh(payload: RefreshRequest, services: Services = Depends(get_services)) -> LoginResponse:
    outcome = await services.auth.refresh(payload.refresh_token)
    raise_for_outcome(outcome, "Invalid refresh token")
    return _login_response(outcome.value, "Token refreshed")


@router.post("/register", response_model=UserResponse)
async def register(
    payload: RegisterRequest,
    context: RequestContext = Depends(get_request_context),
    services: Services = Depends(get_services),
) -> UserResponse:
    outcome = await services.auth.register(payload.email, payload.password, payload.name, context)
    raise_for_outcome(outcome, "Registration failed")
    return _user_response(outcome.value)


@router.post("/change-password", response_model=MessageResponse)
async def change_password(
    payload: ChangePasswordRequest,
    token: str = Depends(bearer_token),
    context: RequestContext = Depends(get_request_context),
    services: Services = Depends(get_services),
) -> MessageResponse:
    current = await services.auth.get_current_user(token, context)
    raise_for_outcome(current, "Invalid token")
    outcome = await services.auth.change_password(
        current.value.id, payload.current_password, payload.new_password, context
    )
    raise_for_outcome(outcome, "Password change failed")
    return MessageResponse(message="Password changed successfully")
