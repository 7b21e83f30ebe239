"""Account API endpoints.

The same set of routes is mounted once per actor type:
- /v1/users for learners
- /v1/admin for administrators

Provides routes for:
- Registration and login
- Token refresh and logout
- Profile management
"""

from typing import Annotated

from fastapi import APIRouter, Body, Depends, Request, Response, status

from coursemart.auth.actors import ActorType
from coursemart.auth.dependencies import gate_for, service_dependency_for
from coursemart.auth.schemas import (
    AccountResponse,
    ChangePasswordRequest,
    LoginRequest,
    MessageResponse,
    RefreshRequest,
    RegisterRequest,
    TokenResponse,
    UpdateProfileRequest,
)
from coursemart.auth.service import AccountService
from coursemart.config.settings import get_settings
from coursemart.core.errors import UnauthorizedError


# ==============================================================================
# Cookie Helpers
# ==============================================================================


def set_auth_cookies(
    response: Response,
    actor_type: ActorType,
    access_token: str,
    refresh_token: str,
) -> None:
    """Deliver both tokens as httpOnly cookies."""
    settings = get_settings()
    prefix = actor_type.settings_prefix

    for name, value, lifetime in (
        (
            settings.access_cookie_name,
            access_token,
            settings.token_lifetime(prefix, "access"),
        ),
        (
            settings.refresh_cookie_name,
            refresh_token,
            settings.token_lifetime(prefix, "refresh"),
        ),
    ):
        response.set_cookie(
            key=name,
            value=value,
            httponly=settings.auth_cookie_httponly,
            secure=settings.auth_cookie_secure,
            samesite=settings.auth_cookie_samesite,
            max_age=int(lifetime.total_seconds()),
            path="/",
        )


def clear_auth_cookies(response: Response) -> None:
    settings = get_settings()
    for name in (settings.access_cookie_name, settings.refresh_cookie_name):
        response.delete_cookie(
            key=name,
            path="/",
            httponly=settings.auth_cookie_httponly,
            secure=settings.auth_cookie_secure,
            samesite=settings.auth_cookie_samesite,
        )


def _token_response(
    service: AccountService, account, access_token: str, refresh_token: str
) -> TokenResponse:
    lifetime = get_settings().token_lifetime(
        service.actor_type.settings_prefix, "access"
    )
    return TokenResponse(
        access_token=access_token,
        refresh_token=refresh_token,
        expires_in=int(lifetime.total_seconds()),
        account=service.to_response(account),
    )


# ==============================================================================
# Router Factory
# ==============================================================================


def build_account_router(actor_type: ActorType, prefix: str, tag: str) -> APIRouter:
    """Build the account routes for one actor type."""
    router = APIRouter(prefix=prefix, tags=[tag])

    CurrentAccount = Annotated[AccountResponse, Depends(gate_for(actor_type))]
    ServiceDep = Annotated[AccountService, Depends(service_dependency_for(actor_type))]

    # ==========================================================================
    # Public Endpoints (No Auth Required)
    # ==========================================================================

    @router.post(
        "/register",
        response_model=AccountResponse,
        status_code=status.HTTP_201_CREATED,
        summary=f"Register {actor_type.label.lower()}",
        responses={
            409: {"description": "Username or email already exists"},
            422: {"description": "Validation error"},
        },
    )
    async def register(data: RegisterRequest, service: ServiceDep) -> AccountResponse:
        """Create an account. Does not log in."""
        account = await service.register(data)
        return service.to_response(account)

    @router.post(
        "/login",
        response_model=TokenResponse,
        summary=f"{actor_type.label} login",
        responses={401: {"description": "Invalid credentials"}},
    )
    async def login(
        data: LoginRequest,
        response: Response,
        service: ServiceDep,
    ) -> TokenResponse:
        """Authenticate with username or email.

        Tokens are set as httpOnly cookies and also returned in the body.
        """
        account, access_token, refresh_token = await service.login(data)
        set_auth_cookies(response, actor_type, access_token, refresh_token)
        return _token_response(service, account, access_token, refresh_token)

    @router.post(
        "/refresh-access-token",
        response_model=TokenResponse,
        summary="Rotate refresh token",
        responses={401: {"description": "Invalid or expired refresh token"}},
    )
    async def refresh(
        request: Request,
        response: Response,
        service: ServiceDep,
        data: Annotated[RefreshRequest | None, Body()] = None,
    ) -> TokenResponse:
        """Issue a new token pair from the refresh token in cookie or body.

        The presented refresh token stops working once this call succeeds.
        """
        presented = request.cookies.get(get_settings().refresh_cookie_name) or (
            data.refresh_token if data else None
        )
        if not presented:
            raise UnauthorizedError("Refresh token required")

        account, access_token, refresh_token = await service.refresh_tokens(presented)
        set_auth_cookies(response, actor_type, access_token, refresh_token)
        return _token_response(service, account, access_token, refresh_token)

    # ==========================================================================
    # Protected Endpoints (Auth Required)
    # ==========================================================================

    @router.post(
        "/logout",
        response_model=MessageResponse,
        summary=f"{actor_type.label} logout",
    )
    async def logout(
        response: Response,
        account: CurrentAccount,
        service: ServiceDep,
    ) -> MessageResponse:
        """Revoke the stored refresh token and clear cookies."""
        await service.logout(account.id)
        clear_auth_cookies(response)
        return MessageResponse(message=f"{actor_type.label} logged out")

    @router.get("/me", response_model=AccountResponse, summary="Current profile")
    async def get_me(account: CurrentAccount) -> AccountResponse:
        """Profile loaded from storage by the session gate."""
        return account

    @router.patch("/update", response_model=AccountResponse, summary="Update profile")
    async def update_profile(
        data: UpdateProfileRequest,
        account: CurrentAccount,
        service: ServiceDep,
    ) -> AccountResponse:
        """Update username, email, contact or address."""
        updated = await service.update_profile(account.id, data)
        return service.to_response(updated)

    @router.patch("/password", response_model=MessageResponse, summary="Change password")
    async def change_password(
        data: ChangePasswordRequest,
        account: CurrentAccount,
        service: ServiceDep,
    ) -> MessageResponse:
        await service.change_password(account.id, data.old_password, data.new_password)
        return MessageResponse(message="Password updated successfully")

    @router.delete("", response_model=MessageResponse, summary="Delete account")
    async def delete_account(
        response: Response,
        account: CurrentAccount,
        service: ServiceDep,
    ) -> MessageResponse:
        await service.delete_account(account.id)
        clear_auth_cookies(response)
        return MessageResponse(message=f"{actor_type.label} account deleted")

    return router


learner_router = build_account_router(ActorType.LEARNER, "/v1/users", "learners")
administrator_router = build_account_router(
    ActorType.ADMINISTRATOR, "/v1/admin", "administrators"
)
