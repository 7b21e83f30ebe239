"""FastAPI dependencies for authentication.

Provides:
- Account service lookup per actor type
- SessionGate: the per-request access-token gate, one instance per actor type
- Type aliases for cleaner route signatures
"""

from typing import Annotated
from uuid import UUID

import structlog
from fastapi import Depends, HTTPException, Request, status
from jose import JWTError

from coursemart.auth.actors import ActorType
from coursemart.auth.schemas import AccountResponse
from coursemart.auth.security import decode_access_token
from coursemart.auth.service import AccountService
from coursemart.config.settings import get_settings
from coursemart.core.context import set_account
from coursemart.core.errors import InvalidTokenError, UnauthorizedError


logger = structlog.get_logger(__name__)


# ==============================================================================
# Service Lookup
# ==============================================================================


def account_service_attr(actor_type: ActorType) -> str:
    """Name of the app.state attribute holding the actor type's service."""
    return f"{actor_type.value}_account_service"


def get_account_service_for(actor_type: ActorType, request: Request) -> AccountService:
    """Get the AccountService of an actor type from app state."""
    service = getattr(request.app.state, account_service_attr(actor_type), None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Account service unavailable",
        )
    return service


async def get_learner_service(request: Request) -> AccountService:
    return get_account_service_for(ActorType.LEARNER, request)


async def get_administrator_service(request: Request) -> AccountService:
    return get_account_service_for(ActorType.ADMINISTRATOR, request)


LearnerServiceDep = Annotated[AccountService, Depends(get_learner_service)]
AdministratorServiceDep = Annotated[AccountService, Depends(get_administrator_service)]


# ==============================================================================
# Token Extraction
# ==============================================================================


def get_access_token(request: Request) -> str | None:
    """Extract the access token: cookie first, then Bearer header."""
    cookie_token = request.cookies.get(get_settings().access_cookie_name)
    if cookie_token:
        return cookie_token

    auth_header = request.headers.get("Authorization")
    if not auth_header:
        return None

    parts = auth_header.split(maxsplit=1)
    if len(parts) != 2 or parts[0].lower() != "bearer" or not parts[1].strip():
        return None
    return parts[1].strip()


# ==============================================================================
# Session Gate
# ==============================================================================


class SessionGate:
    """Per-request gate for one actor type.

    Steps: extract the access token, verify it with the actor type's access
    secret, reload the account from storage, attach the public profile to
    request.state. The gate never writes to storage.

    With optional=True a missing or unusable credential yields None instead of
    an error, so two gates can be combined on one route.
    """

    def __init__(self, actor_type: ActorType, optional: bool = False) -> None:
        self.actor_type = actor_type
        self.optional = optional

    async def __call__(self, request: Request) -> AccountResponse | None:
        token = get_access_token(request)
        if not token:
            if self.optional:
                return None
            raise UnauthorizedError

        try:
            payload = decode_access_token(token, self.actor_type)
            account_id = UUID(payload["sub"])
        except (JWTError, ValueError) as e:
            if self.optional:
                return None
            raise InvalidTokenError from e

        service = get_account_service_for(self.actor_type, request)
        account = await service.get_by_id(account_id)
        if account is None:
            if self.optional:
                return None
            logger.info(
                "session_account_missing",
                actor_type=self.actor_type.value,
                account_id=str(account_id),
            )
            raise InvalidTokenError

        profile = service.to_response(account)
        setattr(request.state, self.actor_type.value, profile)
        set_account(profile.id, self.actor_type.value)
        return profile


learner_gate = SessionGate(ActorType.LEARNER)
administrator_gate = SessionGate(ActorType.ADMINISTRATOR)
optional_learner_gate = SessionGate(ActorType.LEARNER, optional=True)
optional_administrator_gate = SessionGate(ActorType.ADMINISTRATOR, optional=True)


# ==============================================================================
# Type Aliases for Cleaner Code
# ==============================================================================

CurrentLearner = Annotated[AccountResponse, Depends(learner_gate)]
CurrentAdministrator = Annotated[AccountResponse, Depends(administrator_gate)]
OptionalLearner = Annotated[AccountResponse | None, Depends(optional_learner_gate)]
OptionalAdministrator = Annotated[
    AccountResponse | None, Depends(optional_administrator_gate)
]


def gate_for(actor_type: ActorType) -> SessionGate:
    """Required gate of an actor type."""
    return learner_gate if actor_type is ActorType.LEARNER else administrator_gate


def service_dependency_for(actor_type: ActorType):
    """Service dependency callable of an actor type."""
    if actor_type is ActorType.LEARNER:
        return get_learner_service
    return get_administrator_service
