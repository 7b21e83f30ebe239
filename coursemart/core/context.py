"""Per-request values carried in contextvars.

The middleware assigns the request id; a session gate binds the account it
authenticated. The logging processors read both back through get_context().
"""

from contextvars import ContextVar
from typing import Any
from uuid import UUID, uuid4


_request_id: ContextVar[str | None] = ContextVar("request_id", default=None)
_account: ContextVar[tuple[str, str | None] | None] = ContextVar("account", default=None)


def set_request_id(request_id: str | None = None) -> str:
    """Bind a request id, generating a uuid4 when none is given."""
    value = request_id or str(uuid4())
    _request_id.set(value)
    return value


def get_request_id() -> str | None:
    return _request_id.get()


def set_account(account_id: str | UUID | None, actor_type: str | None = None) -> None:
    """Bind the authenticated account ("learner" or "administrator")."""
    _account.set(None if account_id is None else (str(account_id), actor_type))


def get_context() -> dict[str, Any]:
    context: dict[str, Any] = {}
    if request_id := _request_id.get():
        context["request_id"] = request_id
    if account := _account.get():
        context["account_id"], actor_type = account
        if actor_type:
            context["actor_type"] = actor_type
    return context


def clear_context() -> None:
    """Reset everything bound for the finished request."""
    _request_id.set(None)
    _account.set(None)
