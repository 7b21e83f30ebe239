"""Request middleware: request ids, access logging and context cleanup."""

import re
import time
from collections.abc import Awaitable, Callable

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from coursemart.auth.actors import ActorType
from coursemart.core.context import clear_context, set_request_id


logger = structlog.get_logger(__name__)

# Client supplied ids are echoed back in a header and written to logs
_SAFE_REQUEST_ID = re.compile(r"[A-Za-z0-9._:-]{1,128}")


def _actor_of(request: Request) -> tuple[str | None, str | None]:
    """Actor type and account id a session gate attached to the request."""
    for actor_type in ActorType:
        profile = getattr(request.state, actor_type.value, None)
        if profile is not None:
            return actor_type.value, str(profile.id)
    return None, None


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Assign a request id, log each request once it finishes, clear context.

    The session gates run inside the endpoint task, so the account they
    resolve is read back from request.state rather than from contextvars.
    """

    REQUEST_ID_HEADER = "X-Request-ID"
    RESPONSE_TIME_HEADER = "X-Response-Time-Ms"

    def __init__(
        self,
        app: ASGIApp,
        log_requests: bool = True,
        exclude_paths: list[str] | None = None,
    ) -> None:
        super().__init__(app)
        self.log_requests = log_requests
        self.exclude_paths = tuple(exclude_paths or ["/health"])

    def _incoming_request_id(self, request: Request) -> str | None:
        value = request.headers.get(self.REQUEST_ID_HEADER)
        if value and _SAFE_REQUEST_ID.fullmatch(value):
            return value
        return None

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        started = time.perf_counter()
        request_id = set_request_id(self._incoming_request_id(request))
        request.state.request_id = request_id
        logged = self.log_requests and not request.url.path.startswith(self.exclude_paths)

        try:
            response = await call_next(request)
        except Exception as e:
            logger.exception(
                "request_failed",
                method=request.method,
                path=request.url.path,
                error_type=type(e).__name__,
                duration_ms=round((time.perf_counter() - started) * 1000, 2),
            )
            raise
        finally:
            clear_context()

        elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
        response.headers[self.REQUEST_ID_HEADER] = request_id
        response.headers[self.RESPONSE_TIME_HEADER] = str(elapsed_ms)

        if logged:
            actor_type, account_id = _actor_of(request)
            log = logger.warning if response.status_code >= 400 else logger.info
            log(
                "request_completed",
                request_id=request_id,
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_ms=elapsed_ms,
                actor_type=actor_type,
                account_id=account_id,
                client_ip=_client_ip(request),
            )
        return response


def _client_ip(request: Request) -> str | None:
    """Original client address, honouring one level of proxy headers."""
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    if request.client:
        return request.client.host
    return None
