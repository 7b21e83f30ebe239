"""CourseMart API application."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path

from cassandra.cluster import Session
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse

from coursemart.auth.actors import ActorType
from coursemart.auth.dependencies import account_service_attr
from coursemart.auth.router import administrator_router, learner_router
from coursemart.auth.service import AccountService
from coursemart.config import Settings, get_settings
from coursemart.core.database import init_async_cassandra, shutdown_async_cassandra
from coursemart.core.handlers import register_exception_handlers
from coursemart.core.logging import configure_structlog, get_logger
from coursemart.core.middleware import RequestContextMiddleware
from coursemart.courses.router import (
    router_admin_courses,
    router_courses,
    router_learner_courses,
    router_modules,
)
from coursemart.courses.service import CourseService, ModuleService
from coursemart.health.router import router as health_router
from coursemart.payments.gateway import RazorpayGateway
from coursemart.payments.router import router as payments_router
from coursemart.payments.service import PaymentService
from coursemart.progress.router import router as progress_router
from coursemart.progress.service import ProgressService
from coursemart.storage.service import FirebaseStorageService


settings = get_settings()
configure_structlog(settings, log_dir=Path(settings.log_dir))

logger = get_logger(__name__)

ROUTERS = (
    health_router,
    learner_router,
    router_learner_courses,
    administrator_router,
    router_admin_courses,
    router_courses,
    router_modules,
    progress_router,
    payments_router,
)


def init_services(app: FastAPI, session: Session, settings: Settings) -> None:
    """Attach the Cassandra-backed services to app.state.

    Routers look services up by attribute name and answer 503 while one
    is missing, so a failed startup leaves the API up but degraded.
    """
    keyspace = settings.cassandra_keyspace
    state = app.state

    for actor_type in ActorType:
        service = AccountService(session=session, keyspace=keyspace, actor_type=actor_type)
        setattr(state, account_service_attr(actor_type), service)

    state.storage_service = FirebaseStorageService(settings)
    state.course_service = CourseService(
        session=session, keyspace=keyspace, storage=state.storage_service
    )
    state.module_service = ModuleService(session=session, keyspace=keyspace)
    state.progress_service = ProgressService(
        session=session, keyspace=keyspace, module_service=state.module_service
    )
    state.payment_service = PaymentService(
        session=session,
        keyspace=keyspace,
        settings=settings,
        course_service=state.course_service,
        gateway=RazorpayGateway(settings),
    )
    logger.info(
        "services_initialized",
        storage_configured=settings.firebase_configured,
        gateway_configured=settings.razorpay_configured,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    settings = get_settings()
    logger.info(
        "application_starting",
        app_name=settings.app_name,
        version=settings.app_version,
        environment=settings.environment,
    )

    app.state.cassandra_session = None
    try:
        session = await init_async_cassandra()
    except Exception as e:
        logger.warning("database_unavailable", error=str(e))
    else:
        init_services(app, session, settings)
        app.state.cassandra_session = session

    yield

    logger.info("application_stopping")
    await shutdown_async_cassandra()


def create_app() -> FastAPI:
    settings = get_settings()
    docs_enabled = settings.is_development

    # debug stays off: handlers log the traceback and answer with a safe message
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Course selling platform API",
        debug=False,
        lifespan=lifespan,
        default_response_class=ORJSONResponse,
        docs_url="/docs" if docs_enabled else None,
        redoc_url="/redoc" if docs_enabled else None,
        openapi_url="/openapi.json" if docs_enabled else None,
    )

    app.add_middleware(
        RequestContextMiddleware,
        log_requests=settings.log_requests,
        exclude_paths=settings.log_exclude_paths,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
        max_age=settings.cors_max_age,
    )

    register_exception_handlers(app)
    for router in ROUTERS:
        app.include_router(router)

    @app.get("/", include_in_schema=False)
    async def root(request: Request) -> dict[str, str]:
        return {
            "message": "CourseMart API",
            "version": settings.app_version,
            "docs": f"{request.url}docs",
        }

    return app


app = create_app()
