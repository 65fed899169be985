"""pepyatka API - Main Application."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from redis.asyncio import Redis
from starlette.exceptions import HTTPException as StarletteHTTPException

from pepyatka.comments.repository import CassandraCommentRepository
from pepyatka.comments.router import router as comments_router
from pepyatka.comments.service import CommentService
from pepyatka.config import get_settings
from pepyatka.core.context import get_request_id
from pepyatka.core.database import init_async_cassandra, shutdown_async_cassandra
from pepyatka.core.logging import configure_structlog, get_logger
from pepyatka.core.middleware import RequestContextMiddleware
from pepyatka.core.pubsub import RealtimePublisher
from pepyatka.core.redis import get_redis, init_redis, shutdown_redis
from pepyatka.core.repository_protocols import (
    CommentRepository,
    GroupRepository,
    PostRepository,
    UserRepository,
)
from pepyatka.groups.dependencies import set_group_service_getter
from pepyatka.groups.repository import CassandraGroupRepository
from pepyatka.groups.router import router as groups_router
from pepyatka.groups.service import GroupService
from pepyatka.health import router as health_router
from pepyatka.posts.dependencies import set_post_service_getter
from pepyatka.posts.repository import CassandraPostRepository
from pepyatka.posts.router import router as posts_router
from pepyatka.posts.service import PostService
from pepyatka.users.dependencies import set_user_service_getter
from pepyatka.users.repository import CassandraUserRepository
from pepyatka.users.router import router as users_router
from pepyatka.users.service import UserService


# Configure logging early (before creating logger)
settings = get_settings()
configure_structlog(settings, log_dir=Path(settings.log_dir))

logger = get_logger(__name__)


# Application state for dependency injection
class AppState:
    """Application state container."""

    cassandra_session: Any = None
    user_service: UserService | None = None
    group_service: GroupService | None = None
    post_service: PostService | None = None
    comment_service: CommentService | None = None


app_state = AppState()


def get_user_service() -> UserService:
    """Get UserService instance from app state."""
    if app_state.user_service is None:
        msg = "UserService not initialized"
        raise RuntimeError(msg)
    return app_state.user_service


def get_group_service() -> GroupService:
    """Get GroupService instance from app state."""
    if app_state.group_service is None:
        msg = "GroupService not initialized"
        raise RuntimeError(msg)
    return app_state.group_service


def get_post_service() -> PostService:
    """Get PostService instance from app state."""
    if app_state.post_service is None:
        msg = "PostService not initialized"
        raise RuntimeError(msg)
    return app_state.post_service


def install_services(
    app: FastAPI,
    *,
    users: UserRepository,
    groups: GroupRepository,
    posts: PostRepository,
    comments: CommentRepository,
    redis: Redis | None = None,
) -> None:
    """Build the service graph over the given repositories.

    Services are stored on `app_state`; the comment service is also placed on
    `app.state`, where its dependency looks it up.
    """
    publisher = RealtimePublisher(get_redis)

    group_service = GroupService(groups, users, publisher=publisher)
    user_service = UserService(users, group_service)
    post_service = PostService(
        posts, comments, user_service, group_service, publisher=publisher
    )
    comment_service = CommentService(
        comments, users, post_service, redis=redis, publisher=publisher
    )

    app_state.group_service = group_service
    app_state.user_service = user_service
    app_state.post_service = post_service
    app_state.comment_service = comment_service
    app.state.comment_service = comment_service
    logger.info("services_initialized", redis_enabled=redis is not None)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    settings = get_settings()
    logger.info(
        "starting_application",
        app_name=settings.app_name,
        version=settings.app_version,
        environment=settings.environment,
    )

    # Redis is non-critical: realtime events and rate limits degrade to no-ops
    redis_client = None
    if settings.redis_enabled:
        try:
            redis_client = await init_redis()
        except Exception as e:
            logger.warning(
                "redis_init_skipped",
                error=str(e),
                message="Running without Redis - realtime events and rate limits disabled",
            )

    try:
        session = await init_async_cassandra()
    except ConnectionError as e:
        if settings.is_production:
            raise
        logger.warning(
            "database_init_skipped",
            error=str(e),
            message="Running without database connection",
        )
    else:
        app_state.cassandra_session = session
        keyspace = settings.cassandra_keyspace
        install_services(
            app,
            users=CassandraUserRepository(session, keyspace),
            groups=CassandraGroupRepository(session, keyspace),
            posts=CassandraPostRepository(session, keyspace),
            comments=CassandraCommentRepository(session, keyspace),
            redis=redis_client,
        )

    yield

    # Shutdown
    logger.info("shutting_down_application")
    await shutdown_redis()
    await shutdown_async_cassandra()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    # debug stays False so Starlette never renders stack traces; the handlers
    # below log full details and return safe messages.
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="pepyatka social network API",
        debug=False,
        lifespan=lifespan,
        default_response_class=ORJSONResponse,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        openapi_url="/openapi.json" if settings.is_development else None,
    )

    # Request context middleware (must be added first - outermost)
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

    def _get_request_id_safe(request: Request) -> str | None:
        if hasattr(request.state, "request_id"):
            return request.state.request_id
        return get_request_id()

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> ORJSONResponse:
        """Render HTTP errors as the standard error body."""
        request_id = _get_request_id_safe(request)

        logger.warning(
            "http_exception",
            status_code=exc.status_code,
            detail=str(exc.detail),
            path=request.url.path,
            method=request.method,
        )

        return ORJSONResponse(
            status_code=exc.status_code,
            content={
                "error": True,
                "message": str(exc.detail)
                if exc.status_code < status.HTTP_500_INTERNAL_SERVER_ERROR
                else "Internal server error",
                "status_code": exc.status_code,
                "request_id": request_id,
            },
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> ORJSONResponse:
        request_id = _get_request_id_safe(request)

        logger.warning(
            "validation_error",
            errors=exc.errors(),
            path=request.url.path,
            method=request.method,
        )

        return ORJSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={
                "error": True,
                "message": "Validation error",
                "status_code": 422,
                "request_id": request_id,
                "details": [
                    {
                        "field": ".".join(str(loc) for loc in err.get("loc", [])),
                        "message": err.get("msg", "Invalid value"),
                    }
                    for err in exc.errors()
                ],
            },
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(
        request: Request, exc: Exception
    ) -> ORJSONResponse:
        """Catch-all for unhandled exceptions.

        Details are logged; the client only gets a generic message.
        """
        request_id = _get_request_id_safe(request)

        logger.exception(
            "unhandled_exception",
            error_type=type(exc).__name__,
            error_message=str(exc),
            path=request.url.path,
            method=request.method,
        )

        return ORJSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": True,
                "message": "An unexpected error occurred. Please try again later.",
                "status_code": 500,
                "request_id": request_id,
            },
        )

    app.include_router(health_router)
    app.include_router(users_router)
    app.include_router(groups_router)
    app.include_router(posts_router)
    app.include_router(comments_router)

    @app.get("/", include_in_schema=False)
    async def root() -> dict[str, str]:
        return {"message": "pepyatka API", "version": settings.app_version}

    return app


set_user_service_getter(get_user_service)
set_group_service_getter(get_group_service)
set_post_service_getter(get_post_service)


app = create_app()
