from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import make_asgi_app

from api.middleware.exception_handlers import register_exception_handlers
from api.middleware.request_context import RequestContextMiddleware
from api.routes import websocket
from api.routes.v1 import router as v1_router
from api.services.blob_service import BlobService
from api.services.chat_repository import ChatRepository
from api.services.chat_service import ChatService, ToolsFactory
from api.services.document_repository import DocumentRepository
from api.services.model_client import ModelClient
from api.streaming import StreamHub
from core.constants import Settings, get_settings
from models.api_models import UserInfo
from tools import ToolContext, ToolRegistry, create_chat_tools
from utils.client_factory import create_http_client, create_openai_client
from utils.db_utils import check_pool_health, create_database_pool, graceful_pool_close
from utils.logger import configure_uvicorn_logging, logger

# Settings are loaded via Pydantic Settings with environment-specific file support
# (.env, .env.{APP_ENV}, .env.local) - no manual dotenv loading needed
settings = get_settings()

if settings.debug:
    from core.constants import _get_env_files

    logger.info(f"Env files: {[f.name for f in _get_env_files()]}")
    logger.info(
        f"Settings: app_env={settings.app_env}, "
        f"db_pool=[{settings.db_pool_min_size},{settings.db_pool_max_size}], "
        f"heartbeat={settings.heartbeat_interval}s/{settings.heartbeat_lifetime}s"
    )

# Configure uvicorn logging at module level to ensure workers use it
configure_uvicorn_logging()


def build_tools_factory(app: FastAPI, settings: Settings) -> ToolsFactory:
    """Tool sets are built per turn so each carries the requesting user and chat."""

    def factory(user: UserInfo, chat_id: str) -> ToolRegistry:
        context = ToolContext(
            user_id=user.id,
            chat_id=chat_id,
            documents=DocumentRepository(app.state.db_pool),
            model=app.state.model_client,
            http=app.state.tool_http_client,
            tavily_api_key=settings.tavily_api_key,
            tavily_max_retries=settings.tavily_max_retries,
        )
        return create_chat_tools(context)

    return factory


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: startup and shutdown with graceful handling."""
    # Model provider clients
    app.state.http_client = create_http_client(read_timeout=settings.http_read_timeout)
    app.state.tool_http_client = create_http_client(read_timeout=settings.tool_timeout)
    openai_client = create_openai_client(
        settings.openai_api_key,
        base_url=settings.openai_base_url,
        http_client=app.state.http_client,
    )
    app.state.model_client = ModelClient(openai_client, title_model=settings.title_model)
    logger.info("OpenAI client configured")

    app.state.db_pool = await create_database_pool(
        dsn=settings.database_url,
        min_size=settings.db_pool_min_size,
        max_size=settings.db_pool_max_size,
        command_timeout=settings.db_command_timeout,
        connection_timeout=settings.db_connection_timeout,
    )

    # Verify database connectivity
    health = await check_pool_health(app.state.db_pool)
    if not health["healthy"]:
        logger.error("Database health check failed during startup")
        raise RuntimeError("Database connection failed")
    logger.info(f"Database pool healthy: {health}")

    # Process-wide fan-out state; initialized empty and torn down on shutdown
    app.state.stream_hub = StreamHub.create(
        heartbeat_interval=settings.heartbeat_interval,
        heartbeat_lifetime=settings.heartbeat_lifetime,
        ws_send_timeout=settings.ws_send_timeout,
    )
    app.state.blob_service = BlobService(settings)
    app.state.chat_service = ChatService(
        chats=ChatRepository(app.state.db_pool),
        model=app.state.model_client,
        registry=app.state.stream_hub.registry,
        tools_factory=build_tools_factory(app, settings),
    )
    logger.info("Chat relay started")

    try:
        yield
    finally:
        logger.info("Initiating graceful shutdown sequence")

        # Phase 1: Let in-flight turns persist their assistant messages
        await app.state.chat_service.shutdown(timeout=settings.shutdown_timeout)

        # Phase 2: Stop heartbeats and close every subscribed channel
        await app.state.stream_hub.shutdown()

        # Phase 3: Close HTTP clients
        await app.state.tool_http_client.aclose()
        await app.state.http_client.aclose()

        # Phase 4: Gracefully close database pool
        await graceful_pool_close(app.state.db_pool, timeout=settings.shutdown_timeout)
        logger.info("Shutdown complete")


app = FastAPI(
    title="Chat Relay API",
    description="""
## Chat Relay API

Conversational assistant backend. A chat turn streams the model's reply
to every connection subscribed to the chat while messages are persisted
around the stream.

### Streaming
- `POST /api/v1/chat` answers with server-sent events
- `GET /api/v1/chats/{chat_id}/stream` and `WS /ws/chats/{chat_id}` follow a chat live

### Authentication
All endpoints except health checks require a JWT Bearer token.
Use `/api/v1/auth/login` to obtain one.
""",
    version=settings.app_version,
    lifespan=lifespan,
    openapi_tags=[
        {"name": "Health", "description": "Health check endpoints for monitoring and orchestration"},
        {"name": "Authentication", "description": "Login and registration"},
        {"name": "Chat", "description": "Chat turns and live stream subscription"},
        {"name": "Chats", "description": "History, visibility, deletion and votes"},
        {"name": "Messages", "description": "Message edits"},
        {"name": "Documents", "description": "Document versions and suggestions"},
        {"name": "Files", "description": "Upload and document extraction"},
        {"name": "WebSocket", "description": "Live chat frames over WebSocket"},
    ],
    openapi_url="/api/v1/openapi.json",
    docs_url="/api/v1/docs",
    redoc_url="/api/v1/redoc",
)

# Register global exception handlers for consistent error responses
register_exception_handlers(app)

# Note: Middleware is executed in reverse order of registration
app.add_middleware(RequestContextMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID", "X-Response-Time"],
)

# Routes - API v1
app.include_router(v1_router, prefix="/api/v1")

# WebSocket routes (not versioned - protocol-level)
app.include_router(websocket.router, prefix="/ws", tags=["WebSocket"])

# Prometheus scrape endpoint
app.mount("/metrics", make_asgi_app())


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.is_development,
        reload_dirs=["src"],
        log_config=None,
    )
