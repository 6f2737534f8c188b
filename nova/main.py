"""
FastAPI application bootstrap with: \n
- Lifespan-managed construction of the database engine, answer provider,
  AutoRAG client, object storage and streaming orchestrator \n
- CORS configured for the frontend \n
- JSON error handlers for service errors, authentication and validation \n

Environment contract (from `settings`): \n
- DATABASE_URL / DB_*: database connection. \n
- CREATE_TABLES: create missing tables at startup. \n
- ANSWER_PROVIDER: 'autorag' (default) or 'chat'. \n
- FRONTEND_URL: allowed CORS origin. \n
- LOG_LEVEL: level of the `nova` loggers. \n

Run with ``uvicorn nova.main:app``.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse

from nova.api.answer_provider import build_answer_provider, build_rag_client
from nova.api.auth import AuthenticationRequired, JWTSessionAuthProvider
from nova.api.blob_store import BlobStore
from nova.api.orchestrator import StreamingOrchestrator
from nova.api.routes import auth, chat, conversations, documents, groups, invites, onboarding, organizations
from nova.database.config.config import Settings
from nova.database.config.config import settings as default_settings
from nova.database.config.connection_engine import bind_engine, build_engine, create_tables, dispose_engine
from nova.database.core.exceptions import NovaError

logger = logging.getLogger("uvicorn")
"""Logger instance for capturing and emitting Uvicorn server logs."""

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str) -> None:
    """Attach a stream handler to the `nova` logger hierarchy at `level`."""
    nova_logger = logging.getLogger("nova")
    nova_logger.setLevel(level.upper())
    if not nova_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        nova_logger.addHandler(handler)


def _wants_json(request: Request) -> bool:
    return request.url.path.startswith("/api/") or "application/json" in request.headers.get("accept", "")


async def nova_error_handler(request: Request, exc: NovaError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.detail)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


async def authentication_handler(request: Request, exc: AuthenticationRequired):
    """JSON callers get 401; browser navigations are redirected to login, verification or onboarding."""
    if _wants_json(request):
        return JSONResponse(status_code=401, content={"detail": exc.detail, "redirectTo": exc.redirect_to})
    return RedirectResponse(url=exc.redirect_to, status_code=302)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


def create_app(
    settings: Settings | None = None,
    engine=None,
    answer_provider=None,
    blob_store=None,
    auth_provider=None,
    rag_client=None,
) -> FastAPI:
    """
    Build the application.

    Every collaborator may be injected (tests pass an in-memory engine and
    fakes); anything left as None is built from `settings` at startup and
    released at shutdown.

    Parameters
    ----------
    settings : Settings | None
        Defaults to the process-wide settings.
    engine : sqlalchemy.engine.Engine | None
        Database engine; an injected engine is bound but not disposed.
    answer_provider : AnswerProvider | None
        Backend producing chat answers.
    blob_store : BlobStore | None
        Document storage.
    auth_provider : AuthProvider | None
        Identity resolution; defaults to the signed session cookie.
    rag_client : AutoRAGAnswerProvider | None
        Used for document sync after uploads.
    """
    settings = settings or default_settings
    configure_logging(settings.LOG_LEVEL)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        App lifespan manager.

        Notes
        ------------
        - On startup (before yielding): bind the engine, optionally create
          tables, construct the external clients and the orchestrator, and
          attach them to `app.state`.
        - On shutdown (after yielding): close the HTTP clients and dispose
          the engine when it was created here.
        """
        owned_engine = engine is None
        db_engine = build_engine(settings) if owned_engine else engine
        bind_engine(db_engine)
        if settings.CREATE_TABLES:
            create_tables(db_engine)

        rag = rag_client if rag_client is not None else build_rag_client(settings)
        provider = answer_provider if answer_provider is not None else build_answer_provider(settings, rag)
        app.state.rag_client = rag
        app.state.answer_provider = provider
        app.state.blob_store = blob_store if blob_store is not None else BlobStore.from_settings(settings)
        app.state.auth_provider = (
            auth_provider if auth_provider is not None else JWTSessionAuthProvider(settings.AUTH_COOKIE_NAME)
        )
        app.state.orchestrator = StreamingOrchestrator(
            provider,
            queue_size=settings.STREAM_QUEUE_SIZE,
        )
        logger.info("Nova started (answer provider: %s)", type(provider).__name__)

        try:
            yield
        finally:
            await provider.aclose()
            if rag is not None and rag is not provider:
                await rag.aclose()
            if owned_engine:
                dispose_engine(db_engine)
            logger.info("Nova shut down")

    app = FastAPI(title="Nova", lifespan=lifespan)
    app.state.settings = settings

    # -----------------------
    # CORS configuration
    # -----------------------
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.FRONTEND_URL],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # -----------------------
    # Error handlers
    # -----------------------
    app.add_exception_handler(NovaError, nova_error_handler)
    app.add_exception_handler(AuthenticationRequired, authentication_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    # -----------------------
    # API routes
    # -----------------------
    for module in (auth, onboarding, chat, conversations, organizations, groups, invites, documents):
        app.include_router(module.router)

    return app


app = create_app()
"""Application served by uvicorn."""
