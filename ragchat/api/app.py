"""FastAPI application factory and configuration.

Main application entry point with lifespan management, middleware,
error handlers, and router registration.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ragchat.api.catalog import router as catalog_router
from ragchat.api.chat import router as chat_router
from ragchat.api.files import router as files_router
from ragchat.api.sessions import router as sessions_router
from ragchat.api.upload import router as upload_router
from ragchat.errors import RagChatError
from ragchat.models.schemas import ErrorResponse

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Manage application startup and shutdown lifecycle.

    Args:
        app: The FastAPI application instance.

    Yields:
        Control to the application while it runs.
    """
    # Startup
    logger.info("Starting RAG Chat API...")
    yield
    # Shutdown
    logger.info("Shutting down RAG Chat API...")


async def rag_chat_error_handler(request: Request, exc: RagChatError) -> JSONResponse:
    """Render domain errors as ``{"error": message}`` with their mapped status."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.warning(f"{request.method} {request.url.path} rejected: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=ErrorResponse(error=exc.message).model_dump())


async def request_validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Reshape FastAPI's request validation errors into a 400 ``{"error": ...}`` body."""
    errors = exc.errors()
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()))
        message = f"Invalid request field {location}: {first.get('msg')}"
    else:
        message = "Invalid request"
    logger.warning(f"{request.method} {request.url.path} rejected: {message}")
    return JSONResponse(status_code=400, content=ErrorResponse(error=message).model_dump())


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance.
    """
    application = FastAPI(
        title="RAG Chat API",
        description=(
            "Retrieval-Augmented Generation API for document Q&A. "
            "Ingests large documents in bounded memory, keeps token-aware "
            "conversation history per session, and streams answers, sources, "
            "and tool calls as Server-Sent Events."
        ),
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["*"],
    )

    application.add_exception_handler(RagChatError, rag_chat_error_handler)
    application.add_exception_handler(RequestValidationError, request_validation_error_handler)

    application.include_router(upload_router)
    application.include_router(chat_router)
    application.include_router(sessions_router)
    application.include_router(files_router)
    application.include_router(catalog_router)

    @application.get("/health")
    async def health_check() -> dict[str, str]:
        """Check service health status."""
        return {"status": "healthy", "service": "ragchat"}

    return application


app = create_app()
