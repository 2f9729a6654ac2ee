"""Main FastAPI application."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from eva import __version__
from eva.api.dependencies import close_store
from eva.api.endpoints import router
from eva.exceptions import EvaError
from eva.utils.logging import get_logger, setup_logging

setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Close shared clients on shutdown."""
    logger.info(f"Starting Prima Facie EVA {__version__}")
    yield
    await close_store()
    logger.info("Shutdown complete")


# Create FastAPI application
app = FastAPI(
    title="Prima Facie EVA",
    description=(
        "AI assistant for law firms: staff chat over firm data, client portal answers, "
        "and proactive client notifications."
    ),
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
    tags_metadata=[
        {
            "name": "Chat",
            "description": "Conversational turns for staff members and client portal users.",
        },
        {
            "name": "Tools",
            "description": "Human confirmation of write actions proposed by the assistant.",
        },
        {
            "name": "Conversations",
            "description": "Management of the caller's AI conversations.",
        },
        {
            "name": "Notifications",
            "description": "Proactive client notifications and the daily deadline scan.",
        },
        {
            "name": "Health",
            "description": "Service health monitoring and status checks.",
        },
    ],
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(EvaError)
async def eva_error_handler(request: Request, exc: EvaError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}", exc_info=exc.original_error)
    else:
        logger.info(f"{request.method} {request.url.path} rejected with {exc.status_code}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    message = errors[0].get("msg", "Requisição inválida") if errors else "Requisição inválida"
    return JSONResponse(status_code=400, content={"error": message})


# Include routers
app.include_router(router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("eva.main:app", host="0.0.0.0", port=8000, reload=True, log_level="info")
