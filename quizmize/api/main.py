"""
quizmize.api.main — FastAPI application entry point
=====================================================

Run with::

    uvicorn quizmize.api.main:app --reload --port 8000

JSON endpoints live under ``/api``; everything else is a server-rendered
page.  Service errors are translated here: JSON bodies for ``/api`` paths,
the ``error.html`` page otherwise.
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

load_dotenv()

from quizmize.api.auth import router as auth_router  # noqa: E402
from quizmize.api.deps import get_engine  # noqa: E402
from quizmize.api.routes.chat import router as chat_router  # noqa: E402
from quizmize.api.routes.groups import router as groups_router  # noqa: E402
from quizmize.api.routes.missions import router as missions_router  # noqa: E402
from quizmize.api.routes.pages import router as pages_router  # noqa: E402
from quizmize.api.routes.quizzes import router as quizzes_router  # noqa: E402
from quizmize.api.routes.universities import router as universities_router  # noqa: E402
from quizmize.api.templating import render_error  # noqa: E402
from quizmize.errors import QuizmizeError  # noqa: E402

LOG_FORMAT = "%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s"

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format=LOG_FORMAT,
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


def _cors_origins() -> list[str]:
    """Resolve allowed CORS origins from env with safe defaults.

    Priority:
      1) CORS_ALLOW_ORIGINS (comma-separated)
      2) FRONTEND_URL (single origin)
    """
    raw = os.getenv("CORS_ALLOW_ORIGINS", "").strip()
    if raw:
        return [origin.strip().rstrip("/") for origin in raw.split(",") if origin.strip()]

    frontend_url = os.getenv("FRONTEND_URL", "").strip()
    if frontend_url:
        return [frontend_url.rstrip("/")]

    return []


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle — warm the DB engine."""
    engine = get_engine()
    logger.info("Quizmize API started — engine ready (%s)", engine.url.database)
    yield
    logger.info("Quizmize API shutting down")


app = FastAPI(
    title="Quizmize API",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Error translation
# ---------------------------------------------------------------------------
def _wants_json(request: Request) -> bool:
    return request.url.path.startswith("/api")


@app.exception_handler(QuizmizeError)
async def quizmize_error_handler(request: Request, exc: QuizmizeError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    if _wants_json(request):
        return JSONResponse(exc.to_body(), status_code=exc.status_code)
    return render_error(request, exc.message, exc.status_code)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    first = exc.errors()[0] if exc.errors() else {}
    field = ".".join(str(p) for p in first.get("loc", ())[1:])
    message = first.get("msg", "Invalid request")
    if field:
        message = f"{field}: {message}"
    if _wants_json(request):
        return JSONResponse({"error": message}, status_code=400)
    return render_error(request, message, 400)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    if _wants_json(request):
        return JSONResponse({"error": "Internal server error"}, status_code=500)
    return render_error(request, "Something went wrong", 500)


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
app.include_router(auth_router, prefix="/api")
app.include_router(groups_router, prefix="/api")
app.include_router(missions_router, prefix="/api")
app.include_router(universities_router, prefix="/api")
app.include_router(quizzes_router, prefix="/api")
app.include_router(chat_router, prefix="/api")
app.include_router(pages_router)


@app.get("/api/health")
def health():
    return {"status": "ok"}
