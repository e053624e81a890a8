# main.py
# Role: Application entry point for the commission ledger.
#       Builds the FastAPI app, creates database tables on startup,
#       mounts stored attachments, and registers all route modules.

"""
Main FastAPI app for the commission ledger.

Here we only:
- create the FastAPI app
- map ledger errors to {"error": ...} responses
- serve stored attachments under /files
- include route modules

Run with:
    uvicorn main:app --reload
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

import models  # noqa: F401  (registers the tables on Base.metadata)
from db import Base, engine
from ledger.config import APP_NAME, CORS_ORIGINS, LOG_LEVEL
from ledger.deps import default_storage, get_storage
from ledger.errors import LedgerError
from ledger.routes_commissions import router as commissions_router
from ledger.routes_root import router as root_router
from ledger.routes_upload import router as upload_router
from ledger.services.file_storage import FileStorage, LocalFileStorage

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Create database tables (only if they don't exist yet)
    Base.metadata.create_all(bind=engine)
    logger.info("Starting %s", APP_NAME)
    yield
    logger.info("Shutting down %s", APP_NAME)


# -------------------------------------------------------------------
# Error responses
# -------------------------------------------------------------------

async def ledger_error_handler(request: Request, exc: LedgerError):
    if exc.status_code >= 500:
        logger.error("[%s %s] %s", request.method, request.url.path, exc.message)
    return JSONResponse({"error": exc.message}, status_code=exc.status_code)


async def request_validation_handler(request: Request, exc: RequestValidationError):
    # Malformed bodies are caller errors like any other ValidationError
    problems = []
    for err in exc.errors():
        location = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        problems.append(f"{location}: {err.get('msg')}" if location else str(err.get("msg")))
    return JSONResponse({"error": "; ".join(problems) or "Invalid request"}, status_code=400)


async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception("[%s %s] unhandled error", request.method, request.url.path)
    return JSONResponse({"error": str(exc) or "Internal error"}, status_code=500)


# -------------------------------------------------------------------
# App factory
# -------------------------------------------------------------------

def create_app(storage: Optional[FileStorage] = None) -> FastAPI:
    """
    Build the application.

    `storage` replaces the configured attachment backend (tests pass a
    LocalFileStorage rooted in a temp folder).
    """
    app = FastAPI(title=APP_NAME, lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    if storage is None:
        storage = default_storage()
    else:
        app.dependency_overrides[get_storage] = lambda: storage

    app.add_exception_handler(LedgerError, ledger_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)

    # Health
    app.include_router(root_router)

    # Attachment upload / delete
    app.include_router(upload_router)

    # Commissions, phases, voices, voice-file records
    app.include_router(commissions_router)

    # Stored attachments: /files/voices/<voiceId>/<file_name>
    if isinstance(storage, LocalFileStorage):
        app.mount(
            f"{storage.url_prefix}/voices",
            StaticFiles(directory=storage.voices_dir),
            name="files",
        )

    return app


# ASGI application object for uvicorn
app = create_app()
