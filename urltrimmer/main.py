"""FastAPI application entry point for the URL trimmer.

Application Lifecycle
=====================
::
    ┌─────────────┐
    │  uvicorn    │
    │  startup    │
    └──────┬──────┘
           ▼
    ┌──────────────┐
    │ lifespan()   │
    │ init_db()    │
    │ services     │
    └──────┬───────┘
           ▼
    ┌─────────────┐
    │ Serve HTTP  │
    │ requests    │
    └──────┬──────┘
           ▼
    ┌──────────────┐
    │ lifespan()   │
    │ close_db()   │
    │ close_redis()│
    └──────────────┘

How to Use
===========
**Run with uvicorn**::
    uvicorn urltrimmer.main:app --host 0.0.0.0 --port 8000 --reload

**Interactive docs**::
    http://localhost:8000/api/docs

Key Behaviours
===============
- Database tables are created on startup.
- ``LinkServiceError`` subclasses become ``{"detail": ...}`` responses with
  the status code the error carries.
- Malformed request bodies answer 400 with the validation errors listed
  under ``errors``.
- Prometheus metrics are exposed at ``/metrics``.
- Interactive docs live under ``/api``; besides the redirect, the only
  root-level routes are ``/health`` and ``/metrics``, longer than any
  generated code.
"""

__all__ = ["app"]

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator

from urltrimmer.config import get_settings
from urltrimmer.database import close_db, init_db
from urltrimmer.dependencies import _service_manager
from urltrimmer.errors import LinkServiceError
from urltrimmer.redis import close_redis
from urltrimmer.routes import router

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # Startup
    await init_db()
    _service_manager.initialize()
    yield
    # Shutdown
    _service_manager.cleanup()
    await close_db()
    await close_redis()


app = FastAPI(
    title=settings.APP_NAME,
    version="1.0.0",
    description="URL shortener with per-owner link management and click counting",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(LinkServiceError)
async def link_service_error_handler(request: Request, exc: LinkServiceError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"errors": jsonable_encoder(exc.errors())},
    )


Instrumentator(
    should_group_status_codes=True,
    should_ignore_untemplated=False,
    should_respect_env_var=False,
).instrument(app).expose(app)

app.include_router(router)
