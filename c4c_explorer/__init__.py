"""Application factory and top-level wiring for the C4C Text Explorer API.

This module brings together configuration, middleware, the ``/c4c`` router
and error handling. Importing it gives a ready FastAPI instance; ``main``
adds logging and metrics on top for the served process.
"""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core.errors import (
    C4CError,
    c4c_exception_handler,
    http_exception_handler,
    validation_exception_handler,
)
from .middlewares import RequestIdMiddleware
from .settings import settings

# ---------- App init ----------
app = FastAPI(title=settings.APP_NAME)

# ---------- Middleware ----------
# The browser UI is served from another origin; with no origins configured
# every origin is reflected back, matching the original dev setup.
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_origin_regex=None if settings.ALLOWED_ORIGINS else ".*",
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)
app.add_middleware(RequestIdMiddleware)

# ---------- Routers ----------
from .routers import api_c4c as api_c4c_router  # type: ignore  # noqa: E402

app.include_router(api_c4c_router.router)

# ---------- Exception handling ----------
app.add_exception_handler(C4CError, c4c_exception_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)


__all__ = ["app"]
