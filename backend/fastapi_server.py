"""
FastAPI Server for the Menu Item Editor
- One modal editing session shared by every request
- Consistent JSON error responses
"""

import os
import sys
import time
import uuid
from pathlib import Path
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

# Add the backend directory to Python path for imports
backend_dir = Path(__file__).parent
sys.path.insert(0, str(backend_dir))

from fastapi_core.exceptions import MenuEditorException
from fastapi_models import HealthResponse
from fastapi_routers import menu_items


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Menu item editor API starting up...")
    yield
    logger.info("Menu item editor API shutting down...")


app = FastAPI(
    title="Menu Item Editor API",
    description="Open, edit and export .menu item descriptors",
    version="1.0.0",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
    lifespan=lifespan
)


class RequestTrackingMiddleware(BaseHTTPMiddleware):
    """Add request ID and timing for better error tracking"""

    async def dispatch(self, request: Request, call_next):
        request_id = str(uuid.uuid4())[:8]
        request.state.request_id = request_id
        start_time = time.time()

        response = await call_next(request)

        duration = time.time() - start_time
        logger.info(f"Request {request_id}: {request.method} {request.url.path} - {response.status_code} ({duration:.3f}s)")
        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time"] = f"{duration:.3f}s"
        return response


app.add_middleware(RequestTrackingMiddleware)

ALLOWED_ORIGINS = [
    origin.strip()
    for origin in os.environ.get("ALLOWED_ORIGINS", "http://localhost:3000").split(",")
    if origin.strip()
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ============================================================================
# GLOBAL EXCEPTION HANDLERS
# ============================================================================

_ERROR_CODES = {
    status.HTTP_400_BAD_REQUEST: "unknown_slot",
    status.HTTP_404_NOT_FOUND: "menu_not_found",
    status.HTTP_409_CONFLICT: "no_item_open",
    status.HTTP_422_UNPROCESSABLE_ENTITY: "invalid_menu_file",
}


@app.exception_handler(MenuEditorException)
def menu_editor_exception_handler(request: Request, exc: MenuEditorException):
    """Handle menu editor errors"""
    if exc.status_code >= 500:
        logger.error(f"Menu editor error on {request.url}: {exc.message}")
    else:
        logger.warning(f"Menu editor error on {request.url}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": _ERROR_CODES.get(exc.status_code, "menu_editor_error"),
            "detail": exc.message
        }
    )


@app.exception_handler(RequestValidationError)
def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle request validation errors"""
    logger.warning(f"Validation error on {request.url}: {exc.errors()}")
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": "validation_error",
            "detail": "Invalid request data",
            "errors": exc.errors()
        }
    )


@app.exception_handler(StarletteHTTPException)
def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Handle HTTP exceptions with consistent format"""
    logger.warning(f"HTTP {exc.status_code} on {request.url}: {exc.detail}")
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": "http_error",
            "detail": exc.detail
        }
    )


@app.exception_handler(Exception)
def global_exception_handler(request: Request, exc: Exception):
    """Handle all other unhandled exceptions"""
    logger.opt(exception=exc).error(f"Unhandled exception on {request.url}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "internal_server_error",
            "detail": "An unexpected error occurred",
            "request_id": getattr(request.state, 'request_id', 'unknown')
        }
    )


@app.get("/api/health/", response_model=HealthResponse)
def health_check():
    """Health check endpoint"""
    return HealthResponse(status="healthy", service="menu-item-editor")


app.include_router(menu_items.router, prefix="/api", tags=["menu-items"])


def main():
    """Run the API with uvicorn"""
    from config.logging_config import configure_logging
    configure_logging()

    port = int(os.environ.get("PORT", "8000"))
    host = os.environ.get("HOST", "127.0.0.1")
    debug = os.environ.get("DEBUG", "False").lower() == "true"

    logger.info(f"Server configuration: {host}:{port} (debug={debug})")
    try:
        uvicorn.run(
            app,
            host=host,
            port=port,
            log_level="info" if debug else "warning",
            reload=False
        )
    except Exception as e:
        logger.error(f"Failed to start menu item editor API: {e}")
        raise


if __name__ == "__main__":
    main()
