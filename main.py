"""portfolio - Photography portfolio backend serving photos from Nextcloud
Main FastAPI application"""
from contextlib import asynccontextmanager
from pathlib import Path
import logging
import time

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException
import uvicorn

from portfolio.config import settings
from portfolio.database import AsyncSessionLocal, close_db, init_db
from portfolio.exceptions import AuthorizationError, NotFound, PortfolioError, ValidationError
from portfolio.services.error_handler import create_error_response, log_detailed_error
from portfolio.storage import NextcloudBlobStore
from portfolio.auth import ensure_admin_user

# Configure enhanced logging
from portfolio.debug_utils import setup_enhanced_logging, RequestLogger
setup_enhanced_logging(
    log_level="DEBUG" if settings.debug else settings.log_level,
    log_to_file=settings.log_to_file,
    log_dir=settings.log_dir,
)
logger = logging.getLogger(__name__)

STATIC_DIR = Path(__file__).parent / "portfolio" / "static"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup/shutdown"""
    # Startup
    logger.info(f"Starting {settings.app_name} {settings.app_version}...")
    await init_db()
    logger.info("Database initialized")

    app.state.blob_store = NextcloudBlobStore.from_settings(settings)
    logger.info(f"Nextcloud photo root: {settings.nextcloud_url} {settings.nextcloud_photos_path}")

    async with AsyncSessionLocal() as db:
        await ensure_admin_user(db, settings.admin_email, settings.admin_password, settings.admin_name)

    yield

    # Shutdown
    logger.info(f"Shutting down {settings.app_name}...")
    app.state.blob_store.close()
    await close_db()
    logger.info("Shutdown complete")


# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    description="Photography portfolio backed by Nextcloud storage",
    version=settings.app_version,
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Request/Response logging middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all HTTP requests and responses with timing"""
    start_time = time.time()

    try:
        response = await call_next(request)
        duration_ms = (time.time() - start_time) * 1000

        RequestLogger.log_request(
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=duration_ms
        )

        return response
    except Exception as e:
        RequestLogger.log_error(
            method=request.method,
            path=request.url.path,
            error=e
        )

        raise


# ============================================================================
# Error handlers
# ============================================================================

def _error_response(exc: Exception, request: Request) -> JSONResponse:
    error = create_error_response(exc, {"method": request.method, "path": request.url.path})
    log_detailed_error(error, logger)
    return JSONResponse(
        status_code=error.status_code,
        content={"success": False, "error": error.to_dict(include_technical=settings.debug)},
    )


@app.exception_handler(PortfolioError)
async def portfolio_error_handler(request: Request, exc: PortfolioError):
    return _error_response(exc, request)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    fields = [".".join(str(part) for part in err.get("loc", ())[1:]) for err in exc.errors()]
    error = ValidationError("Invalid request", context={"fields": [f for f in fields if f]})
    return _error_response(error, request)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404:
        error = NotFound(str(exc.detail))
    elif exc.status_code in (401, 403):
        error = AuthorizationError(str(exc.detail), status_code=exc.status_code)
    else:
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "error": {"title": "Error", "message": str(exc.detail)}},
            headers=getattr(exc, "headers", None),
        )
    return _error_response(error, request)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    return _error_response(exc, request)


# Health check endpoint
@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "app": settings.app_name,
        "version": settings.app_version,
    }


# Routers
from portfolio.routers import admin, auth, photos, social
app.include_router(photos.router)
app.include_router(social.router)
app.include_router(auth.router)
app.include_router(admin.router)

# Placeholder image and other static assets
app.mount("/static", StaticFiles(directory=str(STATIC_DIR)), name="static")


if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug
    )
