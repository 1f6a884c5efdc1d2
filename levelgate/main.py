import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from levelgate import __version__
from levelgate.config.settings import settings
from levelgate.database import init_db, close_db
from levelgate.dependencies import get_access_policy
from levelgate.errors import ErrorCode, APIError, InternalError, log_internal
from levelgate.routes import router
from levelgate.services.cache_service import ReadThroughCache
from levelgate.services.level_access_service import AccessPolicy, get_policy

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler()]
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting application...")
    try:
        await init_db()
        logger.info("Database connected successfully")
    except Exception as e:
        logger.error(f"Failed to connect to database: {str(e)}")
        raise

    cache = ReadThroughCache(sweep_interval_seconds=settings.CACHE_SWEEP_INTERVAL_SECONDS)
    cache.start()
    app.state.cache = cache
    logger.info(f"✓ Read-through cache started (sweep every {settings.CACHE_SWEEP_INTERVAL_SECONDS}s)")

    policy = get_policy()
    app.state.access_policy = policy
    if policy.name != "full":
        logger.warning(
            f"⚠️ Level access policy '{policy.name}' skips checks: "
            f"{[check.value for check in policy.skipped]}"
        )
    else:
        logger.info(f"✓ Level access policy: {policy.name} (max level {settings.MAX_LEVEL})")

    yield

    logger.info("Shutting down application...")
    await cache.shutdown()
    try:
        await close_db()
        logger.info("Database connection closed")
    except Exception as e:
        logger.error(f"Error closing database connection: {str(e)}")


app = FastAPI(
    title="Level Gate API",
    description="Level progression access control for puzzle competitions",
    version=__version__,
    docs_url="/docs" if settings.is_development else None,
    redoc_url="/redoc" if settings.is_development else None,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg"), "type": error.get("type")}
        for error in exc.errors()
    ]
    logger.warning(f"Rejected request to {request.url.path}: {len(errors)} validation error(s)")
    return APIError(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        error="Validation Error",
        message="Request validation failed",
        code=ErrorCode.VALIDATION_ERROR,
        details={"errors": errors},
    ).to_response()


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    logger.warning(f"HTTP {exc.status_code} on {request.url.path}: {exc.detail}")
    if isinstance(exc.detail, dict):
        return JSONResponse(status_code=exc.status_code, content=exc.detail)

    if exc.status_code == status.HTTP_404_NOT_FOUND:
        code = ErrorCode.NOT_FOUND
    elif exc.status_code >= 500:
        code = ErrorCode.INTERNAL_ERROR
    else:
        code = ErrorCode.INVALID_INPUT

    return APIError(
        status_code=exc.status_code,
        error="Error",
        message=str(exc.detail),
        code=code,
    ).to_response()


@app.exception_handler(APIError)
async def api_error_handler(request: Request, exc: APIError):
    logger.warning(f"API error on {request.url.path}: {exc.code} - {exc.message}")
    return exc.to_response()


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    # Anything unhandled is reported by log id only
    log_id = log_internal(exc, context=request.url.path)
    return InternalError(
        "An unexpected error occurred. Please try again later.",
        log_id=log_id,
    ).to_response()


@app.get("/health", tags=["Health"])
async def health_check(policy: AccessPolicy = Depends(get_access_policy)):
    return {
        "status": "healthy",
        "environment": settings.ENVIRONMENT,
        "level_access_policy": policy.name,
        "max_level": settings.MAX_LEVEL,
        "version": __version__
    }


app.include_router(router)


if __name__ == "__main__":
    import uvicorn

    logger.info(f"Starting server on {settings.HOST}:{settings.PORT}")
    logger.info(f"Environment: {settings.ENVIRONMENT}")

    uvicorn.run(
        "levelgate.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.is_development,
        log_level="info"
    )
