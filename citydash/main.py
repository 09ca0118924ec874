from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from .auth.router import router as auth_router
from .auth.exceptions import AuthError
from .database import create_tables, SessionLocal
from .services.session_service import SessionService
from .services.otp_service import OTPService
from .config.redis_config import close_redis_connections, ping_redis
from .core.logging import get_logger

logger = get_logger(__name__)

app = FastAPI(
    title="CityDash API",
    description="Smart city dashboard backend with local authentication, MFA & session management",
    version="1.0.0"
)

# Include routers
app.include_router(auth_router)


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"kind": exc.kind, "detail": exc.detail},
        headers=exc.headers,
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(
        "Unhandled error",
        extra={"method": request.method, "path": request.url.path, "error": type(exc).__name__}
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"kind": "InternalError", "detail": "Internal server error"},
    )


def purge_expired_records():
    """Remove expired sessions and one-time codes."""
    db = SessionLocal()
    try:
        SessionService(db).cleanup_expired_sessions()
        OTPService(db).cleanup_expired_codes()
    finally:
        db.close()


# Create database tables and test Redis connection on startup
@app.on_event("startup")
async def startup_event():
    create_tables()
    purge_expired_records()

    if await ping_redis():
        logger.info("Redis connection established")
    else:
        logger.warning("Redis unavailable, login rate limiting fails open")


# Close Redis connections on shutdown
@app.on_event("shutdown")
async def shutdown_event():
    await close_redis_connections()
    logger.info("Redis connections closed")


@app.get("/health")
def health_check():
    return {"status": "healthy", "service": "citydash"}
