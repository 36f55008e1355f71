from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
import logging

from config import settings
from database import Base, engine, ping_database
from errors import INTERNAL_ERROR_DETAIL, ServiceError
import models  # noqa: F401  (registers tables on Base.metadata)
from providers import get_tasks_cache
from auth.routes import router as auth_router
from routers.teams import router as teams_router
from routers.tasks import router as tasks_router
from routers.comments import router as comments_router
from routers.reports import router as reports_router

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.APP_NAME,
    description="Team task tracking with invites, comments, change history and reports",
    version=settings.APP_VERSION,
)

# CORS middleware for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth_router)
app.include_router(teams_router)
app.include_router(tasks_router)
app.include_router(comments_router)
app.include_router(reports_router)


# ============== Error Handlers ==============

@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    if exc.is_server_error:
        logger.error(f"{request.method} {request.url.path} failed: {type(exc).__name__}: {exc.detail}", exc_info=exc)
        return JSONResponse(status_code=exc.status_code, content={"detail": INTERNAL_ERROR_DETAIL})
    logger.info(f"{request.method} {request.url.path} rejected: {type(exc).__name__}: {exc.detail}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        detail = f"{location}: {first.get('msg')}" if location else str(first.get("msg"))
    else:
        detail = "Invalid request"
    logger.info(f"{request.method} {request.url.path} rejected: invalid input: {detail}")
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": detail})


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.error(f"{request.method} {request.url.path} failed unexpectedly: {str(exc)}", exc_info=exc)
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"detail": INTERNAL_ERROR_DETAIL})


# ============== Startup / Shutdown ==============

@app.on_event("startup")
def check_database():
    """Fail fast when the database is unreachable; optionally create tables."""
    try:
        ping_database()
    except Exception as e:
        logger.error(f"Database is unreachable: {str(e)}")
        raise

    if settings.AUTO_CREATE_TABLES:
        logger.info("AUTO_CREATE_TABLES enabled, creating missing tables")
        Base.metadata.create_all(bind=engine)


@app.on_event("shutdown")
def release_resources():
    cache = get_tasks_cache()
    if cache is not None:
        cache.close()
        logger.info("Redis client closed")
    engine.dispose()
    logger.info("Database engine disposed")


# Health check
@app.get("/health")
def health_check():
    return {"status": "healthy"}


@app.get("/metrics", response_class=PlainTextResponse)
def metrics():
    return PlainTextResponse("app_up 1\n", media_type="text/plain; version=0.0.4")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
        timeout_graceful_shutdown=settings.SHUTDOWN_TIMEOUT_SECONDS,
    )
