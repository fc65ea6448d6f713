import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from coursemart import config
from coursemart.courses.course_router import router as course_router
from coursemart.database import create_indexes, db
from coursemart.errors import PlatformError
from coursemart.logging_config import setup_logging
from coursemart.media.media_router import router as media_router
from coursemart.purchases.jobs import repair_incomplete_enrollments, run_enrollment_repair_loop
from coursemart.purchases.purchase_router import router as purchase_router
from coursemart.system.health_router import router as health_router
from coursemart.users.user_router import router as user_router

setup_logging(config.LOG_LEVEL)
logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting Coursemart API (%s)", config.ENVIRONMENT)
    await create_indexes(db)
    await repair_incomplete_enrollments(db)

    repair_task = None
    if config.ENROLLMENT_REPAIR_INTERVAL_SECONDS > 0:
        repair_task = asyncio.create_task(
            run_enrollment_repair_loop(db, config.ENROLLMENT_REPAIR_INTERVAL_SECONDS)
        )

    yield

    logger.info("Shutting down Coursemart API")
    if repair_task:
        repair_task.cancel()
        try:
            await repair_task
        except asyncio.CancelledError:
            pass


app = FastAPI(title="Coursemart API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[origin.strip() for origin in config.FRONTEND_URL.split(",")],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    response = await call_next(request)
    logger.info("%s %s -> %s", request.method, request.url.path, response.status_code)
    return response


# ==================== ERROR HANDLERS ====================

def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "message": message})


@app.exception_handler(PlatformError)
async def platform_error_handler(request: Request, exc: PlatformError):
    return _error(exc.status_code, exc.message)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return _error(exc.status_code, str(exc.detail))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
    # pydantic prefixes custom validator messages
    message = message.removeprefix("Value error, ")
    return _error(400, message)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _error(500, "Internal server error")


# ==================== ROUTER REGISTRATION ====================
app.include_router(user_router, prefix=f"{API_PREFIX}/user")
app.include_router(course_router, prefix=f"{API_PREFIX}/course")
app.include_router(media_router, prefix=f"{API_PREFIX}/media")
app.include_router(purchase_router, prefix=f"{API_PREFIX}/purchase")
app.include_router(health_router)
# ============================================================


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
