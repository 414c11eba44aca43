import logging
import time

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import ORJSONResponse

from .config import get_settings
from .db import close_mongo_connection, connect_to_mongo, is_connected
from .routers import access, interactions, matches, profiles
from .services.errors import InvalidArgument, ServiceError

LOGGER = logging.getLogger("uvicorn.error")

app = FastAPI(title="Matching & Access Service", default_response_class=ORJSONResponse)
settings = get_settings()

LOGGER.info("CORS allow_origins=%s", settings.cors_origins)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=True,
)
app.add_middleware(GZipMiddleware, minimum_size=512)


# Simple slow-request logger
@app.middleware("http")
async def log_slow_requests(request: Request, call_next):
    t0 = time.perf_counter()
    response = await call_next(request)
    dt = (time.perf_counter() - t0) * 1000
    if dt >= get_settings().slow_request_ms:
        LOGGER.warning(
            "Slow request %s %s %dms status=%s",
            request.method,
            request.url.path,
            int(dt),
            response.status_code,
        )
    return response


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    if exc.status_code >= 500:
        LOGGER.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return ORJSONResponse(status_code=exc.status_code, content=exc.to_payload())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    details = "; ".join(
        f"{'.'.join(str(part) for part in err.get('loc', ()))}: {err.get('msg')}" for err in exc.errors()
    )
    error = InvalidArgument(details or "invalid request")
    return ORJSONResponse(status_code=error.status_code, content=error.to_payload())


@app.on_event("startup")
async def startup():
    await connect_to_mongo()


@app.on_event("shutdown")
async def shutdown():
    await close_mongo_connection()


# Routers
app.include_router(profiles.router, prefix="/api", tags=["profiles"])
app.include_router(interactions.router, prefix="/api", tags=["interactions"])
app.include_router(access.router, prefix="/api", tags=["private-access"])
app.include_router(matches.router, prefix="/api", tags=["matches"])


@app.get("/")
async def root():
    return {"status": "matching-api-ok"}


@app.get("/api/health/db")
async def db_health():
    return {
        "mongo": "connected" if is_connected() else "disconnected",
        "db": str(get_settings().mongo_db),
    }
