import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api.v1.assistant import router as assistant_router
from app.core.config import get_settings
from app.core.dependencies import engine, shutdown_background_work
from app.models.assistant import Base

settings = get_settings()

logger = logging.getLogger(__name__)

# Collaborator failures carry a customer-safe message; every other 5xx is masked.
_PASSTHROUGH_5XX = {502}

app = FastAPI(
    title="SPS Sales Assistant API",
    version="0.1.0",
    docs_url="/docs" if settings.docs_enabled else None,
    openapi_url="/openapi.json" if settings.openapi_enabled else None,
)


@app.on_event("startup")
async def _startup_jobs():
    problems = get_settings().validate_required_config()
    if problems:
        if get_settings().is_production:
            raise RuntimeError(
                "Configuration validation failed in production environment: " + "; ".join(problems)
            )
        for problem in problems:
            logger.warning("Configuration problem: %s", problem)

    if settings.auto_create_tables and engine is not None:
        Base.metadata.create_all(engine)


@app.on_event("shutdown")
async def _shutdown_jobs():
    await shutdown_background_work()


if settings.cors_allow_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
    )

app.include_router(assistant_router, prefix="/api/v1", tags=["assistant"])


@app.exception_handler(StarletteHTTPException)
async def _http_exception_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code >= 500 and exc.status_code not in _PASSTHROUGH_5XX and not settings.expose_error_details:
        return JSONResponse(status_code=exc.status_code, content={"detail": "Internal server error"})
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


@app.exception_handler(Exception)
async def _unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled exception")
    if settings.expose_error_details:
        return JSONResponse(status_code=500, content={"detail": str(exc)})
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


@app.middleware("http")
async def security_headers_middleware(request: Request, call_next):
    response = await call_next(request)
    if not settings.security_headers_enabled:
        return response

    headers = response.headers
    if "X-Content-Type-Options" not in headers:
        headers["X-Content-Type-Options"] = "nosniff"
    if "X-Frame-Options" not in headers:
        headers["X-Frame-Options"] = "DENY"
    if "Referrer-Policy" not in headers:
        headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    if "Cache-Control" not in headers and request.url.path.startswith("/api/"):
        headers["Cache-Control"] = "no-store"
    if "Content-Security-Policy" not in headers:
        headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none'; base-uri 'none'"

    return response


@app.get("/health")
async def health_check():
    return {"status": "ok"}
