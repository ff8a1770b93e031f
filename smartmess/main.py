from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from smartmess.api.deps import ServiceResultError, failure_response
from smartmess.api.v1.router import router as api_router
from smartmess.config.settings import settings
from smartmess.core.exceptions import BaseAppException
from smartmess.core.logging import get_logger, setup_logging
from smartmess.core.middleware import register_middlewares
from smartmess.db.init_db import init_db

logger = get_logger(__name__)


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Validation failed"
    message = str(errors[0].get("msg", "Validation failed"))
    return message.removeprefix("Value error, ")


def register_exception_handlers(app: FastAPI) -> None:
    """Render every failure in the {success, message, data} envelope."""

    @app.exception_handler(BaseAppException)
    async def app_exception_handler(request: Request, exc: BaseAppException) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(exc.to_dict()))

    @app.exception_handler(ServiceResultError)
    async def service_result_handler(request: Request, exc: ServiceResultError) -> JSONResponse:
        return failure_response(exc.result)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={
                "success": False,
                "message": _validation_message(exc),
                "data": {
                    "errors": [
                        {"loc": list(error.get("loc", ())), "msg": error.get("msg"), "type": error.get("type")}
                        for error in exc.errors()
                    ]
                },
            },
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            f"Unhandled error on {request.method} {request.url.path}: {exc}",
            exc_info=exc,
        )
        return JSONResponse(
            status_code=500,
            content={"success": False, "message": "Internal server error"},
        )


def create_app() -> FastAPI:
    """
    Application factory for the FastAPI app.

    - Configures title, version, debug mode from Settings.
    - Registers CORS, core middleware, and exception handlers.
    - Includes the API router under settings.API_V1_STR.
    """
    setup_logging()

    app = FastAPI(
        title=settings.APP_NAME,
        debug=settings.DEBUG,
        version=settings.API_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    # Permissive origins unless CORS_ORIGINS narrows them
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Register shared core middlewares (request ID, timing, etc.)
    register_middlewares(app)

    register_exception_handlers(app)

    app.include_router(api_router, prefix=settings.API_V1_STR)

    # Schema creation for dev/demo; production runs migrations
    @app.on_event("startup")
    async def on_startup() -> None:
        if not settings.is_production():
            init_db()

    return app


app = create_app()


def run() -> None:
    """Serve the app with uvicorn using the configured host and port."""
    import uvicorn

    uvicorn.run(
        "smartmess.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    run()
