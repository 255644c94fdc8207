# clausewise/main.py
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
import os
import time
import uuid
from typing import Optional

from clausewise.api.routes import router
from clausewise.config import LOG_LEVEL
from clausewise.context import AppContext, build_context
from clausewise.errors import ClauseWiseError
from clausewise.observability.logger import (
    setup_logging,
    get_logger,
    log_request_start,
    log_request_complete,
    log_request_error,
)

logger = get_logger(__name__)

VERSION = "1.0.0"


def create_app(context: Optional[AppContext] = None) -> FastAPI:
    """
    Build the API. Without an explicit context, one is constructed from
    configuration on startup.
    """

    app = FastAPI(
        title="ClauseWise API",
        description="Document question answering with cited, risk-tagged evidence",
        version=VERSION,
    )

    app.state.context = context

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """
        Log every request with latency and record request metrics.
        """

        request_id = str(uuid.uuid4())
        request.state.request_id = request_id

        endpoint = request.url.path

        log_request_start(
            logger,
            request_id,
            endpoint,
            method=request.method,
            client_ip=request.client.host if request.client else None,
        )

        start_time = time.time()

        metrics = app.state.context.metrics if app.state.context else None

        try:

            response = await call_next(request)

        except Exception as e:

            if metrics is not None:
                metrics.record_failure()

            log_request_error(
                logger,
                request_id,
                endpoint,
                e,
                method=request.method,
                latency_seconds=round(time.time() - start_time, 3),
            )

            raise

        latency = time.time() - start_time

        if metrics is not None:
            if response.status_code < 500:
                metrics.record_success(latency)
            else:
                metrics.record_failure()

        log_request_complete(
            logger,
            request_id,
            endpoint,
            latency,
            method=request.method,
            status_code=response.status_code,
        )

        return response

    app.include_router(router)

    @app.on_event("startup")
    async def startup_event():

        if app.state.context is None:
            setup_logging(log_level=LOG_LEVEL)
            app.state.context = build_context()

        logger.info("application_startup", extra={"version": VERSION})

        if not os.getenv("GEMINI_API_KEY"):

            logger.warning(
                "missing_api_key",
                extra={
                    "warning_detail":
                    "GEMINI_API_KEY not set. Embedding and generation calls will fail."
                }
            )

    @app.on_event("shutdown")
    async def shutdown_event():

        if app.state.context is not None:
            app.state.context.analytics.shutdown()

        logger.info("application_shutdown")

    @app.exception_handler(ClauseWiseError)
    async def clausewise_exception_handler(request: Request, exc: ClauseWiseError):

        request_id = getattr(request.state, "request_id", "unknown")

        logger.warning(
            "request_rejected",
            extra={
                "request_id": request_id,
                "path": request.url.path,
                "status_code": exc.status_code,
                "error_code": exc.code,
                "error": exc.message,
            }
        )

        return JSONResponse(
            status_code=exc.status_code,
            content={
                "detail": exc.message,
                "code": exc.code,
                "request_id": request_id,
            }
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):

        request_id = getattr(request.state, "request_id", "unknown")

        logger.error(
            "unhandled_exception",
            extra={
                "request_id": request_id,
                "path": request.url.path,
                "error": str(exc),
                "error_type": type(exc).__name__
            },
            exc_info=True
        )

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": "An internal error occurred. Please try again.",
                "code": "internal",
                "request_id": request_id,
            }
        )

    @app.get("/")
    async def root():

        return {
            "message": "ClauseWise API",
            "version": VERSION,
            "docs": "/docs",
            "health": "/health",
            "metrics": "/metrics"
        }

    return app


app = create_app()


def main():

    import uvicorn

    uvicorn.run(
        app,
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
    )


if __name__ == "__main__":
    main()
