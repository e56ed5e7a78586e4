import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from filebridge.config import Settings
from filebridge.routers import files

logger = logging.getLogger(__name__)

SERVICE_NAME = "Base64 File Bridge"


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Ready to serve requests.")
    yield
    logger.info("%s stopped.", SERVICE_NAME)


def create_app(settings: Settings) -> FastAPI:
    """
    Build the HTTP application around one immutable ``Settings`` value.

    Every request gets a single access log line. Anything a handler fails to
    classify becomes a generic 500 instead of reaching the server loop.
    """
    app = FastAPI(
        title=SERVICE_NAME,
        description="Serves local file contents base64-encoded to test tooling.",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            logger.exception("Unhandled error while serving %s %s", request.method, request.url.path)
            response = JSONResponse(status_code=500, content={"error": "Internal server error."})

        duration_ms = (time.perf_counter() - start) * 1000
        target = request.url.path
        if request.url.query:
            target = f"{target}?{request.url.query}"
        logger.info("%s %s - %d - %.2fms", request.method, target, response.status_code, duration_ms)
        return response

    app.include_router(files.router)
    return app
