from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api import audit, batches, pharmas
from app.core.config import settings
from app.core.errors import RegistryError
from app.core.logging import setup_logging, get_logger
from app.services.registry import MedicineRegistry

setup_logging()
logger = get_logger(__name__)


def create_app(registry: Optional[MedicineRegistry] = None) -> FastAPI:
    """Build the API. A registry passed in is used as-is; otherwise one is opened on startup."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = registry is None
        app.state.registry = registry or MedicineRegistry.open()
        logger.info(f"{settings.APP_NAME} {settings.APP_VERSION} ready")
        try:
            yield
        finally:
            if owned:
                app.state.registry.close()

    app = FastAPI(title=settings.APP_NAME, version=settings.APP_VERSION, lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RegistryError)
    async def registry_error_handler(request: Request, exc: RegistryError):
        logger.info(f"{request.method} {request.url.path} rejected: {exc.code}: {exc.message}")
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.message, "error": exc.code},
        )

    @app.get("/health")
    async def health():
        return {"status": "ok", "app": settings.APP_NAME, "version": settings.APP_VERSION}

    app.include_router(pharmas.router)
    app.include_router(batches.router)
    app.include_router(audit.router)
    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
