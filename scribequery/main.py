from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from scribequery.api.deps import Services, build_services
from scribequery.api.errors import error_body, register_error_handlers
from scribequery.api.middleware import RequestLoggingMiddleware
from scribequery.api.routes_chat import router as chat_router
from scribequery.api.routes_vector import router as vector_router
from scribequery.config import Settings
from scribequery.errors import ScribeQueryError
from scribequery.logging_config import setup_logging

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None, services: Services | None = None) -> FastAPI:
    settings = settings or (services.settings if services else Settings.from_env())
    setup_logging(settings.log_level, settings.log_format)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        logger.info("shutting down")
        app.state.services.close()

    app = FastAPI(title="ScribeQuery", version="0.1.0", lifespan=lifespan)
    app.state.services = services or build_services(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=False,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Origin", "Content-Type", "Accept", "Authorization"],
        expose_headers=["Content-Length"],
        max_age=300,
    )
    app.add_middleware(RequestLoggingMiddleware)
    register_error_handlers(app)

    @app.get("/health")
    def healthcheck():
        try:
            app.state.services.vector_store.health()
        except ScribeQueryError as exc:
            return {"status": "degraded", "vector_store": error_body(exc)}
        return {"status": "ok", "vector_store": settings.vector_provider}

    base = settings.api_base_path.rstrip("/")
    app.include_router(chat_router, prefix=base)
    app.include_router(vector_router, prefix=base)

    logger.info(
        "service configured",
        extra={"data": {"vector_provider": settings.vector_provider, "chat_provider": settings.chat_provider}},
    )
    return app


def run() -> None:
    import uvicorn

    settings = Settings.from_env()
    # uvicorn drains in-flight requests on SIGINT/SIGTERM
    uvicorn.run(create_app(settings), host=settings.app_host, port=settings.app_port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    run()
