"""FastAPI application factory for the transcode-and-split service."""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from .api.routes import router as api_router
from .config import Settings, get_settings, settings_dependency
from .engine import MediaEngine, build_engine
from .errors import install_error_handlers
from .logging import configure_logging
from .monitoring import ensure_metrics_server, metrics_disabled
from .pipeline import PipelineOrchestrator


def create_app(settings: Settings | None = None, engine: MediaEngine | None = None) -> FastAPI:
    if settings is None:
        settings = get_settings()
    configure_logging(settings.logging)

    if not metrics_disabled():
        ensure_metrics_server(settings.monitoring.prometheus_port)

    orchestrator = PipelineOrchestrator.from_settings(settings, engine or build_engine(settings))
    storage_root = orchestrator.workspaces.ensure_root()

    app = FastAPI(
        title="Audio Transcode & Split Service",
        version=settings.api_version,
    )
    app.state.settings = settings
    app.state.orchestrator = orchestrator
    app.dependency_overrides[settings_dependency] = lambda: settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    install_error_handlers(app)
    app.include_router(api_router)
    app.mount(
        "/" + settings.workspace.static_route.strip("/"),
        StaticFiles(directory=str(storage_root)),
        name="segments",
    )

    @app.get("/healthz")
    async def root_health() -> dict[str, str]:
        return {"status": "ok"}

    return app
