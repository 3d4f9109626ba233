# src/aiorchestrator/api_server/main.py
"""
FastAPI application for the orchestrator.

`create_app()` builds the application around an orchestrator. When none is
passed, one is built during startup from configuration: the TOML file named
by the AIORCH_CONFIG environment variable (if set) layered with
`AIORCH__*` environment overrides.

Run with:
    uvicorn aiorchestrator.api_server.main:app
"""

import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Dict, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator

from ..config import load_orchestrator_config
from ..exceptions import ConfigError
from ..logging_config import configure_logging
from ..orchestrator import Orchestrator, build_orchestrator
from .metrics import OrchestratorMetrics, PrometheusSink
from .routes import router

logger = logging.getLogger(__name__)

CONFIG_PATH_ENV = "AIORCH_CONFIG"


def _orchestrator_from_environment() -> Orchestrator:
    config_path = os.environ.get(CONFIG_PATH_ENV)
    config = load_orchestrator_config(config_path=Path(config_path) if config_path else None)
    configure_logging(config={"console_level": config.log_level})
    return build_orchestrator(config)


def create_app(orchestrator: Optional[Orchestrator] = None) -> FastAPI:
    """
    Build the API application.

    Args:
        orchestrator: Orchestrator to serve. Started on application startup
                      and closed on shutdown.
    """
    metrics = OrchestratorMetrics()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Start the orchestrator's worker pool on startup, close it on shutdown."""
        logger.info("API Server starting up...")
        instance = orchestrator
        if instance is None:
            try:
                instance = _orchestrator_from_environment()
            except ConfigError as e:
                logger.critical(f"Fatal error during orchestrator initialization: {e}", exc_info=True)
                logger.warning("API server will start but the orchestrator will be unavailable")
        app.state.orchestrator = instance
        if instance is not None:
            metrics.bind(instance)
            instance.events.add_sink(PrometheusSink(metrics))
            await instance.start()
            logger.info(f"Orchestrator running with models: {[d.name for d in instance.registry.list_models()]}")

        yield

        logger.info("API Server shutting down...")
        if instance is not None:
            await instance.close()
        app.state.orchestrator = None
        logger.info("API Server shutdown complete")

    app = FastAPI(
        title="aiorchestrator API",
        description="Priority-queued AI task orchestration",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"], allow_credentials=True,
        allow_methods=["*"], allow_headers=["*"],
    )
    app.state.metrics = metrics
    Instrumentator(registry=metrics.registry, excluded_handlers=["/metrics", "/health"]).instrument(app)
    app.include_router(router, tags=["orchestrator"])

    @app.get("/")
    async def root() -> Dict[str, Any]:
        """Root endpoint providing basic service information."""
        return {"message": "aiorchestrator API is running", "version": "1.0.0", "docs_url": "/docs"}

    return app


app = create_app()
