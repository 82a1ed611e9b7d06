"""FastAPI application for the dependency monitor."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import __version__
from .config import Settings
from .errors import HistoryReadCorrupt, ScanError
from .history import project_key
from .models import (
    MonitoredProject,
    MonitoredProjects,
    ScanHistory,
    ScanRequest,
    ScanResult,
    ScanTrigger,
)
from .registry import MonitorRegistry
from .scanner import ScanOrchestrator, resolve_project_name
from .scheduler import Scheduler

settings = Settings.from_env()

# Configure logging
logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


async def _validation_error_handler(
    _request: Request, exc: RequestValidationError
) -> JSONResponse:
    messages = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err["loc"] if part != "body")
        messages.append(f"{loc}: {err['msg']}" if loc else err["msg"])
    return _error(400, "Invalid request: " + "; ".join(messages))


def create_app(
    settings: Settings,
    orchestrator: Optional[ScanOrchestrator] = None,
    registry: Optional[MonitorRegistry] = None,
) -> FastAPI:
    """Build the application with its orchestrator, registry and scheduler."""
    if orchestrator is None:
        orchestrator = ScanOrchestrator.from_settings(settings)
    if registry is None:
        registry = MonitorRegistry()
    scheduler = Scheduler(registry, orchestrator, interval=settings.monitor_interval)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Workspace directory: {settings.workspace_dir.resolve()}")
        logger.info(f"History directory: {settings.history_dir.resolve()}")
        if settings.scheduler_enabled:
            scheduler.start()
        yield
        scheduler.stop()

    app = FastAPI(
        title="Dependency Monitor",
        description="Audits npm manifests for known vulnerabilities and keeps a scan history",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.orchestrator = orchestrator
    app.state.registry = registry
    app.state.scheduler = scheduler

    # CORS - allow common development origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://localhost:5173",
            "http://localhost:3000",
            "http://localhost:8000",
        ],
        allow_methods=["POST", "GET", "DELETE"],
        allow_headers=["*"],
    )
    app.add_exception_handler(RequestValidationError, _validation_error_handler)  # type: ignore[arg-type]

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {"status": "ok"}

    @app.post("/scan", response_model=ScanResult)
    def scan(scan_request: ScanRequest, request: Request):
        """
        Audit a package.json and register the project for periodic re-scans.

        - **manifest** (or **packageJson**): contents of package.json
        - **projectName**: optional name, defaults to the manifest's name
        """
        if scan_request.manifest is None:
            return _error(400, "manifest is required")

        project_name = resolve_project_name(scan_request.project_name, scan_request.manifest)

        # Remember project for periodic monitoring
        request.app.state.registry.register(project_name, scan_request.manifest)

        try:
            return request.app.state.orchestrator.run(
                scan_request.manifest, project_name, trigger=ScanTrigger.MANUAL
            )
        except ScanError as e:
            logger.error(f"[MANUAL] Scan failed for {project_name}: {e}")
            return _error(500, str(e))
        except Exception as e:
            logger.exception(f"[MANUAL] Scan failed for {project_name}")
            return _error(500, f"Scan failed: {e}")

    @app.get("/scans/{project_name}", response_model=ScanHistory)
    def scans(project_name: str, request: Request):
        """Stored scans for a project, newest first."""
        try:
            history = request.app.state.orchestrator.history.list_scans(project_name)
        except HistoryReadCorrupt as e:
            logger.error(str(e))
            return _error(500, "Failed to read scan history")
        return ScanHistory(scans=history)

    @app.get("/monitor", response_model=MonitoredProjects)
    def monitored(request: Request):
        """Projects currently re-scanned by the scheduler."""
        return MonitoredProjects(
            projects=[
                MonitoredProject(project_name=name, project_key=project_key(name))
                for name, _ in request.app.state.registry.entries()
            ]
        )

    @app.delete("/monitor/{project_name}")
    def unmonitor(project_name: str, request: Request):
        """Stop periodic re-scans for a project. Its history is kept."""
        if not request.app.state.registry.unregister(project_name):
            return _error(404, f"Project is not monitored: {project_name}")
        return {"removed": project_name}

    return app


app = create_app(settings)
