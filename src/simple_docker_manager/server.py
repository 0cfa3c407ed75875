"""Simple Docker Manager HTTP server built on FastAPI."""

import asyncio
import sys
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import Body, Depends, FastAPI, Form, Query, Request
from fastapi.responses import (
    HTMLResponse,
    JSONResponse,
    RedirectResponse,
    Response,
    StreamingResponse,
)
from pydantic import BaseModel

from simple_docker_manager import __version__
from simple_docker_manager.access_gate import (
    LOGIN_PATH,
    SESSION_COOKIE,
    AccessGateMiddleware,
    extract_cookie,
)
from simple_docker_manager.auth import CredentialManager, provision_credentials
from simple_docker_manager.config import Settings, get_settings
from simple_docker_manager.managers.container_manager import ContainerManager
from simple_docker_manager.managers.image_manager import ImageManager
from simple_docker_manager.managers.metrics_manager import MetricsManager
from simple_docker_manager.managers.session_manager import SessionManager
from simple_docker_manager.managers.session_sweeper import SessionSweeper
from simple_docker_manager.models.containers import (
    ContainerSummary,
    CreateContainerRequest,
    CreateContainerResponse,
    ImageInfo,
    ImageSummary,
)
from simple_docker_manager.models.metrics import ContainerMetrics, MetricsResponse
from simple_docker_manager.utils import get_logger, setup_logging
from simple_docker_manager.utils.audit_logger import AuditEventType, get_audit_logger
from simple_docker_manager.utils.docker_client import DockerClientManager
from simple_docker_manager.utils.exceptions import (
    ContainerNotFoundError,
    DockerAPIError,
    DockerDaemonUnreachableError,
    ImageNotFoundError,
    InvalidInputError,
)
from simple_docker_manager.utils.metrics_collector import get_metrics_collector

logger = get_logger(__name__)

INVALID_CREDENTIALS = "Invalid username or password"

LOGIN_FORM = """<!DOCTYPE html>
<html><head><title>Simple Docker Manager - Login</title></head>
<body>
<form method="post" action="/login">
<label>Username <input name="username" autocomplete="username"></label>
<label>Password <input name="password" type="password" autocomplete="current-password"></label>
<button type="submit">Sign in</button>
</form>
</body></html>
"""


class HealthCheckResponse(BaseModel):
    """Health check response model."""

    status: str
    docker_connected: bool
    version: str = __version__


class ActionResponse(BaseModel):
    """Result of a start/stop/restart request."""

    container_id: str
    action: str
    status: str = "ok"


class DashboardConfigResponse(BaseModel):
    """Polling hints for the dashboard."""

    metrics_interval_seconds: int
    metrics_history_limit: int
    max_chart_containers: int


class LogsResponse(BaseModel):
    """Snapshot of recent log lines."""

    container_id: str
    lines: list[str]


# ========== Dependencies ==========


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_sessions(request: Request) -> SessionManager:
    return request.app.state.sessions


def get_credentials(request: Request) -> CredentialManager:
    return request.app.state.credentials


def get_docker(request: Request) -> DockerClientManager:
    return request.app.state.docker


def get_containers(request: Request) -> ContainerManager:
    return request.app.state.containers


def get_images(request: Request) -> ImageManager:
    return request.app.state.images


def get_metrics_manager(request: Request) -> MetricsManager:
    return request.app.state.metrics


def current_username(request: Request) -> Optional[str]:
    session = getattr(request.state, "session", None)
    return session.username if session else None


# ========== Error handling ==========


def _error_status(error: DockerAPIError) -> int:
    if isinstance(error, DockerDaemonUnreachableError):
        return 503
    if isinstance(error, (ContainerNotFoundError, ImageNotFoundError)):
        return 404
    status = error.status_code
    if status and 400 <= status < 600:
        return status
    return 500


async def _invalid_input_handler(request: Request, exc: InvalidInputError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": str(exc)})


async def _docker_error_handler(request: Request, exc: DockerAPIError) -> JSONResponse:
    status = _error_status(exc)
    logger.warning(
        "Docker operation failed",
        extra={"path": request.url.path, "status": status, "error": str(exc)},
    )
    content = {"detail": str(exc)}
    container_id = getattr(exc, "container_id", None)
    if container_id:
        content["container_id"] = container_id
    return JSONResponse(status_code=status, content=content)


# ========== Application factory ==========


def create_app(
    settings: Optional[Settings] = None,
    credentials: Optional[CredentialManager] = None,
    docker: Optional[DockerClientManager] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Settings (defaults to get_settings())
        credentials: Pre-built credentials; provisioned at startup when None
        docker: Docker client manager; built from settings when None

    Returns:
        FastAPI application
    """
    settings = settings or get_settings()
    docker = docker or DockerClientManager(settings.docker_socket)
    sessions = SessionManager(settings.session_timeout_seconds)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        audit_logger = get_audit_logger()
        sweeper: Optional[SessionSweeper] = None

        if settings.auth_enabled:
            if app.state.credentials is None:
                app.state.credentials = provision_credentials(settings)
        else:
            logger.warning(
                "SECURITY WARNING: authentication is disabled; anyone who can reach "
                "this server has full control of the Docker host. "
                "Set SDM_AUTH_ENABLED=true to require a login."
            )

        if settings.session_sweep_interval_seconds > 0:
            sweeper = SessionSweeper(sessions, settings.session_sweep_interval_seconds)
            await sweeper.start()

        audit_logger.log_event(
            AuditEventType.SYSTEM_STARTUP,
            details={"version": __version__, "auth_enabled": settings.auth_enabled},
        )
        logger.info("Simple Docker Manager started", extra={"bind": settings.bind_address})

        yield

        logger.info("Shutting down Simple Docker Manager")
        if sweeper is not None:
            await sweeper.stop()
        docker.close()
        audit_logger.log_event(AuditEventType.SYSTEM_SHUTDOWN)
        logger.info("Simple Docker Manager stopped")

    app = FastAPI(title="Simple Docker Manager", version=__version__, lifespan=lifespan)

    app.state.settings = settings
    app.state.credentials = credentials
    app.state.sessions = sessions
    app.state.docker = docker
    app.state.containers = ContainerManager(docker, default_log_tail=settings.default_log_tail)
    app.state.images = ImageManager(docker)
    app.state.metrics = MetricsManager(docker)

    app.add_middleware(AccessGateMiddleware, sessions=sessions, auth_enabled=settings.auth_enabled)
    app.add_exception_handler(InvalidInputError, _invalid_input_handler)
    app.add_exception_handler(DockerAPIError, _docker_error_handler)

    _register_routes(app)
    return app


def _register_routes(app: FastAPI) -> None:
    audit_logger = get_audit_logger()
    metrics_collector = get_metrics_collector()

    # ========== Health ==========

    @app.get("/health")
    async def health(docker: DockerClientManager = Depends(get_docker)) -> HealthCheckResponse:
        """Report whether the Docker daemon answers."""
        docker_connected = await asyncio.to_thread(docker.ping)
        return HealthCheckResponse(
            status="healthy" if docker_connected else "degraded",
            docker_connected=docker_connected,
        )

    @app.get("/ready")
    async def ready(docker: DockerClientManager = Depends(get_docker)) -> JSONResponse:
        """Readiness probe: 503 until the Docker daemon is reachable."""
        if await asyncio.to_thread(docker.ping):
            return JSONResponse({"status": "ready"})
        return JSONResponse({"status": "unavailable"}, status_code=503)

    # ========== Authentication ==========

    @app.get(LOGIN_PATH, response_model=None)
    async def login_page(settings: Settings = Depends(get_app_settings)) -> Response:
        if not settings.auth_enabled:
            return RedirectResponse("/", status_code=303)
        return HTMLResponse(LOGIN_FORM)

    @app.post(LOGIN_PATH, response_model=None)
    async def login(
        username: str = Form(""),
        password: str = Form(""),
        settings: Settings = Depends(get_app_settings),
        credentials: Optional[CredentialManager] = Depends(get_credentials),
        sessions: SessionManager = Depends(get_sessions),
    ) -> Response:
        """Check credentials and start a session."""
        if not settings.auth_enabled:
            return RedirectResponse("/", status_code=303)

        # Argon2 verification blocks for tens of milliseconds
        accepted = credentials is not None and await asyncio.to_thread(
            credentials.authenticate, username, password
        )
        metrics_collector.record_login(accepted)

        if not accepted:
            audit_logger.log_event(AuditEventType.AUTH_LOGIN_FAILURE, username=username)
            return JSONResponse({"detail": INVALID_CREDENTIALS}, status_code=401)

        session_id = await sessions.create(username)
        metrics_collector.set_active_sessions(await sessions.active_count())
        audit_logger.log_event(AuditEventType.AUTH_LOGIN_SUCCESS, username=username)

        response = RedirectResponse("/", status_code=303)
        response.set_cookie(
            SESSION_COOKIE,
            session_id,
            max_age=settings.session_timeout_seconds,
            path="/",
            httponly=True,
            samesite="strict",
        )
        return response

    @app.api_route("/logout", methods=["GET", "POST"], response_model=None)
    async def logout(
        request: Request, sessions: SessionManager = Depends(get_sessions)
    ) -> Response:
        """End the session named by the cookie, if any."""
        session_id = extract_cookie(request.headers.get("cookie"))
        if session_id:
            session = await sessions.remove(session_id)
            if session is not None:
                audit_logger.log_event(AuditEventType.AUTH_LOGOUT, username=session.username)
            metrics_collector.set_active_sessions(await sessions.active_count())

        response = RedirectResponse(LOGIN_PATH, status_code=303)
        response.delete_cookie(SESSION_COOKIE, path="/", httponly=True, samesite="strict")
        return response

    # ========== Dashboard ==========

    @app.get("/")
    async def index(request: Request) -> dict:
        return {
            "name": "Simple Docker Manager",
            "version": __version__,
            "user": current_username(request),
        }

    @app.get("/api/config")
    async def dashboard_config(
        settings: Settings = Depends(get_app_settings),
    ) -> DashboardConfigResponse:
        return DashboardConfigResponse(
            metrics_interval_seconds=settings.metrics_interval_seconds,
            metrics_history_limit=settings.metrics_history_limit,
            max_chart_containers=settings.max_chart_containers,
        )

    # ========== Containers ==========

    @app.get("/api/containers")
    async def list_containers(
        containers: ContainerManager = Depends(get_containers),
    ) -> list[ContainerSummary]:
        return await containers.list_running_containers()

    async def _create(
        request: Request, body: CreateContainerRequest, containers: ContainerManager
    ) -> CreateContainerResponse:
        username = current_username(request)
        try:
            created = await containers.create_and_start_container(body)
        except DockerAPIError as e:
            metrics_collector.record_container_action("create", "failure")
            audit_logger.log_event(
                AuditEventType.CONTAINER_CREATE,
                username=username,
                container_id=getattr(e, "container_id", None),
                details={"image": body.image_name, "error": str(e)},
            )
            raise

        metrics_collector.record_container_action("create", "success")
        audit_logger.log_event(
            AuditEventType.CONTAINER_CREATE,
            username=username,
            container_id=created.container_id,
            details={"image": body.image_name, "name": created.container_name},
        )
        return created

    @app.post("/api/containers", status_code=201)
    async def create_container(
        request: Request,
        body: CreateContainerRequest = Body(...),
        containers: ContainerManager = Depends(get_containers),
    ) -> CreateContainerResponse:
        return await _create(request, body, containers)

    @app.post("/start-image", status_code=201)
    async def start_image(
        request: Request,
        image_name: str = Form(...),
        container_name: Optional[str] = Form(None),
        environment_variables: Optional[str] = Form(None),
        port_mappings: Optional[str] = Form(None),
        restart_policy: Optional[str] = Form(None),
        containers: ContainerManager = Depends(get_containers),
    ) -> CreateContainerResponse:
        """Form variant of container creation used by the dashboard page."""
        body = CreateContainerRequest.from_form(
            image_name=image_name,
            container_name=container_name,
            environment_variables=environment_variables,
            port_mappings=port_mappings,
            restart_policy=restart_policy,
        )
        return await _create(request, body, containers)

    def _lifecycle_route(action: str, event_type: AuditEventType) -> None:
        async def handler(
            container_id: str,
            request: Request,
            containers: ContainerManager = Depends(get_containers),
        ) -> ActionResponse:
            operation = getattr(containers, f"{action}_container")
            try:
                await operation(container_id)
            except DockerAPIError:
                metrics_collector.record_container_action(action, "failure")
                raise

            metrics_collector.record_container_action(action, "success")
            audit_logger.log_event(
                event_type, username=current_username(request), container_id=container_id
            )
            return ActionResponse(container_id=container_id, action=action)

        app.add_api_route(
            f"/api/containers/{{container_id}}/{action}",
            handler,
            methods=["POST"],
            name=f"{action}_container",
        )

    _lifecycle_route("start", AuditEventType.CONTAINER_START)
    _lifecycle_route("stop", AuditEventType.CONTAINER_STOP)
    _lifecycle_route("restart", AuditEventType.CONTAINER_RESTART)

    @app.get("/api/containers/{container_id}/logs")
    async def container_logs(
        container_id: str,
        tail: Optional[int] = Query(None),
        containers: ContainerManager = Depends(get_containers),
    ) -> LogsResponse:
        lines = await containers.get_container_logs(container_id, tail=tail)
        return LogsResponse(container_id=container_id, lines=lines)

    @app.get("/api/containers/{container_id}/logs/stream")
    async def stream_logs(
        container_id: str,
        tail: Optional[int] = Query(None),
        containers: ContainerManager = Depends(get_containers),
    ) -> StreamingResponse:
        """Follow logs as Server-Sent Events until the client disconnects."""
        lines = await containers.get_container_logs(container_id, tail=tail, follow=True)

        async def events():
            try:
                async for line in lines:
                    yield f"data: {line}\n\n"
            except DockerAPIError as e:
                logger.warning(
                    "Log stream ended by engine error",
                    extra={"container_id": container_id, "error": str(e)},
                )
                yield f"event: error\ndata: {e}\n\n"
            finally:
                await lines.aclose()

        return StreamingResponse(
            events(),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
        )

    @app.get("/api/containers/{container_id}/metrics")
    async def container_metrics(
        container_id: str, metrics: MetricsManager = Depends(get_metrics_manager)
    ) -> ContainerMetrics:
        return await metrics.get_container_metrics(container_id)

    # ========== Images ==========

    @app.get("/api/images")
    async def list_images(images: ImageManager = Depends(get_images)) -> list[ImageSummary]:
        return await images.list_downloaded_images()

    @app.get("/api/images/info")
    async def image_info(
        image: str = Query(..., description="Image reference"),
        images: ImageManager = Depends(get_images),
    ) -> ImageInfo:
        return await images.get_image_info(image)

    # ========== Metrics ==========

    @app.get("/api/metrics")
    async def all_metrics(metrics: MetricsManager = Depends(get_metrics_manager)) -> MetricsResponse:
        return await metrics.get_metrics()

    @app.get("/api/prometheus")
    async def prometheus_metrics() -> Response:
        return Response(metrics_collector.get_metrics(), media_type=metrics_collector.content_type)


def main() -> None:
    """Main entry point for the Simple Docker Manager server."""
    settings = get_settings()

    # Setup logging first so credential provisioning is logged
    setup_logging(log_level=settings.log_level, log_format=settings.log_format)

    logger.info(
        "Starting server",
        extra={
            "host": settings.host,
            "port": settings.port,
            "auth_enabled": settings.auth_enabled,
            "docker_socket": settings.docker_socket or "default",
        },
    )

    try:
        uvicorn.run(
            create_app(settings),
            host=settings.host,
            port=settings.port,
            log_config=None,
            timeout_graceful_shutdown=settings.shutdown_timeout_seconds,
        )
    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt, shutting down")
        sys.exit(0)
    except Exception as e:
        logger.error("Server error", extra={"error": str(e)})
        sys.exit(1)


if __name__ == "__main__":
    main()
