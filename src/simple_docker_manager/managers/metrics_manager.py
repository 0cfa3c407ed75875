"""Per-container and system-wide resource metrics."""

import asyncio
from datetime import datetime, timezone
from typing import List, Optional

from docker.errors import APIError, NotFound

from simple_docker_manager.models.metrics import ContainerMetrics, MetricsResponse, SystemMetrics
from simple_docker_manager.utils import get_logger
from simple_docker_manager.utils.docker_client import DockerClientManager
from simple_docker_manager.utils.exceptions import (
    ContainerNotFoundError,
    DockerAPIError,
    DockerDaemonUnreachableError,
)
from simple_docker_manager.utils.metrics_calculator import build_container_metrics

logger = get_logger(__name__)


class MetricsManager:
    """Computes dashboard metrics from Docker stats. Nothing is kept between calls."""

    def __init__(self, docker: DockerClientManager) -> None:
        """
        Initialize metrics manager.

        Args:
            docker: Docker client manager
        """
        self.docker = docker

    async def get_container_metrics(
        self, container_id: str, container_name: Optional[str] = None
    ) -> ContainerMetrics:
        """
        Compute metrics for one container from a one-shot stats read.

        Args:
            container_id: Container ID or name
            container_name: Display name, when the caller already knows it

        Returns:
            Container metrics

        Raises:
            ContainerNotFoundError: If container not found
            DockerAPIError: If Docker operations fail
        """
        try:
            stats = await self.docker.run(
                "container_stats",
                lambda client: client.api.stats(container_id, stream=False),
            )
        except NotFound as e:
            raise ContainerNotFoundError(container_id, e)
        except APIError as e:
            raise DockerAPIError(f"Failed to read container stats: {e}", e)

        return build_container_metrics(container_id, stats, container_name=container_name)

    async def get_system_metrics(self) -> SystemMetrics:
        """
        Container, image and version counters for the whole host.

        Raises:
            DockerAPIError: If Docker operations fail
        """
        try:
            all_containers, running, images, version = await asyncio.gather(
                self.docker.run("list_containers", lambda client: client.api.containers(all=True)),
                self.docker.run(
                    "list_containers",
                    lambda client: client.api.containers(filters={"status": "running"}),
                ),
                self.docker.run("list_images", lambda client: client.api.images()),
                self.docker.run("version", lambda client: client.version()),
            )
        except APIError as e:
            raise DockerAPIError(f"Failed to read system metrics: {e}", e)

        return SystemMetrics(
            timestamp=datetime.now(timezone.utc),
            total_containers=len(all_containers),
            running_containers=len(running),
            total_images=len(images),
            docker_version=str(version.get("Version", "unknown")),
        )

    async def get_metrics(self) -> MetricsResponse:
        """
        System metrics plus metrics for every running container.

        Stats are read concurrently; a container whose stats cannot be read
        (for example because it stopped meanwhile) is left out.

        Raises:
            DockerAPIError: If listing containers or system metrics fails
        """
        system = await self.get_system_metrics()

        try:
            running = await self.docker.run(
                "list_containers",
                lambda client: client.api.containers(filters={"status": "running"}),
            )
        except APIError as e:
            raise DockerAPIError(f"Failed to list containers: {e}", e)

        results = await asyncio.gather(
            *(
                self.get_container_metrics(c["Id"], (c.get("Names") or [""])[0].lstrip("/"))
                for c in running
            ),
            return_exceptions=True,
        )

        containers: List[ContainerMetrics] = []
        for raw, result in zip(running, results):
            if isinstance(result, DockerDaemonUnreachableError):
                raise result
            if isinstance(result, DockerAPIError):
                logger.warning(
                    "Skipping container metrics",
                    extra={"container_id": raw.get("Id"), "error": str(result)},
                )
                continue
            if isinstance(result, BaseException):
                raise result
            containers.append(result)

        return MetricsResponse(system=system, containers=containers)
