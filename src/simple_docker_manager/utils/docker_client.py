"""Docker client utilities for Simple Docker Manager."""

import asyncio
import threading
import time
from contextlib import contextmanager
from typing import Any, Callable, Iterator, TypeVar

import docker
from docker import DockerClient
from docker.errors import DockerException
from requests.exceptions import ConnectionError as RequestsConnectionError

from simple_docker_manager.utils import get_logger
from simple_docker_manager.utils.exceptions import DockerDaemonUnreachableError
from simple_docker_manager.utils.metrics_collector import get_metrics_collector

logger = get_logger(__name__)

T = TypeVar("T")

URL_SCHEMES = ("unix://", "tcp://", "http://", "https://", "npipe://", "ssh://")


def resolve_base_url(docker_socket: str) -> str:
    """
    Turn a configured socket into a Docker base URL.

    Args:
        docker_socket: Socket path (``/var/run/docker.sock``) or full URL

    Returns:
        Base URL accepted by DockerClient
    """
    if docker_socket.startswith(URL_SCHEMES):
        return docker_socket
    return f"unix://{docker_socket}"


class DockerClientManager:
    """Manages the Docker client connection."""

    def __init__(self, docker_socket: str | None = None) -> None:
        """
        Initialize Docker client manager.

        Args:
            docker_socket: Explicit socket path or URL; None uses the environment default
        """
        self.docker_socket = docker_socket
        self._client: DockerClient | None = None
        self._lock = threading.Lock()

    def get_client(self) -> DockerClient:
        """
        Get or create Docker client instance.

        Returns:
            DockerClient instance

        Raises:
            DockerDaemonUnreachableError: If unable to connect to Docker daemon
        """
        with self._lock:
            if self._client is not None:
                return self._client

            client = None
            try:
                if self.docker_socket:
                    client = docker.DockerClient(base_url=resolve_base_url(self.docker_socket))
                else:
                    client = docker.from_env()

                client.ping()
            except (DockerException, RequestsConnectionError) as e:
                logger.error("Failed to connect to Docker daemon", extra={"error": str(e)})
                if client is not None:
                    client.close()
                raise DockerDaemonUnreachableError(
                    f"Cannot connect to Docker daemon: {e}", e
                ) from e

            logger.info(
                "Successfully connected to Docker daemon",
                extra={"docker_socket": self.docker_socket or "default"},
            )
            self._client = client
            return client

    @contextmanager
    def engine_call(self, operation: str) -> Iterator[DockerClient]:
        """
        Run one engine operation and time it.

        Connection failures seen mid-call drop the cached client so the next
        operation reconnects.

        Args:
            operation: Operation name used for metrics

        Yields:
            DockerClient instance

        Raises:
            DockerDaemonUnreachableError: If the daemon cannot be reached
        """
        client = self.get_client()
        started = time.perf_counter()
        try:
            yield client
        except RequestsConnectionError as e:
            logger.error(
                "Lost connection to Docker daemon",
                extra={"operation": operation, "error": str(e)},
            )
            self.reset()
            raise DockerDaemonUnreachableError(f"Docker daemon is unreachable: {e}", e) from e
        finally:
            get_metrics_collector().record_engine_request(
                operation, time.perf_counter() - started
            )

    async def run(self, operation: str, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """
        Run a blocking engine call in a worker thread.

        Args:
            operation: Operation name used for metrics and logging
            func: Callable receiving the DockerClient as first argument
            *args: Extra positional arguments for func
            **kwargs: Extra keyword arguments for func

        Returns:
            Whatever func returns
        """

        def call() -> T:
            with self.engine_call(operation) as client:
                return func(client, *args, **kwargs)

        return await asyncio.to_thread(call)

    def ping(self) -> bool:
        """Check whether the daemon answers."""
        try:
            with self.engine_call("ping") as client:
                return bool(client.ping())
        except (DockerDaemonUnreachableError, DockerException) as e:
            logger.warning("Docker health check failed", extra={"error": str(e)})
            return False

    def reset(self) -> None:
        """Forget the cached client without closing it."""
        with self._lock:
            self._client = None

    def close(self) -> None:
        """Close Docker client connection."""
        with self._lock:
            if self._client:
                self._client.close()
                self._client = None
                logger.info("Docker client connection closed")
