"""Container listing, lifecycle and log operations against the Docker engine."""

import asyncio
import codecs
import re
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, AsyncIterator, Dict, Iterator, List, Mapping, Optional

from docker import DockerClient
from docker.errors import APIError, NotFound
from pydantic import ValidationError
from requests.exceptions import ConnectionError as RequestsConnectionError

from simple_docker_manager.models.containers import (
    ContainerSummary,
    CreateContainerRequest,
    CreateContainerResponse,
    PortMapping,
    RestartPolicy,
)
from simple_docker_manager.utils import get_logger
from simple_docker_manager.utils.docker_client import DockerClientManager
from simple_docker_manager.utils.exceptions import (
    ContainerNotFoundError,
    ContainerStartError,
    DockerAPIError,
    DockerDaemonUnreachableError,
    ImageNotFoundError,
    InvalidInputError,
)

logger = get_logger(__name__)

UNTAGGED_MARKER = "<none>"
ON_FAILURE_MAX_RETRIES = 3
DEFAULT_LOG_TAIL = 100

_HEX64 = re.compile(r"^[0-9a-fA-F]{64}$")
_NAME_UNSAFE = re.compile(r"[^a-zA-Z0-9_.-]")


def is_image_id(image: str) -> bool:
    """
    Whether an image reference is a raw ID rather than a human tag.

    Containers whose image was untagged after creation report the content
    hash instead of a name.
    """
    return bool(_HEX64.match(image)) or image.startswith("sha256:") or UNTAGGED_MARKER in image


def validate_image_ref(image_ref: str) -> str:
    """
    Reject image references Docker could never resolve.

    Args:
        image_ref: Image reference from the client

    Returns:
        The reference without surrounding whitespace

    Raises:
        InvalidInputError: If empty or containing whitespace/control characters
    """
    ref = (image_ref or "").strip()
    if not ref or any(ch.isspace() or not ch.isprintable() for ch in ref):
        raise InvalidInputError(f"Invalid image name: {image_ref!r}")
    return ref


def sort_ports(ports: List[PortMapping]) -> List[PortMapping]:
    """Sort by container port then protocol (stable for equal keys)."""
    return sorted(ports, key=PortMapping.sort_key)


def parse_port_key(key: str) -> Optional[tuple[int, str]]:
    """
    Split a Docker "port/protocol" key.

    Args:
        key: e.g. "80/tcp" or "53"

    Returns:
        (port, protocol), or None when the port is not a number
    """
    port, _, protocol = key.partition("/")
    try:
        return int(port), (protocol or "tcp").lower()
    except ValueError:
        return None


def extract_port_bindings(attrs: Mapping[str, Any]) -> List[PortMapping]:
    """
    Port mappings from an inspect response, sorted for display.

    Published ports come from NetworkSettings.Ports; containers that are not
    running yet only carry HostConfig.PortBindings.
    """
    bindings = (attrs.get("NetworkSettings") or {}).get("Ports") or (
        attrs.get("HostConfig") or {}
    ).get("PortBindings") or {}

    ports: List[PortMapping] = []
    seen = set()
    for key, host_bindings in bindings.items():
        parsed = parse_port_key(key)
        if parsed is None:
            continue
        container_port, protocol = parsed

        host_ports: List[Optional[int]] = []
        for binding in host_bindings or []:
            host_port = (binding or {}).get("HostPort")
            host_ports.append(int(host_port) if host_port else None)
        if not host_ports:
            host_ports.append(None)

        for host_port in host_ports:
            # IPv4 and IPv6 bindings of the same port show up twice
            if (container_port, host_port, protocol) in seen:
                continue
            seen.add((container_port, host_port, protocol))
            try:
                ports.append(
                    PortMapping(
                        container_port=container_port, host_port=host_port, protocol=protocol
                    )
                )
            except ValidationError:
                logger.debug("Skipping unsupported port binding", extra={"port": key})

    return sort_ports(ports)


def extract_environment(attrs: Mapping[str, Any]) -> List[str]:
    """Sorted KEY=VALUE entries from an inspect response."""
    return sorted((attrs.get("Config") or {}).get("Env") or [])


def generate_container_name(image_name: str, now_ms: Optional[int] = None) -> str:
    """
    Name a container after its image's repository.

    ``ghcr.io/acme/web-app:1.2`` becomes ``web-app-<n>`` where n is the current
    time in milliseconds modulo 1,000,000.

    Args:
        image_name: Image reference
        now_ms: Current time in milliseconds (defaults to the wall clock)

    Returns:
        Container name
    """
    repository = image_name.split("@", 1)[0]
    last_segment = repository.rsplit("/", 1)[-1]
    base = last_segment.split(":", 1)[0]
    base = _NAME_UNSAFE.sub("-", base).strip("-._") or "container"

    if now_ms is None:
        now_ms = time.time_ns() // 1_000_000
    return f"{base}-{now_ms % 1_000_000}"


def resolve_restart_policy(value: Optional[str]) -> Optional[Dict[str, Any]]:
    """
    Docker restart policy for a requested policy name.

    Args:
        value: Policy name; None or empty means "no"

    Returns:
        Policy dict for the Docker API, or None for "no"

    Raises:
        InvalidInputError: If the name is not a known policy
    """
    if not value or not value.strip():
        return None

    try:
        policy = RestartPolicy(value.strip().lower())
    except ValueError:
        allowed = ", ".join(p.value for p in RestartPolicy)
        raise InvalidInputError(f"Unknown restart policy '{value}' (expected one of: {allowed})")

    if policy is RestartPolicy.NO:
        return None
    if policy is RestartPolicy.ON_FAILURE:
        return {"Name": policy.value, "MaximumRetryCount": ON_FAILURE_MAX_RETRIES}
    return {"Name": policy.value}


def build_create_options(request: CreateContainerRequest) -> Dict[str, Any]:
    """
    Keyword arguments for ``containers.create`` from a create request.

    Ports whose container port is 0 are treated as not specified. A missing
    host port publishes on the same number as the container port. A container
    port mapped to several host ports is published on all of them.

    Raises:
        InvalidInputError: If the image reference or restart policy is invalid
    """
    image = validate_image_ref(request.image_name)

    name = (request.container_name or "").strip() or generate_container_name(image)

    ports: Dict[str, Any] = {}
    for mapping in request.port_mappings:
        if mapping.container_port == 0:
            continue
        host_port = mapping.host_port or mapping.container_port
        key = f"{mapping.container_port}/{mapping.protocol}"
        bound = ports.get(key)
        if bound is None:
            ports[key] = host_port
        elif isinstance(bound, list):
            if host_port not in bound:
                bound.append(host_port)
        elif bound != host_port:
            ports[key] = [bound, host_port]

    options: Dict[str, Any] = {
        "image": image,
        "name": name,
        "environment": [env.to_entry() for env in request.environment_variables],
        "ports": ports,
        "detach": True,
        "tty": False,
        "stdin_open": False,
    }

    restart_policy = resolve_restart_policy(request.restart_policy)
    if restart_policy:
        options["restart_policy"] = restart_policy

    return options


class ContainerManager:
    """Manager for Docker container operations."""

    def __init__(self, docker: DockerClientManager, default_log_tail: int = DEFAULT_LOG_TAIL) -> None:
        """
        Initialize container manager.

        Args:
            docker: Docker client manager
            default_log_tail: Log lines returned when no tail is given
        """
        self.docker = docker
        self.default_log_tail = default_log_tail

    async def list_running_containers(self) -> List[ContainerSummary]:
        """
        List running containers with their ports and environment.

        Containers running from an untagged image are left out. If inspecting
        one container fails, it is listed without ports and environment.

        Returns:
            Container summaries
        """
        try:
            raw_containers = await self.docker.run(
                "list_containers",
                lambda client: client.api.containers(filters={"status": "running"}),
            )
        except APIError as e:
            raise DockerAPIError(f"Failed to list containers: {_explain(e)}", e)

        candidates = [c for c in raw_containers if not is_image_id(c.get("Image") or "")]
        return list(await asyncio.gather(*(self._summarize(c) for c in candidates)))

    async def _summarize(self, raw: Mapping[str, Any]) -> ContainerSummary:
        container_id = raw.get("Id", "")
        names = raw.get("Names") or [""]

        ports: List[PortMapping] = []
        environment: List[str] = []
        try:
            attrs = await self.docker.run(
                "inspect_container",
                lambda client: client.api.inspect_container(container_id),
            )
        except DockerDaemonUnreachableError:
            raise
        except (APIError, DockerAPIError) as e:
            logger.warning(
                "Failed to inspect container, listing without details",
                extra={"container_id": container_id, "error": str(e)},
            )
        else:
            ports = extract_port_bindings(attrs)
            environment = extract_environment(attrs)

        return ContainerSummary(
            id=container_id,
            name=names[0].lstrip("/"),
            image=raw.get("Image", ""),
            status=raw.get("State", ""),
            ports=ports,
            environment=environment,
        )

    async def create_and_start_container(
        self, request: CreateContainerRequest
    ) -> CreateContainerResponse:
        """
        Create a container from an image and start it.

        Args:
            request: Create request

        Returns:
            ID and name of the running container

        Raises:
            InvalidInputError: If the request is malformed
            ImageNotFoundError: If the image is not available locally
            ContainerStartError: If the container was created but did not start
            DockerAPIError: If Docker operations fail
        """
        options = build_create_options(request)

        def create(client: DockerClient):
            return client.containers.create(**options)

        try:
            container = await self.docker.run("create_container", create)
        except NotFound as e:
            raise ImageNotFoundError(options["image"], e)
        except APIError as e:
            logger.error("Docker API error creating container", extra={"error": str(e)})
            raise DockerAPIError(f"Failed to create container: {_explain(e)}", e)

        logger.info(
            "Docker container created",
            extra={"docker_id": container.id, "name": options["name"], "image": options["image"]},
        )

        try:
            await self.docker.run("start_container", lambda client: container.start())
        except (APIError, DockerAPIError) as e:
            logger.error(
                "Created container failed to start",
                extra={"docker_id": container.id, "error": str(e)},
            )
            raise ContainerStartError(container.id, _explain(e), e)

        logger.info("Docker container started", extra={"docker_id": container.id})
        return CreateContainerResponse(container_id=container.id, container_name=options["name"])

    async def start_container(self, container_id: str) -> None:
        """
        Start a container.

        Raises:
            ContainerNotFoundError: If container not found
            DockerAPIError: If Docker operations fail
        """
        await self._lifecycle("start", container_id)

    async def stop_container(self, container_id: str) -> None:
        """
        Stop a container.

        Raises:
            ContainerNotFoundError: If container not found
            DockerAPIError: If Docker operations fail
        """
        await self._lifecycle("stop", container_id)

    async def restart_container(self, container_id: str) -> None:
        """
        Restart a container.

        Raises:
            ContainerNotFoundError: If container not found
            DockerAPIError: If Docker operations fail
        """
        await self._lifecycle("restart", container_id)

    async def _lifecycle(self, action: str, container_id: str) -> None:
        def call(client: DockerClient) -> None:
            getattr(client.api, action)(container_id)

        try:
            await self.docker.run(f"{action}_container", call)
        except NotFound as e:
            raise ContainerNotFoundError(container_id, e)
        except APIError as e:
            logger.error(
                f"Docker API error on container {action}",
                extra={"container_id": container_id, "error": str(e)},
            )
            raise DockerAPIError(f"Failed to {action} container: {_explain(e)}", e)

        logger.info(f"Docker container {action} done", extra={"container_id": container_id})

    async def get_container_logs(
        self,
        container_id: str,
        tail: Optional[int] = None,
        follow: bool = False,
    ) -> List[str] | AsyncIterator[str]:
        """
        Get container logs.

        Args:
            container_id: Container ID or name
            tail: Number of recent lines (default_log_tail when None)
            follow: Stream new lines as they arrive instead of a snapshot

        Returns:
            A list of lines, or an async iterator of lines when following

        Raises:
            ContainerNotFoundError: If container not found
            DockerAPIError: If Docker operations fail
        """
        if follow:
            return await self.stream_container_logs(container_id, tail)

        tail = self._tail(tail)
        try:
            raw = await self.docker.run(
                "container_logs",
                lambda client: client.api.logs(
                    container_id, stdout=True, stderr=True, stream=False, tail=tail
                ),
            )
        except NotFound as e:
            raise ContainerNotFoundError(container_id, e)
        except APIError as e:
            raise DockerAPIError(f"Failed to read container logs: {_explain(e)}", e)

        return raw.decode("utf-8", errors="replace").splitlines()

    async def stream_container_logs(
        self, container_id: str, tail: Optional[int] = None
    ) -> AsyncIterator[str]:
        """
        Open a follow stream and return an iterator over its lines.

        The engine stream is opened before returning, so a missing container
        fails here rather than on first iteration.

        Raises:
            ContainerNotFoundError: If container not found
            DockerAPIError: If Docker operations fail
        """
        tail = self._tail(tail)
        try:
            stream = await self.docker.run(
                "container_logs_stream",
                lambda client: client.api.logs(
                    container_id, stdout=True, stderr=True, stream=True, follow=True, tail=tail
                ),
            )
        except NotFound as e:
            raise ContainerNotFoundError(container_id, e)
        except APIError as e:
            raise DockerAPIError(f"Failed to stream container logs: {_explain(e)}", e)

        logger.debug("Log stream opened", extra={"container_id": container_id})
        return _iter_log_lines(container_id, stream, self.docker)

    def _tail(self, tail: Optional[int]) -> int:
        if tail is None:
            return self.default_log_tail
        if tail <= 0:
            raise InvalidInputError(f"tail must be positive, got {tail}")
        return tail


async def _iter_log_lines(
    container_id: str, stream: Iterator[bytes], docker: Optional[DockerClientManager] = None
) -> AsyncIterator[str]:
    """
    Pull chunks one at a time and close the engine stream when the consumer stops.

    Each stream is read on its own thread, never on the default executor
    that engine calls share.
    """
    reader = ThreadPoolExecutor(max_workers=1, thread_name_prefix="log-stream")
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    loop = asyncio.get_running_loop()
    pending = ""
    try:
        while True:
            try:
                chunk = await loop.run_in_executor(reader, next, stream, None)
            except RequestsConnectionError as e:
                logger.error(
                    "Lost connection to Docker daemon while following logs",
                    extra={"container_id": container_id, "error": str(e)},
                )
                if docker is not None:
                    docker.reset()
                raise DockerDaemonUnreachableError(f"Docker daemon is unreachable: {e}", e) from e
            if chunk is None:
                break
            pending += decoder.decode(chunk)
            *lines, pending = pending.split("\n")
            for line in lines:
                yield line.rstrip("\r")
        pending += decoder.decode(b"", final=True)
        if pending:
            yield pending
    finally:
        close = getattr(stream, "close", None)
        if close is not None:
            close()
        reader.shutdown(wait=False, cancel_futures=True)
        logger.debug("Log stream closed", extra={"container_id": container_id})


def _explain(error: Exception) -> str:
    """Docker's own error text when it has one."""
    explanation = getattr(error, "explanation", None)
    return str(explanation or error)
