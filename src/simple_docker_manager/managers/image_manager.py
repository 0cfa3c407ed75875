"""Image listing and inspection."""

from typing import Any, List, Mapping

from docker.errors import APIError, NotFound
from pydantic import ValidationError

from simple_docker_manager.managers.container_manager import (
    UNTAGGED_MARKER,
    parse_port_key,
    sort_ports,
    validate_image_ref,
)
from simple_docker_manager.models.containers import (
    EnvironmentVariable,
    ImageInfo,
    ImageSummary,
    PortMapping,
)
from simple_docker_manager.utils import get_logger
from simple_docker_manager.utils.docker_client import DockerClientManager
from simple_docker_manager.utils.exceptions import DockerAPIError, ImageNotFoundError

logger = get_logger(__name__)


def is_human_tag(tag: str) -> bool:
    """False for Docker's "<none>:<none>" placeholder."""
    return UNTAGGED_MARKER not in tag


def extract_exposed_ports(attrs: Mapping[str, Any]) -> List[PortMapping]:
    """Ports declared with EXPOSE, sorted for display."""
    exposed = (attrs.get("Config") or {}).get("ExposedPorts") or {}

    ports = []
    for key in exposed:
        parsed = parse_port_key(key)
        if parsed is None:
            continue
        port, protocol = parsed
        try:
            ports.append(PortMapping(container_port=port, protocol=protocol))
        except ValidationError:
            logger.debug("Skipping unsupported exposed port", extra={"port": key})

    return sort_ports(ports)


def extract_image_environment(attrs: Mapping[str, Any]) -> List[EnvironmentVariable]:
    """ENV defaults baked into the image, sorted by name."""
    variables = []
    for entry in (attrs.get("Config") or {}).get("Env") or []:
        try:
            variables.append(EnvironmentVariable.from_entry(entry))
        except ValidationError:
            logger.debug("Skipping malformed image env entry", extra={"entry": entry})

    return sorted(variables, key=lambda env: env.key)


class ImageManager:
    """Manager for locally cached images."""

    def __init__(self, docker: DockerClientManager) -> None:
        """
        Initialize image manager.

        Args:
            docker: Docker client manager
        """
        self.docker = docker

    async def list_downloaded_images(self) -> List[ImageSummary]:
        """
        List images that carry at least one human tag.

        Returns:
            Image summaries with placeholder tags removed
        """
        try:
            raw_images = await self.docker.run("list_images", lambda client: client.api.images())
        except APIError as e:
            raise DockerAPIError(f"Failed to list images: {e}", e)

        images = []
        for raw in raw_images:
            tags = [tag for tag in raw.get("RepoTags") or [] if is_human_tag(tag)]
            if tags:
                images.append(ImageSummary(id=raw.get("Id", ""), repo_tags=tags))

        return images

    async def get_image_info(self, image_ref: str) -> ImageInfo:
        """
        Inspect an image for its exposed ports and environment defaults.

        Args:
            image_ref: Image reference or ID

        Returns:
            Image information

        Raises:
            InvalidInputError: If the reference is malformed
            ImageNotFoundError: If the image is not available locally
            DockerAPIError: If Docker operations fail
        """
        ref = validate_image_ref(image_ref)

        try:
            attrs = await self.docker.run(
                "inspect_image", lambda client: client.api.inspect_image(ref)
            )
        except NotFound as e:
            raise ImageNotFoundError(ref, e)
        except APIError as e:
            raise DockerAPIError(f"Failed to inspect image: {e}", e)

        return ImageInfo(
            id=attrs.get("Id", ""),
            repo_tags=[tag for tag in attrs.get("RepoTags") or [] if is_human_tag(tag)],
            exposed_ports=extract_exposed_ports(attrs),
            environment_variables=extract_image_environment(attrs),
        )
