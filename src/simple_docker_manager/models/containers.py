"""Container and image models exchanged with the dashboard."""

import json
from enum import Enum
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from simple_docker_manager.utils.exceptions import InvalidInputError

Protocol = Literal["tcp", "udp", "sctp"]


class RestartPolicy(str, Enum):
    """Restart policies accepted when creating a container."""

    NO = "no"
    ALWAYS = "always"
    UNLESS_STOPPED = "unless-stopped"
    ON_FAILURE = "on-failure"


class PortMapping(BaseModel):
    """A container port and the host port it is published on."""

    container_port: int = Field(..., ge=0, le=65535, description="Port inside the container")
    host_port: Optional[int] = Field(None, ge=0, le=65535, description="Published host port")
    protocol: Protocol = Field(default="tcp", description="tcp, udp or sctp")

    def sort_key(self) -> tuple[int, str]:
        """Ordering used for display: container port, then protocol."""
        return (self.container_port, self.protocol)


class EnvironmentVariable(BaseModel):
    """A single KEY=VALUE environment entry."""

    key: str = Field(..., min_length=1)
    value: str = ""

    @field_validator("key")
    @classmethod
    def _key_has_no_equals(cls, key: str) -> str:
        if "=" in key:
            raise ValueError("environment variable names cannot contain '='")
        return key

    def to_entry(self) -> str:
        """Render as the KEY=VALUE string Docker expects."""
        return f"{self.key}={self.value}"

    @classmethod
    def from_entry(cls, entry: str) -> "EnvironmentVariable":
        """Split a KEY=VALUE string on the first '='."""
        key, _, value = entry.partition("=")
        return cls(key=key, value=value)


class ContainerSummary(BaseModel):
    """A running container as shown on the dashboard."""

    id: str
    name: str
    image: str
    status: str = Field(..., description="Docker state string, e.g. running")
    ports: List[PortMapping] = Field(default_factory=list)
    environment: List[str] = Field(default_factory=list, description="Sorted KEY=VALUE entries")


class ImageSummary(BaseModel):
    """A locally cached image with at least one human tag."""

    id: str
    repo_tags: List[str] = Field(default_factory=list)


class ImageInfo(BaseModel):
    """Defaults baked into an image, used to prefill the create form."""

    id: str
    repo_tags: List[str] = Field(default_factory=list)
    exposed_ports: List[PortMapping] = Field(default_factory=list)
    environment_variables: List[EnvironmentVariable] = Field(default_factory=list)


class CreateContainerRequest(BaseModel):
    """Everything needed to create and start a container."""

    image_name: str = Field(..., min_length=1, description="Image reference to run")
    container_name: Optional[str] = Field(None, description="Name; generated when empty")
    environment_variables: List[EnvironmentVariable] = Field(default_factory=list)
    port_mappings: List[PortMapping] = Field(default_factory=list)
    restart_policy: Optional[str] = Field(
        None, description="no, always, unless-stopped or on-failure"
    )

    @classmethod
    def from_form(
        cls,
        image_name: str,
        container_name: Optional[str] = None,
        environment_variables: Optional[str] = None,
        port_mappings: Optional[str] = None,
        restart_policy: Optional[str] = None,
    ) -> "CreateContainerRequest":
        """
        Build a request from the dashboard form, whose lists arrive as JSON strings.

        Args:
            image_name: Image reference
            container_name: Optional container name
            environment_variables: JSON list of {"key", "value"} objects
            port_mappings: JSON list of {"container_port", "host_port", "protocol"} objects
            restart_policy: Restart policy name

        Returns:
            Validated request

        Raises:
            InvalidInputError: If a JSON payload or any field is malformed
        """
        payload: dict[str, Any] = {
            "image_name": image_name,
            "container_name": container_name or None,
            "environment_variables": _load_json_list("environment_variables", environment_variables),
            "port_mappings": _load_json_list("port_mappings", port_mappings),
            "restart_policy": restart_policy or None,
        }
        try:
            return cls.model_validate(payload)
        except ValidationError as e:
            raise InvalidInputError(f"Invalid container request: {e}") from e


class CreateContainerResponse(BaseModel):
    """Identifies the container that was created and started."""

    container_id: str
    container_name: str


def _load_json_list(field: str, raw: Optional[str]) -> list:
    if raw is None or not raw.strip():
        return []
    try:
        value = json.loads(raw)
    except json.JSONDecodeError as e:
        raise InvalidInputError(f"Invalid JSON in {field}: {e.msg}") from e
    if not isinstance(value, list):
        raise InvalidInputError(f"{field} must be a JSON list")
    return value
