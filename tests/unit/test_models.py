"""Unit tests for request and response models."""

import json
from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from simple_docker_manager.models import (
    ContainerMetrics,
    ContainerSummary,
    CreateContainerRequest,
    EnvironmentVariable,
    ImageInfo,
    MetricsResponse,
    PortMapping,
    SystemMetrics,
)
from simple_docker_manager.utils.exceptions import InvalidInputError


def test_port_mapping_defaults():
    """Test protocol default and missing host port."""
    port = PortMapping(container_port=80)
    assert port.protocol == "tcp"
    assert port.host_port is None


@pytest.mark.parametrize("field,value", [("container_port", -1), ("container_port", 70000)])
def test_port_mapping_range(field, value):
    """Test that ports outside 0..65535 are rejected."""
    with pytest.raises(ValidationError):
        PortMapping(**{field: value})


def test_port_mapping_protocol():
    """Test that unknown protocols are rejected."""
    with pytest.raises(ValidationError):
        PortMapping(container_port=80, protocol="icmp")


def test_environment_variable_entries():
    """Test rendering and parsing KEY=VALUE."""
    assert EnvironmentVariable(key="A", value="1").to_entry() == "A=1"
    assert EnvironmentVariable.from_entry("URL=http://x?a=b") == EnvironmentVariable(
        key="URL", value="http://x?a=b"
    )
    assert EnvironmentVariable.from_entry("FLAG").value == ""


def test_environment_variable_key_rules():
    """Test that keys must be non-empty and free of '='."""
    with pytest.raises(ValidationError):
        EnvironmentVariable(key="")
    with pytest.raises(ValidationError):
        EnvironmentVariable(key="A=B")


def test_create_request_from_form():
    """Test decoding the JSON-string form fields."""
    request = CreateContainerRequest.from_form(
        image_name="nginx:latest",
        container_name="",
        environment_variables=json.dumps([{"key": "MODE", "value": "prod"}]),
        port_mappings=json.dumps([{"container_port": 80, "host_port": 8080, "protocol": "tcp"}]),
        restart_policy="always",
    )

    assert request.container_name is None
    assert request.environment_variables == [EnvironmentVariable(key="MODE", value="prod")]
    assert request.port_mappings == [PortMapping(container_port=80, host_port=8080)]
    assert request.restart_policy == "always"


def test_create_request_from_form_empty_lists():
    """Test that missing or blank list fields mean no entries."""
    request = CreateContainerRequest.from_form(
        image_name="nginx", environment_variables="", port_mappings=None
    )

    assert request.environment_variables == []
    assert request.port_mappings == []
    assert request.restart_policy is None


@pytest.mark.parametrize(
    "environment_variables,port_mappings",
    [
        ("{not json", None),
        (None, "[{]"),
        ('{"key": "A"}', None),
        (None, '[{"container_port": "eighty"}]'),
        ('[{"key": "A=B"}]', None),
    ],
)
def test_create_request_from_form_invalid(environment_variables, port_mappings):
    """Test that malformed form payloads are input errors."""
    with pytest.raises(InvalidInputError):
        CreateContainerRequest.from_form(
            image_name="nginx",
            environment_variables=environment_variables,
            port_mappings=port_mappings,
        )


def test_create_request_requires_image():
    """Test that an empty image is rejected."""
    with pytest.raises(InvalidInputError):
        CreateContainerRequest.from_form(image_name="")


def test_wire_format_round_trip():
    """Test that JSON produced for the dashboard reads back unchanged."""
    when = datetime(2024, 5, 1, 8, 30, tzinfo=timezone.utc)
    values = [
        ContainerSummary(
            id="c1",
            name="web",
            image="nginx:latest",
            status="running",
            ports=[PortMapping(container_port=80, host_port=8080)],
            environment=["A=1"],
        ),
        ImageInfo(
            id="sha256:abc",
            repo_tags=["nginx:latest"],
            exposed_ports=[PortMapping(container_port=53, protocol="udp")],
            environment_variables=[EnvironmentVariable(key="A", value="b=c")],
        ),
        MetricsResponse(
            system=SystemMetrics(
                timestamp=when,
                total_containers=3,
                running_containers=1,
                total_images=2,
                docker_version="25.0.3",
            ),
            containers=[
                ContainerMetrics(
                    container_id="c1",
                    container_name="web",
                    timestamp=when,
                    cpu_usage_percent=12.5,
                    memory_usage_mb=64.0,
                    pids=3,
                )
            ],
        ),
    ]

    for value in values:
        assert type(value).model_validate_json(value.model_dump_json()) == value
