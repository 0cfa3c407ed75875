"""Data models for Simple Docker Manager."""

from .containers import (
    ContainerSummary,
    CreateContainerRequest,
    CreateContainerResponse,
    EnvironmentVariable,
    ImageInfo,
    ImageSummary,
    PortMapping,
    RestartPolicy,
)
from .metrics import ContainerMetrics, MetricsResponse, SystemMetrics
from .sessions import Session

__all__ = [
    "ContainerMetrics",
    "ContainerSummary",
    "CreateContainerRequest",
    "CreateContainerResponse",
    "EnvironmentVariable",
    "ImageInfo",
    "ImageSummary",
    "MetricsResponse",
    "PortMapping",
    "RestartPolicy",
    "Session",
    "SystemMetrics",
]
