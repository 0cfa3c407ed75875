"""Resource usage models returned by the metrics endpoints."""

from datetime import datetime
from typing import List

from pydantic import BaseModel, Field


class ContainerMetrics(BaseModel):
    """Point-in-time resource usage of one container."""

    container_id: str = Field(..., description="Docker container ID")
    container_name: str = Field(..., description="Container name without leading slash")
    timestamp: datetime = Field(..., description="When the sample was computed (UTC)")
    cpu_usage_percent: float = Field(default=0.0, description="CPU usage across all cores")
    memory_usage_mb: float = Field(default=0.0, description="Memory in use (MiB)")
    memory_limit_mb: float = Field(default=0.0, description="Memory limit (MiB)")
    memory_usage_percent: float = Field(default=0.0, description="Usage as share of limit")
    network_rx_bytes: int = Field(default=0, description="Bytes received on all interfaces")
    network_tx_bytes: int = Field(default=0, description="Bytes sent on all interfaces")
    block_read_bytes: int = Field(default=0, description="Bytes read from block devices")
    block_write_bytes: int = Field(default=0, description="Bytes written to block devices")
    pids: int = Field(default=0, description="Number of processes in the container")


class SystemMetrics(BaseModel):
    """Host-wide counters reported by the Docker daemon."""

    timestamp: datetime
    total_containers: int = Field(..., description="Containers in any state")
    running_containers: int = Field(..., description="Containers currently running")
    total_images: int = Field(..., description="Images in the local cache")
    docker_version: str = Field(..., description="Docker engine version string")


class MetricsResponse(BaseModel):
    """Payload served to the dashboard charts."""

    system: SystemMetrics
    containers: List[ContainerMetrics] = Field(default_factory=list)
