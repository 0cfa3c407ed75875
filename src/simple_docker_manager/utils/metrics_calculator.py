"""Derive container resource metrics from raw Docker stats snapshots.

Docker's one-shot stats response carries two samples: ``cpu_stats`` (now)
and ``precpu_stats`` (the previous read). CPU usage is the share of system
CPU time the container consumed between the two.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional, Tuple

from simple_docker_manager.models.metrics import ContainerMetrics

BYTES_PER_MB = 1024 * 1024


def calculate_cpu_percent(cpu_delta: float, system_delta: float, online_cpus: int) -> float:
    """
    Compute CPU usage as a percentage.

    Args:
        cpu_delta: Container CPU time consumed between samples (ns)
        system_delta: System CPU time elapsed between samples (ns)
        online_cpus: Number of CPUs available to the container

    Returns:
        Percentage, 0.0 when nothing can be measured yet
    """
    if system_delta <= 0 or cpu_delta <= 0:
        return 0.0
    return (cpu_delta / system_delta) * online_cpus * 100.0


def cpu_percent_from_stats(stats: Mapping[str, Any]) -> float:
    """CPU percentage from a raw stats response."""
    cpu_stats = stats.get("cpu_stats") or {}
    precpu_stats = stats.get("precpu_stats") or {}

    cpu_usage = cpu_stats.get("cpu_usage") or {}
    precpu_usage = precpu_stats.get("cpu_usage") or {}

    cpu_delta = cpu_usage.get("total_usage", 0) - precpu_usage.get("total_usage", 0)
    system_delta = cpu_stats.get("system_cpu_usage", 0) - precpu_stats.get("system_cpu_usage", 0)

    # online_cpus is missing on older daemons; fall back to the per-CPU list
    online_cpus = cpu_stats.get("online_cpus") or len(cpu_usage.get("percpu_usage") or []) or 1

    return calculate_cpu_percent(cpu_delta, system_delta, online_cpus)


def calculate_memory(stats: Mapping[str, Any]) -> Tuple[float, float, float]:
    """
    Memory usage and limit in MiB plus usage percentage.

    Args:
        stats: Raw stats response

    Returns:
        (usage_mb, limit_mb, usage_percent)
    """
    memory_stats = stats.get("memory_stats") or {}
    usage = memory_stats.get("usage", 0) or 0
    limit = memory_stats.get("limit", 0) or 0

    percent = (usage / limit) * 100.0 if limit > 0 else 0.0
    return usage / BYTES_PER_MB, limit / BYTES_PER_MB, percent


def sum_network_io(stats: Mapping[str, Any]) -> Tuple[int, int]:
    """Total (rx_bytes, tx_bytes) across every network interface."""
    networks: Dict[str, Mapping[str, Any]] = stats.get("networks") or {}
    rx = sum(iface.get("rx_bytes", 0) for iface in networks.values())
    tx = sum(iface.get("tx_bytes", 0) for iface in networks.values())
    return rx, tx


def sum_block_io(stats: Mapping[str, Any]) -> Tuple[int, int]:
    """Total (read_bytes, write_bytes) from the recursive per-device counters."""
    blkio_stats = stats.get("blkio_stats") or {}
    entries = blkio_stats.get("io_service_bytes_recursive") or []

    read_bytes = 0
    write_bytes = 0
    for entry in entries:
        # cgroup v1 reports "Read"/"Write", cgroup v2 "read"/"write"
        op = str(entry.get("op", "")).lower()
        if op == "read":
            read_bytes += entry.get("value", 0)
        elif op == "write":
            write_bytes += entry.get("value", 0)

    return read_bytes, write_bytes


def build_container_metrics(
    container_id: str,
    stats: Mapping[str, Any],
    container_name: Optional[str] = None,
    timestamp: Optional[datetime] = None,
) -> ContainerMetrics:
    """
    Build a ContainerMetrics from one raw stats response.

    Args:
        container_id: Container ID the stats belong to
        stats: Raw stats response (stream=False)
        container_name: Name override; defaults to the name in the stats
        timestamp: Sample time; defaults to now (UTC)

    Returns:
        ContainerMetrics
    """
    usage_mb, limit_mb, memory_percent = calculate_memory(stats)
    rx, tx = sum_network_io(stats)
    block_read, block_write = sum_block_io(stats)
    pids = (stats.get("pids_stats") or {}).get("current", 0) or 0

    return ContainerMetrics(
        container_id=container_id,
        container_name=container_name or str(stats.get("name", "")).lstrip("/"),
        timestamp=timestamp or datetime.now(timezone.utc),
        cpu_usage_percent=cpu_percent_from_stats(stats),
        memory_usage_mb=usage_mb,
        memory_limit_mb=limit_mb,
        memory_usage_percent=memory_percent,
        network_rx_bytes=rx,
        network_tx_bytes=tx,
        block_read_bytes=block_read,
        block_write_bytes=block_write,
        pids=pids,
    )
