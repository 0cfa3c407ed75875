"""Manager modules for business logic."""

from .container_manager import ContainerManager
from .image_manager import ImageManager
from .metrics_manager import MetricsManager
from .session_manager import SessionManager
from .session_sweeper import SessionSweeper

__all__ = [
    "ContainerManager",
    "ImageManager",
    "MetricsManager",
    "SessionManager",
    "SessionSweeper",
]
