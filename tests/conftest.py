"""Test configuration and fixtures."""

from unittest.mock import MagicMock

import pytest
from docker.errors import APIError, NotFound

from simple_docker_manager.config import Settings
from simple_docker_manager.utils.docker_client import DockerClientManager


@pytest.fixture
def mock_docker_client():
    """Create mock Docker client."""
    client = MagicMock()
    client.ping.return_value = True
    return client


@pytest.fixture
def docker_manager(mock_docker_client):
    """DockerClientManager already connected to the mock client."""
    manager = DockerClientManager()
    manager._client = mock_docker_client
    return manager


@pytest.fixture
def settings(tmp_path):
    """Settings isolated from the environment and any .env file."""
    return Settings(
        _env_file=None,
        auth_password="correct horse battery staple",
        password_file=str(tmp_path / "sdm_password"),
        log_format="text",
    )


@pytest.fixture
def not_found():
    """Factory for NotFound as raised by docker-py for a 404."""

    def make(message: str = "No such object") -> NotFound:
        response = MagicMock()
        response.status_code = 404
        return NotFound(message, response=response, explanation=message)

    return make


@pytest.fixture
def api_error():
    """Factory for APIError carrying a daemon status code."""

    def make(status_code: int = 500, explanation: str = "engine failure") -> APIError:
        response = MagicMock()
        response.status_code = status_code
        return APIError(explanation, response=response, explanation=explanation)

    return make
