"""Custom exceptions for Simple Docker Manager."""


class SimpleDockerManagerError(Exception):
    """Base exception for Simple Docker Manager errors."""

    pass


class ConfigurationError(SimpleDockerManagerError):
    """Exception raised when startup configuration is unusable."""

    pass


class InvalidInputError(SimpleDockerManagerError):
    """Exception raised when request input is rejected before reaching Docker."""

    pass


class DockerAPIError(SimpleDockerManagerError):
    """Exception raised when Docker API calls fail."""

    def __init__(self, message: str, original_error: Exception | None = None) -> None:
        """
        Initialize DockerAPIError.

        Args:
            message: Error message
            original_error: Original exception from Docker
        """
        self.original_error = original_error
        super().__init__(message)

    @property
    def status_code(self) -> int | None:
        """HTTP status reported by the Docker daemon, if any."""
        response = getattr(self.original_error, "response", None)
        return getattr(response, "status_code", None)


class DockerDaemonUnreachableError(DockerAPIError):
    """Exception raised when Docker daemon is unreachable."""

    def __init__(
        self,
        message: str = "Docker daemon is unreachable",
        original_error: Exception | None = None,
    ) -> None:
        """
        Initialize DockerDaemonUnreachableError.

        Args:
            message: Error message
            original_error: Original exception from Docker
        """
        super().__init__(message, original_error)


class ContainerNotFoundError(DockerAPIError):
    """Exception raised when a container is not found."""

    def __init__(self, identifier: str, original_error: Exception | None = None) -> None:
        """
        Initialize ContainerNotFoundError.

        Args:
            identifier: Container ID or name that was not found
            original_error: Original exception from Docker
        """
        self.identifier = identifier
        super().__init__(f"Container not found: {identifier}", original_error)


class ImageNotFoundError(DockerAPIError):
    """Exception raised when a Docker image is not found."""

    def __init__(self, image: str, original_error: Exception | None = None) -> None:
        """
        Initialize ImageNotFoundError.

        Args:
            image: Image reference that was not found
            original_error: Original exception from Docker
        """
        self.image = image
        super().__init__(f"Docker image not found: {image}", original_error)


class ContainerStartError(DockerAPIError):
    """Exception raised when a freshly created container fails to start."""

    def __init__(
        self, container_id: str, reason: str, original_error: Exception | None = None
    ) -> None:
        """
        Initialize ContainerStartError.

        Args:
            container_id: ID of the container that was created but not started
            reason: Error reported by Docker
            original_error: Original exception from Docker
        """
        self.container_id = container_id
        super().__init__(
            f"Container {container_id} was created but failed to start: {reason}",
            original_error,
        )
