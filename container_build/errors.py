"""Error types raised by the repository handler and build helpers."""

from __future__ import annotations


class ContainerBuildError(RuntimeError):
    """Base class for known error conditions."""


class ConfigurationError(ContainerBuildError):
    """Raised when settings from the environment are missing or invalid."""


class InvalidInvocation(ContainerBuildError):
    """Raised when a custom resource event is missing required fields."""


class UnrecognizedOperation(ContainerBuildError):
    """Raised for a request type other than Create, Update or Delete."""

    def __init__(self, request_type: object) -> None:
        super().__init__(f"Unrecognized request type: {request_type!r}")
        self.request_type = request_type


class RepositoryError(ContainerBuildError):
    """Base class for errors about one ECR repository."""

    def __init__(self, repository_name: str, message: str) -> None:
        super().__init__(message)
        self.repository_name = repository_name


class AlreadyExists(RepositoryError):
    def __init__(self, repository_name: str) -> None:
        super().__init__(repository_name, f"Repository '{repository_name}' already exists")


class NotFound(RepositoryError):
    def __init__(self, repository_name: str) -> None:
        super().__init__(repository_name, f"Repository '{repository_name}' not found")


class TransportError(RepositoryError):
    """Any other failure of a remote call."""


class ConsistencyTimeout(RepositoryError):
    """Raised when a repository never reached the awaited state."""

    def __init__(self, repository_name: str, target: str, attempts: int) -> None:
        super().__init__(
            repository_name,
            f"Repository '{repository_name}' not {target} after {attempts} attempts",
        )
        self.target = target
        self.attempts = attempts


class ReportDeliveryError(ContainerBuildError):
    """Raised when the completion signal could not be delivered."""


class BuildFailed(ContainerBuildError):
    """Raised when a CodeBuild build ends in a non-success state."""

    def __init__(self, build_id: str, status: str) -> None:
        super().__init__(f"Build {build_id} finished with status {status}")
        self.build_id = build_id
        self.status = status
