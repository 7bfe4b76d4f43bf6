"""Custom exception classes for explorer-sync."""

from typing import Optional


class SyncError(Exception):
    """Base exception for explorer-sync errors."""

    pass


class ConfigurationError(SyncError, ValueError):
    """Raised when the agent cannot start because its setup is incomplete or invalid."""

    pass


class NotAuthenticatedError(ConfigurationError):
    """Raised when a backend call is attempted without an API token."""

    pass


class WorkspaceNotSetError(ConfigurationError):
    """Raised when a backend call is attempted without an active workspace."""

    pass


class WorkspaceNotFoundError(ConfigurationError):
    """Raised when the requested workspace does not belong to the user."""

    pass


class InvalidBlockRangeError(ConfigurationError):
    """Raised when a block range is empty or reversed."""

    pass


class ArtifactError(SyncError, ValueError):
    """Base exception for build artifact problems."""

    pass


class ArtifactParseError(ArtifactError):
    """Raised when an artifact file cannot be read or decoded."""

    pass


class DependencyNotFoundError(ArtifactError, FileNotFoundError):
    """Raised when a dependency's compiled output cannot be located."""

    pass


class UploadError(SyncError, RuntimeError):
    """Raised when the backend rejects a request or cannot be reached."""

    def __init__(self, message: str, entity: Optional[str] = None, status_code: Optional[int] = None):
        self.entity = entity
        self.status_code = status_code
        super().__init__(message)


class ProviderError(SyncError, RuntimeError):
    """Raised when the node provider fails or cannot be reached."""

    def __init__(self, message: str, code: Optional[int] = None):
        self.code = code
        super().__init__(message)


class TraceUnavailableError(ProviderError):
    """Raised when the node does not implement debug_traceTransaction."""

    pass
