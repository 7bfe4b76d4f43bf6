"""
explorer-sync: keeps an explorer workspace in sync with a local chain and its contracts
"""

from importlib.metadata import PackageNotFoundError, version

from .api import SyncClient
from .dedup import AddressDedupTracker
from .exceptions import (
    ArtifactError,
    ArtifactParseError,
    ConfigurationError,
    DependencyNotFoundError,
    InvalidBlockRangeError,
    NotAuthenticatedError,
    ProviderError,
    SyncError,
    TraceUnavailableError,
    UploadError,
    WorkspaceNotFoundError,
    WorkspaceNotSetError,
)
from .feed import ChainFeed, sync_block_range
from .parsers import ArtifactParser, ProjectType, detect_project_type
from .provider import NodeProvider
from .session import SyncSession
from .types import ContractArtifact, Workspace
from .watcher import DirectoryWatcher

try:
    __version__ = version("explorer-sync")
except PackageNotFoundError:
    __version__ = None

__all__ = [
    "SyncClient",
    "SyncSession",
    "NodeProvider",
    "ChainFeed",
    "DirectoryWatcher",
    "ArtifactParser",
    "AddressDedupTracker",
    "ProjectType",
    "detect_project_type",
    "sync_block_range",
    "ContractArtifact",
    "Workspace",
    "SyncError",
    "ConfigurationError",
    "NotAuthenticatedError",
    "WorkspaceNotSetError",
    "WorkspaceNotFoundError",
    "InvalidBlockRangeError",
    "ArtifactError",
    "ArtifactParseError",
    "DependencyNotFoundError",
    "UploadError",
    "ProviderError",
    "TraceUnavailableError",
]
