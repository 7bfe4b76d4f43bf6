"""Data types and dataclasses for explorer-sync."""

import json
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from .constants import CLIENT_TRACING_MODE

# Placeholder for a dependency that was found in the AST but not resolved yet
DEFERRED = None


@dataclass
class ContractArtifact:
    """One compiled contract at one point in time."""

    name: str
    address: Optional[str]  # Checksummed address, None until deployed on the active network
    abi: List[Dict[str, Any]] = field(default_factory=list)
    ast: Optional[Dict[str, Any]] = None
    source: Optional[str] = None

    # Dependency name -> serialized bundle, or None when it could not be resolved
    dependencies: Dict[str, Optional[str]] = field(default_factory=dict)

    def bundle(self) -> Dict[str, Any]:
        """Return the {contractName, abi, ast, source} bundle for this contract."""
        return {
            "contractName": self.name,
            "abi": self.abi,
            "ast": self.ast,
            "source": self.source,
        }

    def serialized_bundle(self) -> str:
        return json.dumps(self.bundle())


@dataclass(frozen=True)
class Workspace:
    """The remote sync target. Immutable once selected."""

    name: str
    rpc_server: str
    network_id: Optional[str] = None
    tracing_mode: Optional[str] = None

    @property
    def tracing_enabled(self) -> bool:
        return self.tracing_mode == CLIENT_TRACING_MODE

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Workspace":
        """
        Build a workspace from a backend workspace record.

        Tracing mode is read from ``tracing`` or, for older records,
        from ``advancedOptions.tracing``.
        """
        tracing = data.get("tracing")
        if tracing is None:
            tracing = (data.get("advancedOptions") or {}).get("tracing")

        network_id = data.get("networkId")
        return cls(
            name=data["name"],
            rpc_server=data.get("rpcServer", ""),
            network_id=str(network_id) if network_id is not None else None,
            tracing_mode=tracing,
        )


class FileEventKind(Enum):
    """Filesystem event kinds that trigger an artifact sync."""

    ADD = "add"
    CHANGE = "change"


@dataclass(frozen=True)
class FileEvent:
    """A change observed under a watched artifact directory."""

    kind: FileEventKind
    path: Path
