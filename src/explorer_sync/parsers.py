"""Build tool detection and artifact parsers for explorer-sync."""

import json
import logging
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import yaml

from .constants import (
    BROWNIE_CONFIG_FILE,
    BROWNIE_CONTRACTS_DIR,
    BROWNIE_DEPLOYMENTS_DIR,
    BROWNIE_MAP_FILE,
    FOUNDRY_BROADCAST_DIR,
    FOUNDRY_BROADCAST_FILE,
    FOUNDRY_CACHE_FILE,
    FOUNDRY_CONFIG_FILE,
    FOUNDRY_CREATE_TYPES,
    FOUNDRY_DEFAULT_OUT_DIR,
    FOUNDRY_DRY_RUN_DIR,
    HARDHAT_CONFIG_FILES,
    TRUFFLE_BUILD_DIR,
    TRUFFLE_CONFIG_FILE,
    TRUFFLE_MIGRATIONS_ARTIFACT,
)
from .dedup import AddressDedupTracker
from .dependencies import DependencyResolver
from .exceptions import ArtifactParseError, DependencyNotFoundError
from .types import ContractArtifact

LOG = logging.getLogger(__name__)


class ProjectType(Enum):
    """
    Build tool that produced the artifacts in a project directory.

    HARDHAT is detected so it can be reported, but it has no strategy:
    Hardhat projects sync through their own plugin.
    """

    TRUFFLE = "Truffle"
    BROWNIE = "Brownie"
    FOUNDRY = "Foundry"
    HARDHAT = "Hardhat"


def detect_project_type(project_dir: Path) -> Optional[ProjectType]:
    """
    Detect which build tool a directory belongs to from its config file.

    Checked in order: Truffle, Brownie, Foundry, Hardhat.

    Args:
        project_dir: Directory to inspect

    Returns:
        The detected ProjectType, or None if no known config file exists
    """
    project_dir = Path(project_dir)

    if (project_dir / TRUFFLE_CONFIG_FILE).exists():
        return ProjectType.TRUFFLE

    if (project_dir / BROWNIE_CONFIG_FILE).exists():
        return ProjectType.BROWNIE

    if (project_dir / FOUNDRY_CONFIG_FILE).exists():
        return ProjectType.FOUNDRY

    if any((project_dir / name).exists() for name in HARDHAT_CONFIG_FILES):
        return ProjectType.HARDHAT

    return None


def brownie_dev_artifacts_enabled(project_dir: Path) -> bool:
    """Return True if brownie-config.yaml asks Brownie to keep dev deployment artifacts."""
    config_path = Path(project_dir) / BROWNIE_CONFIG_FILE
    try:
        with open(config_path) as f:
            config = yaml.safe_load(f) or {}
    except (FileNotFoundError, yaml.YAMLError):
        return False

    return bool(config.get("dev_deployment_artifacts"))


def load_artifact_json(file_path: Path) -> Dict[str, Any]:
    """
    Read a JSON build artifact.

    Raises:
        ArtifactParseError: If the file is missing, unreadable, or not a JSON object
    """
    try:
        with open(file_path, encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ArtifactParseError(f"Could not read artifact {file_path}: {e}") from e

    if not isinstance(data, dict):
        raise ArtifactParseError(f"Artifact {file_path} is not a JSON object")

    return data


class ArtifactStrategy:
    """Common interface of the per-tool parsing strategies."""

    project_type: ProjectType
    recursive = False

    def __init__(self, project_dir: Union[Path, str]):
        self.project_dir = Path(project_dir)

    @property
    def watch_dir(self) -> Path:
        """Directory holding the files this strategy reads."""
        raise NotImplementedError

    def is_artifact_file(self, file_path: Path) -> bool:
        return file_path.suffix == ".json"

    def extract(self, file_path: Path) -> List[ContractArtifact]:
        """
        Read every deployed contract described by one file.

        No dedup gate and no dependency resolution here; see ArtifactParser.
        """
        raise NotImplementedError

    def dependency_path(self, name: str) -> Path:
        raise NotImplementedError

    def load_dependency(self, name: str) -> ContractArtifact:
        """
        Load a dependency's compiled output by contract name.

        Raises:
            DependencyNotFoundError: If no compiled output exists for ``name``
            ArtifactParseError: If the file exists but cannot be decoded
        """
        path = self.dependency_path(name)
        if not path.exists():
            raise DependencyNotFoundError(f"No compiled output for {name} at {path}")

        data = load_artifact_json(path)
        return ContractArtifact(
            name=data.get("contractName", name),
            address=None,
            abi=data.get("abi", []),
            ast=data.get("ast"),
            source=data.get("source"),
        )


class TruffleStrategy(ArtifactStrategy):
    """Truffle: one JSON per contract in the contracts build directory, addresses keyed by network id."""

    project_type = ProjectType.TRUFFLE

    def __init__(
        self,
        project_dir: Union[Path, str],
        network_id: Optional[str],
        build_dir: Optional[Union[Path, str]] = None,
    ):
        super().__init__(project_dir)
        self.network_id = str(network_id) if network_id is not None else None
        self.build_dir = self.project_dir / (build_dir or TRUFFLE_BUILD_DIR)

    @property
    def watch_dir(self) -> Path:
        return self.build_dir

    def is_artifact_file(self, file_path: Path) -> bool:
        return super().is_artifact_file(file_path) and file_path.name != TRUFFLE_MIGRATIONS_ARTIFACT

    def extract(self, file_path: Path) -> List[ContractArtifact]:
        data = load_artifact_json(file_path)

        try:
            name = data["contractName"]
        except KeyError as e:
            raise ArtifactParseError(f"Missing contractName in {file_path}") from e

        networks = data.get("networks") or {}
        if not isinstance(networks, dict):
            raise ArtifactParseError(f"networks in {file_path} is not an object")

        network = networks.get(self.network_id) or {}
        if not isinstance(network, dict):
            raise ArtifactParseError(f"networks.{self.network_id} in {file_path} is not an object")

        address = network.get("address")
        if not address:
            # Not deployed on the workspace's network yet
            return []

        return [
            ContractArtifact(
                name=name,
                address=address,
                abi=data.get("abi", []),
                ast=data.get("ast"),
                source=data.get("source"),
            )
        ]

    def dependency_path(self, name: str) -> Path:
        return self.build_dir / f"{name}.json"


class BrownieStrategy(ArtifactStrategy):
    """Brownie: one JSON per deployment under build/deployments/<chain>/."""

    project_type = ProjectType.BROWNIE
    recursive = True

    @property
    def watch_dir(self) -> Path:
        return self.project_dir / BROWNIE_DEPLOYMENTS_DIR

    def is_artifact_file(self, file_path: Path) -> bool:
        return super().is_artifact_file(file_path) and file_path.name != BROWNIE_MAP_FILE

    def extract(self, file_path: Path) -> List[ContractArtifact]:
        data = load_artifact_json(file_path)

        try:
            name = data["contractName"]
        except KeyError as e:
            raise ArtifactParseError(f"Missing contractName in {file_path}") from e

        deployment = data.get("deployment") or {}
        if not isinstance(deployment, dict):
            raise ArtifactParseError(f"deployment in {file_path} is not an object")

        address = deployment.get("address")
        if not address:
            return []

        return [
            ContractArtifact(
                name=name,
                address=address,
                abi=data.get("abi", []),
                ast=data.get("ast"),
                source=data.get("source"),
            )
        ]

    def dependency_path(self, name: str) -> Path:
        # Compiled contracts first, then a deployment artifact next to the watched files
        compiled = self.project_dir / BROWNIE_CONTRACTS_DIR / f"{name}.json"
        if compiled.exists():
            return compiled
        return self.watch_dir / f"{name}.json"


class FoundryStrategy(ArtifactStrategy):
    """
    Foundry: deployments come from broadcast/**/run-latest.json.

    Broadcast logs only carry contract names and addresses. ABI and AST are
    found through cache/solidity-files-cache.json, which maps each source file
    to the compiled output of the contracts it defines.
    """

    project_type = ProjectType.FOUNDRY
    recursive = True

    @property
    def watch_dir(self) -> Path:
        return self.project_dir / FOUNDRY_BROADCAST_DIR

    def is_artifact_file(self, file_path: Path) -> bool:
        # forge script without --broadcast only simulates, under <chain>/dry-run/
        return file_path.name == FOUNDRY_BROADCAST_FILE and FOUNDRY_DRY_RUN_DIR not in file_path.parts

    def load_cache_index(self) -> Dict[str, Tuple[Path, Path]]:
        """
        Build a contract name -> (compiled output path, source path) index.

        When two sources define the same contract name, the first one listed wins.

        Raises:
            ArtifactParseError: If the cache file is missing or malformed
        """
        cache = load_artifact_json(self.project_dir / FOUNDRY_CACHE_FILE)
        paths = cache.get("paths") or {}
        if not isinstance(paths, dict):
            raise ArtifactParseError(f"paths in {FOUNDRY_CACHE_FILE} is not an object")
        out_dir = self.project_dir / paths.get("artifacts", FOUNDRY_DEFAULT_OUT_DIR)

        index: Dict[str, Tuple[Path, Path]] = {}
        files = cache.get("files") or {}
        if not isinstance(files, dict):
            raise ArtifactParseError(f"files in {FOUNDRY_CACHE_FILE} is not an object")

        for source_path, entry in files.items():
            if not isinstance(entry, dict):
                raise ArtifactParseError(f"Entry {source_path} in {FOUNDRY_CACHE_FILE} is not an object")
            source_name = entry.get("sourceName", source_path)
            artifacts = entry.get("artifacts") or {}
            if not isinstance(artifacts, dict):
                raise ArtifactParseError(f"artifacts of {source_path} in {FOUNDRY_CACHE_FILE} is not an object")
            for contract_name, versions in artifacts.items():
                relative = _first_artifact_path(versions)
                if relative is None or contract_name in index:
                    continue
                index[contract_name] = (out_dir / relative, self.project_dir / source_name)

        return index

    def extract(self, file_path: Path) -> List[ContractArtifact]:
        broadcast = load_artifact_json(file_path)
        index = self.load_cache_index()

        artifacts: List[ContractArtifact] = []
        transactions = broadcast.get("transactions") or []
        if not isinstance(transactions, list):
            raise ArtifactParseError(f"transactions in {file_path} is not a list")

        for transaction in transactions:
            if not isinstance(transaction, dict):
                raise ArtifactParseError(f"Malformed transaction entry in {file_path}")
            if transaction.get("transactionType") not in FOUNDRY_CREATE_TYPES:
                continue

            name = transaction.get("contractName")
            if name is None:
                LOG.warning(
                    f"Deployment {transaction.get('hash')} in {file_path} has no contract name, "
                    "run forge script with -vvvv to record it. Skipping."
                )
                continue

            address = transaction.get("contractAddress")
            if not address:
                continue

            if name not in index:
                LOG.warning(f"No compiled output for {name} in {FOUNDRY_CACHE_FILE}, skipping.")
                continue

            artifacts.append(self._build_artifact(name, address, index[name]))

        return artifacts

    def load_dependency(self, name: str) -> ContractArtifact:
        index = self.load_cache_index()
        if name not in index:
            raise DependencyNotFoundError(f"{name} is not listed in {FOUNDRY_CACHE_FILE}")

        artifact_path, _ = index[name]
        if not artifact_path.exists():
            raise DependencyNotFoundError(f"No compiled output for {name} at {artifact_path}")

        return self._build_artifact(name, None, index[name])

    def _build_artifact(
        self, name: str, address: Optional[str], paths: Tuple[Path, Path]
    ) -> ContractArtifact:
        artifact_path, source_path = paths
        compiled = load_artifact_json(artifact_path)

        try:
            source = source_path.read_text()
        except OSError:
            source = None

        return ContractArtifact(
            name=name,
            address=address,
            abi=compiled.get("abi", []),
            ast=compiled.get("ast"),
            source=source,
        )


def _first_artifact_path(versions: Any) -> Optional[str]:
    """
    Pull a compiled output path out of a cache ``artifacts`` entry.

    Older caches map version -> path; newer ones map version -> profile -> {"path": ...}.
    """
    if isinstance(versions, str):
        return versions

    if isinstance(versions, dict):
        if isinstance(versions.get("path"), str):
            return versions["path"]
        for value in versions.values():
            found = _first_artifact_path(value)
            if found is not None:
                return found

    return None


def strategy_for(
    project_type: ProjectType,
    project_dir: Union[Path, str],
    network_id: Optional[str] = None,
) -> Optional[ArtifactStrategy]:
    """
    Return the parsing strategy for a detected project type.

    Returns:
        An ArtifactStrategy, or None for Hardhat which has no strategy
    """
    match project_type:
        case ProjectType.TRUFFLE:
            return TruffleStrategy(project_dir, network_id)
        case ProjectType.BROWNIE:
            return BrownieStrategy(project_dir)
        case ProjectType.FOUNDRY:
            return FoundryStrategy(project_dir)
        case ProjectType.HARDHAT:
            return None
        case _:
            # Unreachable but exhaustive
            return None


class ArtifactParser:
    """
    Turns a changed build file into the contracts that need syncing.

    An artifact is emitted only when its address differs from the last one
    recorded for its name; dependencies are resolved only for emitted ones.
    """

    def __init__(self, strategy: ArtifactStrategy, tracker: AddressDedupTracker, resolver=None):
        self.strategy = strategy
        self.tracker = tracker
        self.resolver = resolver or DependencyResolver(strategy)

    def parse(self, file_path: Union[Path, str]) -> List[ContractArtifact]:
        """
        Parse one file and return the contracts with a new address.

        Raises:
            ArtifactParseError: If the file cannot be decoded
        """
        file_path = Path(file_path)
        LOG.info(f"Getting artifact for {file_path.name} in {file_path.parent}")

        changed: List[ContractArtifact] = []
        for artifact in self.strategy.extract(file_path):
            if not self.tracker.should_sync(artifact.name, artifact.address):
                LOG.debug(f"{artifact.name} still at {artifact.address}, nothing to sync")
                continue

            artifact.dependencies = self.resolver.resolve(artifact)
            changed.append(artifact)

        return changed
