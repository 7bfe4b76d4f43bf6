"""Build directory watching for explorer-sync."""

import logging
import queue
import threading
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple, Union

from .constants import HARDHAT_PLUGIN_URL, WATCH_INTERVAL_SECONDS
from .exceptions import ArtifactError
from .parsers import (
    ArtifactParser,
    ArtifactStrategy,
    ProjectType,
    brownie_dev_artifacts_enabled,
    detect_project_type,
    strategy_for,
)
from .session import SyncSession
from .types import FileEvent, FileEventKind

LOG = logging.getLogger(__name__)


class DirectoryScanner:
    """
    Detects added and changed artifact files by comparing file stats
    between scans.

    The first scan reports every existing file as added.
    """

    def __init__(self, strategy: ArtifactStrategy):
        self.strategy = strategy
        self._stamps: Dict[Path, Tuple[int, int]] = {}

    def _files(self) -> Iterable[Path]:
        root = self.strategy.watch_dir
        if not root.is_dir():
            return []
        candidates = root.rglob("*.json") if self.strategy.recursive else root.glob("*.json")
        return sorted(p for p in candidates if p.is_file() and self.strategy.is_artifact_file(p))

    def scan(self) -> List[FileEvent]:
        events: List[FileEvent] = []
        stamps: Dict[Path, Tuple[int, int]] = {}

        for path in self._files():
            try:
                stat = path.stat()
            except FileNotFoundError:
                # Removed between listing and stat
                continue

            stamp = (stat.st_mtime_ns, stat.st_size)
            stamps[path] = stamp

            previous = self._stamps.get(path)
            if previous is None:
                events.append(FileEvent(FileEventKind.ADD, path))
            elif previous != stamp:
                events.append(FileEvent(FileEventKind.CHANGE, path))

        self._stamps = stamps
        return events


class DirectoryWatcher:
    """
    Watches project build directories and syncs contracts whose address changed.

    Scans feed a queue of filesystem events; a single loop consumes it, so
    parsing, the address check and upload submission for one event finish
    before the next event is looked at.
    """

    def __init__(self, session: SyncSession, interval: float = WATCH_INTERVAL_SECONDS):
        self.session = session
        self.interval = interval
        self.events: "queue.Queue[Tuple[ArtifactParser, FileEvent]]" = queue.Queue()
        self._watches: List[Tuple[DirectoryScanner, ArtifactParser]] = []

    @property
    def watch_count(self) -> int:
        return len(self._watches)

    def add_directory(self, directory: Union[Path, str]) -> Optional[ProjectType]:
        """
        Detect the build tool of ``directory`` and start watching its artifacts.

        Directories without a known config file are skipped. Hardhat projects
        are reported and skipped.

        Returns:
            The detected project type, or None
        """
        directory = Path(directory).resolve()
        project_type = detect_project_type(directory)

        match project_type:
            case None:
                LOG.info(
                    f"{directory} does not appear to be a Truffle, Brownie or Foundry project, "
                    "contracts metadata won't be uploaded automatically."
                )
                return None
            case ProjectType.HARDHAT:
                LOG.info(
                    f"{directory} appears to be a Hardhat project, if you are looking to synchronize "
                    f"contracts metadata, please look at the dedicated plugin here: {HARDHAT_PLUGIN_URL}."
                )
                return project_type
            case ProjectType.BROWNIE:
                if not brownie_dev_artifacts_enabled(directory):
                    LOG.info(
                        "Notice: If developing locally make sure to set dev_deployment_artifacts "
                        "to true in brownie-config.yaml"
                    )

        LOG.info(f"Detected {project_type.value} project for {directory}")

        strategy = strategy_for(project_type, directory, self.session.workspace.network_id)
        parser = ArtifactParser(strategy, self.session.tracker)
        self._watches.append((DirectoryScanner(strategy), parser))
        return project_type

    def watch(self, directories: Iterable[Union[Path, str]]) -> int:
        """Attach watches for every directory. Returns the number of watches attached."""
        for directory in directories:
            self.add_directory(directory)
        return self.watch_count

    def push(self, parser: ArtifactParser, event: FileEvent) -> None:
        self.events.put((parser, event))

    def poll(self) -> int:
        """Scan every watched directory and queue what changed. Returns the number of events queued."""
        queued = 0
        for scanner, parser in self._watches:
            for event in scanner.scan():
                self.push(parser, event)
                queued += 1
        return queued

    def handle(self, parser: ArtifactParser, event: FileEvent) -> int:
        """
        Parse one event's file and submit uploads for the contracts it changed.

        Parse errors are logged and only skip this file.

        Returns:
            Number of contracts submitted for upload
        """
        try:
            artifacts = parser.parse(event.path)
        except ArtifactError as e:
            LOG.error(f"Skipping {event.path}: {e}")
            return 0

        for artifact in artifacts:
            self.session.update_contract(artifact)
        return len(artifacts)

    def drain(self) -> int:
        """Handle every queued event. Returns the number of contracts submitted."""
        submitted = 0
        while True:
            try:
                parser, event = self.events.get_nowait()
            except queue.Empty:
                return submitted
            submitted += self.handle(parser, event)

    def run(self, stop: threading.Event) -> None:
        """Poll and process events until ``stop`` is set."""
        while not stop.is_set():
            self.poll()
            self.drain()
            stop.wait(self.interval)
