"""Sync session: the state shared by the artifact watcher and the chain feed."""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Optional

from .api import SyncClient
from .constants import MAX_UPLOAD_WORKERS
from .dedup import AddressDedupTracker
from .exceptions import WorkspaceNotSetError
from .types import ContractArtifact, Workspace

LOG = logging.getLogger(__name__)


class SyncSession:
    """
    Owns the backend client, the active workspace and the address tracker.

    Uploads are fire-and-forget: each one runs on the session's worker pool,
    logs its own outcome, and never affects another upload. ``wait()`` blocks
    until everything submitted so far has finished.
    """

    def __init__(
        self,
        client: SyncClient,
        tracker: Optional[AddressDedupTracker] = None,
        ast_upload: bool = False,
        max_workers: int = MAX_UPLOAD_WORKERS,
    ):
        if client.workspace is None:
            raise WorkspaceNotSetError("A workspace needs to be selected before starting a sync session.")

        self.client = client
        self.tracker = tracker or AddressDedupTracker()
        self.ast_upload = ast_upload
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="explorer-sync")
        self._in_flight = 0
        self._idle = threading.Condition()

    @property
    def workspace(self) -> Workspace:
        return self.client.workspace

    def submit(
        self,
        label: str,
        fn: Callable[..., Any],
        *args: Any,
        on_success: Optional[Callable[[Any], None]] = None,
    ) -> Future:
        """
        Run ``fn(*args)`` on the worker pool.

        Failures are logged with ``label`` and swallowed; ``on_success`` is
        called with the result when the call succeeds.
        """
        with self._idle:
            self._in_flight += 1

        def _done(f: Future) -> None:
            try:
                error = f.exception()
                if error is not None:
                    LOG.error(f"Failed to sync {label}: {error}")
                elif on_success is not None:
                    try:
                        on_success(f.result())
                    except Exception as e:  # noqa: BLE001
                        LOG.error(f"Error after syncing {label}: {e}")
            finally:
                # after on_success, whose own submissions must be counted first
                with self._idle:
                    self._in_flight -= 1
                    self._idle.notify_all()

        try:
            future = self._executor.submit(fn, *args)
        except RuntimeError:
            # Pool already shut down
            with self._idle:
                self._in_flight -= 1
                self._idle.notify_all()
            raise

        future.add_done_callback(_done)
        return future

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Block until every submitted call, including the ones they submit, has finished.

        Returns:
            False if the timeout expired first
        """
        with self._idle:
            return self._idle.wait_for(lambda: self._in_flight == 0, timeout=timeout)

    def update_contract(self, artifact: ContractArtifact) -> None:
        """
        Push a changed contract to the backend.

        With AST upload enabled, the contract bundle and each resolved
        dependency bundle are separate calls. The metadata call is issued
        alongside them and does not depend on their outcome.
        """
        if self.ast_upload:
            LOG.info(
                "Uploading contract & dependencies ASTs, this might take a while "
                "depending on the size of your contracts."
            )
            self.submit(
                f"AST of {artifact.name} ({artifact.address})",
                self.client.sync_contract_ast,
                artifact.address,
                artifact.serialized_bundle(),
            )

            for name, bundle in artifact.dependencies.items():
                if bundle is None:
                    LOG.warning(f"Dependency {name} of {artifact.name} could not be resolved, not uploading it")
                    continue
                self.submit(
                    f"dependency {name} of {artifact.name} ({artifact.address})",
                    self.client.sync_contract_ast,
                    artifact.address,
                    None,
                    {name: bundle},
                    on_success=lambda _, name=name: LOG.info(f"Uploaded dependency {name} of {artifact.name}"),
                )

        dependencies = ""
        if artifact.dependencies and self.ast_upload:
            dependencies = f" Dependencies: {', '.join(artifact.dependencies)}"

        self.submit(
            f"contract {artifact.name} ({artifact.address})",
            self.client.sync_contract_data,
            artifact.name,
            artifact.address,
            artifact.abi,
            on_success=lambda _: LOG.info(
                f"Updated artifacts for contract {artifact.name} ({artifact.address}).{dependencies}"
            ),
        )

    def close(self, wait: bool = True) -> None:
        if wait:
            self.wait()
        self._executor.shutdown(wait=wait)
