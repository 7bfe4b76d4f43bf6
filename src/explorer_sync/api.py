"""Backend API client for explorer-sync."""

from typing import Any, Dict, List, Optional

import requests

from .constants import API_TIMEOUT_SECONDS
from .exceptions import (
    NotAuthenticatedError,
    UploadError,
    WorkspaceNotFoundError,
    WorkspaceNotSetError,
)
from .records import strip_nulls
from .types import Workspace


class SyncClient:
    """
    Authenticated upload surface of the explorer backend.

    Every upload method checks for an API token and an active workspace
    before touching the network, and sends exactly one request.
    """

    def __init__(self, api_root: str, api_token: Optional[str] = None, timeout: float = API_TIMEOUT_SECONDS):
        self.api_root = api_root.rstrip("/")
        self.timeout = timeout
        self.api_token: Optional[str] = None
        self.user: Dict[str, Any] = {}
        self.workspace: Optional[Workspace] = None
        self._session = requests.Session()

        if api_token:
            self.set_api_token(api_token)

    @property
    def is_authenticated(self) -> bool:
        return bool(self.api_token)

    @property
    def has_workspace(self) -> bool:
        return self.workspace is not None

    def set_api_token(self, api_token: str) -> None:
        self.api_token = api_token
        self._session.headers["Authorization"] = f"Bearer {api_token}"

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _request(self, method: str, path: str, entity: str, **kwargs) -> Any:
        url = f"{self.api_root}{path}"
        try:
            response = self._session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise UploadError(f"Could not reach {url}: {e}", entity=entity) from e

        if response.status_code >= 400:
            raise UploadError(
                f"{entity} rejected with status {response.status_code}: {response.text}",
                entity=entity,
                status_code=response.status_code,
            )

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError:
            return {"message": response.text}

    def _post(self, path: str, data: Dict[str, Any], entity: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return self._request("POST", path, entity, json={"data": strip_nulls(data)}, params=params)

    def _require_session(self, action: str) -> Workspace:
        if not self.is_authenticated:
            raise NotAuthenticatedError(f"[{action}] You need to be authenticated first.")
        if self.workspace is None:
            raise WorkspaceNotSetError(f"[{action}] A workspace needs to be set first.")
        return self.workspace

    # ------------------------------------------------------------------
    # Account and workspace
    # ------------------------------------------------------------------

    def login(self, email: str, password: str) -> str:
        """
        Exchange email/password for an API token and authenticate with it.

        Returns:
            The API token

        Raises:
            NotAuthenticatedError: If the credentials are rejected
        """
        try:
            result = self._request(
                "POST", "/api/users/signin", "signin", json={"email": email, "password": password}
            )
        except UploadError as e:
            raise NotAuthenticatedError("Couldn't login with the specified email/password.") from e

        user = (result or {}).get("user")
        if not user or not user.get("apiToken"):
            raise NotAuthenticatedError("Couldn't login with the specified email/password.")

        self.set_api_token(user["apiToken"])
        return user["apiToken"]

    def fetch_user(self) -> Dict[str, Any]:
        """Load the current user and the workspaces they can sync to."""
        if not self.is_authenticated:
            raise NotAuthenticatedError("You need to authenticate first.")

        self.user = self._request("GET", "/api/users/me", "user")
        return self.user

    def workspaces(self) -> List[Dict[str, Any]]:
        return self.user.get("workspaces") or []

    def set_workspace(self, name: Optional[str] = None) -> Workspace:
        """
        Select the active workspace.

        With a name, it must be one of the user's workspaces. Without one, the
        user's current workspace is used, falling back to their first workspace
        (which then becomes their current one on the backend).

        Raises:
            NotAuthenticatedError: If no API token is set
            WorkspaceNotFoundError: If the named workspace does not exist
            WorkspaceNotSetError: If the user has no workspace at all
        """
        if not self.is_authenticated:
            raise NotAuthenticatedError("[setWorkspace] You need to be authenticated to set a workspace.")

        if not self.user:
            self.fetch_user()

        workspaces = self.workspaces()
        if not workspaces:
            raise WorkspaceNotSetError(
                f"You need to create a workspace on {self.api_root} before using explorer-sync."
            )

        if name:
            for record in workspaces:
                if record.get("name") == name:
                    self.workspace = Workspace.from_dict(record)
                    return self.workspace
            raise WorkspaceNotFoundError(
                f"Couldn't find workspace {name}. Make sure you're logged in with the correct account."
            )

        current = self.user.get("currentWorkspace")
        if current:
            self.workspace = Workspace.from_dict(current)
        else:
            self.workspace = Workspace.from_dict(workspaces[0])
            self._request(
                "POST",
                "/api/users/me/setCurrentWorkspace",
                "workspace",
                json={"data": {"workspace": self.workspace.name}},
            )

        return self.workspace

    def reset_workspace(self, name: str) -> Any:
        if not name:
            raise ValueError("[resetWorkspace] Missing workspace name.")
        if not self.is_authenticated:
            raise NotAuthenticatedError("[resetWorkspace] You need to be authenticated to reset a workspace.")

        return self._post("/api/workspaces/reset", {"workspace": name}, f"workspace {name}")

    # ------------------------------------------------------------------
    # Uploads
    # ------------------------------------------------------------------

    def sync_contract_data(
        self,
        name: str,
        address: str,
        abi: Optional[List[Dict[str, Any]]],
        hashed_bytecode: Optional[str] = None,
    ) -> Any:
        if not name or not address:
            raise ValueError("[syncContractData] Missing parameter.")
        workspace = self._require_session("syncContractData")

        return self._post(
            f"/api/contracts/{address}",
            {
                "name": name,
                "address": address,
                "abi": abi,
                "hashedBytecode": hashed_bytecode,
                "workspace": workspace.name,
            },
            f"contract {name} ({address})",
        )

    def sync_contract_ast(
        self,
        address: str,
        ast: Optional[str] = None,
        dependencies: Optional[Dict[str, str]] = None,
    ) -> Any:
        """Upload a contract's serialized bundle and/or dependency bundles."""
        if not address or (ast is None and not dependencies):
            raise ValueError("[syncContractAst] Missing parameter.")
        workspace = self._require_session("syncContractAst")

        return self._post(
            f"/api/contracts/{address}",
            {
                "address": address,
                "ast": ast,
                "dependencies": dependencies,
                "workspace": workspace.name,
            },
            f"contract AST {address}",
        )

    def sync_block(self, block: Dict[str, Any], server_sync: bool = False) -> Any:
        """
        Upload a block. With ``server_sync``, only the block number is needed
        and the backend fetches the rest from the node itself.
        """
        if not block:
            raise ValueError("[syncBlock] Missing block.")
        workspace = self._require_session("syncBlock")

        return self._post(
            "/api/blocks",
            {"block": block, "workspace": workspace.name},
            f"block #{block.get('number')}",
            params={"serverSync": str(server_sync).lower()},
        )

    def sync_transaction(
        self,
        block: Dict[str, Any],
        transaction: Dict[str, Any],
        receipt: Dict[str, Any],
    ) -> Any:
        if not block or not transaction or not receipt:
            raise ValueError("[syncTransaction] Missing parameter.")
        workspace = self._require_session("syncTransaction")

        return self._post(
            "/api/transactions",
            {
                "block": block,
                "transaction": transaction,
                "transactionReceipt": receipt,
                "workspace": workspace.name,
            },
            f"transaction {transaction.get('hash')}",
        )

    def sync_trace(self, tx_hash: str, steps: List[Dict[str, Any]]) -> Any:
        if not tx_hash or steps is None:
            raise ValueError("[syncTrace] Missing parameter.")
        workspace = self._require_session("syncTrace")

        return self._post(
            f"/api/transactions/{tx_hash}/trace",
            {"txHash": tx_hash, "steps": steps, "workspace": workspace.name},
            f"trace {tx_hash}",
        )

    def sync_block_range(self, from_block: int, to_block: int) -> Any:
        """Ask the backend to fetch and sync a block range itself."""
        if from_block is None or to_block is None:
            raise ValueError("[syncBlockRange] Missing block range.")
        workspace = self._require_session("syncBlockRange")

        return self._post(
            "/api/blocks/syncRange",
            {"workspace": workspace.name, "from": from_block, "to": to_block},
            f"blocks #{from_block}-#{to_block}",
        )

    def close(self) -> None:
        self._session.close()
