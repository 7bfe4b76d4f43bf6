"""Shared pytest fixtures for explorer-sync tests."""

import json
import logging
import re
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import pytest
import responses

from explorer_sync.api import SyncClient
from explorer_sync.session import SyncSession
from explorer_sync.types import Workspace

API_ROOT = "https://api.explorer.test"
RPC_URL = "http://127.0.0.1:8545"

CONTRACT_ADDRESS = "0x5FbDB2315678afecb367f032d93F642f64180aa3"
OTHER_ADDRESS = "0xe7f1725E7734CE288F8367e1Bb143E90bb3F0512"


class RpcFailure(Exception):
    """Raised by a node handler to make the fake node answer with a JSON-RPC error."""

    def __init__(self, message: str = "internal error", code: int = -32000):
        self.code = code
        super().__init__(message)


class FakeNode:
    """
    JSON-RPC node served through a ``responses`` callback.

    Handlers are registered per method, either as a fixed result or as a
    callable taking the params list. Unknown methods answer -32601.
    """

    def __init__(self, rsps: responses.RequestsMock, url: str = RPC_URL):
        self.handlers: Dict[str, Any] = {}
        self.calls: List[tuple] = []
        rsps.add_callback(responses.POST, url, callback=self._callback, content_type="application/json")

    def on(self, method: str, handler: Any) -> None:
        self.handlers[method] = handler

    def calls_to(self, method: str) -> List[list]:
        return [params for name, params in self.calls if name == method]

    def _callback(self, request):
        payload = json.loads(request.body)
        method, params = payload["method"], payload["params"]
        self.calls.append((method, params))

        body: Dict[str, Any] = {"jsonrpc": "2.0", "id": payload["id"]}
        if method not in self.handlers:
            body["error"] = {"code": -32601, "message": f"the method {method} does not exist/is not available"}
        else:
            handler = self.handlers[method]
            try:
                body["result"] = handler(params) if callable(handler) else handler
            except RpcFailure as e:
                body["error"] = {"code": e.code, "message": str(e)}

        return 200, {}, json.dumps(body)


def posted_data(call) -> Dict[str, Any]:
    """Return the ``data`` payload of a recorded backend request."""
    return json.loads(call.request.body)["data"]


def backend_calls(rsps: responses.RequestsMock, path: str) -> list:
    """Recorded requests to one backend path, query string ignored."""
    url = f"{API_ROOT}{path}"
    return [call for call in rsps.calls if call.request.url.split("?")[0] == url]


def write_json(path: Path, data: Any) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2))
    return path


def solidity_ast(*symbols: str) -> Dict[str, Any]:
    """Minimal source unit AST exporting ``symbols``."""
    return {
        "nodeType": "SourceUnit",
        "exportedSymbols": {name: [index + 1] for index, name in enumerate(symbols)},
    }


def write_truffle_artifact(
    project: Path,
    name: str,
    networks: Optional[Dict[str, Any]] = None,
    ast: Optional[Dict[str, Any]] = None,
    **extra: Any,
) -> Path:
    data = {
        "contractName": name,
        "abi": [{"type": "function", "name": "owner", "inputs": [], "outputs": []}],
        "ast": ast if ast is not None else solidity_ast(name),
        "source": f"contract {name} {{}}",
        "networks": networks or {},
    }
    data.update(extra)
    return write_json(project / "build" / "contracts" / f"{name}.json", data)


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch, tmp_path: Path):
    """Keep the developer's environment and the root logger out of every test."""
    for name in (
        "EXPLORER_SYNC_API_ROOT",
        "EXPLORER_SYNC_API_TOKEN",
        "EXPLORER_SYNC_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("EXPLORER_SYNC_CONFIG_DIR", str(tmp_path / ".explorer-sync"))

    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def rsps():
    """Active responses mock; unmatched requests fail with ConnectionError."""
    with responses.RequestsMock(assert_all_requests_are_fired=False) as mock:
        yield mock


@pytest.fixture
def node(rsps: responses.RequestsMock) -> FakeNode:
    return FakeNode(rsps)


@pytest.fixture
def workspace_record() -> Dict[str, Any]:
    return {"name": "Hardhat", "rpcServer": RPC_URL, "networkId": 5, "tracing": None}


@pytest.fixture
def user_record(workspace_record: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "email": "dev@example.com",
        "currentWorkspace": workspace_record,
        "workspaces": [workspace_record, {"name": "Staging", "rpcServer": "https://staging.example.com"}],
    }


@pytest.fixture
def make_client() -> Callable[..., SyncClient]:
    """Build an authenticated client with an active workspace."""
    clients: List[SyncClient] = []

    def _make(**workspace_fields: Any) -> SyncClient:
        fields = {"name": "Hardhat", "rpc_server": RPC_URL, "network_id": "5"}
        fields.update(workspace_fields)
        client = SyncClient(API_ROOT, api_token="test-token")
        client.workspace = Workspace(**fields)
        clients.append(client)
        return client

    yield _make

    for client in clients:
        client.close()


@pytest.fixture
def client(make_client) -> SyncClient:
    return make_client()


@pytest.fixture
def session(client: SyncClient) -> SyncSession:
    sync_session = SyncSession(client, max_workers=4)
    yield sync_session
    sync_session.close(wait=False)


@pytest.fixture
def backend(rsps: responses.RequestsMock) -> responses.RequestsMock:
    """Backend accepting every upload endpoint."""
    for pattern in (
        r"/api/contracts/0x[0-9a-fA-F]+",
        r"/api/blocks",
        r"/api/blocks/syncRange",
        r"/api/transactions",
        r"/api/transactions/0x[0-9a-fA-F]+/trace",
        r"/api/workspaces/reset",
    ):
        rsps.add(responses.POST, _url_pattern(pattern), json={})
    return rsps


def _url_pattern(path_pattern: str):
    # Query strings are part of the matched URL
    return re.compile(re.escape(API_ROOT) + path_pattern + r"(\?.*)?$")


@pytest.fixture
def truffle_project(tmp_path: Path) -> Path:
    project = tmp_path / "truffle"
    project.mkdir()
    (project / "truffle-config.js").write_text("module.exports = {};")
    (project / "build" / "contracts").mkdir(parents=True)
    return project


@pytest.fixture
def brownie_project(tmp_path: Path) -> Path:
    project = tmp_path / "brownie"
    project.mkdir()
    (project / "brownie-config.yaml").write_text("dev_deployment_artifacts: true\n")
    (project / "build" / "deployments" / "1337").mkdir(parents=True)
    return project


@pytest.fixture
def foundry_project(tmp_path: Path) -> Path:
    """Foundry project with Counter and Ownable compiled and one broadcast run."""
    project = tmp_path / "foundry"
    project.mkdir()
    (project / "foundry.toml").write_text("[profile.default]\nsrc = 'src'\nout = 'out'\n")
    (project / "src").mkdir()
    (project / "src" / "Counter.sol").write_text("contract Counter is Ownable {}")
    (project / "src" / "Ownable.sol").write_text("contract Ownable {}")

    write_json(
        project / "out" / "Counter.sol" / "Counter.json",
        {"abi": [{"type": "function", "name": "increment"}], "ast": solidity_ast("Counter", "Ownable")},
    )
    write_json(
        project / "out" / "Ownable.sol" / "Ownable.json",
        {"abi": [{"type": "function", "name": "owner"}], "ast": solidity_ast("Ownable")},
    )
    write_json(
        project / "cache" / "solidity-files-cache.json",
        {
            "_format": "ethers-rs-sol-cache-3",
            "paths": {"artifacts": "out"},
            "files": {
                "src/Counter.sol": {
                    "sourceName": "src/Counter.sol",
                    "artifacts": {"Counter": {"0.8.19+commit.7dd6d404.Linux.gcc": "Counter.sol/Counter.json"}},
                },
                "src/Ownable.sol": {
                    "sourceName": "src/Ownable.sol",
                    "artifacts": {
                        "Ownable": {"0.8.19": {"default": {"path": "Ownable.sol/Ownable.json", "build_id": "1"}}}
                    },
                },
            },
        },
    )
    write_json(
        project / "broadcast" / "Deploy.s.sol" / "31337" / "run-latest.json",
        {
            "transactions": [
                {
                    "hash": "0x01",
                    "transactionType": "CREATE",
                    "contractName": "Counter",
                    "contractAddress": CONTRACT_ADDRESS,
                },
                {
                    "hash": "0x02",
                    "transactionType": "CALL",
                    "contractName": "Counter",
                    "contractAddress": CONTRACT_ADDRESS,
                },
            ]
        },
    )
    return project
