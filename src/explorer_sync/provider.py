"""JSON-RPC node provider for explorer-sync."""

import itertools
import json
import threading
from typing import Any, Dict, Iterator, List, Optional, Tuple
from urllib.parse import urlparse

import requests
from websockets.exceptions import WebSocketException
from websockets.sync.client import connect as ws_connect

from .constants import (
    HTTP_SCHEMES,
    POLL_INTERVAL_SECONDS,
    RPC_METHOD_NOT_FOUND,
    RPC_TIMEOUT_SECONDS,
    WEBSOCKET_SCHEMES,
)
from .exceptions import ConfigurationError, ProviderError, TraceUnavailableError
from .records import format_block, format_receipt, to_int


class NodeProvider:
    """
    Talks to the workspace's node over JSON-RPC.

    http(s) endpoints get one POST per call. ws(s) endpoints share a single
    connection, opened on first use and reopened on the next call after a failure.
    """

    def __init__(self, rpc_url: str, timeout: float = RPC_TIMEOUT_SECONDS):
        """
        Args:
            rpc_url: http(s) or ws(s) URL of the node

        Raises:
            ConfigurationError: If the URL uses another scheme
        """
        scheme = urlparse(rpc_url).scheme
        if scheme not in HTTP_SCHEMES + WEBSOCKET_SCHEMES:
            raise ConfigurationError(
                f"Unsupported RPC server {rpc_url}: use an http(s):// or ws(s):// endpoint"
            )

        self.rpc_url = rpc_url
        self.timeout = timeout
        self.websocket = scheme in WEBSOCKET_SCHEMES
        self._session = requests.Session()
        self._ids = itertools.count(1)
        self._ws = None
        self._ws_lock = threading.Lock()

    def send(self, method: str, params: Optional[List[Any]] = None) -> Any:
        """
        Make a raw JSON-RPC call.

        Returns:
            The ``result`` field of the response

        Raises:
            ProviderError: On network failure, HTTP error or RPC error
        """
        payload = {
            "jsonrpc": "2.0",
            "method": method,
            "params": params or [],
            "id": next(self._ids),
        }

        data = self._exchange(payload) if self.websocket else self._post(payload)

        if "error" in data:
            error = data["error"] or {}
            raise ProviderError(f"RPC error on {method}: {error.get('message', error)}", code=error.get("code"))

        return data.get("result")

    def _post(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        method = payload["method"]
        try:
            response = self._session.post(self.rpc_url, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            raise ProviderError(f"Could not connect to {self.rpc_url}: {e}") from e

        if response.status_code != 200:
            raise ProviderError(f"RPC request {method} failed with status {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            raise ProviderError(f"Invalid JSON in {method} response") from e

        if not isinstance(data, dict):
            raise ProviderError(f"Invalid JSON in {method} response")
        return data

    def _exchange(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Send one request on the shared connection and read until its response arrives."""
        method = payload["method"]
        with self._ws_lock:
            try:
                if self._ws is None:
                    self._ws = ws_connect(self.rpc_url, open_timeout=self.timeout)
                self._ws.send(json.dumps(payload))
                while True:
                    message = json.loads(self._ws.recv(timeout=self.timeout))
                    # Subscription notifications carry no id
                    if isinstance(message, dict) and message.get("id") == payload["id"]:
                        return message
            except (WebSocketException, OSError) as e:
                self._drop_websocket()
                raise ProviderError(f"Could not connect to {self.rpc_url}: {e}") from e
            except ValueError as e:
                self._drop_websocket()
                raise ProviderError(f"Invalid JSON in {method} response") from e

    def _drop_websocket(self) -> None:
        if self._ws is not None:
            self._ws.close()
            self._ws = None

    def get_block_number(self) -> int:
        return to_int(self.send("eth_blockNumber"))

    def get_block_with_transactions(self, block_number: int) -> Optional[Dict[str, Any]]:
        """Fetch a block with full transaction objects, formatted for upload."""
        block = self.send("eth_getBlockByNumber", [hex(block_number), True])
        if block is None:
            return None
        return format_block(block)

    def get_transaction_receipt(self, tx_hash: str) -> Optional[Dict[str, Any]]:
        """
        Fetch and format a receipt.

        Raises:
            ProviderError: If the call fails
            ValueError: If the receipt has malformed quantities
        """
        receipt = self.send("eth_getTransactionReceipt", [tx_hash])
        if receipt is None:
            return None
        return format_receipt(receipt)

    def trace_transaction(self, tx_hash: str) -> Any:
        """
        Request the opcode trace of a transaction.

        Raises:
            TraceUnavailableError: If the node does not implement debug_traceTransaction
        """
        try:
            return self.send("debug_traceTransaction", [tx_hash, {}])
        except ProviderError as e:
            if e.code == RPC_METHOD_NOT_FOUND:
                raise TraceUnavailableError("debug_traceTransaction is not available", code=e.code) from e
            raise

    def poll_blocks(
        self,
        stop: threading.Event,
        poll_interval: float = POLL_INTERVAL_SECONDS,
        start: Optional[int] = None,
    ) -> Iterator[Tuple[Optional[int], Optional[Exception]]]:
        """
        Yield ``(block_number, None)`` for every new block.

        The first poll sets the starting height unless ``start`` is given.
        On failure a single ``(None, error)`` is yielded and the subscription ends.
        """
        last = start
        while not stop.is_set():
            try:
                head = self.get_block_number()
            except ProviderError as e:
                yield None, e
                return

            if last is None:
                last = head
            else:
                for number in range(last + 1, head + 1):
                    yield number, None
                last = max(last, head)

            stop.wait(poll_interval)

    def close(self) -> None:
        self._session.close()
        with self._ws_lock:
            self._drop_websocket()
