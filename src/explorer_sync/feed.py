"""Chain feed: forwards new blocks, transactions, receipts and traces to the backend."""

import logging
import threading
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from .constants import POLL_INTERVAL_SECONDS, RECONNECT_DELAY_SECONDS
from .exceptions import InvalidBlockRangeError, ProviderError, TraceUnavailableError
from .provider import NodeProvider
from .session import SyncSession
from .tracer import parse_trace

LOG = logging.getLogger(__name__)

TraceDecoder = Callable[[Optional[str], Any, Any], List[Dict[str, Any]]]


class FeedState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    SUBSCRIBED = "subscribed"
    FETCHING = "fetching"
    IDLE = "idle"


class ChainFeed:
    """
    Follows the workspace's node and syncs every new block.

    In listen mode (``reconnect=True``) a provider failure is logged and the
    feed reconnects after a fixed delay, forever. Otherwise the failure is
    raised to the caller.
    """

    def __init__(
        self,
        session: SyncSession,
        provider: NodeProvider,
        reconnect: bool = True,
        server_sync: bool = False,
        reconnect_delay: float = RECONNECT_DELAY_SECONDS,
        poll_interval: float = POLL_INTERVAL_SECONDS,
        trace_decoder: TraceDecoder = parse_trace,
    ):
        self.session = session
        self.provider = provider
        self.reconnect = reconnect
        self.server_sync = server_sync
        self.reconnect_delay = reconnect_delay
        self.poll_interval = poll_interval
        self.trace_decoder = trace_decoder
        self.state = FeedState.DISCONNECTED

    @property
    def client(self):
        return self.session.client

    def run(self, stop: threading.Event) -> None:
        """
        Subscribe and process blocks until ``stop`` is set.

        Raises:
            ProviderError: On connection loss when reconnecting is disabled
        """
        last_block: Optional[int] = None

        while not stop.is_set():
            self.state = FeedState.CONNECTING
            error: Optional[Exception] = None

            try:
                if last_block is None:
                    last_block = self.provider.get_block_number()
            except ProviderError as e:
                error = e
            else:
                self.state = FeedState.SUBSCRIBED
                for block_number, error in self.provider.poll_blocks(stop, self.poll_interval, start=last_block):
                    if error is not None:
                        break
                    self.on_block(block_number)
                    last_block = block_number
                    if stop.is_set():
                        break

            if error is None:
                # Stopped
                continue

            self.state = FeedState.DISCONNECTED
            LOG.error(f"Could not connect to {self.provider.rpc_url}. Error: {error}")
            if not self.reconnect:
                raise error

            LOG.info(f"Reconnecting in {self.reconnect_delay}s...")
            stop.wait(self.reconnect_delay)

        self.state = FeedState.DISCONNECTED

    def on_block(self, block_number: int) -> None:
        """Sync one block, locally or by asking the backend to fetch it."""
        LOG.info(f"Syncing block #{block_number}...")

        if self.server_sync:
            self.session.submit(
                f"block #{block_number}",
                self.client.sync_block,
                {"number": block_number},
                True,
            )
            return

        self.state = FeedState.FETCHING
        try:
            block = self.provider.get_block_with_transactions(block_number)
        except ProviderError as e:
            LOG.error(f"Could not fetch block #{block_number}: {e}")
            return
        finally:
            self.state = FeedState.IDLE

        self.sync_block(block)

    def sync_block(self, block: Optional[Dict[str, Any]]) -> None:
        """
        Upload a block, then each of its transactions once the block is acknowledged.

        Transactions are processed independently: a failed receipt fetch or
        upload for one does not affect its siblings.
        """
        if not block:
            return

        def _on_block_synced(result: Any) -> None:
            LOG.info(f"Synced block #{_ack_value(result, 'blockNumber', block.get('number'))}")
            for transaction in block.get("transactions") or []:
                if not isinstance(transaction, dict):
                    continue
                self.session.submit(
                    f"transaction {transaction.get('hash')}",
                    self.sync_transaction,
                    block,
                    transaction,
                )

        self.session.submit(f"block #{block.get('number')}", self.client.sync_block, block, on_success=_on_block_synced)

    def fetch_receipt(self, tx_hash: str) -> Optional[Dict[str, Any]]:
        """
        Fetch a receipt, falling back to the raw RPC result if the formatted fetch fails.

        Raises:
            ProviderError: If the raw call fails too
        """
        try:
            return self.provider.get_transaction_receipt(tx_hash)
        except (ProviderError, ValueError) as e:
            LOG.warning(f"Formatted receipt fetch failed for {tx_hash} ({e}), retrying with a raw call")
            return self.provider.send("eth_getTransactionReceipt", [tx_hash])

    def sync_transaction(self, block: Dict[str, Any], transaction: Dict[str, Any]) -> Any:
        tx_hash = transaction.get("hash")

        try:
            receipt = self.fetch_receipt(tx_hash)
        except ProviderError as e:
            LOG.error(f"Couldn't get receipt information for tx {tx_hash}: {e}")
            return None

        if not receipt:
            LOG.error(f"Couldn't get receipt information for tx {tx_hash}.")
            return None

        result = self.client.sync_transaction(block, transaction, receipt)
        LOG.info(f"Synced transaction {_ack_value(result, 'txHash', tx_hash)}")

        if self.session.workspace.tracing_enabled:
            self.session.submit(f"trace of {tx_hash}", self.trace_transaction, transaction)

        return result

    def trace_transaction(self, transaction: Dict[str, Any]) -> Any:
        tx_hash = transaction.get("hash")

        try:
            trace = self.provider.trace_transaction(tx_hash)
        except TraceUnavailableError:
            LOG.warning("debug_traceTransaction is not available")
            return None

        steps = self.trace_decoder(transaction.get("to"), trace, self.provider)
        result = self.client.sync_trace(tx_hash, steps)
        LOG.info(f"Synced trace for tx {tx_hash}")
        return result


def _ack_value(result: Any, key: str, default: Any) -> Any:
    if isinstance(result, dict):
        return result.get(key, default)
    return default


def sync_block_range(
    session: SyncSession,
    provider: Optional[NodeProvider],
    from_block: int,
    to_block: int,
    server_sync: bool = False,
) -> None:
    """
    Sync every block in ``[from_block, to_block]`` and wait for the uploads.

    Raises:
        InvalidBlockRangeError: If ``from_block`` is not below ``to_block``
        ProviderError: If a block cannot be fetched
    """
    if from_block >= to_block:
        raise InvalidBlockRangeError('"to" must be greater than "from".')

    if server_sync:
        LOG.info("Queuing blocks syncing...")
        session.client.sync_block_range(from_block, to_block)
        return

    feed = ChainFeed(session, provider, reconnect=False)
    for block_number in range(from_block, to_block + 1):
        feed.sync_block(provider.get_block_with_transactions(block_number))

    session.wait()
