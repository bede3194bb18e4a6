"""JSON-RPC access to a single Ethereum-style node.

Every failure surfaces as an `RPCError` subclass so callers can treat
transport and decode problems the same way:

  RPCConnectError    endpoint unusable at startup
  RPCTransportError  connection refused, timeout, non-2xx status
  RPCResponseError   body is not JSON, JSON-RPC `error` member, unexpected shape
"""

import logging
import re
import threading
from dataclasses import dataclass
from typing import Any, List, Optional
from urllib.parse import urlparse

import requests

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 5.0

# hexutil.Uint64 rules: 0x prefix, no leading zeros, at most 64 bits.
_QUANTITY_RE = re.compile(r"^0[xX](0|[1-9a-fA-F][0-9a-fA-F]{0,15})$")


class RPCError(Exception):
    pass


class RPCConnectError(RPCError):
    pass


class RPCTransportError(RPCError):
    pass


class RPCResponseError(RPCError):
    pass


def decode_quantity(value: Any) -> int:
    """Decode a JSON-RPC hex quantity such as "0x1a".

    Raises RPCResponseError for anything that is not a 0x-prefixed uint64.
    """
    if not isinstance(value, str):
        raise RPCResponseError(f"expected hex quantity, got {type(value).__name__}: {value!r}")
    if not _QUANTITY_RE.match(value):
        raise RPCResponseError(f"invalid hex quantity: {value!r}")
    return int(value[2:], 16)


def _quantity_field(obj: dict, key: str) -> int:
    # Missing fields decode as zero, same as an absent JSON key would.
    raw = obj.get(key)
    if raw is None:
        return 0
    return decode_quantity(raw)


@dataclass(frozen=True)
class SyncProgress:
    current_block: int
    highest_block: int
    starting_block: int = 0

    @property
    def remaining_blocks(self) -> int:
        return max(0, self.highest_block - self.current_block)


@dataclass(frozen=True)
class ChainStatus:
    block_gap: Optional[List[int]] = None

    @property
    def gap_size(self) -> int:
        """Width of the warp-sync gap; 0 unless exactly [low, high] is reported."""
        if not self.block_gap or len(self.block_gap) != 2:
            return 0
        low, high = self.block_gap
        return high - low


class RPCClient:
    """Thread-safe JSON-RPC client.

    Without an explicit `session`, each thread gets its own requests.Session,
    so a slow call on the poller thread never holds up a readiness request.
    A `session` passed in is shared and must tolerate concurrent use.
    """

    def __init__(self, url: str, timeout: float = DEFAULT_TIMEOUT, session: Optional[requests.Session] = None) -> None:
        self.url = url
        self.timeout = timeout
        self._shared_session = session
        self._local = threading.local()
        self._sessions: List[requests.Session] = []
        # Guards only the request id counter and the session list, never I/O.
        self._lock = threading.Lock()
        self._next_id = 0

    def _session(self) -> requests.Session:
        if self._shared_session is not None:
            return self._shared_session
        session = getattr(self._local, "session", None)
        if session is None:
            session = requests.Session()
            self._local.session = session
            with self._lock:
                self._sessions.append(session)
        return session

    @classmethod
    def dial(cls, url: str, timeout: float = DEFAULT_TIMEOUT) -> "RPCClient":
        parsed = urlparse((url or "").strip())
        if parsed.scheme not in {"http", "https"}:
            raise RPCConnectError(f"Unsupported provider URL scheme: {parsed.scheme or '(none)'} in {url!r}")
        if not parsed.hostname:
            raise RPCConnectError(f"Provider URL has no host: {url!r}")
        return cls(url.strip(), timeout=timeout)

    def close(self) -> None:
        with self._lock:
            sessions, self._sessions = self._sessions, []
        for session in sessions:
            session.close()
        if self._shared_session is not None:
            self._shared_session.close()

    def call(self, method: str, params: Optional[list] = None) -> Any:
        with self._lock:
            self._next_id += 1
            request_id = self._next_id
        payload = {
            "jsonrpc": "2.0",
            "id": request_id,
            "method": method,
            "params": params or [],
        }
        try:
            r = self._session().post(self.url, json=payload, timeout=self.timeout)
            r.raise_for_status()
        except requests.RequestException as e:
            raise RPCTransportError(f"{method}: {e}") from e
        try:
            body = r.json()
        except ValueError as e:
            raise RPCResponseError(f"{method}: response is not JSON") from e

        if not isinstance(body, dict):
            raise RPCResponseError(f"{method}: unexpected response envelope: {type(body).__name__}")
        if body.get("error"):
            raise RPCResponseError(f"{method}: {body['error']}")
        return body.get("result")

    def peer_count(self) -> int:
        return decode_quantity(self.call("net_peerCount"))

    def sync_progress(self) -> Optional[SyncProgress]:
        """Return the node's sync progress, or None once it is fully synced."""
        syncing = self.call("eth_syncing")
        # Any boolean means "not syncing", same as go-ethereum's ethclient.
        if syncing is None or isinstance(syncing, bool):
            return None
        if not isinstance(syncing, dict):
            raise RPCResponseError(f"eth_syncing: unexpected result: {syncing!r}")
        return SyncProgress(
            current_block=_quantity_field(syncing, "currentBlock"),
            highest_block=_quantity_field(syncing, "highestBlock"),
            starting_block=_quantity_field(syncing, "startingBlock"),
        )

    def chain_status(self) -> ChainStatus:
        """Query the Parity/OpenEthereum `parity_chainStatus` extension.

        A null result or a missing/odd-length `blockGap` is reported as no gap.
        A non-object result, undecodable block numbers or a [low, high] pair
        with high < low are errors.
        """
        status = self.call("parity_chainStatus")
        if status is None:
            return ChainStatus()
        if not isinstance(status, dict):
            raise RPCResponseError(f"parity_chainStatus: unexpected result: {status!r}")
        gap = status.get("blockGap")
        if not isinstance(gap, list):
            return ChainStatus()
        block_gap = [decode_quantity(v) for v in gap]
        if len(block_gap) == 2 and block_gap[1] < block_gap[0]:
            raise RPCResponseError(f"parity_chainStatus: inverted blockGap: {gap!r}")
        return ChainStatus(block_gap=block_gap)
