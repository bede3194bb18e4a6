"""Shared fixtures: an in-memory JSON-RPC node behind a mocked requests session."""
import threading
from typing import Any, Dict
from unittest.mock import Mock

import pytest

from web3_exporter.rpc import RPCClient


class FakeNode:
    """Answers JSON-RPC posts from canned results.

    Methods missing from `results` get a JSON-RPC "method not found" error;
    methods in `failures` raise the given exception from `post` instead;
    methods passed to `hang()` block until the returned event is set.
    """

    def __init__(self) -> None:
        self.results: Dict[str, Any] = {}
        self.failures: Dict[str, Exception] = {}
        self.entered: Dict[str, threading.Event] = {}
        self._release: Dict[str, threading.Event] = {}
        self.calls = []

    def hang(self, method: str) -> threading.Event:
        release = threading.Event()
        self._release[method] = release
        self.entered[method] = threading.Event()
        return release

    def post(self, url, json=None, timeout=None):
        method = json["method"]
        self.calls.append(method)
        if method in self._release:
            self.entered[method].set()
            self._release[method].wait(timeout=10)
        if method in self.failures:
            raise self.failures[method]
        resp = Mock()
        resp.raise_for_status.return_value = None
        if method in self.results:
            resp.json.return_value = {"jsonrpc": "2.0", "id": json["id"], "result": self.results[method]}
        else:
            resp.json.return_value = {
                "jsonrpc": "2.0",
                "id": json["id"],
                "error": {"code": -32601, "message": f"the method {method} does not exist/is not available"},
            }
        return resp

    def set_syncing(self, current: int, highest: int) -> None:
        self.results["eth_syncing"] = {
            "startingBlock": "0x0",
            "currentBlock": hex(current),
            "highestBlock": hex(highest),
        }


@pytest.fixture
def node():
    n = FakeNode()
    n.results["net_peerCount"] = "0x19"
    n.results["eth_syncing"] = False
    return n


@pytest.fixture
def client(node):
    session = Mock()
    session.post.side_effect = node.post
    return RPCClient("http://node:8545", session=session)
