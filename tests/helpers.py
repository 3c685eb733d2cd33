"""Canned monerod responses and a fake daemon for MockTransport."""

import json
from typing import Any, Callable, Dict, List, Optional

import httpx

BASE_URL = "http://monerod.test:18081"


def make_info(**overrides) -> Dict[str, Any]:
    info = {
        "alt_blocks_count": 2,
        "block_size_limit": 600000,
        "block_size_median": 300000,
        "block_weight_limit": 600000,
        "block_weight_median": 300000,
        "busy_syncing": False,
        "cumulative_difficulty": 123456789012,
        "database_size": 180000000000,
        "difficulty": 350000000000,
        "free_space": 500000000000,
        "grey_peerlist_size": 5000,
        "height": 101,
        "incoming_connections_count": 12,
        "offline": False,
        "outgoing_connections_count": 8,
        "rpc_connections_count": 1,
        "status": "OK",
        "synchronized": True,
        "target": 120,
        "target_height": 0,
        "tx_count": 9000000,
        "untrusted": False,
        "update_available": False,
        "white_peerlist_size": 1000,
    }
    info.update(overrides)
    return info


def make_pool_stats(**overrides) -> Dict[str, Any]:
    stats = {
        "bytes_max": 2700,
        "bytes_med": 1500,
        "bytes_min": 1400,
        "bytes_total": 45000,
        "fee_total": 730000000,
        "histo_98pc": 300,
        "num_10m": 1,
        "num_double_spends": 0,
        "num_failing": 0,
        "num_not_relayed": 0,
        "oldest": 1700000000,
        "txs_total": 27,
    }
    stats.update(overrides)
    return stats


def make_header(height: int, timestamp: Optional[int] = None, **overrides) -> Dict[str, Any]:
    header = {
        "block_size": 1000 + height,
        "block_weight": 1000 + height,
        "difficulty": 350000000000,
        "height": height,
        "num_txes": height % 7,
        "orphan_status": False,
        "reward": 600000000000,
        "timestamp": 1700000000 + height * 120 if timestamp is None else timestamp,
    }
    header.update(overrides)
    return header


class FakeDaemon:
    """
    Minimal monerod stand-in.

    Serves get_info, get_last_block_header, get_block_headers_range and
    /get_transaction_pool_stats from in-memory data and records every call.
    """

    def __init__(self, tip_height: int = 100):
        self.info = make_info(height=tip_height + 1)
        self.pool_stats = make_pool_stats()
        self.headers = {h: make_header(h) for h in range(tip_height + 1)}
        self.tip_height = tip_height
        self.calls: List[tuple] = []
        self.failures: Dict[str, Callable[[httpx.Request], httpx.Response]] = {}

    def fail(self, method: str, handler: Callable[[httpx.Request], httpx.Response]) -> None:
        self.failures[method] = handler

    def _ok(self, payload: Dict[str, Any]) -> httpx.Response:
        return httpx.Response(200, json=payload)

    def _json_rpc(self, method: str, params: Dict[str, Any]) -> Dict[str, Any]:
        if method == "get_info":
            return self.info
        if method == "get_last_block_header":
            return {"block_header": self.headers[self.tip_height], "status": "OK", "untrusted": False}
        if method == "get_block_headers_range":
            start, end = params["start_height"], params["end_height"]
            return {
                "headers": [self.headers[h] for h in range(start, end + 1)],
                "status": "OK",
                "untrusted": False,
            }
        raise AssertionError(f"unexpected method {method}")

    def handle(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content or b"{}")
        if request.url.path == "/json_rpc":
            method = body["method"]
            params = body.get("params") or {}
        else:
            method = request.url.path.lstrip("/")
            params = body
        self.calls.append((method, params))

        if method in self.failures:
            return self.failures[method](request)
        if method == "get_transaction_pool_stats":
            return self._ok({"pool_stats": self.pool_stats, "status": "OK", "untrusted": False})
        return self._ok({"id": body.get("id"), "jsonrpc": "2.0", "result": self._json_rpc(method, params)})

    def methods(self) -> List[str]:
        return [method for method, _ in self.calls]

