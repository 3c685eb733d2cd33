"""
Async client for the monerod RPC interface.

The daemon exposes two kinds of endpoints: JSON-RPC methods behind
``/json_rpc`` and "other" RPC calls on their own paths (for example
``/get_transaction_pool_stats``). Both answer with a ``status`` field that is
``"OK"`` on success. Several of the fields used here are only returned when
the daemon runs with unrestricted RPC.
"""

import logging
import ssl
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from monerod_exporter.config import MonerodConfig
from monerod_exporter.errors import DaemonError, DecodeError, TransportError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BlockHeader:
    """The block header fields the block window works with"""

    height: int
    timestamp: int
    size: int
    num_txes: int
    reward: Optional[int] = None
    orphan: bool = False


def _require_int(method: str, header: Dict[str, Any], key: str) -> int:
    value = header.get(key)
    if isinstance(value, bool) or not isinstance(value, int):
        raise DecodeError(method, f"block header field {key!r} missing or not an integer: {value!r}")
    return value


def decode_block_header(method: str, header: Any) -> BlockHeader:
    """Build a ``BlockHeader`` from one entry of a daemon response"""
    if not isinstance(header, dict):
        raise DecodeError(method, f"block header is not an object: {header!r}")

    reward = header.get("reward")
    if reward is not None and (isinstance(reward, bool) or not isinstance(reward, int)):
        raise DecodeError(method, f"block header field 'reward' is not an integer: {reward!r}")

    return BlockHeader(
        height=_require_int(method, header, "height"),
        timestamp=_require_int(method, header, "timestamp"),
        size=_require_int(method, header, "block_size"),
        num_txes=_require_int(method, header, "num_txes"),
        reward=reward,
        orphan=bool(header.get("orphan_status", False)),
    )


def build_http_client(config: MonerodConfig) -> httpx.AsyncClient:
    """Create the shared HTTP client for daemon calls"""
    verify: Any = True
    if config.skip_tls_verification:
        logger.warning("TLS verification disabled for monerod RPC client")
        verify = False
    elif config.tls_cert_path:
        verify = ssl.create_default_context()
        verify.load_verify_locations(cafile=str(config.tls_cert_path))

    return httpx.AsyncClient(
        base_url=config.base_url,
        timeout=httpx.Timeout(config.timeout),
        verify=verify,
    )


class MonerodClient:
    """
    Thin wrapper over the daemon RPC endpoints.

    Every failure raises: ``TransportError`` when the daemon cannot be
    reached, ``DaemonError`` when it reports an error and ``DecodeError``
    when the response is not what was expected. Nothing is retried.
    """

    def __init__(self, http_client: httpx.AsyncClient):
        self.http_client = http_client

    @classmethod
    def from_config(cls, config: MonerodConfig) -> "MonerodClient":
        return cls(build_http_client(config))

    async def aclose(self) -> None:
        await self.http_client.aclose()

    async def _post(self, method: str, path: str, body: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = await self.http_client.post(path, json=body)
        except httpx.TimeoutException as e:
            raise TransportError(method, f"timed out: {e!r}") from e
        except httpx.TransportError as e:
            raise TransportError(method, f"request failed: {e!r}") from e

        if response.status_code >= 400:
            raise DaemonError(method, f"HTTP {response.reason_phrase}", code=response.status_code)

        try:
            data = response.json()
        except ValueError as e:
            raise DecodeError(method, f"response is not JSON: {e}") from e
        if not isinstance(data, dict):
            raise DecodeError(method, f"response is not an object: {type(data).__name__}")
        return data

    @staticmethod
    def _check_status(method: str, result: Dict[str, Any]) -> Dict[str, Any]:
        status = result.get("status")
        if status is None:
            raise DecodeError(method, "missing status")
        if status != "OK":
            raise DaemonError(method, f"unexpected status {status!r}")
        # Answers relayed from a bootstrap daemon can't be trusted
        if result.get("untrusted") is True:
            raise DaemonError(method, "received an untrusted response from node")
        return result

    async def call_json_rpc(self, method: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Call a method behind ``/json_rpc``

        Args:
            method: JSON-RPC method name
            params: Method parameters

        Returns:
            The ``result`` object of the response
        """
        body = {"jsonrpc": "2.0", "id": "0", "method": method, "params": params or {}}
        data = await self._post(method, "/json_rpc", body)

        error = data.get("error")
        if error is not None:
            if isinstance(error, dict):
                raise DaemonError(method, str(error.get("message", "unknown error")), code=error.get("code"))
            raise DaemonError(method, str(error))

        result = data.get("result")
        if not isinstance(result, dict):
            raise DecodeError(method, "result not found in the response")
        return self._check_status(method, result)

    async def call_rpc(self, path: str, body: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Call one of the daemon's non-JSON-RPC endpoints, e.g. ``/get_info``"""
        method = path.lstrip("/")
        data = await self._post(method, path, body or {})
        return self._check_status(method, data)

    async def get_info(self) -> Dict[str, Any]:
        return await self.call_json_rpc("get_info")

    async def get_transaction_pool_stats(self) -> Dict[str, Any]:
        """Pool statistics; fee and histogram fields are unrestricted-only"""
        method = "get_transaction_pool_stats"
        response = await self.call_rpc(f"/{method}")
        pool_stats = response.get("pool_stats")
        if not isinstance(pool_stats, dict):
            raise DecodeError(method, "pool_stats not found in the response")
        return pool_stats

    async def get_last_block_header(self) -> BlockHeader:
        method = "get_last_block_header"
        result = await self.call_json_rpc(method)
        return decode_block_header(method, result.get("block_header"))

    async def get_block_headers_range(self, start_height: int, end_height: int) -> List[BlockHeader]:
        """Headers for ``start_height..end_height`` (both inclusive)"""
        method = "get_block_headers_range"
        result = await self.call_json_rpc(
            method, {"start_height": start_height, "end_height": end_height}
        )
        headers = result.get("headers")
        if not isinstance(headers, list):
            raise DecodeError(method, "headers not found in the response")
        return [decode_block_header(method, header) for header in headers]
