"""Exception types shared by the exporter."""
from typing import Optional


class ExporterError(Exception):
    """Base exception for exporter errors."""
    pass


class ConfigError(ExporterError):
    """Raised when the startup configuration is invalid."""
    pass


class RpcError(ExporterError):
    """Base exception for failed daemon RPC calls."""

    def __init__(self, method: str, message: str):
        self.method = method
        self.message = message
        super().__init__(f"{method}: {message}")


class TransportError(RpcError):
    """The daemon could not be reached (connection refused, timeout, ...)."""
    pass


class DaemonError(RpcError):
    """The daemon answered with an RPC-level error."""

    def __init__(self, method: str, message: str, code: Optional[int] = None):
        self.code = code
        if code is not None:
            message = f"{message} (code {code})"
        super().__init__(method, message)


class DecodeError(RpcError):
    """The daemon response did not have the expected shape."""
    pass
