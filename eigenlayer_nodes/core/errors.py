from __future__ import annotations

from typing import Any


class EigenLayerError(Exception):
    """Base class for every error raised by this package."""


class ConfigurationError(EigenLayerError, ValueError):
    """Missing or invalid credential / configuration field."""


class UnsupportedNetworkError(ConfigurationError):
    def __init__(self, network: Any):
        self.network = network
        super().__init__(f"Unsupported network: {network}")


class UnknownOperationError(ConfigurationError):
    def __init__(self, resource: str, operation: str | None = None):
        self.resource = resource
        self.operation = operation
        if operation is None:
            super().__init__(f"Unknown resource: {resource}")
        else:
            super().__init__(f"Unknown operation: {resource}.{operation}")


class ValidationError(EigenLayerError, ValueError):
    """Malformed address or argument supplied by the caller."""


class TransientRpcError(EigenLayerError):
    """Rate-limit or timeout reported by the RPC endpoint."""


class GasEstimationError(EigenLayerError):
    def __init__(self, method: str, reason: str | None = None):
        self.method = method
        self.reason = reason
        super().__init__(
            f"Gas estimation failed for {method}: {reason or 'unknown reason'}"
        )


class TransactionError(EigenLayerError, RuntimeError):
    def __init__(
        self,
        txn_hash: str | None,
        receipt: dict[str, Any] | None = None,
        message: str | None = None,
    ):
        self.txn_hash = txn_hash
        self.receipt = receipt or {}
        super().__init__(message or f"Transaction failed: {txn_hash}")


class TransactionRevertedError(TransactionError):
    def __init__(
        self,
        txn_hash: str | None,
        receipt: dict[str, Any] | None = None,
        message: str | None = None,
    ):
        super().__init__(
            txn_hash, receipt, message or f"Transaction reverted: {txn_hash}"
        )


class TransactionTimeoutError(TransactionError):
    def __init__(self, txn_hash: str | None, timeout_s: float):
        self.timeout_s = timeout_s
        super().__init__(
            txn_hash,
            None,
            f"Transaction {txn_hash} not confirmed within {timeout_s:g}s",
        )


class DecodeError(EigenLayerError):
    """Return data that could not be decoded against the expected ABI."""
