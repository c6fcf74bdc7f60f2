"""
Declarations imported by generated modules.

Generated code depends only on these shapes. The transport that actually
performs requests (HTTP, WebSocket, retries, auth) lives outside lexgen
and is passed to the generated bindings as an ``XrpcClient`` or
``SubscriptionClient``.
"""

from .types import AtUri, Did
from .xrpc import (
    SubscriptionClient,
    XrpcClient,
    XrpcError,
    XrpcMethod,
    XrpcRequest,
    XrpcResponse,
)

__all__ = [
    "AtUri",
    "Did",
    "SubscriptionClient",
    "XrpcClient",
    "XrpcError",
    "XrpcMethod",
    "XrpcRequest",
    "XrpcResponse",
]
