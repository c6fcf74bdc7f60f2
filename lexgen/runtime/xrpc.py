"""
XRPC transport abstraction.

Generated query/procedure bindings build an ``XrpcRequest`` and hand it to
whatever ``XrpcClient`` the caller injects; subscription bindings do the same
with a ``SubscriptionClient``. Only the shape is defined here.

Example:
    ```python
    from com.example import get_thing

    class MyClient:
        async def request(self, request, output_type=None):
            ...  # issue HTTP GET /xrpc/{request.nsid}

    response = await get_thing.get_thing(MyClient(), get_thing.QueryParams(id="42"))
    ```
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, AsyncIterator, Dict, Generic, Mapping, Optional, Protocol, TypeVar, Union

from pydantic import BaseModel

T = TypeVar("T")


class XrpcMethod(str, Enum):
    """HTTP method used for each XRPC call type."""

    QUERY = "GET"
    PROCEDURE = "POST"


class XrpcError(Exception):
    """
    Error returned by an XRPC endpoint.

    Generated modules subclass this once per lexicon error, setting
    ``error_name`` to the name declared in the schema.
    """

    error_name: Optional[str] = None

    def __init__(
        self,
        message: str = "",
        error: Optional[str] = None,
        status: Optional[int] = None,
    ):
        self.error = error or self.error_name
        self.status = status
        self.message = message or self.error or self.__class__.__name__
        super().__init__(self.message)


def _dump(value: Union[BaseModel, Mapping[str, Any]]) -> Dict[str, Any]:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True, exclude_none=True)
    return {key: item for key, item in value.items() if item is not None}


@dataclass
class XrpcRequest:
    """A single XRPC call, independent of how it is sent."""

    method: XrpcMethod
    nsid: str
    params: Dict[str, Any] = field(default_factory=dict)
    data: Optional[Any] = None
    binary_data: Optional[bytes] = None
    headers: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def query(cls, nsid: str) -> "XrpcRequest":
        return cls(method=XrpcMethod.QUERY, nsid=nsid)

    @classmethod
    def procedure(cls, nsid: str) -> "XrpcRequest":
        return cls(method=XrpcMethod.PROCEDURE, nsid=nsid)

    def with_params(
        self, params: Optional[Union[BaseModel, Mapping[str, Any]]]
    ) -> "XrpcRequest":
        """Add query parameters, dropping unset (None) values."""
        if params is not None:
            self.params.update(_dump(params))
        return self

    def with_data(self, data: Any) -> "XrpcRequest":
        """Set a JSON request body."""
        if isinstance(data, BaseModel):
            data = _dump(data)
        self.data = data
        self.headers.setdefault("Content-Type", "application/json")
        return self

    def with_binary(self, data: bytes, content_type: str) -> "XrpcRequest":
        """Set a raw request body with an explicit content type."""
        self.binary_data = bytes(data)
        self.headers["Content-Type"] = content_type
        return self


@dataclass
class XrpcResponse(Generic[T]):
    data: T
    headers: Dict[str, str] = field(default_factory=dict)


class XrpcClient(Protocol):
    """Transport for queries and procedures."""

    async def request(
        self, request: XrpcRequest, output_type: Any = None
    ) -> XrpcResponse[Any]:
        """Send ``request``; decode the body as ``output_type`` (None: no body)."""
        ...


class SubscriptionClient(Protocol):
    """Transport for event-stream subscriptions."""

    def subscribe(
        self, request: XrpcRequest, message_type: Any = None
    ) -> AsyncIterator[Any]:
        """Open the stream and yield decoded ``message_type`` events."""
        ...


__all__ = [
    "XrpcMethod",
    "XrpcError",
    "XrpcRequest",
    "XrpcResponse",
    "XrpcClient",
    "SubscriptionClient",
]
