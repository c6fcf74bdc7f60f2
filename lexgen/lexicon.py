"""
Lexicon schema model.

Typed, immutable representation of one lexicon document. Definitions and
properties are closed unions discriminated on the schema's ``type`` field,
so an unknown definition kind is rejected while parsing rather than
discovered during generation.

Example:
    ```python
    doc = parse_document(b'{"lexicon": 1, "id": "com.example.getThing", "defs": {...}}')
    doc.namespace_parts()   # ["com", "example"]
    doc.method_name()       # "getThing"
    ```
"""

import json
from pathlib import Path
from typing import Annotated, Any, Dict, List, Literal, Mapping, Optional, Tuple, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Discriminator,
    Field,
    Tag,
    ValidationError,
    field_validator,
)

from .errors import ParseError


class _LexiconModel(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")


# ---------------------------------------------------------------------------
# Properties
# ---------------------------------------------------------------------------


class SimpleProperty(_LexiconModel):
    """Scalar or opaque property (string, integer, boolean, unknown, ...)."""

    type: str
    description: Optional[str] = None
    format: Optional[str] = None
    default: Optional[Any] = None
    minimum: Optional[int] = None
    maximum: Optional[int] = None


class ArrayProperty(_LexiconModel):
    type: Literal["array"]
    items: "Property"
    description: Optional[str] = None
    min_length: Optional[int] = Field(default=None, alias="minLength")
    max_length: Optional[int] = Field(default=None, alias="maxLength")


class RefProperty(_LexiconModel):
    type: Literal["ref"]
    ref: str
    description: Optional[str] = None


class UnionProperty(_LexiconModel):
    type: Literal["union"]
    refs: List[str] = Field(default_factory=list)
    description: Optional[str] = None
    closed: bool = False


def _type_tag(value: Any) -> Optional[str]:
    if isinstance(value, Mapping):
        tag = value.get("type")
    else:
        tag = getattr(value, "type", None)
    return tag if isinstance(tag, str) else None


def _property_kind(value: Any) -> str:
    tag = _type_tag(value)
    if tag in ("array", "ref", "union"):
        return tag
    return "simple"


def _schema_kind(value: Any) -> str:
    if _type_tag(value) == "object":
        return "object"
    return _property_kind(value)


Property = Annotated[
    Union[
        Annotated[SimpleProperty, Tag("simple")],
        Annotated[ArrayProperty, Tag("array")],
        Annotated[RefProperty, Tag("ref")],
        Annotated[UnionProperty, Tag("union")],
    ],
    Discriminator(_property_kind),
]

ArrayProperty.model_rebuild()


# ---------------------------------------------------------------------------
# Shared building blocks
# ---------------------------------------------------------------------------


class ObjectSchema(_LexiconModel):
    """Object shape: required field names plus named properties."""

    type: Literal["object"] = "object"
    description: Optional[str] = None
    required: List[str] = Field(default_factory=list)
    properties: Dict[str, Property] = Field(default_factory=dict)


class Params(_LexiconModel):
    type: Literal["params"] = "params"
    description: Optional[str] = None
    required: List[str] = Field(default_factory=list)
    properties: Dict[str, Property] = Field(default_factory=dict)


BodySchema = Annotated[
    Union[
        Annotated[ObjectSchema, Tag("object")],
        Annotated[SimpleProperty, Tag("simple")],
        Annotated[ArrayProperty, Tag("array")],
        Annotated[RefProperty, Tag("ref")],
        Annotated[UnionProperty, Tag("union")],
    ],
    Discriminator(_schema_kind),
]


class Body(_LexiconModel):
    """Encoded request/response body of a query or procedure."""

    encoding: str
    description: Optional[str] = None
    body_schema: Optional[BodySchema] = Field(default=None, alias="schema")


class Message(_LexiconModel):
    """Event message shape of a subscription."""

    description: Optional[str] = None
    body_schema: Optional[BodySchema] = Field(default=None, alias="schema")


class LexiconError(_LexiconModel):
    name: str
    description: Optional[str] = None


# ---------------------------------------------------------------------------
# Definitions
# ---------------------------------------------------------------------------


class QueryDef(_LexiconModel):
    """XRPC query endpoint (HTTP GET)."""

    type: Literal["query"]
    description: Optional[str] = None
    parameters: Optional[Params] = None
    output: Optional[Body] = None
    errors: List[LexiconError] = Field(default_factory=list)


class ProcedureDef(_LexiconModel):
    """XRPC procedure endpoint (HTTP POST)."""

    type: Literal["procedure"]
    description: Optional[str] = None
    parameters: Optional[Params] = None
    input: Optional[Body] = None
    output: Optional[Body] = None
    errors: List[LexiconError] = Field(default_factory=list)


class RecordDef(_LexiconModel):
    type: Literal["record"]
    record: ObjectSchema
    description: Optional[str] = None
    key: Optional[str] = None


class ObjectDef(ObjectSchema):
    type: Literal["object"]


class ArrayDef(_LexiconModel):
    type: Literal["array"]
    items: Property
    description: Optional[str] = None
    min_length: Optional[int] = Field(default=None, alias="minLength")
    max_length: Optional[int] = Field(default=None, alias="maxLength")


class TokenDef(_LexiconModel):
    type: Literal["token"]
    description: Optional[str] = None


class StringDef(_LexiconModel):
    type: Literal["string"]
    description: Optional[str] = None
    format: Optional[str] = None
    max_length: Optional[int] = Field(default=None, alias="maxLength")
    max_graphemes: Optional[int] = Field(default=None, alias="maxGraphemes")


class BlobDef(_LexiconModel):
    type: Literal["blob"]
    description: Optional[str] = None
    accept: List[str] = Field(default_factory=list)
    max_size: Optional[int] = Field(default=None, alias="maxSize")


class SubscriptionDef(_LexiconModel):
    """Event stream endpoint (WebSocket)."""

    type: Literal["subscription"]
    description: Optional[str] = None
    parameters: Optional[Params] = None
    message: Optional[Message] = None
    errors: List[LexiconError] = Field(default_factory=list)


Definition = Annotated[
    Union[
        QueryDef,
        ProcedureDef,
        RecordDef,
        ObjectDef,
        ArrayDef,
        TokenDef,
        StringDef,
        BlobDef,
        SubscriptionDef,
    ],
    Field(discriminator="type"),
]

ENDPOINT_TYPES = (QueryDef, ProcedureDef, SubscriptionDef)


# ---------------------------------------------------------------------------
# Document
# ---------------------------------------------------------------------------


def namespace_parts(nsid: str) -> List[str]:
    """
    Namespace segments of an NSID.

    e.g. ``"com.atproto.identity.resolveHandle"`` -> ``["com", "atproto", "identity"]``
    """
    parts = nsid.split(".")
    if len(parts) > 1:
        return parts[:-1]
    return []


def method_name(nsid: str) -> str:
    """
    Last segment of an NSID.

    e.g. ``"com.atproto.identity.resolveHandle"`` -> ``"resolveHandle"``
    """
    return nsid.rsplit(".", 1)[-1]


class LexiconDoc(_LexiconModel):
    """Top-level lexicon document."""

    lexicon: Literal[1]
    id: str
    defs: Dict[str, Definition]
    description: Optional[str] = None
    revision: Optional[int] = None

    @field_validator("id")
    @classmethod
    def _check_nsid(cls, value: str) -> str:
        if not value or any(segment == "" for segment in value.split(".")):
            raise ValueError(f"invalid NSID {value!r}")
        return value

    def main_def(self) -> Optional[Definition]:
        """The primary definition, or None for definitions-only documents."""
        return self.defs.get("main")

    def namespace_parts(self) -> List[str]:
        return namespace_parts(self.id)

    def method_name(self) -> str:
        return method_name(self.id)

    def sorted_defs(self) -> List[Tuple[str, Definition]]:
        """Definitions in name order, so generated output is stable."""
        return sorted(self.defs.items())


def _describe_validation_error(exc: ValidationError) -> str:
    problems = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()))
        message = error.get("msg", "invalid value")
        problems.append(f"{location}: {message}" if location else message)
    return "; ".join(problems)


def parse_document(
    data: Union[bytes, str, Mapping[str, Any]],
    source: Optional[str] = None,
) -> LexiconDoc:
    """
    Parse one lexicon document.

    Args:
        data: Raw JSON (bytes or text) or an already-decoded mapping
        source: Where the document came from, used in error messages

    Raises:
        ParseError: Malformed JSON, missing fields or unknown ``type``
    """
    if isinstance(data, (bytes, str)):
        try:
            data = json.loads(data)
        except ValueError as exc:
            raise ParseError(f"invalid JSON: {exc}", source=source) from exc

    if not isinstance(data, Mapping):
        raise ParseError("document must be a JSON object", source=source)

    nsid = data.get("id") if isinstance(data.get("id"), str) else None
    try:
        return LexiconDoc.model_validate(data)
    except ValidationError as exc:
        raise ParseError(
            f"invalid lexicon document: {_describe_validation_error(exc)}",
            source=source,
            nsid=nsid,
        ) from exc


def load_document(path: Path) -> LexiconDoc:
    """Read and parse a lexicon file; unreadable files are parse failures."""
    try:
        content = Path(path).read_bytes()
    except OSError as exc:
        raise ParseError(f"cannot read document: {exc}", source=str(path)) from exc
    return parse_document(content, source=str(path))


__all__ = [
    "SimpleProperty",
    "ArrayProperty",
    "RefProperty",
    "UnionProperty",
    "Property",
    "ObjectSchema",
    "Params",
    "Body",
    "BodySchema",
    "Message",
    "LexiconError",
    "QueryDef",
    "ProcedureDef",
    "RecordDef",
    "ObjectDef",
    "ArrayDef",
    "TokenDef",
    "StringDef",
    "BlobDef",
    "SubscriptionDef",
    "Definition",
    "ENDPOINT_TYPES",
    "LexiconDoc",
    "namespace_parts",
    "method_name",
    "parse_document",
    "load_document",
]
