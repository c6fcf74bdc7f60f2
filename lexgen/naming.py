"""
Identifier conversion shared by the resolver, generator and module tree.

Lexicon names are camelCase (``getThing``, ``postView``); generated Python
uses PascalCase for types and snake_case for modules and fields.
"""

import keyword
import re
from typing import Iterable, List, Optional, Set, Tuple

from pydantic import BaseModel

_SEPARATORS = re.compile(r"[^A-Za-z0-9]+")
_WORD_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")
_INVALID_IDENTIFIER_CHARS = re.compile(r"\W")

# Names the generated modules import or declare themselves.
RESERVED_TYPE_NAMES = frozenset(
    {
        "Any",
        "AsyncIterator",
        "AtUri",
        "BaseModel",
        "ClassVar",
        "ConfigDict",
        "Dict",
        "Did",
        "Field",
        "ForwardRef",
        "Input",
        "List",
        "Message",
        "Optional",
        "Output",
        "QueryParams",
        "SubscriptionClient",
        "XrpcClient",
        "XrpcError",
        "XrpcRequest",
        "XrpcResponse",
    }
)

# Public attributes of BaseModel a field must not shadow.
RESERVED_FIELD_NAMES = frozenset(
    name for name in dir(BaseModel) if not name.startswith("_")
)


def split_words(name: str) -> List[str]:
    """Split a camelCase, snake_case or dashed name into words."""
    spaced = _SEPARATORS.sub(" ", name)
    spaced = _WORD_BOUNDARY.sub(" ", spaced)
    return [word for word in spaced.split() if word]


def to_snake_case(name: str) -> str:
    return "_".join(word.lower() for word in split_words(name))


def to_pascal_case(name: str) -> str:
    return "".join(word[:1].upper() + word[1:].lower() for word in split_words(name))


def type_name(name: str) -> str:
    """
    Convert a definition name to the Python class/alias name.

    Names that would clash with something the generated module imports
    get a ``Type`` suffix, e.g. ``output`` -> ``OutputType``.
    """
    converted = to_pascal_case(name) or "Unnamed"
    if converted[0].isdigit():
        converted = f"Type{converted}"
    if converted in RESERVED_TYPE_NAMES:
        converted = f"{converted}Type"
    return converted


def definition_type_name(def_name: str) -> str:
    """Class name for a definition; the ``main`` definition is always ``Main``."""
    if def_name == "main":
        return "Main"
    return type_name(def_name)


def _escape_keyword(name: str) -> str:
    if keyword.iskeyword(name):
        return f"{name}_"
    return name


def field_name(json_name: str, taken: Optional[Set[str]] = None) -> str:
    """
    Convert a JSON property name to a valid pydantic field name.

    ``taken`` holds names already used in the same class; collisions after
    case conversion get trailing underscores until unique.
    """
    name = to_snake_case(json_name) or "field"
    if name[0].isdigit():
        name = f"field_{name}"
    name = _escape_keyword(name)
    if name in RESERVED_FIELD_NAMES:
        name = f"{name}_"
    if taken is not None:
        while name in taken:
            name = f"{name}_"
        taken.add(name)
    return name


def function_name(method: str) -> str:
    name = to_snake_case(method) or "call"
    if name[0].isdigit():
        name = f"call_{name}"
    return _escape_keyword(name)


def package_segment(segment: str) -> str:
    """Make one namespace segment usable as a Python package directory."""
    cleaned = _INVALID_IDENTIFIER_CHARS.sub("_", segment) or "_"
    if cleaned[0].isdigit():
        cleaned = f"_{cleaned}"
    return _escape_keyword(cleaned)


def module_name(segment: str) -> str:
    """Leaf module name for the last NSID segment (``getThing`` -> ``get_thing``)."""
    name = to_snake_case(segment) or package_segment(segment)
    if name[0].isdigit():
        name = f"_{name}"
    return _escape_keyword(name)


def module_parts(nsid: str) -> Tuple[str, ...]:
    """
    Path components of the module generated for ``nsid``.

    Every segment but the last is a package directory; the last segment
    becomes the snake_case module name.

    >>> module_parts("com.example.getThing")
    ('com', 'example', 'get_thing')
    """
    segments = nsid.split(".")
    directories = tuple(package_segment(segment) for segment in segments[:-1])
    return directories + (module_name(segments[-1]),)


def module_alias(nsid: str) -> str:
    """Import alias for a generated module, e.g. ``app_bsky_feed_defs``."""
    return "_".join(module_parts(nsid))


def dotted(parts: Iterable[str]) -> str:
    return ".".join(part for part in parts if part)
