"""
Type resolution: lexicon property shapes -> Python type expressions.

``resolve`` is a pure function of the property (and the NSID of the
document it appears in). The result is a small ``TypeExpr`` tree that the
generator renders to source text and asks for the imports it needs.

Mapping:
    string                       -> str
    string, format=did           -> Did
    string, format=at-uri        -> AtUri
    string, any other format     -> str
    integer                      -> int
    boolean                      -> bool
    any other simple type        -> Any
    array                        -> List[resolve(items)]
    ref "#name"                  -> Name (same module)
    ref "ns.path#name"           -> <ns.path module>.Name
    ref "ns.path"                -> <ns.path module>.Main
    union                        -> Any
"""

from dataclasses import dataclass
from typing import FrozenSet, Iterable, NamedTuple, Optional, Set, Tuple

from .errors import GenerationError
from .lexicon import ArrayProperty, Property, RefProperty, SimpleProperty, UnionProperty
from .naming import definition_type_name, dotted, module_alias, module_parts
from .observability import get_logger

logger = get_logger(__name__)


class ImportSpec(NamedTuple):
    """``from module import name`` when ``name`` is set, else ``import module as alias``."""

    module: str
    name: Optional[str] = None
    alias: Optional[str] = None

    def render(self) -> str:
        if self.name is not None:
            return f"from {self.module} import {self.name}"
        if self.alias:
            return f"import {self.module} as {self.alias}"
        return f"import {self.module}"


@dataclass(frozen=True)
class RenderContext:
    """Where the generated tree lives and where runtime types come from."""

    package: str = ""
    runtime_package: str = "lexgen.runtime"

    def module_import(self, nsid: str) -> ImportSpec:
        full_name = dotted([self.package, *module_parts(nsid)])
        return ImportSpec(module=full_name, alias=module_alias(nsid))


class TypeExpr:
    """
    Base class of resolved types.

    ``forward`` renders references to other documents as ``ForwardRef``
    bound to the generated module, for expressions evaluated at import time.
    """

    def render(self, ctx: RenderContext, forward: bool = False) -> str:
        raise NotImplementedError

    def imports(self, ctx: RenderContext, forward: bool = False) -> Set[ImportSpec]:
        return set()

    def local_names(self) -> Set[str]:
        """Names of same-module types this expression refers to."""
        return set()


@dataclass(frozen=True)
class BuiltinType(TypeExpr):
    name: str

    def render(self, ctx: RenderContext, forward: bool = False) -> str:
        return self.name

    def imports(self, ctx: RenderContext, forward: bool = False) -> Set[ImportSpec]:
        if self.name == "Any":
            return {ImportSpec("typing", "Any")}
        return set()


@dataclass(frozen=True)
class DomainType(TypeExpr):
    """A string type with domain meaning, provided by the runtime package."""

    name: str

    def render(self, ctx: RenderContext, forward: bool = False) -> str:
        return self.name

    def imports(self, ctx: RenderContext, forward: bool = False) -> Set[ImportSpec]:
        return {ImportSpec(f"{ctx.runtime_package}.types", self.name)}


@dataclass(frozen=True)
class SequenceType(TypeExpr):
    item: TypeExpr

    def render(self, ctx: RenderContext, forward: bool = False) -> str:
        return f"List[{self.item.render(ctx, forward)}]"

    def imports(self, ctx: RenderContext, forward: bool = False) -> Set[ImportSpec]:
        return {ImportSpec("typing", "List")} | self.item.imports(ctx, forward)

    def local_names(self) -> Set[str]:
        return self.item.local_names()


@dataclass(frozen=True)
class RefType(TypeExpr):
    """
    Reference to a named definition.

    ``nsid`` is None for a definition in the current document. ``name`` is
    the lexicon definition name; ``"main"`` denotes the document's primary
    type.
    """

    name: str
    nsid: Optional[str] = None

    @property
    def is_local(self) -> bool:
        return self.nsid is None

    @property
    def module(self) -> Tuple[str, ...]:
        """Generated module path of the target ((): current module)."""
        if self.nsid is None:
            return ()
        return module_parts(self.nsid)

    @property
    def type_name(self) -> str:
        return definition_type_name(self.name)

    def render(self, ctx: RenderContext, forward: bool = False) -> str:
        if self.nsid is None:
            return self.type_name
        target = f"{module_alias(self.nsid)}.{self.type_name}"
        if forward:
            return f'ForwardRef("{target}", module=__name__)'
        return target

    def imports(self, ctx: RenderContext, forward: bool = False) -> Set[ImportSpec]:
        if self.nsid is None:
            return set()
        specs = {ctx.module_import(self.nsid)}
        if forward:
            specs.add(ImportSpec("typing", "ForwardRef"))
        return specs

    def local_names(self) -> Set[str]:
        if self.nsid is None:
            return {self.type_name}
        return set()


STR = BuiltinType("str")
INT = BuiltinType("int")
BOOL = BuiltinType("bool")
BYTES = BuiltinType("bytes")
ANY = BuiltinType("Any")
DID = DomainType("Did")
AT_URI = DomainType("AtUri")

_STRING_FORMATS = {
    "did": DID,
    "handle": STR,
    "at-uri": AT_URI,
    # TODO: map to datetime once generated models parse timestamps
    "datetime": STR,
}


def parse_ref(ref_path: str) -> Tuple[Optional[str], str]:
    """
    Split a ref path into (nsid, definition name).

    ``"#name"`` -> (None, "name"); ``"a.b.c#name"`` -> ("a.b.c", "name");
    ``"a.b.c"`` -> ("a.b.c", "main").
    """
    nsid, sep, name = ref_path.partition("#")
    if not nsid and not name:
        raise GenerationError(f"malformed reference {ref_path!r}")
    if sep and not name:
        raise GenerationError(f"malformed reference {ref_path!r}: empty definition name")
    return (nsid or None), (name if sep else "main")


def resolve_simple(prop: SimpleProperty) -> TypeExpr:
    if prop.type == "string":
        if prop.format is None:
            return STR
        return _STRING_FORMATS.get(prop.format, STR)
    if prop.type == "integer":
        return INT
    if prop.type == "boolean":
        return BOOL
    return ANY


def resolve(prop: Property, nsid: Optional[str] = None) -> TypeExpr:
    """
    Map a property to its Python type.

    Args:
        prop: Property to resolve
        nsid: NSID of the document the property belongs to; references to
            that same document resolve as local references
    """
    if isinstance(prop, SimpleProperty):
        return resolve_simple(prop)
    if isinstance(prop, ArrayProperty):
        return SequenceType(resolve(prop.items, nsid))
    if isinstance(prop, RefProperty):
        target, name = parse_ref(prop.ref)
        if target is not None and target == nsid:
            target = None
        return RefType(name=name, nsid=target)
    if isinstance(prop, UnionProperty):
        # Proper sum types for unions are not generated yet.
        return ANY
    raise GenerationError(f"unsupported property {type(prop).__name__}")


def is_optional(prop: Property) -> bool:
    """
    Whether a field is emitted as optional.

    Only a simple property carrying a default is optional; the enclosing
    object's ``required`` list is not consulted.
    """
    return isinstance(prop, SimpleProperty) and prop.default is not None


def collect_refs(expr: TypeExpr) -> Iterable[RefType]:
    if isinstance(expr, RefType):
        yield expr
    elif isinstance(expr, SequenceType):
        yield from collect_refs(expr.item)


class TypeResolver:
    """
    ``resolve`` bound to the set of documents in the current batch.

    Cross-document references to NSIDs outside the batch still resolve
    (the target may be generated separately) but are logged once.
    """

    def __init__(self, known_nsids: Iterable[str] = ()):
        self._known: Set[str] = set(known_nsids)
        self._reported: Set[Tuple[str, str]] = set()

    @property
    def known_nsids(self) -> FrozenSet[str]:
        return frozenset(self._known)

    def register(self, nsid: str) -> None:
        self._known.add(nsid)

    def resolve(self, prop: Property, nsid: Optional[str] = None) -> TypeExpr:
        expr = resolve(prop, nsid)
        if self._known:
            for ref in collect_refs(expr):
                self._check_target(ref, nsid)
        return expr

    def _check_target(self, ref: RefType, source: Optional[str]) -> None:
        if ref.nsid is None or ref.nsid in self._known:
            return
        key = (source or "", ref.nsid)
        if key in self._reported:
            return
        self._reported.add(key)
        logger.warning(
            "Unresolved reference from %s to %s (not part of this batch)",
            source or "<unknown>",
            ref.nsid,
        )


__all__ = [
    "ImportSpec",
    "RenderContext",
    "TypeExpr",
    "BuiltinType",
    "DomainType",
    "SequenceType",
    "RefType",
    "STR",
    "INT",
    "BOOL",
    "BYTES",
    "ANY",
    "DID",
    "AT_URI",
    "parse_ref",
    "resolve",
    "resolve_simple",
    "is_optional",
    "TypeResolver",
]
