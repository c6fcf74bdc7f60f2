"""
Python module generator - one lexicon document in, one Python module out.

Generates:
    1. Pydantic v2 models for objects, records, tokens and blobs
    2. Type aliases for string and array definitions
    3. QueryParams / Input / Output types and XRPC error classes for endpoints
    4. An async call binding that goes through an injected XrpcClient
    5. A Message alias and stream binding for subscriptions

Example:
    ```python
    generator = PythonModuleGenerator(package="client")
    source = generator.generate(parse_document(raw_json))
    ```

Key Features:
    - Deterministic code generation (same input = same output, no timestamps)
    - Definitions emitted in name order
    - Imports collected while emitting and written sorted
    - Array aliases refer to other documents through ForwardRef, so
      documents that import each other still load
"""

import json
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set

from ..errors import GenerationError
from ..lexicon import (
    ENDPOINT_TYPES,
    ArrayDef,
    BlobDef,
    Body,
    LexiconDoc,
    LexiconError,
    ObjectDef,
    ObjectSchema,
    Params,
    ProcedureDef,
    Property,
    QueryDef,
    RecordDef,
    RefProperty,
    StringDef,
    SubscriptionDef,
    TokenDef,
    UnionProperty,
    method_name,
)
from ..naming import definition_type_name, field_name, function_name, type_name
from ..resolver import (
    ANY,
    BYTES,
    ImportSpec,
    RenderContext,
    SequenceType,
    TypeExpr,
    TypeResolver,
    is_optional,
)

_MIME_PATTERN = re.compile(
    r"^(\*|[A-Za-z0-9][A-Za-z0-9!#$&^_.+-]*)/(\*|[A-Za-z0-9][A-Za-z0-9!#$&^_.+-]*)$"
)

_IMPORT_GROUPS = {"typing": 0, "pydantic": 1}


def _literal(value: Any) -> str:
    """Render a JSON value as a Python literal."""
    if isinstance(value, str):
        return json.dumps(value)
    if isinstance(value, (bool, int, float)) or value is None:
        return repr(value)
    if isinstance(value, (list, tuple)):
        return "[" + ", ".join(_literal(item) for item in value) + "]"
    if isinstance(value, dict):
        items = ", ".join(f"{_literal(str(k))}: {_literal(v)}" for k, v in value.items())
        return "{" + items + "}"
    raise GenerationError(f"cannot render default value {value!r}")


def _escape_docstring(text: str) -> str:
    return text.replace("\\", "\\\\").replace('"', '\\"')


def _is_json_encoding(encoding: str) -> bool:
    return encoding == "application/json" or encoding.endswith("+json")


@dataclass
class _Alias:
    name: str
    value: str
    depends_on: Set[str] = field(default_factory=set)
    comment: Optional[str] = None


@dataclass
class _BodyBinding:
    """How a request/response body shows up in the call binding."""

    type_name: Optional[str]
    binary: bool = False
    content_type: Optional[str] = None


@dataclass
class ModuleContext:
    """Emission state for one generated module."""

    nsid: str
    render: RenderContext
    imports: Set[ImportSpec] = field(default_factory=set)
    classes: List[str] = field(default_factory=list)
    aliases: List[_Alias] = field(default_factory=list)
    functions: List[str] = field(default_factory=list)
    names: Set[str] = field(default_factory=lambda: {"NSID"})

    def declare(self, name: str) -> None:
        """Claim a module-level name; two definitions may not share one."""
        if name in self.names:
            raise GenerationError(f"name {name!r} is already defined in this module")
        self.names.add(name)

    def add_class(self, name: str, block: str) -> None:
        self.declare(name)
        self.classes.append(block)

    def add_alias(self, alias: _Alias) -> None:
        self.declare(alias.name)
        self.aliases.append(alias)

    def use(self, module: str, *names: str) -> None:
        for name in names:
            self.imports.add(ImportSpec(module, name))

    def use_expr(self, expr: TypeExpr, forward: bool = False) -> str:
        self.imports.update(expr.imports(self.render, forward))
        return expr.render(self.render, forward)

    def use_xrpc(self, *names: str) -> None:
        self.use(f"{self.render.runtime_package}.xrpc", *names)


class PythonModuleGenerator:
    """
    Generates one Python module per lexicon document.

    The ``main`` definition decides the module's shape (endpoint, record or
    plain type); every other definition becomes a model or alias next to it.
    """

    def __init__(
        self,
        package: str = "",
        runtime_package: str = "lexgen.runtime",
        resolver: Optional[TypeResolver] = None,
        indent: str = "    ",
    ):
        """
        Initialize module generator.

        Args:
            package: Import prefix of the generated tree, used for
                cross-document imports
            runtime_package: Package providing Did/AtUri and the XRPC types
            resolver: Shared resolver (defaults to a standalone one)
            indent: Indentation string (default: 4 spaces)
        """
        self.render_context = RenderContext(package=package, runtime_package=runtime_package)
        self.resolver = resolver or TypeResolver()
        self.indent = indent

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def generate(self, doc: LexiconDoc) -> str:
        """
        Generate the module source for ``doc``.

        Raises:
            GenerationError: A definition has no Python mapping
        """
        ctx = ModuleContext(nsid=doc.id, render=self.render_context)
        main = doc.main_def()
        for name, definition in doc.sorted_defs():
            if name != "main":
                self._emit_checked(doc, name, definition, ctx)
        if main is not None:
            self._emit_checked(doc, "main", main, ctx)
        return self._render_module(doc, ctx)

    def _emit_checked(self, doc: LexiconDoc, name: str, definition, ctx: ModuleContext) -> None:
        try:
            self.emit(name, definition, ctx)
        except GenerationError as exc:
            raise GenerationError(
                f"{doc.id}#{name}: {exc.message}", nsid=doc.id, definition=name
            ) from exc

    def emit(self, name: str, definition, ctx: ModuleContext) -> None:
        """Emit one definition into ``ctx``."""
        if isinstance(definition, ENDPOINT_TYPES + (RecordDef,)):
            if name != "main":
                raise GenerationError(
                    f"{definition.type} definitions are only supported as 'main'"
                )
            if isinstance(definition, QueryDef):
                self._emit_query(definition, ctx)
            elif isinstance(definition, ProcedureDef):
                self._emit_procedure(definition, ctx)
            elif isinstance(definition, SubscriptionDef):
                self._emit_subscription(definition, ctx)
            else:
                self._emit_record(definition, ctx)
        elif isinstance(definition, ObjectDef):
            self._emit_model(
                definition_type_name(name),
                definition.description,
                definition.properties,
                ctx,
                schema_extra={"x-lexicon": self._lexicon_ref(ctx, name)},
            )
        elif isinstance(definition, StringDef):
            ctx.add_alias(
                _Alias(definition_type_name(name), "str", comment=definition.description)
            )
        elif isinstance(definition, ArrayDef):
            expr = SequenceType(self.resolver.resolve(definition.items, ctx.nsid))
            ctx.add_alias(
                _Alias(
                    definition_type_name(name),
                    ctx.use_expr(expr, forward=True),
                    depends_on=expr.local_names(),
                    comment=definition.description,
                )
            )
        elif isinstance(definition, TokenDef):
            self._emit_token(name, definition, ctx)
        elif isinstance(definition, BlobDef):
            self._emit_blob(name, definition, ctx)
        else:
            raise GenerationError(f"unsupported definition {type(definition).__name__}")

    # ------------------------------------------------------------------
    # Type definitions
    # ------------------------------------------------------------------

    @staticmethod
    def _lexicon_ref(ctx: ModuleContext, name: str) -> str:
        return ctx.nsid if name == "main" else f"{ctx.nsid}#{name}"

    def _docstring(self, text: str, level: int = 1) -> List[str]:
        indent = self.indent * level
        lines = [line.rstrip() for line in _escape_docstring(text.strip()).splitlines()]
        if len(lines) <= 1:
            return [f'{indent}"""{lines[0] if lines else ""}"""']
        result = [f'{indent}"""{lines[0]}']
        result.extend(f"{indent}{line}" if line else "" for line in lines[1:])
        result.append(f'{indent}"""')
        return result

    def _model_config(self, ctx: ModuleContext, *options: str) -> str:
        ctx.use("pydantic", "ConfigDict")
        return f"{self.indent}model_config = ConfigDict({', '.join(options)})"

    def _emit_model(
        self,
        class_name: str,
        description: Optional[str],
        properties: Dict[str, Property],
        ctx: ModuleContext,
        schema_extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Generate a pydantic model with one field per property."""
        ctx.use("pydantic", "BaseModel")

        lines = [f"class {class_name}(BaseModel):"]
        lines.extend(self._docstring(description or f"Model: {class_name}"))
        lines.append("")

        taken: Set[str] = set()
        for json_name, prop in properties.items():
            lines.append(f"{self.indent}{self._field(json_name, prop, ctx, taken)}")
        if properties:
            lines.append("")

        options = ["populate_by_name=True", "protected_namespaces=()"]
        if schema_extra:
            options.append(f"json_schema_extra={_literal(schema_extra)}")
        lines.append(self._model_config(ctx, *options))
        ctx.add_class(class_name, "\n".join(lines))

    def _field(
        self, json_name: str, prop: Property, ctx: ModuleContext, taken: Set[str]
    ) -> str:
        """Generate one field definition line."""
        annotation = ctx.use_expr(self.resolver.resolve(prop, ctx.nsid))
        name = field_name(json_name, taken)

        field_kwargs = []
        if is_optional(prop):
            ctx.use("typing", "Optional")
            annotation = f"Optional[{annotation}]"
            field_kwargs.append(f"default={_literal(prop.default)}")
        if name != json_name:
            field_kwargs.append(f"alias={_literal(json_name)}")
        if prop.description:
            field_kwargs.append(f"description={_literal(prop.description)}")

        if not field_kwargs:
            return f"{name}: {annotation}"
        ctx.use("pydantic", "Field")
        return f"{name}: {annotation} = Field({', '.join(field_kwargs)})"

    def _emit_record(self, definition: RecordDef, ctx: ModuleContext) -> None:
        class_name = type_name(method_name(ctx.nsid))
        if class_name in ctx.names:
            class_name = f"{class_name}Record"
        schema_extra: Dict[str, Any] = {"x-lexicon": ctx.nsid}
        if definition.key:
            schema_extra["x-record-key"] = definition.key
        self._emit_model(
            class_name,
            definition.description or definition.record.description,
            definition.record.properties,
            ctx,
            schema_extra=schema_extra,
        )
        if class_name != "Main":
            ctx.add_alias(_Alias("Main", class_name, depends_on={class_name}))

    def _emit_token(self, name: str, definition: TokenDef, ctx: ModuleContext) -> None:
        ctx.use("pydantic", "BaseModel")
        ctx.use("typing", "ClassVar")
        token = self._lexicon_ref(ctx, name)
        class_name = definition_type_name(name)
        lines = [f"class {class_name}(BaseModel):"]
        lines.extend(self._docstring(definition.description or f"Token: {token}"))
        lines.append("")
        lines.append(f"{self.indent}TOKEN: ClassVar[str] = {_literal(token)}")
        lines.append("")
        lines.append(
            self._model_config(ctx, "frozen=True", f"json_schema_extra={_literal({'x-token': token})}")
        )
        ctx.add_class(class_name, "\n".join(lines))

    def _emit_blob(self, name: str, definition: BlobDef, ctx: ModuleContext) -> None:
        ctx.use("pydantic", "BaseModel", "Field")
        ctx.use("typing", "List", "Optional")
        class_name = definition_type_name(name)
        lines = [f"class {class_name}(BaseModel):"]
        lines.extend(self._docstring(definition.description or f"Blob: {self._lexicon_ref(ctx, name)}"))
        lines.append("")
        lines.append(
            f"{self.indent}accept: List[str] = Field("
            f"default={_literal(list(definition.accept))}, "
            f'description="Accepted MIME type patterns")'
        )
        lines.append(
            f"{self.indent}max_size: Optional[int] = Field("
            f"default={_literal(definition.max_size)}, "
            f'description="Maximum size in bytes")'
        )
        lines.append("")
        lines.append(
            self._model_config(
                ctx, f"json_schema_extra={_literal({'x-lexicon': self._lexicon_ref(ctx, name)})}"
            )
        )
        ctx.add_class(class_name, "\n".join(lines))

    # ------------------------------------------------------------------
    # Endpoints
    # ------------------------------------------------------------------

    def _emit_params(self, params: Optional[Params], ctx: ModuleContext) -> bool:
        if params is None:
            return False
        self._emit_model(
            "QueryParams", params.description or "Query parameters.", params.properties, ctx
        )
        return True

    def _emit_body(
        self, name: str, body: Optional[Body], role: str, ctx: ModuleContext
    ) -> _BodyBinding:
        """
        Emit the ``Input``/``Output`` type for an encoded body.

        JSON bodies map their schema; other encodings without a schema map
        to ``bytes``.
        """
        if body is None:
            return _BodyBinding(type_name=None)

        encoding = body.encoding.split(";", 1)[0].strip()
        if not _MIME_PATTERN.match(encoding):
            raise GenerationError(f"{role} encoding {body.encoding!r} has no type mapping")

        schema = body.body_schema
        if not _is_json_encoding(encoding.lower()):
            if schema is not None:
                raise GenerationError(
                    f"{role} encoding {encoding!r} cannot carry a JSON schema"
                )
            ctx.add_alias(_Alias(name, ctx.use_expr(BYTES), comment=body.description))
            return _BodyBinding(
                type_name=name,
                binary=True,
                content_type=None if "*" in encoding else encoding,
            )

        if schema is None:
            if role == "output":
                return _BodyBinding(type_name=None)
            ctx.use("typing", "Any", "Dict")
            ctx.add_alias(_Alias(name, "Dict[str, Any]", comment=body.description))
            return _BodyBinding(type_name=name)

        if isinstance(schema, ObjectSchema):
            default_doc = "Request input." if role == "input" else "Response output."
            self._emit_model(
                name, body.description or schema.description or default_doc, schema.properties, ctx
            )
        elif isinstance(schema, (RefProperty, UnionProperty)):
            expr = self.resolver.resolve(schema, ctx.nsid)
            ctx.add_alias(
                _Alias(
                    name,
                    ctx.use_expr(expr),
                    depends_on=expr.local_names(),
                    comment=body.description or _union_comment(schema),
                )
            )
        else:
            raise GenerationError(f"{role} schema of type {schema.type!r} is not supported")
        return _BodyBinding(type_name=name)

    def _emit_errors(self, errors: List[LexiconError], ctx: ModuleContext) -> None:
        seen: Set[str] = set()
        for error in errors:
            if error.name in seen:
                continue
            seen.add(error.name)
            ctx.use_xrpc("XrpcError")
            class_name = type_name(error.name)
            if not class_name.endswith("Error"):
                class_name = f"{class_name}Error"
            doc = f"Error: {error.name}"
            if error.description:
                doc = f"{doc}\n\n{error.description}"
            lines = [f"class {class_name}(XrpcError):"]
            lines.extend(self._docstring(doc))
            lines.append("")
            lines.append(f"{self.indent}error_name = {_literal(error.name)}")
            ctx.add_class(class_name, "\n".join(lines))

    def _emit_query(self, definition: QueryDef, ctx: ModuleContext) -> None:
        has_params = self._emit_params(definition.parameters, ctx)
        output = self._emit_body("Output", definition.output, "output", ctx)
        self._emit_errors(definition.errors, ctx)
        self._emit_call(definition.description, "query", has_params, None, output, ctx)

    def _emit_procedure(self, definition: ProcedureDef, ctx: ModuleContext) -> None:
        has_params = self._emit_params(definition.parameters, ctx)
        input_binding = self._emit_body("Input", definition.input, "input", ctx)
        output = self._emit_body("Output", definition.output, "output", ctx)
        self._emit_errors(definition.errors, ctx)
        self._emit_call(
            definition.description,
            "procedure",
            has_params,
            input_binding if input_binding.type_name else None,
            output,
            ctx,
        )

    def _emit_call(
        self,
        description: Optional[str],
        kind: str,
        has_params: bool,
        input_binding: Optional[_BodyBinding],
        output: _BodyBinding,
        ctx: ModuleContext,
    ) -> None:
        """Generate the async binding that issues the request via the client."""
        ctx.use_xrpc("XrpcClient", "XrpcRequest", "XrpcResponse")
        i1 = self.indent
        output_type = output.type_name or "None"

        lines = [f"async def {function_name(method_name(ctx.nsid))}("]
        lines.append(f"{i1}client: XrpcClient,")
        if has_params:
            lines.append(f"{i1}params: QueryParams,")
        if input_binding is not None:
            lines.append(f"{i1}data: {input_binding.type_name},")
            if input_binding.binary:
                if input_binding.content_type:
                    lines.append(f"{i1}content_type: str = {_literal(input_binding.content_type)},")
                else:
                    lines.append(f"{i1}content_type: str,")
        lines.append(f") -> XrpcResponse[{output_type}]:")
        lines.extend(self._docstring(description or ctx.nsid))

        request = f"XrpcRequest.{kind}(NSID)"
        if has_params:
            request += ".with_params(params)"
        if input_binding is not None:
            if input_binding.binary:
                request += ".with_binary(data, content_type)"
            else:
                request += ".with_data(data)"
        lines.append(f"{i1}req = {request}")
        lines.append(f"{i1}return await client.request(req, {output_type})")
        ctx.functions.append("\n".join(lines))

    def _emit_subscription(self, definition: SubscriptionDef, ctx: ModuleContext) -> None:
        has_params = self._emit_params(definition.parameters, ctx)
        message = definition.message
        schema = message.body_schema if message is not None else None
        description = message.description if message is not None else None

        if schema is None:
            ctx.add_alias(_Alias("Message", ctx.use_expr(ANY), comment=description))
        elif isinstance(schema, ObjectSchema):
            self._emit_model(
                "Message", description or schema.description or "Stream message.", schema.properties, ctx
            )
        elif isinstance(schema, (RefProperty, UnionProperty)):
            expr = self.resolver.resolve(schema, ctx.nsid)
            ctx.add_alias(
                _Alias(
                    "Message",
                    ctx.use_expr(expr),
                    depends_on=expr.local_names(),
                    comment=description or _union_comment(schema),
                )
            )
        else:
            raise GenerationError(f"message schema of type {schema.type!r} is not supported")

        self._emit_errors(definition.errors, ctx)

        ctx.use("typing", "AsyncIterator")
        ctx.use_xrpc("SubscriptionClient", "XrpcRequest")
        i1 = self.indent
        lines = [f"def {function_name(method_name(ctx.nsid))}("]
        lines.append(f"{i1}client: SubscriptionClient,")
        if has_params:
            lines.append(f"{i1}params: QueryParams,")
        lines.append(") -> AsyncIterator[Message]:")
        lines.extend(self._docstring(definition.description or ctx.nsid))
        request = "XrpcRequest.query(NSID)"
        if has_params:
            request += ".with_params(params)"
        lines.append(f"{i1}req = {request}")
        lines.append(f"{i1}return client.subscribe(req, Message)")
        ctx.functions.append("\n".join(lines))

    # ------------------------------------------------------------------
    # Module assembly
    # ------------------------------------------------------------------

    def _render_imports(self, ctx: ModuleContext) -> List[str]:
        """``from x import y`` lines, grouped stdlib / pydantic / runtime / other."""
        from_imports: Dict[str, Set[str]] = {}
        for spec in ctx.imports:
            if spec.name is not None:
                from_imports.setdefault(spec.module, set()).add(spec.name)

        def group(module: str) -> int:
            if module == ctx.render.runtime_package or module.startswith(
                f"{ctx.render.runtime_package}."
            ):
                return 2
            return _IMPORT_GROUPS.get(module, 3)

        lines: List[str] = []
        previous = None
        for module in sorted(from_imports, key=lambda m: (group(m), m)):
            if previous is not None and group(module) != previous:
                lines.append("")
            previous = group(module)
            names = ", ".join(sorted(from_imports[module]))
            lines.append(f"from {module} import {names}")
        return lines

    @staticmethod
    def _render_module_imports(ctx: ModuleContext) -> List[str]:
        specs = sorted(spec for spec in ctx.imports if spec.name is None)
        return [f"{spec.render()}  # noqa: E402" for spec in specs]

    def _render_module(self, doc: LexiconDoc, ctx: ModuleContext) -> str:
        main = doc.main_def()
        description = doc.description or (main.description if main is not None else None)
        header = f"Generated code for {doc.id}."
        if description:
            header = f"{header}\n\n{description}"
        if doc.revision is not None:
            header = f"{header}\n\nRevision: {doc.revision}"
        header = f"{header}\n\nDO NOT EDIT: This file is auto-generated."

        lines = self._docstring(header, level=0)
        lines.append("")
        lines.append("from __future__ import annotations")
        imports = self._render_imports(ctx)
        if imports:
            lines.append("")
            lines.extend(imports)
        lines.append("")
        lines.append(f"NSID = {_literal(doc.id)}")

        for block in ctx.classes:
            lines.extend(["", "", block])

        module_imports = self._render_module_imports(ctx)
        if module_imports:
            # After the models, before the aliases: documents may import each other.
            lines.extend(["", ""])
            lines.extend(module_imports)

        aliases = _ordered_aliases(ctx.aliases)
        if aliases:
            lines.extend(["", ""])
            for index, alias in enumerate(aliases):
                if index:
                    lines.append("")
                if alias.comment:
                    lines.extend(
                        f"# {line}".rstrip() for line in alias.comment.strip().splitlines()
                    )
                lines.append(f"{alias.name} = {alias.value}")

        for block in ctx.functions:
            lines.extend(["", "", block])

        return "\n".join(lines) + "\n"


def _union_comment(schema) -> Optional[str]:
    if isinstance(schema, UnionProperty) and schema.refs:
        kind = "Closed union" if schema.closed else "Union"
        return f"{kind} of: " + ", ".join(schema.refs)
    return None


def _ordered_aliases(aliases: List[_Alias]) -> List[_Alias]:
    """
    Order aliases so each one follows the same-module aliases it uses.

    Aliases are evaluated at import time, unlike annotations.
    """
    alias_names = {alias.name for alias in aliases}
    emitted: Set[str] = set()
    ordered: List[_Alias] = []
    remaining = list(aliases)
    while remaining:
        ready = [
            alias
            for alias in remaining
            if (alias.depends_on & alias_names) - {alias.name} <= emitted
        ]
        if not ready:
            # Cyclic aliases cannot be ordered; keep declaration order.
            ordered.extend(remaining)
            break
        for alias in ready:
            ordered.append(alias)
            emitted.add(alias.name)
            remaining.remove(alias)
    return ordered


__all__ = ["ModuleContext", "PythonModuleGenerator"]
