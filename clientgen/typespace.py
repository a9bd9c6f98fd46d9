"""Schema registry: map schema fragments to named, de-duplicated types.

A :class:`TypeSpace` lives for one generation run. Every schema the
generator meets goes through :meth:`TypeSpace.resolve`, which hands back an
integer type id:

- anonymous schemas are memoized by their structural shape (docs ignored,
  except the title of an object or enum), so two identical inline objects
  share one generated model;
- a preferred name always gets a fresh id, even for a shape seen before;
- ``$ref`` pointers are memoized by the pointer string and registered
  before their body is walked, which is what lets recursive schemas
  terminate.

Ids render to Python annotations with :meth:`TypeSpace.render_type` and to
model definitions (TypedDicts, StrEnums, aliases) with
:meth:`TypeSpace.definitions`.
"""

from __future__ import annotations

import enum
import json
import keyword
import logging
from dataclasses import dataclass, replace
from typing import Any, Iterator, Mapping

from .errors import DanglingSchemaReference
from .loader import resolve_ref
from .models import TypeId
from .naming import struct_name, to_snake_case

logger = logging.getLogger(__name__)

# Keys that document a schema without changing its shape.
_DOC_KEYS = frozenset({"description", "title", "example", "examples", "externalDocs"})

# Names the generated models module already binds.
_TAKEN_NAMES = frozenset({
    "Any", "IO", "Mapping", "NotRequired", "Sequence", "TypeAlias", "TypedDict",
    "None", "True", "False",
})


class TypeKind(str, enum.Enum):
    ANY = "any"
    STRING = "string"
    INTEGER = "integer"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATE = "date"
    DATE_TIME = "date-time"
    BYTES = "bytes"
    ARRAY = "array"
    MAP = "map"
    OBJECT = "object"
    ENUM = "enum"
    UNION = "union"
    OPTIONAL = "optional"
    ALIAS = "alias"


_PRIMITIVES: dict[TypeKind, str] = {
    TypeKind.ANY: "Any",
    TypeKind.STRING: "str",
    TypeKind.INTEGER: "int",
    TypeKind.NUMBER: "float",
    TypeKind.BOOLEAN: "bool",
    TypeKind.DATE: "datetime.date",
    TypeKind.DATE_TIME: "datetime.datetime",
    TypeKind.BYTES: "bytes",
}

_STRING_FORMATS: dict[str, TypeKind] = {
    "date": TypeKind.DATE,
    "date-time": TypeKind.DATE_TIME,
    "binary": TypeKind.BYTES,
}

# Kinds that cannot be written inline and always need a model name.
_NAMED_KINDS = frozenset({TypeKind.OBJECT, TypeKind.ENUM})

_PYTHON_KEYWORDS = frozenset(keyword.kwlist)


@dataclass(frozen=True)
class Field:
    key: str
    type_id: TypeId
    required: bool
    description: str = ""


@dataclass(frozen=True)
class TypeEntry:
    kind: TypeKind
    name: str | None = None
    description: str = ""
    item: TypeId | None = None
    fields: tuple[Field, ...] = ()
    values: tuple[Any, ...] = ()
    members: tuple[TypeId, ...] = ()


@dataclass(frozen=True)
class ModelField:
    key: str
    annotation: str
    description: str = ""


@dataclass(frozen=True)
class ModelDefinition:
    """A named type, ready for the models template."""

    name: str
    kind: str  # "typeddict" | "enum" | "alias"
    docs: str = ""
    fields: tuple[ModelField, ...] = ()
    class_syntax: bool = True
    members: tuple[tuple[str, str], ...] = ()
    target: str = ""


def _names_a_model(node: Mapping[str, Any]) -> bool:
    return "properties" in node or "enum" in node or node.get("type") == "object"


def _shape(node: Any, in_properties: bool = False) -> Any:
    """Strip documentation keys, leaving the structure that identifies a type.

    ``title`` names the model generated for an object or enum, so it stays
    part of the shape there.
    """
    if isinstance(node, dict):
        out = {}
        for key, value in node.items():
            if not in_properties and key in _DOC_KEYS and not (key == "title" and _names_a_model(node)):
                continue
            out[key] = _shape(value, in_properties=(key == "properties" and not in_properties))
        return out
    if isinstance(node, list):
        return [_shape(item) for item in node]
    return node


def structural_key(schema: Mapping[str, Any]) -> str:
    return json.dumps(_shape(schema), sort_keys=True, default=str)


def _is_nullable(schema: Mapping[str, Any]) -> bool:
    if schema.get("nullable") is True:
        return True
    schema_type = schema.get("type")
    if isinstance(schema_type, list) and "null" in schema_type:
        return True
    return "enum" in schema and None in schema["enum"]


def _strip_nullable(schema: Mapping[str, Any]) -> dict[str, Any]:
    stripped = {k: v for k, v in schema.items() if k != "nullable"}
    schema_type = stripped.get("type")
    if isinstance(schema_type, list):
        rest = [t for t in schema_type if t != "null"]
        if len(rest) == 1:
            stripped["type"] = rest[0]
        elif rest:
            stripped["type"] = rest
        else:
            stripped.pop("type")
    if "enum" in stripped:
        stripped["enum"] = [v for v in stripped["enum"] if v is not None]
    return stripped


def _is_doc_only(schema: Mapping[str, Any]) -> bool:
    return all(key in _DOC_KEYS or key in ("nullable", "readOnly", "writeOnly", "default") for key in schema)


def _member_name(value: Any, taken: set[str]) -> str:
    name = to_snake_case(str(value)).upper() or "EMPTY"
    if name[0].isdigit():
        name = f"VALUE_{name}"
    candidate = name
    counter = 2
    while candidate in taken:
        candidate = f"{name}_{counter}"
        counter += 1
    taken.add(candidate)
    return candidate


class TypeSpace:
    """Accumulating type cache for one generation run."""

    def __init__(self, spec: Mapping[str, Any], models_module: str = "models"):
        self._spec = spec
        self._qualifier = f"{models_module}." if models_module else ""
        self._entries: list[TypeEntry] = []
        self._anonymous: dict[str, TypeId] = {}
        self._refs: dict[str, TypeId] = {}
        self._names: set[str] = set(_TAKEN_NAMES)

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def resolve(
        self,
        preferred_name: str | None,
        schema: Mapping[str, Any] | None,
        nullable_context: bool = False,
        naming_hint: str = "",
    ) -> TypeId:
        """Return the type id for a schema fragment.

        ``nullable_context`` wraps the result in an optional type;
        ``naming_hint`` names anonymous objects and enums that need a model.
        """
        schema = schema or {}
        if nullable_context:
            return self._optional(self.resolve(preferred_name, schema, False, naming_hint))
        if preferred_name:
            return self._resolve_named(preferred_name, schema)
        if "$ref" in schema and not _is_nullable(schema):
            return self._resolve_ref(schema["$ref"])

        key = structural_key(schema)
        cached = self._anonymous.get(key)
        if cached is not None:
            return cached

        entry = self._describe(schema, naming_hint)
        if entry.kind in _NAMED_KINDS:
            default = "Enum" if entry.kind is TypeKind.ENUM else "Object"
            entry = replace(entry, name=self._claim(schema.get("title") or naming_hint or default))
        tid = self._append(entry)
        self._anonymous[key] = tid
        return tid

    def _resolve_named(self, preferred_name: str, schema: Mapping[str, Any]) -> TypeId:
        name = self._claim(preferred_name)
        tid = self._append(TypeEntry(TypeKind.ANY, name=name))
        self._entries[tid] = replace(self._describe(schema, name), name=name)
        return tid

    def _resolve_ref(self, ref: str) -> TypeId:
        cached = self._refs.get(ref)
        if cached is not None:
            return cached
        target = self._lookup(ref)
        name = self._claim(ref.rsplit("/", 1)[-1])
        tid = self._append(TypeEntry(TypeKind.ANY, name=name))
        self._refs[ref] = tid
        self._entries[tid] = replace(self._describe(target, name), name=name)
        logger.debug("registered %s as %s", ref, name)
        return tid

    def _lookup(self, ref: str) -> Mapping[str, Any]:
        try:
            target = resolve_ref(self._spec, ref)
        except KeyError:
            raise DanglingSchemaReference(ref) from None
        if not isinstance(target, Mapping):
            raise DanglingSchemaReference(ref)
        return target

    def _optional(self, inner: TypeId) -> TypeId:
        if self._entries[inner].kind is TypeKind.OPTIONAL:
            return inner
        key = f"optional:{inner}"
        cached = self._anonymous.get(key)
        if cached is None:
            cached = self._append(TypeEntry(TypeKind.OPTIONAL, item=inner))
            self._anonymous[key] = cached
        return cached

    def _append(self, entry: TypeEntry) -> TypeId:
        self._entries.append(entry)
        return len(self._entries) - 1

    def _claim(self, name: str) -> str:
        """Reserve a unique model name, suffixing 2, 3, ... on collision."""
        base = struct_name(name)
        candidate = base
        counter = 2
        while candidate in self._names:
            candidate = f"{base}{counter}"
            counter += 1
        self._names.add(candidate)
        return candidate

    def _describe(self, schema: Mapping[str, Any], hint: str) -> TypeEntry:
        description = schema.get("description") or ""

        if _is_nullable(schema):
            inner = self.resolve(None, _strip_nullable(schema), naming_hint=hint)
            return TypeEntry(TypeKind.OPTIONAL, description=description, item=inner)

        if "$ref" in schema:
            return TypeEntry(TypeKind.ALIAS, description=description, item=self._resolve_ref(schema["$ref"]))

        if "allOf" in schema:
            return self._describe_all_of(schema, hint, description)

        for key in ("oneOf", "anyOf"):
            if key in schema:
                members: list[TypeId] = []
                for sub in schema[key]:
                    tid = self.resolve(None, sub, naming_hint=hint)
                    if tid not in members:
                        members.append(tid)
                if len(members) == 1:
                    return TypeEntry(TypeKind.ALIAS, description=description, item=members[0])
                return TypeEntry(TypeKind.UNION, description=description, members=tuple(members))

        values = schema.get("enum")
        if values and all(isinstance(v, str) for v in values):
            return TypeEntry(TypeKind.ENUM, description=description, values=tuple(values))

        schema_type = schema.get("type")
        if isinstance(schema_type, list):
            members = [self.resolve(None, {**schema, "type": t}, naming_hint=hint) for t in schema_type]
            return TypeEntry(TypeKind.UNION, description=description, members=tuple(members))

        if schema_type == "string":
            kind = _STRING_FORMATS.get(schema.get("format", ""), TypeKind.STRING)
            return TypeEntry(kind, description=description)
        if schema_type == "integer":
            return TypeEntry(TypeKind.INTEGER, description=description)
        if schema_type == "number":
            return TypeEntry(TypeKind.NUMBER, description=description)
        if schema_type == "boolean":
            return TypeEntry(TypeKind.BOOLEAN, description=description)
        if schema_type == "array":
            item = self.resolve(None, schema.get("items") or {}, naming_hint=f"{hint} item")
            return TypeEntry(TypeKind.ARRAY, description=description, item=item)
        if schema_type == "object" or "properties" in schema or "additionalProperties" in schema:
            return self._describe_object(schema, hint, description)

        return TypeEntry(TypeKind.ANY, description=description)

    def _describe_object(self, schema: Mapping[str, Any], hint: str, description: str) -> TypeEntry:
        properties = schema.get("properties") or {}
        if not properties:
            extra = schema.get("additionalProperties")
            value_schema = extra if isinstance(extra, Mapping) else {}
            item = self.resolve(None, value_schema, naming_hint=f"{hint} value")
            return TypeEntry(TypeKind.MAP, description=description, item=item)

        required = set(schema.get("required") or [])
        fields = tuple(
            Field(
                key=prop_name,
                type_id=self.resolve(None, prop_schema, naming_hint=f"{hint} {prop_name}"),
                required=prop_name in required,
                description=(prop_schema or {}).get("description") or "",
            )
            for prop_name, prop_schema in properties.items()
        )
        return TypeEntry(TypeKind.OBJECT, description=description, fields=fields)

    def _describe_all_of(self, schema: Mapping[str, Any], hint: str, description: str) -> TypeEntry:
        subs = [sub for sub in schema["allOf"] if not _is_doc_only(sub)]
        if len(subs) == 1:
            item = self.resolve(None, subs[0], naming_hint=hint)
            return TypeEntry(TypeKind.ALIAS, description=description, item=item)

        merged_props: dict[str, Any] = {}
        merged_required: list[str] = []
        for sub in subs:
            flat = self._flatten(sub)
            merged_props.update(flat.get("properties") or {})
            merged_required.extend(flat.get("required") or [])
        merged_props.update(schema.get("properties") or {})
        merged_required.extend(schema.get("required") or [])
        merged = {"type": "object", "properties": merged_props, "required": merged_required}
        return self._describe_object(merged, hint, description)

    def _flatten(self, schema: Mapping[str, Any]) -> Mapping[str, Any]:
        """Follow refs and nested allOf down to one properties/required mapping."""
        seen: set[str] = set()
        while "$ref" in schema and schema["$ref"] not in seen:
            seen.add(schema["$ref"])
            schema = self._lookup(schema["$ref"])
        if "allOf" not in schema:
            return schema
        props: dict[str, Any] = {}
        required: list[str] = []
        for sub in schema["allOf"]:
            flat = self._flatten(sub)
            props.update(flat.get("properties") or {})
            required.extend(flat.get("required") or [])
        props.update(schema.get("properties") or {})
        required.extend(schema.get("required") or [])
        return {"properties": props, "required": required}

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def entry(self, tid: TypeId) -> TypeEntry:
        return self._entries[tid]

    def kind(self, tid: TypeId) -> TypeKind:
        return self._entries[tid].kind

    def base_kind(self, tid: TypeId) -> TypeKind:
        """Kind after looking through aliases and optionals."""
        return self._entries[self._base(tid)].kind

    def item(self, tid: TypeId) -> TypeId | None:
        """Element type of an array (through aliases and optionals)."""
        return self._entries[self._base(tid)].item

    def is_optional(self, tid: TypeId) -> bool:
        return self._entries[tid].kind is TypeKind.OPTIONAL

    def name(self, tid: TypeId) -> str | None:
        return self._entries[tid].name

    def _base(self, tid: TypeId) -> TypeId:
        seen: set[TypeId] = set()
        while self._entries[tid].kind in (TypeKind.ALIAS, TypeKind.OPTIONAL) and tid not in seen:
            seen.add(tid)
            tid = self._entries[tid].item
        return tid

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def render_type(self, tid: TypeId, as_reference: bool = False) -> str:
        """Annotation for use outside the models module.

        With ``as_reference`` arrays and maps render as the read-only
        ``Sequence``/``Mapping`` views, which is what parameters accept.
        """
        return self._render(tid, as_reference, self._qualifier)

    def render_docs(self, tid: TypeId) -> str:
        seen: set[TypeId] = set()
        while tid is not None and tid not in seen:
            seen.add(tid)
            entry = self._entries[tid]
            if entry.description:
                return entry.description.strip()
            if entry.kind not in (TypeKind.ALIAS, TypeKind.OPTIONAL):
                break
            tid = entry.item
        return ""

    def _render(self, tid: TypeId, as_reference: bool, qualifier: str) -> str:
        entry = self._entries[tid]
        if entry.name is not None:
            return f"{qualifier}{entry.name}"
        return self._render_body(entry, as_reference, qualifier)

    def _render_body(self, entry: TypeEntry, as_reference: bool, qualifier: str) -> str:
        kind = entry.kind
        if kind in _PRIMITIVES:
            return _PRIMITIVES[kind]
        if kind is TypeKind.ARRAY:
            inner = self._render(entry.item, False, qualifier)
            return f"Sequence[{inner}]" if as_reference else f"list[{inner}]"
        if kind is TypeKind.MAP:
            inner = self._render(entry.item, False, qualifier)
            return f"Mapping[str, {inner}]" if as_reference else f"dict[str, {inner}]"
        if kind is TypeKind.OPTIONAL:
            return f"{self._render(entry.item, as_reference, qualifier)} | None"
        if kind is TypeKind.ALIAS:
            return self._render(entry.item, as_reference, qualifier)
        if kind is TypeKind.UNION:
            return " | ".join(self._render(m, as_reference, qualifier) for m in entry.members)
        # Objects and enums are always named; an unnamed one means a bug upstream.
        raise ValueError(f"cannot render unnamed {kind.value} type")

    def definitions(self) -> Iterator[ModelDefinition]:
        """Every named type, in the order it was first resolved."""
        for entry in self._entries:
            if entry.name is None:
                continue
            docs = entry.description.strip()
            if entry.kind is TypeKind.OBJECT:
                yield self._typeddict(entry, docs)
            elif entry.kind is TypeKind.ENUM:
                taken: set[str] = set()
                members = tuple((_member_name(v, taken), repr(v)) for v in entry.values)
                yield ModelDefinition(name=entry.name, kind="enum", docs=docs, members=members)
            else:
                target = self._model_annotation(entry)
                yield ModelDefinition(name=entry.name, kind="alias", docs=docs, target=target)

    def _typeddict(self, entry: TypeEntry, docs: str) -> ModelDefinition:
        fields = []
        for f in entry.fields:
            annotation = self._model_annotation(self._entries[f.type_id], named=True)
            if not f.required:
                annotation = f"NotRequired[{annotation}]"
            fields.append(ModelField(key=f.key, annotation=annotation, description=f.description.strip()))
        class_syntax = all(f.key.isidentifier() and f.key not in _PYTHON_KEYWORDS for f in entry.fields)
        return ModelDefinition(
            name=entry.name,
            kind="typeddict",
            docs=docs,
            fields=tuple(fields),
            class_syntax=class_syntax,
        )

    def _model_annotation(self, entry: TypeEntry, named: bool = False) -> str:
        """Annotation inside the models module, quoted when it names a model.

        Models may refer to each other in any order, so references to them
        stay forward references.
        """
        if named and entry.name is not None:
            return repr(entry.name)
        rendered = self._render_body(entry, False, "")
        return repr(rendered) if self._mentions_model(entry, named) else rendered

    def _mentions_model(self, entry: TypeEntry, named: bool) -> bool:
        if named and entry.name is not None:
            return True
        children = [entry.item] if entry.item is not None else list(entry.members)
        return any(self._mentions_model(self._entries[c], True) for c in children)
