"""Classify operation parameters.

Handles:
- $ref parameters looked up in the shared components table
- path / query / header / cookie binding
- snake_case names with reserved-word escaping (type -> type_)
- query serialization rules chosen by the resolved type
- defaults and presence conditions for optional parameters
- the ordered query table consumed by the URL template compiler
"""

from __future__ import annotations

import logging
import re
from typing import Any, Iterable, Mapping

from .config import GeneratorConfig
from .errors import (
    DuplicateParameterName,
    GenerationError,
    UnknownParameterReference,
    UnsupportedQuerySemantics,
)
from .models import ParameterDescriptor, ParameterLocation, QueryBinding, QuerySerialization
from .naming import to_identifier
from .typespace import TypeKind, TypeSpace

logger = logging.getLogger(__name__)

# Optional parameters of these kinds default to an "empty" value and are
# only sent when the value is not empty.
_EMPTY_DEFAULTS: dict[TypeKind, str] = {
    TypeKind.STRING: '""',
    TypeKind.INTEGER: "0",
    TypeKind.BOOLEAN: "False",
    TypeKind.ARRAY: "()",
}

_STRING_LIKE = frozenset({TypeKind.STRING, TypeKind.ENUM})


def _strip_html(text: str) -> str:
    """Strip HTML tags and collapse whitespace."""
    text = re.sub(r"<[^>]+>", "", text)
    text = re.sub(r"\s+", " ", text).strip()
    return text


def _parameter_schema(item: Mapping[str, Any]) -> Mapping[str, Any]:
    if "schema" in item:
        return item["schema"] or {}
    # Parameters may carry a single-entry content map instead of a schema.
    for media in (item.get("content") or {}).values():
        return media.get("schema") or {}
    return {}


def serialization_rule(ts: TypeSpace, tid: int) -> QuerySerialization:
    """Pick how a value of this type is written into a query string."""
    kind = ts.base_kind(tid)
    if kind in (TypeKind.DATE, TypeKind.DATE_TIME):
        return QuerySerialization.CALENDAR
    if kind is TypeKind.STRING:
        return QuerySerialization.VERBATIM
    if kind is TypeKind.ARRAY:
        return QuerySerialization.JOINED
    return QuerySerialization.DISPLAY


def serialize(ts: TypeSpace, tid: int, ident: str, rule: QuerySerialization, separator: str) -> str:
    """Python expression turning ``ident`` into its wire string."""
    if rule is QuerySerialization.CALENDAR:
        return f"{ident}.isoformat()"
    if rule is QuerySerialization.VERBATIM:
        return ident
    if rule is QuerySerialization.JOINED:
        item = ts.item(tid)
        if item is not None and ts.base_kind(item) in _STRING_LIKE:
            return f"{separator!r}.join({ident})"
        return f"{separator!r}.join(str(v) for v in {ident})"
    if ts.base_kind(tid) is TypeKind.BOOLEAN:
        return f"str({ident}).lower()"
    return f"str({ident})"


def _presence_condition(kind: TypeKind, ident: str) -> str:
    if kind is TypeKind.INTEGER:
        return f"{ident} > 0"
    return ident


def lookup(
    parameter_ref: Mapping[str, Any],
    parameter_table: Mapping[str, Any],
) -> tuple[Mapping[str, Any], str]:
    """Return the parameter definition and the component name it came from."""
    if "$ref" not in parameter_ref:
        return parameter_ref, ""
    ref = parameter_ref["$ref"]
    item = parameter_table.get(ref)
    if item is None:
        raise UnknownParameterReference(ref)
    return item, ref.rsplit("/", 1)[-1]


def classify(
    parameter_ref: Mapping[str, Any],
    parameter_table: Mapping[str, Any],
    ts: TypeSpace,
    config: GeneratorConfig,
) -> ParameterDescriptor:
    """Classify one inline or referenced parameter."""
    item, component_name = lookup(parameter_ref, parameter_table)

    name = item.get("name", "")
    try:
        location = ParameterLocation(item.get("in", "query"))
    except ValueError:
        raise GenerationError(f"parameter {name!r} has unknown location {item.get('in')!r}") from None
    identifier = to_identifier(name, config.reserved)
    required = location is ParameterLocation.PATH or bool(item.get("required"))

    schema = _parameter_schema(item)
    hint = component_name or name
    tid = ts.resolve(None, schema, naming_hint=hint)
    kind = ts.base_kind(tid)
    schema_description = (schema.get("description") or "").strip()
    if not schema_description and "$ref" in schema:
        schema_description = ts.render_docs(tid)

    in_query_table = False
    if location is ParameterLocation.QUERY:
        if item.get("style", "form") == "form":
            if item.get("allowEmptyValue"):
                raise UnsupportedQuerySemantics(f"allowEmptyValue is not supported (query parameter {name!r})")
            in_query_table = True
        else:
            logger.warning("query parameter %r uses style %r; it is not sent", name, item.get("style"))
    elif location is ParameterLocation.COOKIE:
        logger.warning("cookie parameter %r is not sent", name)

    default = condition = None
    if not required:
        if kind in _EMPTY_DEFAULTS:
            default = _EMPTY_DEFAULTS[kind]
            condition = _presence_condition(kind, identifier)
        else:
            tid = ts.resolve(None, schema, nullable_context=True, naming_hint=hint)
            default = "None"
            condition = f"{identifier} is not None"

    rule = serialization_rule(ts, tid)
    return ParameterDescriptor(
        name=name,
        identifier=identifier,
        location=location,
        type_id=tid,
        annotation=ts.render_type(tid, as_reference=True),
        required=required,
        default=default,
        condition=condition,
        description=item.get("description") or "",
        schema_description=schema_description,
        serialization=rule,
        expression=serialize(ts, tid, identifier, rule, config.array_separator),
        in_query_table=in_query_table,
    )


def classify_all(
    parameters: Iterable[Mapping[str, Any]],
    parameter_table: Mapping[str, Any],
    ts: TypeSpace,
    config: GeneratorConfig,
) -> list[ParameterDescriptor]:
    """Classify every parameter of an operation, in declaration order."""
    classified: list[ParameterDescriptor] = []
    seen: dict[str, str] = {}
    for parameter_ref in parameters:
        param = classify(parameter_ref, parameter_table, ts, config)
        if param.identifier in seen:
            raise DuplicateParameterName(param.identifier, seen[param.identifier], param.name)
        seen[param.identifier] = param.name
        classified.append(param)
    return classified


def build_query_table(parameters: Iterable[ParameterDescriptor]) -> dict[str, QueryBinding]:
    """Query bindings sorted by wire name, so regenerated code diffs cleanly."""
    bindings = {
        p.name: QueryBinding(expression=p.expression, condition=p.condition)
        for p in parameters
        if p.in_query_table
    }
    return dict(sorted(bindings.items()))


def parameter_doc(param: ParameterDescriptor) -> str:
    """One ``**Parameters:**`` bullet: the longer of parameter and schema docs."""
    docs = param.schema_description
    description = param.description
    text = description if description and len(description) > len(docs) else docs
    text = _strip_html(text).rstrip(".")
    suffix = f" -- {text}." if text else ""
    return f"* `{param.identifier}: {param.annotation}`{suffix}"
