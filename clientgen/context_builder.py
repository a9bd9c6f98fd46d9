"""Build per-tag operation descriptors from a parsed OpenAPI document.

Walks every (path, method) pair, classifies bodies and parameters, picks
the response type, compiles the URL and chooses the client call. The result
is one :class:`~clientgen.models.TagGroup` per tag, ready for codegen.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

from .config import GeneratorConfig
from .errors import (
    DanglingSchemaReference,
    GenerationError,
    MalformedTemplate,
    MissingAuthenticationContext,
    TagCardinalityError,
    UnrepresentableResponse,
    UnsupportedQuerySemantics,
)
from .loader import get_parameters, iter_operations, resolve_ref
from .models import (
    BodyEncoding,
    Call,
    Docs,
    OperationDescriptor,
    ParameterDescriptor,
    ParameterLocation,
    RequestBody,
    TagGroup,
    TypeId,
)
from .naming import (
    fallback_operation_id,
    function_name,
    oid_to_object_name,
    struct_name,
    to_identifier,
    to_snake_case,
)
from .parameters import build_query_table, classify_all, parameter_doc
from .template import parse
from .typespace import TypeSpace

logger = logging.getLogger(__name__)

JSON_CONTENT_TYPE = "application/json"
SCIM_CONTENT_TYPE = "application/scim+json"
BINARY_CONTENT_TYPE = "application/octet-stream"

# Non-JSON responses whose schema is used as-is, without a named model.
_ANONYMOUS_RESPONSE_TYPES = (
    "text/plain",
    "text/html",
    "application/octocat-stream",
    BINARY_CONTENT_TYPE,
    "*/*",
)

# Verbs whose client primitive takes a body argument.
_BODY_METHODS = {"POST", "PUT", "PATCH", "DELETE"}

_BODY_EXPRESSIONS: dict[BodyEncoding, str] = {
    BodyEncoding.JSON: "json.dumps(body).encode()",
    BodyEncoding.RAW: "body",
    BodyEncoding.NONE: "None",
}


def _deref(spec: Mapping[str, Any], node: Mapping[str, Any]) -> Mapping[str, Any]:
    """Follow a component $ref (request bodies, responses)."""
    seen: set[str] = set()
    while "$ref" in node:
        ref = node["$ref"]
        if ref in seen:
            raise DanglingSchemaReference(ref)
        seen.add(ref)
        try:
            node = resolve_ref(spec, ref)
        except KeyError:
            raise DanglingSchemaReference(ref) from None
    return node


def operation_id(operation: Mapping[str, Any], method: str, path: str) -> str:
    raw = operation.get("operationId")
    if raw:
        return to_snake_case(raw)
    return fallback_operation_id(method, path)


def extract_tag(operation: Mapping[str, Any], oid: str) -> str:
    """The single tag that decides which module an operation lands in."""
    tags = operation.get("tags") or []
    if len(tags) != 1:
        raise TagCardinalityError(f"invalid number of tags for op {oid}: {len(tags)}")
    return to_snake_case(tags[0])


def _is_binary(content: Mapping[str, Any]) -> bool:
    for content_type, media in content.items():
        if content_type == BINARY_CONTENT_TYPE:
            return True
        schema = (media or {}).get("schema") or {}
        if schema.get("type") == "string" and schema.get("format") == "binary":
            return True
    return False


def classify_body(
    spec: Mapping[str, Any],
    operation: Mapping[str, Any],
    oid: str,
    ts: TypeSpace,
) -> RequestBody | None:
    """Decide how the request body is typed and encoded."""
    if "requestBody" not in operation:
        return None
    body = _deref(spec, operation["requestBody"])
    content = body.get("content") or {}
    if not content:
        return None

    if _is_binary(content):
        return RequestBody(annotation="bytes | IO[bytes]", encoding=BodyEncoding.RAW)

    content_type, media = next(iter(content.items()))
    schema = (media or {}).get("schema")
    if not schema:
        return None

    if content_type == JSON_CONTENT_TYPE:
        tid = ts.resolve(f"{oid_to_object_name(oid)} request", schema)
        return RequestBody(annotation=ts.render_type(tid), encoding=BodyEncoding.JSON, type_id=tid)

    tid = ts.resolve(None, schema)
    annotation = ts.render_type(tid)
    if annotation == "str":
        annotation = "str | bytes"
    return RequestBody(annotation=annotation, encoding=BodyEncoding.RAW, type_id=tid)


def _check_encoding(media: Mapping[str, Any], content_type: str) -> None:
    if media.get("encoding"):
        raise UnsupportedQuerySemantics(f"media type encoding not empty for {content_type}")


def resolve_response_type(
    spec: Mapping[str, Any],
    operation: Mapping[str, Any],
    oid: str,
    ts: TypeSpace,
) -> TypeId | None:
    """Pick the response type of the first declared response.

    Returns None when that response has no content.
    """
    responses = operation.get("responses") or {}
    if not responses:
        raise UnrepresentableResponse("operation declares no responses")

    first = _deref(spec, next(iter(responses.values())))
    content = first.get("content") or {}
    if not content:
        return None

    response_name = f"{oid_to_object_name(oid)} response"

    media = content.get(JSON_CONTENT_TYPE)
    if media is not None:
        _check_encoding(media, JSON_CONTENT_TYPE)
        if media.get("schema"):
            return ts.resolve(response_name, media["schema"])

    content_type, media = next(iter(content.items()))
    media = media or {}
    if content_type in _ANONYMOUS_RESPONSE_TYPES:
        if media.get("schema"):
            return ts.resolve(None, media["schema"])
    elif content_type == SCIM_CONTENT_TYPE:
        _check_encoding(media, SCIM_CONTENT_TYPE)
        if media.get("schema"):
            return ts.resolve(response_name, media["schema"])

    raise UnrepresentableResponse(f"parsing response got to end with no type (content type {content_type!r})")


def assemble_call(
    oid: str,
    method: str,
    body: RequestBody | None,
    has_headers: bool,
    config: GeneratorConfig,
) -> Call:
    """Map the HTTP verb and body strategy onto a client primitive."""
    if method == "GET":
        return Call(client_method="get", pass_headers=has_headers)

    encoding = body.encoding if body is not None else BodyEncoding.NONE
    body_expression = _BODY_EXPRESSIONS[encoding]
    exceptional = config.exceptional_calls.get(oid)

    if method in _BODY_METHODS and exceptional is None:
        return Call(client_method=method.lower(), body_expression=body_expression, pass_headers=has_headers)

    if exceptional is None:
        raise MissingAuthenticationContext(f"function {oid} should be authenticated")

    logger.debug("%s uses %s: %s", oid, exceptional.client_method, exceptional.reason)
    return Call(
        client_method=exceptional.client_method,
        body_expression=body_expression,
        keywords=dict(exceptional.keywords),
        pass_headers=has_headers,
    )


def _make_docs(
    operation: Mapping[str, Any],
    method: str,
    path: str,
    params: list[ParameterDescriptor],
) -> Docs:
    """Build the docstring fields for a generated method."""
    summary = (operation.get("summary") or "").strip().rstrip(".")
    external = operation.get("externalDocs") or {}
    return Docs(
        summary=summary,
        method=method,
        path=path,
        description=(operation.get("description") or "").strip(),
        external_docs=external.get("url", ""),
        parameters=tuple(parameter_doc(p) for p in params),
    )


def build_operation(
    spec: Mapping[str, Any],
    path: str,
    method: str,
    operation: Mapping[str, Any],
    ts: TypeSpace,
    parameter_table: Mapping[str, Any],
    config: GeneratorConfig,
) -> OperationDescriptor:
    """Turn one (path, method) pair into an operation descriptor."""
    oid = operation_id(operation, method, path)
    tag = extract_tag(operation, oid)

    body = classify_body(spec, operation, oid, ts)
    params = classify_all(operation.get("parameters") or [], parameter_table, ts, config)
    response_type = resolve_response_type(spec, operation, oid, ts)

    template = parse(path)
    path_names = {p.name: p.identifier for p in params if p.location is ParameterLocation.PATH}
    for placeholder in template.parameter_names:
        if placeholder not in path_names:
            raise MalformedTemplate(path, f"placeholder {placeholder!r} has no path parameter")
    url_code = template.compile(build_query_table(params), names=path_names.__getitem__)

    has_headers = any(p.location is ParameterLocation.HEADER for p in params)
    call = assemble_call(oid, method, body, has_headers, config)

    return OperationDescriptor(
        operation_id=oid,
        method=method,
        path=path,
        tag=tag,
        function_name=function_name(oid, tag, config.reserved),
        parameters=params,
        body=body,
        response_type=response_type,
        response_annotation="None" if response_type is None else ts.render_type(response_type),
        docs=_make_docs(operation, method, path, params),
        url_code=url_code,
        call=call,
    )


def _deduplicate_function_names(group: TagGroup) -> None:
    """Ensure all method names in a tag are unique by appending the verb if needed."""
    seen: dict[str, int] = {}
    for op in group.operations:
        name = op.function_name
        if name in seen:
            seen[name] += 1
            op.function_name = f"{name}_{op.method.lower()}"
            logger.warning("%s: renamed duplicate method %s to %s", group.name, name, op.function_name)
        else:
            seen[name] = 1

    final_seen: dict[str, int] = {}
    for op in group.operations:
        name = op.function_name
        if name in final_seen:
            final_seen[name] += 1
            op.function_name = f"{name}_{final_seen[name]}"
        else:
            final_seen[name] = 1


def build_context(
    spec: Mapping[str, Any],
    ts: TypeSpace | None = None,
    config: GeneratorConfig | None = None,
) -> dict[str, TagGroup]:
    """Build every tag group for the document, keyed by module name."""
    config = config or GeneratorConfig()
    if ts is None:
        ts = TypeSpace(spec, config.models_module)
    parameter_table = get_parameters(spec)
    groups: dict[str, TagGroup] = {}

    for path, method, operation in iter_operations(spec):
        try:
            descriptor = build_operation(spec, path, method, operation, ts, parameter_table, config)
        except GenerationError as exc:
            exc.locate(operation_id(operation, method, path), method, path)
            raise

        module = to_identifier(descriptor.tag, config.reserved)
        group = groups.get(module)
        if group is None:
            group = groups[module] = TagGroup(name=module, class_name=struct_name(descriptor.tag))
        group.add(descriptor)
        logger.debug("%s %s -> %s.%s", method, path, module, descriptor.function_name)

    for group in groups.values():
        _deduplicate_function_names(group)

    logger.info("built %d operations in %d tag groups", sum(len(g.operations) for g in groups.values()), len(groups))
    return dict(sorted(groups.items()))
