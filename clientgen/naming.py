"""Turn schema names into Python identifiers.

  - to_snake_case:        operationId, tag and parameter names -> snake_case
  - struct_name:          "items get response" -> ItemsGetResponse
  - escape_reserved:      type -> type_, ref -> ref_
  - function_name:        "items_get_item" under tag "items" -> get_item
  - fallback_operation_id: used when an operation has no operationId

Examples:
  GET  /items            -> list_items
  GET  /items/{itemId}   -> get_item
  POST /items            -> create_item
  DELETE /items/{itemId} -> delete_item
  GET  /users/{id}/repos -> get_users_repos
"""

from __future__ import annotations

import re
from typing import Collection

# Standard HTTP method to verb mapping
_METHOD_VERBS: dict[str, str] = {
    "get": "list",
    "post": "create",
    "put": "update",
    "delete": "delete",
    "patch": "update",
}


def _pluralize(word: str) -> str:
    """Return the plural form of a resource name."""
    if word.endswith("s"):
        return word
    if word.endswith("y") and not word.endswith(("ay", "ey", "oy", "uy")):
        return word[:-1] + "ies"
    return word + "s"


def _singularize(word: str) -> str:
    """Return the singular form of a resource name."""
    if word.endswith("ies"):
        return word[:-3] + "y"
    if word.endswith("ses"):
        return word[:-2]
    if word.endswith("s") and not word.endswith("ss"):
        return word[:-1]
    return word


def _camel_to_snake(name: str) -> str:
    """Convert camelCase or PascalCase to snake_case."""
    s1 = re.sub(r"([A-Z]+)([A-Z][a-z])", r"\1_\2", name)
    return re.sub(r"([a-z\d])([A-Z])", r"\1_\2", s1).lower()


def to_snake_case(name: str) -> str:
    """Convert any schema name to snake_case.

    Separators (spaces, dashes, dots, slashes) become underscores, runs of
    underscores collapse, and camel humps split.
    """
    name = _camel_to_snake(name)
    name = re.sub(r"[^a-z0-9]+", "_", name)
    return name.strip("_")


def _words(name: str) -> list[str]:
    return [w for w in to_snake_case(name).split("_") if w]


def clean_name(name: str) -> str:
    """Reduce a free-form name to space separated lowercase words."""
    return " ".join(_words(name))


def struct_name(name: str) -> str:
    """PascalCase class name for a schema or tag name."""
    result = "".join(w[:1].upper() + w[1:] for w in _words(name))
    if not result:
        return "Model"
    if result[0].isdigit():
        result = "T" + result
    return result


def oid_to_object_name(oid: str) -> str:
    """Readable object name for an operation id, used for request/response types."""
    return clean_name(oid)


def escape_reserved(name: str, reserved: Collection[str]) -> str:
    """Append an underscore to names that would shadow reserved words."""
    if name in reserved:
        return f"{name}_"
    return name


def to_identifier(name: str, reserved: Collection[str]) -> str:
    """snake_case, reserved-word escaped identifier for a raw schema name."""
    ident = to_snake_case(name)
    if not ident:
        ident = "param"
    if ident[0].isdigit():
        ident = f"_{ident}"
    return escape_reserved(ident, reserved)


def strip_tag_prefix(oid: str, tag: str) -> str:
    """Remove every leading repetition of the tag word, then leading underscores."""
    if tag:
        while oid == tag or oid.startswith(f"{tag}_"):
            oid = oid[len(tag):].lstrip("_")
    return oid.lstrip("_")


def function_name(oid: str, tag: str, reserved: Collection[str]) -> str:
    """Method name for an operation: the operation id minus its tag prefix.

    Builtin names such as ``list`` are left alone. Generated method bodies
    look names up in module and builtin scope, never in the class namespace.
    """
    name = strip_tag_prefix(oid, tag) or oid
    if name[0].isdigit():
        name = f"_{name}"
    return escape_reserved(name, reserved)


def _extract_path_parts(path: str) -> list[str]:
    """Extract meaningful path segments, dropping {params}."""
    return [p for p in path.split("/") if p and not p.startswith("{")]


def fallback_operation_id(method: str, path: str) -> str:
    """Build an operation id from HTTP method and path.

    Returns a name like 'list_items' or 'get_item'.
    """
    method_lower = method.lower()
    parts = _extract_path_parts(path)
    has_id = any(p.startswith("{") for p in path.split("/") if p)

    if not parts:
        return f"{_METHOD_VERBS.get(method_lower, method_lower)}_root"

    clean_parts = [to_snake_case(p) for p in parts]

    if method_lower == "get":
        verb = "get" if has_id else "list"
    else:
        verb = _METHOD_VERBS.get(method_lower, method_lower)

    # Single-segment paths: standard CRUD
    if len(clean_parts) == 1:
        resource = clean_parts[0]
        if verb == "list":
            resource = _pluralize(resource)
        elif has_id or verb == "create":
            resource = _singularize(resource)
        return f"{verb}_{resource}"

    # Multi-segment paths: join with underscores
    return f"{verb}_{'_'.join(clean_parts)}"
