"""Load an OpenAPI document and look things up in it.

JSON and YAML documents are accepted; the format is picked from the file
suffix. The generator treats the returned dict as immutable.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Iterator

import yaml

from .errors import DanglingSchemaReference, SpecLoadError

logger = logging.getLogger(__name__)

SPEC_PATH = Path(__file__).parent.parent / "spec" / "openapi.json"

# Verbs are visited in this order regardless of how the document lists them.
HTTP_METHODS: tuple[str, ...] = (
    "get", "put", "post", "delete", "options", "head", "patch", "trace",
)

PARAMETER_REF_PREFIX = "#/components/parameters/"


def load_spec(path: Path | None = None) -> dict[str, Any]:
    """Load the OpenAPI document from disk."""
    spec_file = Path(path or SPEC_PATH)
    try:
        text = spec_file.read_text(encoding="utf-8")
    except OSError as exc:
        raise SpecLoadError(f"cannot read {spec_file}: {exc}") from exc

    try:
        if spec_file.suffix.lower() in (".yaml", ".yml"):
            spec = yaml.safe_load(text)
        else:
            spec = json.loads(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise SpecLoadError(f"cannot parse {spec_file}: {exc}") from exc

    if not isinstance(spec, dict) or "paths" not in spec:
        raise SpecLoadError(f"{spec_file} is not an OpenAPI document (no 'paths')")
    logger.debug("loaded %s (%d paths)", spec_file, len(spec["paths"]))
    return spec


def get_paths(spec: dict[str, Any]) -> dict[str, Any]:
    """Extract paths from the document."""
    return spec.get("paths") or {}


def get_parameters(spec: dict[str, Any]) -> dict[str, Any]:
    """The shared parameter table, keyed by full ``$ref`` string."""
    table = (spec.get("components") or {}).get("parameters") or {}
    return {f"{PARAMETER_REF_PREFIX}{name}": param for name, param in table.items()}


def iter_operations(spec: dict[str, Any]) -> Iterator[tuple[str, str, dict[str, Any]]]:
    """Yield (path, METHOD, operation) in document path order, canonical verb order.

    Path-level parameters are folded into each operation unless the
    operation declares the same parameter itself.
    """
    for path, path_item in get_paths(spec).items():
        if "$ref" in path_item:
            try:
                path_item = resolve_ref(spec, path_item["$ref"])
            except KeyError:
                raise DanglingSchemaReference(path_item["$ref"]) from None
        shared = path_item.get("parameters") or []
        for method in HTTP_METHODS:
            operation = path_item.get(method)
            if operation is None:
                continue
            if shared:
                operation = {**operation, "parameters": _merge_parameters(shared, operation.get("parameters") or [])}
            yield path, method.upper(), operation


def _parameter_key(param: dict[str, Any]) -> tuple[str, str]:
    if "$ref" in param:
        return ("$ref", param["$ref"])
    return (param.get("in", ""), param.get("name", ""))


def _merge_parameters(shared: list[dict[str, Any]], own: list[dict[str, Any]]) -> list[dict[str, Any]]:
    own_keys = {_parameter_key(p) for p in own}
    return [p for p in shared if _parameter_key(p) not in own_keys] + list(own)


def resolve_ref(spec: dict[str, Any], ref: str) -> Any:
    """Resolve a $ref pointer in the document.

    Raises KeyError when the pointer does not lead anywhere; callers turn
    that into the error kind that fits what they were resolving.
    """
    if not ref.startswith("#/"):
        raise KeyError(ref)
    node: Any = spec
    for part in ref[2:].split("/"):
        part = part.replace("~1", "/").replace("~0", "~")
        if isinstance(node, dict) and part in node:
            node = node[part]
        elif isinstance(node, list) and part.isdigit() and int(part) < len(node):
            node = node[int(part)]
        else:
            raise KeyError(ref)
    return node
