"""Generator configuration and logging setup.

Defaults live at module level; :class:`GeneratorConfig` bundles them for a
single run. ``GeneratorConfig.from_env()`` lets CI override the policy knobs
without touching the command line:

  CLIENTGEN_ARRAY_SEPARATOR  separator for string-array query values (" ")
  CLIENTGEN_MODELS_MODULE    name of the generated models module ("models")
  CLIENTGEN_LOG_LEVEL        logging level for the CLI ("INFO")
"""

from __future__ import annotations

import keyword
import logging
import os
from dataclasses import dataclass, field, replace
from typing import Mapping

# Multi-value query parameters have no agreed separator in OpenAPI's "form"
# style without explode; a single space matches what the upstream APIs accept.
DEFAULT_ARRAY_SEPARATOR = " "

DEFAULT_MODELS_MODULE = "models"

DEFAULT_LOG_LEVEL = "INFO"

# Names generated code uses itself, on top of Python keywords.
_GENERATED_LOCALS = frozenset({
    "self", "body", "url", "query", "query_args", "headers",
    "models", "json", "urllib", "datetime",
})

RESERVED_WORDS: frozenset[str] = (
    frozenset(keyword.kwlist) | {"type", "ref"} | _GENERATED_LOCALS
)


@dataclass(frozen=True)
class ExceptionalCall:
    """Client call used instead of the verb primitive for one operation."""

    client_method: str
    keywords: Mapping[str, str] = field(default_factory=dict)
    reason: str = ""


# Operation id -> call override. The token operation authenticates with the
# app JWT; routing it through the normal verbs would recurse into itself
# while fetching its own credentials.
EXCEPTIONAL_CALLS: dict[str, ExceptionalCall] = {
    "apps_create_installation_access_token": ExceptionalCall(
        client_method="post_media",
        keywords={"media_type": "application/json", "authentication": "jwt"},
        reason="fetches the installation token with the app JWT",
    ),
}


@dataclass(frozen=True)
class GeneratorConfig:
    array_separator: str = DEFAULT_ARRAY_SEPARATOR
    models_module: str = DEFAULT_MODELS_MODULE
    reserved_words: frozenset[str] = RESERVED_WORDS
    exceptional_calls: Mapping[str, ExceptionalCall] = field(
        default_factory=lambda: dict(EXCEPTIONAL_CALLS)
    )

    @property
    def reserved(self) -> frozenset[str]:
        """Words no generated identifier may take, the models module included."""
        return self.reserved_words | {self.models_module}

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> GeneratorConfig:
        env = os.environ if environ is None else environ
        return cls(
            array_separator=env.get("CLIENTGEN_ARRAY_SEPARATOR", DEFAULT_ARRAY_SEPARATOR),
            models_module=env.get("CLIENTGEN_MODELS_MODULE", DEFAULT_MODELS_MODULE),
        )

    def with_overrides(self, **overrides: object) -> GeneratorConfig:
        """Return a copy with every non-None override applied."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **changes)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
