"""Path templates: parse ``/items/{itemId}`` and compile it to Python.

``parse`` splits a path into literal and placeholder components;
``Template.compile`` renders the statements that build ``url`` inside a
generated method, escaping every path value and appending the query string
from a query table.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from .errors import MalformedTemplate
from .models import QueryTable
from .naming import to_identifier

INDENT = "    "


@dataclass(frozen=True)
class Component:
    text: str
    is_parameter: bool = False


def _plain_identifier(raw: str) -> str:
    return to_identifier(raw, ())


def _fstring_literal(text: str) -> str:
    return text.replace("\\", "\\\\").replace('"', '\\"')


@dataclass(frozen=True)
class Template:
    source: str
    components: tuple[Component, ...]

    @property
    def parameter_names(self) -> list[str]:
        return [c.text for c in self.components if c.is_parameter]

    def compile(
        self,
        query_table: QueryTable | None = None,
        names: Callable[[str], str] | None = None,
    ) -> str:
        """Render the statements that assign ``url``.

        ``names`` maps a placeholder to the identifier holding its value and
        defaults to snake_case with no reserved words.
        """
        names = names or _plain_identifier

        parts = []
        for component in self.components:
            if component.is_parameter:
                ident = names(component.text)
                parts.append(f"{{urllib.parse.quote(str({ident}), safe='')}}")
            else:
                parts.append(_fstring_literal(component.text))
        path = "".join(parts)
        prefix = "f" if any(c.is_parameter for c in self.components) else ""

        if not query_table:
            return f'url = {prefix}"{path}"'

        lines = ["query_args: list[tuple[str, str]] = []"]
        for name, binding in query_table.items():
            append = f"query_args.append(({name!r}, {binding.expression}))"
            if binding.condition is None:
                lines.append(append)
            else:
                lines.append(f"if {binding.condition}:")
                lines.append(f"{INDENT}{append}")
        lines.append("query = urllib.parse.urlencode(query_args, quote_via=urllib.parse.quote)")
        lines.append(f'url = f"{path}?{{query}}" if query else {prefix}"{path}"')
        return "\n".join(lines)


def parse(path: str) -> Template:
    """Split a path template into literal and ``{name}`` components."""
    components: list[Component] = []
    literal: list[str] = []
    name: list[str] | None = None

    for ch in path:
        if ch == "{":
            if name is not None:
                raise MalformedTemplate(path, "nested '{'")
            if literal:
                components.append(Component("".join(literal)))
                literal = []
            name = []
        elif ch == "}":
            if name is None:
                raise MalformedTemplate(path, "'}' without matching '{'")
            if not "".join(name).strip():
                raise MalformedTemplate(path, "empty placeholder")
            components.append(Component("".join(name), is_parameter=True))
            name = None
        elif name is not None:
            name.append(ch)
        else:
            literal.append(ch)

    if name is not None:
        raise MalformedTemplate(path, "unterminated '{'")
    if literal:
        components.append(Component("".join(literal)))
    return Template(source=path, components=tuple(components))
