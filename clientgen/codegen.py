"""Render templates and write generated output.

Takes the tag groups from context_builder and the models accumulated in the
TypeSpace, and produces one module per tag plus ``models.py`` and
``__init__.py``.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Mapping

import jinja2

from .config import GeneratorConfig
from .context_builder import build_context
from .models import Docs, OperationDescriptor, TagGroup
from .typespace import TypeSpace

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).parent / "templates"

INIT_MODULE = "__init__"


def _escape_docstring(line: str) -> str:
    return line.replace("\\", "\\\\").replace('"""', '\\"\\"\\"').rstrip()


def format_docstring(text: str | list[str], indent: int = 0) -> str:
    """Triple-quoted docstring; continuation lines are indented by the caller."""
    lines = text.splitlines() if isinstance(text, str) else list(text)
    lines = [_escape_docstring(line) for line in lines] or [""]
    if len(lines) == 1:
        return f'"""{lines[0]}"""'
    pad = " " * indent
    body = "\n".join(f"{pad}{line}" if line else "" for line in lines[1:])
    return f'"""{lines[0]}\n{body}\n{pad}"""'


def docstring_lines(docs: Docs) -> list[str]:
    """The docstring of a generated method, line by line."""
    lines: list[str] = []
    if docs.summary:
        lines += [f"{docs.summary}.", ""]
    lines.append(f"This function performs a `{docs.method}` to the `{docs.path}` endpoint.")
    if docs.description:
        lines += ["", *docs.description.splitlines()]
    if docs.external_docs:
        lines += ["", f"FROM: <{docs.external_docs}>"]
    if docs.parameters:
        lines += ["", "**Parameters:**", ""]
        for bullet in docs.parameters:
            lines += bullet.splitlines()
    return lines


def method_docstring(op: OperationDescriptor) -> str:
    return format_docstring(docstring_lines(op.docs), 8)


def signature(op: OperationDescriptor) -> list[str]:
    """Parameter lines after ``self``: everything is keyword-only."""
    lines = []
    for param in op.parameters:
        line = f"{param.identifier}: {param.annotation}"
        if param.default is not None:
            line += f" = {param.default}"
        lines.append(line)
    if op.body is not None:
        lines.append(f"body: {op.body.annotation}")
    return ["*", *lines] if lines else []


def method_body(op: OperationDescriptor) -> str:
    """Statements after the docstring: URL, headers, client call."""
    lines = op.url_code.splitlines()

    headers = op.header_parameters
    if headers:
        lines.append("headers: dict[str, str] = {}")
        for param in headers:
            assign = f"headers[{param.name!r}] = {param.expression}"
            if param.condition is None:
                lines.append(assign)
            else:
                lines += [f"if {param.condition}:", f"    {assign}"]

    call = op.call
    args = ["url"]
    if call.body_expression is not None:
        args.append(call.body_expression)
    args += [f"{key}={value!r}" for key, value in call.keywords.items()]
    if call.pass_headers:
        args.append("headers=headers")
    lines.append(f"return await self.client.{call.client_method}({', '.join(args)})")
    return "\n".join(lines)


def _environment() -> jinja2.Environment:
    env = jinja2.Environment(
        loader=jinja2.FileSystemLoader(str(TEMPLATE_DIR)),
        keep_trailing_newline=True,
        trim_blocks=True,
        lstrip_blocks=True,
        autoescape=False,
    )
    env.filters["docstring"] = format_docstring
    env.filters["pyrepr"] = repr
    env.globals.update(
        signature=signature,
        method_body=method_body,
        method_docstring=method_docstring,
    )
    return env


def _title(spec: Mapping[str, Any]) -> str:
    info = spec.get("info") or {}
    title = " ".join(str(info.get("title", "")).split())
    version = info.get("version")
    return f"{title} {version}".strip() if version else title


def render_tag_group(
    env: jinja2.Environment,
    group: TagGroup,
    title: str,
    config: GeneratorConfig,
) -> str:
    template = env.get_template("tag_module.py.j2")
    return template.render(group=group, title=title, models_module=config.models_module)


def render_models(env: jinja2.Environment, ts: TypeSpace, title: str) -> str:
    template = env.get_template("models.py.j2")
    return template.render(models=list(ts.definitions()), title=title)


def render_package_init(
    env: jinja2.Environment,
    groups: Mapping[str, TagGroup],
    title: str,
    config: GeneratorConfig,
) -> str:
    template = env.get_template("package_init.py.j2")
    return template.render(groups=groups, title=title, models_module=config.models_module)


def generate_files(
    spec: Mapping[str, Any],
    config: GeneratorConfig | None = None,
) -> dict[str, str]:
    """Generate every module of the client package, keyed by module name.

    Tag modules come first in tag order, followed by the models module and
    ``__init__``. Nothing touches the filesystem.
    """
    config = config or GeneratorConfig()
    ts = TypeSpace(spec, config.models_module)
    groups = build_context(spec, ts, config)

    env = _environment()
    title = _title(spec)
    files = {name: render_tag_group(env, group, title, config) for name, group in groups.items()}
    # Models render last: every tag group has finished registering types.
    files[config.models_module] = render_models(env, ts, title)
    files[INIT_MODULE] = render_package_init(env, groups, title, config)
    return files


def write_package(files: Mapping[str, str], output_dir: Path) -> list[Path]:
    """Write each rendered module to ``output_dir/<name>.py``."""
    output_dir.mkdir(parents=True, exist_ok=True)
    written = []
    for name, source in files.items():
        output_path = output_dir / f"{name}.py"
        output_path.write_text(source, encoding="utf-8")
        written.append(output_path)
    return written


def generate(
    spec: Mapping[str, Any],
    output_dir: Path,
    config: GeneratorConfig | None = None,
) -> list[Path]:
    """Generate the client package and write it to ``output_dir``."""
    files = generate_files(spec, config)
    written = write_package(files, output_dir)
    logger.info("generated %s (%d modules)", output_dir, len(written))
    return written
