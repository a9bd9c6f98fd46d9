"""Entry point: python -m clientgen

Reads spec/openapi.json (or the document given on the command line) and
writes the client package to generated/.
"""

from __future__ import annotations

import argparse
import logging
import os
from pathlib import Path

from .codegen import generate
from .config import DEFAULT_LOG_LEVEL, GeneratorConfig, configure_logging
from .errors import EXIT_SUCCESS, GenerationError
from .loader import SPEC_PATH, load_spec

logger = logging.getLogger("clientgen")

DEFAULT_OUTPUT_DIR = Path("generated")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="clientgen",
        description="Generate a typed async Python client from an OpenAPI document.",
    )
    parser.add_argument("spec", nargs="?", type=Path, default=SPEC_PATH, help="OpenAPI document (JSON or YAML)")
    parser.add_argument(
        "-o", "--output-dir", type=Path, default=DEFAULT_OUTPUT_DIR,
        help="directory the client package is written to (default: %(default)s)",
    )
    parser.add_argument("--array-separator", help="separator for multi-value query parameters")
    parser.add_argument("--models-module", help="name of the generated models module")
    parser.add_argument("-v", "--verbose", action="store_true", help="log every operation")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    level = "DEBUG" if args.verbose else os.environ.get("CLIENTGEN_LOG_LEVEL", DEFAULT_LOG_LEVEL)
    configure_logging(level)

    config = GeneratorConfig.from_env().with_overrides(
        array_separator=args.array_separator,
        models_module=args.models_module,
    )
    try:
        spec = load_spec(args.spec)
        generate(spec, args.output_dir, config)
    except GenerationError as exc:
        logger.error("%s: %s", exc.kind, exc)
        return exc.exit_code
    return EXIT_SUCCESS


if __name__ == "__main__":
    raise SystemExit(main())
