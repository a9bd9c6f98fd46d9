"""Generate typed async Python clients from OpenAPI documents."""

from .codegen import generate, generate_files, write_package
from .config import GeneratorConfig
from .errors import GenerationError
from .loader import load_spec

__version__ = "0.1.0"

__all__ = [
    "GenerationError",
    "GeneratorConfig",
    "generate",
    "generate_files",
    "load_spec",
    "write_package",
]
