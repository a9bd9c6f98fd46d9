"""Exception hierarchy for clientgen.

Every error is fatal to the generation run. The driver in
:mod:`clientgen.__main__` catches :class:`GenerationError`, reports the kind
together with the failing operation, and exits with ``exc.exit_code``.

Subclass hierarchy::

    GenerationError                 (exit 1)
    +-- SpecLoadError               (exit 2)
    +-- TagCardinalityError         (exit 3)
    +-- UnknownParameterReference   (exit 4)
    +-- UnsupportedQuerySemantics   (exit 5)
    +-- MalformedTemplate           (exit 6)
    +-- UnrepresentableResponse     (exit 7)
    +-- MissingAuthenticationContext (exit 8)
    +-- DanglingSchemaReference     (exit 9)
    +-- DuplicateParameterName      (exit 10)
"""

from __future__ import annotations

EXIT_SUCCESS = 0
EXIT_GENERIC_FAILURE = 1
EXIT_SPEC_LOAD_ERROR = 2
EXIT_TAG_CARDINALITY = 3
EXIT_UNKNOWN_PARAMETER = 4
EXIT_UNSUPPORTED_SEMANTICS = 5
EXIT_MALFORMED_TEMPLATE = 6
EXIT_UNREPRESENTABLE_RESPONSE = 7
EXIT_MISSING_AUTHENTICATION = 8
EXIT_DANGLING_REFERENCE = 9
EXIT_DUPLICATE_PARAMETER = 10


class GenerationError(Exception):
    """Base exception for all generation failures.

    Components raise these without knowing which operation is being
    generated; the operation synthesizer attaches that with :meth:`locate`
    before re-raising.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message
        self.operation_id: str | None = None
        self.method: str | None = None
        self.path: str | None = None

    @property
    def kind(self) -> str:
        return type(self).__name__

    def locate(self, operation_id: str | None, method: str, path: str) -> GenerationError:
        """Record the operation the error was raised for. First call wins."""
        if self.path is None:
            self.operation_id = operation_id
            self.method = method
            self.path = path
        return self

    def __str__(self) -> str:
        if self.path is None:
            return self.message
        return f"{self.message} (operation {self.operation_id!r}: {self.method} {self.path})"


class SpecLoadError(GenerationError):
    """The schema document could not be read or parsed."""

    exit_code = EXIT_SPEC_LOAD_ERROR


class TagCardinalityError(GenerationError):
    """An operation has zero or more than one tag."""

    exit_code = EXIT_TAG_CARDINALITY


class UnknownParameterReference(GenerationError):
    """A ``$ref`` parameter does not resolve in the shared parameter table."""

    exit_code = EXIT_UNKNOWN_PARAMETER

    def __init__(self, reference: str):
        super().__init__(f"could not find parameter with reference: {reference}")
        self.reference = reference


class UnsupportedQuerySemantics(GenerationError):
    """``allowEmptyValue`` query parameters or media types with an encoding map."""

    exit_code = EXIT_UNSUPPORTED_SEMANTICS


class MalformedTemplate(GenerationError):
    """A path template is unbalanced, has an empty placeholder or names an undeclared parameter."""

    exit_code = EXIT_MALFORMED_TEMPLATE

    def __init__(self, template: str, reason: str):
        super().__init__(f"malformed path template {template!r}: {reason}")
        self.template = template


class UnrepresentableResponse(GenerationError):
    """No content-type precedence rule matched the operation's response."""

    exit_code = EXIT_UNREPRESENTABLE_RESPONSE


class MissingAuthenticationContext(GenerationError):
    """An operation has no client call strategy and is not whitelisted."""

    exit_code = EXIT_MISSING_AUTHENTICATION


class DanglingSchemaReference(GenerationError):
    """A schema ``$ref`` points at nothing in the document."""

    exit_code = EXIT_DANGLING_REFERENCE

    def __init__(self, reference: str):
        super().__init__(f"could not resolve schema reference: {reference}")
        self.reference = reference


class DuplicateParameterName(GenerationError):
    """Two parameters of one operation map to the same Python identifier."""

    exit_code = EXIT_DUPLICATE_PARAMETER

    def __init__(self, identifier: str, first: str, second: str):
        super().__init__(f"parameters {first!r} and {second!r} both map to identifier {identifier!r}")
        self.identifier = identifier
        self.names = (first, second)
