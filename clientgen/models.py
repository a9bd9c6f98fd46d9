"""Descriptors produced by the operation synthesizer and consumed by codegen.

Decision logic fills these in; :mod:`clientgen.codegen` is the only place
that turns them into text.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Mapping

TypeId = int


class ParameterLocation(str, enum.Enum):
    PATH = "path"
    QUERY = "query"
    HEADER = "header"
    COOKIE = "cookie"


class QuerySerialization(str, enum.Enum):
    """How a query-bound value becomes its string form."""

    VERBATIM = "verbatim"
    DISPLAY = "display"
    CALENDAR = "calendar"
    JOINED = "joined"


class BodyEncoding(str, enum.Enum):
    JSON = "json"
    RAW = "raw"
    NONE = "none"


@dataclass(frozen=True)
class ParameterDescriptor:
    """One classified operation parameter.

    ``default`` and ``condition`` are Python source: the default value of
    an optional argument, and the test deciding whether it is sent.
    ``expression`` is the value's string form when it goes on the wire.
    ``schema_description`` is the description on the parameter's own schema,
    or on the model a ``$ref`` schema points at.
    """

    name: str
    identifier: str
    location: ParameterLocation
    type_id: TypeId
    annotation: str
    required: bool
    default: str | None = None
    condition: str | None = None
    description: str = ""
    schema_description: str = ""
    serialization: QuerySerialization | None = None
    expression: str = ""
    in_query_table: bool = False


@dataclass(frozen=True)
class QueryBinding:
    """One entry of the query table.

    ``condition`` is the Python expression deciding whether an optional
    parameter is sent; ``None`` means the parameter is always sent.
    """

    expression: str
    condition: str | None = None


QueryTable = Mapping[str, QueryBinding]


@dataclass(frozen=True)
class RequestBody:
    annotation: str
    encoding: BodyEncoding
    type_id: TypeId | None = None


@dataclass(frozen=True)
class Call:
    """The client primitive a generated method awaits."""

    client_method: str
    body_expression: str | None = None
    keywords: Mapping[str, str] = field(default_factory=dict)
    pass_headers: bool = False


@dataclass(frozen=True)
class Docs:
    summary: str = ""
    method: str = ""
    path: str = ""
    description: str = ""
    external_docs: str = ""
    parameters: tuple[str, ...] = ()


@dataclass
class OperationDescriptor:
    operation_id: str
    method: str
    path: str
    tag: str
    function_name: str
    parameters: list[ParameterDescriptor]
    body: RequestBody | None
    response_type: TypeId | None
    response_annotation: str
    docs: Docs
    url_code: str
    call: Call

    @property
    def header_parameters(self) -> list[ParameterDescriptor]:
        return [p for p in self.parameters if p.location is ParameterLocation.HEADER]


@dataclass
class TagGroup:
    name: str
    class_name: str
    operations: list[OperationDescriptor] = field(default_factory=list)

    def add(self, operation: OperationDescriptor) -> None:
        self.operations.append(operation)

    @property
    def function_names(self) -> list[str]:
        return [op.function_name for op in self.operations]
