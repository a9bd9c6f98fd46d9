"""Shared fixtures for clientgen tests.

Most tests either load the sample document in spec/openapi.json or build a
small document inline with the ``document`` and ``operation`` factories.
End-to-end tests import a freshly generated package and drive it through
:class:`RecordingClient`, an httpx client on a mock transport.
"""

from __future__ import annotations

import importlib
import sys
from typing import Any, Callable

import httpx
import pytest

from clientgen.codegen import generate_files, write_package
from clientgen.loader import SPEC_PATH, load_spec

SAMPLE_SPEC = SPEC_PATH

BASE_URL = "https://api.example.com"


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------

JSON_OBJECT_RESPONSE = {
    "200": {
        "description": "OK",
        "content": {
            "application/json": {
                "schema": {"type": "object", "properties": {"id": {"type": "integer"}}},
            },
        },
    },
}


def _operation(
    tags: tuple[str, ...] | list[str] = ("items",),
    operation_id: str | None = "items/get-thing",
    responses: dict[str, Any] | None = None,
    **fields: Any,
) -> dict[str, Any]:
    op: dict[str, Any] = {
        "tags": list(tags),
        "responses": JSON_OBJECT_RESPONSE if responses is None else responses,
    }
    if operation_id is not None:
        op["operationId"] = operation_id
    op.update(fields)
    return op


def _document(
    paths: dict[str, Any],
    schemas: dict[str, Any] | None = None,
    parameters: dict[str, Any] | None = None,
) -> dict[str, Any]:
    return {
        "openapi": "3.0.3",
        "info": {"title": "Test API", "version": "1.0"},
        "paths": paths,
        "components": {"schemas": schemas or {}, "parameters": parameters or {}},
    }


@pytest.fixture
def operation() -> Callable[..., dict[str, Any]]:
    """Factory for a single operation object with one tag and a JSON response."""
    return _operation


@pytest.fixture
def document() -> Callable[..., dict[str, Any]]:
    """Factory for a minimal OpenAPI document around a paths mapping."""
    return _document


@pytest.fixture(scope="session")
def sample_spec() -> dict[str, Any]:
    return load_spec(SAMPLE_SPEC)


# ---------------------------------------------------------------------------
# Generated package
# ---------------------------------------------------------------------------

@pytest.fixture
def build_package(tmp_path, monkeypatch):
    """Return a callable that generates a document into tmp_path and imports it.

    Imported packages are dropped from sys.modules afterwards so every test
    gets a fresh import.
    """
    monkeypatch.syspath_prepend(str(tmp_path))
    names: list[str] = []

    def _build(spec: dict[str, Any], name: str):
        write_package(generate_files(spec), tmp_path / name)
        importlib.invalidate_caches()
        names.append(name)
        return importlib.import_module(name)

    yield _build
    for name in names:
        for module in [m for m in sys.modules if m == name or m.startswith(f"{name}.")]:
            sys.modules.pop(module, None)


@pytest.fixture
def generated_package(build_package, sample_spec):
    """The sample inventory client, freshly generated and imported."""
    return build_package(sample_spec, "inventory_client")


# ---------------------------------------------------------------------------
# Client the generated classes call into
# ---------------------------------------------------------------------------

class RecordingClient:
    """Async client exposing the primitives generated methods await.

    Every request goes through an httpx mock transport and is kept in
    ``requests`` for inspection.
    """

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]):
        self.requests: list[httpx.Request] = []

        def record(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        self._http = httpx.AsyncClient(base_url=BASE_URL, transport=httpx.MockTransport(record))

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]

    async def _send(self, method: str, url: str, body: Any = None, headers: dict[str, str] | None = None) -> Any:
        response = await self._http.request(method, url, content=body, headers=headers)
        response.raise_for_status()
        if not response.content:
            return None
        if response.headers.get("content-type", "").startswith("application/json"):
            return response.json()
        return response.text

    async def get(self, url: str, headers: dict[str, str] | None = None) -> Any:
        return await self._send("GET", url, headers=headers)

    async def post(self, url: str, body: Any, headers: dict[str, str] | None = None) -> Any:
        return await self._send("POST", url, body, headers)

    async def put(self, url: str, body: Any, headers: dict[str, str] | None = None) -> Any:
        return await self._send("PUT", url, body, headers)

    async def patch(self, url: str, body: Any, headers: dict[str, str] | None = None) -> Any:
        return await self._send("PATCH", url, body, headers)

    async def delete(self, url: str, body: Any, headers: dict[str, str] | None = None) -> Any:
        return await self._send("DELETE", url, body, headers)

    async def post_media(
        self,
        url: str,
        body: Any,
        media_type: str,
        authentication: str,
        headers: dict[str, str] | None = None,
    ) -> Any:
        headers = {**(headers or {}), "Content-Type": media_type, "Authorization": f"Bearer {authentication}"}
        return await self._send("POST", url, body, headers)

    async def aclose(self) -> None:
        await self._http.aclose()


def inventory_handler(request: httpx.Request) -> httpx.Response:
    """Canned responses for the sample inventory API."""
    path = request.url.path
    if request.method == "DELETE" or path.endswith("/attachment"):
        return httpx.Response(204)
    if path.endswith("/raw"):
        return httpx.Response(200, text="id=42 name=wrench")
    if path.startswith("/app/"):
        return httpx.Response(201, json={"token": "t0k3n"})
    if path.startswith("/users/"):
        return httpx.Response(200, json={"login": path.rsplit("/", 1)[-1]})
    if path == "/items" and request.method == "GET":
        return httpx.Response(200, json=[{"id": 1, "name": "wrench"}])
    return httpx.Response(200, json={"id": 42, "name": "wrench"})


@pytest.fixture
async def client():
    recording = RecordingClient(inventory_handler)
    yield recording
    await recording.aclose()
