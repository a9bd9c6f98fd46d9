"""Tests for rendering the generated package."""

import pytest

from clientgen.codegen import docstring_lines, format_docstring, generate, generate_files, signature
from clientgen.config import GeneratorConfig
from clientgen.context_builder import build_context
from clientgen.loader import load_spec
from clientgen.models import Docs

GET_ITEM = '''\
    async def get_item(
        self,
        *,
        item_id: int,
    ) -> models.ItemsGetItemResponse:
        """Get an item.

        This function performs a `GET` to the `/items/{itemId}` endpoint.

        **Parameters:**

        * `item_id: int` -- The item identifier.
        """
        url = f"/items/{urllib.parse.quote(str(item_id), safe='')}"
        return await self.client.get(url)
'''

GET_RAW_BODY = '''\
        url = f"/items/{urllib.parse.quote(str(item_id), safe='')}/raw"
        headers: dict[str, str] = {}
        if x_request_id:
            headers['X-Request-Id'] = x_request_id
        return await self.client.get(url, headers=headers)
'''


class TestGenerateFiles:
    """Generate the sample client in memory."""

    @classmethod
    def setup_class(cls):
        cls.spec = load_spec()
        cls.files = generate_files(cls.spec)

    def test_module_order(self):
        assert list(self.files) == ["apps", "items", "users", "models", "__init__"]

    def test_byte_identical_on_rerun(self):
        assert generate_files(self.spec) == self.files

    @pytest.mark.parametrize("name", ["apps", "items", "users", "models", "__init__"])
    def test_valid_python(self, name):
        compile(self.files[name], f"{name}.py", "exec")

    def test_header(self):
        assert self.files["items"].startswith(
            "# Code generated by clientgen from Inventory API 1.2.0. DO NOT EDIT.\n"
        )

    def test_tag_class(self):
        source = self.files["items"]
        assert "from . import models  # noqa: F401\n" in source
        assert "class Items:\n    def __init__(self, client: Any) -> None:\n        self.client = client\n" in source

    def test_method(self):
        assert GET_ITEM in self.files["items"]

    def test_header_parameters(self):
        assert GET_RAW_BODY in self.files["items"]

    def test_optional_parameter_defaults(self):
        source = self.files["items"]
        for line in [
            "        per_page: int = 0,\n",
            '        type_: str = "",\n',
            "        sort_by: models.Sort | None = None,\n",
            "        labels: Sequence[str] = (),\n",
            "        since: datetime.datetime | None = None,\n",
            "        archived: bool = False,\n",
        ]:
            assert line in source

    def test_body_is_last(self):
        source = self.files["items"]
        assert "        item_id: int,\n        body: models.ItemsUpdateItemRequest,\n    ) -> models.ItemsUpdateItemResponse:" in source
        assert "return await self.client.put(url, json.dumps(body).encode())" in source

    def test_external_docs(self):
        assert "        FROM: <https://docs.example.com/items#list>\n" in self.files["items"]

    def test_whitelisted_call(self):
        assert (
            "return await self.client.post_media(url, json.dumps(body).encode(), "
            "media_type='application/json', authentication='jwt')"
        ) in self.files["apps"]

    def test_models(self):
        models = self.files["models"]
        assert "from __future__" not in models
        assert "class ItemType(enum.StrEnum):\n    TOOL = 'tool'\n    PART = 'part'\n" in models
        assert 'class Item(TypedDict):\n    """Something kept in stock."""\n\n    id: int\n    name: str\n' in models
        assert "    owner: NotRequired['User']\n" in models
        assert "ItemsListItemsResponse: TypeAlias = 'list[Item]'\n" in models
        assert "InstallationToken = TypedDict(\n    'InstallationToken',\n" in models
        assert "        'expires-at': NotRequired[datetime.datetime],\n" in models

    def test_package_init(self):
        init = self.files["__init__"]
        assert "from .items import Items\n" in init
        assert "    'Items',\n" in init


class TestConfig:
    """Generation options change the output."""

    def test_models_module_name(self, sample_spec):
        files = generate_files(sample_spec, GeneratorConfig(models_module="schemas"))
        assert "schemas" in files and "models" not in files
        assert "from . import schemas  # noqa: F401\n" in files["items"]
        assert "-> schemas.ItemsGetItemResponse:" in files["items"]

    def test_array_separator(self, sample_spec):
        files = generate_files(sample_spec, GeneratorConfig(array_separator=","))
        assert "query_args.append(('labels', ','.join(labels)))" in files["items"]


class TestWrite:
    def test_generate_writes_modules(self, tmp_path, sample_spec):
        written = generate(sample_spec, tmp_path / "client")
        assert sorted(p.name for p in written) == [
            "__init__.py", "apps.py", "items.py", "models.py", "users.py",
        ]
        assert (tmp_path / "client" / "items.py").read_text(encoding="utf-8").startswith("# Code generated")


class TestDocstrings:
    """Docstring assembly and formatting."""

    def test_single_line(self):
        assert format_docstring("Hello.") == '"""Hello."""'

    def test_multi_line_indent(self):
        assert format_docstring(["First.", "", "Second."], 4) == '"""First.\n\n    Second.\n    """'

    def test_escapes_quotes(self):
        assert format_docstring('Say """hi"""') == '"""Say \\"\\"\\"hi\\"\\"\\""""'

    def test_minimal_docs(self):
        docs = Docs(method="DELETE", path="/things")
        assert docstring_lines(docs) == ["This function performs a `DELETE` to the `/things` endpoint."]

    def test_summary_and_description(self):
        docs = Docs(summary="Remove a thing", method="DELETE", path="/things", description="Gone for good.")
        assert docstring_lines(docs) == [
            "Remove a thing.",
            "",
            "This function performs a `DELETE` to the `/things` endpoint.",
            "",
            "Gone for good.",
        ]


class TestSignature:
    def test_no_parameters(self, document, operation):
        op = build_context(document({"/things": {"get": operation()}}))["items"].operations[0]
        assert signature(op) == []

    def test_keyword_only(self, document, operation):
        op = build_context(document({"/things/{id}": {"get": operation(parameters=[
            {"name": "id", "in": "path", "schema": {"type": "string"}},
        ])}}))["items"].operations[0]
        assert signature(op) == ["*", "id: str"]


class TestReservedWords:
    """``type`` and ``ref`` are escaped the same way everywhere they appear."""

    def test_uniform_escaping(self, document, operation):
        op = operation(parameters=[
            {"name": "type", "in": "query", "description": "Kind filter.", "schema": {"type": "string"}},
            {"name": "ref", "in": "query", "required": True, "schema": {"type": "string"}},
        ])
        source = generate_files(document({"/things": {"get": op}}))["items"]
        assert '        type_: str = "",\n' in source
        assert "        ref_: str,\n" in source
        assert "query_args.append(('ref', ref_))" in source
        assert "if type_:\n            query_args.append(('type', type_))" in source
        assert "* `type_: str` -- Kind filter." in source
        assert "* `ref_: str`" in source
