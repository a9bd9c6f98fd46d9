"""Tests for the naming module."""

from clientgen.config import RESERVED_WORDS
from clientgen.naming import (
    clean_name,
    fallback_operation_id,
    function_name,
    strip_tag_prefix,
    struct_name,
    to_identifier,
    to_snake_case,
)


class TestToSnakeCase:
    """Test snake_case conversion of operation ids, tags and parameter names."""

    def test_camel_case(self):
        assert to_snake_case("sortBy") == "sort_by"

    def test_pascal_acronym(self):
        assert to_snake_case("HTTPServer") == "http_server"

    def test_slash_and_dash(self):
        assert to_snake_case("items/list-items") == "items_list_items"

    def test_header_name(self):
        assert to_snake_case("X-Request-Id") == "x_request_id"

    def test_collapses_separators(self):
        assert to_snake_case("a -- b..c") == "a_b_c"

    def test_already_snake(self):
        assert to_snake_case("per_page") == "per_page"


class TestStructName:
    """Test PascalCase model and class names."""

    def test_words(self):
        assert struct_name("items list items response") == "ItemsListItemsResponse"

    def test_already_pascal(self):
        assert struct_name("InstallationToken") == "InstallationToken"

    def test_leading_digit(self):
        assert struct_name("3d model") == "T3dModel"

    def test_empty(self):
        assert struct_name("") == "Model"

    def test_clean_name(self):
        assert clean_name("Items_createItem") == "items create item"


class TestToIdentifier:
    """Parameter names must become valid, non-reserved identifiers."""

    def test_type_is_escaped(self):
        assert to_identifier("type", RESERVED_WORDS) == "type_"

    def test_ref_is_escaped(self):
        assert to_identifier("ref", RESERVED_WORDS) == "ref_"

    def test_keyword_is_escaped(self):
        assert to_identifier("from", RESERVED_WORDS) == "from_"

    def test_generated_local_is_escaped(self):
        """Names the generated method body uses itself cannot be shadowed."""
        assert to_identifier("url", RESERVED_WORDS) == "url_"
        assert to_identifier("headers", RESERVED_WORDS) == "headers_"

    def test_leading_digit(self):
        assert to_identifier("2fa", RESERVED_WORDS) == "_2fa"

    def test_empty(self):
        assert to_identifier("", RESERVED_WORDS) == "param"

    def test_plain_name_unchanged(self):
        assert to_identifier("itemId", RESERVED_WORDS) == "item_id"


class TestFunctionName:
    """Method names drop the tag prefix from the operation id."""

    def test_strips_tag(self):
        assert function_name("items_list_items", "items", RESERVED_WORDS) == "list_items"

    def test_strips_repeated_tag(self):
        assert strip_tag_prefix("items_items_get", "items") == "get"

    def test_partial_word_not_stripped(self):
        assert strip_tag_prefix("itemsget", "items") == "itemsget"

    def test_other_tag_untouched(self):
        assert function_name("users_get_by_username", "items", RESERVED_WORDS) == "users_get_by_username"

    def test_oid_equal_to_tag(self):
        assert function_name("items", "items", RESERVED_WORDS) == "items"

    def test_reserved_result_escaped(self):
        assert function_name("items_import", "items", RESERVED_WORDS) == "import_"


class TestFallbackOperationId:
    """Operation ids built from method + path when operationId is missing."""

    def test_list(self):
        assert fallback_operation_id("GET", "/items") == "list_items"

    def test_get(self):
        assert fallback_operation_id("GET", "/items/{itemId}") == "get_item"

    def test_create(self):
        assert fallback_operation_id("POST", "/items") == "create_item"

    def test_delete(self):
        assert fallback_operation_id("DELETE", "/items/{itemId}") == "delete_item"

    def test_nested(self):
        assert fallback_operation_id("GET", "/users/{id}/repos") == "get_users_repos"

    def test_root(self):
        assert fallback_operation_id("GET", "/") == "list_root"

    def test_valid_python_identifier(self):
        assert fallback_operation_id("PATCH", "/files/by-name/{name}").isidentifier()
