"""
Metadata records, fragments and path helpers.
"""

import pytest

from docroute.controller.metadata import (
    ControllerMetadata,
    DocFields,
    HttpMethod,
    RouteFragment,
    RouteMetadata,
    ValidationSchemas,
    join_paths,
    path_params,
)
from docroute.faults import InvalidMetadataFault

from conftest import LoginInput, SearchQuery


class TestPaths:

    @pytest.mark.parametrize("parts,expected", [
        (("", "/users", "/profile"), "/users/profile"),
        (("/api/v1/", "users/", "/"), "/api/v1/users"),
        (("", "", "/"), "/"),
        (("/", "/"), "/"),
        (("api", "{id:int}"), "/api/{id:int}"),
    ])
    def test_join_paths(self, parts, expected):
        assert join_paths(*parts) == expected

    def test_path_params(self):
        assert path_params("/users/{id:int}/posts/{slug}") == [("id", "int"), ("slug", None)]


class TestHttpMethod:

    def test_parse_case_insensitive(self):
        assert HttpMethod.parse("get") is HttpMethod.GET
        assert HttpMethod.parse(HttpMethod.POST) is HttpMethod.POST

    def test_parse_unknown(self):
        with pytest.raises(InvalidMetadataFault) as exc_info:
            HttpMethod.parse("OPTIONS")
        assert exc_info.value.metadata["method"] == "OPTIONS"


class TestFragments:

    def test_apply_to_empty_record(self):
        record = RouteFragment(http_method="post", path="/login", summary="Login").apply_to(
            RouteMetadata(handler_name="login")
        )
        assert record.http_method is HttpMethod.POST
        assert record.path == "/login"
        assert record.doc.summary == "Login"
        assert record.is_route

    def test_unset_fields_keep_existing(self):
        record = RouteMetadata(handler_name="h", http_method=HttpMethod.GET, path="/a", status_code=201)
        updated = RouteFragment(description="More").apply_to(record)
        assert updated.path == "/a"
        assert updated.status_code == 201
        assert updated.doc.description == "More"

    def test_apply_does_not_mutate(self):
        record = RouteMetadata(handler_name="h")
        RouteFragment(http_method="GET").apply_to(record)
        assert record.http_method is None

    def test_responses_normalized(self):
        fragment = RouteFragment(responses={"404": None})
        assert fragment.responses == {404: ""}

    def test_non_callable_middleware(self):
        with pytest.raises(InvalidMetadataFault):
            RouteFragment(middlewares=(42,))


class TestRecords:

    def test_validation_schemas_merge(self):
        merged = ValidationSchemas(body=LoginInput).merged(ValidationSchemas(query=SearchQuery))
        assert merged == ValidationSchemas(body=LoginInput, query=SearchQuery)
        assert ValidationSchemas().is_empty

    def test_doc_fields_response_map(self):
        doc = DocFields(responses=((200, "OK"), (401, "Unauthorized")))
        assert doc.response_map == {200: "OK", 401: "Unauthorized"}

    def test_controller_get_route(self):
        route = RouteMetadata(handler_name="profile", http_method=HttpMethod.GET, path="/profile")
        orphan = RouteMetadata(handler_name="helper")
        meta = ControllerMetadata(
            controller_key="m:C",
            base_path="/users",
            routes={"profile": route, "helper": orphan},
        )
        assert meta.get_route("get", "/profile") is route
        assert meta.get_route("POST", "/profile") is None
        assert meta.declared_routes == [route]
