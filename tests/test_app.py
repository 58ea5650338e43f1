"""
End-to-end: one declaration drives both the mounted routes and the
served OpenAPI document.
"""

import logging

import pytest
from starlette.responses import PlainTextResponse
from starlette.routing import Route
from starlette.testclient import TestClient

from docroute import AppSpec, OpenAPIConfig, create_app
from docroute.faults import RouteConflictFault


@pytest.fixture
def client(registry, users_controller):
    spec = AppSpec(registry, config=OpenAPIConfig(title="Users API")).mount("/api/v1", users_controller())
    return TestClient(create_app(spec))


class TestCreateApp:

    def test_routes_are_mounted(self, client):
        response = client.get("/api/v1/users/profile")
        assert response.status_code == 200
        assert response.json()["success"] is True

    def test_validation_through_mount(self, client):
        response = client.post("/api/v1/users/login", json={"email": "nope", "password": "123"})
        assert response.status_code == 400
        assert {e["field"] for e in response.json()["errors"]} == {"body.email", "body.password"}

    def test_openapi_json(self, client):
        response = client.get("/api-docs.json")
        assert response.status_code == 200
        document = response.json()
        assert document["info"]["title"] == "Users API"
        profile = document["paths"]["/api/v1/users/profile"]["get"]
        assert profile["security"] == [{"bearerAuth": []}]
        assert set(profile["responses"]) == {"200", "401"}

    def test_documented_operations_are_served(self, client):
        document = client.get("/api-docs.json").json()
        for path, item in document["paths"].items():
            concrete = path.replace("{id}", "1")
            for method in item:
                response = client.request(method.upper(), concrete, follow_redirects=False)
                assert response.status_code not in (307, 404, 405), (method, path)

    def test_swagger_ui(self, client):
        response = client.get("/api-docs")
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/html")
        assert "/api-docs.json" in response.text

    def test_docs_disabled(self, registry, users_controller):
        spec = AppSpec(registry).mount("", users_controller())
        client = TestClient(create_app(spec, serve_docs=False))
        assert client.get("/api-docs.json").status_code == 404
        assert client.get("/users/profile").status_code == 200

    def test_extra_routes(self, registry, users_controller):
        async def health(request):
            return PlainTextResponse("ok")

        spec = AppSpec(registry).mount("/api", users_controller())
        client = TestClient(create_app(spec, extra_routes=[Route("/health", health)]))
        assert client.get("/health").text == "ok"

    def test_conflicts_fail_at_startup(self, registry):
        @registry.controller("/dup")
        class DupController:
            @registry.get("/")
            async def a(self, request): ...

            @registry.get("/")
            async def b(self, request): ...

        with pytest.raises(RouteConflictFault):
            create_app(AppSpec(registry).mount("", DupController()))

    def test_root_route_under_prefix_is_served_as_documented(self, registry):
        @registry.controller()
        class RootController:
            @registry.post("/", status_code=201)
            async def create(self, request):
                return {"created": True}

            @registry.get("/")
            async def index(self, request):
                return {"ok": True}

        client = TestClient(create_app(AppSpec(registry).mount("/api/v1", RootController())))
        document = client.get("/api-docs.json").json()
        assert list(document["paths"]) == ["/api/v1"]

        created = client.post("/api/v1", follow_redirects=False)
        assert created.status_code == 201
        assert client.get("/api/v1", follow_redirects=False).json() == {"ok": True}

    def test_unsealed_routes_are_logged(self, registry, users_controller, caplog):
        class Undecorated:
            @registry.get("/orphan")
            async def orphan(self, request): ...

        spec = AppSpec(registry).mount("/api", users_controller())
        with caplog.at_level(logging.WARNING, logger="docroute.app"):
            client = TestClient(create_app(spec))
        assert "Undecorated.orphan was never sealed" in caplog.text
        assert client.get("/api/orphan").status_code == 404
