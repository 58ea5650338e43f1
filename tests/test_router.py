"""
Router materialization: handler chains, validation envelope, conflicts.
"""

import pytest
from pydantic import BaseModel
from starlette.applications import Starlette
from starlette.responses import PlainTextResponse
from starlette.routing import Mount
from starlette.testclient import TestClient

from docroute.controller.router import (
    RouterMaterializer,
    check_conflicts,
    jsonable,
    materialize_router,
    route_table,
)
from docroute.faults import InvalidMetadataFault, RouteConflictFault

from conftest import LoginInput, UserParams, deny, marker


def client_for(registry, controller, prefix=""):
    router = materialize_router(registry, controller)
    if prefix:
        return TestClient(Starlette(routes=[Mount(prefix, routes=router.routes)]))
    return TestClient(Starlette(routes=router.routes))


# ============================================================================
# Route table
# ============================================================================

class TestRouteTable:

    def test_routes_and_methods(self, registry, users_controller):
        router = materialize_router(registry, users_controller())
        table = [(list(r.methods - {"HEAD"})[0], r.path) for r in router.routes]
        assert table == [
            ("GET", "/users/profile"),
            ("POST", "/users/login"),
            ("GET", "/users/{id:int}"),
            ("GET", "/users/search"),
        ]

    def test_route_names(self, registry, users_controller):
        router = materialize_router(registry, users_controller())
        assert [r.name for r in router.routes] == [
            "UsersController.profile",
            "UsersController.login",
            "UsersController.get_user",
            "UsersController.search",
        ]

    def test_route_table_helper(self, registry, users_controller):
        assert route_table(registry, users_controller(), "/api") == [
            ("GET", "/api/users/profile"),
            ("POST", "/api/users/login"),
            ("GET", "/api/users/{id:int}"),
            ("GET", "/api/users/search"),
        ]

    def test_idempotent(self, registry, users_controller):
        instance = users_controller()
        first = materialize_router(registry, instance)
        second = materialize_router(registry, instance)
        assert [(r.path, r.methods) for r in first.routes] == [(r.path, r.methods) for r in second.routes]

    def test_class_instead_of_instance(self, registry, users_controller):
        with pytest.raises(InvalidMetadataFault):
            RouterMaterializer(registry).materialize(users_controller)

    def test_verbless_method_not_routed(self, registry):
        @registry.controller("/c")
        class C:
            @registry.doc(summary="nothing")
            async def orphan(self, request): ...

            @registry.get("/")
            async def index(self, request):
                return {"ok": True}

        router = materialize_router(registry, C())
        assert [r.name for r in router.routes] == ["C.index"]

    def test_unsupported_method_returns_405(self, registry, users_controller):
        client = client_for(registry, users_controller())
        assert client.delete("/users/profile").status_code == 405


# ============================================================================
# Conflicts
# ============================================================================

class TestConflicts:

    @pytest.fixture
    def conflicting(self, registry):
        @registry.controller("/dup")
        class DupController:
            @registry.get("/same")
            async def one(self, request): ...

            @registry.get("/same")
            async def two(self, request): ...

            @registry.post("/same")
            async def three(self, request): ...

        return DupController

    def test_materialize_raises(self, registry, conflicting):
        with pytest.raises(RouteConflictFault) as exc_info:
            materialize_router(registry, conflicting())
        assert exc_info.value.conflicts == [
            {"method": "GET", "path": "/dup/same", "handlers": ["one", "two"]},
        ]

    def test_check_conflicts(self, registry, conflicting, users_controller):
        assert len(check_conflicts(registry, conflicting())) == 1
        assert check_conflicts(registry, users_controller()) == []


# ============================================================================
# Handler chain
# ============================================================================

class TestChain:

    def test_middleware_order(self, registry, users_controller, calls):
        client = client_for(registry, users_controller())
        response = client.get("/users/42")
        assert response.status_code == 200
        assert response.json() == {"id": 42, "calls": ["first", "second", "third"]}

    def test_short_circuit_skips_validation_and_handler(self, registry, calls):
        reached = []

        @registry.controller("/secure")
        class SecureController:
            @registry.post("/", body=LoginInput, middlewares=[marker("outer", calls), deny])
            async def create(self, request):
                reached.append(True)
                return {"ok": True}

        client = client_for(registry, SecureController())
        response = client.post("/secure", json={"email": "bad"})
        assert response.status_code == 401
        assert calls == ["outer"]
        assert reached == []

    def test_middleware_can_modify_response(self, registry):
        async def stamp(request, call_next):
            response = await call_next(request)
            response.headers["X-Stamp"] = "yes"
            return response

        @registry.controller("/s")
        class StampController:
            @registry.get("/", middlewares=[stamp])
            async def index(self, request):
                return {"ok": True}

        response = client_for(registry, StampController()).get("/s")
        assert response.headers["X-Stamp"] == "yes"

    def test_sync_handler(self, registry, users_controller):
        client = client_for(registry, users_controller())
        response = client.get("/users/search", params=[("page", "3"), ("tags", "a"), ("tags", "b")])
        assert response.status_code == 200
        assert response.json() == {"page": 3, "tags": ["a", "b"]}

    def test_response_passthrough_and_status(self, registry):
        class Item(BaseModel):
            name: str

        @registry.controller("/r")
        class ResultController:
            @registry.get("/text")
            async def text(self, request):
                return PlainTextResponse("hi")

            @registry.post("/", status_code=201)
            async def create(self, request):
                return Item(name="x")

            @registry.delete("/", status_code=204)
            async def remove(self, request):
                return None

        client = client_for(registry, ResultController())
        assert client.get("/r/text").text == "hi"
        created = client.post("/r")
        assert created.status_code == 201
        assert created.json() == {"name": "x"}
        removed = client.delete("/r")
        assert removed.status_code == 204
        assert removed.content == b""

    def test_mounted_under_prefix(self, registry, users_controller):
        client = client_for(registry, users_controller(), prefix="/api/v1")
        assert client.get("/api/v1/users/profile").json()["success"] is True

    def test_handler_exceptions_propagate(self, registry):
        @registry.controller("/boom")
        class BoomController:
            @registry.get("/")
            async def index(self, request):
                raise RuntimeError("boom")

        client = client_for(registry, BoomController())
        with pytest.raises(RuntimeError):
            client.get("/boom")


# ============================================================================
# Validation
# ============================================================================

class TestValidation:

    def test_valid_body_reaches_handler(self, registry, users_controller):
        client = client_for(registry, users_controller())
        response = client.post("/users/login", json={"email": "a@example.com", "password": "long-enough"})
        assert response.status_code == 200
        assert response.json() == {"success": True, "email": "a@example.com"}

    def test_invalid_body_envelope(self, registry, users_controller):
        client = client_for(registry, users_controller())
        response = client.post("/users/login", json={"email": "not-an-email", "password": "short"})
        assert response.status_code == 400
        payload = response.json()
        assert payload["success"] is False
        assert payload["message"] == "Validation error"
        assert [e["field"] for e in payload["errors"]] == ["body.email", "body.password"]
        assert all(e["message"] for e in payload["errors"])

    def test_missing_field(self, registry, users_controller):
        client = client_for(registry, users_controller())
        response = client.post("/users/login", json={"email": "a@example.com"})
        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "body.password"

    def test_invalid_json(self, registry, users_controller):
        client = client_for(registry, users_controller())
        response = client.post(
            "/users/login", content=b"{not json", headers={"content-type": "application/json"}
        )
        assert response.status_code == 400
        assert response.json()["errors"] == [{"field": "body", "message": "Invalid JSON body"}]

    def test_invalid_query(self, registry, users_controller):
        client = client_for(registry, users_controller())
        response = client.get("/users/search", params={"limit": "500"})
        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "query.limit"

    def test_invalid_params(self, registry):
        @registry.controller("/p")
        class ParamsController:
            @registry.get("/{id}", params=UserParams)
            async def show(self, request):
                return {"id": request.state.validated.params.id}

        client = client_for(registry, ParamsController())
        assert client.get("/p/7").json() == {"id": 7}
        response = client.get("/p/abc")
        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "params.id"

    def test_errors_aggregate_across_parts(self, registry):
        class Page(BaseModel):
            page: int

        @registry.controller("/agg")
        class AggController:
            @registry.post("/{id}", body=LoginInput, params=UserParams, query=Page)
            async def run(self, request):
                return {}

        client = client_for(registry, AggController())
        response = client.post("/agg/x?page=y", json={"email": "a@example.com", "password": "x"})
        fields = [e["field"] for e in response.json()["errors"]]
        assert fields == ["body.password", "params.id", "query.page"]


def test_jsonable_nested_models():
    class Inner(BaseModel):
        value: int

    assert jsonable({"items": [Inner(value=1)], "pair": (1, 2)}) == {
        "items": [{"value": 1}],
        "pair": [1, 2],
    }
