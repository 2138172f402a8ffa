"""Tests for the REST API push boundary."""

import json

import httpx
import pytest

from flowsmith.boundary.http import API_KEY_HEADER, HttpPushBoundary, request_body
from flowsmith.errors import PushBoundaryFailure
from flowsmith.models.push import PushRequest

DOCUMENT = {
    "id": "order-sync",
    "name": "Order Sync",
    "active": False,
    "nodes": [],
    "connections": {},
    "settings": {"executionOrder": "v1"},
    "createdAt": "2024-01-01T00:00:00Z",
    "updatedAt": "2024-01-02T00:00:00Z",
}


class FakeEngine:
    """In-memory stand-in for the workflows endpoint."""

    def __init__(self, existing=(), fail_with=None):
        self.existing = set(existing)
        self.fail_with = fail_with
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if request.method == "GET":
            workflow_id = path.rsplit("/", 1)[-1]
            if workflow_id in self.existing:
                return httpx.Response(200, json={"id": workflow_id})
            return httpx.Response(404, json={"message": "Not Found"})
        if self.fail_with and request.method in ("POST", "PUT") and "activate" not in path:
            return httpx.Response(self.fail_with, json={"message": "request/body is invalid"})
        if path.endswith("/activate"):
            return httpx.Response(200, json={"active": True})
        if request.method == "PUT":
            return httpx.Response(200, json={"id": path.rsplit("/", 1)[-1]})
        return httpx.Response(200, json={"id": "remote-42"})

    def calls(self) -> list[str]:
        return [f"{r.method} {r.url.path}" for r in self.requests]


def _boundary(engine: FakeEngine, api_key="secret") -> HttpPushBoundary:
    return HttpPushBoundary(
        "http://engine.local:5678/", api_key=api_key, transport=httpx.MockTransport(engine)
    )


def _request(document=None, activate=False) -> PushRequest:
    return PushRequest(
        document_name="Order Sync",
        document=dict(document or DOCUMENT),
        artifact_path="/tmp/unused.json",
        activate=activate,
    )


class TestRequestBody:
    """Tests for the accepted document keys."""

    def test_read_only_fields_dropped(self):
        body = request_body(DOCUMENT)
        assert set(body) == {"name", "nodes", "connections", "settings"}

    def test_settings_defaulted(self):
        assert request_body({"name": "X", "nodes": []})["settings"] == {}


class TestHttpPushBoundary:
    """Tests for create, update and activation."""

    @pytest.mark.asyncio
    async def test_create_new(self):
        engine = FakeEngine()

        outcome = await _boundary(engine).push(_request())

        assert outcome.success
        assert engine.calls() == [
            "GET /api/v1/workflows/order-sync",
            "POST /api/v1/workflows",
        ]
        sent = json.loads(engine.requests[1].content)
        assert "id" not in sent
        assert "active" not in sent
        assert engine.requests[1].headers[API_KEY_HEADER] == "secret"

    @pytest.mark.asyncio
    async def test_update_existing(self):
        engine = FakeEngine(existing={"order-sync"})

        outcome = await _boundary(engine).push(_request())

        assert outcome.success
        assert engine.calls()[-1] == "PUT /api/v1/workflows/order-sync"

    @pytest.mark.asyncio
    async def test_no_id_skips_lookup(self):
        document = {k: v for k, v in DOCUMENT.items() if k != "id"}
        engine = FakeEngine()

        await _boundary(engine).push(_request(document))

        assert engine.calls() == ["POST /api/v1/workflows"]

    @pytest.mark.asyncio
    async def test_activate_uses_remote_id(self):
        engine = FakeEngine()

        outcome = await _boundary(engine).push(_request(activate=True))

        assert outcome.success
        assert engine.calls()[-1] == "POST /api/v1/workflows/remote-42/activate"

    @pytest.mark.asyncio
    async def test_error_status(self):
        engine = FakeEngine(fail_with=400)

        outcome = await _boundary(engine).push(_request(activate=True))

        assert not outcome.success
        assert outcome.diagnostics.startswith("HTTP 400:")
        assert not any(call.endswith("/activate") for call in engine.calls())

    @pytest.mark.asyncio
    async def test_no_api_key_header(self):
        engine = FakeEngine()

        await _boundary(engine, api_key=None).push(_request())

        assert API_KEY_HEADER not in engine.requests[0].headers

    @pytest.mark.asyncio
    async def test_unreachable(self):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        boundary = HttpPushBoundary("http://engine.local", transport=httpx.MockTransport(refuse))

        with pytest.raises(PushBoundaryFailure) as exc_info:
            await boundary.push(_request())
        assert exc_info.value.retriable
