"""Push through the engine's REST API."""

import logging
from typing import Any

import httpx

from flowsmith.boundary.base import PushBoundary
from flowsmith.errors import PushBoundaryFailure
from flowsmith.models.push import PushOutcome, PushRequest

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"
API_KEY_HEADER = "X-N8N-API-KEY"

# Top-level document keys the workflows endpoint accepts
ACCEPTED_KEYS = ("name", "nodes", "connections", "settings", "staticData")


def request_body(document: dict[str, Any]) -> dict[str, Any]:
    body = {key: document[key] for key in ACCEPTED_KEYS if key in document}
    body.setdefault("settings", {})
    return body


class HttpPushBoundary(PushBoundary):
    """Creates or updates workflows through ``/api/v1/workflows``.

    A document whose id already exists on the engine is updated in place,
    anything else is created.
    """

    name = "http"

    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers[API_KEY_HEADER] = self.api_key
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=self.timeout,
            transport=self.transport,
        )

    async def push(self, request: PushRequest) -> PushOutcome:
        body = request_body(request.document)
        workflow_id = request.document.get("id")
        try:
            async with self._client() as client:
                exists = False
                if workflow_id:
                    lookup = await client.get(f"{API_PREFIX}/workflows/{workflow_id}")
                    exists = lookup.status_code == 200

                if exists:
                    response = await client.put(
                        f"{API_PREFIX}/workflows/{workflow_id}", json=body
                    )
                else:
                    response = await client.post(f"{API_PREFIX}/workflows", json=body)
                if response.is_error:
                    return PushOutcome(
                        success=False,
                        output="",
                        diagnostics=f"HTTP {response.status_code}: {response.text}",
                    )

                try:
                    created = response.json()
                except ValueError:
                    created = {}
                remote_id = workflow_id
                if isinstance(created, dict) and created.get("id"):
                    remote_id = created["id"]
                logger.info(
                    f"{'Updated' if exists else 'Created'} '{request.document_name}' "
                    f"(id {remote_id})"
                )

                if request.activate and remote_id:
                    activation = await client.post(
                        f"{API_PREFIX}/workflows/{remote_id}/activate"
                    )
                    if activation.is_error:
                        return PushOutcome(
                            success=False,
                            output=response.text,
                            diagnostics=f"Activation failed with HTTP "
                            f"{activation.status_code}: {activation.text}",
                        )
                return PushOutcome(success=True, output=response.text)
        except httpx.HTTPError as e:
            raise PushBoundaryFailure(
                f"Cannot reach {self.base_url}: {e}",
                diagnostics=str(e),
                document=request.document_name,
                retriable=True,
            ) from e
