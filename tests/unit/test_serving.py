"""Unit tests for the FastAPI serving layer."""

from __future__ import annotations

import inspect
from unittest.mock import MagicMock

import pytest
from fastapi.routing import APIRoute
from fastapi.testclient import TestClient

from sales_rag.agent.orchestrator import OrchestratorResult
from sales_rag.errors import SearchError
from sales_rag.ingestion.coordinator import IngestionCoordinator
from sales_rag.serving.app import create_app
from sales_rag.serving.dependencies import Services


@pytest.fixture()
def orchestrator() -> MagicMock:
    mock = MagicMock()
    mock.run.return_value = OrchestratorResult(
        text="The Pro plan is $50/mo.",
        tool_call_count=1,
        finish_reason="stop",
    )
    return mock


@pytest.fixture()
def services(repository, object_storage, memory_store, hash_embeddings, orchestrator) -> Services:  # noqa: ANN001
    coordinator = IngestionCoordinator(repository, object_storage, hash_embeddings, memory_store)
    return Services(
        repository=repository,
        storage=object_storage,
        store=memory_store,
        coordinator=coordinator,
        orchestrator=orchestrator,
    )


@pytest.fixture()
def client(services: Services) -> TestClient:
    return TestClient(create_app(services))


def _upload(client: TestClient, filename: str, body: bytes, product: str = "Acme CRM"):  # noqa: ANN202
    return client.post(
        "/documents",
        files={"file": (filename, body, "text/markdown")},
        data={"productName": product, "productDescription": "CRM"},
    )


# ── Health ─────────────────────────────────────────────────────────────


class TestHealth:
    def test_ok(self, client: TestClient) -> None:
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok", "vector_store": "ok"}

    def test_vector_store_down(self, client: TestClient, services: Services) -> None:
        services.store.health_check = lambda: False
        assert client.get("/health").json()["vector_store"] == "unavailable"


# ── Products ───────────────────────────────────────────────────────────


class TestProducts:
    def test_create_and_list(self, client: TestClient) -> None:
        response = client.post(
            "/products",
            json={"name": "Acme CRM", "description": "CRM", "systemPrompt": "Mention the free trial."},
        )

        assert response.status_code == 201
        body = response.json()
        assert body["name"] == "Acme CRM"
        assert body["toolName"] == "search_acme_crm"
        assert [p["id"] for p in client.get("/products").json()] == [body["id"]]

    def test_tool_name_collision_is_conflict(self, client: TestClient) -> None:
        client.post("/products", json={"name": "Acme CRM"})
        response = client.post("/products", json={"name": "acme-crm"})

        assert response.status_code == 409
        assert "search_acme_crm" in response.json()["detail"]

    def test_duplicate_is_conflict(self, client: TestClient) -> None:
        client.post("/products", json={"name": "Acme CRM"})
        assert client.post("/products", json={"name": "Acme CRM"}).status_code == 409

    def test_documents_of_missing_product(self, client: TestClient) -> None:
        assert client.get("/products/missing/documents").status_code == 404


# ── Chat ───────────────────────────────────────────────────────────────


class TestChat:
    def test_response_shape(self, client: TestClient, orchestrator: MagicMock) -> None:
        response = client.post(
            "/chat",
            json={
                "message": "How much is Pro?",
                "history": [
                    {"role": "user", "content": "Hi"},
                    {"role": "assistant", "content": "Hello!"},
                ],
                "orgName": "Acme",
            },
        )

        assert response.status_code == 200
        assert response.json() == {
            "response": "The Pro plan is $50/mo.",
            "toolCallCount": 1,
            "finishReason": "stop",
        }
        conversation = orchestrator.run.call_args.args[0]
        assert conversation[-1] == {"role": "user", "content": "How much is Pro?"}
        assert len(conversation) == 3
        assert orchestrator.run.call_args.kwargs["org_name"] == "Acme"

    def test_empty_message_rejected(self, client: TestClient) -> None:
        assert client.post("/chat", json={"message": ""}).status_code == 422

    def test_search_error_is_bad_gateway(self, client: TestClient, orchestrator: MagicMock) -> None:
        orchestrator.run.side_effect = SearchError("p1", "timeout")
        assert client.post("/chat", json={"message": "q"}).status_code == 502

    def test_value_error_is_bad_request(self, client: TestClient, orchestrator: MagicMock) -> None:
        orchestrator.run.side_effect = ValueError("max_steps must be at least 1")
        response = client.post("/chat", json={"message": "q"})
        assert response.status_code == 400
        assert response.json()["detail"] == "max_steps must be at least 1"

    def test_unexpected_error_is_generic_500(self, services: Services, orchestrator: MagicMock) -> None:
        orchestrator.run.side_effect = RuntimeError("secret internals")
        client = TestClient(create_app(services), raise_server_exceptions=False)

        response = client.post("/chat", json={"message": "q"})

        assert response.status_code == 500
        assert response.json() == {"detail": "Internal server error"}


# ── Documents ──────────────────────────────────────────────────────────


class TestDocuments:
    def test_upload_creates_product_and_ingests(
        self, client: TestClient, services: Services, memory_store
    ) -> None:  # noqa: ANN001
        response = _upload(client, "pricing.md", b"PRICING\nBasic plan $10/mo.\nPro plan $50/mo.")

        assert response.status_code == 202
        body = response.json()
        assert body["filename"] == "pricing.md"
        assert body["status"] == "pending"

        # TestClient runs background tasks before returning
        [document] = client.get(f"/products/{body['productId']}/documents").json()
        assert document["status"] == "completed"
        assert len(memory_store.rows) == 1
        assert services.repository.get_product(body["productId"]).name == "Acme CRM"

    def test_upload_handler_runs_off_the_event_loop(self, services: Services) -> None:
        app = create_app(services)
        [route] = [
            route for route in app.routes
            if isinstance(route, APIRoute) and route.path == "/documents" and "POST" in route.methods
        ]
        assert not inspect.iscoroutinefunction(route.endpoint)

    def test_second_upload_reuses_product(self, client: TestClient) -> None:
        first = _upload(client, "a.md", b"# A\nalpha").json()
        second = _upload(client, "b.md", b"# B\nbeta").json()

        assert first["productId"] == second["productId"]
        assert len(client.get("/products").json()) == 1

    def test_unsupported_extension(self, client: TestClient) -> None:
        response = _upload(client, "deck.pptx", b"slides")

        assert response.status_code == 400
        assert "Unsupported file type" in response.json()["detail"]
        assert client.get("/products").json() == []

    def test_failed_background_ingest_is_recorded(self, client: TestClient) -> None:
        body = _upload(client, "broken.docx", b"not a zip archive").json()

        [document] = client.get(f"/products/{body['productId']}/documents").json()
        assert document["status"] == "failed"
        assert document["errorMessage"]

    def test_ingest_endpoint_resumes(self, client: TestClient, services: Services) -> None:
        body = _upload(client, "pricing.md", b"PRICING\nPro plan $50/mo.").json()

        response = client.post(f"/documents/{body['id']}/ingest")

        assert response.status_code == 200
        assert response.json() == {"documentId": body["id"], "chunkCount": 1, "tags": []}

    def test_ingest_unknown_document(self, client: TestClient) -> None:
        assert client.post("/documents/missing/ingest").status_code == 404

    def test_delete(self, client: TestClient, memory_store) -> None:  # noqa: ANN001
        body = _upload(client, "pricing.md", b"PRICING\nPro plan $50/mo.").json()

        response = client.delete(f"/documents/{body['id']}")

        assert response.status_code == 204
        assert memory_store.rows == []
        assert client.get(f"/products/{body['productId']}/documents").json() == []
