import pytest
from conftest import FakeEmbeddingsClient, FakeVectorStore
from fastapi.testclient import TestClient
from pydantic import SecretStr

from avatar_knowledge.api import routes
from avatar_knowledge.config import settings
from avatar_knowledge.exceptions import EmbeddingError, PartialUpsertError
from avatar_knowledge.main import app
from avatar_knowledge.retrieval.service import RetrievalService
from avatar_knowledge.vector_store.base import QueryMatch


@pytest.fixture
def client():
    # no `with` block: the lifespan would build real clients
    yield TestClient(app)
    app.state.retrieval_service = None


def install_service(store, embeddings=None):
    app.state.retrieval_service = RetrievalService(
        vector_store=store, embeddings_client=embeddings or FakeEmbeddingsClient()
    )


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_search_returns_context_and_sources(client):
    install_service(FakeVectorStore(matches=[QueryMatch(score=0.82, text="X is ...", source="x.txt")]))

    response = client.post("/knowledge-search", json={"query": "What is X?"})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["context"] == "\n\n【参考情報1】: X is ..."
    assert body["sources"] == [{"score": 0.82, "text": "X is ...", "source": "x.txt"}]


def test_question_key_is_accepted(client):
    store = FakeVectorStore(matches=[QueryMatch(score=0.5, text="answer", source="a.md")])
    install_service(store)

    body = client.post("/knowledge-search", json={"question": "what?"}).json()

    assert body["success"] is True
    assert len(store.queries) == 1


@pytest.mark.parametrize(
    "kwargs",
    [
        {"json": {"query": ""}},
        {"json": {"query": "   "}},
        {"json": {}},
        {"content": b"{not json", "headers": {"Content-Type": "application/json"}},
        {"json": ["not", "an", "object"]},
    ],
)
def test_blank_or_malformed_query_answers_200_without_search(client, kwargs):
    store = FakeVectorStore()
    install_service(store)

    response = client.post("/knowledge-search", **kwargs)

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is False
    assert body["context"] == ""
    assert store.queries == []


def test_unconfigured_service_answers_200(client):
    app.state.retrieval_service = None

    response = client.post("/knowledge-search", json={"query": "What is X?"})

    assert response.status_code == 200
    assert response.json()["success"] is False
    assert response.json()["error"] == routes.NOT_CONFIGURED_ERROR


def test_embedding_outage_answers_200(client):
    install_service(FakeVectorStore(), FakeEmbeddingsClient(error=EmbeddingError("down")))

    response = client.post("/knowledge-search", json={"query": "What is X?"})

    assert response.status_code == 200
    assert response.json()["success"] is False
    assert response.json()["error"]


@pytest.fixture
def admin_env(monkeypatch, tmp_path):
    store = FakeVectorStore()
    monkeypatch.setattr(settings, "admin_token", SecretStr("secret"))
    monkeypatch.setattr(settings, "documents_dir", str(tmp_path))
    monkeypatch.setattr(routes, "get_vector_store", lambda: store)
    monkeypatch.setattr(routes, "EmbeddingsClient", FakeEmbeddingsClient)
    return store, tmp_path


def test_admin_reindex_indexes_documents(client, admin_env):
    store, docs = admin_env
    (docs / "faq.txt").write_text("Opening hours are nine to five.", encoding="utf-8")

    response = client.post(
        "/admin/reindex",
        json={"mode": "full", "clear": True},
        headers={"X-Admin-Token": "secret"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "completed"
    assert body["indexed_chunks"] == 1
    assert set(store.records) == {"faq.txt_1"}
    assert store.cleared == 1


def test_admin_reindex_resume_skips_existing(client, admin_env):
    store, docs = admin_env
    (docs / "faq.txt").write_text("Opening hours are nine to five.", encoding="utf-8")
    headers = {"X-Admin-Token": "secret"}
    client.post("/admin/reindex", json={"mode": "full"}, headers=headers)

    body = client.post("/admin/reindex", json={"mode": "resume"}, headers=headers).json()

    assert body["indexed_chunks"] == 0
    assert body["skipped_chunks"] == 1


def test_admin_reindex_rejects_wrong_token(client, admin_env):
    response = client.post("/admin/reindex", json={}, headers={"X-Admin-Token": "nope"})
    assert response.status_code == 403


def test_admin_reindex_requires_configured_token(client, monkeypatch):
    monkeypatch.setattr(settings, "admin_token", None)
    response = client.post("/admin/reindex", json={}, headers={"X-Admin-Token": "anything"})
    assert response.status_code == 500


def test_admin_reindex_reports_counts_when_stopped_early(client, admin_env, monkeypatch):
    _, docs = admin_env
    (docs / "a.txt").write_text("alpha", encoding="utf-8")
    (docs / "b.txt").write_text("beta", encoding="utf-8")

    class FailingStore(FakeVectorStore):
        def upsert(self, records):
            raise PartialUpsertError(written=1, attempted=len(records))

    monkeypatch.setattr(routes, "get_vector_store", FailingStore)

    response = client.post("/admin/reindex", json={"mode": "full"}, headers={"X-Admin-Token": "secret"})

    assert response.status_code == 500
    body = response.json()
    assert body["status"] == "partial"
    assert body["indexed_chunks"] == 1
    assert body["attempted_chunks"] == 2


def test_openapi_documents_search_body(client):
    operation = client.get("/openapi.json").json()["paths"]["/knowledge-search"]["post"]
    schema = operation["requestBody"]["content"]["application/json"]["schema"]
    assert "query" in schema["properties"]
