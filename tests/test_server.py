"""API tests against an in-memory pipeline (no lifespan, no network)."""
import pytest
from fastapi.testclient import TestClient

import app.server as server
from novel_rag.config import AppConfig
from novel_rag.embedding.embedder import HashEmbedder
from novel_rag.exceptions import GatewayError
from novel_rag.serving.pipeline import NovelRAGPipeline
from novel_rag.storage.memory import InMemoryStore

from tests.conftest import FakeGateway


@pytest.fixture
def pipeline():
    return NovelRAGPipeline(
        AppConfig(),
        store=InMemoryStore(),
        embedder=HashEmbedder(),
        gateway=FakeGateway(),
    )


@pytest.fixture
def client(pipeline, monkeypatch):
    monkeypatch.setattr(server, "_pipeline", pipeline)
    # No `with` block: the lifespan would replace the injected pipeline.
    return TestClient(server.app)


def _create_novel(client) -> int:
    response = client.post("/api/novels", json={"title": "长夜将明"})
    assert response.status_code == 201
    return response.json()["id"]


class TestWriteRoutes:

    def test_health(self, client):
        body = client.get("/api/health").json()
        assert body["status"] == "ok"
        assert body["dimensions"] == 1536
        assert body["top_k"] == 15

    def test_create_chapter_counts_words(self, client, pipeline):
        novel_id = _create_novel(client)

        response = client.post(
            f"/api/novels/{novel_id}/chapters",
            json={"chapter_number": 1, "title": "开篇", "content": "Hello world 你好世界"},
        )

        assert response.status_code == 201
        assert response.json()["word_count"] == 6
        assert pipeline.store.novels[novel_id].total_words == 6

    def test_chapter_for_unknown_novel_is_404(self, client):
        response = client.post(
            "/api/novels/404/chapters", json={"chapter_number": 1, "title": "开篇", "content": ""}
        )
        assert response.status_code == 404
        assert "Novel not found" in response.json()["detail"]

    def test_update_and_delete(self, client):
        novel_id = _create_novel(client)
        chapter_id = client.post(
            f"/api/novels/{novel_id}/chapters",
            json={"chapter_number": 1, "title": "开篇", "content": "正文"},
        ).json()["id"]

        updated = client.put(f"/api/chapters/{chapter_id}", json={"title": "改名"})
        assert updated.status_code == 200
        assert updated.json()["title"] == "改名"

        assert client.delete(f"/api/chapters/{chapter_id}").status_code == 204
        assert client.delete(f"/api/chapters/{chapter_id}").status_code == 404

    def test_not_ready_is_503(self, monkeypatch):
        monkeypatch.setattr(server, "_pipeline", None)
        assert TestClient(server.app).get("/api/health").status_code == 503


class TestAIRoutes:

    def test_outline(self, client):
        novel_id = _create_novel(client)

        response = client.post("/api/ai/outline", json={"novel_id": novel_id, "chapter_number": 1})

        assert response.status_code == 200
        body = response.json()
        assert body["theme"].startswith("少年离开山村")
        assert body["missing_sections"] == []

    def test_outline_forwards_user_endpoint(self, client, pipeline):
        novel_id = _create_novel(client)

        client.post(
            "/api/ai/outline",
            json={
                "novel_id": novel_id,
                "chapter_number": 1,
                "ai_config": {"api_key": "sk-user", "base_url": "https://llm.example.com"},
            },
        )

        forwarded = pipeline.gateway.calls[-1][1]
        assert forwarded.uses_user_endpoint

    def test_expand(self, client, pipeline):
        pipeline.gateway.response = "正文 text"
        novel_id = _create_novel(client)

        response = client.post(
            "/api/ai/expand", json={"novel_id": novel_id, "outline": "大纲", "target_words": 3000}
        )

        assert response.status_code == 200
        assert response.json() == {"content": "正文 text", "word_count": 3}
        assert "约 3000 字" in pipeline.gateway.last_prompt

    def test_gateway_failure_is_502(self, client, pipeline):
        novel_id = _create_novel(client)
        pipeline.gateway.error = GatewayError("API call failed: Too Many Requests", status_code=429)

        response = client.post("/api/ai/outline", json={"novel_id": novel_id, "chapter_number": 1})

        assert response.status_code == 502
        assert response.json()["upstream_status"] == 429

    def test_unknown_novel_is_404(self, client):
        response = client.post("/api/ai/expand", json={"novel_id": 404, "outline": "大纲"})
        assert response.status_code == 404
