"""Unit tests for trace API routes."""

import pytest
from fastapi.testclient import TestClient

from src.shared.config import Settings


class TestTraceRoutes:
    """Tests for POST /traces/analyze."""

    @pytest.fixture
    def client(self):
        from src.api.dependencies import get_settings
        from src.main import app

        app.dependency_overrides[get_settings] = lambda: Settings(parse_timeout=10.0)
        yield TestClient(app)
        app.dependency_overrides.clear()

    def test_analyze(self, client: TestClient, sample_trace: str) -> None:
        response = client.post("/traces/analyze", json={"content": sample_trace, "top_n": 5})

        assert response.status_code == 200
        data = response.json()
        assert data["solver"] == "Z3"
        assert data["version"] == "4.12.2"
        assert data["timed_out"] is False
        assert data["instantiation_count"] == 2
        assert data["graph_edges"] == 1
        assert data["longest_chain"] == [13, 19]
        assert data["top_quantifiers"] == [{"name": "q1", "instances": 2, "cost": 2.0}]

    def test_malformed_trace(self, client: TestClient, malformed_trace: str) -> None:
        response = client.post("/traces/analyze", json={"content": malformed_trace})

        assert response.status_code == 422
        assert response.json()["detail"].startswith("line 2: Unknown term #99")

    def test_empty_content_rejected(self, client: TestClient) -> None:
        assert client.post("/traces/analyze", json={"content": ""}).status_code == 422

    def test_top_n_range(self, client: TestClient, sample_trace: str) -> None:
        response = client.post("/traces/analyze", json={"content": sample_trace, "top_n": 0})
        assert response.status_code == 422
