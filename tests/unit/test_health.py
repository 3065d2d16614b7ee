"""Test health endpoint"""

from timeline.main import app
from timeline.rag.factory import get_vector_store


class DownVectorStore:
    def health_check(self):
        return False


def test_health_check(client):
    """Test health check endpoint"""
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["dependencies"]["database"] == "connected"
    assert data["dependencies"]["qdrant"] == "connected"
    assert data["dependencies"]["redis"] == "disabled"


def test_health_check_reports_unavailable_vector_store(client):
    app.dependency_overrides[get_vector_store] = lambda: DownVectorStore()

    response = client.get("/health")

    assert response.status_code == 503
    assert response.json()["dependencies"]["qdrant"] == "error"


def test_root(client):
    response = client.get("/")
    assert response.status_code == 200
    assert response.json()["version"] == "1.0.0"
