"""Pytest configuration and fixtures"""

import os
from typing import Dict

# Must be set before timeline is imported: settings are read at import time
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["EMBED_CACHE_ENABLED"] = "false"
os.environ["SYNC_INTERVAL_MINUTES"] = "0"
os.environ["JWT_SECRET_KEY"] = "test-secret"

import pytest
from fastapi.testclient import TestClient
from qdrant_client import QdrantClient
from sqlalchemy.orm import sessionmaker

from tests.fakes import OWNER_ID, VECTOR_SIZE, FakeDriveClient, FakeEmbeddings
from timeline.api.deps import get_drive_client
from timeline.config import Settings, get_settings
from timeline.database.base import Base
from timeline.database.session import create_db_engine, get_db
from timeline.main import app
from timeline.models.drive_file_ref import DriveFileRef
from timeline.rag.cache import EmbeddingCache
from timeline.rag.factory import get_embedding_cache, get_embeddings_service, get_generator, get_vector_store
from timeline.rag.vector_store import VectorStore
from timeline.security.auth import create_access_token
from timeline.services.usage import UsageLedger


@pytest.fixture
def settings():
    """Settings with small budgets so tests stay readable"""
    return Settings(
        DATABASE_URL="sqlite://",
        EMBED_CACHE_ENABLED=False,
        SYNC_INTERVAL_MINUTES=0,
        JWT_SECRET_KEY="test-secret",
        EMBEDDING_VECTOR_SIZE=VECTOR_SIZE,
        CHUNK_MAX_CHARS=20,
        CHUNK_OVERLAP_CHARS=5,
        EMBED_RETRY_BASE_DELAY=0.0,
        DRIVE_RETRY_BASE_DELAY=0.0
    )


@pytest.fixture
def engine():
    engine = create_db_engine("sqlite://")
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db(session_factory):
    """Database session fixture"""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def vector_store():
    """Qdrant running in-process"""
    client = QdrantClient(location=":memory:")
    yield VectorStore(client, "test_chunks", VECTOR_SIZE)
    client.close()


@pytest.fixture
def fake_embeddings():
    return FakeEmbeddings()


@pytest.fixture
def drive():
    return FakeDriveClient()


@pytest.fixture
def usage(db, settings):
    return UsageLedger(db, settings)


@pytest.fixture
def add_file_ref(db):
    """Create a DriveFileRef row"""
    def factory(owner_id: str = OWNER_ID, drive_file_id: str = "file-1", **fields) -> DriveFileRef:
        fields.setdefault("name", f"{drive_file_id}.txt")
        fields.setdefault("mime_type", "text/plain")
        ref = DriveFileRef(owner_id=owner_id, drive_file_id=drive_file_id, **fields)
        db.add(ref)
        db.commit()
        db.refresh(ref)
        return ref
    return factory


@pytest.fixture
def auth_headers(settings):
    def factory(owner_id: str = OWNER_ID) -> Dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(owner_id, settings)}"}
    return factory


@pytest.fixture(scope="function")
def client(db, settings, vector_store, fake_embeddings, drive):
    """Test client with storage and upstream clients replaced"""
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_vector_store] = lambda: vector_store
    app.dependency_overrides[get_embedding_cache] = lambda: EmbeddingCache(None)
    app.dependency_overrides[get_embeddings_service] = lambda: fake_embeddings
    app.dependency_overrides[get_drive_client] = lambda: drive

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def install_generator():
    """Serve chat requests with the given Generator"""
    def install(generator):
        app.dependency_overrides[get_generator] = lambda: generator
    return install
