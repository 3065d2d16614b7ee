"""Test the embedding stage"""

import pytest

from tests.fakes import OWNER_ID
from timeline.exceptions import QuotaExceededException
from timeline.models.chunk_embedding import ChunkEmbedding
from timeline.models.derived_artifact import ArtifactType, DerivedArtifact
from timeline.models.drive_file_ref import ContentStatus
from timeline.services.embedding_pipeline import EmbeddingPipeline
from timeline.services.ingestion import IngestionPipeline
from timeline.services.usage import UsageKind, UsageLedger

SAMPLE = "Alpha beta gamma. Delta epsilon zeta."


@pytest.fixture
def ingest(db, drive, settings, add_file_ref):
    """Ingest text for a file, creating its ref on first use"""
    refs = {}

    async def run(drive_file_id: str, text: str):
        if drive_file_id not in refs:
            refs[drive_file_id] = add_file_ref(drive_file_id=drive_file_id)
        ref = refs[drive_file_id]
        ref.content_status = ContentStatus.PENDING
        db.commit()
        drive.set_text(drive_file_id, text)
        await IngestionPipeline(db, drive, settings).run(OWNER_ID)
        db.refresh(ref)
        return ref

    return run


def make_pipeline(db, fake_embeddings, vector_store, settings):
    return EmbeddingPipeline(db, fake_embeddings, vector_store, UsageLedger(db, settings), settings)


@pytest.mark.asyncio
async def test_missing_chunks_are_embedded_once(db, fake_embeddings, vector_store, settings, ingest):
    ref = await ingest("f1", SAMPLE)
    pipeline = make_pipeline(db, fake_embeddings, vector_store, settings)

    first = await pipeline.run(OWNER_ID)

    assert first.processed_artifacts == 1
    assert first.embedded_chunks == 3
    assert first.done is True
    rows = db.query(ChunkEmbedding).order_by(ChunkEmbedding.chunk_index).all()
    assert [row.chunk_index for row in rows] == [0, 1, 2]
    assert all(row.artifact_id == ref.current_chunks_artifact_id for row in rows)
    assert vector_store.client.count(vector_store.collection_name).count == 3

    second = await pipeline.run(OWNER_ID)

    assert second.embedded_chunks == 0
    assert second.skipped_chunks == 3
    assert second.done is True
    assert len(fake_embeddings.calls) == 1


@pytest.mark.asyncio
async def test_changed_text_is_embedded_under_the_new_hash(db, fake_embeddings, vector_store, settings, ingest):
    pipeline = make_pipeline(db, fake_embeddings, vector_store, settings)
    await ingest("f1", "Alpha.")
    await pipeline.run(OWNER_ID)
    old_rows = db.query(ChunkEmbedding).all()

    ref = await ingest("f1", "Beta.")
    summary = await pipeline.run(OWNER_ID)

    assert summary.embedded_chunks == 1
    rows = db.query(ChunkEmbedding).all()
    assert len(rows) == 2
    assert old_rows[0].id in {row.id for row in rows}
    new_row = [row for row in rows if row.artifact_id == ref.current_chunks_artifact_id][0]
    assert new_row.chunk_text == "Beta."


@pytest.mark.asyncio
async def test_superseded_content_is_not_embedded(db, fake_embeddings, vector_store, settings, ingest):
    first = await ingest("f1", "Alpha.")
    old_chunks_id = first.current_chunks_artifact_id
    ref = await ingest("f1", "Beta.")

    summary = await make_pipeline(db, fake_embeddings, vector_store, settings).run(OWNER_ID)

    assert summary.processed_artifacts == 1
    assert summary.embedded_chunks == 1
    assert db.query(ChunkEmbedding).filter(ChunkEmbedding.artifact_id == old_chunks_id).count() == 0
    assert [row.chunk_text for row in db.query(ChunkEmbedding).all()] == ["Beta."]
    assert ref.current_chunks_artifact_id != old_chunks_id
    assert UsageLedger(db, settings).used(OWNER_ID, UsageKind.EMBED_CHUNKS) == 1


@pytest.mark.asyncio
async def test_run_cap_leaves_work_for_the_next_run(db, fake_embeddings, vector_store, settings, ingest):
    await ingest("f1", SAMPLE)
    pipeline = make_pipeline(db, fake_embeddings, vector_store, settings)

    first = await pipeline.run(OWNER_ID, max_chunks=2)
    second = await pipeline.run(OWNER_ID, max_chunks=2)

    assert (first.embedded_chunks, first.done) == (2, False)
    assert (second.embedded_chunks, second.done) == (1, True)
    assert db.query(ChunkEmbedding).count() == 3


@pytest.mark.asyncio
async def test_malformed_artifacts_are_counted_and_skipped(db, fake_embeddings, vector_store, settings, ingest):
    broken_ref = await ingest("f1", "Gamma.")
    await ingest("f2", "Delta.")
    broken = DerivedArtifact(
        owner_id=OWNER_ID,
        drive_file_ref_id=broken_ref.id,
        type=ArtifactType.CHUNKS_JSON,
        content_hash="broken",
        content_json={"chunks": "not a list"}
    )
    db.add(broken)
    db.flush()
    broken_ref.current_chunks_artifact_id = broken.id
    db.commit()

    summary = await make_pipeline(db, fake_embeddings, vector_store, settings).run(OWNER_ID)

    assert summary.invalid_artifacts == 1
    assert summary.embedded_chunks == 1
    assert summary.done is True
    assert [row.chunk_text for row in db.query(ChunkEmbedding).all()] == ["Delta."]


@pytest.mark.asyncio
async def test_run_can_target_one_file(db, fake_embeddings, vector_store, settings, ingest):
    first = await ingest("f1", "Alpha.")
    await ingest("f2", "Beta.")

    summary = await make_pipeline(db, fake_embeddings, vector_store, settings).run(
        OWNER_ID, drive_file_ref_id=first.id
    )

    assert summary.embedded_chunks == 1
    assert [row.drive_file_ref_id for row in db.query(ChunkEmbedding).all()] == [first.id]


@pytest.mark.asyncio
async def test_daily_quota_caps_and_then_blocks(db, fake_embeddings, vector_store, settings, ingest):
    limited = settings.model_copy(update={"MAX_EMBED_CHUNKS_PER_DAY": 2})
    await ingest("f1", SAMPLE)
    pipeline = make_pipeline(db, fake_embeddings, vector_store, limited)

    summary = await pipeline.run(OWNER_ID)
    assert summary.embedded_chunks == 2
    assert summary.done is False
    assert UsageLedger(db, limited).used(OWNER_ID, UsageKind.EMBED_CHUNKS) == 2

    calls_before = len(fake_embeddings.calls)
    with pytest.raises(QuotaExceededException) as exc_info:
        await pipeline.run(OWNER_ID)

    assert exc_info.value.remaining == 0
    assert len(fake_embeddings.calls) == calls_before
