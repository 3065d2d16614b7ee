"""Test the sliding-window chunker"""

import pytest

from timeline.rag.chunking import TextChunk, chunk_text

SAMPLE = "Alpha beta gamma. Delta epsilon zeta."


def test_sample_text_produces_three_windows():
    chunks = chunk_text(SAMPLE, 20, 5)

    assert [(c.start, c.end) for c in chunks] == [(0, 20), (15, 35), (30, 37)]
    assert [c.index for c in chunks] == [0, 1, 2]
    assert chunks[0].text == "Alpha beta gamma. De"
    assert chunks[-1].text == SAMPLE[30:]


@pytest.mark.parametrize("max_chars,overlap", [(1, 0), (7, 3), (20, 5), (50, 49), (100, 10)])
def test_windows_cover_text_and_overlap_exactly(max_chars, overlap):
    text = "The quick brown fox jumps over the lazy dog. " * 5
    chunks = chunk_text(text, max_chars, overlap)

    assert chunks[0].start == 0
    assert chunks[-1].end == len(text)
    for previous, current in zip(chunks, chunks[1:]):
        assert previous.end - current.start == overlap
        assert previous.end - previous.start == max_chars
    for chunk in chunks:
        assert chunk.text == text[chunk.start:chunk.end]


def test_empty_text_has_no_chunks():
    assert chunk_text("", 20, 5) == []


def test_short_text_is_one_chunk():
    assert chunk_text("tiny", 20, 5) == [TextChunk(index=0, start=0, end=4, text="tiny")]


def test_overlap_is_clamped():
    chunks = chunk_text("abcdefghij", 4, 10)
    # Overlap clamps to max_chars - 1, so every window advances by one
    assert [c.start for c in chunks] == list(range(0, 7))

    no_overlap = chunk_text("abcdefghij", 4, -3)
    assert [(c.start, c.end) for c in no_overlap] == [(0, 4), (4, 8), (8, 10)]


def test_chunking_is_deterministic():
    assert chunk_text(SAMPLE, 9, 2) == chunk_text(SAMPLE, 9, 2)


def test_max_chars_must_be_positive():
    with pytest.raises(ValueError):
        chunk_text(SAMPLE, 0, 0)


def test_to_dict_matches_payload_fields():
    assert chunk_text("abc", 5, 1)[0].to_dict() == {"index": 0, "start": 0, "end": 3, "text": "abc"}
