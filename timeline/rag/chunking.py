"""Sliding-window text chunker"""

from dataclasses import dataclass, asdict
from typing import Any, Dict, List


@dataclass(frozen=True)
class TextChunk:
    """Contiguous slice of a document; end offset is exclusive"""
    index: int
    start: int
    end: int
    text: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def chunk_text(text: str, max_chars: int, overlap_chars: int) -> List[TextChunk]:
    """
    Split text into fixed-size overlapping windows

    Every window except the last is exactly max_chars long, and consecutive
    windows share exactly the clamped overlap.

    Args:
        text: Raw text
        max_chars: Window size in characters (>= 1)
        overlap_chars: Characters shared by consecutive windows, clamped to [0, max_chars - 1]

    Returns:
        Chunks in document order
    """
    if max_chars < 1:
        raise ValueError("max_chars must be at least 1")

    if not text:
        return []

    overlap = min(max(overlap_chars, 0), max_chars - 1)
    length = len(text)
    chunks = []
    start = 0
    index = 0

    while start < length:
        end = min(start + max_chars, length)
        chunks.append(TextChunk(index=index, start=start, end=end, text=text[start:end]))
        if end >= length:
            break
        start = end - overlap
        index += 1

    return chunks
