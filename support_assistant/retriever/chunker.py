"""
Text chunking for document segmentation.

Sentence-accumulating chunker with an approximate word-level overlap.
"""

import re
from typing import List

from support_assistant.models import DocumentChunk


SENTENCE_BOUNDARY = re.compile(r'[.!?\n]+')
SENTENCE_JOINER = '. '

# Rough average characters per word; converts the character overlap budget
# into a number of trailing words carried into the next chunk.
CHARS_PER_WORD = 6


def split_sentences(text: str) -> List[str]:
    """Split on sentence punctuation or newlines; trimmed, non-empty."""
    return [s.strip() for s in SENTENCE_BOUNDARY.split(text) if s.strip()]


class TextChunker:
    """Chunks text into overlapping segments for embedding."""

    def __init__(self, max_chunk_size: int = 1000, overlap: int = 100):
        """
        Initialize chunker.

        Args:
            max_chunk_size: Maximum chunk size in characters.
            overlap: Overlap budget in characters between consecutive chunks.
        """
        if max_chunk_size <= 0:
            raise ValueError("max_chunk_size must be positive")
        if overlap < 0:
            raise ValueError("overlap must be non-negative")

        self.max_chunk_size = max_chunk_size
        self.overlap = overlap

    @property
    def overlap_words(self) -> int:
        return self.overlap // CHARS_PER_WORD

    def chunk_text(self, text: str, source_name: str = "unknown") -> List[DocumentChunk]:
        """
        Chunk text into overlapping segments.

        Args:
            text: Text to chunk.
            source_name: Name of the originating file; prefixes chunk ids.

        Returns:
            Chunks in document order. Empty or blank text yields [].
        """
        pieces: List[str] = []
        current = ''

        for sentence in split_sentences(text):
            if not current:
                current = sentence
                continue

            if len(current) + len(SENTENCE_JOINER) + len(sentence) <= self.max_chunk_size:
                current = current + SENTENCE_JOINER + sentence
                continue

            pieces.append(current.strip())
            current = self._seed_with_overlap(current, sentence)

        if current.strip():
            pieces.append(current.strip())

        total = len(pieces)
        return [
            DocumentChunk(
                id=f"{source_name}-chunk-{index}",
                text=piece,
                source_name=source_name,
                chunk_index=index,
                total_chunks=total,
            )
            for index, piece in enumerate(pieces)
        ]

    def _seed_with_overlap(self, closed: str, sentence: str) -> str:
        """Start the next buffer with the tail words of the closed one."""
        n = self.overlap_words
        if n <= 0:
            return sentence

        tail = ' '.join(closed.split(' ')[-n:])
        seeded = f"{tail} {sentence}"
        # Drop the overlap rather than break the size bound
        if len(seeded) > self.max_chunk_size:
            return sentence
        return seeded


def get_chunker(config: dict) -> TextChunker:
    """Get configured chunker."""
    return TextChunker(
        max_chunk_size=config.get('max_chunk_size', 1000),
        overlap=config.get('overlap', 100),
    )
