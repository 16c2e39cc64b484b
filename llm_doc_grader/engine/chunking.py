import re
from typing import List, Sequence

from ..errors import ChunkingError

DEFAULT_WORD_THRESHOLD = 1000

_PARAGRAPH_BREAK = re.compile(r"\n\s*\n")


def word_count(text: str) -> int:
    return len((text or "").split())


def split_paragraphs(text: str) -> List[str]:
    """Blank-line-delimited paragraphs, stripped, empties dropped."""
    return [p.strip() for p in _PARAGRAPH_BREAK.split(text or "") if p.strip()]


def chunk(text: str, word_threshold: int = DEFAULT_WORD_THRESHOLD) -> List[str]:
    """
    Split text into ordered, paragraph-aligned chunks.

    Text at or under the threshold comes back as a single chunk equal to the
    input. Longer text is packed paragraph by paragraph so that each chunk
    stays within the threshold; a paragraph that alone exceeds it becomes its
    own chunk.

    Raises:
        ChunkingError: if the text is empty or yields no chunks.
    """
    if word_threshold <= 0:
        raise ValueError("word_threshold must be positive.")
    if not text or not text.strip():
        raise ChunkingError("Cannot chunk empty text.")

    if word_count(text) <= word_threshold:
        return [text]

    chunks: List[str] = []
    current: List[str] = []
    current_words = 0

    for paragraph in split_paragraphs(text):
        words = word_count(paragraph)
        # Start a new chunk if adding this paragraph would exceed the limit
        if current and current_words + words > word_threshold:
            chunks.append("\n\n".join(current))
            current, current_words = [], 0
        current.append(paragraph)
        current_words += words

    if current:
        chunks.append("\n\n".join(current))

    if not chunks:
        raise ChunkingError("Text split produced zero chunks.")
    return chunks


def reassemble(chunks: Sequence[str]) -> str:
    """Join chunk outputs in their original order."""
    return "\n\n".join(c.strip() for c in chunks)
