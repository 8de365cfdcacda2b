"""
Text processing for strategy execution: cleaning and chunking.

Each chunking method splits on its own separator hierarchy (coarsest first) and
then merges the pieces back into chunks of at most chunk_size characters, carrying
up to chunk_overlap characters of trailing context into the next chunk.
"""

import re
import unicodedata

from agentrag.schemas.strategy import ChunkingMethod

SEPARATORS: dict[ChunkingMethod, list[str]] = {
    ChunkingMethod.SENTENCE: [". ", "! ", "? ", "\n", " "],
    ChunkingMethod.PARAGRAPH: ["\n\n", "\n", ". ", "! ", "? ", " "],
    ChunkingMethod.SECTION: ["\n\n\n", "\n\n", "\n", ". ", "! ", "? ", " "],
    ChunkingMethod.SEMANTIC: ["\n\n\n", "\n\n", "\n", ". ", "! ", "? ", "; ", ", ", " "],
}

_TAG_RE = re.compile(r"<(script|style)[^>]*>.*?</\1>|<[^>]+>", re.IGNORECASE | re.DOTALL)
_BLOCK_TAG_RE = re.compile(r"</?(?:p|div|section|article|h[1-6]|li|tr|br|table|ul|ol|pre)[^>]*>", re.IGNORECASE)
_HEADING_START_RE = re.compile(r"\n(?=\s{0,3}#{1,6}\s)")


def clean_text(text: str) -> str:
    """
    Normalize raw content before chunking: unicode NFKC, HTML tags removed (block tags
    become line breaks), lines stripped, consecutive duplicate lines and runs of blank
    lines collapsed.
    """
    if not text or not text.strip():
        return ""
    text = unicodedata.normalize("NFKC", text)
    text = _BLOCK_TAG_RE.sub("\n", text)
    text = _TAG_RE.sub(" ", text)
    result: list[str] = []
    for line in (re.sub(r"[ \t]+", " ", ln).strip() for ln in text.splitlines()):
        if line == "":
            if result and result[-1] != "":
                result.append("")
        elif not result or result[-1] != line:
            result.append(line)
    return "\n".join(result).strip()


def _split_recursive(text: str, separators: list[str], chunk_size: int) -> list[str]:
    """Split into pieces no longer than chunk_size, keeping each separator on its piece."""
    if len(text) <= chunk_size:
        return [text]
    for i, sep in enumerate(separators):
        if sep not in text:
            continue
        parts = text.split(sep)
        pieces: list[str] = []
        for j, part in enumerate(parts):
            piece = part + sep if j < len(parts) - 1 else part
            if not piece:
                continue
            if len(piece) <= chunk_size:
                pieces.append(piece)
            else:
                pieces.extend(_split_recursive(piece, separators[i + 1 :], chunk_size))
        return pieces
    return [text[k : k + chunk_size] for k in range(0, len(text), chunk_size)]


def _merge(pieces: list[str], chunk_size: int, overlap: int) -> list[str]:
    chunks: list[str] = []
    current: list[str] = []
    current_len = 0
    for piece in pieces:
        if current and current_len + len(piece) > chunk_size:
            chunks.append("".join(current).strip())
            # Carry trailing pieces into the next chunk as overlap
            carried: list[str] = []
            carried_len = 0
            for prev in reversed(current):
                if carried_len + len(prev) > overlap or carried_len + len(prev) + len(piece) > chunk_size:
                    break
                carried.insert(0, prev)
                carried_len += len(prev)
            current, current_len = carried, carried_len
        current.append(piece)
        current_len += len(piece)
    if current:
        chunks.append("".join(current).strip())
    return [c for c in chunks if c]


def chunk_text(
    text: str,
    chunk_size: int = 1024,
    overlap: int = 100,
    method: ChunkingMethod = ChunkingMethod.PARAGRAPH,
) -> list[str]:
    """
    Split text into overlapping chunks using the separators of the given method.
    Section chunking never lets a chunk cross a Markdown heading.
    """
    if not text or not text.strip():
        return []
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    overlap = max(0, min(overlap, chunk_size - 1))
    text = text.strip()
    separators = SEPARATORS[method]

    if method == ChunkingMethod.SECTION:
        chunks: list[str] = []
        for section in _HEADING_START_RE.split(text):
            if section.strip():
                chunks.extend(_merge(_split_recursive(section, separators, chunk_size), chunk_size, overlap))
        return chunks
    return _merge(_split_recursive(text, separators, chunk_size), chunk_size, overlap)
