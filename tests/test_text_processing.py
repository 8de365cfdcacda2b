"""
Unit tests for text processing (clean_text, chunk_text) and keyword ranking of chunks.
"""

import pytest

from agentrag.schemas.strategy import ChunkingMethod
from agentrag.services.retrieval_service import query_terms, rank_chunks
from agentrag.services.text_processing import chunk_text, clean_text


class TestCleanText:
    """Tests for clean_text()."""

    def test_empty_returns_empty(self) -> None:
        assert clean_text("") == ""
        assert clean_text("   ") == ""
        assert clean_text("\n\n") == ""

    def test_normalizes_inner_lines_and_dedupes(self) -> None:
        assert clean_text("  hello   \n\n  world  ") == "hello\n\nworld"
        assert clean_text("line1\n  line1  \nline2") == "line1\nline2"

    def test_strips_html_keeping_block_breaks(self) -> None:
        assert clean_text("<p>Hello <b>world</b></p><p>Second</p>") == "Hello world\n\nSecond"

    def test_drops_script_bodies(self) -> None:
        assert clean_text("<script>var x = 1;</script>Visible text") == "Visible text"


class TestChunkText:
    """Tests for chunk_text() across chunking methods."""

    def test_empty_returns_empty_list(self) -> None:
        assert chunk_text("") == []
        assert chunk_text("   ") == []

    def test_short_text_returns_single_chunk(self) -> None:
        short = "This is a short paragraph."
        assert chunk_text(short, chunk_size=500, overlap=50) == [short]

    def test_chunks_never_exceed_chunk_size(self) -> None:
        text = " ".join(f"Sentence number {i} here." for i in range(25))
        chunks = chunk_text(text, chunk_size=80, overlap=15, method=ChunkingMethod.SENTENCE)
        assert len(chunks) >= 2
        for c in chunks:
            assert 0 < len(c) <= 80
            assert c.strip() == c

    def test_overlap_carries_last_sentence_forward(self) -> None:
        text = " ".join(f"Sentence number {i} here." for i in range(10))
        chunks = chunk_text(text, chunk_size=80, overlap=30, method=ChunkingMethod.SENTENCE)
        last_sentence = chunks[0].rstrip(".").split(". ")[-1]
        assert chunks[1].startswith(last_sentence)

    def test_paragraph_method_splits_on_blank_lines(self) -> None:
        text = "Para one first line.\n\nPara two here.\n\nPara three."
        chunks = chunk_text(text, chunk_size=30, overlap=0, method=ChunkingMethod.PARAGRAPH)
        assert chunks == ["Para one first line.", "Para two here.\n\nPara three."]

    def test_section_method_does_not_cross_headings(self) -> None:
        text = "# Intro\nShort intro.\n# Usage\nRun it."
        chunks = chunk_text(text, chunk_size=1000, overlap=0, method=ChunkingMethod.SECTION)
        assert chunks == ["# Intro\nShort intro.", "# Usage\nRun it."]

    def test_unbreakable_text_is_hard_cut(self) -> None:
        chunks = chunk_text("x" * 50, chunk_size=20, method=ChunkingMethod.SENTENCE)
        assert chunks == ["x" * 20, "x" * 20, "x" * 10]

    def test_invalid_chunk_size_raises(self) -> None:
        with pytest.raises(ValueError):
            chunk_text("some text", chunk_size=0)


class TestRankChunks:
    """Tests for keyword ranking of chunks."""

    def test_query_terms_drop_stopwords_and_duplicates(self) -> None:
        assert query_terms("What is the cat food, and the CAT?") == ["cat", "food"]

    def test_more_matched_terms_rank_first(self) -> None:
        chunks = ["The cat sat.", "Dogs bark loudly at cats.", "Cats and cat food"]
        top = rank_chunks("cat food", chunks, top_k=2)
        assert [s.chunk_id for s in top] == [2, 0]
        assert top[0].score > top[1].score

    def test_no_query_terms_keeps_document_order(self) -> None:
        top = rank_chunks("what is the", ["a", "b", "c"], top_k=2)
        assert [s.chunk_id for s in top] == [0, 1]
        assert all(s.score == 0 for s in top)
