"""Unit tests for context assembly, prompt building and citation formatting."""

from __future__ import annotations

import pytest

from ragpipe.config.rag_config import RagConfig
from ragpipe.models.rag import RetrievalResult, RetrievedChunk
from ragpipe.services.retrieval.context_assembler import (
    DEFAULT_SYSTEM_PROMPT,
    NO_CONTEXT_MARKER,
    ContextAssembler,
    estimate_tokens,
    format_chunk_for_display,
    truncate_context,
)


def _chunk(index: int, content: str, name: str = "Handbook", score: float = 0.9) -> RetrievedChunk:
    return RetrievedChunk(
        id=f"doc-1-chunk-{index}",
        document_id="doc-1",
        document_name=name,
        content=content,
        chunk_index=index,
        start_char=index * 10,
        end_char=index * 10 + len(content),
        score=score,
    )


def _result(*chunks: RetrievedChunk, query: str = "what is it?") -> RetrievalResult:
    return RetrievalResult(chunks=list(chunks), query=query, latency_ms=12.5)


class TestEstimates:
    def test_four_characters_per_token_rounded_up(self) -> None:
        assert estimate_tokens("") == 0
        assert estimate_tokens("abcd") == 1
        assert estimate_tokens("abcde") == 2

    def test_estimate_is_monotonic_in_length(self) -> None:
        estimates = [estimate_tokens("x" * n) for n in range(0, 200)]
        assert estimates == sorted(estimates)

    def test_truncate_prefers_sentence_boundary_near_end(self) -> None:
        text = "a" * 35 + "." + "b" * 20
        assert truncate_context(text, 10) == "a" * 35 + "."

    def test_truncate_hard_cuts_without_boundary(self) -> None:
        assert truncate_context("a" * 100, 10) == "a" * 40 + "..."

    def test_truncate_leaves_short_text(self) -> None:
        assert truncate_context("short", 10) == "short"

    def test_format_chunk_for_display(self) -> None:
        shown = format_chunk_for_display(_chunk(0, "x" * 300), max_length=10)
        assert shown == "[Handbook] " + "x" * 10 + "..."


class TestBuildContext:
    """Chunks are added in rank order until the token budget is reached."""

    def test_numbered_markers_and_citations(self) -> None:
        assembler = ContextAssembler(RagConfig())
        assembled = assembler.build_context(
            _result(_chunk(0, "First chunk."), _chunk(1, "Second chunk.", name="FAQ"))
        )

        assert assembled.context == "[1]\nFirst chunk.\n\n[2]\nSecond chunk."
        assert assembled.chunks_used == 2 == len(assembled.citations)
        assert [c.document_name for c in assembled.citations] == ["Handbook", "FAQ"]
        assert assembled.citations[1].start_char == 10

    def test_inline_markers(self) -> None:
        assembler = ContextAssembler(RagConfig(citation_format="inline"))
        assembled = assembler.build_context(_result(_chunk(0, "Body.", name="Guide")))
        assert assembled.context == "(Source: Guide)\nBody."

    def test_budget_drops_chunk_and_everything_after(self) -> None:
        assembler = ContextAssembler(RagConfig(max_context_tokens=10))
        assembled = assembler.build_context(
            _result(_chunk(0, "a" * 20), _chunk(1, "b" * 20), _chunk(2, "c"))
        )

        assert assembled.context == "[1]\n" + "a" * 20
        assert assembled.chunks_used == 1
        assert len(assembled.citations) == 1
        assert assembled.total_tokens == estimate_tokens(assembled.context) + estimate_tokens(
            "what is it?"
        )

    def test_empty_result(self) -> None:
        assembled = ContextAssembler(RagConfig()).build_context(_result())
        assert assembled.context == ""
        assert assembled.citations == []
        assert assembled.chunks_used == 0


class TestBuildRagPrompt:
    def test_prompt_wraps_context_with_citation_instructions(self) -> None:
        assembler = ContextAssembler(RagConfig())
        rag = assembler.build_rag_prompt("what is it?", _result(_chunk(0, "It is a pipeline.")))

        assert rag.prompt.startswith(DEFAULT_SYSTEM_PROMPT)
        assert "Context from user's data:\n[1]\nIt is a pipeline." in rag.prompt
        assert "cite your sources" in rag.prompt
        assert rag.prompt.endswith("please say so.")
        assert "what is it?" not in rag.prompt
        assert rag.metadata.retrieval_time_ms == 12.5
        assert rag.metadata.chunks_used == 1

    def test_no_context_marker_and_custom_system_prompt(self) -> None:
        assembler = ContextAssembler(RagConfig(include_citations=False))
        rag = assembler.build_rag_prompt("q", _result(), custom_system_prompt="You are terse.")

        assert rag.prompt.startswith("You are terse.")
        assert NO_CONTEXT_MARKER in rag.prompt
        assert "cite your sources" not in rag.prompt
        assert rag.citations == []


class TestFormatCitations:
    @pytest.fixture
    def citations(self):
        assembler = ContextAssembler(RagConfig())
        return assembler.build_context(
            _result(_chunk(0, "Alpha text", score=0.9), _chunk(1, "Beta text", name="FAQ", score=0.75))
        ).citations

    def test_numbered(self, citations) -> None:
        text = ContextAssembler(RagConfig()).format_citations(citations)
        assert text == "[1] Handbook (90.0% match)\n[2] FAQ (75.0% match)"

    def test_inline_override(self, citations) -> None:
        text = ContextAssembler(RagConfig()).format_citations(citations, fmt="inline")
        assert text == "• Handbook: Alpha text...\n• FAQ: Beta text..."
