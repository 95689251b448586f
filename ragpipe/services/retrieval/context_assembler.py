"""Context assembly: retrieved chunks -> marked-up context, citations, prompt.

Token counts are estimates at a fixed 4 characters per token, never a
tokenizer count.
"""

from __future__ import annotations

import math

import structlog

from ragpipe.config.rag_config import CitationFormat, RagConfig
from ragpipe.models.rag import (
    AssembledContext,
    Citation,
    RagContext,
    RagContextMetadata,
    RetrievalResult,
    RetrievedChunk,
)

logger = structlog.get_logger(logger_name=__name__)

CHARS_PER_TOKEN = 4

DEFAULT_SYSTEM_PROMPT = (
    "You are an AI assistant that helps users answer questions based on their "
    "connected data sources."
)
NO_CONTEXT_MARKER = "No relevant context found."

_CITE_INSTRUCTIONS = (
    "Answer based on the provided context. When referencing specific information, "
    "cite your sources using the provided citations."
)
_PLAIN_INSTRUCTIONS = "Answer based on the provided context."
_INSUFFICIENT_NOTE = (
    "If the context doesn't contain enough information to answer the question, "
    "please say so."
)
_BLOCK_SEPARATOR = "\n\n"


def estimate_tokens(text: str) -> int:
    """Approximate token count: ``ceil(len(text) / 4)``."""
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def truncate_context(text: str, max_tokens: int) -> str:
    """Trim *text* to ``max_tokens * 4`` characters.

    Cuts after the last ``.`` or newline when that boundary lies in the final
    20% of the budget; otherwise hard-cuts and appends ``...``.
    """
    max_chars = max_tokens * CHARS_PER_TOKEN
    if len(text) <= max_chars:
        return text

    truncated = text[:max_chars]
    cutoff = max(truncated.rfind("."), truncated.rfind("\n"))
    if cutoff > max_chars * 0.8:
        return truncated[: cutoff + 1]
    return truncated + "..."


def format_chunk_for_display(chunk: RetrievedChunk, max_length: int = 200) -> str:
    prefix = f"[{chunk.document_name}] " if chunk.document_name else ""
    content = chunk.content
    if len(content) > max_length:
        content = content[:max_length] + "..."
    return f"{prefix}{content}"


class ContextAssembler:
    """Builds bounded prompt context with citation tracking."""

    def __init__(self, config: RagConfig) -> None:
        self._config = config

    def build_context(self, result: RetrievalResult) -> AssembledContext:
        """Concatenate chunks in ranked order under the context token budget.

        A chunk that would push the context past ``max_context_tokens`` is
        dropped together with every lower-ranked chunk, so the context is
        always a prefix of the ranking and each citation matches one block.
        """
        blocks: list[str] = []
        citations: list[Citation] = []
        length = 0
        for chunk in result.chunks:
            marker = (
                f"[{len(blocks) + 1}]"
                if self._config.citation_format == "numbered"
                else f"(Source: {chunk.document_name})"
            )
            block = f"{marker}\n{chunk.content}"
            new_length = length + len(block) + (len(_BLOCK_SEPARATOR) if blocks else 0)
            if math.ceil(new_length / CHARS_PER_TOKEN) > self._config.max_context_tokens:
                logger.debug(
                    "context_budget_reached",
                    chunks_used=len(blocks),
                    chunks_dropped=len(result.chunks) - len(blocks),
                )
                break
            blocks.append(block)
            citations.append(
                Citation(
                    chunk_id=chunk.id,
                    document_id=chunk.document_id,
                    document_name=chunk.document_name,
                    score=chunk.score,
                    content=chunk.content,
                    start_char=chunk.start_char,
                    end_char=chunk.end_char,
                )
            )
            length = new_length

        context = _BLOCK_SEPARATOR.join(blocks)
        return AssembledContext(
            context=context,
            citations=citations,
            chunks_used=len(citations),
            total_tokens=estimate_tokens(context) + estimate_tokens(result.query),
        )

    def build_rag_prompt(
        self,
        query: str,
        result: RetrievalResult,
        custom_system_prompt: str | None = None,
    ) -> RagContext:
        """Wrap the assembled context in the answer-from-context template.

        The prompt is the system turn; *query* is not embedded in it and is
        sent by the caller as the user turn.
        """
        assembled = self.build_context(result)
        system = custom_system_prompt or DEFAULT_SYSTEM_PROMPT
        instructions = (
            _CITE_INSTRUCTIONS if self._config.include_citations else _PLAIN_INSTRUCTIONS
        )
        prompt = (
            f"{system}\n\n"
            f"Context from user's data:\n"
            f"{assembled.context or NO_CONTEXT_MARKER}\n\n"
            f"{instructions}\n\n"
            f"{_INSUFFICIENT_NOTE}"
        )
        logger.debug(
            "rag_prompt_built",
            query=query[:80],
            chunks_used=assembled.chunks_used,
            total_tokens=assembled.total_tokens,
        )
        return RagContext(
            prompt=prompt,
            context=assembled.context,
            citations=assembled.citations,
            metadata=RagContextMetadata(
                retrieval_time_ms=result.latency_ms,
                chunks_used=assembled.chunks_used,
                total_tokens=assembled.total_tokens,
            ),
        )

    def format_citations(
        self, citations: list[Citation], fmt: CitationFormat | None = None
    ) -> str:
        """Render citations as a numbered list or inline bullet excerpts."""
        fmt = fmt or self._config.citation_format
        if fmt == "numbered":
            return "\n".join(
                f"[{i}] {c.document_name} ({c.score * 100:.1f}% match)"
                for i, c in enumerate(citations, start=1)
            )
        return "\n".join(f"• {c.document_name}: {c.content[:100]}..." for c in citations)
