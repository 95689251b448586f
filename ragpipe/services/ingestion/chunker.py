"""Text chunking with explicit source spans.

Splits source text into :class:`~ragpipe.models.rag.TextChunk` objects under
one of four strategies:

* ``fixed`` -- word windows of ``chunk_size`` words advancing by
  ``chunk_size - chunk_overlap``.
* ``paragraph`` -- blank-line paragraphs packed up to ``chunk_size``
  characters with a ``chunk_overlap``-character tail carried forward.  An
  oversized paragraph is split by sentences at half the chunk size.
* ``sentence`` -- sentences packed the same way; an oversized sentence is
  split into fixed word windows at half the chunk size.
* ``semantic`` -- paragraphs are embedded and a boundary is placed wherever
  adjacent paragraphs have cosine similarity below 0.5; paragraphs between
  boundaries are packed up to ``chunk_size`` characters.

Every intermediate piece is a ``(start, end)`` span into the source text and
a chunk's content is always ``text[start:end]``.  The merge pass for small
chunks therefore computes offsets as the union of spans instead of adding up
lengths, so offsets cannot drift through nested splitting.
"""

from __future__ import annotations

import re
from collections.abc import Awaitable, Callable
from typing import NamedTuple

import structlog

from ragpipe.config.rag_config import ChunkingOptions
from ragpipe.models.rag import ChunkingStrategy, TextChunk
from ragpipe.utils.vector_math import cosine_similarity

logger = structlog.get_logger(logger_name=__name__)

#: Async function mapping a batch of texts to their embedding vectors.
EmbedFn = Callable[[list[str]], Awaitable[list[list[float]]]]

# Adjacent paragraphs less similar than this start a new semantic section.
SEMANTIC_BOUNDARY_THRESHOLD = 0.5

# Common abbreviations that should NOT trigger a sentence split.
_ABBREVIATIONS = (
    "Dr", "Mr", "Mrs", "Ms", "Prof", "Jr", "Sr", "St", "Ave", "Blvd", "Vol",
    "No", "vs", "etc", "approx", "dept", "est", "govt", "inc", "ltd", "co",
    "ft", "e.g", "i.e",
)
_ABBREV_RE = re.compile(
    r"\b(?:" + "|".join(re.escape(a) for a in _ABBREVIATIONS) + r")\."
)
_PARAGRAPH_BREAK = re.compile(r"\n\s*\n")
_SENTENCE_BREAK = re.compile(r"(?<=[.!?])\s+")
_WORD = re.compile(r"\S+")
_WHITESPACE = re.compile(r"\s")

_LANGUAGE_PRESETS: dict[str, dict[str, object]] = {
    "en": {"strategy": ChunkingStrategy.PARAGRAPH, "chunk_size": 1000},
    "zh": {"strategy": ChunkingStrategy.FIXED, "chunk_size": 500},
    "ja": {"strategy": ChunkingStrategy.FIXED, "chunk_size": 500},
    "ko": {"strategy": ChunkingStrategy.FIXED, "chunk_size": 500},
    "code": {"strategy": ChunkingStrategy.FIXED, "chunk_size": 500},
}


class _Span(NamedTuple):
    start: int
    end: int

    @property
    def length(self) -> int:
        return self.end - self.start


class TextChunker:
    """Splits text into ordered, offset-carrying chunks.

    Parameters
    ----------
    options:
        Default :class:`ChunkingOptions`; each call may override them.
    """

    def __init__(self, options: ChunkingOptions | None = None) -> None:
        self._options = options or ChunkingOptions()

    @property
    def options(self) -> ChunkingOptions:
        return self._options

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def chunk(self, text: str, options: ChunkingOptions | None = None) -> list[TextChunk]:
        """Split *text* with a synchronous strategy.

        ``semantic`` needs an embedding function, so here it falls back to
        ``paragraph``; use :meth:`achunk` to run it for real.

        Returns
        -------
        list[TextChunk]
            Chunks with contiguous indices from 0.  Blank input yields ``[]``.
        """
        opts = options or self._options
        if not text or not text.strip():
            return []

        strategy = opts.strategy
        if strategy is ChunkingStrategy.SEMANTIC:
            logger.info("semantic_chunking_without_embedder", fallback="paragraph")
            strategy = ChunkingStrategy.PARAGRAPH

        spans = self._split(text, strategy, opts)
        return self._finalize(text, spans, opts, strategy)

    async def achunk(
        self,
        text: str,
        options: ChunkingOptions | None = None,
        embed_fn: EmbedFn | None = None,
    ) -> list[TextChunk]:
        """Split *text* with any strategy, embedding paragraphs for ``semantic``."""
        opts = options or self._options
        if opts.strategy is not ChunkingStrategy.SEMANTIC or embed_fn is None:
            return self.chunk(text, opts)
        if not text or not text.strip():
            return []

        spans = await self._semantic(text, opts, embed_fn)
        return self._finalize(text, spans, opts, ChunkingStrategy.SEMANTIC)

    async def chunk_semantic(
        self,
        text: str,
        embed_fn: EmbedFn,
        options: ChunkingOptions | None = None,
    ) -> list[TextChunk]:
        """Run the ``semantic`` strategy regardless of the configured one."""
        opts = (options or self._options).model_copy(
            update={"strategy": ChunkingStrategy.SEMANTIC}
        )
        return await self.achunk(text, opts, embed_fn)

    # ------------------------------------------------------------------
    # Strategies
    # ------------------------------------------------------------------

    def _split(
        self, text: str, strategy: ChunkingStrategy, opts: ChunkingOptions
    ) -> list[_Span]:
        whole = _Span(0, len(text))
        if strategy is ChunkingStrategy.FIXED:
            return self._fixed(text, whole, opts.chunk_size, opts.chunk_overlap)
        if strategy is ChunkingStrategy.SENTENCE:
            return self._sentences(text, whole, opts.chunk_size, opts.chunk_overlap)
        return self._paragraphs(text, whole, opts.chunk_size, opts.chunk_overlap)

    def _fixed(self, text: str, region: _Span, size: int, overlap: int) -> list[_Span]:
        """Word windows of *size* words, stepping by ``size - overlap``."""
        words = [
            _Span(m.start(), m.end()) for m in _WORD.finditer(text, region.start, region.end)
        ]
        if not words:
            return []

        spans: list[_Span] = []
        step = max(1, size - overlap)
        start = 0
        while start < len(words):
            end = min(start + size, len(words))
            spans.append(_Span(words[start].start, words[end - 1].end))
            if end - start < overlap or end >= len(words):
                break
            start += step
        return spans

    def _paragraphs(self, text: str, region: _Span, size: int, overlap: int) -> list[_Span]:
        units = _segments(text, region, _PARAGRAPH_BREAK)
        sub_size = max(1, size // 2)
        sub_overlap = min(overlap, sub_size // 2)
        return self._accumulate(
            text,
            units,
            size,
            overlap,
            lambda unit: self._sentences(text, unit, sub_size, sub_overlap),
        )

    def _sentences(self, text: str, region: _Span, size: int, overlap: int) -> list[_Span]:
        units = _sentence_segments(text, region)
        sub_size = max(1, size // 2)
        sub_overlap = min(overlap, sub_size // 2)
        return self._accumulate(
            text,
            units,
            size,
            overlap,
            lambda unit: self._fixed(text, unit, sub_size, sub_overlap),
        )

    async def _semantic(self, text: str, opts: ChunkingOptions, embed_fn: EmbedFn) -> list[_Span]:
        paragraphs = _segments(text, _Span(0, len(text)), _PARAGRAPH_BREAK)
        if not paragraphs:
            return self._fixed(text, _Span(0, len(text)), opts.chunk_size, opts.chunk_overlap)

        embeddings = await embed_fn([text[p.start : p.end] for p in paragraphs])
        boundaries = {
            i
            for i in range(1, len(paragraphs))
            if cosine_similarity(embeddings[i - 1], embeddings[i]) < SEMANTIC_BOUNDARY_THRESHOLD
        }
        logger.debug(
            "semantic_boundaries",
            paragraphs=len(paragraphs),
            boundaries=len(boundaries),
        )

        sub_size = max(1, opts.chunk_size // 2)
        sub_overlap = min(opts.chunk_overlap, sub_size // 2)
        spans: list[_Span] = []
        current: _Span | None = None
        for i, para in enumerate(paragraphs):
            if current is not None and (
                i in boundaries or current.length + para.length > opts.chunk_size
            ):
                spans.append(current)
                current = None
            if para.length > opts.chunk_size:
                spans.extend(self._sentences(text, para, sub_size, sub_overlap))
                continue
            current = para if current is None else _Span(current.start, para.end)
        if current is not None:
            spans.append(current)
        return spans

    # ------------------------------------------------------------------
    # Accumulation and overlap
    # ------------------------------------------------------------------

    def _accumulate(
        self,
        text: str,
        units: list[_Span],
        size: int,
        overlap: int,
        split_oversized: Callable[[_Span], list[_Span]],
    ) -> list[_Span]:
        """Pack *units* into spans of at most *size* characters.

        When a span is flushed, the next one starts with a tail of at most
        *overlap* characters from it.
        """
        spans: list[_Span] = []
        current: _Span | None = None

        for unit in units:
            if unit.length > size:
                if current is not None:
                    spans.append(current)
                    current = None
                spans.extend(split_oversized(unit))
                continue

            if current is not None and current.length + unit.length > size:
                spans.append(current)
                tail = _tail_start(text, current, overlap)
                current = unit if tail is None else _Span(tail, unit.end)
            elif current is None:
                current = unit
            else:
                current = _Span(current.start, unit.end)

        if current is not None:
            spans.append(current)
        return spans

    # ------------------------------------------------------------------
    # Merge pass
    # ------------------------------------------------------------------

    def _finalize(
        self,
        text: str,
        spans: list[_Span],
        opts: ChunkingOptions,
        strategy: ChunkingStrategy,
    ) -> list[TextChunk]:
        merged = _merge_small(spans, opts.min_chunk_size)
        chunks = [
            TextChunk(
                content=text[span.start : span.end],
                index=i,
                start_char=span.start,
                end_char=span.end,
                metadata={"strategy": strategy.value},
            )
            for i, span in enumerate(merged)
        ]
        logger.debug(
            "chunking_complete",
            strategy=strategy.value,
            num_chunks=len(chunks),
            merged_away=len(spans) - len(merged),
        )
        return chunks


# ----------------------------------------------------------------------
# Module-level helpers
# ----------------------------------------------------------------------

def chunk_by_language(
    text: str,
    language: str,
    chunker: TextChunker | None = None,
    **overrides: object,
) -> list[TextChunk]:
    """Chunk *text* with presets for ``en``, ``zh``, ``ja``, ``ko`` or ``code``.

    Unknown languages use the chunker's defaults; keyword *overrides* win
    over the preset.
    """
    chunker = chunker or TextChunker()
    base = chunker.options.model_dump()
    base.update(_LANGUAGE_PRESETS.get(language, {}))
    base.update(overrides)
    return chunker.chunk(text, ChunkingOptions(**base))


def calculate_chunk_quality(content: str) -> float:
    """Heuristic 0-100 quality score stored on each chunk record.

    50 base, up to 20 for length (200-1000 chars is ideal), 15 for
    sentence structure, 15 for containing at least two real sentences.
    """
    score = 50.0
    length = len(content)
    if 200 <= length <= 1000:
        score += 20
    elif length > 1000:
        score += 10
    else:
        score += length / 50

    if "." in content and " " in content:
        score += 15

    sentences = [s for s in re.split(r"[.!?]+", content) if len(s.strip()) > 10]
    if len(sentences) >= 2:
        score += 15

    return min(100.0, round(score, 2))


def _strip(text: str, start: int, end: int) -> _Span | None:
    while start < end and text[start].isspace():
        start += 1
    while end > start and text[end - 1].isspace():
        end -= 1
    return _Span(start, end) if start < end else None


def _segments(text: str, region: _Span, separator: re.Pattern[str]) -> list[_Span]:
    """Split *region* on *separator*, returning whitespace-trimmed spans."""
    spans: list[_Span] = []
    pos = region.start
    for match in separator.finditer(text, region.start, region.end):
        piece = _strip(text, pos, match.start())
        if piece is not None:
            spans.append(piece)
        pos = match.end()
    piece = _strip(text, pos, region.end)
    if piece is not None:
        spans.append(piece)
    return spans


def _sentence_segments(text: str, region: _Span) -> list[_Span]:
    """Split *region* after ``.``, ``!`` or ``?`` followed by whitespace.

    Periods after known abbreviations are masked first; the mask keeps the
    string length so indices still address the original text.
    """
    masked = _ABBREV_RE.sub(lambda m: m.group(0)[:-1] + "\x00", text[region.start : region.end])
    local = _segments(masked, _Span(0, len(masked)), _SENTENCE_BREAK)
    return [_Span(s.start + region.start, s.end + region.start) for s in local]


def _tail_start(text: str, span: _Span, overlap: int) -> int | None:
    """Start offset of the overlap tail carried from *span*, or None for no tail.

    The tail is at most *overlap* characters and starts on a word boundary
    when one exists inside it.
    """
    if overlap <= 0:
        return None
    pos = max(span.start, span.end - overlap)
    if pos > span.start and not text[pos - 1].isspace():
        match = _WHITESPACE.search(text, pos, span.end)
        if match is not None:
            pos = match.start()
    trimmed = _strip(text, pos, span.end)
    return None if trimmed is None else trimmed.start


def _merge_small(spans: list[_Span], min_size: int) -> list[_Span]:
    """Merge spans shorter than *min_size* into a neighbour.

    A small span joins the previous one; the first span joins the next.
    Repeats until none are small or a single span remains.
    """
    merged = list(spans)
    while len(merged) > 1:
        small = next((i for i, s in enumerate(merged) if s.length < min_size), None)
        if small is None:
            break
        left = small - 1 if small > 0 else 0
        a, b = merged[left], merged[left + 1]
        merged[left : left + 2] = [_Span(min(a.start, b.start), max(a.end, b.end))]
    return merged
