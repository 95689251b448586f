"""Query rewriting before embedding.

Four kinds are supported:

* ``original`` -- the query unchanged.
* ``expanded`` -- up to N distinct keywords (stop words and punctuation
  removed) appended to the query.
* ``hyde`` -- a hypothetical answer document, written by an injected
  text-generation callback, replaces the query.
* ``subquestion`` -- the callback splits the query into 2-4 self-contained
  sub-questions; the caller picks which one drives retrieval.

``hyde`` and ``subquestion`` without a callback (or with one that fails)
fall back to ``original`` and set ``fallback=True`` on the result.
"""

from __future__ import annotations

import re
from collections.abc import Awaitable, Callable

import structlog

from ragpipe.models.rag import QueryTransform, QueryTransformKind

logger = structlog.get_logger(logger_name=__name__)

#: Async text-generation callback: prompt in, completion out.
LLMGenerate = Callable[[str], Awaitable[str]]

STOP_WORDS: frozenset[str] = frozenset({
    "the", "a", "an", "is", "are", "was", "were", "be", "been", "being",
    "have", "has", "had", "do", "does", "did", "will", "would", "could",
    "should", "may", "might", "must", "shall", "can", "need", "dare",
    "to", "of", "in", "for", "on", "with", "at", "by", "from", "as",
    "into", "through", "during", "before", "after", "above", "below",
    "between", "under", "again", "further", "then", "once", "here",
    "there", "when", "where", "why", "how", "all", "each", "few",
    "more", "most", "other", "some", "such", "no", "nor", "not",
    "only", "own", "same", "so", "than", "too", "very", "just",
})

HYDE_TEMPLATE = (
    "Generate a brief, factual document that would answer this question. \n"
    "The document should contain relevant information that could help answer the question.\n"
    "Question: {query}\n"
    "\n"
    "Document:"
)

DECOMPOSE_TEMPLATE = (
    "Break down this question into 2-4 simpler sub-questions that would help answer "
    "the main question.\n"
    "Each sub-question should be self-contained and searchable.\n"
    "\n"
    "Main Question: {query}\n"
    "\n"
    "Sub-questions (one per line):"
)

MAX_SUB_QUESTIONS = 4
_MIN_SUB_QUESTION_CHARS = 10
_NON_WORD = re.compile(r"[^\w\s]")
_NUMBERING = re.compile(r"^\d+[.)]\s*")


def extract_keywords(query: str, limit: int = 5) -> list[str]:
    """Distinct lower-case keywords of *query* in first-seen order."""
    words = _NON_WORD.sub("", query.lower()).split()
    keywords = dict.fromkeys(w for w in words if len(w) > 2 and w not in STOP_WORDS)
    return list(keywords)[:limit]


def parse_sub_questions(response: str) -> list[str]:
    """Strip list numbering and keep lines longer than 10 characters."""
    questions = []
    for line in response.split("\n"):
        question = _NUMBERING.sub("", line.strip()).strip()
        if len(question) > _MIN_SUB_QUESTION_CHARS:
            questions.append(question)
    return questions[:MAX_SUB_QUESTIONS]


class QueryTransformer:
    """Rewrites queries; stateless apart from its defaults."""

    def __init__(self, max_expansions: int = 5) -> None:
        self._max_expansions = max_expansions

    async def transform(
        self,
        query: str,
        kind: QueryTransformKind | str = QueryTransformKind.ORIGINAL,
        llm_generate: LLMGenerate | None = None,
        max_expansions: int | None = None,
        sub_question_index: int = 0,
    ) -> QueryTransform:
        """Apply the *kind* transform to *query*.

        Parameters
        ----------
        llm_generate:
            Needed by ``hyde`` and ``subquestion``.
        sub_question_index:
            Which sub-question to retrieve with; out-of-range values use
            the last one produced.
        """
        kind = QueryTransformKind(kind)

        if kind is QueryTransformKind.ORIGINAL:
            return QueryTransform(kind=kind, query=query, requested=kind)

        if kind is QueryTransformKind.EXPANDED:
            keywords = extract_keywords(query, max_expansions or self._max_expansions)
            return QueryTransform(
                kind=kind,
                query=" ".join([query, *keywords]),
                requested=kind,
            )

        if llm_generate is None:
            logger.info("query_transform_fallback", requested=kind.value, reason="no_callback")
            return self._fallback(query, kind)

        try:
            if kind is QueryTransformKind.HYDE:
                document = (await llm_generate(HYDE_TEMPLATE.format(query=query))).strip()
                if not document:
                    logger.warning("hyde_empty_document")
                    return self._fallback(query, kind)
                return QueryTransform(kind=kind, query=document, requested=kind)

            sub_questions = parse_sub_questions(
                await llm_generate(DECOMPOSE_TEMPLATE.format(query=query))
            )
        except Exception as exc:
            logger.warning("query_transform_failed", requested=kind.value, error=str(exc))
            return self._fallback(query, kind)

        if not sub_questions:
            logger.warning("no_sub_questions_generated")
            return self._fallback(query, kind)
        chosen = sub_questions[min(max(sub_question_index, 0), len(sub_questions) - 1)]
        return QueryTransform(
            kind=kind,
            query=chosen,
            requested=kind,
            sub_questions=sub_questions,
        )

    @staticmethod
    def _fallback(query: str, requested: QueryTransformKind) -> QueryTransform:
        return QueryTransform(
            kind=QueryTransformKind.ORIGINAL,
            query=query,
            requested=requested,
            fallback=True,
        )
