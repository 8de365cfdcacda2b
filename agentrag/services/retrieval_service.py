"""
Retrieval: keyword ranking of content chunks against the question.

Responsibility: score chunks by query-term overlap and return the top_k as sources
for the dispatcher. Chunks containing more distinct query words come first; ties
keep document order.
"""

import logging
import re

from agentrag.schemas.strategy import SourceChunk

logger = logging.getLogger(__name__)

_TERM_RE = re.compile(r"[^\W_]+", re.UNICODE)
STOPWORDS = frozenset({
    "the", "and", "for", "are", "was", "were", "what", "which", "who", "whom", "how", "why",
    "when", "where", "does", "did", "can", "could", "should", "would", "with", "from", "that",
    "this", "these", "those", "about", "into", "have", "has", "had", "you", "your", "there",
    "their", "they", "them", "its", "is", "a", "an", "of", "to", "in", "on", "at", "by", "be",
    "do", "it", "or", "as", "not", "any", "all", "tell", "me", "please",
})


def query_terms(text: str) -> list[str]:
    """Distinct lowercase content words of the query, in order of appearance."""
    seen: dict[str, None] = {}
    for term in _TERM_RE.findall(text.lower()):
        if len(term) >= 2 and term not in STOPWORDS:
            seen.setdefault(term, None)
    return list(seen)


def keyword_score(terms: list[str], text: str) -> float:
    """Share of query terms present in the text, plus a small term-frequency bonus."""
    if not terms:
        return 0.0
    tokens = _TERM_RE.findall(text.lower())
    if not tokens:
        return 0.0
    counts: dict[str, int] = {}
    for token in tokens:
        counts[token] = counts.get(token, 0) + 1
    matched = [t for t in terms if counts.get(t)]
    coverage = len(matched) / len(terms)
    frequency = sum(counts[t] for t in matched) / len(tokens)
    return round(coverage + min(0.2, frequency), 6)


def rank_chunks(query: str, chunks: list[str], top_k: int) -> list[SourceChunk]:
    """Top_k chunks by keyword score. Without usable query terms, the leading chunks are returned."""
    logger.info("[retrieval:rank_chunks] IN  query=%r chunks=%d top_k=%d", query, len(chunks), top_k)
    terms = query_terms(query or "")
    scored = [SourceChunk(chunk_id=i, text=c, score=keyword_score(terms, c)) for i, c in enumerate(chunks)]
    scored.sort(key=lambda s: (-s.score, s.chunk_id))
    top = scored[: max(0, top_k)]
    logger.info(
        "[retrieval:rank_chunks] OUT kept=%d ids=%s scores=%s",
        len(top), [s.chunk_id for s in top], [round(s.score, 3) for s in top],
    )
    return top
