"""Lexical, semantic and hybrid retrieval for evaluation, plus ranking metrics."""

from __future__ import annotations

import dataclasses
import math
import re
import sqlite3
from dataclasses import dataclass
from typing import Iterable, Sequence

from .semantic import cosine_similarity, decode_embedding_blob, embed_text_local

SEMANTIC_RRF_K = 60.0

_NO_PAGE = (1 << 63) - 1
_ASCII_ALNUM_RUN = re.compile(r"[a-z0-9]+")

_SIGNAL_STOPWORDS = frozenset(
    {
        "a",
        "an",
        "and",
        "around",
        "concept",
        "concerning",
        "for",
        "guidance",
        "in",
        "of",
        "on",
        "related",
        "requirement",
        "requirements",
        "the",
        "to",
        "with",
    }
)

_NOISE_PREFIXES = (
    "concept guidance for ",
    "requirements concerning ",
    "requirements regarding ",
    "requirements for ",
    "guidance for ",
)


@dataclass
class SemanticRetrievedHit:
    chunk_id: str
    reference: str
    page_pdf_start: int | None
    page_pdf_end: int | None
    citation_anchor_id: str | None
    score: float


def _ascii_lower(text: str) -> str:
    return "".join(ch.lower() if ch.isascii() else ch for ch in text)


def _rank_key(hit: SemanticRetrievedHit) -> tuple[float, int, str]:
    page = hit.page_pdf_start if hit.page_pdf_start is not None else _NO_PAGE
    return (-hit.score, page, hit.chunk_id)


def semantic_eval_hybrid_hits(
    connection: sqlite3.Connection,
    query_text: str,
    part_filter: int | None,
    chunk_type_filter: str | None,
    model_id: str,
    embedding_dim: int,
    limit: int,
    exact_intent_priority: bool,
) -> list[SemanticRetrievedHit]:
    """Fuse lexical and semantic rankings with reciprocal rank fusion."""
    lexical_hits = semantic_eval_lexical_hits(
        connection, query_text, part_filter, chunk_type_filter, limit
    )
    semantic_hits = semantic_eval_semantic_hits(
        connection, query_text, part_filter, chunk_type_filter, model_id, embedding_dim, limit
    )

    if not lexical_hits:
        return semantic_hits[:limit]
    if not semantic_hits:
        return lexical_hits[:limit]

    fused: dict[str, tuple[SemanticRetrievedHit, float]] = {}
    for ranking in (lexical_hits, semantic_hits):
        for rank, hit in enumerate(ranking, start=1):
            base, score = fused.get(hit.chunk_id, (hit, 0.0))
            fused[hit.chunk_id] = (base, score + 1.0 / (SEMANTIC_RRF_K + rank))

    out = sorted(
        (dataclasses.replace(hit, score=score) for hit, score in fused.values()),
        key=_rank_key,
    )

    if exact_intent_priority:
        top = lexical_hits[0]
        out = [hit for hit in out if hit.chunk_id != top.chunk_id]
        boosted = out[0].score + 1.0 if out else 1.0
        out.insert(0, dataclasses.replace(top, score=boosted))

    return out[:limit]


def semantic_eval_lexical_hits(
    connection: sqlite3.Connection,
    query_text: str,
    part_filter: int | None,
    chunk_type_filter: str | None,
    limit: int,
) -> list[SemanticRetrievedHit]:
    """Rank chunks by exact and substring matches on ref, heading and text."""
    rows = connection.execute(
        """
        SELECT
          c.chunk_id,
          COALESCE(c.ref, ''),
          c.page_pdf_start,
          c.page_pdf_end,
          c.citation_anchor_id,
          CASE
            WHEN lower(COALESCE(c.ref, '')) = lower(?1) THEN 1000.0
            WHEN lower(COALESCE(c.heading, '')) = lower(?1) THEN 900.0
            WHEN lower(COALESCE(c.ref, '')) LIKE '%' || lower(?1) || '%' THEN 700.0
            WHEN lower(COALESCE(c.heading, '')) LIKE '%' || lower(?1) || '%' THEN 600.0
            ELSE 500.0
          END AS lexical_score
        FROM chunks c
        JOIN docs d ON d.doc_id = c.doc_id
        WHERE
          (?2 IS NULL OR d.part = ?2)
          AND (?3 IS NULL OR lower(COALESCE(c.type, '')) = lower(?3))
          AND (
            lower(COALESCE(c.ref, '')) = lower(?1)
            OR lower(COALESCE(c.heading, '')) = lower(?1)
            OR lower(COALESCE(c.ref, '')) LIKE '%' || lower(?1) || '%'
            OR lower(COALESCE(c.heading, '')) LIKE '%' || lower(?1) || '%'
            OR lower(COALESCE(c.text, '')) LIKE '%' || lower(?1) || '%'
          )
        ORDER BY lexical_score DESC, c.page_pdf_start ASC, c.chunk_id ASC
        LIMIT ?4
        """,
        (query_text, part_filter, chunk_type_filter, limit),
    ).fetchall()
    return [
        SemanticRetrievedHit(
            chunk_id=chunk_id,
            reference=reference,
            page_pdf_start=start,
            page_pdf_end=end,
            citation_anchor_id=anchor,
            score=float(score),
        )
        for chunk_id, reference, start, end, anchor, score in rows
    ]


def semantic_eval_semantic_hits(
    connection: sqlite3.Connection,
    query_text: str,
    part_filter: int | None,
    chunk_type_filter: str | None,
    model_id: str,
    embedding_dim: int,
    limit: int,
) -> list[SemanticRetrievedHit]:
    """Rank embedded chunks by cosine similarity blended with a lexical signal."""
    table = connection.execute(
        """
        SELECT 1
        FROM sqlite_master
        WHERE type = 'table' AND name = 'chunk_embeddings'
        LIMIT 1
        """
    ).fetchone()
    if table is None:
        return []

    semantic_query_text = semantic_embedding_query_text(query_text)
    query_embedding = embed_text_local(semantic_query_text, embedding_dim)
    query_tokens = query_signal_tokens(semantic_query_text)

    rows = connection.execute(
        """
        SELECT
          c.chunk_id,
          COALESCE(c.ref, ''),
          COALESCE(c.heading, ''),
          COALESCE(c.text, ''),
          c.page_pdf_start,
          c.page_pdf_end,
          c.citation_anchor_id,
          ce.embedding,
          ce.embedding_dim
        FROM chunk_embeddings ce
        JOIN chunks c ON c.chunk_id = ce.chunk_id
        JOIN docs d ON d.doc_id = c.doc_id
        WHERE
          ce.model_id = ?1
          AND (?2 IS NULL OR d.part = ?2)
          AND (?3 IS NULL OR lower(COALESCE(c.type, '')) = lower(?3))
        """,
        (model_id, part_filter, chunk_type_filter),
    )

    hits: list[SemanticRetrievedHit] = []
    for chunk_id, reference, heading, text, start, end, anchor, blob, row_dim in rows:
        if row_dim != embedding_dim or blob is None:
            continue
        embedding = decode_embedding_blob(bytes(blob), embedding_dim)
        if embedding is None:
            continue
        semantic_score = cosine_similarity(query_embedding, embedding)
        bonus = lexical_signal_bonus(query_tokens, reference, heading, text)
        hits.append(
            SemanticRetrievedHit(
                chunk_id=chunk_id,
                reference=reference,
                page_pdf_start=start,
                page_pdf_end=end,
                citation_anchor_id=anchor,
                score=semantic_score * 0.45 + bonus * 0.55,
            )
        )

    hits.sort(key=_rank_key)
    return hits[:limit]


def semantic_hit_identity(hit: SemanticRetrievedHit) -> str:
    """A stable string identifying a hit's chunk, reference, pages and anchor."""
    start = hit.page_pdf_start if hit.page_pdf_start is not None else -1
    end = hit.page_pdf_end if hit.page_pdf_end is not None else -1
    return f"{hit.chunk_id}|{hit.reference}|{start}|{end}|{hit.citation_anchor_id or ''}"


def _dcg(relevances: Iterable[float]) -> float:
    return sum(
        (2.0**relevance - 1.0) / math.log2(rank + 1.0)
        for rank, relevance in enumerate(relevances, start=1)
    )


def ndcg_at_k(
    results: Sequence[str], expected: set[str], judged: set[str], k: int
) -> float | None:
    """Graded nDCG@k: expected chunks weigh 2, other judged chunks weigh 1."""
    if (not expected and not judged) or k == 0:
        return None

    def relevance(chunk_id: str) -> float:
        if chunk_id in expected:
            return 2.0
        if chunk_id in judged:
            return 1.0
        return 0.0

    dcg = _dcg(relevance(chunk_id) for chunk_id in results[:k])

    judged_only = sum(1 for chunk_id in judged if chunk_id not in expected)
    ideal = [2.0] * len(expected) + [1.0] * judged_only
    if not ideal:
        return None
    idcg = _dcg(ideal[:k])
    if idcg <= 0.0:
        return None
    return dcg / idcg


def top_k_jaccard_overlap(
    left: Sequence[SemanticRetrievedHit], right: Sequence[SemanticRetrievedHit], k: int
) -> float | None:
    """Jaccard overlap of the chunk ids in the top k of two rankings."""
    if k == 0:
        return None
    left_ids = {hit.chunk_id for hit in left[:k]}
    right_ids = {hit.chunk_id for hit in right[:k]}
    union = left_ids | right_ids
    if not union:
        return None
    return len(left_ids & right_ids) / len(union)


def query_signal_tokens(query_text: str) -> list[str]:
    """Sorted unique query tokens of three or more characters, minus stopwords."""
    tokens = {
        token
        for token in _ASCII_ALNUM_RUN.findall(_ascii_lower(query_text))
        if len(token) >= 3 and token not in _SIGNAL_STOPWORDS
    }
    return sorted(tokens)


def semantic_embedding_query_text(query_text: str) -> str:
    """Whitespace-normalised query text with a leading boilerplate phrase removed."""
    normalized = " ".join(query_text.split())
    if not normalized:
        return normalized
    lowered = _ascii_lower(normalized)
    for prefix in _NOISE_PREFIXES:
        if lowered.startswith(prefix):
            stripped = normalized[len(prefix) :].strip()
            if stripped:
                return stripped
    return normalized


def lexical_signal_bonus(
    query_tokens: Sequence[str], reference: str, heading: str, text: str
) -> float:
    """Fraction of query tokens found as substrings of the chunk's ref, heading or text."""
    if not query_tokens:
        return 0.0
    haystack = f"{_ascii_lower(reference)} {_ascii_lower(heading)} {_ascii_lower(text)}"
    overlap = sum(1 for token in query_tokens if token in haystack)
    return overlap / len(query_tokens)


def reciprocal_rank_at_k(results: Sequence[str], expected: set[str], k: int) -> float | None:
    """1/rank of the first expected chunk within the top k, else 0.0."""
    if not expected or k == 0:
        return None
    for rank, chunk_id in enumerate(results[:k], start=1):
        if chunk_id in expected:
            return 1.0 / rank
    return 0.0


def recall_at_k(results: Sequence[str], expected: set[str], k: int) -> float | None:
    """Share of expected chunks found in the top k."""
    if not expected or k == 0:
        return None
    hits = sum(1 for chunk_id in results[:k] if chunk_id in expected)
    return hits / len(expected)


def judged_at_k(results: Sequence[str], judged: set[str], k: int) -> float | None:
    """Share of the k slots filled by judged chunks."""
    if not judged or k == 0:
        return None
    top = results[:k]
    if not top:
        return 0.0
    return sum(1 for chunk_id in top if chunk_id in judged) / k


def percentile(values: Sequence[float], quantile: float) -> float | None:
    """Nearest-rank percentile with the quantile clamped to [0, 1]."""
    if not values:
        return None
    ordered = sorted(values)
    q = min(max(quantile, 0.0), 1.0)
    rank = math.ceil(len(ordered) * q)
    index = min(max(rank - 1, 0), len(ordered) - 1)
    return ordered[index]


def mean(values: Sequence[float]) -> float | None:
    """Arithmetic mean, or None for no values."""
    if not values:
        return None
    return sum(values) / len(values)