"""Token and anchor scoring helpers for pinpoint (sub-chunk) evaluation."""

from __future__ import annotations

import re
import sqlite3

from .eval_types import PinpointEvalQuery

PINPOINT_TOKEN_STOPWORDS = frozenset(
    {
        "an",
        "and",
        "are",
        "as",
        "at",
        "be",
        "by",
        "for",
        "from",
        "in",
        "is",
        "it",
        "of",
        "on",
        "or",
        "that",
        "the",
        "this",
        "to",
        "with",
    }
)

_ASCII_ALNUM_RUN = re.compile(r"[A-Za-z0-9]+")
_ASCII_DIGITS = re.compile(r"[0-9]+")


def _is_ascii_digits(value: str) -> bool:
    return _ASCII_DIGITS.fullmatch(value) is not None


def tokenize_pinpoint_value(value: str) -> list[str]:
    """Sorted, unique lower-case ASCII alphanumeric tokens without stopwords.

    Tokens shorter than two characters are kept only when they are digits.
    """
    tokens = {
        token
        for token in (run.lower() for run in _ASCII_ALNUM_RUN.findall(value))
        if (len(token) >= 2 or _is_ascii_digits(token))
        and token not in PINPOINT_TOKEN_STOPWORDS
    }
    return sorted(tokens)


def condense_whitespace(text: str) -> str:
    """Collapse whitespace runs into single spaces and trim the ends."""
    return " ".join(text.split())


def anchor_family(anchor: str) -> tuple[str, str] | None:
    """The first two ``:``-separated components of an anchor, if both are present."""
    parts = anchor.split(":")
    if len(parts) < 2:
        return None
    first, second = parts[0].strip(), parts[1].strip()
    if not first or not second:
        return None
    return first, second


def pinpoint_anchor_compatible(unit_anchor: str | None, parent_anchor: str | None) -> bool:
    """Whether a unit's citation anchor is consistent with its parent chunk's anchor."""
    if parent_anchor is None or not parent_anchor.strip():
        return True
    if unit_anchor is None or not unit_anchor.strip():
        return True
    if unit_anchor == parent_anchor:
        return True
    parent_family = anchor_family(parent_anchor)
    return parent_family is not None and parent_family == anchor_family(unit_anchor)


def token_overlap_score(query_tokens: list[str], unit_tokens: list[str]) -> float:
    """Fraction of query tokens that also appear among the unit tokens."""
    if not query_tokens or not unit_tokens:
        return 0.0
    unit_set = set(unit_tokens)
    overlap = sum(1 for token in query_tokens if token in unit_set)
    return overlap / len(query_tokens)


def _ascii_lower(text: str) -> str:
    return "".join(ch.lower() if ch.isascii() else ch for ch in text)


def query_mentions_table_context(query_text: str) -> bool:
    """Whether the query talks about tables, rows or cells."""
    lowered = _ascii_lower(query_text)
    return "table" in lowered or " row " in lowered or " cell " in lowered


def looks_like_table_reference_query(query_text: str) -> bool:
    """Whether the query is exactly ``table <number>``."""
    tokens = _ascii_lower(condense_whitespace(query_text)).split()
    return len(tokens) == 2 and tokens[0] == "table" and _is_ascii_digits(tokens[1])


def pinpoint_unit_priority(unit_type: str, mentions_table: bool, table_reference: bool) -> int:
    """Tie-break priority of a unit type given the query's table context."""
    if table_reference:
        return {"table_row": 4, "table_cell": 3, "sentence_window": 1}.get(unit_type, 2)
    if mentions_table:
        return {"table_row": 4, "table_cell": 3, "sentence_window": 2}.get(unit_type, 1)
    return {"sentence_window": 3, "table_row": 2, "table_cell": 1}.get(unit_type, 0)


def select_pinpoint_parent_chunk(
    query: PinpointEvalQuery, retrieved_parent_chunk_id: str | None
) -> str | None:
    """Pick the parent chunk: the retrieved one if expected, else the first expected."""
    if (
        retrieved_parent_chunk_id is not None
        and retrieved_parent_chunk_id in query.parent_expected_chunk_ids
    ):
        return retrieved_parent_chunk_id
    if query.parent_expected_chunk_ids:
        return query.parent_expected_chunk_ids[0]
    return retrieved_parent_chunk_id


def resolve_chunk_anchor_id(connection: sqlite3.Connection, chunk_id: str) -> str | None:
    """The citation anchor id stored for a chunk, or None."""
    row = connection.execute(
        "SELECT citation_anchor_id FROM chunks WHERE chunk_id = ? LIMIT 1",
        (chunk_id,),
    ).fetchone()
    return None if row is None else row[0]