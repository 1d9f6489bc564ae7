import sqlite3

import pytest

from safetyrag.eval_types import PinpointEvalQuery
from safetyrag.pinpoint_scoring import (
    anchor_family,
    condense_whitespace,
    looks_like_table_reference_query,
    pinpoint_anchor_compatible,
    pinpoint_unit_priority,
    query_mentions_table_context,
    resolve_chunk_anchor_id,
    select_pinpoint_parent_chunk,
    token_overlap_score,
    tokenize_pinpoint_value,
)


def _query(parents):
    return PinpointEvalQuery(
        query_id="q",
        query_text="text",
        parent_expected_chunk_ids=parents,
        high_confidence=False,
        intent="narrative",
    )


def test_tokenize_drops_short_and_stopwords_and_sorts():
    tokens = tokenize_pinpoint_value("Table 3: the ASIL-D Row, row x")
    assert tokens == ["3", "asil", "row", "table"]


def test_tokenize_is_sorted_and_unique():
    tokens = tokenize_pinpoint_value("zeta alpha Alpha ZETA beta 42")
    assert tokens == sorted(set(tokens))
    assert "alpha" in tokens and "42" in tokens


def test_tokenize_empty():
    assert tokenize_pinpoint_value("  ... ") == []


def test_condense_whitespace():
    assert condense_whitespace("  a \t b\n\nc  ") == "a b c"


def test_anchor_family():
    assert anchor_family("doc:8.4.5:para:2") == ("doc", "8.4.5")
    assert anchor_family("doc") is None
    assert anchor_family(" :x") is None


def test_anchor_compatible_when_missing():
    assert pinpoint_anchor_compatible(None, "a:b")
    assert pinpoint_anchor_compatible("a:b", None)
    assert pinpoint_anchor_compatible("a:b", "   ")


def test_anchor_compatible_same_family():
    assert pinpoint_anchor_compatible("doc:8.4:row:1", "doc:8.4")
    assert not pinpoint_anchor_compatible("doc:9.1:row:1", "doc:8.4")
    assert not pinpoint_anchor_compatible("other", "plain")
    assert pinpoint_anchor_compatible("plain", "plain")


def test_token_overlap_score():
    assert token_overlap_score(["a", "b"], ["b", "c"]) == pytest.approx(0.5)
    assert token_overlap_score([], ["a"]) == 0.0
    assert token_overlap_score(["a"], []) == 0.0
    assert token_overlap_score(["a", "b"], ["a", "b"]) == pytest.approx(1.0)


def test_query_mentions_table_context():
    assert query_mentions_table_context("See TABLE 3")
    assert query_mentions_table_context("the row for x")
    assert not query_mentions_table_context("rows and cells")


def test_looks_like_table_reference_query():
    assert looks_like_table_reference_query("  Table   10 ")
    assert not looks_like_table_reference_query("table 10a")
    assert not looks_like_table_reference_query("table 10 row")
    assert not looks_like_table_reference_query("table")


def test_pinpoint_unit_priority_orders():
    assert pinpoint_unit_priority("table_row", False, True) == 4
    assert pinpoint_unit_priority("sentence_window", False, True) == 1
    assert pinpoint_unit_priority("other", False, True) == 2
    assert pinpoint_unit_priority("table_cell", True, False) == 3
    assert pinpoint_unit_priority("sentence_window", True, False) == 2
    assert pinpoint_unit_priority("other", True, False) == 1
    assert pinpoint_unit_priority("sentence_window", False, False) == 3
    assert pinpoint_unit_priority("table_cell", False, False) == 1
    assert pinpoint_unit_priority("other", False, False) == 0


def test_select_parent_prefers_expected_retrieved():
    query = _query(["c-1", "c-2"])
    assert select_pinpoint_parent_chunk(query, "c-2") == "c-2"
    assert select_pinpoint_parent_chunk(query, "c-9") == "c-1"
    assert select_pinpoint_parent_chunk(query, None) == "c-1"


def test_select_parent_falls_back_to_retrieved():
    query = _query([])
    assert select_pinpoint_parent_chunk(query, "c-9") == "c-9"
    assert select_pinpoint_parent_chunk(query, None) is None


def test_resolve_chunk_anchor_id():
    connection = sqlite3.connect(":memory:")
    connection.executescript(
        """
        CREATE TABLE chunks (chunk_id TEXT PRIMARY KEY, citation_anchor_id TEXT);
        INSERT INTO chunks VALUES ('c-1', 'doc:8.4'), ('c-2', NULL);
        """
    )
    assert resolve_chunk_anchor_id(connection, "c-1") == "doc:8.4"
    assert resolve_chunk_anchor_id(connection, "c-2") is None
    assert resolve_chunk_anchor_id(connection, "missing") is None