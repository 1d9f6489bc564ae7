import sqlite3

import pytest

from safetyrag.retrieval import (
    SemanticRetrievedHit,
    judged_at_k,
    lexical_signal_bonus,
    mean,
    ndcg_at_k,
    percentile,
    query_signal_tokens,
    recall_at_k,
    reciprocal_rank_at_k,
    semantic_embedding_query_text,
    semantic_eval_hybrid_hits,
    semantic_eval_lexical_hits,
    semantic_eval_semantic_hits,
    semantic_hit_identity,
    top_k_jaccard_overlap,
)
from safetyrag.semantic import encode_embedding_blob, embed_text_local

MODEL = "test-model"
DIM = 64


def _base_db() -> sqlite3.Connection:
    connection = sqlite3.connect(":memory:")
    connection.executescript(
        """
        CREATE TABLE docs (doc_id TEXT PRIMARY KEY, part INTEGER);
        CREATE TABLE chunks (
          chunk_id TEXT PRIMARY KEY,
          doc_id TEXT,
          type TEXT,
          ref TEXT,
          heading TEXT,
          text TEXT,
          page_pdf_start INTEGER,
          page_pdf_end INTEGER,
          citation_anchor_id TEXT
        );
        INSERT INTO docs VALUES ('doc-6', 6), ('doc-8', 8);
        INSERT INTO chunks VALUES
          ('c1', 'doc-6', 'clause', '8.4.5', 'Software unit verification',
           'software unit verification shall be performed', 20, 21, 'a1'),
          ('c2', 'doc-6', 'clause', '9.1', 'Other heading',
           'see 8.4.5 for hardware wiring details', 30, 30, 'a2'),
          ('c3', 'doc-8', 'table', 'Table 3', 'Methods',
           'configuration management records', 10, 11, NULL);
        """
    )
    return connection


def _with_embeddings(connection: sqlite3.Connection) -> sqlite3.Connection:
    connection.execute(
        """
        CREATE TABLE chunk_embeddings (
          chunk_id TEXT, model_id TEXT, embedding BLOB, embedding_dim INTEGER
        )
        """
    )
    for chunk_id, text in connection.execute("SELECT chunk_id, text FROM chunks").fetchall():
        blob = encode_embedding_blob(embed_text_local(text, DIM))
        connection.execute(
            "INSERT INTO chunk_embeddings VALUES (?, ?, ?, ?)", (chunk_id, MODEL, blob, DIM)
        )
    return connection


def test_lexical_exact_ref_ranks_first_with_top_score():
    hits = semantic_eval_lexical_hits(_base_db(), "8.4.5", None, None, 10)
    assert [hit.chunk_id for hit in hits] == ["c1", "c2"]
    assert hits[0].score == 1000.0
    assert hits[0].reference == "8.4.5"
    assert hits[0].citation_anchor_id == "a1"


def test_lexical_part_and_type_filters():
    connection = _base_db()
    assert semantic_eval_lexical_hits(connection, "8.4.5", 8, None, 10) == []
    tables = semantic_eval_lexical_hits(connection, "table 3", None, "TABLE", 10)
    assert [hit.chunk_id for hit in tables] == ["c3"]


def test_lexical_respects_limit():
    hits = semantic_eval_lexical_hits(_base_db(), "8.4.5", None, None, 1)
    assert len(hits) == 1


def test_semantic_hits_empty_without_embedding_table():
    assert semantic_eval_semantic_hits(_base_db(), "software", None, None, MODEL, DIM, 5) == []


def test_semantic_hits_rank_matching_chunk_first():
    connection = _with_embeddings(_base_db())
    hits = semantic_eval_semantic_hits(
        connection, "software unit verification shall be performed", None, None, MODEL, DIM, 5
    )
    assert hits[0].chunk_id == "c1"
    scores = [hit.score for hit in hits]
    assert scores == sorted(scores, reverse=True)


def test_semantic_hits_skip_dimension_mismatch_and_other_models():
    connection = _with_embeddings(_base_db())
    assert semantic_eval_semantic_hits(connection, "software", None, None, MODEL, 32, 5) == []
    assert semantic_eval_semantic_hits(connection, "software", None, None, "other", DIM, 5) == []


def test_hybrid_falls_back_to_lexical_without_embeddings():
    connection = _base_db()
    hybrid = semantic_eval_hybrid_hits(connection, "8.4.5", None, None, MODEL, DIM, 10, False)
    lexical = semantic_eval_lexical_hits(connection, "8.4.5", None, None, 10)
    assert hybrid == lexical


def test_hybrid_fuses_unique_sorted_hits():
    connection = _with_embeddings(_base_db())
    hits = semantic_eval_hybrid_hits(connection, "8.4.5", None, None, MODEL, DIM, 10, False)
    ids = [hit.chunk_id for hit in hits]
    assert len(ids) == len(set(ids))
    assert {"c1", "c2"} <= set(ids)
    scores = [hit.score for hit in hits]
    assert scores == sorted(scores, reverse=True)


def test_hybrid_exact_priority_pins_lexical_top1():
    connection = _with_embeddings(_base_db())
    lexical = semantic_eval_lexical_hits(connection, "8.4.5", None, None, 10)
    hits = semantic_eval_hybrid_hits(connection, "8.4.5", None, None, MODEL, DIM, 10, True)
    assert hits[0].chunk_id == lexical[0].chunk_id
    assert hits[0].score == pytest.approx(hits[1].score + 1.0)


def test_hybrid_respects_limit():
    connection = _with_embeddings(_base_db())
    hits = semantic_eval_hybrid_hits(connection, "8.4.5", None, None, MODEL, DIM, 1, True)
    assert len(hits) == 1


def test_semantic_hit_identity_format():
    hit = SemanticRetrievedHit("c9", "7.2", None, 14, None, 0.5)
    assert semantic_hit_identity(hit) == "c9|7.2|-1|14|"


def test_ndcg_perfect_ranking_is_one_and_edge_cases():
    assert ndcg_at_k(["a", "b", "x"], {"a"}, {"b"}, 10) == pytest.approx(1.0)
    assert ndcg_at_k(["a"], set(), set(), 10) is None
    assert ndcg_at_k(["a"], {"a"}, set(), 0) is None


def test_ndcg_worse_ranking_scores_lower():
    best = ndcg_at_k(["a", "b"], {"a"}, {"b"}, 10)
    swapped = ndcg_at_k(["b", "a"], {"a"}, {"b"}, 10)
    missing = ndcg_at_k(["x", "y"], {"a"}, {"b"}, 10)
    assert best > swapped > missing
    assert missing == 0.0


def _hits(*ids):
    return [SemanticRetrievedHit(chunk_id, "", None, None, None, 0.0) for chunk_id in ids]


def test_top_k_jaccard_overlap():
    assert top_k_jaccard_overlap(_hits("a", "b"), _hits("b", "a"), 10) == 1.0
    assert top_k_jaccard_overlap(_hits("a"), _hits("b"), 10) == 0.0
    assert top_k_jaccard_overlap(_hits("a"), _hits("a"), 0) is None
    assert top_k_jaccard_overlap([], [], 5) is None


def test_query_signal_tokens_drop_short_and_stopwords():
    assert query_signal_tokens("The safety requirements for ASIL, on HW") == ["asil", "safety"]


def test_semantic_embedding_query_text_strips_noise_prefix():
    assert semantic_embedding_query_text("Requirements for   software  units") == "software units"
    assert semantic_embedding_query_text("guidance for ") == "guidance for"
    assert semantic_embedding_query_text("   ") == ""


def test_lexical_signal_bonus():
    tokens = ["asil", "safety"]
    assert lexical_signal_bonus(tokens, "ASIL D", "Safety goals", "") == 1.0
    assert lexical_signal_bonus(tokens, "", "", "nothing here") == 0.0
    assert lexical_signal_bonus([], "asil", "", "") == 0.0


def test_reciprocal_rank_and_recall():
    assert reciprocal_rank_at_k(["a", "b"], {"a"}, 10) == 1.0
    assert reciprocal_rank_at_k(["x", "y"], {"a"}, 10) == 0.0
    assert reciprocal_rank_at_k(["a"], set(), 10) is None
    assert recall_at_k(["a", "b"], {"a", "b"}, 10) == 1.0
    assert recall_at_k(["a", "b"], {"a", "b"}, 0) is None


def test_judged_at_k():
    assert judged_at_k([], {"a"}, 10) == 0.0
    assert judged_at_k(["a", "b"], {"a", "b"}, 2) == 1.0
    assert judged_at_k(["a"], set(), 10) is None


def test_percentile_and_mean():
    assert percentile([3.0, 1.0, 2.0], 0.5) == 2.0
    assert percentile([3.0, 1.0, 2.0], 5.0) == 3.0
    assert percentile([3.0, 1.0, 2.0], -1.0) == 1.0
    assert percentile([], 0.5) is None
    assert mean([2.0, 4.0]) == 3.0
    assert mean([]) is None