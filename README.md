# safetyrag

Library code for retrieving from, and measuring retrieval quality over, a
chunked safety-standard corpus stored in SQLite. It has no third-party
runtime dependencies.

## Modules

- `safetyrag.semantic`: a deterministic local embedder that hashes word and
  adjacent-bigram features into an L2-normalised vector (`embed_text_local`,
  `tokenize_payload`, `stable_hash`), the text embedded for a chunk
  (`chunk_payload_for_embedding`; only `clause`, `annex` and `table` chunks
  are eligible), its SHA-256 hash (`embedding_text_hash`),
  `cosine_similarity`, and little-endian float32 blob packing
  (`encode_embedding_blob` / `decode_embedding_blob`).
  `resolve_model_config` maps a model id (blank means
  `miniLM-L6-v2-local-v1`) to a `SemanticModelConfig`.
- `safetyrag.retrieval`: lexical (`semantic_eval_lexical_hits`), semantic
  (`semantic_eval_semantic_hits`) and hybrid reciprocal-rank-fused
  (`semantic_eval_hybrid_hits`) retrieval returning `SemanticRetrievedHit`
  objects, and ranking metrics: `ndcg_at_k`, `reciprocal_rank_at_k`,
  `recall_at_k`, `judged_at_k`, `top_k_jaccard_overlap`, `percentile`
  (nearest rank) and `mean`.
- `safetyrag.stats`: `sign_test_two_sided_p_value`, `binomial_pmf_half`,
  a seeded, repeatable `bootstrap_confidence_interval_95` for paired deltas,
  and `is_first_hit_intent`.
- `safetyrag.pinpoint_scoring`: tokenizing (`tokenize_pinpoint_value`),
  token overlap scoring, citation-anchor compatibility, table-query
  detection, unit-type priorities and parent-chunk selection for
  sub-chunk ("pinpoint") evaluation.
- `safetyrag.eval_types`: data classes for evaluation manifests, quality
  reports and baselines. `SemanticEvalManifest`, `PinpointEvalManifest`,
  `CitationParityBaseline`, `SemanticRetrievalBaseline` and
  `TargetSectionsManifest` have a `from_dict` that validates parsed JSON and
  raises `ValueError` on missing or mistyped fields; the two eval manifests
  also have `to_dict`.
- `safetyrag.gate`: the gate stage (`Wp2GateStage`, read from
  `WP2_GATE_STAGE`; `B` selects Stage B, anything else Stage A) and the
  citation baseline mode and path (`WP2_CITATION_BASELINE_MODE`,
  `WP2_CITATION_BASELINE_PATH`). `bootstrap` or `rotate` select
  `CitationBaselineMode.BOOTSTRAP`; the default path is
  `manifests/citation_parity_baseline.lock.json`.

## Expected database tables

The retrieval functions read an existing SQLite database; they do not create
or fill it.

- `chunks(chunk_id, doc_id, type, ref, heading, text, page_pdf_start,
  page_pdf_end, citation_anchor_id)`
- `docs(doc_id, part)`
- `chunk_embeddings(chunk_id, model_id, embedding, embedding_dim)` — optional;
  without it semantic retrieval returns no hits and hybrid retrieval falls
  back to the lexical ranking.

## Installation

```
pip install .
```

## Example

```python
import sqlite3

from safetyrag.retrieval import ndcg_at_k, semantic_eval_hybrid_hits
from safetyrag.semantic import cosine_similarity, embed_text_local
from safetyrag.stats import sign_test_two_sided_p_value

a = embed_text_local("software unit verification", 384)
b = embed_text_local("verification of software units", 384)
print(cosine_similarity(a, b))

print(ndcg_at_k(["c-1", "c-2"], {"c-2"}, set(), 10))
print(sign_test_two_sided_p_value([0.10, 0.08, 0.07, 0.06, 0.09]))

connection = sqlite3.connect("corpus.db")
hits = semantic_eval_hybrid_hits(
    connection, "8.4.5", None, None, "miniLM-L6-v2-local-v1", 384, 10, True
)
for hit in hits:
    print(hit.chunk_id, hit.score)
```

## What this package does not do

- It has no command-line program; everything is called from Python.
- It does not read PDFs, ingest documents, or create the database schema,
  and it does not write embeddings into `chunk_embeddings`.
- It does not run the full quality gate: beyond the stage and baseline
  settings in `safetyrag.gate`, there are no structural-invariant checks,
  table/list semantic completeness metrics, citation-parity comparison or
  pinpoint manifest bootstrapping here.

## Tests

```
pip install .[test]
pytest
```