"""Data types for semantic retrieval evaluation manifests, reports and baselines."""

from __future__ import annotations

import dataclasses
import enum
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, TypeVar

T = TypeVar("T")


def _as_mapping(data: Any, what: str) -> Mapping[str, Any]:
    if not isinstance(data, Mapping):
        raise ValueError(f"{what}: expected an object")
    return data


def _str(value: Any, key: str) -> str:
    if not isinstance(value, str):
        raise ValueError(f"field `{key}`: expected a string")
    return value


def _uint(value: Any, key: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValueError(f"field `{key}`: expected a non-negative integer")
    return value


def _bool(value: Any, key: str) -> bool:
    if not isinstance(value, bool):
        raise ValueError(f"field `{key}`: expected a boolean")
    return value


def _float(value: Any, key: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"field `{key}`: expected a number")
    return float(value)


def _list_of(conv: Callable[[Any, str], T]) -> Callable[[Any, str], list[T]]:
    def convert(value: Any, key: str) -> list[T]:
        if not isinstance(value, list):
            raise ValueError(f"field `{key}`: expected an array")
        return [conv(item, key) for item in value]

    return convert


_str_list = _list_of(_str)
_token_sets = _list_of(_str_list)


def _dict_list(value: Any, key: str) -> list[dict[str, Any]]:
    if not isinstance(value, list):
        raise ValueError(f"field `{key}`: expected an array")
    return [dict(_as_mapping(item, key)) for item in value]


def _req(data: Mapping[str, Any], key: str, conv: Callable[[Any, str], T]) -> T:
    if key not in data:
        raise ValueError(f"missing field `{key}`")
    return conv(data[key], key)


def _opt(data: Mapping[str, Any], key: str, conv: Callable[[Any, str], T]) -> T | None:
    value = data.get(key)
    return None if value is None else conv(value, key)


def _list(data: Mapping[str, Any], key: str, conv: Callable[[Any, str], list[T]]) -> list[T]:
    if key not in data:
        return []
    return conv(data[key], key)


@dataclass
class CitationParityBaseline:
    manifest_version: int
    run_id: str
    generated_at: str
    db_schema_version: str | None
    target_linked_count: int
    query_options: str
    checksum: str
    entries: list[dict[str, Any]]
    decision_id: str | None = None
    change_reason: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> CitationParityBaseline:
        data = _as_mapping(data, "citation parity baseline")
        return cls(
            manifest_version=_req(data, "manifest_version", _uint),
            run_id=_req(data, "run_id", _str),
            generated_at=_req(data, "generated_at", _str),
            db_schema_version=_opt(data, "db_schema_version", _str),
            target_linked_count=_req(data, "target_linked_count", _uint),
            query_options=_req(data, "query_options", _str),
            checksum=_req(data, "checksum", _str),
            entries=_req(data, "entries", _dict_list),
            decision_id=_opt(data, "decision_id", _str),
            change_reason=_opt(data, "change_reason", _str),
        )


@dataclass
class CitationParityComparisonEntry:
    target_id: str
    top1_match: bool
    top3_contains_baseline: bool
    page_range_match: bool


@dataclass
class CitationParityArtifact:
    manifest_version: int
    run_id: str
    generated_at: str
    baseline_path: str
    baseline_mode: str
    baseline_checksum: str | None
    baseline_missing: bool
    target_linked_count: int
    comparable_count: int
    top1_parity: float | None
    top3_containment: float | None
    page_range_parity: float | None
    baseline_created: bool
    entries: list[CitationParityComparisonEntry] = field(default_factory=list)


@dataclass
class SemanticEmbeddingReport:
    active_model_id: str = ""
    embedding_dim: int | None = None
    eligible_chunks: int = 0
    embedded_chunks: int = 0
    stale_rows: int = 0
    embedding_rows_for_active_model: int = 0
    chunk_embedding_coverage_ratio: float | None = None
    stale_embedding_ratio: float | None = None
    warnings: list[str] = field(default_factory=list)


@dataclass
class SemanticQualitySummaryReport:
    source_eval_manifest: str | None = None
    quality_report_path: str | None = None
    active_model_id: str | None = None
    total_queries: int = 0
    non_exact_queries: int = 0
    exact_queries: int = 0
    semantic_ndcg_at_10: float | None = None
    lexical_ndcg_at_10: float | None = None
    hybrid_ndcg_at_10: float | None = None
    hybrid_ndcg_uplift_vs_lexical: float | None = None
    exact_ref_top1_hit_rate: float | None = None
    citation_parity_top1: float | None = None
    lexical_p95_latency_ms: float | None = None
    hybrid_p95_latency_ms: float | None = None
    latency_ratio_vs_lexical: float | None = None
    retrieval_determinism_topk_overlap: float | None = None
    hybrid_mrr_at_10_first_hit: float | None = None
    lexical_recall_at_50: float | None = None
    hybrid_recall_at_50: float | None = None
    hybrid_recall_at_50_delta_vs_lexical: float | None = None
    judged_at_10_label_completeness: float | None = None
    ndcg_uplift_p_value: float | None = None
    ndcg_uplift_bootstrap_ci_low: float | None = None
    ndcg_uplift_bootstrap_ci_high: float | None = None
    pinpoint_eval_manifest: str | None = None
    pinpoint_quality_report_path: str | None = None
    pinpoint_total_queries: int = 0
    pinpoint_table_queries: int = 0
    pinpoint_high_confidence_queries: int = 0
    pinpoint_at_1_relevance: float | None = None
    pinpoint_table_row_accuracy_at_1: float | None = None
    pinpoint_citation_anchor_mismatch_count: float | None = None
    pinpoint_fallback_ratio: float | None = None
    pinpoint_determinism_top1: float | None = None
    pinpoint_latency_overhead_p95_ms: float | None = None
    baseline_path: str = ""
    baseline_mode: str = ""
    baseline_run_id: str | None = None
    baseline_checksum: str | None = None
    baseline_created: bool = False
    baseline_missing: bool = False
    warnings: list[str] = field(default_factory=list)


class SemanticBaselineMode(enum.Enum):
    VERIFY = "verify"
    BOOTSTRAP = "bootstrap"

    def as_str(self) -> str:
        """The mode's lower-case name."""
        return self.value


@dataclass
class SemanticEvalQuery:
    query_id: str
    query_text: str
    intent: str
    expected_chunk_ids: list[str]
    must_hit_top1: bool
    judged_chunk_ids: list[str] = field(default_factory=list)
    expected_refs: list[str] = field(default_factory=list)
    part_filter: int | None = None
    chunk_type_filter: str | None = None
    notes: str | None = None


def _semantic_query_from_dict(data: Any, key: str) -> SemanticEvalQuery:
    data = _as_mapping(data, key)
    return SemanticEvalQuery(
        query_id=_req(data, "query_id", _str),
        query_text=_req(data, "query_text", _str),
        intent=_req(data, "intent", _str),
        expected_chunk_ids=_req(data, "expected_chunk_ids", _str_list),
        must_hit_top1=_req(data, "must_hit_top1", _bool),
        judged_chunk_ids=_list(data, "judged_chunk_ids", _str_list),
        expected_refs=_list(data, "expected_refs", _str_list),
        part_filter=_opt(data, "part_filter", _uint),
        chunk_type_filter=_opt(data, "chunk_type_filter", _str),
        notes=_opt(data, "notes", _str),
    )


@dataclass
class SemanticEvalManifest:
    manifest_version: int
    generated_at: str
    source: str
    queries: list[SemanticEvalQuery] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> SemanticEvalManifest:
        data = _as_mapping(data, "semantic eval manifest")
        return cls(
            manifest_version=_req(data, "manifest_version", _uint),
            generated_at=_req(data, "generated_at", _str),
            source=_req(data, "source", _str),
            queries=_req(data, "queries", _list_of(_semantic_query_from_dict)),
        )

    def to_dict(self) -> dict[str, Any]:
        return dataclasses.asdict(self)


@dataclass
class SemanticQualityQueryResult:
    query_id: str
    intent: str
    query_text: str
    expected_chunk_ids: list[str]
    lexical_top_chunk_ids: list[str]
    semantic_top_chunk_ids: list[str]
    hybrid_top_chunk_ids: list[str]
    lexical_ndcg_at_10: float | None
    semantic_ndcg_at_10: float | None
    hybrid_ndcg_at_10: float | None
    hybrid_rr_at_10: float | None
    lexical_recall_at_50: float | None
    hybrid_recall_at_50: float | None
    judged_at_10: float | None
    lexical_latency_ms: float
    semantic_latency_ms: float
    hybrid_latency_ms: float
    exact_top1_hit_hybrid: bool | None
    citation_top1_match_lexical_vs_hybrid: bool | None
    determinism_top10_overlap: float | None


@dataclass
class SemanticQualityArtifact:
    manifest_version: int
    run_id: str
    generated_at: str
    source_eval_manifest: str
    active_model_id: str | None
    summary: SemanticQualitySummaryReport
    query_results: list[SemanticQualityQueryResult] = field(default_factory=list)


@dataclass
class PinpointEvalQuery:
    query_id: str
    query_text: str
    parent_expected_chunk_ids: list[str]
    high_confidence: bool
    intent: str
    expected_unit_ids: list[str] = field(default_factory=list)
    expected_token_sets: list[list[str]] = field(default_factory=list)
    expected_row_keys: list[str] = field(default_factory=list)
    part_filter: int | None = None
    chunk_type_filter: str | None = None
    notes: str | None = None


def _pinpoint_query_from_dict(data: Any, key: str) -> PinpointEvalQuery:
    data = _as_mapping(data, key)
    return PinpointEvalQuery(
        query_id=_req(data, "query_id", _str),
        query_text=_req(data, "query_text", _str),
        parent_expected_chunk_ids=_req(data, "parent_expected_chunk_ids", _str_list),
        high_confidence=_req(data, "high_confidence", _bool),
        intent=_req(data, "intent", _str),
        expected_unit_ids=_list(data, "expected_unit_ids", _str_list),
        expected_token_sets=_list(data, "expected_token_sets", _token_sets),
        expected_row_keys=_list(data, "expected_row_keys", _str_list),
        part_filter=_opt(data, "part_filter", _uint),
        chunk_type_filter=_opt(data, "chunk_type_filter", _str),
        notes=_opt(data, "notes", _str),
    )


_PINPOINT_QUERY_ORDER = (
    "query_id",
    "query_text",
    "parent_expected_chunk_ids",
    "expected_unit_ids",
    "expected_token_sets",
    "expected_row_keys",
    "high_confidence",
    "intent",
    "part_filter",
    "chunk_type_filter",
    "notes",
)


@dataclass
class PinpointEvalManifest:
    manifest_version: int
    generated_at: str
    source: str
    queries: list[PinpointEvalQuery] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> PinpointEvalManifest:
        data = _as_mapping(data, "pinpoint eval manifest")
        return cls(
            manifest_version=_req(data, "manifest_version", _uint),
            generated_at=_req(data, "generated_at", _str),
            source=_req(data, "source", _str),
            queries=_req(data, "queries", _list_of(_pinpoint_query_from_dict)),
        )

    def to_dict(self) -> dict[str, Any]:
        queries = []
        for query in self.queries:
            raw = dataclasses.asdict(query)
            queries.append({name: raw[name] for name in _PINPOINT_QUERY_ORDER})
        return {
            "manifest_version": self.manifest_version,
            "generated_at": self.generated_at,
            "source": self.source,
            "queries": queries,
        }


@dataclass
class PinpointQualitySummary:
    source_eval_manifest: str | None = None
    quality_report_path: str | None = None
    total_queries: int = 0
    table_queries: int = 0
    high_confidence_queries: int = 0
    pinpoint_at_1_relevance: float | None = None
    table_row_accuracy_at_1: float | None = None
    citation_anchor_mismatch_count: int = 0
    fallback_ratio: float | None = None
    determinism_top1: float | None = None
    latency_overhead_p95_ms: float | None = None
    warnings: list[str] = field(default_factory=list)


@dataclass
class PinpointQualityQueryResult:
    query_id: str
    intent: str
    query_text: str
    parent_chunk_id: str | None
    top_unit_id: str | None
    top_unit_type: str | None
    top_unit_text: str | None
    top_row_key: str | None
    top_unit_score: float | None
    relevance_hit_at_1: bool | None
    row_accuracy_hit_at_1: bool | None
    citation_anchor_compatible: bool | None
    fallback_used: bool
    determinism_top1_match: bool | None
    latency_without_pinpoint_ms: float
    latency_with_pinpoint_ms: float
    latency_overhead_ms: float


@dataclass
class PinpointQualityArtifact:
    manifest_version: int
    run_id: str
    generated_at: str
    source_eval_manifest: str
    summary: PinpointQualitySummary
    query_results: list[PinpointQualityQueryResult] = field(default_factory=list)


@dataclass
class SemanticRetrievalBaselineThresholds:
    q031_stage_a_min: float
    q031_stage_b_min: float
    q032_stage_a_max: float
    q032_stage_b_max: float
    q033_stage_a_min: float
    q033_stage_b_min: float
    q034_stage_a_min: float
    q034_stage_b_min: float
    q035_stage_a_min: float
    q035_stage_b_min: float
    q036_stage_a_min: float
    q036_stage_b_min: float
    q037_latency_ratio_stage_a_max: float
    q037_latency_ratio_stage_b_max: float
    q037_hybrid_p95_stage_b_max_ms: float
    q038_stage_a_min: float
    q038_stage_b_min: float
    q045_stage_a_min: float
    q045_stage_b_min: float
    q046_stage_a_max_drop: float
    q046_stage_b_max_drop: float
    q047_stage_a_min: float
    q047_stage_b_min: float
    q048_stage_a_p_max: float
    q048_stage_b_p_max: float


@dataclass
class SemanticRetrievalBaselineMetrics:
    q031_chunk_embedding_coverage_ratio: float | None = None
    q032_stale_embedding_ratio: float | None = None
    q033_semantic_ndcg_at_10: float | None = None
    q034_hybrid_ndcg_uplift_vs_lexical: float | None = None
    q035_exact_ref_top1_hit_rate: float | None = None
    q036_citation_parity_top1: float | None = None
    q037_hybrid_p95_latency_ms: float | None = None
    q037_latency_ratio_vs_lexical: float | None = None
    q038_retrieval_determinism_topk_overlap: float | None = None
    q045_hybrid_mrr_at_10_first_hit: float | None = None
    q046_hybrid_recall_at_50_delta_vs_lexical: float | None = None
    q047_judged_at_10_label_completeness: float | None = None
    q048_ndcg_uplift_p_value: float | None = None
    q048_ndcg_uplift_bootstrap_ci_low: float | None = None
    q048_ndcg_uplift_bootstrap_ci_high: float | None = None


def _thresholds_from_dict(data: Any, key: str) -> SemanticRetrievalBaselineThresholds:
    data = _as_mapping(data, key)
    values = {
        item.name: _req(data, item.name, _float)
        for item in dataclasses.fields(SemanticRetrievalBaselineThresholds)
    }
    return SemanticRetrievalBaselineThresholds(**values)


def _metrics_from_dict(data: Any, key: str) -> SemanticRetrievalBaselineMetrics:
    data = _as_mapping(data, key)
    values = {
        item.name: _opt(data, item.name, _float)
        for item in dataclasses.fields(SemanticRetrievalBaselineMetrics)
    }
    return SemanticRetrievalBaselineMetrics(**values)


@dataclass
class SemanticRetrievalBaseline:
    manifest_version: int
    run_id: str
    generated_at: str
    db_schema_version: str | None
    check_ids: list[str]
    query_ids: list[str]
    thresholds: SemanticRetrievalBaselineThresholds
    summary_metrics: SemanticRetrievalBaselineMetrics
    checksum: str
    decision_id: str | None = None
    change_reason: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> SemanticRetrievalBaseline:
        data = _as_mapping(data, "semantic retrieval baseline")
        return cls(
            manifest_version=_req(data, "manifest_version", _uint),
            run_id=_req(data, "run_id", _str),
            generated_at=_req(data, "generated_at", _str),
            db_schema_version=_opt(data, "db_schema_version", _str),
            check_ids=_req(data, "check_ids", _str_list),
            query_ids=_req(data, "query_ids", _str_list),
            thresholds=_req(data, "thresholds", _thresholds_from_dict),
            summary_metrics=_req(data, "summary_metrics", _metrics_from_dict),
            checksum=_req(data, "checksum", _str),
            decision_id=_opt(data, "decision_id", _str),
            change_reason=_opt(data, "change_reason", _str),
        )


@dataclass
class TargetSectionReference:
    id: str
    part: int


def _target_from_dict(data: Any, key: str) -> TargetSectionReference:
    data = _as_mapping(data, key)
    return TargetSectionReference(id=_req(data, "id", _str), part=_req(data, "part", _uint))


@dataclass
class TargetSectionsManifest:
    targets: list[TargetSectionReference]
    target_count: int | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> TargetSectionsManifest:
        data = _as_mapping(data, "target sections manifest")
        return cls(
            targets=_req(data, "targets", _list_of(_target_from_dict)),
            target_count=_opt(data, "target_count", _uint),
        )