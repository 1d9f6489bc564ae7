from pathlib import Path

import pytest

from safetyrag.gate import (
    WP2_CITATION_BASELINE_MODE_ENV,
    WP2_CITATION_BASELINE_PATH_ENV,
    WP2_GATE_STAGE_ENV,
    CitationBaselineMode,
    Wp2GateStage,
    parse_citation_baseline_mode,
    parse_citation_baseline_path,
    resolve_citation_baseline_mode,
    resolve_citation_baseline_path,
    resolve_wp2_gate_stage,
)


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("bootstrap", CitationBaselineMode.BOOTSTRAP),
        ("RoTaTe", CitationBaselineMode.BOOTSTRAP),
        ("  rotate  ", CitationBaselineMode.BOOTSTRAP),
        ("verify", CitationBaselineMode.VERIFY),
        ("something-else", CitationBaselineMode.VERIFY),
        ("", CitationBaselineMode.VERIFY),
        (None, CitationBaselineMode.VERIFY),
    ],
)
def test_parse_citation_baseline_mode_supports_bootstrap_aliases(value, expected):
    assert parse_citation_baseline_mode(value) == expected


def test_parse_citation_baseline_path_defaults_to_repo_lockfile():
    assert parse_citation_baseline_path(None) == Path(
        "manifests/citation_parity_baseline.lock.json"
    )
    assert parse_citation_baseline_path("/tmp/custom.lock.json") == Path(
        "/tmp/custom.lock.json"
    )


def test_parse_citation_baseline_path_blank_uses_default():
    assert parse_citation_baseline_path("   ") == Path(
        "manifests/citation_parity_baseline.lock.json"
    )


def test_parse_citation_baseline_path_trims():
    assert parse_citation_baseline_path("  a/b.json ") == Path("a/b.json")


def test_mode_as_str():
    assert CitationBaselineMode.VERIFY.as_str() == "verify"
    assert CitationBaselineMode.BOOTSTRAP.as_str() == "bootstrap"


def test_resolve_gate_stage_defaults_to_a(monkeypatch):
    monkeypatch.delenv(WP2_GATE_STAGE_ENV, raising=False)
    assert resolve_wp2_gate_stage() == Wp2GateStage.A


@pytest.mark.parametrize(
    ("value", "expected"),
    [("B", Wp2GateStage.B), (" b ", Wp2GateStage.B), ("A", Wp2GateStage.A), ("C", Wp2GateStage.A)],
)
def test_resolve_gate_stage_from_env(monkeypatch, value, expected):
    monkeypatch.setenv(WP2_GATE_STAGE_ENV, value)
    assert resolve_wp2_gate_stage() == expected


def test_resolve_citation_baseline_mode_from_env(monkeypatch):
    monkeypatch.setenv(WP2_CITATION_BASELINE_MODE_ENV, "Rotate")
    assert resolve_citation_baseline_mode() == CitationBaselineMode.BOOTSTRAP
    monkeypatch.delenv(WP2_CITATION_BASELINE_MODE_ENV)
    assert resolve_citation_baseline_mode() == CitationBaselineMode.VERIFY


def test_resolve_citation_baseline_path_from_env(monkeypatch):
    monkeypatch.setenv(WP2_CITATION_BASELINE_PATH_ENV, "/tmp/other.lock.json")
    assert resolve_citation_baseline_path() == Path("/tmp/other.lock.json")
    monkeypatch.delenv(WP2_CITATION_BASELINE_PATH_ENV)
    assert resolve_citation_baseline_path() == Path(
        "manifests/citation_parity_baseline.lock.json"
    )