"""Gate stage and citation-baseline settings taken from the environment."""

from __future__ import annotations

import enum
import os
from pathlib import Path

WP2_GATE_STAGE_ENV = "WP2_GATE_STAGE"
WP2_CITATION_BASELINE_MODE_ENV = "WP2_CITATION_BASELINE_MODE"
WP2_CITATION_BASELINE_PATH_ENV = "WP2_CITATION_BASELINE_PATH"

DEFAULT_CITATION_BASELINE_PATH = Path("manifests") / "citation_parity_baseline.lock.json"

_BOOTSTRAP_ALIASES = frozenset({"bootstrap", "rotate"})


def _ascii_lower(text: str) -> str:
    return "".join(ch.lower() if ch.isascii() else ch for ch in text)


class Wp2GateStage(enum.Enum):
    """Strictness stage of the quality gate: A warns, B fails."""

    A = "A"
    B = "B"


class CitationBaselineMode(enum.Enum):
    """Whether the citation lockfile is verified against or (re)written."""

    VERIFY = "verify"
    BOOTSTRAP = "bootstrap"

    def as_str(self) -> str:
        """The mode's lower-case name."""
        return self.value


def resolve_wp2_gate_stage() -> Wp2GateStage:
    """Stage B when the environment asks for it, Stage A otherwise."""
    value = os.environ.get(WP2_GATE_STAGE_ENV)
    if value is not None and _ascii_lower(value.strip()) == "b":
        return Wp2GateStage.B
    return Wp2GateStage.A


def resolve_citation_baseline_mode() -> CitationBaselineMode:
    """The citation baseline mode configured in the environment."""
    return parse_citation_baseline_mode(os.environ.get(WP2_CITATION_BASELINE_MODE_ENV))


def resolve_citation_baseline_path() -> Path:
    """The citation baseline lockfile path configured in the environment."""
    return parse_citation_baseline_path(os.environ.get(WP2_CITATION_BASELINE_PATH_ENV))


def parse_citation_baseline_mode(value: str | None) -> CitationBaselineMode:
    """``bootstrap`` or ``rotate`` (any case) select bootstrap; anything else verifies."""
    if value is not None and _ascii_lower(value.strip()) in _BOOTSTRAP_ALIASES:
        return CitationBaselineMode.BOOTSTRAP
    return CitationBaselineMode.VERIFY


def parse_citation_baseline_path(value: str | None) -> Path:
    """The given path if non-blank, else the repository lockfile."""
    if value is not None:
        candidate = value.strip()
        if candidate:
            return Path(candidate)
    return DEFAULT_CITATION_BASELINE_PATH