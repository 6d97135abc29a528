"""
Preview Engine — Shared Types

Data classes passed between the pipeline stages:

  SourceUnit → NormalizedText → ClassificationDecision → CompiledCode
             → CandidateName[] → ResolvedCallable → RenderAttempt

SourceUnit is owned by the caller and never mutated. Everything else is
derived per preview request and thrown away afterwards.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Literal

# ---------------------------------------------------------------------------
# Literals
# ---------------------------------------------------------------------------

StylingMode = Literal["utility-classes", "scoped-stylesheet", "css-in-code"]
Tier = Literal["full", "simplified", "static"]
DiagnosticKind = Literal[
    "module_declaration",
    "type_declaration",
    "type_annotation",
    "markup_artifact",
    "markup_imbalance",
]
ClassificationKind = Literal["complete_callable", "bare_fragment"]
ResolutionStrategy = Literal["registry", "closure"]

# Fidelity order, highest first. The controller only ever moves right.
TIER_ORDER: tuple[str, ...] = ("full", "simplified", "static")

IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z_$][\w$]*$")

DEFAULT_COMPONENT_NAME = "GeneratedComponent"


def component_identifier(name: str) -> str:
    """Reduce a free-form component name to a usable JS identifier."""
    cleaned = re.sub(r"[^A-Za-z0-9_$]", "", name or "")
    if not cleaned:
        return DEFAULT_COMPONENT_NAME
    if cleaned[0].isdigit():
        cleaned = "C" + cleaned
    return cleaned


# ---------------------------------------------------------------------------
# Input
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AuxiliaryFile:
    """A file that travelled with the snippet (usually a stylesheet)."""

    name: str
    content: str
    type: str = ""

    @property
    def is_stylesheet(self) -> bool:
        return self.type == "css" or self.name.endswith(".css")


@dataclass(frozen=True)
class SourceUnit:
    """Raw generated component text plus its declared metadata."""

    raw_text: str
    component_name: str
    declared_styling_mode: StylingMode = "utility-classes"
    auxiliary_files: tuple[AuxiliaryFile, ...] = ()


# ---------------------------------------------------------------------------
# Pipeline intermediates
# ---------------------------------------------------------------------------


@dataclass
class Diagnostic:
    """One removed construct, or a non-fatal normalization warning."""

    kind: DiagnosticKind
    line: int
    column: int
    detail: str = ""


@dataclass
class NormalizedText:
    """Dialect-free text plus what was removed to get there."""

    text: str
    diagnostics: list[Diagnostic] = field(default_factory=list)
    default_export: str | None = None

    @property
    def warnings(self) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.kind == "markup_imbalance"]


@dataclass
class MarkupTagCount:
    opening: int = 0
    closing: int = 0
    self_closing: int = 0


@dataclass
class ClassificationDecision:
    kind: ClassificationKind
    code: str
    wrapper_name: str | None = None
    structurally_broken: bool = False


@dataclass
class CompiledCode:
    code: str
    repaired: bool = False
    repairs: list[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------

PRIORITY_DEFAULT_EXPORT = 0
PRIORITY_FUNCTION = 1
PRIORITY_BINDING = 2
PRIORITY_ASSIGNMENT = 3
PRIORITY_DECLARED = 4
PRIORITY_GLOBAL = 5


@dataclass
class CandidateName:
    name: str
    source_pattern: str
    priority: int
    position: int = -1  # offset in the compiled code, -1 when not syntactic

    @property
    def is_syntactic(self) -> bool:
        return self.priority <= PRIORITY_ASSIGNMENT


@dataclass
class ValueShape:
    """What a sandboxed value looked like, as reported by the harness."""

    kind: str  # typeof, plus "null" and "array"
    has_type: bool = False
    has_element_marker: bool = False
    has_props: bool = False


@dataclass
class Probe:
    """Outcome of looking up one candidate and invoking it with no arguments."""

    name: str
    found: bool = False
    callable: bool = False
    threw: bool = False
    error: str | None = None
    value: ValueShape | None = None


@dataclass
class LoadResult:
    executed: bool
    error: str | None = None
    globals: list[str] = field(default_factory=list)


@dataclass
class ResolvedCallable:
    candidate: CandidateName
    strategy: ResolutionStrategy = "registry"

    @property
    def name(self) -> str:
        return self.candidate.name


# ---------------------------------------------------------------------------
# Attempts and results
# ---------------------------------------------------------------------------


@dataclass
class RenderAttempt:
    tier: Tier
    outcome: Literal["success", "error"] = "success"
    error_kind: str | None = None
    message: str | None = None
    elapsed_ms: int = 0


@dataclass
class SourceSketch:
    """Raw-text heuristics behind the simplified approximation."""

    char_count: int
    texts: list[str] = field(default_factory=list)
    heading: str | None = None
    has_header: bool = False
    has_action: bool = False
    has_media: bool = False
    has_footer: bool = False
    background: str | None = None


@dataclass
class PipelineTrace:
    """Intermediate text forms, kept for diagnostic panels."""

    normalized: str | None = None
    wrapped: str | None = None
    compiled: str | None = None
    resolved: str | None = None
    diagnostics: list[Diagnostic] = field(default_factory=list)

    def stages(self) -> list[tuple[str, str]]:
        out = []
        for label, text in (("Normalized", self.normalized), ("Wrapped", self.wrapped), ("Compiled", self.compiled)):
            if text is not None:
                out.append((label, text))
        return out


@dataclass
class PreviewOptions:
    """Knobs for one preview request. Built by the caller (see backend.config)."""

    size_threshold: int = 50_000
    global_timeout_seconds: float = 10.0
    render_timeout_seconds: float = 5.0
    ready_timeout_seconds: float = 3.0
    node_binary: str = "node"
    debug: bool = False
    requested_tier: Tier = "full"
    react_url: str = "https://unpkg.com/react@18/umd/react.production.min.js"
    react_dom_url: str = "https://unpkg.com/react-dom@18/umd/react-dom.production.min.js"
    utility_css_url: str = "https://cdn.tailwindcss.com"


@dataclass
class PreviewResult:
    document: str
    tier: Tier
    attempts: list[RenderAttempt] = field(default_factory=list)
    trace: PipelineTrace = field(default_factory=PipelineTrace)
    resolved: ResolvedCallable | None = None

    @property
    def final_attempt(self) -> RenderAttempt:
        return self.attempts[-1]
