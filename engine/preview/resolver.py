"""
Preview Engine — Candidate Resolver

Works out which name in the compiled code is "the" component.

A snippet usually defines several capitalized callables (the component,
helpers, icons) and the declared component name is only a hint. Names are
collected from the compiled code by ordered patterns, then every candidate
is invoked with no arguments inside the sandbox. Only a candidate whose
result looks like a renderable element may win. Built-in constructors
that share the capitalized convention fail that check.

Candidate order (lower priority number first):

  0  name bound by a stripped `export default`
  1  function / class declarations
  2  const / let / var bindings
  3  assignment-style declarations   Card = () => …
  4  the declared component name
  5  capitalized functions the snippet added to the global scope

Within one priority the declared name goes first, then the last declared.
"""

from __future__ import annotations

import logging
import re
from typing import Protocol

from engine.preview.errors import ResolutionError
from engine.preview.types import (
    PRIORITY_ASSIGNMENT,
    PRIORITY_BINDING,
    PRIORITY_DECLARED,
    PRIORITY_DEFAULT_EXPORT,
    PRIORITY_FUNCTION,
    PRIORITY_GLOBAL,
    CandidateName,
    LoadResult,
    Probe,
    ResolvedCallable,
    ValueShape,
    component_identifier,
)

logger = logging.getLogger(__name__)

_NAME = r"([A-Z][\w$]*)"

# (pattern name, priority, regex); group 1 is the candidate name.
CANDIDATE_PATTERNS: list[tuple[str, int, re.Pattern]] = [
    ("function", PRIORITY_FUNCTION, re.compile(rf"\bfunction(?:\s*\*\s*|\s+){_NAME}\s*\(")),
    ("class", PRIORITY_FUNCTION, re.compile(rf"\bclass\s+{_NAME}\b")),
    ("binding", PRIORITY_BINDING, re.compile(rf"\b(?:const|let|var)\s+{_NAME}\s*=")),
    (
        "assignment",
        PRIORITY_ASSIGNMENT,
        re.compile(rf"(?:^|[^\w$.])\s*{_NAME}\s*=\s*(?:async\s+)?(?:function\b|\([^()]*\)\s*=>|[\w$]+\s*=>)", re.MULTILINE),
    ),
]

# Names that are never the component, even when the snippet defines them.
RESERVED_NAMES = {"React", "ReactDOM", "Component", "PureComponent", "Fragment", "Babel"}


class ResolutionSession(Protocol):
    """What the resolver needs from the execution host."""

    async def load(self, code: str) -> LoadResult: ...

    async def probe(self, names: list[str]) -> dict[str, Probe]: ...

    async def probe_closure(self, code: str, name: str) -> Probe: ...


# ---------------------------------------------------------------------------
# Candidates
# ---------------------------------------------------------------------------


def extract_candidates(
    compiled: str,
    component_name: str,
    default_export: str | None = None,
) -> list[CandidateName]:
    """Syntactic candidates plus the declared name, in resolution order."""
    declared = component_identifier(component_name)
    found: dict[str, CandidateName] = {}

    def _add(candidate: CandidateName) -> None:
        if candidate.name in RESERVED_NAMES:
            return
        existing = found.get(candidate.name)
        if existing is None or candidate.priority < existing.priority:
            found[candidate.name] = candidate
        elif candidate.priority == existing.priority and candidate.position > existing.position:
            existing.position = candidate.position

    if default_export:
        position = compiled.rfind(default_export)
        _add(CandidateName(default_export, "export default", PRIORITY_DEFAULT_EXPORT, position))

    for pattern_name, priority, regex in CANDIDATE_PATTERNS:
        for m in regex.finditer(compiled):
            _add(CandidateName(m.group(1), pattern_name, priority, m.start(1)))

    ordered = sorted(found.values(), key=lambda c: (c.priority, c.name != declared, -c.position))

    if declared not in found and declared not in RESERVED_NAMES:
        ordered.append(CandidateName(declared, "declared name", PRIORITY_DECLARED))
    return ordered


def global_candidates(globals_added: list[str], known: list[CandidateName]) -> list[CandidateName]:
    """Capitalized functions the snippet added, last defined first."""
    seen = {c.name for c in known}
    out = []
    for name in reversed(globals_added):
        if name in seen or name in RESERVED_NAMES or not name[:1].isupper():
            continue
        seen.add(name)
        out.append(CandidateName(name, "global", PRIORITY_GLOBAL))
    return out


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def is_renderable(shape: ValueShape | None) -> bool:
    """An object exposing an element type, the element marker or props."""
    if shape is None or shape.kind != "object":
        return False
    return shape.has_type or shape.has_element_marker or shape.has_props


def passes_validation(probe: Probe | None) -> bool:
    if probe is None or not probe.found or not probe.callable or probe.threw:
        return False
    return is_renderable(probe.value)


def select_candidate(candidates: list[CandidateName], probes: dict[str, Probe]) -> CandidateName | None:
    """First candidate, in order, whose no-argument invocation passed."""
    for candidate in candidates:
        if passes_validation(probes.get(candidate.name)):
            return candidate
    return None


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------


async def resolve(
    compiled: str,
    component_name: str,
    session: ResolutionSession,
    default_export: str | None = None,
) -> ResolvedCallable:
    """
    Pick the component in `compiled`.

    The code is executed once in the session before any candidate is looked
    up. Raises ResolutionError when nothing passes validation; timeouts from
    the session propagate unchanged.
    """
    candidates = extract_candidates(compiled, component_name, default_export)

    loaded = await session.load(compiled)
    if not loaded.executed:
        raise ResolutionError(f"Component code threw while loading: {loaded.error}")
    candidates.extend(global_candidates(loaded.globals, candidates))

    if not candidates:
        raise ResolutionError("No component candidates found")
    logger.debug("resolve: candidates %s", [c.name for c in candidates])

    probes = await session.probe([c.name for c in candidates])
    chosen = select_candidate(candidates, probes)
    if chosen is not None:
        logger.info("resolve: %s (%s)", chosen.name, chosen.source_pattern)
        return ResolvedCallable(candidate=chosen, strategy="registry")

    syntactic = next((c for c in candidates if c.is_syntactic), None)
    if syntactic is not None:
        probe = await session.probe_closure(compiled, syntactic.name)
        if passes_validation(probe):
            logger.info("resolve: %s via closure", syntactic.name)
            return ResolvedCallable(candidate=syntactic, strategy="closure")

    raise ResolutionError(_describe_failure(candidates, probes))


def _describe_failure(candidates: list[CandidateName], probes: dict[str, Probe]) -> str:
    details = []
    for candidate in candidates:
        probe = probes.get(candidate.name)
        if probe is None or not probe.found:
            details.append(f"{candidate.name}: not defined")
        elif not probe.callable:
            details.append(f"{candidate.name}: not callable")
        elif probe.threw:
            details.append(f"{candidate.name}: threw {probe.error}")
        else:
            details.append(f"{candidate.name}: returned {probe.value.kind if probe.value else 'nothing'}")
    return "No candidate rendered an element (" + "; ".join(details) + ")"
