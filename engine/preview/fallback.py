"""
Preview Engine — Fallback Tier Controller

Wraps the whole pipeline and guarantees that some preview comes back.

    full ──(any stage fails)──▶ simplified ──(synthesizer fails)──▶ static

Tiers only move right within one request. The first tier is the lower of
the caller's requested tier and the size-based tier: text longer than
size_threshold never attempts Full.

Full:        normalize → rewrite module classes → classify → compile
             → resolve + mount in a fresh SandboxSession, all under the
             global timer
Simplified:  a sketch of the raw text, nothing is executed
Static:      character count and truncated source, cannot fail

Every attempt is recorded as a RenderAttempt.
"""

from __future__ import annotations

import asyncio
import html
import logging
import re
import time
from collections.abc import Callable

from engine.preview.classifier import classify
from engine.preview.compiler import compile_markup
from engine.preview.documents import (
    diagnostic_panel,
    full_document,
    simplified_document,
    simplified_markup,
    static_document,
)
from engine.preview.errors import CompileError, PreviewError, RenderTimeoutError
from engine.preview.host import SandboxSession
from engine.preview.normalizer import normalize
from engine.preview.resolver import ResolutionSession, extract_candidates, resolve
from engine.preview.styling import StylingPlan, plan_styling, rewrite_module_classes
from engine.preview.types import (
    TIER_ORDER,
    CompiledCode,
    NormalizedText,
    PipelineTrace,
    PreviewOptions,
    PreviewResult,
    RenderAttempt,
    ResolvedCallable,
    SourceSketch,
    SourceUnit,
    Tier,
)

logger = logging.getLogger(__name__)

SessionFactory = Callable[[PreviewOptions], ResolutionSession]

MAX_SKETCH_TEXTS = 5
MAX_SKETCH_TEXT_CHARS = 160

# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def render_preview(
    unit: SourceUnit,
    options: PreviewOptions | None = None,
    session_factory: SessionFactory = SandboxSession,
) -> PreviewResult:
    """
    Produce a preview document for `unit`. Never raises.

    `session_factory` builds the sandbox session for a Full attempt; it
    must return an async context manager with the SandboxSession methods.
    """
    opts = options or PreviewOptions()
    display_name = unit.component_name.strip() or "Component"
    trace = PipelineTrace()
    attempts: list[RenderAttempt] = []
    diagnostic = ""

    tier = initial_tier(unit, opts)
    if tier != "full":
        logger.info("preview: starting at %s (%d chars)", tier, len(unit.raw_text))

    if tier == "full":
        started = time.monotonic()
        try:
            document, resolved = await asyncio.wait_for(
                _full_attempt(unit, opts, session_factory, trace, display_name),
                timeout=opts.global_timeout_seconds,
            )
        except asyncio.TimeoutError:
            error: PreviewError = RenderTimeoutError(
                f"Preview timed out after {opts.global_timeout_seconds:g}s", timer="global"
            )
        except PreviewError as e:
            error = e
        except Exception as e:
            logger.exception("preview: unexpected failure in full tier")
            error = PreviewError(f"{type(e).__name__}: {e}")
        else:
            attempts.append(RenderAttempt(tier="full", elapsed_ms=_elapsed_ms(started)))
            logger.info("preview: full tier rendered %s in %dms", resolved.name, attempts[-1].elapsed_ms)
            return PreviewResult(document=document, tier="full", attempts=attempts, trace=trace, resolved=resolved)

        attempts.append(
            RenderAttempt(
                tier="full",
                outcome="error",
                error_kind=error.kind,
                message=error.message,
                elapsed_ms=_elapsed_ms(started),
            )
        )
        logger.warning("preview: full tier failed (%s: %s), downgrading to simplified", error.kind, error.message)
        diagnostic = diagnostic_panel(
            error.kind,
            error.message,
            location=error.location if isinstance(error, CompileError) else None,
            trace=trace,
            debug=opts.debug,
        )
        tier = "simplified"

    if tier == "simplified":
        started = time.monotonic()
        try:
            document = simplified_document(
                sketch_source(unit.raw_text),
                display_name,
                plan_styling(unit),
                opts,
                diagnostic=diagnostic,
            )
        except Exception as e:
            logger.exception("preview: simplified synthesizer failed, downgrading to static")
            attempts.append(
                RenderAttempt(
                    tier="simplified",
                    outcome="error",
                    error_kind=getattr(e, "kind", "internal"),
                    message=str(e),
                    elapsed_ms=_elapsed_ms(started),
                )
            )
        else:
            attempts.append(RenderAttempt(tier="simplified", elapsed_ms=_elapsed_ms(started)))
            return PreviewResult(document=document, tier="simplified", attempts=attempts, trace=trace)

    started = time.monotonic()
    document = static_document(unit.raw_text, display_name)
    attempts.append(RenderAttempt(tier="static", elapsed_ms=_elapsed_ms(started)))
    return PreviewResult(document=document, tier="static", attempts=attempts, trace=trace)


def initial_tier(unit: SourceUnit, options: PreviewOptions) -> Tier:
    """The lower-fidelity of the requested tier and the size-based tier."""
    by_size: Tier = "simplified" if len(unit.raw_text) > options.size_threshold else "full"
    requested = options.requested_tier if options.requested_tier in TIER_ORDER else "full"
    return max(by_size, requested, key=TIER_ORDER.index)


# ---------------------------------------------------------------------------
# Full tier
# ---------------------------------------------------------------------------


async def _full_attempt(
    unit: SourceUnit,
    options: PreviewOptions,
    session_factory: SessionFactory,
    trace: PipelineTrace,
    display_name: str,
) -> tuple[str, ResolvedCallable]:
    # Parsing is CPU-bound; off the loop, the global timer can still fire.
    plan, normalized, compiled = await asyncio.to_thread(_prepare, unit, trace)

    async with session_factory(options) as session:
        resolved = await resolve(compiled.code, unit.component_name, session, normalized.default_export)
        trace.resolved = resolved.name
        markup = await session.mount(resolved.name, resolved.strategy)

    document = await asyncio.to_thread(
        _build_full_document, unit, options, plan, normalized, compiled, resolved, markup, display_name
    )
    return document, resolved


def _prepare(unit: SourceUnit, trace: PipelineTrace) -> tuple[StylingPlan, NormalizedText, CompiledCode]:
    plan = plan_styling(unit)

    normalized = normalize(unit.raw_text)
    trace.normalized = normalized.text
    trace.diagnostics = normalized.diagnostics

    text = normalized.text
    if plan.module_binding is not None:
        text = rewrite_module_classes(text, plan.has_stylesheet, plan.module_binding)

    decision = classify(text, unit.component_name)
    trace.wrapped = decision.code

    compiled = compile_markup(decision.code)
    trace.compiled = compiled.code
    return plan, normalized, compiled


def _build_full_document(
    unit: SourceUnit,
    options: PreviewOptions,
    plan: StylingPlan,
    normalized: NormalizedText,
    compiled: CompiledCode,
    resolved: ResolvedCallable,
    markup: str,
    display_name: str,
) -> str:
    candidates = [resolved.name] + [
        c.name
        for c in extract_candidates(compiled.code, unit.component_name, normalized.default_export)
        if c.name != resolved.name
    ]
    return full_document(
        compiled=compiled.code,
        resolved=resolved,
        candidates=candidates,
        markup=markup,
        fallback_markup=simplified_markup(sketch_source(unit.raw_text), display_name),
        component_name=display_name,
        plan=plan,
        options=options,
    )


# ---------------------------------------------------------------------------
# Simplified tier heuristics
# ---------------------------------------------------------------------------

_TEXT_RE = re.compile(r">([^<>{}]{10,})<")
_HEADING_RE = re.compile(r"<h[12]\b[^>]*>([^<>{}]+)</h[12]>")
_GREETING_RE = re.compile(r"\b(?:welcome|hello|hi|hey|greetings|good (?:morning|afternoon|evening))\b", re.IGNORECASE)
_HEADER_RE = re.compile(r"<header\b|\bheader\b", re.IGNORECASE)
_ACTION_RE = re.compile(
    r"<button\b|\bbutton\b|onClick|\b(?:submit|sign (?:up|in)|get started|learn more|buy|subscribe|add to cart|continue|download)\b",
    re.IGNORECASE,
)
_MEDIA_RE = re.compile(r"<(?:img|video|svg|picture)\b|\b(?:image|avatar|icon|logo|photo|thumbnail)\b", re.IGNORECASE)
_FOOTER_RE = re.compile(r"<footer\b|\bfooter\b", re.IGNORECASE)
_BACKGROUND_RE = re.compile(
    r"bg-\[(#[0-9a-fA-F]{3,8})\]|background(?:Color)?\s*:\s*['\"](#[0-9a-fA-F]{3,8})['\"]"
)


def sketch_source(raw_text: str) -> SourceSketch:
    """Read a visual sketch out of raw text without executing anything."""
    texts: list[str] = []
    for m in _TEXT_RE.finditer(raw_text):
        text = _clean_text(m.group(1))
        if len(text) < 10 or text in texts or _looks_like_code(text):
            continue
        texts.append(text[:MAX_SKETCH_TEXT_CHARS])
        if len(texts) >= MAX_SKETCH_TEXTS:
            break

    heading_match = _HEADING_RE.search(raw_text)
    heading = _clean_text(heading_match.group(1)) if heading_match else None
    if not heading:
        heading = next((t for t in texts if _GREETING_RE.search(t)), None)

    background = _BACKGROUND_RE.search(raw_text)
    return SourceSketch(
        char_count=len(raw_text),
        texts=texts,
        heading=heading[:MAX_SKETCH_TEXT_CHARS] if heading else None,
        has_header=bool(_HEADER_RE.search(raw_text)) or bool(heading and _GREETING_RE.search(heading)),
        has_action=bool(_ACTION_RE.search(raw_text)),
        has_media=bool(_MEDIA_RE.search(raw_text)),
        has_footer=bool(_FOOTER_RE.search(raw_text)),
        background=(background.group(1) or background.group(2)) if background else None,
    )


def _clean_text(text: str) -> str:
    return re.sub(r"\s+", " ", html.unescape(text)).strip()


def _looks_like_code(text: str) -> bool:
    return "=>" in text or text.endswith(";") or "&&" in text or "||" in text


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)
