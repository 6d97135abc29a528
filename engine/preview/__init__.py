"""
Preview Engine — code normalization, dynamic resolution and sandboxed rendering.

Pipeline (each stage a module):
  normalizer   raw text → NormalizedText          (dialect differences removed)
  classifier   → ClassificationDecision           (bare fragments wrapped)
  compiler     → CompiledCode                     (markup → createElement calls)
  resolver     → ResolvedCallable                 (which name is the component)
  host         SandboxSession                     (isolated, time-bounded Node vm)
  fallback     render_preview                     (full → simplified → static)

Supporting: styling (stylesheets, utility runtime, CSS modules), documents
(HTML output), syntax (tree-sitter helpers), jsx_transform.
"""

from engine.preview.classifier import classify
from engine.preview.compiler import compile_markup
from engine.preview.errors import (
    CompileError,
    HostUnavailableError,
    PreviewError,
    RenderTimeoutError,
    ResolutionError,
    RuntimeRenderError,
)
from engine.preview.fallback import initial_tier, render_preview, sketch_source
from engine.preview.host import SandboxSession
from engine.preview.normalizer import normalize
from engine.preview.resolver import extract_candidates, is_renderable, resolve
from engine.preview.types import AuxiliaryFile, PreviewOptions, PreviewResult, SourceUnit

__all__ = [
    "normalize",
    "classify",
    "compile_markup",
    "extract_candidates",
    "is_renderable",
    "resolve",
    "SandboxSession",
    "render_preview",
    "initial_tier",
    "sketch_source",
    "SourceUnit",
    "AuxiliaryFile",
    "PreviewOptions",
    "PreviewResult",
    "PreviewError",
    "CompileError",
    "ResolutionError",
    "RenderTimeoutError",
    "RuntimeRenderError",
    "HostUnavailableError",
]
