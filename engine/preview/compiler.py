"""
Preview Engine — Markup Compiler Adapter

Runs the markup transform and classifies what goes wrong. On a syntax
failure the adapter makes one aggressive repair pass and tries again,
exactly once:

  - inline style objects      style={{ … }}
  - residual type syntax      : React.FC<Props>, as const, x!, <T>
  - HTML-styled span wrappers <span style="…"> … </span>

A second failure is a CompileError carrying the location of the first
failure that survived repair.
"""

from __future__ import annotations

import logging
import re

from engine.preview import syntax
from engine.preview.errors import CompileError
from engine.preview.jsx_transform import MarkupSyntaxError, transform_markup
from engine.preview.syntax import EditSet, ParsedSource
from engine.preview.types import CompiledCode

logger = logging.getLogger(__name__)

# Textual fallbacks for input the parser could not make sense of.
_STYLE_OBJECT_RE = re.compile(r"\s*style=\{\{[^{}]*\}\}")
_TYPE_REMNANT_RES = (
    re.compile(r":\s*React\.FC(?:<[^<>]*(?:<[^<>]*>[^<>]*)*>)?"),
    re.compile(r":\s*(?:JSX\.Element|React\.ReactNode|React\.ReactElement|ReactNode)\b(?:\s*\|\s*null)?"),
    re.compile(r"\s+as\s+const\b"),
)
_SPAN_OPEN_RE = re.compile(r"""<span\s+(?:style|class)\s*=\s*(?:"[^"]*"|'[^']*')[^>]*>""")
_SPAN_CLOSE = "</span>"

_STATEMENT_IGNORED_TYPES = {"comment", "empty_statement", "hash_bang_line"}


def compile_markup(code: str) -> CompiledCode:
    """
    Transform markup in `code` into executable statements.

    Raises CompileError when the transform fails twice, or when the
    result has nothing to execute.
    """
    try:
        compiled = CompiledCode(code=transform_markup(code))
    except MarkupSyntaxError as first:
        logger.info("compile: %s, attempting repair", first)
        repaired, repairs = repair(code)
        if not repairs:
            raise CompileError(first.message, first.line, first.column) from first
        try:
            compiled = CompiledCode(code=transform_markup(repaired), repaired=True, repairs=repairs)
        except MarkupSyntaxError as second:
            raise CompileError(second.message, second.line, second.column) from second
        logger.info("compile: repair succeeded (%s)", ", ".join(repairs))

    if not has_statements(syntax.parse(compiled.code)):
        raise CompileError("Nothing to render: the code has no executable statements")
    return compiled


def repair(code: str) -> tuple[str, list[str]]:
    """
    Aggressive cleanup. Returns the repaired code and the names of the
    repairs that changed something.
    """
    repairs: list[str] = []

    parsed = syntax.parse(code)
    edits = EditSet()
    if _style_object_edits(parsed, edits):
        repairs.append("style objects")
    type_nodes = syntax.type_syntax_edits(parsed, edits)
    for node in syntax.walk(parsed.root):
        if node.type in syntax.TYPE_DECLARATION_TYPES and edits.delete(node):
            type_nodes.append(node)
    if type_nodes:
        repairs.append("type syntax")
    text = edits.apply(parsed.source).decode("utf-8", errors="replace")

    cleaned = _STYLE_OBJECT_RE.sub("", text)
    if cleaned != text and "style objects" not in repairs:
        repairs.append("style objects")
    text = cleaned

    cleaned = text
    for pattern in _TYPE_REMNANT_RES:
        cleaned = pattern.sub("", cleaned)
    if cleaned != text and "type syntax" not in repairs:
        repairs.append("type syntax")
    text = cleaned

    cleaned = strip_span_wrappers(text)
    if cleaned != text:
        repairs.append("span wrappers")

    return cleaned, repairs


def strip_span_wrappers(text: str) -> str:
    """Drop `<span style="…">` openers and the `</span>` that closes each one."""
    for m in reversed(list(_SPAN_OPEN_RE.finditer(text))):
        close = text.find(_SPAN_CLOSE, m.end())
        if close != -1:
            text = text[:close] + text[close + len(_SPAN_CLOSE) :]
        text = text[: m.start()] + text[m.end() :]
    return text


def has_statements(parsed: ParsedSource) -> bool:
    return any(c.type not in _STATEMENT_IGNORED_TYPES for c in parsed.root.named_children)


def _style_object_edits(parsed: ParsedSource, edits: EditSet) -> bool:
    changed = False
    source = parsed.source
    for node in syntax.walk(parsed.root):
        if node.type != "jsx_attribute" or edits.covers(node):
            continue
        name, value = syntax.attribute_parts(parsed, node)
        if name != "style" or value is None or value.type != "jsx_expression":
            continue
        inner = [c for c in value.named_children if c.type != "comment"]
        if len(inner) == 1 and inner[0].type == "object":
            start = node.start_byte
            while start > 0 and source[start - 1 : start] in (b" ", b"\t"):
                start -= 1
            changed = edits.add(start, node.end_byte) or changed
    return changed
