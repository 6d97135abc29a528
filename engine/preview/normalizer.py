"""
Preview Engine — Dialect Normalizer

Pure function: raw snippet text → NormalizedText.

Generators disagree on module style, type annotations and function shape.
This strips the differences so that one markup transform can handle every
dialect. Four passes run over one parse tree, in this order, each skipping
whatever an earlier pass already claimed:

  (a) module declarations   import / export / 'use client'
  (b) type declarations     interface Foo { … }, type Foo = …
  (c) inline type syntax    (x: T), (): T, <T>, as T, x!, …
  (d) paste artifacts       style="…", <span style="…"> wrappers

Removals are whole syntax nodes, so markup literals are never cut. The
markup tag count is still compared before and after; a difference is
recorded as a warning and does not stop the pipeline.
"""

from __future__ import annotations

import logging
import re

from engine.preview import syntax
from engine.preview.syntax import EditSet, ParsedSource
from engine.preview.types import Diagnostic, DiagnosticKind, NormalizedText

logger = logging.getLogger(__name__)

ANONYMOUS_DEFAULT_EXPORT = "DefaultExport"

# Import lines the parser could not recognise (usually in broken input).
# Both text passes work on bytes so match offsets line up with the tree.
_IMPORT_LINE_RE = re.compile(
    rb"""^[ \t]*import\s+(?:[\w$*{}\s,]+?\s+from\s+)?['"][^'"\n]+['"][ \t]*;?[ \t]*$""",
    re.MULTILINE,
)
_BLANK_RUN_RE = re.compile(rb"\n[ \t]*\n(?:[ \t]*\n)+")


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def normalize(raw_text: str) -> NormalizedText:
    """
    Strip dialect differences from a snippet.

    Returns the cleaned text, one Diagnostic per removed construct, and the
    name bound by a stripped `export default` (if any). Running this on its
    own output is a no-op.
    """
    parsed = syntax.parse(raw_text)
    edits = EditSet()
    diagnostics: list[Diagnostic] = []

    default_export = _strip_module_declarations(parsed, edits, diagnostics)
    _strip_type_declarations(parsed, edits, diagnostics)
    for node in syntax.type_syntax_edits(parsed, edits):
        diagnostics.append(_diag("type_annotation", node, node.type))
    _strip_markup_artifacts(parsed, edits, diagnostics)

    text = edits.apply(parsed.source).decode("utf-8", errors="replace")
    text = _strip_import_lines(text, diagnostics)
    text = _tidy(text)

    _check_markup_balance(parsed, text, diagnostics)

    if diagnostics:
        logger.debug("normalize: removed %d construct(s)", len(diagnostics))
    return NormalizedText(text=text, diagnostics=diagnostics, default_export=default_export)


# ---------------------------------------------------------------------------
# (a) Module declarations
# ---------------------------------------------------------------------------


def _strip_module_declarations(parsed: ParsedSource, edits: EditSet, diagnostics: list[Diagnostic]) -> str | None:
    default_export: str | None = None

    for node in parsed.root.children:
        t = node.type

        if t == "import_statement":
            if edits.delete(node):
                diagnostics.append(_diag("module_declaration", node, "import"))

        elif t == "expression_statement" and _is_directive(node):
            if edits.delete(node):
                diagnostics.append(_diag("module_declaration", node, parsed.text(node).strip()))

        elif t == "export_statement":
            name = _strip_export(parsed, node, edits, diagnostics)
            if name:
                default_export = name

    return default_export


def _strip_export(parsed: ParsedSource, node, edits: EditSet, diagnostics: list[Diagnostic]) -> str | None:
    """Remove one export statement; return the default-exported name, if any."""
    is_default = any(c.type == "default" for c in node.children)
    declaration = node.child_by_field_name("declaration")
    value = node.child_by_field_name("value")

    if declaration is not None:
        # export [default] function Card() {…} / export const Card = …
        if not edits.add(node.start_byte, declaration.start_byte):
            return None
        diagnostics.append(_diag("module_declaration", node, "export default" if is_default else "export"))
        if is_default:
            name = declaration.child_by_field_name("name")
            return parsed.text(name) if name is not None else None
        return None

    if value is not None:
        if value.type == "identifier":
            # export default Card;
            if edits.delete(node):
                diagnostics.append(_diag("module_declaration", node, "export default"))
                return parsed.text(value)
            return None
        # export default () => …, export default memo(Card), export default function () {…}
        if edits.add(node.start_byte, value.start_byte, f"const {ANONYMOUS_DEFAULT_EXPORT} = "):
            diagnostics.append(_diag("module_declaration", node, "export default"))
            return ANONYMOUS_DEFAULT_EXPORT
        return None

    # export { A, B as default } / export * from '…'
    default_export = None
    for child in syntax.walk(node):
        if child.type == "export_specifier":
            alias = child.child_by_field_name("alias")
            name = child.child_by_field_name("name")
            if alias is not None and name is not None and parsed.text(alias) == "default":
                default_export = parsed.text(name)
    if edits.delete(node):
        diagnostics.append(_diag("module_declaration", node, "export list"))
        return default_export
    return None


def _is_directive(node) -> bool:
    named = node.named_children
    return len(named) == 1 and named[0].type == "string"


# ---------------------------------------------------------------------------
# (b) Type declarations
# ---------------------------------------------------------------------------


def _strip_type_declarations(parsed: ParsedSource, edits: EditSet, diagnostics: list[Diagnostic]) -> None:
    for node in syntax.walk(parsed.root):
        if node.type in syntax.TYPE_DECLARATION_TYPES and not edits.covers(node):
            if edits.delete(node):
                name = node.child_by_field_name("name")
                detail = f"{node.type.split('_')[0]} {parsed.text(name)}" if name is not None else node.type
                diagnostics.append(_diag("type_declaration", node, detail))


# ---------------------------------------------------------------------------
# (d) Paste artifacts
# ---------------------------------------------------------------------------


def _strip_markup_artifacts(parsed: ParsedSource, edits: EditSet, diagnostics: list[Diagnostic]) -> None:
    source = parsed.source
    for node in syntax.walk(parsed.root):
        if edits.covers(node):
            continue

        if syntax.is_artifact_span(parsed, node):
            if node.type == "jsx_self_closing_element":
                removed = edits.delete(node)
            else:
                removed = edits.delete(syntax.jsx_tag(node))
                for child in node.children:
                    if child.type == "jsx_closing_element":
                        edits.delete(child)
            if removed:
                diagnostics.append(_diag("markup_artifact", node, "span wrapper"))
            continue

        if node.type == "jsx_attribute" and syntax.is_string_attribute(parsed, node, {"style"}):
            start = node.start_byte
            while start > 0 and source[start - 1 : start] in (b" ", b"\t"):
                start -= 1
            if edits.add(start, node.end_byte):
                diagnostics.append(_diag("markup_artifact", node, "style string"))


# ---------------------------------------------------------------------------
# Text passes
# ---------------------------------------------------------------------------


def _strip_import_lines(text: str, diagnostics: list[Diagnostic]) -> str:
    parsed = syntax.parse(text)
    spans = syntax.literal_spans(parsed)
    source = parsed.source

    def _drop(m: re.Match) -> bytes:
        if syntax.within_span(spans, m.start(), m.end()):
            return m.group(0)
        line = source.count(b"\n", 0, m.start()) + 1
        diagnostics.append(Diagnostic("module_declaration", line, 1, "import line"))
        return b""

    return _IMPORT_LINE_RE.sub(_drop, source).decode("utf-8", errors="replace")


def _tidy(text: str) -> str:
    parsed = syntax.parse(text)
    spans = syntax.literal_spans(parsed)

    def _collapse(m: re.Match) -> bytes:
        return m.group(0) if syntax.within_span(spans, m.start(), m.end()) else b"\n\n"

    return _BLANK_RUN_RE.sub(_collapse, parsed.source).decode("utf-8", errors="replace").strip()


def _check_markup_balance(parsed: ParsedSource, text: str, diagnostics: list[Diagnostic]) -> None:
    before = syntax.count_markup_tags(parsed)
    after = syntax.count_markup_tags(syntax.parse(text))
    if before != after:
        detail = (
            f"markup tags changed: {before.opening}/{before.closing}/{before.self_closing} "
            f"→ {after.opening}/{after.closing}/{after.self_closing}"
        )
        logger.warning("normalize: %s", detail)
        diagnostics.append(Diagnostic("markup_imbalance", 1, 1, detail))


def _diag(kind: DiagnosticKind, node, detail: str = "") -> Diagnostic:
    line, column = syntax.position(node)
    return Diagnostic(kind=kind, line=line, column=column, detail=detail)
