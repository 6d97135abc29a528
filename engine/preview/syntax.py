"""
Preview Engine — TSX Syntax Helpers

Uses tree-sitter (TSX grammar) to locate constructs by byte range, so that
every rewrite in the pipeline is a splice of whole syntax nodes rather than
a regex over raw text. Markup literals are nodes too, which is how the
rewrites avoid reaching inside them by accident.

Shared by the normalizer, the compiler's repair pass and the markup
transform.
"""

from __future__ import annotations

import bisect
import sys
import threading
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any

import tree_sitter_typescript as _ts_mod
from tree_sitter import Language, Parser

from engine.preview.types import MarkupTagCount

_LANG = Language(_ts_mod.language_tsx())
# Parser objects are not thread-safe; the pipeline runs in worker threads.
_local = threading.local()

Node = Any  # tree_sitter.Node

# ---------------------------------------------------------------------------
# Node type registries
# ---------------------------------------------------------------------------

JSX_ELEMENT_TYPES = {"jsx_element", "jsx_self_closing_element", "jsx_fragment"}

TYPE_DECLARATION_TYPES = {
    "interface_declaration",
    "type_alias_declaration",
    "ambient_declaration",
}

# Syntax that only exists in the typed dialect. Plain JS + markup never
# produces any of these nodes.
TYPE_ONLY_TYPES = TYPE_DECLARATION_TYPES | {
    "type_annotation",
    "asserts_annotation",
    "type_predicate_annotation",
    "type_parameters",
    "type_arguments",
    "as_expression",
    "satisfies_expression",
    "non_null_expression",
    "optional_parameter",
    "implements_clause",
    "accessibility_modifier",
    "override_modifier",
    "enum_declaration",
    "abstract_class_declaration",
}

DECLARATION_TYPES = {
    "function_declaration",
    "generator_function_declaration",
    "class_declaration",
    "lexical_declaration",
    "variable_declaration",
}


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


class ParsedSource:
    """A parse tree plus the exact bytes it was parsed from."""

    __slots__ = ("source", "tree")

    def __init__(self, code: str) -> None:
        self.source = code.encode("utf-8")
        self.tree = _parser().parse(self.source)

    @property
    def root(self) -> Node:
        return self.tree.root_node

    @property
    def has_error(self) -> bool:
        return self.root.has_error

    def text(self, node: Node) -> str:
        return self.source[node.start_byte : node.end_byte].decode("utf-8", errors="replace")

    def slice(self, start: int, end: int) -> str:
        return self.source[start:end].decode("utf-8", errors="replace")


def _parser() -> Parser:
    parser = getattr(_local, "parser", None)
    if parser is None:
        parser = _local.parser = Parser(_LANG)
    return parser


def parse(code: str) -> ParsedSource:
    return ParsedSource(code)


def walk(node: Node) -> Iterator[Node]:
    """Pre-order traversal without recursion (snippets can nest deeply)."""
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(current.children))


def first_error(node: Node) -> Node | None:
    """Return the first ERROR or MISSING node, in source order."""
    if not node.has_error:
        return None
    for current in walk(node):
        if current.type == "ERROR" or current.is_missing:
            return current
    return None


def position(node: Node) -> tuple[int, int]:
    """1-based (line, column) of a node's start."""
    row, col = node.start_point
    return row + 1, col + 1


# ---------------------------------------------------------------------------
# Splicing
# ---------------------------------------------------------------------------


@dataclass
class Edit:
    start: int
    end: int
    replacement: bytes = b""


class EditSet:
    """
    Non-overlapping byte-range edits against one ParsedSource.

    Edits are kept sorted by (start, end). Because they never overlap, their
    ends are sorted too, so overlap and coverage checks only need to look at
    the nearest neighbour found by bisection.
    """

    def __init__(self) -> None:
        self.edits: list[Edit] = []
        self._keys: list[tuple[int, int]] = []

    def __len__(self) -> int:
        return len(self.edits)

    def covers(self, node: Node) -> bool:
        i = bisect.bisect_right(self._keys, (node.start_byte, sys.maxsize))
        return i > 0 and node.end_byte <= self._keys[i - 1][1]

    def overlaps(self, start: int, end: int) -> bool:
        # edits starting before `end`; the last of them reaches furthest
        i = bisect.bisect_left(self._keys, (end, -1))
        return i > 0 and start < self._keys[i - 1][1]

    def add(self, start: int, end: int, replacement: str = "") -> bool:
        if start == end and not replacement:
            return False
        if self.overlaps(start, end):
            return False
        i = bisect.bisect_right(self._keys, (start, end))
        self._keys.insert(i, (start, end))
        self.edits.insert(i, Edit(start, end, replacement.encode("utf-8")))
        return True

    def delete(self, node: Node) -> bool:
        return self.add(node.start_byte, node.end_byte)

    def apply(self, source: bytes) -> bytes:
        out: list[bytes] = []
        cursor = 0
        for edit in self.edits:
            out.append(source[cursor : edit.start])
            out.append(edit.replacement)
            cursor = edit.end
        out.append(source[cursor:])
        return b"".join(out)


# ---------------------------------------------------------------------------
# Type syntax removal
# ---------------------------------------------------------------------------


def type_syntax_edits(parsed: ParsedSource, edits: EditSet) -> list[Node]:
    """
    Queue deletions for inline type syntax: annotations, optional markers,
    type parameter/argument lists, casts, non-null assertions, implements
    clauses and modifiers. Declarations (interface/type) are not touched.

    Returns the nodes that were removed, in source order.
    """
    removed: list[Node] = []
    stack = [parsed.root]
    while stack:
        node = stack.pop()
        if edits.covers(node):
            continue
        t = node.type

        if t in ("type_annotation", "asserts_annotation", "type_predicate_annotation", "type_parameters",
                 "implements_clause", "accessibility_modifier", "override_modifier"):
            if edits.delete(node):
                removed.append(node)
            continue

        if t == "type_arguments" and node.parent is not None and node.parent.type in ("call_expression", "new_expression"):
            if edits.delete(node):
                removed.append(node)
            continue

        if t in ("as_expression", "satisfies_expression", "non_null_expression") and node.named_children:
            inner = node.named_children[0]
            if edits.add(inner.end_byte, node.end_byte):
                removed.append(node)
            stack.append(inner)
            continue

        if t == "optional_parameter":
            for child in node.children:
                if child.type == "?" and edits.delete(child):
                    removed.append(node)

        stack.extend(reversed(node.children))

    removed.sort(key=lambda n: n.start_byte)
    return removed


# ---------------------------------------------------------------------------
# Markup helpers
# ---------------------------------------------------------------------------


def jsx_tag(element: Node) -> Node | None:
    """The node carrying name and attributes: the opening tag or the element itself."""
    if element.type == "jsx_self_closing_element":
        return element
    if element.type == "jsx_element":
        return element.child_by_field_name("open_tag") or (element.children[0] if element.children else None)
    return None


def jsx_name(parsed: ParsedSource, tag: Node | None) -> str | None:
    if tag is None:
        return None
    name = tag.child_by_field_name("name")
    return parsed.text(name) if name is not None else None


def jsx_attributes(tag: Node | None) -> list[Node]:
    if tag is None:
        return []
    return [c for c in tag.named_children if c.type == "jsx_attribute"]


def attribute_parts(parsed: ParsedSource, attr: Node) -> tuple[str, Node | None]:
    """(name, value node or None) of a jsx_attribute."""
    named = attr.named_children
    if not named:
        return "", None
    name = parsed.text(named[0])
    value = named[1] if len(named) > 1 else None
    return name, value


def is_string_attribute(parsed: ParsedSource, attr: Node, names: set[str]) -> bool:
    name, value = attribute_parts(parsed, attr)
    return name in names and value is not None and value.type == "string"


def is_artifact_span(parsed: ParsedSource, element: Node) -> bool:
    """
    A `<span style="…">` / `<span class="…">` wrapper left behind by a
    syntax-highlighting copy/paste. Real markup in this dialect never
    carries a string style or a `class` attribute.
    """
    if element.type not in ("jsx_element", "jsx_self_closing_element"):
        return False
    tag = jsx_tag(element)
    if jsx_name(parsed, tag) != "span":
        return False
    return any(is_string_attribute(parsed, a, {"style", "class"}) for a in jsx_attributes(tag))


def count_markup_tags(parsed: ParsedSource) -> MarkupTagCount:
    """Count JSX tags, ignoring paste-artifact wrappers."""
    count = MarkupTagCount()
    for node in walk(parsed.root):
        t = node.type
        if t == "jsx_element":
            if is_artifact_span(parsed, node):
                continue
            count.opening += 1
            if any(c.type == "jsx_closing_element" for c in node.children):
                count.closing += 1
        elif t == "jsx_self_closing_element":
            if not is_artifact_span(parsed, node):
                count.self_closing += 1
        elif t == "jsx_fragment":
            count.opening += 1
            count.closing += 1
    return count


# ---------------------------------------------------------------------------
# Literal spans
# ---------------------------------------------------------------------------

# Text inside these nodes is content, not code. Line-based clean-ups must
# leave it alone.
LITERAL_TYPES = {"string", "template_string", "regex", "jsx_text"} | JSX_ELEMENT_TYPES


def literal_spans(parsed: ParsedSource) -> list[tuple[int, int]]:
    """Byte ranges of the outermost literal nodes, sorted and disjoint."""
    spans: list[tuple[int, int]] = []
    stack = [parsed.root]
    while stack:
        node = stack.pop()
        if node.type in LITERAL_TYPES:
            spans.append((node.start_byte, node.end_byte))
            continue
        stack.extend(reversed(node.children))
    return spans


def within_span(spans: list[tuple[int, int]], start: int, end: int) -> bool:
    """True if [start, end) lies inside one of `spans` (as from literal_spans)."""
    i = bisect.bisect_right(spans, (start, sys.maxsize))
    return i > 0 and end <= spans[i - 1][1]
