"""
Preview Engine — Markup Transform

JSX → React.createElement calls (the classic runtime), over a tree-sitter
parse of the code. Everything that is not markup is copied through byte
for byte.

    <div className="p-4">Hi {name}</div>
      → React.createElement("div", {className: "p-4"}, "Hi ", name)

Follows the classic transform's rules:
  - lowercase or dashed tag names are strings, others are references
  - a tag without a name (<>…</>) is React.Fragment
  - a bare attribute is `true`; string values have entities decoded
  - {...spread} works for attributes and children
  - text children are trimmed line by line; whitespace-only lines vanish

The transform only understands the untyped dialect. Syntax errors and any
type-only syntax left behind are rejected with MarkupSyntaxError.
"""

from __future__ import annotations

import html
import json
import re

from engine.preview import syntax
from engine.preview.syntax import Node, ParsedSource
from engine.preview.types import IDENTIFIER_PATTERN

_CHILD_ELEMENT_TYPES = syntax.JSX_ELEMENT_TYPES | {"jsx_expression"}
_LINE_SPLIT_RE = re.compile(r"\r\n|\n|\r")


class MarkupSyntaxError(Exception):
    """The transform rejected the code."""

    def __init__(self, message: str, line: int | None = None, column: int | None = None) -> None:
        super().__init__(f"{message} ({line}:{column})" if line is not None else message)
        self.message = message
        self.line = line
        self.column = column


def transform_markup(code: str) -> str:
    """Return `code` with every markup literal replaced by constructor calls."""
    parsed = syntax.parse(code)

    error = syntax.first_error(parsed.root)
    if error is not None:
        line, column = syntax.position(error)
        if error.is_missing:
            raise MarkupSyntaxError(f"Missing {error.type!r}", line, column)
        snippet = parsed.text(error).strip().splitlines()
        near = snippet[0][:40] if snippet else ""
        raise MarkupSyntaxError(f"Unexpected token near {near!r}" if near else "Unexpected token", line, column)

    for node in syntax.walk(parsed.root):
        if node.type in syntax.TYPE_ONLY_TYPES:
            line, column = syntax.position(node)
            raise MarkupSyntaxError(f"Unexpected type syntax ({node.type})", line, column)

    return _Emitter(parsed).emit(parsed.root)


# ---------------------------------------------------------------------------
# Text children
# ---------------------------------------------------------------------------


def clean_jsx_text(value: str) -> str:
    """
    Collapse a JSX text run the way the classic transform does: tabs become
    spaces, lines are trimmed where they meet a line break, whitespace-only
    lines disappear and the remaining lines are joined by single spaces.
    """
    lines = _LINE_SPLIT_RE.split(value)
    last_non_empty = 0
    for i, line in enumerate(lines):
        if re.search(r"[^ \t]", line):
            last_non_empty = i

    out = ""
    for i, line in enumerate(lines):
        trimmed = line.replace("\t", " ")
        if i != 0:
            trimmed = trimmed.lstrip(" ")
        if i != len(lines) - 1:
            trimmed = trimmed.rstrip(" ")
        if trimmed:
            if i != last_non_empty:
                trimmed += " "
            out += trimmed
    return out


# ---------------------------------------------------------------------------
# Emitter
# ---------------------------------------------------------------------------


class _Emitter:
    def __init__(self, parsed: ParsedSource) -> None:
        self.parsed = parsed

    def emit(self, node: Node) -> str:
        if node.type in syntax.JSX_ELEMENT_TYPES:
            return self.element(node)
        if not node.children:
            return self.parsed.text(node)
        return self.splice(node, node.children)

    def splice(self, node: Node, children: list[Node]) -> str:
        out: list[str] = []
        cursor = node.start_byte
        for child in children:
            out.append(self.parsed.slice(cursor, child.start_byte))
            out.append(self.emit(child))
            cursor = child.end_byte
        out.append(self.parsed.slice(cursor, node.end_byte))
        return "".join(out)

    # -- elements -------------------------------------------------------------

    def element(self, node: Node) -> str:
        if node.type == "jsx_fragment":
            tag, props = "React.Fragment", "null"
            body_start, body_end = self._fragment_body(node)
        else:
            open_tag = syntax.jsx_tag(node)
            name = open_tag.child_by_field_name("name") if open_tag is not None else None
            tag = self.tag_name(name)
            props = self.props(open_tag)
            if node.type == "jsx_self_closing_element":
                return f"React.createElement({tag}, {props})"
            close_tag = next((c for c in node.children if c.type == "jsx_closing_element"), None)
            body_start = open_tag.end_byte
            body_end = close_tag.start_byte if close_tag is not None else node.end_byte

        args = [tag, props] + self.children(node, body_start, body_end)
        return f"React.createElement({', '.join(args)})"

    def _fragment_body(self, node: Node) -> tuple[int, int]:
        # <> … </>: the body sits between the first '>' and the last '<'
        tokens = [c for c in node.children if not c.is_named]
        start = next((c.end_byte for c in tokens if c.type == ">"), node.start_byte)
        end = next((c.start_byte for c in reversed(tokens) if c.type in ("<", "</")), node.end_byte)
        return start, end

    def tag_name(self, name: Node | None) -> str:
        if name is None:
            return "React.Fragment"
        text = self.parsed.text(name)
        if name.type == "identifier" and (text[:1].islower() or "-" in text):
            return json.dumps(text)
        if name.type == "jsx_namespace_name" or ":" in text:
            return json.dumps(text)
        return text

    def props(self, open_tag: Node | None) -> str:
        if open_tag is None:
            return "null"
        parts: list[str] = []
        for attr in open_tag.named_children:
            if attr.type == "jsx_attribute":
                parts.append(self.attribute(attr))
            elif attr.type == "jsx_expression":
                inner = self._expression_body(attr)
                if inner is None or inner.type != "spread_element":
                    line, column = syntax.position(attr)
                    raise MarkupSyntaxError("Expected a spread in attribute position", line, column)
                parts.append(self.emit(inner))
        return "{" + ", ".join(parts) + "}" if parts else "null"

    def attribute(self, attr: Node) -> str:
        key, value = syntax.attribute_parts(self.parsed, attr)
        key = key if IDENTIFIER_PATTERN.match(key) else json.dumps(key)

        if value is None:
            return f"{key}: true"
        if value.type == "string":
            raw = self.parsed.text(value)
            return f"{key}: {json.dumps(html.unescape(raw[1:-1]), ensure_ascii=False)}"
        if value.type == "jsx_expression":
            inner = self._expression_body(value)
            if inner is None:
                line, column = syntax.position(value)
                raise MarkupSyntaxError("JSX attributes must only be assigned a non-empty expression", line, column)
            return f"{key}: {self.emit(inner)}"
        return f"{key}: {self.emit(value)}"

    def children(self, node: Node, start: int, end: int) -> list[str]:
        out: list[str] = []
        cursor = start
        for child in node.children:
            if child.start_byte < start or child.end_byte > end:
                continue
            if child.type not in _CHILD_ELEMENT_TYPES:
                continue
            self._text(cursor, child.start_byte, out)
            cursor = child.end_byte
            if child.type == "jsx_expression":
                inner = self._expression_body(child)
                if inner is not None:
                    out.append(self.emit(inner))
            else:
                out.append(self.element(child))
        self._text(cursor, end, out)
        return out

    def _text(self, start: int, end: int, out: list[str]) -> None:
        if start >= end:
            return
        cleaned = clean_jsx_text(html.unescape(self.parsed.slice(start, end)))
        if cleaned:
            out.append(json.dumps(cleaned, ensure_ascii=False))

    def _expression_body(self, expression: Node) -> Node | None:
        """The single expression inside `{…}`, or None for `{}` / `{/* comment */}`."""
        inner = [c for c in expression.named_children if c.type != "comment"]
        return inner[0] if inner else None
