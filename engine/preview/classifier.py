"""
Preview Engine — Fragment Classifier & Wrapper

Decides whether normalized text is a complete callable component or a bare
markup fragment, and wraps fragments in a function so that the rest of the
pipeline only ever sees complete callables.

  <div>hi</div>                   → bare_fragment, wrapped
  return <div>hi</div>            → bare_fragment, wrapped as a body
  function Card() { … }           → complete_callable, unchanged
  function Card() { return (<div> → complete_callable, structurally broken

Broken input is passed through untouched; the compiler reports it.
"""

from __future__ import annotations

import logging
import re

from engine.preview import syntax
from engine.preview.syntax import ParsedSource
from engine.preview.types import ClassificationDecision, component_identifier

logger = logging.getLogger(__name__)

_MARKUP_HEAD_RE = re.compile(r"^(?:return\b|\(?\s*<[A-Za-z>])")
_RETURN_HEAD_RE = re.compile(r"^return\b")

_BRACKET_PAIRS = {")": "(", "]": "[", "}": "{"}


def classify(text: str, component_name: str) -> ClassificationDecision:
    """Classify normalized text and wrap it when it is a bare fragment."""
    stripped = text.strip()
    parsed = syntax.parse(stripped)

    if not brackets_balanced(parsed):
        logger.info("classify: mismatched brackets, passing through")
        return ClassificationDecision(kind="complete_callable", code=text, structurally_broken=True)

    if has_declaration(parsed) or not _MARKUP_HEAD_RE.match(stripped):
        return ClassificationDecision(kind="complete_callable", code=text)

    name = component_identifier(component_name)
    return ClassificationDecision(kind="bare_fragment", code=wrap_fragment(stripped, name), wrapper_name=name)


def wrap_fragment(text: str, name: str) -> str:
    """Synthesize `function <name>() { return ( <text> ); }`."""
    if _RETURN_HEAD_RE.match(text):
        return f"function {name}() {{\n{text}\n}}"
    body = text.rstrip().rstrip(";").rstrip()
    return f"function {name}() {{\n  return (\n{body}\n  );\n}}"


def has_declaration(parsed: ParsedSource) -> bool:
    """
    True when a declaration appears outside markup: a function, class or
    variable declaration, or an assignment to a capitalized name.
    """
    stack = [parsed.root]
    while stack:
        node = stack.pop()
        t = node.type
        if t in syntax.JSX_ELEMENT_TYPES:
            continue
        if t in syntax.DECLARATION_TYPES:
            return True
        if t == "assignment_expression":
            left = node.child_by_field_name("left")
            if left is not None and left.type == "identifier" and parsed.text(left)[:1].isupper():
                return True
        stack.extend(node.children)
    return False


def brackets_balanced(parsed: ParsedSource) -> bool:
    """Match (), [] and {} tokens; brackets inside strings and markup text are not tokens."""
    open_stack: list[str] = []
    for node in syntax.walk(parsed.root):
        if node.child_count or node.is_missing:
            continue
        t = node.type
        if t in ("(", "[", "{", "${"):
            open_stack.append("{" if t == "${" else t)
        elif t in _BRACKET_PAIRS:
            if not open_stack or open_stack.pop() != _BRACKET_PAIRS[t]:
                return False
    return not open_stack
