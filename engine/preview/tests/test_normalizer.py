"""
Tests for the dialect normalizer.

Covers:
  1. Module declarations: imports, exports, directives, default export capture
  2. Type declarations and inline type syntax
  3. Paste artifacts: string style attributes, span wrappers
  4. Idempotence (second pass is a no-op with no diagnostics)
  5. Markup balance (tag counts survive normalization, a mismatch only warns)
  6. Large input near the size threshold
"""

import time

import pytest

from engine.preview import syntax
from engine.preview.normalizer import ANONYMOUS_DEFAULT_EXPORT, normalize
from engine.preview.types import MarkupTagCount

TYPED_CARD = """\
'use client';
import React, { useState } from 'react';
import styles from './Card.module.css';

interface CardProps {
  title: string;
  count?: number;
}

type Size = 'sm' | 'lg';

export default function Card({ title }: CardProps): JSX.Element {
  const [open, setOpen] = useState<boolean>(false);
  const label = title as string;
  return (
    <div className="card">
      <h2>{label}</h2>
      <button onClick={() => setOpen(!open)}>Toggle</button>
    </div>
  );
}
"""


def kinds(result):
    return [d.kind for d in result.diagnostics]


# ============================================================================
# 1. Module declarations
# ============================================================================


class TestModuleDeclarations:
    """import / export / directives are removed, default export is remembered."""

    def test_imports_removed(self):
        result = normalize("import React from 'react';\nimport { useState } from 'react';\nfunction A() { return <div/>; }")
        assert result.text == "function A() { return <div/>; }"
        assert kinds(result) == ["module_declaration", "module_declaration"]

    def test_directive_removed(self):
        result = normalize("'use client';\nfunction A() { return <div/>; }")
        assert result.text == "function A() { return <div/>; }"

    def test_export_default_function(self):
        result = normalize("export default function Card() {\n  return <div>Hi</div>;\n}")
        assert result.text == "function Card() {\n  return <div>Hi</div>;\n}"
        assert result.default_export == "Card"

    def test_named_export_is_not_default(self):
        result = normalize("export const Card = () => <div/>;")
        assert result.text == "const Card = () => <div/>;"
        assert result.default_export is None

    def test_export_default_identifier(self):
        result = normalize("const Card = () => <div/>;\nexport default Card;")
        assert result.text == "const Card = () => <div/>;"
        assert result.default_export == "Card"

    def test_export_default_expression_is_bound(self):
        result = normalize("export default () => <div>anon</div>;")
        assert result.text == f"const {ANONYMOUS_DEFAULT_EXPORT} = () => <div>anon</div>;"
        assert result.default_export == ANONYMOUS_DEFAULT_EXPORT

    def test_export_list_with_default_alias(self):
        result = normalize("function Card() { return <div/>; }\nexport { Card as default };")
        assert result.text == "function Card() { return <div/>; }"
        assert result.default_export == "Card"

    def test_diagnostic_positions_are_one_based(self):
        result = normalize("\nimport x from 'y';\nfunction A() {}")
        assert result.diagnostics[0].line == 2
        assert result.diagnostics[0].column == 1


# ============================================================================
# 2. Types
# ============================================================================


class TestTypeSyntax:
    """Declarations and inline annotations are removed as whole nodes."""

    def test_interface_and_alias_removed(self):
        result = normalize("interface Props { a: string }\ntype Size = 'sm' | 'lg';\nfunction A() { return <div/>; }")
        assert result.text == "function A() { return <div/>; }"
        assert kinds(result).count("type_declaration") == 2

    def test_parameter_and_return_annotations(self):
        result = normalize("const Card = ({ title }: Props): JSX.Element => <h1>{title}</h1>;")
        assert result.text == "const Card = ({ title }) => <h1>{title}</h1>;"
        assert "type_annotation" in kinds(result)

    def test_generic_call_arguments(self):
        result = normalize('const [v, setV] = useState<string>("");')
        assert result.text == 'const [v, setV] = useState("");'

    def test_as_cast_and_non_null(self):
        result = normalize("const a = value as string;\nconst b = ref.current!;")
        assert result.text == "const a = value;\nconst b = ref.current;"

    def test_optional_parameter(self):
        result = normalize("function f(a?: number) { return a; }")
        assert result.text == "function f(a) { return a; }"

    def test_type_alias_only_input_becomes_empty(self):
        result = normalize("type Props = {\n  title: string;\n};")
        assert result.text == ""


# ============================================================================
# 3. Artifacts
# ============================================================================


class TestMarkupArtifacts:
    """Leftovers from copying highlighted HTML."""

    def test_span_wrapper_unwrapped(self):
        result = normalize('<div><span style="color: #569cd6">Hello</span></div>')
        assert result.text == "<div>Hello</div>"
        assert "markup_artifact" in kinds(result)

    def test_string_style_attribute_removed(self):
        result = normalize('<p style="margin: 0" className="lead">Text</p>')
        assert result.text == '<p className="lead">Text</p>'

    def test_object_style_is_kept(self):
        code = "<p style={{ margin: 0 }}>Text</p>"
        assert normalize(code).text == code

    def test_markup_text_is_never_touched(self):
        code = "const Note = () => <p>type Foo = bar; import it</p>;"
        result = normalize(code)
        assert result.text == code
        assert result.diagnostics == []

    def test_import_line_inside_markup_text_is_kept(self):
        code = "const Code = () => <pre><code>\nimport React from 'react'\n</code></pre>;"
        result = normalize(code)
        assert result.text == code
        assert result.diagnostics == []

    def test_import_line_inside_template_literal_is_kept(self):
        code = "const snippet = `\nimport x from 'y'\n`;"
        result = normalize(code)
        assert result.text == code
        assert result.diagnostics == []

    def test_blank_lines_inside_template_literal_are_kept(self):
        result = normalize("const poem = `a\n\n\n\nb`;\n\n\n\nconst x = 1;")
        assert result.text == "const poem = `a\n\n\n\nb`;\n\nconst x = 1;"


# ============================================================================
# 4. Idempotence
# ============================================================================


IDEMPOTENCE_CORPUS = [
    TYPED_CARD,
    "export default () => <div>anon</div>;",
    '<div><span style="color: red">x</span></div>',
    "<div>hi</div>",
    "const Code = () => <pre><code>\nimport React from 'react'\n</code></pre>;",
]


class TestIdempotence:
    """Normalizing normalized text changes nothing and reports nothing."""

    @pytest.mark.parametrize("source", IDEMPOTENCE_CORPUS)
    def test_second_pass_is_noop(self, source):
        first = normalize(source)
        second = normalize(first.text)
        assert second.text == first.text
        assert second.diagnostics == []


# ============================================================================
# 5. Markup balance
# ============================================================================


class TestMarkupBalance:
    """Tag counts in the normalized text match the raw text."""

    @pytest.mark.parametrize("source", IDEMPOTENCE_CORPUS)
    def test_counts_match(self, source):
        result = normalize(source)
        before = syntax.count_markup_tags(syntax.parse(source))
        after = syntax.count_markup_tags(syntax.parse(result.text))
        assert before == after
        assert result.warnings == []

    def test_mismatch_is_a_warning_not_a_failure(self, monkeypatch):
        counts = iter([MarkupTagCount(opening=2, closing=2), MarkupTagCount(opening=1, closing=2)])
        monkeypatch.setattr(syntax, "count_markup_tags", lambda parsed: next(counts))

        result = normalize("const A = () => <div><p>x</p></div>;")

        assert result.text == "const A = () => <div><p>x</p></div>;"
        assert [w.kind for w in result.warnings] == ["markup_imbalance"]
        assert "2/2/0 → 1/2/0" in result.warnings[0].detail

    def test_full_typed_card(self):
        result = normalize(TYPED_CARD)
        assert result.default_export == "Card"
        assert "import" not in result.text
        assert "interface" not in result.text
        assert "CardProps" not in result.text
        assert "useState(false)" in result.text
        assert "const label = title;" in result.text
        assert result.text.startswith("function Card({ title }) {")


# ============================================================================
# 6. Large input
# ============================================================================


def typed_block(i: int) -> str:
    return (
        f"interface P{i} {{ a: string; b?: number }}\n"
        f"const f{i} = (x: P{i}, y?: number): string => <div key=\"{i}\">{{x.a as string}}{{y!}}</div>;\n"
    )


class TestLargeInput:
    """Input just under the size threshold normalizes well inside the global timeout."""

    def test_near_threshold_typed_input_is_fast(self):
        blocks = []
        size = 0
        while size < 48_000:
            blocks.append(typed_block(len(blocks)))
            size += len(blocks[-1])
        source = "".join(blocks)

        started = time.perf_counter()
        result = normalize(source)
        elapsed = time.perf_counter() - started

        assert elapsed < 3.0
        assert "interface" not in result.text
        assert " as string" not in result.text
        assert result.warnings == []
