"""Tests for fragment classification and wrapping."""

from engine.preview import syntax
from engine.preview.classifier import brackets_balanced, classify, has_declaration, wrap_fragment


def top_level_functions(code: str) -> int:
    parsed = syntax.parse(code)
    return sum(1 for c in parsed.root.named_children if c.type == "function_declaration")


class TestBareFragments:
    """Markup with no declaration is wrapped in a synthesized function."""

    def test_div_is_wrapped_once(self):
        decision = classify("<div>hi</div>", "Hello")
        assert decision.kind == "bare_fragment"
        assert decision.wrapper_name == "Hello"
        assert decision.code == "function Hello() {\n  return (\n<div>hi</div>\n  );\n}"
        assert top_level_functions(decision.code) == 1

    def test_scenario_name_x(self):
        decision = classify("<div>Hello</div>", "X")
        assert decision.kind == "bare_fragment"
        assert decision.code.startswith("function X()")

    def test_return_head_wrapped_as_body(self):
        decision = classify("return <div/>;", "X")
        assert decision.kind == "bare_fragment"
        assert decision.code == "function X() {\nreturn <div/>;\n}"

    def test_parenthesized_and_fragment_heads(self):
        assert classify("(<div/>)", "X").kind == "bare_fragment"
        assert classify("<>a</>", "X").kind == "bare_fragment"

    def test_trailing_semicolon_dropped(self):
        decision = classify("<div>hi</div>;", "X")
        assert "<div>hi</div>\n  );" in decision.code

    def test_free_form_name_becomes_identifier(self):
        decision = classify("<div/>", "my card")
        assert decision.wrapper_name == "mycard"
        assert decision.code.startswith("function mycard()")

    def test_empty_name_gets_default(self):
        decision = classify("<div/>", "")
        assert decision.wrapper_name == "GeneratedComponent"


class TestCompleteCallables:
    """Anything declaring a callable passes through unchanged."""

    def test_function_declaration(self):
        code = "function Card() { return <div/>; }"
        decision = classify(code, "Card")
        assert decision.kind == "complete_callable"
        assert decision.code == code
        assert not decision.structurally_broken

    def test_arrow_binding(self):
        assert classify("const Card = () => <div/>;", "Card").kind == "complete_callable"

    def test_capitalized_assignment(self):
        assert classify("Card = () => <div/>", "Card").kind == "complete_callable"

    def test_non_markup_statement(self):
        assert classify("console.log(1)", "X").kind == "complete_callable"

    def test_declaration_after_markup_head(self):
        # A helper after leading markup still means the snippet is complete code
        decision = classify("<div/>;\nfunction Helper() { return null; }", "X")
        assert decision.kind == "complete_callable"

    def test_markup_inside_declaration_does_not_count(self):
        parsed = syntax.parse("<div>{items.map(function (i) { return i; })}</div>")
        assert has_declaration(parsed) is False


class TestStructurallyBroken:
    """Mismatched brackets pass through for the compiler to report."""

    def test_missing_closers(self):
        code = "function Card() {\n  return (<div>hi</div>;\n"
        decision = classify(code, "Card")
        assert decision.kind == "complete_callable"
        assert decision.structurally_broken is True
        assert decision.code == code

    def test_brackets_inside_strings_ignored(self):
        parsed = syntax.parse('const s = "(((";\nconst t = `${a}`;')
        assert brackets_balanced(parsed) is True

    def test_brackets_inside_markup_text_ignored(self):
        parsed = syntax.parse("<p>a ( b [ c</p>")
        assert brackets_balanced(parsed) is True


def test_wrap_fragment_shape():
    assert wrap_fragment("<b/>", "A") == "function A() {\n  return (\n<b/>\n  );\n}"
