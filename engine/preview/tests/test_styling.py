"""Tests for the styling planner and CSS-module rewriting."""

from engine.preview.styling import (
    FALLBACK_MODULE_CLASSES,
    MODULE_CLASS_MAP,
    detects_utility_classes,
    plan_styling,
    rewrite_module_classes,
)
from engine.preview.types import AuxiliaryFile, SourceUnit

MODULE_SOURCE = """\
import styles from './Card.module.css';

export default function Card() {
  return <div className={styles.card}><p className={styles['helpText']}>Hi</p></div>;
}
"""


class TestPlanStyling:
    def test_default_mode_loads_utility_runtime(self):
        plan = plan_styling(SourceUnit(raw_text="<div/>", component_name="X"))
        assert plan.mode == "utility-classes"
        assert plan.utility_runtime is True
        assert plan.has_stylesheet is False

    def test_css_in_code_without_utilities(self):
        unit = SourceUnit(raw_text="<div style={{ color: 'red' }}/>", component_name="X", declared_styling_mode="css-in-code")
        plan = plan_styling(unit)
        assert plan.mode == "css-in-code"
        assert plan.utility_runtime is False

    def test_utility_classes_detected_in_any_mode(self):
        unit = SourceUnit(raw_text='<div className="flex p-4 bg-white"/>', component_name="X", declared_styling_mode="css-in-code")
        assert plan_styling(unit).utility_runtime is True

    def test_module_import_switches_mode(self):
        unit = SourceUnit(raw_text=MODULE_SOURCE, component_name="Card", declared_styling_mode="css-in-code")
        plan = plan_styling(unit)
        assert plan.mode == "scoped-stylesheet"
        assert plan.module_binding == "styles"
        # no stylesheet supplied, so the utility approximation is needed
        assert plan.utility_runtime is True

    def test_stylesheets_are_joined(self):
        unit = SourceUnit(
            raw_text=MODULE_SOURCE,
            component_name="Card",
            declared_styling_mode="scoped-stylesheet",
            auxiliary_files=(
                AuxiliaryFile("Card.module.css", ".card { padding: 8px; }", "css"),
                AuxiliaryFile("notes.txt", "not css"),
                AuxiliaryFile("extra.css", ".helpText { color: gray; }"),
            ),
        )
        plan = plan_styling(unit)
        assert plan.stylesheet == ".card { padding: 8px; }\n.helpText { color: gray; }"
        assert plan.has_stylesheet is True
        assert plan.utility_runtime is False

    def test_detects_utility_classes(self):
        assert detects_utility_classes('<div className="rounded shadow">') is True
        assert detects_utility_classes('<div className="card">') is False


class TestRewriteModuleClasses:
    def test_with_stylesheet_uses_plain_names(self):
        text = rewrite_module_classes("<div className={styles.card}><p className={styles['helpText']}/></div>", True)
        assert text == '<div className="card"><p className="helpText"/></div>'

    def test_without_stylesheet_uses_approximations(self):
        text = rewrite_module_classes("<div className={styles.card}/>", False)
        assert text == f'<div className="{MODULE_CLASS_MAP["card"]}"/>'

    def test_unknown_class_gets_fallback(self):
        text = rewrite_module_classes("<div className={styles.zzz}/>", False)
        assert text == f'<div className="{FALLBACK_MODULE_CLASSES}"/>'

    def test_other_references_become_strings(self):
        code = "const c = active ? styles.on : styles.off;"
        assert rewrite_module_classes(code, True) == 'const c = active ? "on" : "off";'
        assert rewrite_module_classes(code, False) == 'const c = active ? "" : "";'

    def test_member_of_other_object_untouched(self):
        code = "const c = this.styles.card;"
        assert rewrite_module_classes(code, True) == code

    def test_custom_binding(self):
        text = rewrite_module_classes("<div className={css.box}/>", True, binding="css")
        assert text == '<div className="box"/>'
