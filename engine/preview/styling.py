"""
Preview Engine — Styling Planner

Works out what a preview document needs in order to look right:

  - whether to load the utility-class runtime (Tailwind CDN)
  - which stylesheet text to inline (auxiliary .css files)
  - how to rewrite CSS-module references (`styles.card`), which would be
    unbound once the stylesheet import has been stripped

With a stylesheet supplied, `className={styles.card}` becomes
`className="card"` and the stylesheet provides the rules. Without one it
becomes an approximation from MODULE_CLASS_MAP.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from engine.preview.types import SourceUnit, StylingMode

_MODULE_IMPORT_RE = re.compile(r"""import\s+(?:\*\s+as\s+)?([A-Za-z_$][\w$]*)\s+from\s+['"][^'"]+\.(?:module\.)?(?:s?css|less)['"]""")
_UTILITY_CLASS_RE = re.compile(
    r"""class(?:Name)?\s*=\s*[{"'`][^"'`}]*\b(?:bg-|text-|flex\b|grid\b|p[xytblr]?-\d|m[xytblr]?-\d|rounded|shadow|gap-|w-|h-)"""
)

FALLBACK_MODULE_CLASSES = "p-2 border border-gray-200 rounded bg-white text-gray-700"

# Common CSS-module class names from generated components, approximated
# with utility classes.
MODULE_CLASS_MAP: dict[str, str] = {
    # layout
    "container": "max-w-7xl mx-auto px-4",
    "wrapper": "max-w-7xl mx-auto px-4",
    "mainContent": "flex-1 p-6 max-w-4xl mx-auto",
    "sidebar": "w-64 bg-white shadow-sm border-r min-h-screen",
    "header": "bg-white border-b px-4 py-3 flex items-center justify-between",
    "footer": "bg-white border-t px-4 py-3",
    "topBar": "bg-white border-b px-4 py-3 flex items-center justify-between",
    "bottomBar": "bg-white border-t shadow-sm",
    "section": "mb-6",
    "row": "flex gap-4 mb-4",
    "column": "flex-1",
    # cards
    "card": "bg-white rounded-lg shadow-sm border border-gray-200 p-6 mb-6",
    "innerCard": "bg-gray-50 rounded-lg p-4 mb-4",
    "cardHeader": "flex items-center justify-between mb-4",
    "cardBody": "text-gray-700",
    # navigation
    "nav": "flex items-center space-x-4",
    "navItem": "flex items-center space-x-3 p-2 rounded-lg hover:bg-gray-100",
    "navItemText": "text-gray-700 text-sm",
    "link": "text-blue-600 hover:underline",
    # forms
    "form": "space-y-4",
    "input": "w-full px-3 py-2 border border-gray-300 rounded-md",
    "inputField": "w-full px-3 py-2 border border-gray-300 rounded-md focus:outline-none focus:ring-2 focus:ring-blue-500",
    "label": "text-sm font-medium text-gray-700",
    "helpText": "text-xs text-gray-500",
    "checkbox": "w-5 h-5 rounded border border-gray-300",
    "toggle": "w-12 h-6 bg-blue-500 rounded-full relative",
    # buttons
    "button": "px-4 py-2 bg-blue-500 text-white rounded hover:bg-blue-600",
    "primaryButton": "px-6 py-2 bg-blue-600 text-white rounded-lg hover:bg-blue-700",
    "secondaryButton": "px-4 py-2 bg-gray-200 text-gray-700 rounded-lg hover:bg-gray-300",
    "iconButton": "w-8 h-8 rounded flex items-center justify-center hover:bg-gray-100",
    # typography
    "title": "text-2xl font-bold mb-4",
    "subtitle": "text-lg text-gray-600 mb-2",
    "heading": "text-lg font-bold text-gray-900",
    "text": "text-gray-900",
    "content": "text-gray-700 leading-relaxed",
    "caption": "text-xs text-gray-500",
    # feedback
    "successMessage": "flex items-center space-x-2 p-3 bg-green-50 border border-green-200 rounded-lg mb-4",
    "errorMessage": "flex items-center space-x-2 p-3 bg-red-50 border border-red-200 rounded-lg mb-4",
    "badge": "inline-block px-2 py-0.5 text-xs rounded-full bg-gray-100 text-gray-700",
    # state utilities
    "hidden": "hidden",
    "visible": "block",
    "active": "bg-blue-100 text-blue-800",
    "disabled": "opacity-50 cursor-not-allowed",
    "flex": "flex items-center space-x-4",
    "grid": "grid grid-cols-1 md:grid-cols-2 lg:grid-cols-3 gap-6",
}


@dataclass
class StylingPlan:
    mode: StylingMode
    utility_runtime: bool
    stylesheet: str = ""
    module_binding: str | None = None

    @property
    def has_stylesheet(self) -> bool:
        return bool(self.stylesheet.strip())


def plan_styling(unit: SourceUnit, text: str | None = None) -> StylingPlan:
    """Decide the styling needs of one unit. `text` defaults to the raw text."""
    text = unit.raw_text if text is None else text
    stylesheet = "\n".join(f.content for f in unit.auxiliary_files if f.is_stylesheet and f.content)

    module_match = _MODULE_IMPORT_RE.search(unit.raw_text)
    module_binding = module_match.group(1) if module_match else None

    mode: StylingMode = unit.declared_styling_mode
    if module_binding is not None:
        mode = "scoped-stylesheet"

    utility_runtime = (
        unit.declared_styling_mode == "utility-classes"
        or detects_utility_classes(text)
        or (module_binding is not None and not stylesheet)
    )
    return StylingPlan(mode=mode, utility_runtime=utility_runtime, stylesheet=stylesheet, module_binding=module_binding)


def detects_utility_classes(text: str) -> bool:
    return bool(_UTILITY_CLASS_RE.search(text))


def rewrite_module_classes(text: str, has_stylesheet: bool, binding: str = "styles") -> str:
    """Replace CSS-module references with static class names."""
    name = re.escape(binding)
    attr_re = re.compile(rf"""className=\{{\s*{name}(?:\.([\w$]+)|\[\s*['"]([\w-]+)['"]\s*\])\s*\}}""")

    def _class_attr(m: re.Match) -> str:
        key = m.group(1) or m.group(2)
        if has_stylesheet:
            return f'className="{key}"'
        return f'className="{MODULE_CLASS_MAP.get(key, FALLBACK_MODULE_CLASSES)}"'

    text = attr_re.sub(_class_attr, text)
    if has_stylesheet:
        text = re.sub(rf"""(?<![\w$.]){name}(?:\.([\w$]+)|\[\s*['"]([\w-]+)['"]\s*\])""", lambda m: f'"{m.group(1) or m.group(2)}"', text)
    return re.sub(rf"(?<![\w$.]){name}\.[\w$]+", '""', text)
