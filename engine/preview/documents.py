"""
Preview Engine — Document Builder

Pure functions: pipeline results → self-contained HTML documents.

  full_document        server-rendered markup + bootstrap that mounts the
                       component for real (React UMD from CDN)
  simplified_document  non-interactive approximation from a SourceSketch
  static_document      character count and truncated source, nothing else
  diagnostic_panel     error kind, message, optional intermediate texts
  isolated_frame       <iframe sandbox="allow-scripts"> around a document
  frame_page           host page holding only the isolated frame

Simplified documents and panels use Mustache templates (chevron). The
static document is a plain f-string so that it has nothing left to fail on.
"""

from __future__ import annotations

import json
from html import escape as _html_escape
from typing import Any

import chevron

from engine.preview.styling import StylingPlan
from engine.preview.types import PipelineTrace, PreviewOptions, ResolvedCallable, SourceSketch

STAGE_PREVIEW_CHARS = 2_000
STATIC_PREVIEW_CHARS = 1_200
LIBRARY_WAIT_MS = 1_500

# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def full_document(
    *,
    compiled: str,
    resolved: ResolvedCallable,
    candidates: list[str],
    markup: str,
    fallback_markup: str,
    component_name: str,
    plan: StylingPlan,
    options: PreviewOptions,
) -> str:
    """
    The Full tier. `markup` is what the sandbox rendered, shown until the
    bootstrap mounts the live component over it. `fallback_markup` is
    swapped in if the bootstrap fails in the browser.
    """
    config = {
        "code": compiled,
        "resolved": resolved.name,
        "strategy": resolved.strategy,
        "candidates": candidates,
        "componentName": component_name,
        "globalTimeoutMs": int(options.global_timeout_seconds * 1000),
        "renderTimeoutMs": int(options.render_timeout_seconds * 1000),
        "libraryWaitMs": LIBRARY_WAIT_MS,
    }
    head = _head(f"{component_name} preview", plan, options, live=True)
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
{head}
</head>
<body>
<div id="root">{markup}</div>
<template id="preview-fallback">{fallback_markup}</template>
<script id="preview-config" type="application/json">{_script_json(config)}</script>
<script>
{BOOTSTRAP_JS}
</script>
</body>
</html>"""


def simplified_markup(sketch: SourceSketch, component_name: str, notice: str = "") -> str:
    """Body markup of the simplified approximation (also embedded in Full documents)."""
    context = {
        "name": component_name,
        "notice": notice,
        "has_notice": bool(notice),
        "heading": sketch.heading or (sketch.texts[0] if sketch.texts else component_name),
        "has_header": sketch.has_header,
        "paragraphs": [{"text": t} for t in sketch.texts[1:] if t != sketch.heading] or [{"text": "Sample content"}],
        "has_action": sketch.has_action,
        "has_media": sketch.has_media,
        "has_footer": sketch.has_footer,
        "background": sketch.background or "#ffffff",
        "dark": _is_dark(sketch.background),
    }
    return chevron.render(SIMPLIFIED_TEMPLATE, context)


def simplified_document(
    sketch: SourceSketch,
    component_name: str,
    plan: StylingPlan | None = None,
    options: PreviewOptions | None = None,
    diagnostic: str = "",
) -> str:
    """The Simplified tier: approximation plus, after a failure, the diagnostic panel."""
    opts = options or PreviewOptions()
    body = simplified_markup(sketch, component_name)
    return chevron.render(
        DOCUMENT_TEMPLATE,
        {
            "head": _head(f"{component_name} preview (simplified)", plan, opts, live=False),
            "diagnostic": diagnostic,
            "body": body,
        },
    )


def static_document(raw_text: str, component_name: str) -> str:
    """The Static tier. Textual metadata only, never an error."""
    shown = raw_text[:STATIC_PREVIEW_CHARS]
    more = len(raw_text) - len(shown)
    tail = f"\n… {more:,} more characters" if more > 0 else ""
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8">
<meta name="viewport" content="width=device-width, initial-scale=1">
<title>{escape(component_name)} preview (static)</title>
<style>
{STATIC_CSS}
</style>
</head>
<body>
<div class="static-container">
  <div class="static-header">Static preview: {escape(component_name)}</div>
  <p class="static-count">Generated code length: {len(raw_text):,} characters</p>
  <p class="static-hint">Live preview is not available for this component. Switch to the code view to see all of it.</p>
  <pre class="static-source">{escape(shown)}{escape(tail)}</pre>
</div>
</body>
</html>"""


def diagnostic_panel(
    error_kind: str,
    message: str,
    *,
    location: str | None = None,
    trace: PipelineTrace | None = None,
    debug: bool = False,
    notice: str = "Live preview failed. Showing a simplified preview instead.",
) -> str:
    """Error kind, message and (in debug) truncated intermediate texts."""
    stages: list[dict[str, Any]] = []
    if debug and trace is not None:
        for label, text in trace.stages():
            stages.append({"label": label, "text": _truncate(text, STAGE_PREVIEW_CHARS), "chars": len(text)})
    return chevron.render(
        DIAGNOSTIC_TEMPLATE,
        {
            "notice": notice,
            "kind": error_kind,
            "message": message,
            "location": location,
            "stages": stages,
        },
    )


def isolated_frame(document: str, title: str = "Component preview") -> str:
    """Embed a document in an iframe with scripts on and same-origin off."""
    return (
        f'<iframe sandbox="allow-scripts" title="{escape(title)}" '
        f'style="width: 100%; min-height: 480px; border: 0;" '
        f'srcdoc="{escape(document)}"></iframe>'
    )


def frame_page(document: str, title: str = "Component preview") -> str:
    """A host page holding only the isolated frame."""
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8">
<title>{escape(title)}</title>
<style>html, body {{ margin: 0; padding: 0; background: #f8fafc; }}</style>
</head>
<body>
{isolated_frame(document, title)}
</body>
</html>"""


def escape(text: str) -> str:
    """HTML-escape user content."""
    return _html_escape(str(text), quote=True)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _head(title: str, plan: StylingPlan | None, options: PreviewOptions, live: bool) -> str:
    parts = [
        '<meta charset="UTF-8">',
        '<meta name="viewport" content="width=device-width, initial-scale=1">',
        f"<title>{escape(title)}</title>",
    ]
    if live:
        parts.append(f'<script crossorigin src="{escape(options.react_url)}"></script>')
        parts.append(f'<script crossorigin src="{escape(options.react_dom_url)}"></script>')
    if plan is not None and plan.utility_runtime:
        parts.append(f'<script src="{escape(options.utility_css_url)}"></script>')
    parts.append(f"<style>\n{BASE_CSS}\n</style>")
    if plan is not None and plan.has_stylesheet:
        parts.append(f'<style id="component-styles">\n{_style_text(plan.stylesheet)}\n</style>')
    return "\n".join(parts)


def _script_json(data: dict[str, Any]) -> str:
    """JSON that is safe inside a <script> element."""
    return (
        json.dumps(data, ensure_ascii=False)
        .replace("<", "\\u003c")
        .replace(">", "\\u003e")
        .replace("&", "\\u0026")
        .replace("\u2028", "\\u2028")
        .replace("\u2029", "\\u2029")
    )


def _style_text(css: str) -> str:
    return css.replace("</style", "<\\/style")


def _is_dark(color: str | None) -> bool:
    if not color or not color.startswith("#"):
        return False
    digits = color[1:]
    if len(digits) in (3, 4):
        digits = "".join(c * 2 for c in digits[:3])
    try:
        r, g, b = (int(digits[i : i + 2], 16) for i in (0, 2, 4))
    except ValueError:
        return False
    return (0.299 * r + 0.587 * g + 0.114 * b) < 140


def _truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + f"\n… ({len(text) - limit:,} more characters)"


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------

DOCUMENT_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
{{{head}}}
</head>
<body>
{{{diagnostic}}}
<div id="root">{{{body}}}</div>
</body>
</html>"""

SIMPLIFIED_TEMPLATE = """<div class="preview-simplified{{#dark}} preview-simplified--dark{{/dark}}" style="background: {{background}};">
  <div class="preview-simplified__label">Simplified preview: {{name}}</div>
  {{#has_notice}}<div class="preview-simplified__notice" data-preview-notice>{{notice}}</div>{{/has_notice}}
  {{^has_notice}}<div class="preview-simplified__notice" data-preview-notice hidden></div>{{/has_notice}}
  {{#has_header}}<header class="preview-simplified__header"><h1>{{heading}}</h1></header>{{/has_header}}
  <main class="preview-simplified__main">
    {{^has_header}}<h1>{{heading}}</h1>{{/has_header}}
    {{#paragraphs}}<p>{{text}}</p>{{/paragraphs}}
    {{#has_media}}<div class="preview-simplified__media" aria-hidden="true"></div>{{/has_media}}
    {{#has_action}}<button class="preview-simplified__button" type="button" disabled>Action</button>{{/has_action}}
  </main>
  {{#has_footer}}<footer class="preview-simplified__footer">Footer</footer>{{/has_footer}}
</div>"""

DIAGNOSTIC_TEMPLATE = """<div class="preview-diagnostic" role="alert">
  <div class="preview-diagnostic__notice">{{notice}}</div>
  <div class="preview-diagnostic__kind">{{kind}}</div>
  <div class="preview-diagnostic__message">{{message}}</div>
  {{#location}}<div class="preview-diagnostic__location">at {{location}}</div>{{/location}}
  {{#stages}}
  <details class="preview-diagnostic__stage">
    <summary>{{label}} ({{chars}} chars)</summary>
    <pre>{{text}}</pre>
  </details>
  {{/stages}}
</div>"""

BASE_CSS = """
*, *::before, *::after { box-sizing: border-box; }
body {
  margin: 0;
  font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
  background: #f9fafb;
  color: #111827;
}
#root { min-height: 100vh; }

.preview-diagnostic {
  margin: 16px;
  padding: 12px 16px;
  border: 1px solid #fecaca;
  border-radius: 8px;
  background: #fef2f2;
  color: #991b1b;
  font-size: 13px;
}
.preview-diagnostic__notice { font-weight: 600; margin-bottom: 6px; }
.preview-diagnostic__kind { font-family: ui-monospace, monospace; text-transform: uppercase; font-size: 11px; }
.preview-diagnostic__message { margin-top: 4px; white-space: pre-wrap; }
.preview-diagnostic__location { margin-top: 4px; color: #b91c1c; }
.preview-diagnostic__stage pre {
  max-height: 240px;
  overflow: auto;
  background: #fff;
  border: 1px solid #fee2e2;
  padding: 8px;
  font-size: 11px;
}

.preview-simplified { min-height: 100vh; padding: 20px; line-height: 1.6; }
.preview-simplified--dark { color: #ffffff; }
.preview-simplified__label { color: #6b7280; font-size: 12px; margin-bottom: 12px; }
.preview-simplified--dark .preview-simplified__label { color: rgba(255, 255, 255, 0.7); }
.preview-simplified__notice {
  font-size: 12px;
  padding: 8px 10px;
  margin-bottom: 12px;
  border-radius: 4px;
  background: rgba(239, 68, 68, 0.1);
  color: #b91c1c;
}
.preview-simplified__header { padding: 16px 0; border-bottom: 1px solid rgba(0, 0, 0, 0.1); }
.preview-simplified__main { padding: 24px 0; }
.preview-simplified__media { width: 120px; height: 72px; background: #e5e7eb; border-radius: 4px; margin: 12px 0; }
.preview-simplified__button {
  background: #3b82f6;
  color: #ffffff;
  padding: 8px 16px;
  border: none;
  border-radius: 4px;
}
.preview-simplified__footer { padding: 16px 0; border-top: 1px solid rgba(0, 0, 0, 0.1); opacity: 0.8; font-size: 12px; }
"""

STATIC_CSS = """
body {
  margin: 0;
  padding: 20px;
  font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
  background: #f1f5f9;
}
.static-container {
  background: #ffffff;
  padding: 30px;
  border-radius: 8px;
  box-shadow: 0 1px 3px rgba(0, 0, 0, 0.1);
}
.static-header { color: #475569; font-size: 14px; margin-bottom: 16px; font-weight: 600; }
.static-count, .static-hint { color: #64748b; }
.static-source {
  max-height: 360px;
  overflow: auto;
  background: #f8fafc;
  border: 1px solid #e2e8f0;
  padding: 12px;
  font-size: 12px;
  white-space: pre-wrap;
}
"""

# Runs in the preview document. Re-resolves the component from a
# per-attempt registry, mounts it inside an error boundary and races the
# global and render timers. The first outcome wins and is posted to the
# embedding page.
BOOTSTRAP_JS = r"""
(function () {
  'use strict';
  var config = JSON.parse(document.getElementById('preview-config').textContent);
  var rootElement = document.getElementById('root');
  var reactRoot = null;
  var settled = false;
  var timers = [];

  function report(outcome, kind, message) {
    settled = true;
    timers.forEach(clearTimeout);
    try {
      window.parent.postMessage({
        source: 'component-preview',
        tier: outcome === 'success' ? 'full' : 'simplified',
        outcome: outcome,
        errorKind: kind || null,
        message: message || null,
        component: config.resolved
      }, '*');
    } catch (e) {}
  }

  function showFallback(kind, message) {
    var template = document.getElementById('preview-fallback');
    rootElement.innerHTML = '';
    if (template) rootElement.appendChild(template.content.cloneNode(true));
    var notice = rootElement.querySelector('[data-preview-notice]');
    if (notice) {
      notice.hidden = false;
      notice.textContent = 'Live preview failed (' + kind + '): ' + message + '. Showing a simplified preview.';
    }
  }

  function fail(kind, message) {
    if (settled) return;
    report('error', kind, message);
    if (reactRoot) {
      var mounted = reactRoot;
      reactRoot = null;
      setTimeout(function () {
        try { mounted.unmount(); } catch (e) {}
        showFallback(kind, message);
      }, 0);
    } else {
      showFallback(kind, message);
    }
  }

  function isRenderable(value) {
    return typeof value === 'object' && value !== null &&
      ('type' in value || '$$typeof' in value || 'props' in value);
  }

  function buildRegistry() {
    var hookNames = Object.keys(React).filter(function (k) { return /^use[A-Z]/.test(k); });
    var entries = config.candidates.map(function (name) {
      return JSON.stringify(name) + ': (typeof ' + name + " === 'undefined' ? undefined : " + name + ')';
    });
    // inner scope: the snippet may redeclare hook names, e.g. const { useState } = React
    var body = 'return (function () {\n' + config.code + '\nreturn {' + entries.join(', ') + '};\n})();';
    var factory = Function.apply(null, ['React', 'ReactDOM'].concat(hookNames, [body]));
    return factory.apply(null, [React, ReactDOM].concat(hookNames.map(function (k) { return React[k]; })));
  }

  function pick(registry) {
    var order = [config.resolved].concat(config.candidates.filter(function (n) { return n !== config.resolved; }));
    for (var i = 0; i < order.length; i++) {
      var value = registry[order[i]];
      if (typeof value !== 'function') continue;
      try {
        var probe = value.prototype && value.prototype.isReactComponent ? new value().render() : value();
        if (isRenderable(probe)) return value;
      } catch (e) {}
    }
    return null;
  }

  function boundary() {
    function PreviewBoundary(props) {
      React.Component.call(this, props);
      this.state = { error: null };
    }
    PreviewBoundary.prototype = Object.create(React.Component.prototype);
    PreviewBoundary.prototype.constructor = PreviewBoundary;
    PreviewBoundary.getDerivedStateFromError = function (error) { return { error: error }; };
    PreviewBoundary.prototype.componentDidCatch = function (error) {
      fail('runtime_render', error && error.message ? error.message : String(error));
    };
    PreviewBoundary.prototype.render = function () {
      return this.state.error ? null : this.props.children;
    };
    return PreviewBoundary;
  }

  function Mounted(props) {
    React.useEffect(function () { if (!settled) report('success'); }, []);
    return React.createElement(props.component);
  }

  function mount() {
    timers.push(setTimeout(function () {
      fail('timeout', 'Render timed out after ' + config.renderTimeoutMs + 'ms');
    }, config.renderTimeoutMs));

    var component;
    try {
      component = pick(buildRegistry());
    } catch (e) {
      fail('resolution', e && e.message ? e.message : String(e));
      return;
    }
    if (!component) {
      fail('resolution', 'No candidate rendered an element');
      return;
    }
    try {
      reactRoot = ReactDOM.createRoot(rootElement);
      reactRoot.render(React.createElement(boundary(), null, React.createElement(Mounted, { component: component })));
    } catch (e) {
      fail('runtime_render', e && e.message ? e.message : String(e));
    }
  }

  timers.push(setTimeout(function () {
    fail('timeout', 'Preview timed out after ' + config.globalTimeoutMs + 'ms');
  }, config.globalTimeoutMs));

  var started = Date.now();
  (function waitForLibraries() {
    if (settled) return;
    if (window.React && window.ReactDOM && window.ReactDOM.createRoot) {
      mount();
      return;
    }
    if (Date.now() - started > config.libraryWaitMs) {
      fail('host_unavailable', 'React did not load');
      return;
    }
    setTimeout(waitForLibraries, 50);
  })();
})();
"""
