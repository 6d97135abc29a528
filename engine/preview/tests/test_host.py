"""
Tests for the sandboxed execution host.

These start the real Node harness and are skipped when node is missing.
"""

import asyncio
import shutil
import sys

import pytest

from engine.preview.compiler import compile_markup
from engine.preview.errors import HostUnavailableError, RenderTimeoutError, RuntimeRenderError
from engine.preview.fallback import render_preview
from engine.preview.host import SandboxSession
from engine.preview.resolver import resolve
from engine.preview.types import PreviewOptions, SourceUnit

requires_node = pytest.mark.skipif(shutil.which("node") is None, reason="node is not installed")
requires_posix = pytest.mark.skipif(sys.platform == "win32", reason="needs a POSIX shell")

FAST = PreviewOptions(render_timeout_seconds=1.0, global_timeout_seconds=5.0)


def compiled(code: str) -> str:
    return compile_markup(code).code


async def test_missing_runtime_is_unavailable():
    options = PreviewOptions(node_binary="definitely-not-a-node-binary")
    with pytest.raises(HostUnavailableError):
        async with SandboxSession(options):
            pass


@requires_node
class TestSandboxSession:
    async def test_load_reports_added_globals(self):
        code = compiled("function Card() { return <div>Hi</div>; }\nconst Helper = () => null;")
        async with SandboxSession(FAST) as session:
            loaded = await session.load(code)
        assert loaded.executed is True
        assert loaded.error is None
        # function declarations land on the global object, lexical bindings do not
        assert loaded.globals == ["Card"]

    async def test_load_error(self):
        async with SandboxSession(FAST) as session:
            loaded = await session.load("missing.call();")
        assert loaded.executed is False
        assert "ReferenceError" in loaded.error

    async def test_probe_shapes(self):
        code = compiled(
            "function Card() { return <div>Hi</div>; }\n"
            "const Broken = () => { throw new Error('nope'); };\n"
            "const Text = () => 'just text';\n"
            "const NotCallable = 42;"
        )
        async with SandboxSession(FAST) as session:
            await session.load(code)
            probes = await session.probe(["Card", "Broken", "Text", "NotCallable", "Missing", "Date"])

        assert probes["Card"].callable and probes["Card"].value.kind == "object"
        assert probes["Card"].value.has_element_marker is True
        assert probes["Broken"].threw is True
        assert probes["Broken"].error == "nope"
        assert probes["Text"].value.kind == "string"
        assert probes["NotCallable"].found is True
        assert probes["NotCallable"].callable is False
        assert probes["Missing"].found is False
        assert probes["Date"].value.kind == "string"

    async def test_mount_renders_static_markup(self):
        code = compiled(
            "function Card() {\n"
            "  const [n] = useState(3);\n"
            "  return <div className=\"card\" style={{ marginTop: 4 }} onClick={() => null}>\n"
            "    <h2>Count {n}</h2>\n"
            "    <img src=\"a.png\" alt=\"\" />\n"
            "    {['a', 'b'].map(x => <span key={x}>{x}</span>)}\n"
            "  </div>;\n"
            "}"
        )
        async with SandboxSession(FAST) as session:
            await session.load(code)
            markup = await session.mount("Card")
        assert markup.startswith('<div class="card" style="margin-top:4px">')
        assert "<h2>Count 3</h2>" in markup
        assert '<img src="a.png" alt=""/>' in markup or '<img src="a.png" alt="">' in markup
        assert "<span>a</span><span>b</span>" in markup
        assert "onClick" not in markup

    async def test_mount_escapes_text(self):
        code = compiled("function Card() { return <p>{'<b>x</b> & y'}</p>; }")
        async with SandboxSession(FAST) as session:
            await session.load(code)
            markup = await session.mount("Card")
        assert markup == "<p>&lt;b&gt;x&lt;/b&gt; &amp; y</p>"

    async def test_mount_runtime_error(self):
        code = compiled("function Card() { return <div>{missing.value}</div>; }")
        async with SandboxSession(FAST) as session:
            await session.load(code)
            with pytest.raises(RuntimeRenderError, match="missing"):
                await session.mount("Card")

    async def test_infinite_loop_times_out(self):
        async with SandboxSession(FAST) as session:
            with pytest.raises(RenderTimeoutError) as exc:
                await session.load("while (true) {}")
        assert exc.value.timer == "render"

    async def test_no_dynamic_code_generation(self):
        async with SandboxSession(FAST) as session:
            loaded = await session.load("eval('1 + 1');")
        assert loaded.executed is False

    async def test_host_realm_is_not_reachable(self):
        escapes = [
            "console.log.constructor('return process')();",
            "setTimeout.constructor('return process')();",
            "this.constructor.constructor('return process')();",
            "Object.getPrototypeOf(globalThis).constructor.constructor('return process')();",
        ]
        async with SandboxSession(FAST) as session:
            for code in escapes:
                loaded = await session.load(code)
                assert loaded.executed is False, code

    async def test_process_is_not_defined(self):
        async with SandboxSession(FAST) as session:
            loaded = await session.load("process.exit(1);")
        assert loaded.executed is False
        assert "ReferenceError" in loaded.error

    async def test_class_component_sees_empty_props(self):
        code = compiled(
            "class Card extends React.Component {\n"
            "  constructor(props) { super(props); this.title = props.title || 'untitled'; }\n"
            "  render() { return <div>{this.title}</div>; }\n"
            "}"
        )
        async with SandboxSession(FAST) as session:
            await session.load(code)
            probes = await session.probe(["Card"])
        assert probes["Card"].threw is False
        assert probes["Card"].value.has_element_marker is True

    async def test_closure_probe(self):
        async with SandboxSession(FAST) as session:
            probe = await session.probe_closure(compiled("const Card = () => <div/>;"), "Card")
        assert probe.found and probe.callable
        assert probe.value.has_type is True


@requires_node
class TestEndToEnd:
    async def test_resolve_against_real_sandbox(self):
        code = compiled(
            "function Foo() { return <div>foo</div>; }\n"
            "const Bar = () => { throw new Error('needs props'); };"
        )
        async with SandboxSession(FAST) as session:
            resolved = await resolve(code, "Bar", session)
        assert resolved.name == "Foo"

    async def test_card_renders_full(self):
        unit = SourceUnit(raw_text="function Card(){ return <div className='p-4'>Hello</div> }", component_name="Card")
        result = await render_preview(unit, FAST)
        assert result.tier == "full"
        assert result.resolved.name == "Card"
        assert '<div id="root"><div class="p-4">Hello</div></div>' in result.document

    async def test_infinite_loop_downgrades_in_time(self):
        unit = SourceUnit(raw_text="function Card() { while (true) {} return <div/>; }", component_name="Card")
        result = await render_preview(unit, FAST)
        assert result.tier == "simplified"
        assert result.attempts[0].error_kind == "timeout"
        assert result.attempts[0].elapsed_ms < 5_000

    async def test_escape_attempt_never_renders_full(self):
        source = (
            "const P = console.log.constructor('return process')();\n"
            "function Card(){ return <div>{P.pid + ':' + typeof P.mainModule}</div> }"
        )
        result = await render_preview(SourceUnit(raw_text=source, component_name="Card"), FAST)
        assert result.tier == "simplified"
        assert result.attempts[0].error_kind == "resolution"
        assert ":object" not in result.document


@requires_posix
class TestStartupCleanup:
    """A harness that fails to start is killed before start() returns."""

    @pytest.fixture
    def spawned(self, monkeypatch):
        processes = []
        original = asyncio.create_subprocess_exec

        async def recording(*args, **kwargs):
            process = await original(*args, **kwargs)
            processes.append(process)
            return process

        monkeypatch.setattr(asyncio, "create_subprocess_exec", recording)
        return processes

    def fake_node(self, tmp_path, body: str) -> str:
        script = tmp_path / "fake-node"
        script.write_text("#!/bin/sh\n" + body + "\n")
        script.chmod(0o755)
        return str(script)

    async def test_garbage_ready_line(self, tmp_path, spawned):
        options = PreviewOptions(node_binary=self.fake_node(tmp_path, "echo not-json\nexec sleep 30"))
        session = SandboxSession(options)
        with pytest.raises(HostUnavailableError, match="ready signal"):
            await session.start()
        assert session.process is None
        assert spawned[0].returncode is not None

    async def test_cancelled_while_waiting_for_ready(self, tmp_path, spawned):
        options = PreviewOptions(node_binary=self.fake_node(tmp_path, "exec sleep 30"), ready_timeout_seconds=5.0)
        session = SandboxSession(options)
        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(session.start(), timeout=0.3)
        assert session.process is None
        assert spawned[0].returncode is not None

    async def test_global_timeout_during_startup_kills_harness(self, tmp_path, spawned):
        options = PreviewOptions(
            node_binary=self.fake_node(tmp_path, "exec sleep 30"),
            ready_timeout_seconds=5.0,
            global_timeout_seconds=0.5,
        )
        unit = SourceUnit(raw_text="function Card(){ return <div/> }", component_name="Card")
        result = await render_preview(unit, options)
        assert result.attempts[0].error_kind == "timeout"
        assert all(p.returncode is not None for p in spawned)
