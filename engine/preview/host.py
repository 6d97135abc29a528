"""
Preview Engine — Sandboxed Execution Host

One Node.js process per render attempt, running harness/sandbox.js. The
harness keeps `vm` contexts seeded with a small React-compatible runtime
and answers newline-delimited JSON:

  ← {"ready": true}
  → {"id": 1, "method": "load", "params": {"code": "…"}}
  ← {"id": 1, "result": {"executed": true, "error": null, "globals": ["Card"]}}
  ← {"id": 2, "error": {"kind": "timeout", "message": "…"}}

Methods: load, probe, probeClosure, mount.

Every execution of snippet code inside the harness shares one render
deadline (render_timeout_seconds), enforced by `vm` itself. The global
deadline is enforced by the caller around the whole attempt. Either way
the process is killed when the session closes and is never reused.
"""

from __future__ import annotations

import asyncio
import json
import logging
import shutil
from pathlib import Path
from typing import Any

from engine.preview.errors import HostUnavailableError, PreviewError, RenderTimeoutError, RuntimeRenderError
from engine.preview.types import (
    IDENTIFIER_PATTERN,
    LoadResult,
    PreviewOptions,
    Probe,
    ResolutionStrategy,
    ValueShape,
)

logger = logging.getLogger(__name__)

HARNESS_PATH = Path(__file__).parent / "harness" / "sandbox.js"

# eval and Function(string) are refused in every realm of the process,
# the harness's own included.
NODE_FLAGS = ("--disallow-code-generation-from-strings",)

# Compiled snippets and rendered markup travel as single lines.
_STREAM_LIMIT = 16 * 1024 * 1024


def node_available(node_binary: str = "node") -> bool:
    return shutil.which(node_binary) is not None


class SandboxSession:
    """
    Async context manager around one harness process.

        async with SandboxSession(options) as session:
            loaded = await session.load(code)
            probes = await session.probe(["Card"])
            markup = await session.mount("Card")
    """

    def __init__(self, options: PreviewOptions | None = None) -> None:
        self.options = options or PreviewOptions()
        self.process: asyncio.subprocess.Process | None = None
        self._id = 0

    async def __aenter__(self) -> SandboxSession:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    # -- lifecycle ------------------------------------------------------------

    async def start(self) -> None:
        """Spawn the harness and wait (bounded) for its ready line."""
        node = shutil.which(self.options.node_binary)
        if node is None:
            raise HostUnavailableError(f"Node.js not found ({self.options.node_binary!r} is not on PATH)")

        render_ms = max(1, int(self.options.render_timeout_seconds * 1000))
        self.process = await asyncio.create_subprocess_exec(
            node,
            *NODE_FLAGS,
            str(HARNESS_PATH),
            str(render_ms),
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.DEVNULL,
            limit=_STREAM_LIMIT,
        )

        # __aexit__ does not run when __aenter__ fails, so every failure
        # from here on (cancellation included) must kill the process itself.
        try:
            await self._wait_ready()
        except BaseException:
            await self.close()
            raise
        logger.debug("host: harness ready (pid %s)", self.process.pid)

    async def _wait_ready(self) -> None:
        try:
            line = await asyncio.wait_for(self.process.stdout.readline(), timeout=self.options.ready_timeout_seconds)
        except asyncio.TimeoutError as e:
            raise HostUnavailableError("Sandbox runtime did not become ready in time") from e

        try:
            ready = bool(line) and json.loads(line).get("ready") is True
        except (json.JSONDecodeError, AttributeError):
            ready = False
        if not ready:
            raise HostUnavailableError("Sandbox runtime failed to send ready signal")

    async def close(self) -> None:
        """Kill the process. A session is never reused after this."""
        process, self.process = self.process, None
        if process is None:
            return
        if process.returncode is None:
            try:
                process.kill()
            except ProcessLookupError:
                pass
        await process.wait()

    # -- protocol -------------------------------------------------------------

    async def call(self, method: str, params: dict[str, Any]) -> Any:
        """Send one request and wait for its response."""
        if self.process is None:
            raise HostUnavailableError("Sandbox session is not running")

        self._id += 1
        request = json.dumps({"id": self._id, "method": method, "params": params}) + "\n"

        try:
            self.process.stdin.write(request.encode("utf-8"))
            await self.process.stdin.drain()
            line = await self.process.stdout.readline()
        except (BrokenPipeError, ConnectionResetError) as e:
            raise HostUnavailableError(f"Sandbox runtime went away: {e}") from e

        if not line:
            raise HostUnavailableError("Sandbox runtime exited unexpectedly")

        response = json.loads(line)
        if "error" in response:
            raise _harness_error(response["error"])
        return response["result"]

    # -- operations -----------------------------------------------------------

    async def load(self, code: str) -> LoadResult:
        """Execute compiled code once in a fresh context."""
        result = await self.call("load", {"code": code})
        return LoadResult(
            executed=bool(result.get("executed")),
            error=result.get("error"),
            globals=list(result.get("globals") or []),
        )

    async def probe(self, names: list[str]) -> dict[str, Probe]:
        """Look up and invoke each name with no arguments."""
        names = [n for n in names if IDENTIFIER_PATTERN.match(n)]
        if not names:
            return {}
        result = await self.call("probe", {"names": names})
        return {p["name"]: _probe(p) for p in result}

    async def probe_closure(self, code: str, name: str) -> Probe:
        """Re-execute the code in a closure that returns `name`, then validate that value."""
        if not IDENTIFIER_PATTERN.match(name):
            return Probe(name=name)
        result = await self.call("probeClosure", {"code": code, "name": name})
        return _probe(result)

    async def mount(self, name: str, strategy: ResolutionStrategy = "registry") -> str:
        """Render the resolved component to static markup."""
        result = await self.call("mount", {"name": name, "strategy": strategy})
        return result["markup"]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _probe(data: dict[str, Any]) -> Probe:
    value = data.get("value")
    return Probe(
        name=data["name"],
        found=bool(data.get("found")),
        callable=bool(data.get("callable")),
        threw=bool(data.get("threw")),
        error=data.get("error"),
        value=ValueShape(
            kind=value.get("kind", "undefined"),
            has_type=bool(value.get("hasType")),
            has_element_marker=bool(value.get("hasElementMarker")),
            has_props=bool(value.get("hasProps")),
        )
        if value
        else None,
    )


def _harness_error(error: dict[str, Any]) -> PreviewError:
    kind = error.get("kind")
    message = error.get("message") or "Sandbox error"
    if kind == "timeout":
        return RenderTimeoutError(message, timer="render")
    if kind == "runtime_render":
        return RuntimeRenderError(message, stack=error.get("stack"))
    return HostUnavailableError(f"Sandbox protocol error: {message}")
