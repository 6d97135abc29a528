"""
Preview engine test configuration.

Pipeline tests run against FakeSession, an in-memory stand-in for the Node
sandbox. Tests that need the real harness live in test_host.py and are
skipped when node is not on PATH.
"""

from __future__ import annotations

import asyncio

import pytest

from engine.preview.types import LoadResult, Probe, ValueShape


def element_probe(name: str) -> Probe:
    """A candidate whose no-argument call returned a React element."""
    return Probe(
        name=name,
        found=True,
        callable=True,
        value=ValueShape(kind="object", has_type=True, has_element_marker=True, has_props=True),
    )


def throwing_probe(name: str, error: str = "Cannot read properties of undefined") -> Probe:
    return Probe(name=name, found=True, callable=True, threw=True, error=error)


class FakeSession:
    """Records what the resolver asks for and answers from canned probes."""

    def __init__(
        self,
        probes: dict[str, Probe] | None = None,
        *,
        executed: bool = True,
        load_error: str | None = None,
        globals_added: list[str] | None = None,
        closure: Probe | None = None,
        markup: str = "<div>rendered</div>",
        mount_error: Exception | None = None,
        hang: bool = False,
    ) -> None:
        self.probes = probes or {}
        self.executed = executed
        self.load_error = load_error
        self.globals_added = globals_added or []
        self.closure = closure
        self.markup = markup
        self.mount_error = mount_error
        self.hang = hang

        self.loaded: list[str] = []
        self.probed: list[list[str]] = []
        self.closure_calls: list[str] = []
        self.mounted: tuple[str, str] | None = None
        self.entered = False
        self.exited = False

    async def __aenter__(self) -> FakeSession:
        self.entered = True
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.exited = True

    async def load(self, code: str) -> LoadResult:
        self.loaded.append(code)
        if self.hang:
            await asyncio.sleep(3600)
        return LoadResult(executed=self.executed, error=self.load_error, globals=self.globals_added)

    async def probe(self, names: list[str]) -> dict[str, Probe]:
        self.probed.append(list(names))
        return {n: self.probes.get(n, Probe(name=n)) for n in names}

    async def probe_closure(self, code: str, name: str) -> Probe:
        self.closure_calls.append(name)
        return self.closure or Probe(name=name)

    async def mount(self, name: str, strategy: str = "registry") -> str:
        if self.mount_error is not None:
            raise self.mount_error
        self.mounted = (name, strategy)
        return self.markup


@pytest.fixture
def fake_session():
    """Factory for FakeSession instances."""
    return FakeSession


@pytest.fixture
def element():
    return element_probe


@pytest.fixture
def throwing():
    return throwing_probe
