"""
Preview Engine — Errors

Every stage failure that halts a tier is a PreviewError. The Fallback
controller catches them and downgrades; none reach the caller.
Normalization warnings are Diagnostics, not exceptions.
"""

from __future__ import annotations


class PreviewError(Exception):
    """Base class. `kind` is what diagnostic panels and attempts report."""

    kind = "internal"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class CompileError(PreviewError):
    """The markup transform rejected the text, even after the repair pass."""

    kind = "compile"

    def __init__(self, message: str, line: int | None = None, column: int | None = None) -> None:
        super().__init__(message)
        self.line = line
        self.column = column

    @property
    def location(self) -> str | None:
        if self.line is None:
            return None
        return f"{self.line}:{self.column or 0}"


class ResolutionError(PreviewError):
    """No candidate passed invocation validation."""

    kind = "resolution"


class RenderTimeoutError(PreviewError):
    """The global or the render-specific timer fired first."""

    kind = "timeout"

    def __init__(self, message: str, timer: str = "global") -> None:
        super().__init__(message)
        self.timer = timer


class RuntimeRenderError(PreviewError):
    """The resolved component threw while being mounted."""

    kind = "runtime_render"

    def __init__(self, message: str, stack: str | None = None) -> None:
        super().__init__(message)
        self.stack = stack


class HostUnavailableError(PreviewError):
    """The sandbox runtime is missing or never reported ready."""

    kind = "host_unavailable"
