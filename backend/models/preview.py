"""Preview request models for POST /api/render-component."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from engine.preview.types import AuxiliaryFile, SourceUnit


class AuxiliaryFileIn(BaseModel):
    """A file sent alongside the component text."""

    model_config = {"extra": "forbid"}

    name: str = Field(min_length=1, max_length=255)
    content: str = ""
    type: str = ""


class RenderComponentRequest(BaseModel):
    """What the client sends to render a component preview."""

    model_config = {"extra": "forbid", "populate_by_name": True}

    source_text: str = Field(default="", alias="sourceText")
    component_name: str = Field(default="", alias="componentName")
    styling_mode: Literal["utility-classes", "scoped-stylesheet", "css-in-code"] = Field(
        default="utility-classes", alias="stylingMode"
    )
    auxiliary_style_text: str | None = Field(default=None, alias="auxiliaryStyleText")
    files: list[AuxiliaryFileIn] = Field(default_factory=list)
    mode: Literal["full", "simplified", "static"] = "full"
    embed: bool = False  # wrap the preview in a sandboxed iframe page

    def to_source_unit(self) -> SourceUnit:
        files = [AuxiliaryFile(name=f.name, content=f.content, type=f.type) for f in self.files]
        if self.auxiliary_style_text:
            files.append(AuxiliaryFile(name="styles.css", content=self.auxiliary_style_text, type="css"))
        return SourceUnit(
            raw_text=self.source_text,
            component_name=self.component_name,
            declared_styling_mode=self.styling_mode,
            auxiliary_files=tuple(files),
        )
