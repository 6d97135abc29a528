"""
Pydantic models for the component preview API.

All request shapes defined here. No imports from routes.
"""

from backend.models.preview import AuxiliaryFileIn, RenderComponentRequest

__all__ = [
    "AuxiliaryFileIn",
    "RenderComponentRequest",
]
