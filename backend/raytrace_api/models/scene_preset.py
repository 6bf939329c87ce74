"""Pydantic models for the preset listing."""

from typing import Optional

from pydantic import BaseModel, Field


class PresetSummary(BaseModel):
    """Preset as shown to clients: name, description and camera basics."""

    name: str = Field(..., description="Preset identifier accepted by POST /render")
    displayName: str = Field(..., description="Human-readable name for UI display")
    description: str = Field(..., description="Brief description of the scene")
    imageWidth: int = Field(..., description="Output width in pixels")
    samplesPerPixel: int = Field(..., description="Samples per pixel")
    primitiveCount: Optional[int] = Field(
        None, description="Declared primitives (procedural presets add more)"
    )


class PresetListResponse(BaseModel):
    """Response model for GET /presets endpoint."""

    presets: list[PresetSummary] = Field(
        ..., description="List of available scene presets"
    )
