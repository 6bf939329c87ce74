"""Pydantic models for render submissions and the internal render request."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, model_validator

Vec3 = tuple[float, float, float]

CUSTOM_PROMPT = "custom"


class RenderMode(str, Enum):
    """Kind of work a render request asks for."""

    PRESET = "preset"
    CUSTOM = "custom"
    GENERATED = "generated"


class CustomSettings(BaseModel):
    """
    Camera and procedural parameters for a custom scene.

    Every field is optional; the scene builder fills in defaults.
    """

    aspect_ratio: Optional[float] = Field(None, alias="aspectRatio", gt=0)
    image_width: Optional[int] = Field(None, alias="imageWidth", gt=0, le=3840)
    samples_per_pixel: Optional[int] = Field(
        None, alias="samplesPerPixel", gt=0, le=5000
    )
    max_depth: Optional[int] = Field(None, alias="maxDepth", gt=0, le=500)
    background_color: Optional[str] = Field(
        None,
        alias="backgroundColor",
        description="Hex color, e.g. #87ceeb. Invalid values decode to black.",
    )
    vfov: Optional[float] = Field(None, gt=0, lt=180)
    lookfrom: Optional[Vec3] = None
    lookat: Optional[Vec3] = None
    vup: Optional[Vec3] = None
    defocus_angle: Optional[float] = Field(None, alias="defocusAngle", ge=0)
    focus_dist: Optional[float] = Field(None, alias="focusDist", gt=0)
    num_spheres: Optional[int] = Field(None, alias="numSpheres", ge=0, le=1000)
    num_quads: Optional[int] = Field(None, alias="numQuads", ge=0, le=1000)

    model_config = {"populate_by_name": True}


class RenderRequest(BaseModel):
    """
    Internal render request handed to the job dispatcher.

    Exactly one mode-specific payload is populated: ``preset`` for
    preset mode, ``custom`` for custom mode (may be empty settings) and
    ``source_text`` for generated mode.
    """

    mode: RenderMode
    preset: Optional[str] = None
    custom: Optional[CustomSettings] = None
    source_text: Optional[str] = None

    @model_validator(mode="after")
    def _check_payload(self) -> "RenderRequest":
        populated = {
            RenderMode.PRESET: self.preset is not None,
            RenderMode.CUSTOM: self.custom is not None,
            RenderMode.GENERATED: self.source_text is not None,
        }
        if not populated[self.mode]:
            raise ValueError(f"{self.mode.value} mode requires its payload")
        extra = [m.value for m, present in populated.items() if present and m != self.mode]
        if extra:
            raise ValueError(
                f"{self.mode.value} mode must not carry payload for: {', '.join(extra)}"
            )
        if self.mode == RenderMode.GENERATED and not self.source_text.strip():
            raise ValueError("generated mode requires non-empty source text")
        return self

    @property
    def label(self) -> str:
        if self.mode == RenderMode.PRESET:
            return self.preset
        return self.mode.value


class RenderSubmission(BaseModel):
    """
    Request body for POST /render.

    Attributes:
        prompt: Preset name, or "custom" for a procedural scene
        custom_settings: Parameters used when prompt is "custom"
    """

    prompt: str = Field(
        ...,
        min_length=1,
        description="Preset name (e.g. checkered_spheres) or 'custom'",
        examples=["checkered_spheres"],
    )
    custom_settings: Optional[CustomSettings] = Field(None, alias="customSettings")

    model_config = {
        "populate_by_name": True,
        "json_schema_extra": {
            "examples": [
                {"prompt": "cornell_box"},
                {
                    "prompt": "custom",
                    "customSettings": {
                        "imageWidth": 200,
                        "samplesPerPixel": 10,
                        "backgroundColor": "#87ceeb",
                        "lookfrom": [0, 0, 12],
                        "lookat": [0, 0, 0],
                        "numSpheres": 5,
                        "numQuads": 2,
                    },
                },
            ]
        },
    }

    def to_render_request(self) -> RenderRequest:
        """Map the public body onto an internal RenderRequest."""
        if self.prompt == CUSTOM_PROMPT:
            return RenderRequest(
                mode=RenderMode.CUSTOM,
                custom=self.custom_settings or CustomSettings(),
            )
        return RenderRequest(mode=RenderMode.PRESET, preset=self.prompt)


class AIRenderSubmission(BaseModel):
    """Request body for POST /renderAI: a free-text scene description."""

    prompt: str = Field(
        ...,
        min_length=1,
        max_length=4000,
        description="Free-text description of the scene to generate",
        examples=["three glass spheres on a dark floor lit from above"],
    )
