"""
Scene presets API endpoint.

Lists the built-in scenes accepted by POST /render.
"""

import logging
from typing import Any

from fastapi import APIRouter, HTTPException

from render_engine.preset_loader import list_available_presets, load_preset
from ..models import PresetListResponse, PresetSummary

logger = logging.getLogger(__name__)

router = APIRouter()


def _convert_preset_to_model(preset_dict: dict[str, Any]) -> PresetSummary:
    """
    Convert preset dictionary from YAML to its public summary.

    Args:
        preset_dict: Raw preset data from YAML file

    Returns:
        PresetSummary: Validated Pydantic model
    """
    camera = preset_dict.get("camera", {})
    return PresetSummary(
        name=preset_dict["name"],
        displayName=preset_dict.get("displayName", preset_dict["name"]),
        description=preset_dict.get("description", ""),
        imageWidth=camera.get("image_width", 400),
        samplesPerPixel=camera.get("samples_per_pixel", 10),
        primitiveCount=len(preset_dict.get("primitives", [])),
    )


@router.get("/presets", response_model=PresetListResponse)
async def get_presets() -> PresetListResponse:
    """
    Get list of available scene presets.

    Returns:
        PresetListResponse: List of available presets

    Raises:
        HTTPException: 500 if preset loading fails
    """
    try:
        presets = [
            _convert_preset_to_model(load_preset(name))
            for name in list_available_presets()
        ]
        logger.debug(f"Loaded {len(presets)} presets")
        return PresetListResponse(presets=presets)

    except FileNotFoundError as e:
        logger.error(f"Preset file not found: {e}")
        raise HTTPException(
            status_code=500, detail="Preset configuration file not found"
        )

    except ValueError as e:
        logger.error(f"Preset loading error: {e}")
        raise HTTPException(
            status_code=500, detail=f"Invalid preset configuration: {str(e)}"
        )
