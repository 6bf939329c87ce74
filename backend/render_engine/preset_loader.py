"""
Preset loader for built-in ray tracing scenes.

This module loads scene presets from presets.yaml and provides
functions to list and retrieve preset configurations.
"""

from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml

PRESET_FILE = Path(__file__).parent / "presets.yaml"


@lru_cache(maxsize=1)
def _load_presets_file() -> tuple[dict[str, Any], ...]:
    if not PRESET_FILE.exists():
        raise FileNotFoundError(
            f"presets.yaml not found. Ensure file exists at {PRESET_FILE}"
        )

    try:
        with open(PRESET_FILE) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML format in presets.yaml: {e}")

    if not data or "presets" not in data:
        raise ValueError("presets.yaml must contain a 'presets' key")

    return tuple(data["presets"])


def list_available_presets() -> list[str]:
    """
    Returns list of available preset names.

    Returns:
        List of preset names in declaration order
        (e.g., ["bouncing_spheres", "checkered_spheres", ...])
    """
    return [preset["name"] for preset in _load_presets_file()]


def load_preset(preset_name: str) -> dict[str, Any]:
    """
    Load a preset configuration by name.

    Args:
        preset_name: Name of the preset to load (e.g., "cornell_box")

    Returns:
        Dictionary with the preset's camera, materials and primitives.
        The dictionary is a copy; callers may mutate it.

    Raises:
        ValueError: If preset_name is empty or not found
        FileNotFoundError: If presets.yaml doesn't exist
    """
    if not preset_name or not isinstance(preset_name, str):
        raise ValueError("preset_name must be a non-empty string")

    for preset in _load_presets_file():
        if preset.get("name") == preset_name:
            return _deep_copy(preset)

    available = list_available_presets()
    raise ValueError(
        f"Invalid preset '{preset_name}'. " f"Available presets: {', '.join(available)}"
    )


def _deep_copy(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _deep_copy(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_deep_copy(v) for v in value]
    return value
