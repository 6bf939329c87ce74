"""
Unit tests for preset_loader module.

Tests preset loading, validation, and error handling.
"""

import pytest

from render_engine.preset_loader import list_available_presets, load_preset

EXPECTED_PRESETS = [
    "bouncing_spheres",
    "checkered_spheres",
    "earth",
    "perlin_spheres",
    "quads",
    "simple_light",
    "cornell_box",
]


def test_list_available_presets_in_declaration_order():
    """Test that all seven built-in presets are listed in order."""
    assert list_available_presets() == EXPECTED_PRESETS


@pytest.mark.parametrize("preset_name", EXPECTED_PRESETS)
def test_each_preset_has_camera_and_materials(preset_name):
    """Test every preset declares a camera and at least one material."""
    preset = load_preset(preset_name)

    assert preset["name"] == preset_name
    assert preset["camera"]["image_width"] > 0
    assert preset["camera"]["samples_per_pixel"] > 0
    assert preset["materials"]


def test_primitives_reference_declared_materials():
    """Test every primitive names a material its preset declares."""
    for name in EXPECTED_PRESETS:
        preset = load_preset(name)
        for primitive in preset.get("primitives", []):
            assert primitive["material"] in preset["materials"], (
                f"{name}: unknown material {primitive['material']}"
            )


def test_cornell_box_camera_matches_classic_setup():
    """Test cornell_box uses the classic 600px, 200 spp, vfov 40 camera."""
    camera = load_preset("cornell_box")["camera"]

    assert camera["image_width"] == 600
    assert camera["samples_per_pixel"] == 200
    assert camera["vfov"] == 40
    assert camera["lookfrom"] == [278, 278, -800]
    assert camera["background"] == [0, 0, 0]


def test_load_preset_returns_independent_copy():
    """Test mutating a loaded preset does not leak into later loads."""
    first = load_preset("quads")
    first["camera"]["image_width"] = 1
    first["primitives"].clear()

    second = load_preset("quads")
    assert second["camera"]["image_width"] == 400
    assert len(second["primitives"]) == 5


def test_load_preset_invalid_name():
    """Test that invalid preset name raises ValueError."""
    with pytest.raises(ValueError, match="Invalid preset 'nonexistent'"):
        load_preset("nonexistent")


@pytest.mark.parametrize("bad_name", ["", None])
def test_load_preset_empty_name(bad_name):
    """Test that empty or missing preset name raises ValueError."""
    with pytest.raises(ValueError, match="non-empty string"):
        load_preset(bad_name)
