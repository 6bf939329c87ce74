"""
Scene descriptor builder.

Turns a RenderRequest into a SceneDescriptor (preset and custom modes)
or hands back the raw source text (generated mode).
"""

import logging
import random
import re
from typing import Any, Optional, Union

from raytrace_api.middleware import InvalidPresetError, InvalidRequestError
from raytrace_api.models.render_request import CustomSettings, RenderMode, RenderRequest
from .preset_loader import list_available_presets, load_preset
from .scene import CameraConfig, Material, Quad, SceneDescriptor, Sphere, Texture

logger = logging.getLogger(__name__)

# Ranges for procedurally generated custom scenes
CUSTOM_RADIUS_RANGE = (0.1, 5.0)
CUSTOM_COORD_RANGE = (-5.0, 5.0)

HEX_DIGITS = re.compile(r"[0-9a-fA-F]{6}")


def hex_to_rgb(hex_color: str) -> tuple[int, int, int]:
    """
    Decode a #RRGGBB color into three 0-255 channels.

    Every '#' is stripped first. Anything that is not exactly six hex
    digits decodes to black instead of raising.
    """
    digits = (hex_color or "").replace("#", "")
    if not HEX_DIGITS.fullmatch(digits):
        return (0, 0, 0)
    value = int(digits, 16)
    return ((value >> 16) & 0xFF, (value >> 8) & 0xFF, value & 0xFF)


def build(
    request: RenderRequest, rng: Optional[random.Random] = None
) -> Union[SceneDescriptor, str]:
    """
    Build the work item for a render request.

    Args:
        request: Validated render request
        rng: Random source for procedural geometry (defaults to a fresh one)

    Returns:
        SceneDescriptor for preset/custom modes, the raw source text for
        generated mode.

    Raises:
        InvalidRequestError: Unknown preset name or unsupported mode
    """
    rng = rng or random.Random()

    if request.mode == RenderMode.PRESET:
        return build_preset(request.preset, rng)
    if request.mode == RenderMode.CUSTOM:
        return build_custom(request.custom or CustomSettings(), rng)
    if request.mode == RenderMode.GENERATED:
        return request.source_text

    raise InvalidRequestError(f"Unsupported render mode: {request.mode}")


def build_preset(preset_name: str, rng: Optional[random.Random] = None) -> SceneDescriptor:
    """Build one of the built-in scenes by name."""
    try:
        preset = load_preset(preset_name)
    except ValueError:
        raise InvalidPresetError(preset_name, list_available_presets())

    rng = rng or random.Random()
    scene = SceneDescriptor(
        name=preset["name"],
        camera=CameraConfig(**preset["camera"]),
    )

    material_index: dict[str, int] = {}
    for mat_name, mat_spec in preset.get("materials", {}).items():
        material_index[mat_name] = scene.add_material(_material_from_spec(mat_spec))

    for prim in preset.get("primitives", []):
        prim = dict(prim)
        prim["material"] = material_index[prim["material"]]
        if prim["kind"] == "sphere":
            scene.add(Sphere(**prim))
        else:
            scene.add(Quad(**prim))

    generator = preset.get("procedural")
    if generator == "random_sphere_field":
        _add_random_sphere_field(scene, rng)
    elif generator is not None:
        raise ValueError(f"Unknown procedural generator '{generator}' in {preset_name}")

    logger.info(
        f"Built preset scene '{preset_name}': {len(scene.primitives)} primitives, "
        f"{len(scene.materials)} materials"
    )
    return scene


def build_custom(settings: CustomSettings, rng: Optional[random.Random] = None) -> SceneDescriptor:
    """
    Procedurally generate a scene from client-supplied counts and camera values.

    Each sphere gets a radius in [0.1, 5.0] and a center in [-5, 5]^3.
    Each quad gets three corner points in [-5, 5]^3 with Q at the first
    point and the edges running to the other two. Every primitive owns a
    Lambertian material of uniformly random color.
    """
    rng = rng or random.Random()
    lo, hi = CUSTOM_COORD_RANGE

    scene = SceneDescriptor(name="custom", camera=_custom_camera(settings))

    for _ in range(settings.num_spheres or 0):
        radius = rng.uniform(*CUSTOM_RADIUS_RANGE)
        center = (rng.uniform(lo, hi), rng.uniform(lo, hi), rng.uniform(lo, hi))
        material = scene.add_material(_random_lambertian(rng))
        scene.add(Sphere(center=center, radius=radius, material=material))

    for _ in range(settings.num_quads or 0):
        p1, p2, p3 = (
            (rng.uniform(lo, hi), rng.uniform(lo, hi), rng.uniform(lo, hi))
            for _ in range(3)
        )
        material = scene.add_material(_random_lambertian(rng))
        scene.add(
            Quad(
                q=p1,
                u=_sub(p2, p1),
                v=_sub(p3, p1),
                material=material,
            )
        )

    logger.info(
        f"Built custom scene: {len(scene.spheres)} spheres, {len(scene.quads)} quads"
    )
    return scene


def _custom_camera(settings: CustomSettings) -> CameraConfig:
    values: dict[str, Any] = {}
    if settings.background_color is not None:
        r, g, b = hex_to_rgb(settings.background_color)
        values["background"] = (r / 255, g / 255, b / 255)

    for field in (
        "aspect_ratio",
        "image_width",
        "samples_per_pixel",
        "max_depth",
        "vfov",
        "lookfrom",
        "lookat",
        "vup",
        "defocus_angle",
        "focus_dist",
    ):
        value = getattr(settings, field)
        if value is not None:
            values[field] = value

    return CameraConfig(**values)


def _add_random_sphere_field(scene: SceneDescriptor, rng: random.Random) -> None:
    """Scatter small spheres on a 22x22 grid, keeping clear of the metal sphere."""
    for a in range(-11, 11):
        for b in range(-11, 11):
            choose_mat = rng.random()
            center = (a + 0.9 * rng.random(), 0.2, b + 0.9 * rng.random())

            if _length(_sub(center, (4, 0.2, 0))) <= 0.9:
                continue

            if choose_mat < 0.8:
                albedo = tuple(rng.random() * rng.random() for _ in range(3))
                material = scene.add_material(Material(kind="lambertian", albedo=albedo))
                center2 = (center[0], center[1] + rng.uniform(0, 0.5), center[2])
                scene.add(Sphere(center=center, center2=center2, radius=0.2, material=material))
            elif choose_mat < 0.95:
                albedo = tuple(rng.uniform(0.5, 1) for _ in range(3))
                fuzz = rng.uniform(0, 0.5)
                material = scene.add_material(Material(kind="metal", albedo=albedo, fuzz=fuzz))
                scene.add(Sphere(center=center, radius=0.2, material=material))
            else:
                material = scene.add_material(
                    Material(kind="dielectric", refraction_index=1.5)
                )
                scene.add(Sphere(center=center, radius=0.2, material=material))


def _material_from_spec(spec: dict[str, Any]) -> Material:
    spec = dict(spec)
    texture = spec.pop("texture", None)
    if texture is not None:
        spec["texture"] = Texture(**texture)
    return Material(**spec)


def _random_lambertian(rng: random.Random) -> Material:
    return Material(kind="lambertian", albedo=(rng.random(), rng.random(), rng.random()))


def _sub(a, b) -> tuple[float, float, float]:
    return (a[0] - b[0], a[1] - b[1], a[2] - b[2])


def _length(v) -> float:
    return (v[0] ** 2 + v[1] ** 2 + v[2] ** 2) ** 0.5
