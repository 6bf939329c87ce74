"""
Unit tests for the scene descriptor builder.
"""

import random

import pytest

from raytrace_api.middleware import InvalidPresetError, InvalidRequestError
from raytrace_api.models import CustomSettings, RenderMode, RenderRequest, RenderSubmission
from render_engine import scene_builder
from render_engine.preset_loader import list_available_presets
from render_engine.scene import Quad, SceneDescriptor, Sphere


class TestHexToRgb:
    """Tests for hex_to_rgb color decoding."""

    @pytest.mark.parametrize(
        "value, expected",
        [
            ("#FF0000", (255, 0, 0)),
            ("FF0000", (255, 0, 0)),
            ("#87ceeb", (135, 206, 235)),
            ("##00ff00", (0, 255, 0)),
        ],
    )
    def test_valid_colors(self, value, expected):
        assert scene_builder.hex_to_rgb(value) == expected

    @pytest.mark.parametrize(
        "value",
        ["abc", "", "#12345", "#1234567", "zzzzzz", "#", "FF_000", "+FF000", "-FF000", " FF00 ", "0xFF00"],
    )
    def test_invalid_colors_decode_to_black(self, value):
        assert scene_builder.hex_to_rgb(value) == (0, 0, 0)


class TestPresetScenes:
    """Tests for building built-in preset scenes."""

    @pytest.mark.parametrize("preset_name", list_available_presets())
    def test_every_preset_builds_non_empty_scene(self, preset_name):
        scene = scene_builder.build_preset(preset_name, random.Random(1))

        assert isinstance(scene, SceneDescriptor)
        assert scene.primitives
        assert scene.camera.samples_per_pixel > 0
        assert scene.camera.image_width > 0
        for primitive in scene.primitives:
            assert 0 <= primitive.material < len(scene.materials)

    def test_checkered_spheres_shares_one_material(self):
        scene = scene_builder.build_preset("checkered_spheres")

        assert len(scene.spheres) == 2
        assert len(scene.materials) == 1
        assert scene.materials[0].texture.kind == "checker"
        assert scene.camera.lookfrom == (13, 2, 3)

    def test_cornell_box_is_six_quads_with_light(self):
        scene = scene_builder.build_preset("cornell_box")

        assert len(scene.quads) == 6
        assert not scene.spheres
        kinds = {scene.material_for(q).kind for q in scene.quads}
        assert kinds == {"lambertian", "diffuse_light"}

    def test_bouncing_spheres_adds_random_field(self):
        scene = scene_builder.build_preset("bouncing_spheres", random.Random(42))

        small = [s for s in scene.spheres if s.radius == 0.2]
        assert len(small) > 300
        moving = [s for s in small if s.center2 is not None]
        assert moving
        for sphere in moving:
            assert scene.material_for(sphere).kind == "lambertian"
            rise = sphere.center2[1] - sphere.center[1]
            assert 0 <= rise <= 0.5
        for sphere in small:
            dx, dz = sphere.center[0] - 4, sphere.center[2]
            assert (dx**2 + dz**2) ** 0.5 > 0.9

    def test_bouncing_spheres_is_reproducible_with_seed(self):
        first = scene_builder.build_preset("bouncing_spheres", random.Random(7))
        second = scene_builder.build_preset("bouncing_spheres", random.Random(7))

        assert first.model_dump() == second.model_dump()

    def test_unknown_preset_raises_invalid_request(self):
        with pytest.raises(InvalidPresetError) as exc_info:
            scene_builder.build_preset("teapot")

        assert isinstance(exc_info.value, InvalidRequestError)
        assert exc_info.value.status_code == 400
        assert "cornell_box" in exc_info.value.details["valid_presets"]


class TestCustomScenes:
    """Tests for procedurally generated custom scenes."""

    @pytest.mark.parametrize("num_spheres", [0, 1, 25])
    def test_sphere_count_and_bounds(self, num_spheres):
        settings = CustomSettings(num_spheres=num_spheres)
        scene = scene_builder.build_custom(settings, random.Random(3))

        assert len(scene.spheres) == num_spheres
        for sphere in scene.spheres:
            assert 0.1 <= sphere.radius <= 5.0
            assert all(-5 <= c <= 5 for c in sphere.center)

    def test_quads_span_three_random_corners(self):
        scene = scene_builder.build_custom(CustomSettings(num_quads=10), random.Random(5))

        assert len(scene.quads) == 10
        for quad in scene.quads:
            assert isinstance(quad, Quad)
            p2 = tuple(q + u for q, u in zip(quad.q, quad.u))
            p3 = tuple(q + v for q, v in zip(quad.q, quad.v))
            for point in (quad.q, p2, p3):
                assert all(-5 - 1e-9 <= c <= 5 + 1e-9 for c in point)

    def test_each_primitive_owns_a_lambertian(self):
        settings = CustomSettings(num_spheres=4, num_quads=3)
        scene = scene_builder.build_custom(settings, random.Random(11))

        indices = [p.material for p in scene.primitives]
        assert len(set(indices)) == 7
        assert all(m.kind == "lambertian" for m in scene.materials)

    def test_camera_defaults(self):
        camera = scene_builder.build_custom(CustomSettings()).camera

        assert camera.aspect_ratio == 1.0
        assert camera.image_width == 400
        assert camera.samples_per_pixel == 10
        assert camera.max_depth == 10
        assert camera.background == (0.0, 0.0, 0.0)
        assert camera.vfov == 20
        assert camera.lookfrom == (0.0, 0.0, 0.0)
        assert camera.lookat == (0.0, 0.0, -1.0)
        assert camera.vup == (0.0, 1.0, 0.0)
        assert camera.focus_dist == 10
        assert camera.defocus_angle == 0

    def test_camera_overrides_and_background(self):
        settings = CustomSettings(
            imageWidth=200,
            samplesPerPixel=4,
            backgroundColor="#FF0000",
            lookfrom=(0, 0, 12),
            vfov=45,
        )
        camera = scene_builder.build_custom(settings).camera

        assert camera.image_width == 200
        assert camera.samples_per_pixel == 4
        assert camera.background == (1.0, 0.0, 0.0)
        assert camera.lookfrom == (0, 0, 12)
        assert camera.vfov == 45

    def test_invalid_background_falls_back_to_black(self):
        camera = scene_builder.build_custom(CustomSettings(backgroundColor="blue")).camera
        assert camera.background == (0.0, 0.0, 0.0)


class TestBuildDispatch:
    """Tests for build() mode dispatch."""

    def test_preset_mode(self):
        request = RenderSubmission(prompt="quads").to_render_request()
        work = scene_builder.build(request)

        assert isinstance(work, SceneDescriptor)
        assert work.name == "quads"

    def test_custom_mode(self):
        request = RenderSubmission(
            prompt="custom", customSettings={"numSpheres": 3}
        ).to_render_request()
        work = scene_builder.build(request, random.Random(0))

        assert request.mode == RenderMode.CUSTOM
        assert len(work.spheres) == 3
        assert all(isinstance(p, Sphere) for p in work.primitives)

    def test_generated_mode_returns_source_untouched(self):
        source = "```cpp\nint main() { return 0; }\n```"
        request = RenderRequest(mode=RenderMode.GENERATED, source_text=source)

        assert scene_builder.build(request) == source

    def test_unknown_preset_through_build(self):
        request = RenderSubmission(prompt="not_a_scene").to_render_request()

        with pytest.raises(InvalidRequestError):
            scene_builder.build(request)
