"""
Pydantic models describing a renderable scene.

A SceneDescriptor is the hand-off format between the scene builder and
the rendering engine adapter. Materials live in an arena on the
descriptor; primitives refer to them by index.
"""

from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field

Vec3 = tuple[float, float, float]


class Texture(BaseModel):
    """Surface texture used by a Lambertian material."""

    kind: Literal["solid", "checker", "noise", "image"] = "solid"
    color: Optional[Vec3] = None
    scale: Optional[float] = None
    even: Optional[Vec3] = None
    odd: Optional[Vec3] = None
    image: Optional[str] = Field(
        None, description="Image file name resolved by the renderer"
    )


class Material(BaseModel):
    """Material definition stored in the scene's material arena."""

    kind: Literal["lambertian", "metal", "dielectric", "diffuse_light"]
    albedo: Optional[Vec3] = None
    texture: Optional[Texture] = None
    fuzz: Optional[float] = None
    refraction_index: Optional[float] = None
    emit: Optional[Vec3] = None


class Sphere(BaseModel):
    """Sphere primitive, optionally moving from center to center2."""

    kind: Literal["sphere"] = "sphere"
    center: Vec3
    radius: float = Field(..., gt=0)
    material: int = Field(..., ge=0, description="Index into SceneDescriptor.materials")
    center2: Optional[Vec3] = None


class Quad(BaseModel):
    """Parallelogram spanned by corner Q and edge vectors u, v."""

    kind: Literal["quad"] = "quad"
    q: Vec3
    u: Vec3
    v: Vec3
    material: int = Field(..., ge=0, description="Index into SceneDescriptor.materials")


Primitive = Annotated[Union[Sphere, Quad], Field(discriminator="kind")]


class CameraConfig(BaseModel):
    """Camera projection and sampling parameters."""

    aspect_ratio: float = Field(1.0, gt=0)
    image_width: int = Field(400, gt=0)
    samples_per_pixel: int = Field(10, gt=0)
    max_depth: int = Field(10, gt=0)
    background: Vec3 = (0.0, 0.0, 0.0)
    vfov: float = Field(20.0, gt=0, lt=180)
    lookfrom: Vec3 = (0.0, 0.0, 0.0)
    lookat: Vec3 = (0.0, 0.0, -1.0)
    vup: Vec3 = (0.0, 1.0, 0.0)
    defocus_angle: float = Field(0.0, ge=0)
    focus_dist: float = Field(10.0, gt=0)

    @property
    def image_height(self) -> int:
        return max(1, int(self.image_width / self.aspect_ratio))


class SceneDescriptor(BaseModel):
    """Geometry, materials and camera for a single render job."""

    name: str
    materials: list[Material] = Field(default_factory=list)
    primitives: list[Primitive] = Field(default_factory=list)
    camera: CameraConfig = Field(default_factory=CameraConfig)

    def add_material(self, material: Material) -> int:
        """Append a material to the arena and return its index."""
        self.materials.append(material)
        return len(self.materials) - 1

    def add(self, primitive: Union[Sphere, Quad]) -> None:
        if primitive.material >= len(self.materials):
            raise ValueError(
                f"Primitive references unknown material index {primitive.material}"
            )
        self.primitives.append(primitive)

    @property
    def spheres(self) -> list[Sphere]:
        return [p for p in self.primitives if isinstance(p, Sphere)]

    @property
    def quads(self) -> list[Quad]:
        return [p for p in self.primitives if isinstance(p, Quad)]

    def material_for(self, primitive: Union[Sphere, Quad]) -> Material:
        return self.materials[primitive.material]
