"""
In-memory document model for a parsed GLB asset
"""
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional

import numpy as np


@dataclass
class Primitive:
    """
    One triangle batch: a vertex attribute set, optional indices and an
    optional material reference (document material index).
    """
    positions: Optional[np.ndarray] = None   # (N, 3) float32
    texcoords: Optional[np.ndarray] = None   # (N, 2) float32
    normals: Optional[np.ndarray] = None     # (N, 3) float32
    indices: Optional[np.ndarray] = None     # flat uint32, len % 3 == 0
    material: Optional[int] = None

    def __post_init__(self):
        self.positions = _as_rows(self.positions, 3, "positions")
        self.texcoords = _as_rows(self.texcoords, 2, "texcoords")
        self.normals = _as_rows(self.normals, 3, "normals")

        if self.indices is not None:
            self.indices = np.asarray(self.indices, dtype=np.uint32).reshape(-1)

        count = self.vertex_count
        for name in ("texcoords", "normals"):
            values = getattr(self, name)
            if values is None:
                continue
            if self.positions is None:
                raise ValueError(f"Primitive has {name} but no positions")
            if len(values) != count:
                raise ValueError(
                    f"Primitive {name} count {len(values)} does not match "
                    f"position count {count}"
                )

    @property
    def vertex_count(self) -> int:
        return 0 if self.positions is None else len(self.positions)

    @property
    def triangle_count(self) -> int:
        if self.indices is not None:
            return len(self.indices) // 3
        return self.vertex_count // 3

    def triangles(self) -> np.ndarray:
        """Return the (T, 3) local vertex indices of every triangle"""
        if self.indices is not None:
            usable = len(self.indices) - len(self.indices) % 3
            return self.indices[:usable].reshape(-1, 3).astype(np.int64)
        usable = self.vertex_count - self.vertex_count % 3
        return np.arange(usable, dtype=np.int64).reshape(-1, 3)

    def copy(self) -> "Primitive":
        return Primitive(
            positions=None if self.positions is None else self.positions.copy(),
            texcoords=None if self.texcoords is None else self.texcoords.copy(),
            normals=None if self.normals is None else self.normals.copy(),
            indices=None if self.indices is None else self.indices.copy(),
            material=self.material,
        )


@dataclass
class Mesh:
    name: str = ""
    primitives: List[Primitive] = field(default_factory=list)


@dataclass
class Material:
    """PBR metallic-roughness material with optional texture slots (texture indices)"""
    name: str = ""
    base_color_factor: List[float] = field(default_factory=lambda: [1.0, 1.0, 1.0, 1.0])
    metallic_factor: float = 1.0
    roughness_factor: float = 1.0
    emissive_factor: List[float] = field(default_factory=lambda: [0.0, 0.0, 0.0])
    base_color_texture: Optional[int] = None
    metallic_roughness_texture: Optional[int] = None
    normal_texture: Optional[int] = None
    occlusion_texture: Optional[int] = None
    emissive_texture: Optional[int] = None

    def texture_slots(self) -> Dict[str, Optional[int]]:
        return {
            "base_color": self.base_color_texture,
            "metallic_roughness": self.metallic_roughness_texture,
            "normal": self.normal_texture,
            "occlusion": self.occlusion_texture,
            "emissive": self.emissive_texture,
        }


@dataclass
class Image:
    data: bytes
    mime_type: Optional[str] = None
    name: str = ""


@dataclass
class Texture:
    image: Optional[int] = None
    mime_type: Optional[str] = None


@dataclass
class Document:
    meshes: List[Mesh] = field(default_factory=list)
    materials: List[Material] = field(default_factory=list)
    textures: List[Texture] = field(default_factory=list)
    images: List[Image] = field(default_factory=list)

    def primitives(self):
        for mesh in self.meshes:
            yield from mesh.primitives

    @property
    def vertex_count(self) -> int:
        return sum(p.vertex_count for p in self.primitives())

    @property
    def triangle_count(self) -> int:
        return sum(p.triangle_count for p in self.primitives() if p.positions is not None)

    def copy(self) -> "Document":
        """Copy with private geometry buffers; materials and images are shared"""
        meshes = [
            Mesh(name=m.name, primitives=[p.copy() for p in m.primitives])
            for m in self.meshes
        ]
        return replace(self, meshes=meshes)


@dataclass
class ConvertedModel:
    """OBJ text, MTL text and generated texture filename -> raw bytes"""
    obj: str
    mtl: str
    textures: Dict[str, bytes] = field(default_factory=dict)
    vertex_count: int = 0
    face_count: int = 0


def _as_rows(values, width: int, name: str) -> Optional[np.ndarray]:
    if values is None:
        return None
    array = np.asarray(values, dtype=np.float32)
    if array.size % width:
        raise ValueError(f"Primitive {name} length {array.size} is not a multiple of {width}")
    return array.reshape(-1, width)
