"""
Builders for test GLB containers and documents
"""
import json
import struct
from unittest import mock

import numpy as np

from glb2obj.document import Document, Mesh, Primitive

FLOAT = 5126
UNSIGNED_BYTE = 5121
UNSIGNED_SHORT = 5123
UNSIGNED_INT = 5125

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 24
JPEG_BYTES = b"\xff\xd8\xff\xe0" + b"\x00" * 24
WEBP_BYTES = b"RIFF\x10\x00\x00\x00WEBPVP8 " + b"\x00" * 16

TRIANGLE_POSITIONS = [(0, 0, 0), (1, 0, 0), (0, 1, 0)]


class GlbBuilder:
    """Assembles a glTF JSON model and binary chunk into GLB bytes"""

    def __init__(self):
        self.blob = bytearray()
        self.gltf = {
            "asset": {"version": "2.0"},
            "buffers": [],
            "bufferViews": [],
            "accessors": [],
            "meshes": [],
        }

    def view(self, data: bytes, **extra) -> int:
        while len(self.blob) % 4:
            self.blob.append(0)
        self.gltf["bufferViews"].append(
            {"buffer": 0, "byteOffset": len(self.blob), "byteLength": len(data), **extra}
        )
        self.blob.extend(data)
        return len(self.gltf["bufferViews"]) - 1

    def accessor(self, values, type_: str, component_type: int = FLOAT, **extra) -> int:
        dtype = {FLOAT: "<f4", UNSIGNED_BYTE: "<u1", UNSIGNED_SHORT: "<u2", UNSIGNED_INT: "<u4"}[component_type]
        array = np.asarray(values, dtype=dtype)
        width = {"SCALAR": 1, "VEC2": 2, "VEC3": 3}[type_]
        accessor = {
            "bufferView": self.view(array.tobytes()),
            "componentType": component_type,
            "count": array.size // width,
            "type": type_,
            **extra,
        }
        self.gltf["accessors"].append(accessor)
        return len(self.gltf["accessors"]) - 1

    def primitive(self, positions=None, texcoords=None, normals=None, indices=None,
                  material=None, **extra) -> dict:
        attributes = {}
        if positions is not None:
            attributes["POSITION"] = self.accessor(positions, "VEC3")
        if texcoords is not None:
            attributes["TEXCOORD_0"] = self.accessor(texcoords, "VEC2")
        if normals is not None:
            attributes["NORMAL"] = self.accessor(normals, "VEC3")

        primitive = {"attributes": attributes, **extra}
        if indices is not None:
            primitive["indices"] = self.accessor(indices, "SCALAR", UNSIGNED_INT)
        if material is not None:
            primitive["material"] = material
        return primitive

    def mesh(self, *primitives, name=None) -> int:
        mesh = {"primitives": list(primitives)}
        if name:
            mesh["name"] = name
        self.gltf["meshes"].append(mesh)
        return len(self.gltf["meshes"]) - 1

    def material(self, **fields) -> int:
        self.gltf.setdefault("materials", []).append(fields)
        return len(self.gltf["materials"]) - 1

    def image(self, data: bytes, mime_type=None) -> int:
        image = {"bufferView": self.view(data)}
        if mime_type:
            image["mimeType"] = mime_type
        self.gltf.setdefault("images", []).append(image)
        return len(self.gltf["images"]) - 1

    def texture(self, source=None, **extra) -> int:
        texture = dict(extra)
        if source is not None:
            texture["source"] = source
        self.gltf.setdefault("textures", []).append(texture)
        return len(self.gltf["textures"]) - 1

    def build(self) -> bytes:
        gltf = dict(self.gltf)
        if self.blob:
            gltf["buffers"] = [{"byteLength": len(self.blob)}]

        json_chunk = json.dumps(gltf).encode("utf-8")
        json_chunk += b" " * (-len(json_chunk) % 4)
        bin_chunk = bytes(self.blob) + b"\x00" * (-len(self.blob) % 4)

        body = struct.pack("<II", len(json_chunk), 0x4E4F534A) + json_chunk
        if bin_chunk:
            body += struct.pack("<II", len(bin_chunk), 0x004E4942) + bin_chunk
        return struct.pack("<4sII", b"glTF", 2, 12 + len(body)) + body


def triangle_glb() -> bytes:
    """A single unindexed triangle with no material"""
    builder = GlbBuilder()
    builder.mesh(builder.primitive(positions=TRIANGLE_POSITIONS))
    return builder.build()


def grid_positions(size: int):
    """Flat (size x size) vertex grid in the XY plane with its triangle indices"""
    xs, ys = np.meshgrid(np.linspace(0.0, 1.0, size), np.linspace(0.0, 1.0, size))
    positions = np.stack([xs.ravel(), ys.ravel(), np.zeros(size * size)], axis=1)

    indices = []
    for row in range(size - 1):
        for col in range(size - 1):
            a = row * size + col
            b = a + 1
            c = a + size
            d = c + 1
            indices.extend([a, b, d, a, d, c])
    return positions.astype(np.float32), np.asarray(indices, dtype=np.uint32)


def document_of(*primitives: Primitive, materials=None) -> Document:
    return Document(meshes=[Mesh(name="mesh_0", primitives=list(primitives))],
                    materials=list(materials or []))


def obj_lines(obj: str, prefix: str):
    return [line for line in obj.splitlines() if line.startswith(prefix)]


CUBE_FACES = [
    [(1, 0, 0), (1, 1, 0), (1, 1, 1), (1, 0, 1)],
    [(0, 0, 0), (0, 0, 1), (0, 1, 1), (0, 1, 0)],
    [(0, 1, 0), (0, 1, 1), (1, 1, 1), (1, 1, 0)],
    [(0, 0, 0), (1, 0, 0), (1, 0, 1), (0, 0, 1)],
    [(0, 0, 1), (1, 0, 1), (1, 1, 1), (0, 1, 1)],
    [(0, 0, 0), (0, 1, 0), (1, 1, 0), (1, 0, 0)],
]


def cube_geometry():
    """Unit cube with its own UV quad per face: 24 vertices, 12 triangles"""
    positions = [corner for face in CUBE_FACES for corner in face]
    texcoords = [(0, 0), (1, 0), (1, 1), (0, 1)] * len(CUBE_FACES)

    indices = []
    for face in range(len(CUBE_FACES)):
        base = face * 4
        indices.extend([base, base + 1, base + 2, base, base + 2, base + 3])
    return (
        np.asarray(positions, dtype=np.float32),
        np.asarray(texcoords, dtype=np.float32),
        np.asarray(indices, dtype=np.uint32),
    )


def cube_glb() -> bytes:
    positions, texcoords, indices = cube_geometry()
    builder = GlbBuilder()
    builder.mesh(builder.primitive(positions=positions, texcoords=texcoords, indices=indices))
    return builder.build()


def fake_response(content: bytes = b"", status_code: int = 200, headers=None, chunk_size: int = None):
    """Stand-in for a streamed ``requests`` response"""
    chunk_size = chunk_size or max(len(content), 1)
    chunks = [content[i:i + chunk_size] for i in range(0, len(content), chunk_size)]
    response = mock.Mock(status_code=status_code, headers=headers or {})
    response.iter_content.return_value = iter(chunks)
    return response
