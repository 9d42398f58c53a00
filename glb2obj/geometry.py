"""
Geometry Emitter
Writes OBJ vertex, texcoord, normal and face records for every primitive
"""
import logging
from typing import List, Tuple

import numpy as np

from .document import Document, Primitive
from .materials import material_name
from .utils import format_float

logger = logging.getLogger(__name__)

OBJ_HEADER = "# OBJ file exported by glb2obj"
DEFAULT_MTL_NAME = "model.mtl"

# Face record per (has texcoords, has normals)
FACE_FORMATS = {
    (False, False): "f {v0} {v1} {v2}",
    (True, False): "f {v0}/{t0} {v1}/{t1} {v2}/{t2}",
    (False, True): "f {v0}//{n0} {v1}//{n1} {v2}//{n2}",
    (True, True): "f {v0}/{t0}/{n0} {v1}/{t1}/{n1} {v2}/{t2}/{n2}",
}


def emit_obj(document: Document, mtl_name: str = DEFAULT_MTL_NAME) -> Tuple[str, List[int]]:
    """
    Generate the OBJ text for a document

    Args:
        document: Parsed (and possibly simplified) document
        mtl_name: Material library filename written in the ``mtllib`` line

    Returns:
        Tuple of (OBJ text, referenced material indices in first-seen order)
    """
    lines = [OBJ_HEADER, f"mtllib {mtl_name}", ""]
    used_materials: List[int] = []

    # OBJ numbers v, vt and vn records globally, each in its own sequence
    vertex_offset = 0
    texcoord_offset = 0
    normal_offset = 0

    for mesh in document.meshes:
        for primitive in mesh.primitives:
            if primitive.positions is None:
                continue

            if primitive.material is not None:
                if primitive.material not in used_materials:
                    used_materials.append(primitive.material)
                lines.append(f"usemtl {material_name(primitive.material)}")

            _emit_primitive(lines, primitive, vertex_offset, texcoord_offset, normal_offset)

            count = primitive.vertex_count
            vertex_offset += count
            if primitive.texcoords is not None:
                texcoord_offset += count
            if primitive.normals is not None:
                normal_offset += count

    logger.debug(f"Emitted {vertex_offset} vertices, {len(used_materials)} materials")
    return "\n".join(lines) + "\n", used_materials


def _emit_primitive(lines: List[str], primitive: Primitive,
                    vertex_offset: int, texcoord_offset: int, normal_offset: int) -> None:
    for x, y, z in primitive.positions:
        lines.append(f"v {format_float(x)} {format_float(y)} {format_float(z)}")

    has_texcoords = primitive.texcoords is not None
    if has_texcoords:
        # glTF UV origin is top-left, OBJ bottom-left
        flipped = np.float32(1.0) - primitive.texcoords[:, 1]
        for u, v in zip(primitive.texcoords[:, 0], flipped):
            lines.append(f"vt {format_float(u)} {format_float(v)}")

    has_normals = primitive.normals is not None
    if has_normals:
        for x, y, z in primitive.normals:
            lines.append(f"vn {format_float(x)} {format_float(y)} {format_float(z)}")

    triangles = primitive.triangles()
    face_format = FACE_FORMATS[(has_texcoords, has_normals)]
    v = triangles + 1 + vertex_offset
    t = triangles + 1 + texcoord_offset
    n = triangles + 1 + normal_offset

    for i in range(len(triangles)):
        lines.append(face_format.format(
            v0=v[i, 0], v1=v[i, 1], v2=v[i, 2],
            t0=t[i, 0], t1=t[i, 1], t2=t[i, 2],
            n0=n[i, 0], n1=n[i, 1], n2=n[i, 2],
        ))
