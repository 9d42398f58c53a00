"""
Mesh Simplifier
Welds near-duplicate vertices and runs quadric edge-collapse decimation
"""
import logging

import numpy as np

from .document import Document, Primitive
from .tiers import DEFAULT_MAX_ERROR

logger = logging.getLogger(__name__)

WELD_TOLERANCE = 1e-4

# Primitives smaller than this are left alone
MIN_TRIANGLES = 10

# Number of increasingly conservative targets tried when the error bound is exceeded
RELAX_STEPS = 4


def simplify_document(document: Document, keep_ratio: float,
                      max_error: float = DEFAULT_MAX_ERROR) -> Document:
    """
    Reduce every primitive toward ``keep_ratio`` of its geometry.

    Args:
        document: Parsed document, not modified
        keep_ratio: Fraction of geometry to keep, 0..1 (1.0 is a no-op)
        max_error: Maximum surface deviation, relative to each primitive's
            bounding-box diagonal

    Returns:
        A document with simplified geometry, or ``document`` itself when
        nothing was done or simplification failed
    """
    if not 0.0 <= keep_ratio <= 1.0:
        raise ValueError(f"keep_ratio must be within [0, 1], got {keep_ratio}")

    if keep_ratio == 1.0:
        return document

    vertices_before = document.vertex_count
    try:
        simplified = document.copy()
        for mesh in simplified.meshes:
            mesh.primitives = [
                simplify_primitive(p, keep_ratio, max_error) for p in mesh.primitives
            ]
    except Exception:
        logger.exception("Mesh simplification failed, using original geometry")
        return document

    logger.info(
        f"Simplified {vertices_before} -> {simplified.vertex_count} vertices "
        f"(keep ratio {keep_ratio})"
    )
    return simplified


def simplify_primitive(primitive: Primitive, keep_ratio: float, max_error: float) -> Primitive:
    if primitive.positions is None or primitive.triangle_count < MIN_TRIANGLES:
        return primitive

    welded = weld_primitive(primitive, WELD_TOLERANCE)
    face_count = welded.triangle_count
    if face_count < MIN_TRIANGLES:
        return primitive

    extent = welded.positions.max(axis=0) - welded.positions.min(axis=0)
    diagonal = float(np.linalg.norm(extent))
    if diagonal == 0.0:
        return primitive
    bound = max_error * diagonal

    for step in range(RELAX_STEPS):
        ratio = keep_ratio + (1.0 - keep_ratio) * step / RELAX_STEPS
        target_faces = max(1, int(round(face_count * ratio)))
        if target_faces >= face_count:
            break

        candidate, error = decimate(welded, target_faces)
        if error <= bound:
            return candidate
        logger.debug(
            f"Decimation to {target_faces} faces deviates {error:.6g} > {bound:.6g}, relaxing"
        )

    # Nothing fit the error bound
    return primitive


def weld_primitive(primitive: Primitive, tolerance: float = WELD_TOLERANCE) -> Primitive:
    """
    Merge vertices whose position, texcoord and normal all fall in the same
    ``tolerance`` grid cell.

    Vertices that share a position across a UV seam or a hard edge stay
    separate. Triangles that collapse to a line or a point are dropped.
    """
    triangles = primitive.triangles()

    columns = [primitive.positions]
    if primitive.texcoords is not None:
        columns.append(primitive.texcoords)
    if primitive.normals is not None:
        columns.append(primitive.normals)
    attributes = np.hstack([c.astype(np.float64) for c in columns])

    keys = np.floor(attributes / tolerance + 0.5).astype(np.int64)
    _, first, inverse = np.unique(keys, axis=0, return_index=True, return_inverse=True)
    inverse = inverse.reshape(-1)

    # Keep clusters in first-occurrence order
    order = np.argsort(first)
    rank = np.empty_like(order)
    rank[order] = np.arange(len(order))
    remap = rank[inverse]
    kept = first[order]

    faces = remap[triangles]
    valid = (
        (faces[:, 0] != faces[:, 1])
        & (faces[:, 1] != faces[:, 2])
        & (faces[:, 0] != faces[:, 2])
    )
    faces = faces[valid]

    return Primitive(
        positions=primitive.positions[kept],
        texcoords=None if primitive.texcoords is None else primitive.texcoords[kept],
        normals=None if primitive.normals is None else primitive.normals[kept],
        indices=faces.reshape(-1).astype(np.uint32),
        material=primitive.material,
    )


def decimate(primitive: Primitive, target_faces: int):
    """
    Run pymeshlab quadric edge collapse on one welded primitive.

    Returns:
        Tuple of (decimated primitive, Hausdorff distance from the original surface)
    """
    import pymeshlab

    ms = pymeshlab.MeshSet()
    ms.add_mesh(_to_meshlab(pymeshlab, primitive), "original")
    ms.add_mesh(_to_meshlab(pymeshlab, primitive), "simplified")

    ms.apply_filter(
        "meshing_decimation_quadric_edge_collapse",
        targetfacenum=target_faces,
        qualitythr=0.3,
        preserveboundary=True,
        preservenormal=True,
        preservetopology=False,
        optimalplacement=True,
        planarquadric=True,
        autoclean=True,
    )

    measures = ms.apply_filter(
        "get_hausdorff_distance",
        sampledmesh=0,
        targetmesh=1,
        samplevert=True,
        sampleface=True,
    )
    error = float(measures["max"])

    ms.set_current_mesh(1)
    mesh = ms.current_mesh()
    positions = mesh.vertex_matrix()
    faces = mesh.face_matrix()
    if len(faces) == 0:
        raise RuntimeError("Decimation removed every triangle")

    texcoords = None
    if primitive.texcoords is not None:
        if not mesh.has_vertex_tex_coord():
            raise RuntimeError("Decimation dropped texture coordinates")
        texcoords = mesh.vertex_tex_coord_matrix()

    normals = None
    if primitive.normals is not None:
        normals = _unit_rows(mesh.vertex_normal_matrix())

    result = Primitive(
        positions=positions,
        texcoords=texcoords,
        normals=normals,
        indices=np.asarray(faces, dtype=np.uint32).reshape(-1),
        material=primitive.material,
    )
    return result, error


def _to_meshlab(pymeshlab, primitive: Primitive):
    kwargs = {}
    if primitive.normals is not None:
        kwargs["v_normals_matrix"] = primitive.normals.astype(np.float64)
    if primitive.texcoords is not None:
        kwargs["v_tex_coords_matrix"] = primitive.texcoords.astype(np.float64)

    return pymeshlab.Mesh(
        vertex_matrix=primitive.positions.astype(np.float64),
        face_matrix=primitive.triangles().astype(np.int32),
        **kwargs,
    )


def _unit_rows(values: np.ndarray) -> np.ndarray:
    lengths = np.linalg.norm(values, axis=1, keepdims=True)
    lengths[lengths == 0] = 1.0
    return values / lengths
