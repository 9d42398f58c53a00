"""
GLB Loader
Reads a binary glTF 2.0 container into the in-memory Document model
"""
import base64
import logging
import struct
from typing import List, Optional

import numpy as np
from pygltflib import GLTF2

from .document import Document, Image, Material, Mesh, Primitive, Texture
from .errors import LoadError

logger = logging.getLogger(__name__)

# Optional KHR_draco_mesh_compression support
try:
    import DracoPy
except ImportError:
    DracoPy = None
    logger.warning("Draco compression not available, continuing without it")


GLB_MAGIC = b"glTF"
GLB_VERSION_SUPPORTED = 2
GLB_HEADER_SIZE = 12
CHUNK_HEADER_SIZE = 8

CHUNK_TYPE_JSON = 0x4E4F534A  # b"JSON"
CHUNK_TYPE_BIN = 0x004E4942   # b"BIN\0"

MODE_TRIANGLES = 4

COMPONENT_DTYPES = {
    5120: np.dtype("<i1"),
    5121: np.dtype("<u1"),
    5122: np.dtype("<i2"),
    5123: np.dtype("<u2"),
    5125: np.dtype("<u4"),
    5126: np.dtype("<f4"),
}

TYPE_COMPONENT_COUNT = {
    "SCALAR": 1,
    "VEC2": 2,
    "VEC3": 3,
    "VEC4": 4,
    "MAT2": 4,
    "MAT3": 9,
    "MAT4": 16,
}

DRACO_EXTENSION = "KHR_draco_mesh_compression"
# Extensions that point a texture at an alternative image source
TEXTURE_SOURCE_EXTENSIONS = ("EXT_texture_webp", "KHR_texture_basisu", "MSFT_texture_dds")

SUPPORTED_EXTENSIONS = {DRACO_EXTENSION, *TEXTURE_SOURCE_EXTENSIONS}


def draco_available() -> bool:
    return DracoPy is not None


def split_glb(data: bytes):
    """
    Validate a GLB container and split it into its JSON text and BIN chunk.

    Raises:
        LoadError: bad magic, unsupported version or truncated container
    """
    if len(data) < GLB_HEADER_SIZE:
        raise LoadError("Failed to load GLB model", "truncated header")

    magic, version, length = struct.unpack_from("<4sII", data, 0)
    if magic != GLB_MAGIC:
        raise LoadError("Failed to load GLB model", f"bad magic {magic!r}")
    if version != GLB_VERSION_SUPPORTED:
        raise LoadError("Failed to load GLB model", f"unsupported GLB version {version}")
    if length > len(data):
        raise LoadError(
            "Failed to load GLB model",
            f"truncated: header declares {length} bytes, got {len(data)}",
        )

    json_text = None
    bin_chunk = None
    offset = GLB_HEADER_SIZE

    while offset < length:
        if offset + CHUNK_HEADER_SIZE > length:
            raise LoadError("Failed to load GLB model", "truncated chunk header")
        chunk_length, chunk_type = struct.unpack_from("<II", data, offset)
        offset += CHUNK_HEADER_SIZE
        if offset + chunk_length > length:
            raise LoadError("Failed to load GLB model", "truncated chunk")
        chunk = data[offset:offset + chunk_length]
        offset += chunk_length

        if json_text is None:
            if chunk_type != CHUNK_TYPE_JSON:
                raise LoadError("Failed to load GLB model", "first chunk is not JSON")
            try:
                json_text = chunk.decode("utf-8").rstrip(" \x00")
            except UnicodeDecodeError as e:
                raise LoadError("Failed to load GLB model", f"invalid JSON chunk: {e}") from e
        elif chunk_type == CHUNK_TYPE_BIN and bin_chunk is None:
            bin_chunk = bytes(chunk)
        # Unknown chunk types are ignored

    if json_text is None:
        raise LoadError("Failed to load GLB model", "missing JSON chunk")

    return json_text, bin_chunk


def load_document(data: bytes) -> Document:
    """
    Parse GLB bytes into a Document

    Args:
        data: Raw GLB container bytes

    Returns:
        Document with meshes, materials, textures and images

    Raises:
        LoadError: the buffer is not a well-formed, readable GLB container
    """
    json_text, bin_chunk = split_glb(bytes(data))

    try:
        gltf = GLTF2.from_json(json_text, infer_missing=True)
    except Exception as e:
        raise LoadError("Failed to parse GLB document", str(e)) from e

    used = set(_field(gltf, "extensionsUsed") or [])
    unsupported = used - SUPPORTED_EXTENSIONS
    if unsupported:
        logger.info(f"Ignoring unsupported extensions: {', '.join(sorted(unsupported))}")
    if DRACO_EXTENSION in used and not draco_available():
        logger.warning("Asset uses Draco mesh compression but DracoPy is not installed")

    reader = _GlbReader(gltf, bin_chunk)
    try:
        document = reader.read()
    except LoadError:
        raise
    except (ValueError, IndexError, KeyError, TypeError) as e:
        raise LoadError("Failed to parse GLB document", str(e)) from e

    logger.info(
        f"Loaded GLB: {len(document.meshes)} meshes, {len(document.materials)} materials, "
        f"{len(document.textures)} textures, {document.vertex_count} vertices"
    )
    return document


class _GlbReader:
    """Builds Document records from a parsed glTF JSON model and its buffers"""

    def __init__(self, gltf: GLTF2, bin_chunk: Optional[bytes]):
        self.gltf = gltf
        self.buffers = self._resolve_buffers(bin_chunk)

    def read(self) -> Document:
        images = [self._read_image(i, img) for i, img in enumerate(self.gltf.images or [])]
        textures = [self._read_texture(tex, images) for tex in self.gltf.textures or []]
        materials = [self._read_material(i, mat, len(textures))
                     for i, mat in enumerate(self.gltf.materials or [])]
        meshes = [self._read_mesh(i, mesh, len(materials))
                  for i, mesh in enumerate(self.gltf.meshes or [])]
        return Document(meshes=meshes, materials=materials, textures=textures, images=images)

    # ------------------------------------------------------------------
    # Buffers and accessors
    # ------------------------------------------------------------------

    def _resolve_buffers(self, bin_chunk: Optional[bytes]) -> List[Optional[bytes]]:
        buffers = []
        for i, buffer in enumerate(self.gltf.buffers or []):
            uri = _field(buffer, "uri")
            if uri is None:
                buffers.append(bin_chunk if i == 0 else None)
            elif uri.startswith("data:"):
                buffers.append(_decode_data_uri(uri))
            else:
                # External files cannot be resolved from a single buffer
                buffers.append(None)
        return buffers

    def _view_bytes(self, view_index: int) -> bytes:
        view = self.gltf.bufferViews[view_index]
        buffer = self._buffer(_field(view, "buffer"))
        start = _field(view, "byteOffset") or 0
        end = start + _field(view, "byteLength")
        if end > len(buffer):
            raise LoadError("Failed to parse GLB document", f"bufferView {view_index} exceeds its buffer")
        return buffer[start:end]

    def _buffer(self, index: int) -> bytes:
        if index is None or index >= len(self.buffers) or self.buffers[index] is None:
            raise LoadError("Failed to parse GLB document", f"buffer {index} is not embedded in the container")
        return self.buffers[index]

    def read_accessor(self, index: int) -> np.ndarray:
        """Decode an accessor into a (count, components) array"""
        accessor = self.gltf.accessors[index]
        dtype = COMPONENT_DTYPES[_field(accessor, "componentType")]
        width = TYPE_COMPONENT_COUNT[_field(accessor, "type")]
        count = _field(accessor, "count") or 0

        view_index = _field(accessor, "bufferView")
        if view_index is None:
            values = np.zeros((count, width), dtype=dtype)
        else:
            view = self.gltf.bufferViews[view_index]
            values = _strided(
                self._view_bytes(view_index),
                dtype,
                width,
                count,
                _field(accessor, "byteOffset") or 0,
                _field(view, "byteStride"),
            )

        sparse = _field(accessor, "sparse")
        if sparse is not None:
            values = self._apply_sparse(values, sparse, dtype, width)

        if _field(accessor, "normalized") and dtype.kind in "iu":
            values = _normalize(values, dtype)
        return values

    def _apply_sparse(self, values, sparse, dtype, width) -> np.ndarray:
        count = _field(sparse, "count")
        sparse_indices = _field(sparse, "indices")
        sparse_values = _field(sparse, "values")

        index_dtype = COMPONENT_DTYPES[_field(sparse_indices, "componentType")]
        targets = _strided(
            self._view_bytes(_field(sparse_indices, "bufferView")),
            index_dtype, 1, count, _field(sparse_indices, "byteOffset") or 0, None,
        ).reshape(-1)
        replacements = _strided(
            self._view_bytes(_field(sparse_values, "bufferView")),
            dtype, width, count, _field(sparse_values, "byteOffset") or 0, None,
        )

        values = values.copy()
        values[targets.astype(np.int64)] = replacements
        return values

    # ------------------------------------------------------------------
    # Images, textures, materials
    # ------------------------------------------------------------------

    def _read_image(self, index: int, image) -> Optional[Image]:
        view_index = _field(image, "bufferView")
        uri = _field(image, "uri")

        if view_index is not None:
            data = self._view_bytes(view_index)
        elif uri and uri.startswith("data:"):
            data = _decode_data_uri(uri)
        else:
            logger.warning(f"Image {index} is not embedded, skipping")
            return None

        mime_type = _field(image, "mimeType") or sniff_mime_type(data)
        return Image(data=bytes(data), mime_type=mime_type, name=_field(image, "name") or "")

    def _read_texture(self, texture, images: List[Optional[Image]]) -> Texture:
        source = _field(texture, "source")
        for name in TEXTURE_SOURCE_EXTENSIONS:
            ext = (_field(texture, "extensions") or {}).get(name)
            if ext and _field(ext, "source") is not None:
                source = _field(ext, "source")
                break

        if source is None or source >= len(images) or images[source] is None:
            return Texture(image=None)
        return Texture(image=source, mime_type=images[source].mime_type)

    def _read_material(self, index: int, material, texture_count: int) -> Material:
        def texture_index(info) -> Optional[int]:
            if info is None:
                return None
            tex = _field(info, "index")
            if tex is None or not 0 <= tex < texture_count:
                logger.warning(f"Material {index} references missing texture {tex}")
                return None
            return tex

        pbr = _field(material, "pbrMetallicRoughness")
        result = Material(name=_field(material, "name") or "")

        if pbr is not None:
            if _field(pbr, "baseColorFactor") is not None:
                result.base_color_factor = [float(c) for c in _field(pbr, "baseColorFactor")]
            if _field(pbr, "metallicFactor") is not None:
                result.metallic_factor = float(_field(pbr, "metallicFactor"))
            if _field(pbr, "roughnessFactor") is not None:
                result.roughness_factor = float(_field(pbr, "roughnessFactor"))
            result.base_color_texture = texture_index(_field(pbr, "baseColorTexture"))
            result.metallic_roughness_texture = texture_index(_field(pbr, "metallicRoughnessTexture"))

        if _field(material, "emissiveFactor") is not None:
            result.emissive_factor = [float(c) for c in _field(material, "emissiveFactor")]
        result.normal_texture = texture_index(_field(material, "normalTexture"))
        result.occlusion_texture = texture_index(_field(material, "occlusionTexture"))
        result.emissive_texture = texture_index(_field(material, "emissiveTexture"))
        return result

    # ------------------------------------------------------------------
    # Meshes
    # ------------------------------------------------------------------

    def _read_mesh(self, index: int, mesh, material_count: int) -> Mesh:
        name = _field(mesh, "name") or f"mesh_{index}"
        primitives = []
        for prim_index, primitive in enumerate(_field(mesh, "primitives") or []):
            mode = _field(primitive, "mode")
            if mode is not None and mode != MODE_TRIANGLES:
                logger.warning(f"Skipping {name} primitive {prim_index}: mode {mode} is not a triangle list")
                continue

            result = self._read_primitive(name, prim_index, primitive)
            if result is None:
                continue

            material = _field(primitive, "material")
            if material is not None and 0 <= material < material_count:
                result.material = material
            primitives.append(result)
        return Mesh(name=name, primitives=primitives)

    def _read_primitive(self, mesh_name: str, prim_index: int, primitive) -> Optional[Primitive]:
        draco = (_field(primitive, "extensions") or {}).get(DRACO_EXTENSION)
        if draco is not None:
            if draco_available():
                return self._read_draco_primitive(draco)
            if not self._has_plain_geometry(primitive):
                logger.warning(
                    f"Skipping {mesh_name} primitive {prim_index}: Draco compressed and DracoPy is not installed"
                )
                return None

        attributes = _field(primitive, "attributes")
        position = _field(attributes, "POSITION")
        if position is None:
            return Primitive()

        positions = self.read_accessor(position)
        texcoords = self._optional_attribute(attributes, "TEXCOORD_0")
        normals = self._optional_attribute(attributes, "NORMAL")

        indices = None
        if _field(primitive, "indices") is not None:
            indices = self.read_accessor(_field(primitive, "indices")).reshape(-1)
            if len(indices) and int(indices.max()) >= len(positions):
                raise LoadError(
                    "Failed to parse GLB document",
                    f"{mesh_name} primitive {prim_index} index {int(indices.max())} "
                    f"out of range for {len(positions)} vertices",
                )

        return Primitive(positions=positions, texcoords=texcoords, normals=normals, indices=indices)

    def _optional_attribute(self, attributes, name: str) -> Optional[np.ndarray]:
        index = _field(attributes, name)
        if index is None:
            return None
        return self.read_accessor(index)

    def _has_plain_geometry(self, primitive) -> bool:
        position = _field(_field(primitive, "attributes"), "POSITION")
        if position is None:
            return False
        return _field(self.gltf.accessors[position], "bufferView") is not None

    def _read_draco_primitive(self, extension) -> Primitive:
        payload = self._view_bytes(_field(extension, "bufferView"))
        try:
            decoded = DracoPy.decode(payload)
        except Exception as e:
            raise LoadError("Failed to decode Draco primitive", str(e)) from e

        attributes = _field(extension, "attributes") or {}
        positions = np.asarray(decoded.points, dtype=np.float32).reshape(-1, 3)

        texcoords = None
        tex_coord = getattr(decoded, "tex_coord", None)
        if "TEXCOORD_0" in attributes and tex_coord is not None and np.size(tex_coord):
            texcoords = np.asarray(tex_coord, dtype=np.float32).reshape(-1, 2)

        normals = None
        decoded_normals = getattr(decoded, "normals", None)
        if "NORMAL" in attributes and decoded_normals is not None and np.size(decoded_normals):
            normals = np.asarray(decoded_normals, dtype=np.float32).reshape(-1, 3)

        indices = np.asarray(decoded.faces, dtype=np.uint32).reshape(-1)
        return Primitive(positions=positions, texcoords=texcoords, normals=normals, indices=indices)


def sniff_mime_type(data: bytes) -> Optional[str]:
    """Guess an image MIME type from its magic bytes"""
    if data[:8] == b"\x89PNG\r\n\x1a\n":
        return "image/png"
    if data[:3] == b"\xff\xd8\xff":
        return "image/jpeg"
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    return None


def _field(obj, name: str):
    """Read a glTF property from a pygltflib object or a raw extension dict"""
    if obj is None:
        return None
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


def _decode_data_uri(uri: str) -> bytes:
    header, _, payload = uri.partition(",")
    if not header.endswith(";base64"):
        raise LoadError("Failed to parse GLB document", "only base64 data URIs are supported")
    try:
        return base64.b64decode(payload)
    except ValueError as e:
        raise LoadError("Failed to parse GLB document", f"invalid data URI: {e}") from e


def _strided(data: bytes, dtype: np.dtype, width: int, count: int,
             offset: int, stride: Optional[int]) -> np.ndarray:
    item_size = dtype.itemsize * width
    stride = stride or item_size
    needed = stride * (count - 1) + item_size if count else 0
    if offset + needed > len(data):
        raise LoadError("Failed to parse GLB document", "accessor exceeds its bufferView")
    if count == 0:
        return np.zeros((0, width), dtype=dtype)

    values = np.ndarray(
        shape=(count, width),
        dtype=dtype,
        buffer=data,
        offset=offset,
        strides=(stride, dtype.itemsize),
    )
    return values.copy()


def _normalize(values: np.ndarray, dtype: np.dtype) -> np.ndarray:
    limit = float(np.iinfo(dtype).max)
    result = values.astype(np.float32) / limit
    if dtype.kind == "i":
        result = np.maximum(result, -1.0)
    return result
