"""
GLB Converter
Converts GLB containers to OBJ/MTL text plus loose texture images
"""
import logging
import os
from typing import Callable, Optional

from .document import ConvertedModel, Document
from .errors import ConversionError, ExportError, LoadError
from .geometry import emit_obj
from .loader import load_document
from .materials import build_mtl
from .simplifier import simplify_document
from .textures import extract_textures, texture_filenames
from .tiers import CompressionTier, get_tier
from .utils import base_name

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, int], None]


class GlbConverter:
    """
    Converts GLB bytes to OBJ/MTL with PBR-derived materials
    """

    def __init__(self, compression_level: str = "full",
                 on_progress: Optional[ProgressCallback] = None):
        """
        Initialize converter with a compression preset

        Args:
            compression_level: One of ``full``, ``compressed``, ``ultra``
            on_progress: Optional callback receiving (stage, percent)

        Raises:
            ValueError: unknown compression level
        """
        self.tier: CompressionTier = get_tier(compression_level)
        self.on_progress = on_progress

    def convert(self, data: bytes, name: str = "model") -> ConvertedModel:
        """
        Convert a GLB buffer

        Args:
            data: GLB container bytes
            name: Asset name; the OBJ references ``<name>.mtl``

        Returns:
            ConvertedModel with OBJ text, MTL text and texture files

        Raises:
            LoadError: the container could not be read
            ExportError: material mapping or geometry emission failed
        """
        self._progress("Loading GLB model", 0)
        document = load_document(data)

        if self.tier.keep_ratio < 1.0:
            self._progress("Simplifying mesh", 40)
            document = simplify_document(document, self.tier.keep_ratio, self.tier.max_error)

        try:
            model = self._export(document, base_name(name))
        except ConversionError:
            raise
        except Exception as e:
            logger.exception("OBJ export failed")
            raise ExportError("Failed to convert GLB to OBJ", str(e)) from e

        self._progress("Conversion complete", 100)
        logger.info(
            f"Converted {name} ({self.tier.level}): {model.vertex_count} vertices, "
            f"{model.face_count} faces, {len(model.textures)} textures"
        )
        return model

    def _export(self, document: Document, stem: str) -> ConvertedModel:
        self._progress("Extracting textures", 60)
        names = texture_filenames(document)
        textures = extract_textures(document, names)

        self._progress("Writing OBJ geometry", 70)
        obj, used_materials = emit_obj(document, mtl_name=f"{stem}.mtl")

        self._progress("Writing materials", 85)
        mtl = build_mtl(document, used_materials, names)

        return ConvertedModel(
            obj=obj,
            mtl=mtl,
            textures=textures,
            vertex_count=document.vertex_count,
            face_count=document.triangle_count,
        )

    def _progress(self, stage: str, percent: int) -> None:
        if self.on_progress is not None:
            self.on_progress(stage, percent)


def convert(source: bytes, compression_level: str = "full", name: str = "model",
            on_progress: Optional[ProgressCallback] = None) -> ConvertedModel:
    """
    Convenience function to convert GLB bytes

    Args:
        source: GLB container bytes
        compression_level: ``full``, ``compressed`` or ``ultra``
        name: Asset name used for the material library reference
        on_progress: Optional callback receiving (stage, percent)

    Returns:
        ConvertedModel
    """
    return GlbConverter(compression_level, on_progress).convert(source, name)


def convert_glb_file(path: str, compression_level: str = "full") -> ConvertedModel:
    """Read a GLB file from disk and convert it"""
    try:
        with open(path, "rb") as f:
            content = f.read()
    except OSError as e:
        raise LoadError("Failed to read GLB file", str(e)) from e

    return convert(content, compression_level, name=os.path.basename(path))
