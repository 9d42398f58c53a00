"""
GLB to OBJ/MTL conversion engine and API
"""
from .converter import GlbConverter, convert, convert_glb_file
from .document import ConvertedModel, Document, Image, Material, Mesh, Primitive, Texture
from .errors import ConversionError, ExportError, LoadError, ZipError

__version__ = "1.0.0"

__all__ = [
    "GlbConverter",
    "convert",
    "convert_glb_file",
    "ConvertedModel",
    "Document",
    "Image",
    "Material",
    "Mesh",
    "Primitive",
    "Texture",
    "ConversionError",
    "ExportError",
    "LoadError",
    "ZipError",
]
