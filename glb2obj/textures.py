"""
Texture Extractor
Names the embedded images referenced by materials and returns their raw bytes
"""
import logging
from typing import Dict, Optional

from .document import Document

logger = logging.getLogger(__name__)

MIME_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/webp": "webp",
}
DEFAULT_EXTENSION = "png"


def extension_for(mime_type: Optional[str]) -> str:
    return MIME_EXTENSIONS.get(mime_type, DEFAULT_EXTENSION)


def texture_filenames(document: Document) -> Dict[int, str]:
    """
    Map each texture index referenced by a material to its output filename.

    Textures without an embedded image get no name, so no map line points
    at a file missing from the archive.
    """
    referenced = set()
    for material in document.materials:
        referenced.update(i for i in material.texture_slots().values() if i is not None)

    names = {}
    for index in sorted(referenced):
        texture = document.textures[index]
        if texture.image is None or document.images[texture.image] is None:
            logger.warning(f"Texture {index} has no embedded image, skipping")
            continue
        names[index] = f"texture_{index}.{extension_for(texture.mime_type)}"
    return names


def extract_textures(document: Document, names: Optional[Dict[int, str]] = None) -> Dict[str, bytes]:
    """Return generated filename -> raw encoded image bytes, unchanged"""
    if names is None:
        names = texture_filenames(document)

    files = {}
    for index, filename in names.items():
        image = document.images[document.textures[index].image]
        files[filename] = bytes(image.data)
    return files
