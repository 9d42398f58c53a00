"""
Archive Packager
Bundles OBJ, MTL and texture files into a single zip archive
"""
import io
import logging
import re
import unicodedata
import zipfile
from urllib.parse import quote

from .document import ConvertedModel
from .errors import ZipError
from .utils import base_name

logger = logging.getLogger(__name__)

_UNSAFE_FILENAME_CHARS = re.compile(r'["\\\x00-\x1f\x7f;]')


def archive_filename(model_id: str) -> str:
    """Download name for a model id, e.g. ``chair.glb`` -> ``chair.obj.zip``"""
    return f"{base_name(model_id)}.obj.zip"


def content_disposition(filename: str) -> str:
    """
    Attachment header value safe for latin-1 header encoding.

    The plain ``filename`` is an ASCII fallback; ``filename*`` (RFC 5987)
    carries the exact UTF-8 name.
    """
    fallback = unicodedata.normalize("NFKD", filename).encode("ascii", "ignore").decode("ascii")
    fallback = _UNSAFE_FILENAME_CHARS.sub("_", fallback)
    if not fallback or fallback.startswith("."):
        fallback = "model" + fallback
    encoded = quote(filename, safe="")
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{encoded}"


def package_obj_zip(model: ConvertedModel, name: str) -> bytes:
    """
    Create the zip archive for a converted model

    Args:
        model: OBJ text, MTL text and textures
        name: Asset base name; entries are ``<name>.obj`` and ``<name>.mtl``

    Returns:
        Zip archive bytes

    Raises:
        ZipError: the archive could not be written
    """
    stem = base_name(name)
    buffer = io.BytesIO()

    try:
        with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
            archive.writestr(f"{stem}.obj", model.obj)
            archive.writestr(f"{stem}.mtl", model.mtl)
            for filename, data in model.textures.items():
                archive.writestr(filename, data)
    except (OSError, ValueError, zipfile.BadZipFile) as e:
        raise ZipError("Failed to create ZIP archive", str(e)) from e

    data = buffer.getvalue()
    logger.info(f"Packaged {stem}: {len(model.textures)} textures, {len(data)} bytes")
    return data
