"""
Model sources: GLB files in the models directory or at a remote URL
"""
import ipaddress
import logging
import os
from urllib.parse import urlsplit

import requests

from . import config
from .errors import LoadError
from .utils import is_safe_asset_id

logger = logging.getLogger(__name__)

ALLOWED_URL_SCHEMES = {"http", "https"}
DOWNLOAD_CHUNK_SIZE = 64 * 1024


def resolve_model_path(model_id: str, models_dir: str = None) -> str:
    """
    Resolve a model id to a path inside the models directory

    Raises:
        ValueError: the id contains parent-directory or path-separator sequences
    """
    if not is_safe_asset_id(model_id):
        raise ValueError("Invalid modelId: path traversal not allowed")
    return os.path.join(models_dir or config.MODELS_DIR, model_id)


def read_model(model_id: str, models_dir: str = None) -> bytes:
    """
    Read a stored GLB model

    Raises:
        ValueError: unsafe model id (checked before touching the filesystem)
        FileNotFoundError: no such model
    """
    path = resolve_model_path(model_id, models_dir)
    if not os.path.isfile(path):
        raise FileNotFoundError(f"Model not found: {model_id}")

    with open(path, "rb") as f:
        return f.read()


def validate_model_url(url: str) -> None:
    """
    Check a model URL before anything is fetched.

    Only http(s) is accepted. IP literals in private, loopback, link-local
    or reserved ranges are refused, and when ``MODEL_URL_HOSTS`` is set the
    host must be one of them or a subdomain of one.

    Raises:
        ValueError: the URL may not be fetched
    """
    parts = urlsplit(url)
    if parts.scheme.lower() not in ALLOWED_URL_SCHEMES:
        raise ValueError(f"Invalid modelUrl: scheme {parts.scheme or '(none)'!r} not allowed")

    host = (parts.hostname or "").lower()
    if not host:
        raise ValueError("Invalid modelUrl: missing host")

    try:
        address = ipaddress.ip_address(host)
    except ValueError:
        address = None
    if address is not None and not address.is_global:
        raise ValueError(f"Invalid modelUrl: host {host} not allowed")

    allowed = config.MODEL_URL_HOSTS
    if allowed and not any(host == h or host.endswith("." + h) for h in allowed):
        raise ValueError(f"Invalid modelUrl: host {host} not allowed")


def download_model(url: str, timeout: float = None, max_size: int = None) -> bytes:
    """
    Download a GLB produced by an external 3D service

    The body is streamed and abandoned as soon as it exceeds ``max_size``.

    Raises:
        ValueError: the URL is not allowed (see ``validate_model_url``)
        LoadError: the download failed or exceeded the size limit
    """
    validate_model_url(url)
    timeout = timeout or config.DOWNLOAD_TIMEOUT
    max_size = max_size or config.MAX_FILE_SIZE
    too_large = f"model is larger than {max_size // (1024 * 1024)} MB"

    try:
        response = requests.get(url, timeout=timeout, stream=True)
    except requests.RequestException as e:
        raise LoadError("Failed to download GLB model", str(e)) from e

    try:
        if response.status_code != 200:
            raise LoadError(
                "Failed to download GLB model",
                f"{url} returned HTTP {response.status_code}",
            )

        declared = response.headers.get("Content-Length")
        if declared and declared.isdigit() and int(declared) > max_size:
            raise LoadError("Failed to download GLB model", too_large)

        chunks = []
        received = 0
        try:
            for chunk in response.iter_content(chunk_size=DOWNLOAD_CHUNK_SIZE):
                received += len(chunk)
                if received > max_size:
                    raise LoadError("Failed to download GLB model", too_large)
                chunks.append(chunk)
        except requests.RequestException as e:
            raise LoadError("Failed to download GLB model", str(e)) from e
    finally:
        response.close()

    content = b"".join(chunks)
    logger.info(f"Downloaded {url} ({len(content)} bytes)")
    return content
