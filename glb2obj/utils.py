"""
Small helpers shared by the exporters and the API
"""
import math
import re

import numpy as np

_GLB_SUFFIX = re.compile(r"\.glb$", re.IGNORECASE)


def format_float(value) -> str:
    """
    Shortest decimal that round-trips at the value's own precision.

    float32 attribute data keeps float32 precision, so ``1 - 0.2`` computed
    in float32 prints as ``0.8``. Integral values print without a fraction.
    """
    if value == 0:
        return "0"  # also folds -0.0
    if not isinstance(value, np.floating):
        value = np.float64(value)
    return np.format_float_positional(value, trim="-")


def format_bytes(num_bytes: float, decimals: int = 1) -> str:
    """Format a byte count as a human readable string, e.g. "42.5 MB" """
    if num_bytes == 0:
        return "0 Bytes"

    k = 1024
    dm = max(decimals, 0)
    sizes = ["Bytes", "KB", "MB", "GB"]

    i = min(int(math.floor(math.log(num_bytes) / math.log(k))), len(sizes) - 1)
    value = round(num_bytes / math.pow(k, i), dm)
    return f"{value:g} {sizes[i]}"


def is_safe_asset_id(asset_id: str) -> bool:
    """Reject ids that could escape the models directory"""
    if not asset_id:
        return False
    return not any(token in asset_id for token in ("..", "/", "\\"))


def base_name(asset_id: str) -> str:
    """Strip a trailing .glb extension from an asset id"""
    return _GLB_SUFFIX.sub("", asset_id) or "model"
