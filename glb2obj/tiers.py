"""
Compression presets and output size estimation
"""
import math
from dataclasses import dataclass
from typing import Dict, Optional

# Maximum simplification error, relative to each primitive's bounding-box diagonal
DEFAULT_MAX_ERROR = 0.001


@dataclass(frozen=True)
class CompressionTier:
    level: str
    label: str
    keep_ratio: float       # fraction of vertices retained by the simplifier
    estimated_ratio: float  # output archive size / source GLB size
    max_error: float = DEFAULT_MAX_ERROR
    badge: Optional[str] = None
    premium_required: bool = False


COMPRESSION_TIERS: Dict[str, CompressionTier] = {
    "full": CompressionTier(
        level="full",
        label="Full Quality",
        keep_ratio=1.0,
        estimated_ratio=5.0,  # OBJ text is ~5x the GLB
    ),
    "compressed": CompressionTier(
        level="compressed",
        label="Compressed",
        keep_ratio=0.4,
        estimated_ratio=2.0,
    ),
    "ultra": CompressionTier(
        level="ultra",
        label="Ultra Compressed",
        keep_ratio=0.15,
        estimated_ratio=0.75,
        badge="Premium",
        premium_required=True,
    ),
}

COMPRESSION_LEVELS = tuple(COMPRESSION_TIERS)


def get_tier(level: str) -> CompressionTier:
    """Resolve a compression level name, raising ValueError for unknown names"""
    try:
        return COMPRESSION_TIERS[level]
    except (KeyError, TypeError):
        raise ValueError(
            f"Invalid compression level: {level!r}. Must be one of: {', '.join(COMPRESSION_LEVELS)}"
        ) from None


def estimate_obj_size(glb_size_bytes: int, level: str) -> int:
    """
    Estimate the final OBJ zip size for a GLB of the given size.

    The ratios are fixed heuristics, not measurements.
    """
    tier = get_tier(level)
    return int(math.floor(glb_size_bytes * tier.estimated_ratio + 0.5))
