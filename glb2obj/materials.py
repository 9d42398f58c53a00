"""
Material Mapper
Translates PBR metallic-roughness materials into MTL blocks
"""
from typing import Dict, Iterable, List

from .document import Document, Material
from .utils import format_float

# Illumination model 2: color on, ambient on, highlight on
ILLUMINATION_MODEL = 2

SHININESS_SCALE = 128


def material_name(index: int) -> str:
    """Materials are named by document index, never by value"""
    return f"material_{index}"


def material_block(name: str, material: Material, texture_names: Dict[int, str]) -> str:
    """
    Generate one MTL material definition

    Args:
        name: Generated material name
        material: PBR material record
        texture_names: Texture index -> generated texture filename

    Returns:
        The ``newmtl`` block, terminated by a blank line
    """
    r, g, b, alpha = material.base_color_factor
    metallic = material.metallic_factor
    lines = [f"newmtl {name}"]

    # MTL has no separate ambient term, reuse diffuse
    lines.append(f"Ka {_triple(r, g, b)}")
    lines.append(f"Kd {_triple(r, g, b)}")

    # Metals are fully specular, dielectrics not at all
    lines.append(f"Ks {_triple(metallic, metallic, metallic)}")
    lines.append(f"Ns {format_float((1 - material.roughness_factor) * SHININESS_SCALE)}")

    if alpha < 1:
        lines.append(f"d {format_float(alpha)}")

    if any(c > 0 for c in material.emissive_factor):
        lines.append(f"Ke {_triple(*material.emissive_factor)}")

    lines.append(f"illum {ILLUMINATION_MODEL}")

    def texture_line(keyword: str, index) -> None:
        if index is not None and index in texture_names:
            lines.append(f"{keyword} {texture_names[index]}")

    texture_line("map_Kd", material.base_color_texture)
    texture_line("map_Bump", material.normal_texture)

    # Packed metallic (B) / roughness (G) image, referenced once per channel
    texture_line("map_Pm", material.metallic_roughness_texture)
    texture_line("map_Pr", material.metallic_roughness_texture)

    texture_line("map_Ke", material.emissive_texture)
    texture_line("map_Ka", material.occlusion_texture)

    return "\n".join(lines) + "\n\n"


def build_mtl(document: Document, material_indices: Iterable[int],
              texture_names: Dict[int, str]) -> str:
    """Concatenate the blocks of the given materials, in the order given"""
    blocks: List[str] = []
    for index in material_indices:
        blocks.append(material_block(material_name(index), document.materials[index], texture_names))
    return "".join(blocks)


def _triple(a, b, c) -> str:
    return f"{format_float(a)} {format_float(b)} {format_float(c)}"
