import unittest

from glb2obj.document import Document, Material
from glb2obj.materials import build_mtl, material_block, material_name


def _lines(block: str, prefix: str):
    return [line for line in block.splitlines() if line.split(" ")[0] == prefix]


class FactorMappingTests(unittest.TestCase):
    def setUp(self):
        self.material = Material(
            base_color_factor=[0.8, 0.2, 0.1, 1.0],
            metallic_factor=0.5,
            roughness_factor=0.25,
        )

    def test_full_block(self):
        block = material_block("material_0", self.material, {})
        self.assertEqual(
            block,
            "newmtl material_0\n"
            "Ka 0.8 0.2 0.1\n"
            "Kd 0.8 0.2 0.1\n"
            "Ks 0.5 0.5 0.5\n"
            "Ns 96\n"
            "illum 2\n"
            "\n",
        )

    def test_opaque_material_has_no_dissolve_line(self):
        block = material_block("m", self.material, {})
        self.assertEqual(_lines(block, "d"), [])

    def test_translucent_material_writes_alpha(self):
        self.material.base_color_factor = [1, 1, 1, 0.5]
        block = material_block("m", self.material, {})
        self.assertEqual(_lines(block, "d"), ["d 0.5"])

    def test_emissive_line_only_when_lit(self):
        self.assertEqual(_lines(material_block("m", self.material, {}), "Ke"), [])

        self.material.emissive_factor = [0.0, 0.25, 0.0]
        self.assertEqual(_lines(material_block("m", self.material, {}), "Ke"), ["Ke 0 0.25 0"])

    def test_shininess_from_roughness(self):
        self.material.roughness_factor = 1.0
        self.assertEqual(_lines(material_block("m", self.material, {}), "Ns"), ["Ns 0"])

        self.material.roughness_factor = 0.0
        self.assertEqual(_lines(material_block("m", self.material, {}), "Ns"), ["Ns 128"])

    def test_defaults_are_white_fully_metallic_rough(self):
        block = material_block("m", Material(), {})
        self.assertIn("Kd 1 1 1", block)
        self.assertIn("Ks 1 1 1", block)
        self.assertIn("Ns 0", block)


class TextureMappingTests(unittest.TestCase):
    def setUp(self):
        self.names = {
            0: "texture_0.png",
            1: "texture_1.jpg",
            2: "texture_2.png",
            3: "texture_3.png",
            4: "texture_4.webp",
        }

    def test_each_slot_maps_to_its_keyword(self):
        material = Material(
            base_color_texture=0,
            metallic_roughness_texture=1,
            normal_texture=2,
            occlusion_texture=3,
            emissive_texture=4,
        )
        block = material_block("m", material, self.names)

        self.assertEqual(_lines(block, "map_Kd"), ["map_Kd texture_0.png"])
        self.assertEqual(_lines(block, "map_Bump"), ["map_Bump texture_2.png"])
        self.assertEqual(_lines(block, "map_Ka"), ["map_Ka texture_3.png"])
        self.assertEqual(_lines(block, "map_Ke"), ["map_Ke texture_4.webp"])

    def test_metallic_roughness_is_referenced_twice(self):
        block = material_block("m", Material(metallic_roughness_texture=1), self.names)

        maps = [line for line in block.splitlines() if line.startswith("map_")]
        self.assertEqual(maps, ["map_Pm texture_1.jpg", "map_Pr texture_1.jpg"])

    def test_unnamed_textures_are_not_referenced(self):
        block = material_block("m", Material(base_color_texture=7), self.names)
        self.assertNotIn("map_", block)


class BuildMtlTests(unittest.TestCase):
    def test_identical_materials_are_not_merged(self):
        document = Document(materials=[
            Material(base_color_factor=[0.5, 0.5, 0.5, 1.0]),
            Material(base_color_factor=[0.5, 0.5, 0.5, 1.0]),
        ])
        mtl = build_mtl(document, [0, 1], {})

        self.assertEqual(_lines(mtl, "newmtl"), ["newmtl material_0", "newmtl material_1"])

    def test_blocks_follow_given_order(self):
        document = Document(materials=[Material(), Material(), Material()])
        mtl = build_mtl(document, [2, 0], {})
        self.assertEqual(_lines(mtl, "newmtl"), ["newmtl material_2", "newmtl material_0"])

    def test_material_name(self):
        self.assertEqual(material_name(3), "material_3")

    def test_empty_document_gives_empty_library(self):
        self.assertEqual(build_mtl(Document(), [], {}), "")


if __name__ == "__main__":
    unittest.main()
