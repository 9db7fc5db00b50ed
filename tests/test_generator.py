import base64
import io
import unittest

from PIL import Image

from qrcraft.errors import GenerationError
from qrcraft.generator import module_count, module_matrix, render, to_data_uri, to_vector_markup
from qrcraft.options import RenderOptions


class RenderTest(unittest.TestCase):
    def test_bitmap_has_requested_size_and_colours(self) -> None:
        options = RenderOptions(size=290, margin=4, foreground_color="#112233", background_color="#fafafa")
        img = render("hello", options)
        self.assertEqual(img.size, (290, 290))
        self.assertEqual(img.mode, "RGB")
        # 21 modules + 2*4 quiet zone = 29 cells of 10px
        self.assertEqual(img.getpixel((5, 5)), (250, 250, 250))
        self.assertEqual(img.getpixel((45, 45)), (17, 34, 51))
        self.assertEqual(set(img.getdata()), {(17, 34, 51), (250, 250, 250)})

    def test_uneven_size_centres_whole_pixel_modules(self) -> None:
        # 29 cells at 200px: 6px modules, 13px inset
        img = render("hello", RenderOptions(size=200, margin=4))
        self.assertEqual(img.size, (200, 200))
        self.assertEqual(img.getpixel((36, 36)), (255, 255, 255))
        self.assertEqual(img.getpixel((37, 37)), (0, 0, 0))
        self.assertEqual(img.getpixel((78, 37)), (0, 0, 0))
        self.assertEqual(img.getpixel((79, 37)), (255, 255, 255))

    def test_bitmap_smaller_than_grid(self) -> None:
        self.assertEqual(render("hello", RenderOptions(size=20)).size, (20, 20))

    def test_module_count_version_one(self) -> None:
        self.assertEqual(module_count("hello", "M"), 21)
        self.assertEqual(len(module_matrix("hello", "M", border=2)), 25)

    def test_overflow_raises_generation_error(self) -> None:
        with self.assertRaises(GenerationError):
            render("x" * 5000, RenderOptions(error_correction="H"))

    def test_deterministic(self) -> None:
        options = RenderOptions(size=100)
        self.assertEqual(render("abc", options).tobytes(), render("abc", options).tobytes())


class VectorAndDataUriTest(unittest.TestCase):
    def test_svg_markup(self) -> None:
        svg = to_vector_markup("hello", RenderOptions(size=200, foreground_color="#4338ca"))
        self.assertTrue(svg.startswith("<svg"))
        self.assertIn('fill="#4338ca"', svg)
        self.assertIn('width="200"', svg)
        self.assertTrue(svg.endswith("</svg>"))

    def test_data_uri_decodes_to_png(self) -> None:
        uri = to_data_uri("hello", RenderOptions(size=64))
        prefix = "data:image/png;base64,"
        self.assertTrue(uri.startswith(prefix))
        img = Image.open(io.BytesIO(base64.b64decode(uri[len(prefix):])))
        self.assertEqual(img.size, (64, 64))


if __name__ == "__main__":
    unittest.main()
