import unittest

from qrcraft.generator import render
from qrcraft.options import RenderOptions

try:
    from qrcraft.verify import verify
except ImportError:  # libzbar missing on the host
    verify = None


@unittest.skipIf(verify is None, "zbar/opencv not available")
class VerifyTest(unittest.TestCase):
    def test_plain_render_decodes(self) -> None:
        image = render("https://example.com", RenderOptions(size=300))
        results = verify(image, expected_data="https://example.com")
        self.assertTrue(any(r.success for r in results))

    def test_mismatch_is_failure(self) -> None:
        image = render("https://example.com", RenderOptions(size=300))
        results = verify(image, expected_data="something else")
        self.assertFalse(any(r.success for r in results))

    def test_blank_image_fails(self) -> None:
        from PIL import Image

        results = verify(Image.new("RGB", (100, 100), (255, 255, 255)))
        self.assertFalse(any(r.success for r in results))


if __name__ == "__main__":
    unittest.main()
