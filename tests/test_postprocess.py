import unittest

import numpy as np
from PIL import Image

from qrcraft.generator import render
from qrcraft.options import RenderOptions
from qrcraft.postprocess import (
    Rect,
    apply_gradient,
    dark_mask,
    finder_regions_for,
    locate_finder_regions,
    logo_slot,
    overlay_logo,
    process,
    reshape_eyes,
)


def _crop(arr: np.ndarray, rect: Rect) -> np.ndarray:
    return arr[rect.y : rect.y + rect.size, rect.x : rect.x + rect.size]


class GradientTest(unittest.TestCase):
    def test_opposite_corners_take_gradient_endpoints(self) -> None:
        img = Image.new("RGB", (50, 50), (255, 255, 255))
        img.putpixel((0, 0), (0, 0, 0))
        img.putpixel((49, 49), (0, 0, 0))
        options = RenderOptions(use_gradient=True, foreground_color="#000000", gradient_color="#4338ca")

        out = apply_gradient(img, options)

        self.assertEqual(out.getpixel((0, 0)), (0, 0, 0))
        self.assertEqual(out.getpixel((49, 49)), (67, 56, 202))
        self.assertEqual(out.getpixel((25, 10)), (255, 255, 255))
        # input untouched
        self.assertEqual(img.getpixel((49, 49)), (0, 0, 0))

    def test_light_pixels_become_background(self) -> None:
        img = Image.new("RGB", (4, 4), (200, 200, 200))
        options = RenderOptions(use_gradient=True, background_color="#fefefe")
        self.assertEqual(set(apply_gradient(img, options).getdata()), {(254, 254, 254)})

    def test_threshold_is_tunable(self) -> None:
        img = Image.new("RGB", (2, 2), (120, 120, 120))
        options = RenderOptions(use_gradient=True, gradient_color="#000000")
        self.assertEqual(apply_gradient(img, options).getpixel((0, 0)), (255, 255, 255))
        self.assertEqual(apply_gradient(img, options, threshold=130).getpixel((0, 0)), (0, 0, 0))


class DarkMaskTest(unittest.TestCase):
    def test_light_foreground_uses_nearest_colour(self) -> None:
        options = RenderOptions(foreground_color="#c0c0c0", background_color="#000000")
        pixels = np.array([[[192, 192, 192], [0, 0, 0]]], dtype=np.uint8)
        self.assertEqual(dark_mask(pixels, options).tolist(), [[True, False]])


class FinderRegionTest(unittest.TestCase):
    def test_heuristic_geometry(self) -> None:
        self.assertEqual(
            locate_finder_regions(250),
            [Rect(0, 0, 70), Rect(180, 0, 70), Rect(0, 180, 70)],
        )

    def test_quiet_zone_offsets(self) -> None:
        self.assertEqual(
            locate_finder_regions(290, 29, quiet_zone=4),
            [Rect(40, 40, 70), Rect(180, 40, 70), Rect(40, 180, 70)],
        )

    def test_regions_from_encoder_geometry(self) -> None:
        regions = finder_regions_for("hello", RenderOptions(size=290, margin=4))
        self.assertEqual(regions[0], Rect(40, 40, 70))

    def test_rejects_empty_bitmap(self) -> None:
        with self.assertRaises(ValueError):
            locate_finder_regions(0)


class EyeReshapeTest(unittest.TestCase):
    def setUp(self) -> None:
        self.payload = "https://example.com"
        self.base_options = RenderOptions(size=290, margin=4)

    def test_three_eyes_identical(self) -> None:
        for shape in ("circle", "rounded"):
            with self.subTest(shape=shape):
                options = self.base_options.replace(eye_shape=shape)
                base = render(self.payload, options)
                regions = finder_regions_for(self.payload, options)
                out = np.array(reshape_eyes(base, options, regions))
                tiles = [_crop(out, r) for r in regions]
                np.testing.assert_array_equal(tiles[0], tiles[1])
                np.testing.assert_array_equal(tiles[0], tiles[2])
                # the reshaped eye no longer matches the square pattern
                self.assertFalse(np.array_equal(tiles[0], _crop(np.array(base), regions[0])))

    def test_pixels_outside_regions_copied_through(self) -> None:
        options = self.base_options.replace(eye_shape="circle")
        base = render(self.payload, options)
        regions = finder_regions_for(self.payload, options)
        before = np.array(base)
        after = np.array(reshape_eyes(base, options, regions))
        outside = np.ones(before.shape[:2], dtype=bool)
        for r in regions:
            outside[r.y : r.y + r.size, r.x : r.x + r.size] = False
        np.testing.assert_array_equal(before[outside], after[outside])

    def test_no_square_ring_left_around_eyes(self) -> None:
        # sizes where the grid does not divide the bitmap evenly
        for size in (200, 242, 284):
            options = self.base_options.replace(size=size, eye_shape="rounded")
            regions = finder_regions_for(self.payload, options)
            out = np.array(reshape_eyes(render(self.payload, options), options, regions))
            dark = dark_mask(out, options)
            for r in regions:
                with self.subTest(size=size, region=r):
                    top, left = r.y - 1, r.x - 1
                    bottom, right = r.y + r.size, r.x + r.size
                    frame = np.concatenate([
                        dark[top, left : right + 1],
                        dark[bottom, left : right + 1],
                        dark[top : bottom + 1, left],
                        dark[top : bottom + 1, right],
                    ])
                    self.assertEqual(int(frame.sum()), 0)

    def test_regions_follow_centred_grid(self) -> None:
        # 33 cells at 200px: 6px modules, grid inset by 1px
        options = self.base_options.replace(size=200)
        self.assertEqual(
            finder_regions_for(self.payload, options),
            [Rect(25, 25, 42), Rect(133, 25, 42), Rect(25, 133, 42)],
        )

    def test_eye_centre_is_foreground(self) -> None:
        options = self.base_options.replace(eye_shape="circle")
        regions = finder_regions_for(self.payload, options)
        out = reshape_eyes(render(self.payload, options), options, regions)
        for r in regions:
            self.assertEqual(out.getpixel((r.x + r.size // 2, r.y + r.size // 2)), (0, 0, 0))

    def test_square_is_identity(self) -> None:
        base = render(self.payload, self.base_options)
        self.assertEqual(reshape_eyes(base, self.base_options).tobytes(), base.tobytes())


class LogoOverlayTest(unittest.TestCase):
    def test_logo_on_white_plate(self) -> None:
        base = Image.new("RGB", (300, 300), (0, 0, 0))
        logo = Image.new("RGBA", (40, 40), (255, 0, 0, 255))

        out = overlay_logo(base, logo)

        slot = logo_slot(300)
        self.assertEqual(slot, Rect(120, 120, 60))
        self.assertEqual(out.getpixel((150, 150)), (255, 0, 0))
        self.assertEqual(out.getpixel((123, 150)), (255, 255, 255))
        self.assertEqual(out.getpixel((100, 100)), (0, 0, 0))
        self.assertEqual(base.getpixel((150, 150)), (0, 0, 0))

    def test_without_logo_returns_copy(self) -> None:
        base = Image.new("RGB", (10, 10), (1, 2, 3))
        out = overlay_logo(base, None)
        self.assertIsNot(out, base)
        self.assertEqual(out.tobytes(), base.tobytes())


class ProcessTest(unittest.TestCase):
    def test_all_stages(self) -> None:
        options = RenderOptions(
            size=290, margin=4, use_gradient=True, gradient_color="#4338ca",
            eye_shape="rounded", error_correction="H",
        )
        payload = "https://example.com"
        base = render(payload, options)
        logo = Image.new("RGBA", (20, 20), (0, 200, 0, 255))
        out = process(base, options, logo=logo, regions=finder_regions_for(payload, options))
        self.assertEqual(out.size, (290, 290))
        self.assertEqual(out.getpixel((145, 145)), (0, 200, 0))
        self.assertNotEqual(out.tobytes(), base.tobytes())


if __name__ == "__main__":
    unittest.main()
