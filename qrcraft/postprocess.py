"""Visual Post-Processor: gradient fill, finder-pattern ("eye") reshaping, logo overlay.

Every stage takes an image and returns a new one; inputs are never modified.
Stages run in a fixed order (gradient -> eyes -> logo) via process().
"""

from dataclasses import dataclass

import numpy as np
from PIL import Image, ImageDraw

from qrcraft.config import DEFAULT_DARK_THRESHOLD
from qrcraft.generator import grid_geometry, module_count
from qrcraft.logging import audit, get_logger, trace
from qrcraft.options import RenderOptions

log = get_logger("postprocess")

FINDER_MODULES = 7
# Geometry the heuristic assumes when the real module count is unknown
HEURISTIC_MODULE_COUNT = 25

LOGO_SLOT_FRACTION = 0.20
LOGO_INSET_FRACTION = 0.10
LOGO_PLATE_RADIUS_FRACTION = 0.15

_SUPERSAMPLE = 4


@dataclass(frozen=True)
class Rect:
    x: int
    y: int
    size: int

    def contains(self, px: int, py: int) -> bool:
        return self.x <= px < self.x + self.size and self.y <= py < self.y + self.size

    @property
    def box(self) -> tuple[int, int, int, int]:
        return self.x, self.y, self.x + self.size, self.y + self.size


# ---------------------------------------------------------------------------
# Pixel classification
# ---------------------------------------------------------------------------

def dark_mask(pixels: np.ndarray, options: RenderOptions, threshold: int = DEFAULT_DARK_THRESHOLD) -> np.ndarray:
    """Boolean (h, w) mask of pixels that belong to the symbol's dark modules.

    A pixel is dark when all three channels are below *threshold*. When the
    chosen foreground itself would fail that test (a light foreground), the
    classification falls back to "closer to the foreground than to the
    background" so the stages still see the encoder's actual dark colour.
    """
    rgb = pixels[..., :3].astype(np.int32)
    fg = np.array(options.foreground_rgb, dtype=np.int32)
    if (fg < threshold).all():
        return (rgb < threshold).all(axis=-1)
    bg = np.array(options.background_rgb, dtype=np.int32)
    to_fg = ((rgb - fg) ** 2).sum(axis=-1)
    to_bg = ((rgb - bg) ** 2).sum(axis=-1)
    return to_fg < to_bg


# ---------------------------------------------------------------------------
# Gradient stage
# ---------------------------------------------------------------------------

def gradient_field(width: int, height: int, start: tuple[int, int, int], end: tuple[int, int, int]) -> np.ndarray:
    """(h, w, 3) uint8 linear gradient running from the top-left to the bottom-right corner."""
    xs = np.arange(width, dtype=np.float64)[None, :]
    ys = np.arange(height, dtype=np.float64)[:, None]
    span_x, span_y = max(width - 1, 0), max(height - 1, 0)
    denom = span_x * span_x + span_y * span_y
    if denom == 0:
        t = np.zeros((height, width))
    else:
        # projection of (x, y) onto the diagonal, 0 at top-left, 1 at bottom-right
        t = (xs * span_x + ys * span_y) / denom
    start_arr = np.array(start, dtype=np.float64)
    end_arr = np.array(end, dtype=np.float64)
    field = start_arr + (end_arr - start_arr) * t[..., None]
    return np.rint(field).astype(np.uint8)


@trace
def apply_gradient(
    image: Image.Image,
    options: RenderOptions,
    threshold: int = DEFAULT_DARK_THRESHOLD,
) -> Image.Image:
    """Recolour dark pixels with the foreground -> gradient_color ramp; everything else becomes background."""
    pixels = np.array(image.convert("RGB"))
    h, w = pixels.shape[:2]
    dark = dark_mask(pixels, options, threshold)

    ramp = gradient_field(w, h, options.foreground_rgb, options.gradient_rgb)
    out = np.empty_like(pixels)
    out[...] = np.array(options.background_rgb, dtype=np.uint8)
    out[dark] = ramp[dark]

    audit("postprocess.gradient", logger=log,
          size=f"{w}x{h}", dark_px=int(dark.sum()),
          start=options.foreground_color, end=options.gradient_color)
    return Image.fromarray(out, "RGB")


# ---------------------------------------------------------------------------
# Finder-region geometry
# ---------------------------------------------------------------------------

@trace
def locate_finder_regions(
    bitmap_size: int,
    module_count: int = HEURISTIC_MODULE_COUNT,
    quiet_zone: int = 0,
) -> list[Rect]:
    """The three finder-pattern squares of a square bitmap: top-left, top-right, bottom-left.

    Args:
        bitmap_size:  Edge length of the bitmap in pixels.
        module_count: Modules spanned by the full bitmap edge (quiet zone included).
        quiet_zone:   Quiet-zone width in modules on each side.

    Uses the renderer's whole-pixel grid (see generator.grid_geometry), so the
    rects cover the drawn finder patterns exactly. All three share one integer
    edge length so every eye gets the same tile.
    """
    if bitmap_size <= 0 or module_count <= 0:
        raise ValueError("bitmap_size and module_count must be positive")
    box, offset = grid_geometry(bitmap_size, module_count)
    if box:
        edge = FINDER_MODULES * box
        near = offset + quiet_zone * box
        far = offset + (module_count - quiet_zone - FINDER_MODULES) * box
    else:
        # downscaled grid: best-effort fractional geometry
        module = bitmap_size / module_count
        edge = max(1, round(FINDER_MODULES * module))
        near = round(quiet_zone * module)
        far = round((module_count - quiet_zone - FINDER_MODULES) * module)
    far = min(max(far, 0), bitmap_size - edge)
    return [
        Rect(near, near, edge),  # top-left
        Rect(far, near, edge),   # top-right
        Rect(near, far, edge),   # bottom-left
    ]


def finder_regions_for(payload: str, options: RenderOptions) -> list[Rect]:
    """Finder regions derived from the encoder's real grid for *payload*."""
    modules = module_count(payload, options.error_correction)
    return locate_finder_regions(options.size, modules + 2 * options.margin, quiet_zone=options.margin)


# ---------------------------------------------------------------------------
# Eye-reshape stage
# ---------------------------------------------------------------------------

def _centered_box(edge: float, fraction: float) -> list[float]:
    inset = edge * (1 - fraction) / 2
    return [inset, inset, edge - inset - 1, edge - inset - 1]


def draw_eye(
    edge: int,
    shape: str,
    fg: tuple[int, int, int],
    bg: tuple[int, int, int],
) -> Image.Image:
    """Render one eye tile: outer shape (7/7), middle gap (5/7), inner core (3/7).

    Drawn at a higher resolution and downscaled for anti-aliased edges.
    """
    big = edge * _SUPERSAMPLE
    module = big / FINDER_MODULES
    tile = Image.new("RGB", (big, big), bg)
    draw = ImageDraw.Draw(tile)

    layers = [(1.0, fg, module), (5 / 7, bg, module / 2), (3 / 7, fg, module / 3)]
    for fraction, color, radius in layers:
        box = _centered_box(big, fraction)
        if shape == "circle":
            draw.ellipse(box, fill=color)
        else:  # rounded
            draw.rounded_rectangle(box, radius=max(1, int(radius)), fill=color)

    return tile.resize((edge, edge), Image.LANCZOS)


@trace
def reshape_eyes(
    image: Image.Image,
    options: RenderOptions,
    regions: list[Rect] | None = None,
) -> Image.Image:
    """Replace the three finder patterns with circular or rounded eyes.

    Pixels outside the regions are copied through unchanged onto a fresh
    background; each region is cleared and receives the same eye tile.
    """
    if options.eye_shape == "square":
        return image.copy()

    src = image.convert("RGB")
    if regions is None:
        regions = locate_finder_regions(src.size[0])

    pixels = np.array(src)
    bg = np.array(options.background_rgb, dtype=np.uint8)
    ink = (pixels != bg).any(axis=-1)
    for rect in regions:
        ink[rect.y : rect.y + rect.size, rect.x : rect.x + rect.size] = False

    out = np.empty_like(pixels)
    out[...] = bg
    out[ink] = pixels[ink]
    result = Image.fromarray(out, "RGB")

    # one tile for all three regions keeps the eyes pixel-identical
    edge = regions[0].size
    tile = draw_eye(edge, options.eye_shape, options.foreground_rgb, options.background_rgb)
    for rect in regions:
        result.paste(tile, (rect.x, rect.y))

    audit("postprocess.eyes", logger=log,
          shape=options.eye_shape, edge_px=edge,
          regions=[r.box for r in regions])
    return result


# ---------------------------------------------------------------------------
# Logo stage
# ---------------------------------------------------------------------------

def _scale_preserving_aspect(original_size: tuple[int, int], target: int) -> tuple[int, int]:
    """Scale (w, h) so the larger dimension equals *target*."""
    w, h = original_size
    aspect = w / h
    if aspect >= 1:
        return target, max(1, int(target / aspect))
    return max(1, int(target * aspect)), target


def logo_slot(bitmap_size: int) -> Rect:
    """Centred square covering LOGO_SLOT_FRACTION of the bitmap edge."""
    slot = max(1, round(bitmap_size * LOGO_SLOT_FRACTION))
    offset = (bitmap_size - slot) // 2
    return Rect(offset, offset, slot)


@trace
def overlay_logo(image: Image.Image, logo: Image.Image | None) -> Image.Image:
    """Composite *logo* on a white rounded plate at the centre of the symbol.

    This deliberately covers modules; the caller picks an error-correction
    level that can absorb the loss.
    """
    result = image.convert("RGB").copy()
    if logo is None:
        return result

    slot = logo_slot(result.size[0])
    draw = ImageDraw.Draw(result)
    draw.rounded_rectangle(
        [slot.x, slot.y, slot.x + slot.size - 1, slot.y + slot.size - 1],
        radius=max(1, int(slot.size * LOGO_PLATE_RADIUS_FRACTION)),
        fill=(255, 255, 255),
    )

    pad = int(slot.size * LOGO_INSET_FRACTION)
    inner = max(1, slot.size - 2 * pad)
    new_w, new_h = _scale_preserving_aspect(logo.size, inner)
    logo_rgba = logo.convert("RGBA").resize((new_w, new_h), Image.LANCZOS)
    x_off = slot.x + pad + (inner - new_w) // 2
    y_off = slot.y + pad + (inner - new_h) // 2
    result.paste(logo_rgba, (x_off, y_off), logo_rgba)

    audit("postprocess.logo", logger=log,
          qr_size=f"{result.size[0]}x{result.size[1]}",
          slot=slot.box, logo_size=f"{new_w}x{new_h}")
    return result


# ---------------------------------------------------------------------------
# Coordinator
# ---------------------------------------------------------------------------

def apply_styles(
    image: Image.Image,
    options: RenderOptions,
    regions: list[Rect] | None = None,
    threshold: int = DEFAULT_DARK_THRESHOLD,
) -> Image.Image:
    """The synchronous stages: gradient, then eye reshaping."""
    styled = image
    if options.use_gradient:
        styled = apply_gradient(styled, options, threshold)
    if options.eye_shape != "square":
        styled = reshape_eyes(styled, options, regions)
    return styled if styled is not image else image.copy()


@trace
def process(
    image: Image.Image,
    options: RenderOptions,
    logo: Image.Image | None = None,
    regions: list[Rect] | None = None,
    threshold: int = DEFAULT_DARK_THRESHOLD,
) -> Image.Image:
    """Run gradient -> eyes -> logo on *image* and return the composed bitmap."""
    return overlay_logo(apply_styles(image, options, regions, threshold), logo)
