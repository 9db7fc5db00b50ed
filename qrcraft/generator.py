"""Base Symbol Renderer: wraps the qrcode encoder and turns payloads into bitmaps."""

import base64
import io

import numpy as np
import qrcode
import qrcode.constants
from qrcode.exceptions import DataOverflowError
from PIL import Image

from qrcraft.errors import GenerationError
from qrcraft.logging import audit, get_logger, trace
from qrcraft.options import RenderOptions

log = get_logger("generator")

ECC_NAMES = {
    "L": qrcode.constants.ERROR_CORRECT_L,  # 7%
    "M": qrcode.constants.ERROR_CORRECT_M,  # 15%
    "Q": qrcode.constants.ERROR_CORRECT_Q,  # 25%
    "H": qrcode.constants.ERROR_CORRECT_H,  # 30%
}


def _build(payload: str, ecc: str, border: int) -> qrcode.QRCode:
    qr = qrcode.QRCode(
        version=None,
        error_correction=ECC_NAMES[ecc.upper()],
        box_size=1,
        border=border,
    )
    try:
        qr.add_data(payload)
        qr.make(fit=True)
    except (DataOverflowError, ValueError) as e:
        raise GenerationError(
            f"Error generating QR code for {len(payload)} characters at level {ecc.upper()}: {e}"
        ) from e
    return qr


@trace
def module_matrix(payload: str, ecc: str = "M", border: int = 0) -> list[list[bool]]:
    """Raw module grid (True = dark), including *border* quiet-zone modules."""
    return _build(payload, ecc, border).get_matrix()


@trace
def module_count(payload: str, ecc: str = "M") -> int:
    """Modules per side of the symbol, quiet zone excluded (21 for version 1)."""
    return _build(payload, ecc, 0).modules_count


def grid_geometry(bitmap_size: int, cells: int) -> tuple[int, int]:
    """(box, offset): whole pixels per module and the inset that centres the grid.

    When the bitmap is smaller than the grid, box is 0 and the grid is
    downscaled instead.
    """
    box = bitmap_size // cells
    return box, (bitmap_size - box * cells) // 2


@trace
def render(payload: str, options: RenderOptions) -> Image.Image:
    """Render *payload* to an RGB bitmap of exactly options.size pixels per side.

    Every module is drawn as a whole square of pixels and the grid is centred;
    leftover pixels widen the quiet zone (options.margin modules). Raises
    GenerationError when the encoder rejects the payload.
    """
    qr = _build(payload, options.error_correction, options.margin)
    matrix = np.array(qr.get_matrix(), dtype=bool)

    fg = np.array(options.foreground_rgb, dtype=np.uint8)
    bg = np.array(options.background_rgb, dtype=np.uint8)
    pixels = np.where(matrix[..., None], fg, bg).astype(np.uint8)

    cells = matrix.shape[0]
    box, offset = grid_geometry(options.size, cells)
    if box == 0:
        img = Image.fromarray(pixels, "RGB").resize((options.size, options.size), Image.NEAREST)
    else:
        grid = pixels.repeat(box, axis=0).repeat(box, axis=1)
        canvas = np.empty((options.size, options.size, 3), dtype=np.uint8)
        canvas[...] = bg
        canvas[offset : offset + grid.shape[0], offset : offset + grid.shape[1]] = grid
        img = Image.fromarray(canvas, "RGB")

    audit("qr.rendered", logger=log,
          data=payload[:80], version=qr.version, modules=qr.modules_count,
          ecc=options.error_correction, image_px=f"{img.size[0]}x{img.size[1]}")
    return img


@trace
def to_vector_markup(payload: str, options: RenderOptions) -> str:
    """SVG document of the plain symbol, one path for all dark modules."""
    matrix = _build(payload, options.error_correction, options.margin).get_matrix()
    cells = len(matrix)
    cell = options.size / cells

    segments = []
    for r, row in enumerate(matrix):
        for c, dark in enumerate(row):
            if dark:
                segments.append(f"M{c * cell:.3f} {r * cell:.3f}h{cell:.3f}v{cell:.3f}h-{cell:.3f}z")

    return (
        f'<svg xmlns="http://www.w3.org/2000/svg" width="{options.size}" height="{options.size}" '
        f'viewBox="0 0 {options.size} {options.size}" shape-rendering="crispEdges">'
        f'<rect width="100%" height="100%" fill="{options.background_color}"/>'
        f'<path fill="{options.foreground_color}" d="{"".join(segments)}"/>'
        "</svg>"
    )


@trace
def to_data_uri(payload: str, options: RenderOptions) -> str:
    """PNG data URI of the plain (unprocessed) symbol."""
    buf = io.BytesIO()
    render(payload, options).save(buf, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buf.getvalue()).decode("ascii")
