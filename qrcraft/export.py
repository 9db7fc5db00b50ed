"""Export Adapter: PNG, SVG, print-ready HTML and embeddable snippets of a finished code."""

import base64
import html
import io
from datetime import datetime
from pathlib import Path

from PIL import Image

from qrcraft.generator import to_vector_markup
from qrcraft.logging import audit, get_logger, trace
from qrcraft.options import RenderOptions

log = get_logger("export")

EXPORT_FORMATS = ("png", "svg", "html", "embed")


def to_png_bytes(image: Image.Image) -> bytes:
    buf = io.BytesIO()
    image.save(buf, format="PNG")
    return buf.getvalue()


def to_data_uri(image: Image.Image) -> str:
    return "data:image/png;base64," + base64.b64encode(to_png_bytes(image)).decode("ascii")


def to_svg(image: Image.Image, options: RenderOptions) -> str:
    """SVG wrapper around the composed raster, so styling and logo survive."""
    size = image.size[0]
    return (
        f'<svg xmlns="http://www.w3.org/2000/svg" width="{size}" height="{size}" '
        f'viewBox="0 0 {size} {size}">'
        f'<rect width="100%" height="100%" fill="{options.background_color}"/>'
        f'<image width="100%" height="100%" href="{to_data_uri(image)}"/>'
        "</svg>"
    )


def vector_svg(payload: str, options: RenderOptions) -> str:
    """True vector SVG of the plain symbol. Gradient, eyes and logo are not carried over."""
    return to_vector_markup(payload, options)


def embed_snippet(image: Image.Image) -> str:
    size = image.size[0]
    return f'<img src="{to_data_uri(image)}" alt="QR Code" width="{size}" height="{size}" />'


def print_document(image: Image.Image, content_type: str, generated_at: datetime | None = None) -> str:
    """Standalone HTML page that shows the code with its metadata and opens the print dialog."""
    generated_at = generated_at or datetime.now()
    size = image.size[0]
    label = html.escape(content_type.upper())
    return f"""<!DOCTYPE html>
<html>
<head>
  <title>QR Code - {html.escape(content_type)}</title>
  <style>
    body {{ display: flex; flex-direction: column; align-items: center; justify-content: center;
           height: 100vh; margin: 0; font-family: Arial, sans-serif; }}
    .container {{ display: flex; flex-direction: column; align-items: center; padding: 20px; }}
    img {{ max-width: 100%; height: auto; margin-bottom: 20px; }}
    .info {{ text-align: center; margin-top: 20px; color: #666; font-size: 14px; }}
    @media print {{ .no-print {{ display: none; }} }}
  </style>
</head>
<body>
  <div class="container">
    <img src="{to_data_uri(image)}" alt="QR Code" width="{size}" height="{size}">
    <div class="info">
      <p>Type: {label}</p>
      <p>Generated: {html.escape(generated_at.strftime("%Y-%m-%d %H:%M:%S"))}</p>
    </div>
    <div class="no-print">
      <p>Your QR code is ready to be printed or saved as PDF.</p>
    </div>
  </div>
  <script>
    setTimeout(() => {{ window.print(); }}, 500);
  </script>
</body>
</html>
"""


def export_filename(content_type: str, fmt: str, timestamp_ms: int) -> str:
    ext = "html" if fmt == "embed" else fmt
    return f"qrcode-{content_type}-{timestamp_ms}.{ext}"


@trace
def write_export(
    image: Image.Image,
    path: str | Path,
    fmt: str,
    options: RenderOptions,
    content_type: str = "text",
) -> Path:
    """Write *image* to *path* in one of EXPORT_FORMATS."""
    if fmt not in EXPORT_FORMATS:
        raise ValueError(f"Unsupported export format '{fmt}'. Use one of: {', '.join(EXPORT_FORMATS)}.")
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    if fmt == "png":
        path.write_bytes(to_png_bytes(image))
    elif fmt == "svg":
        path.write_text(to_svg(image, options), encoding="utf-8")
    elif fmt == "html":
        path.write_text(print_document(image, content_type), encoding="utf-8")
    else:
        path.write_text(embed_snippet(image), encoding="utf-8")

    audit("export.written", logger=log, path=str(path), format=fmt, size=f"{image.size[0]}px")
    return path
