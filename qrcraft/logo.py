"""Logo loading: paths, data URIs and in-memory images, normalised to RGBA."""

import asyncio
import base64
import binascii
import io
from pathlib import Path

from PIL import Image

from qrcraft.errors import LogoLoadError
from qrcraft.logging import audit, get_logger, trace

log = get_logger("logo")


def _decode_data_uri(uri: str) -> bytes:
    header, sep, body = uri.partition(",")
    if not sep:
        raise LogoLoadError("Malformed data URI: missing ','")
    try:
        if header.endswith(";base64"):
            return base64.b64decode(body, validate=True)
        return body.encode("latin-1")
    except (binascii.Error, UnicodeEncodeError) as e:
        raise LogoLoadError(f"Malformed data URI: {e}") from e


@trace
def load_logo(source: str | Path | Image.Image) -> Image.Image:
    """Load a logo and return it as an RGBA image.

    Args:
        source: A PIL image, a ``data:`` URI (as produced by a file upload)
                or a filesystem path.

    Raises:
        LogoLoadError: The source is missing, unsupported or not an image.
    """
    if isinstance(source, Image.Image):
        return source.convert("RGBA")

    text = str(source)
    if text.startswith("data:"):
        stream = io.BytesIO(_decode_data_uri(text))
        origin = "data-uri"
    elif text.startswith(("http://", "https://")):
        raise LogoLoadError(f"Remote logos are not fetched: {text[:80]}")
    else:
        path = Path(text)
        if not path.is_file():
            raise LogoLoadError(f"Logo not found: {path}")
        stream = path
        origin = str(path)

    try:
        with Image.open(stream) as img:
            img.load()
            logo = img.convert("RGBA")
    except (OSError, ValueError) as e:
        raise LogoLoadError(f"Cannot decode logo from {origin[:80]}: {e}") from e

    audit("logo.loaded", logger=log, origin=origin[:80], size=f"{logo.size[0]}x{logo.size[1]}")
    return logo


def try_load_logo(source: str | Path | Image.Image | None) -> Image.Image | None:
    """Like load_logo, but a failure is logged and yields None."""
    if source is None or source == "":
        return None
    try:
        return load_logo(source)
    except LogoLoadError as e:
        log.warning("logo skipped: %s", e)
        return None


async def load_logo_async(source: str | Path | Image.Image | None) -> Image.Image | None:
    """Awaitable logo load used by the render session; failures yield None."""
    # Yield once so edits queued behind this render get a chance to run first
    await asyncio.sleep(0)
    return try_load_logo(source)
