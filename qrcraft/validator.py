"""Content Validator: completeness gate and advisory scannability checks."""

import re
from dataclasses import dataclass

from qrcraft.config import DENSITY_WARNING_CHARS, MIN_MARGIN
from qrcraft.content import (
    ContactContent,
    ContentRecord,
    EmailContent,
    EventContent,
    PhoneContent,
    TextContent,
    UrlContent,
    WifiContent,
)
from qrcraft.formatter import parse_event_date
from qrcraft.logging import get_logger
from qrcraft.options import RenderOptions, normalize_hex, parse_hex_color

log = get_logger("validator")

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_PATTERN = re.compile(
    r"^[+]?[(]?[0-9]{3}[)]?[-\s.]?[0-9]{3}[-\s.]?[0-9]{4,6}$",
    re.IGNORECASE | re.MULTILINE,
)

# Below this WCAG ratio most phone cameras struggle to binarise the symbol
LOW_CONTRAST_RATIO = 3.0


@dataclass(frozen=True)
class ScanWarning:
    code: str
    message: str


def is_complete(record: ContentRecord) -> bool:
    """True when the record's minimal required fields are present and well-shaped."""
    if isinstance(record, UrlContent):
        return bool(record.url)
    if isinstance(record, TextContent):
        return bool(record.text)
    if isinstance(record, EmailContent):
        return bool(record.address) and bool(EMAIL_PATTERN.match(record.address))
    if isinstance(record, PhoneContent):
        return bool(record.number) and bool(PHONE_PATTERN.search(record.number))
    if isinstance(record, WifiContent):
        return bool(record.ssid)
    if isinstance(record, ContactContent):
        return bool(record.name)
    if isinstance(record, EventContent):
        return bool(record.title) and parse_event_date(record.start_date) is not None
    return False


# ---------------------------------------------------------------------------
# WCAG contrast ratio
# ---------------------------------------------------------------------------

def _linearize(channel: int) -> float:
    c = channel / 255.0
    return c / 12.92 if c <= 0.03928 else ((c + 0.055) / 1.055) ** 2.4


def _luminance(rgb: tuple[int, int, int]) -> float:
    r, g, b = [_linearize(ch) for ch in rgb]
    return 0.2126 * r + 0.7152 * g + 0.0722 * b


def check_contrast(fg: tuple[int, ...], bg: tuple[int, ...]) -> float:
    """WCAG contrast ratio between two RGB colours (1.0 - 21.0)."""
    l1 = _luminance(fg[:3])
    l2 = _luminance(bg[:3])
    if l1 < l2:
        l1, l2 = l2, l1
    return (l1 + 0.05) / (l2 + 0.05)


def scan_warnings(payload: str, options: RenderOptions) -> list[ScanWarning]:
    """Advisory checks. Never blocks rendering; options are assumed validated."""
    warnings = []

    if payload and len(payload) > DENSITY_WARNING_CHARS:
        warnings.append(ScanWarning(
            "density",
            f"Your QR code contains {len(payload)} characters, which might be difficult to scan. "
            "Consider shortening the content.",
        ))

    if options.logo_url and options.error_correction != "H":
        warnings.append(ScanWarning(
            "logo_ecc",
            'Using a logo with low error correction might reduce scannability. '
            'Consider using "High" error correction.',
        ))

    fg = normalize_hex(options.foreground_color)
    bg = normalize_hex(options.background_color)
    if fg == bg:
        warnings.append(ScanWarning(
            "contrast",
            "The foreground and background colors are too similar, "
            "which may make the QR code impossible to scan.",
        ))
    else:
        ratio = check_contrast(parse_hex_color(fg), parse_hex_color(bg))
        if ratio < LOW_CONTRAST_RATIO:
            warnings.append(ScanWarning(
                "low_contrast",
                f"Contrast ratio {ratio:.1f}:1 is low; some scanners may fail to read the code.",
            ))

    if options.margin < MIN_MARGIN:
        warnings.append(ScanWarning(
            "margin",
            "A margin less than 2 pixels might cause scanning issues on some devices.",
        ))

    for w in warnings:
        log.warning("scan warning [%s]: %s", w.code, w.message)
    return warnings
