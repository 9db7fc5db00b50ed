"""Scan verification: decode a finished bitmap with real decoders to confirm it still reads."""

import time
from dataclasses import dataclass

import cv2
import numpy as np
from PIL import Image
from pyzbar.pyzbar import decode as pyzbar_decode

from qrcraft.logging import audit, get_logger, trace

log = get_logger("verify")


@dataclass
class ScanResult:
    """Result of a single scan attempt."""
    success: bool
    decoded_data: str | None = None
    decode_time_ms: float = 0.0
    decoder: str = ""
    error: str | None = None


def _scan(decoder: str, image: Image.Image, attempt) -> ScanResult:
    start = time.perf_counter()
    try:
        data = attempt(image)
    except Exception as e:  # decoders raise assorted native errors
        elapsed = (time.perf_counter() - start) * 1000
        audit("scan.error", logger=log, decoder=decoder, error=str(e), time_ms=round(elapsed, 1))
        return ScanResult(success=False, decode_time_ms=elapsed, decoder=decoder, error=str(e))

    elapsed = (time.perf_counter() - start) * 1000
    if data:
        audit("scan.verified", logger=log, decoder=decoder, success=True, time_ms=round(elapsed, 1), data=data[:80])
        return ScanResult(success=True, decoded_data=data, decode_time_ms=elapsed, decoder=decoder)
    audit("scan.verified", logger=log, decoder=decoder, success=False, time_ms=round(elapsed, 1))
    return ScanResult(success=False, decode_time_ms=elapsed, decoder=decoder, error="No QR code detected")


def _pyzbar_attempt(image: Image.Image) -> str | None:
    results = pyzbar_decode(image.convert("RGB"))
    if not results:
        return None
    return results[0].data.decode("utf-8", errors="replace")


def _opencv_attempt(image: Image.Image) -> str | None:
    arr = np.array(image.convert("RGB"))
    gray = cv2.cvtColor(arr, cv2.COLOR_RGB2GRAY)
    data, _points, _ = cv2.QRCodeDetector().detectAndDecode(gray)
    return data or None


@trace
def scan_pyzbar(image: Image.Image) -> ScanResult:
    """Scan with pyzbar (ZBar)."""
    return _scan("pyzbar/zbar", image, _pyzbar_attempt)


@trace
def scan_opencv(image: Image.Image) -> ScanResult:
    """Scan with OpenCV's built-in QR detector."""
    return _scan("opencv", image, _opencv_attempt)


@trace
def verify(image: Image.Image, expected_data: str | None = None) -> list[ScanResult]:
    """Run every decoder on *image*.

    Args:
        image: Composed QR bitmap.
        expected_data: When given, a decode that returns different data counts as a failure.
    """
    results = []
    for scanner in (scan_pyzbar, scan_opencv):
        result = scanner(image)
        if result.success and expected_data is not None and result.decoded_data != expected_data:
            result.success = False
            result.error = f"Data mismatch: got '{result.decoded_data}', expected '{expected_data}'"
        results.append(result)
    return results
