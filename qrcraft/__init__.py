"""qrcraft: compose styled, scannable QR codes from structured content."""

__version__ = "0.1.0"
