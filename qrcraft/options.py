"""RenderOptions value object and colour helpers."""

import re
from dataclasses import asdict, dataclass, fields, replace

from qrcraft.errors import InvalidOptionsError

ECC_LEVELS = ("L", "M", "Q", "H")  # low -> high redundancy
EYE_SHAPES = ("square", "circle", "rounded")

_HEX_COLOR = re.compile(r"^#?(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")


def is_hex_color(value: str) -> bool:
    return isinstance(value, str) and bool(_HEX_COLOR.match(value))


def normalize_hex(value: str) -> str:
    """Canonical lower-case '#rrggbb' form of a 3- or 6-digit hex colour."""
    if not is_hex_color(value):
        raise InvalidOptionsError(f"Malformed hex colour: {value!r}")
    s = value.lstrip("#").lower()
    if len(s) == 3:
        s = "".join(ch * 2 for ch in s)
    return f"#{s}"


def parse_hex_color(value: str) -> tuple[int, int, int]:
    """Parse a hex colour string (with or without '#') to an RGB tuple."""
    s = normalize_hex(value)[1:]
    return tuple(int(s[i : i + 2], 16) for i in (0, 2, 4))


@dataclass(frozen=True)
class RenderOptions:
    """How a payload is drawn. Never part of the encoded content."""

    size: int = 300
    margin: int = 4
    foreground_color: str = "#000000"
    background_color: str = "#ffffff"
    use_gradient: bool = False
    gradient_color: str = "#4338ca"
    error_correction: str = "M"
    eye_shape: str = "square"
    logo_url: str | None = None

    @property
    def foreground_rgb(self) -> tuple[int, int, int]:
        return parse_hex_color(self.foreground_color)

    @property
    def background_rgb(self) -> tuple[int, int, int]:
        return parse_hex_color(self.background_color)

    @property
    def gradient_rgb(self) -> tuple[int, int, int]:
        return parse_hex_color(self.gradient_color)

    def validate(self) -> "RenderOptions":
        """Raise InvalidOptionsError on any precondition violation; returns self."""
        if not isinstance(self.size, int) or self.size <= 0:
            raise InvalidOptionsError(f"size must be a positive integer, got {self.size!r}")
        if not isinstance(self.margin, int) or self.margin < 0:
            raise InvalidOptionsError(f"margin must be >= 0, got {self.margin!r}")
        for name in ("foreground_color", "background_color", "gradient_color"):
            value = getattr(self, name)
            if not is_hex_color(value):
                raise InvalidOptionsError(f"{name} is not a hex colour: {value!r}")
        if self.error_correction not in ECC_LEVELS:
            raise InvalidOptionsError(
                f"error_correction must be one of {'/'.join(ECC_LEVELS)}, got {self.error_correction!r}"
            )
        if self.eye_shape not in EYE_SHAPES:
            raise InvalidOptionsError(
                f"eye_shape must be one of {', '.join(EYE_SHAPES)}, got {self.eye_shape!r}"
            )
        return self

    def replace(self, **changes) -> "RenderOptions":
        return replace(self, **changes)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "RenderOptions":
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})


DEFAULT_OPTIONS = RenderOptions()
