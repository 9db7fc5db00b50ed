"""Typed content records: one dataclass per encodable content type."""

from dataclasses import dataclass, fields
from datetime import datetime
from enum import Enum


class ContentType(str, Enum):
    URL = "url"
    TEXT = "text"
    EMAIL = "email"
    PHONE = "phone"
    WIFI = "wifi"
    CONTACT = "vcard"
    EVENT = "event"


class WifiEncryption(str, Enum):
    WPA = "WPA"
    WEP = "WEP"
    NONE = "nopass"


@dataclass(frozen=True)
class UrlContent:
    url: str = ""

    content_type = ContentType.URL


@dataclass(frozen=True)
class TextContent:
    text: str = ""

    content_type = ContentType.TEXT


@dataclass(frozen=True)
class EmailContent:
    address: str = ""
    subject: str = ""
    body: str = ""

    content_type = ContentType.EMAIL


@dataclass(frozen=True)
class PhoneContent:
    number: str = ""

    content_type = ContentType.PHONE


@dataclass(frozen=True)
class WifiContent:
    ssid: str = ""
    encryption: WifiEncryption = WifiEncryption.WPA
    password: str = ""

    content_type = ContentType.WIFI


@dataclass(frozen=True)
class ContactContent:
    name: str = ""
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone: str = ""
    company: str = ""
    title: str = ""
    website: str = ""
    address: str = ""

    content_type = ContentType.CONTACT


@dataclass(frozen=True)
class EventContent:
    title: str = ""
    start_date: datetime | str | None = None
    end_date: datetime | str | None = None
    location: str = ""
    description: str = ""

    content_type = ContentType.EVENT


ContentRecord = (
    UrlContent | TextContent | EmailContent | PhoneContent
    | WifiContent | ContactContent | EventContent
)

RECORD_TYPES: dict[ContentType, type] = {
    ContentType.URL: UrlContent,
    ContentType.TEXT: TextContent,
    ContentType.EMAIL: EmailContent,
    ContentType.PHONE: PhoneContent,
    ContentType.WIFI: WifiContent,
    ContentType.CONTACT: ContactContent,
    ContentType.EVENT: EventContent,
}


def parse_encryption(value: str | WifiEncryption | None) -> WifiEncryption:
    """Map a user-facing encryption tag onto WifiEncryption ('none' and '' mean open)."""
    if isinstance(value, WifiEncryption):
        return value
    tag = (value or "").strip()
    if tag.upper() in ("WPA", "WPA2", "WPA3"):
        return WifiEncryption.WPA
    if tag.upper() == "WEP":
        return WifiEncryption.WEP
    if tag.lower() in ("nopass", "none", ""):
        return WifiEncryption.NONE
    raise ValueError(f"Unknown Wi-Fi encryption '{value}'. Use WPA, WEP or nopass.")


def record_from_dict(content_type: str | ContentType, data: dict) -> ContentRecord:
    """Build a record of *content_type* from a flat field mapping; unknown keys are ignored."""
    ctype = ContentType(content_type)
    cls = RECORD_TYPES[ctype]
    allowed = {f.name for f in fields(cls)}
    kwargs = {k: v for k, v in data.items() if k in allowed and v is not None}
    if ctype is ContentType.WIFI and "encryption" in kwargs:
        kwargs["encryption"] = parse_encryption(kwargs["encryption"])
    return cls(**kwargs)
