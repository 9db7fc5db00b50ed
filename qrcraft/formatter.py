"""Content Formatter: canonical payload strings for each content type."""

from dataclasses import replace
from datetime import datetime, timezone
from urllib.parse import quote

from qrcraft.content import (
    ContactContent,
    ContentRecord,
    EmailContent,
    EventContent,
    PhoneContent,
    TextContent,
    UrlContent,
    WifiContent,
    WifiEncryption,
)
from qrcraft.logging import get_logger

log = get_logger("formatter")

# encodeURIComponent leaves these unescaped besides alphanumerics
_URI_COMPONENT_SAFE = "-_.!~*'()"


def _encode_component(value: str) -> str:
    return quote(value, safe=_URI_COMPONENT_SAFE)


def normalize_url(url: str) -> str:
    """Prefix https:// unless the URL already carries an http(s) scheme."""
    if url and not url.startswith(("http://", "https://")):
        return "https://" + url
    return url


def normalize_record(record: ContentRecord) -> ContentRecord:
    """Return *record* with its URL normalised; other records pass through unchanged."""
    if isinstance(record, UrlContent):
        return replace(record, url=normalize_url(record.url))
    return record


def parse_event_date(value: datetime | str | None) -> datetime | None:
    """Accept a datetime or an ISO-8601 string; None when absent or unparsable."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        log.debug("unparsable event date %r", value)
        return None


def format_calendar_date(value: datetime) -> str:
    """Compact UTC timestamp, e.g. 20250301T140000Z. Naive datetimes are taken as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y%m%dT%H%M%SZ")


def _format_url(record: UrlContent) -> str:
    return normalize_url(record.url)


def _format_text(record: TextContent) -> str:
    return record.text


def _format_email(record: EmailContent) -> str:
    if not record.address:
        return ""
    payload = f"mailto:{record.address}"
    separator = "?"
    if record.subject:
        payload += f"{separator}subject={_encode_component(record.subject)}"
        separator = "&"
    if record.body:
        payload += f"{separator}body={_encode_component(record.body)}"
    return payload


def _format_phone(record: PhoneContent) -> str:
    return f"tel:{record.number}" if record.number else ""


def _format_wifi(record: WifiContent) -> str:
    if not record.ssid:
        return ""
    password = "" if record.encryption is WifiEncryption.NONE else record.password
    return f"WIFI:S:{record.ssid};T:{record.encryption.value};P:{password};;"


def _format_contact(record: ContactContent) -> str:
    if not record.name:
        return ""
    lines = [
        "BEGIN:VCARD",
        "VERSION:3.0",
        f"N:{record.last_name};{record.first_name}",
        f"FN:{record.name}",
    ]
    optional = [
        ("EMAIL", record.email),
        ("TEL", record.phone),
        ("ORG", record.company),
        ("TITLE", record.title),
        ("URL", record.website),
        ("ADR", f";;{record.address}" if record.address else ""),
    ]
    lines.extend(f"{tag}:{value}" for tag, value in optional if value)
    lines.append("END:VCARD")
    return "\n".join(lines)


def _format_event(record: EventContent) -> str:
    start = parse_event_date(record.start_date)
    if not record.title or start is None:
        return ""
    lines = [
        "BEGIN:VEVENT",
        f"SUMMARY:{record.title}",
        f"DTSTART:{format_calendar_date(start)}",
    ]
    end = parse_event_date(record.end_date)
    if end is not None:
        lines.append(f"DTEND:{format_calendar_date(end)}")
    if record.location:
        lines.append(f"LOCATION:{record.location}")
    if record.description:
        lines.append(f"DESCRIPTION:{record.description}")
    lines.append("END:VEVENT")
    return "\n".join(lines)


_FORMATTERS = {
    UrlContent: _format_url,
    TextContent: _format_text,
    EmailContent: _format_email,
    PhoneContent: _format_phone,
    WifiContent: _format_wifi,
    ContactContent: _format_contact,
    EventContent: _format_event,
}


def format_payload(record: ContentRecord) -> str:
    """Serialize *record* into the string that gets encoded.

    Returns an empty string when the record lacks its required field;
    completeness is enforced by the validator, not here.
    """
    formatter = _FORMATTERS.get(type(record))
    if formatter is None:
        raise TypeError(f"Unsupported content record: {type(record).__name__}")
    return formatter(record)
