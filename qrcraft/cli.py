"""qrcraft CLI: compose styled QR codes from typed content, manage history, verify scans."""

import argparse
import sys
import time
from pathlib import Path

from PIL import Image

from qrcraft.config import load_settings
from qrcraft.content import ContentType, record_from_dict
from qrcraft.errors import GenerationError, IncompleteContentError, InvalidOptionsError
from qrcraft.logging import audit, get_logger, setup_logging

log = get_logger("cli")

# field that the positional VALUE fills for each content type
PRIMARY_FIELD = {
    ContentType.URL: "url",
    ContentType.TEXT: "text",
    ContentType.EMAIL: "address",
    ContentType.PHONE: "number",
    ContentType.WIFI: "ssid",
    ContentType.CONTACT: "name",
    ContentType.EVENT: "title",
}


def _history_store(settings):
    from qrcraft.history import HistoryStore, JsonFilePersistence

    store = HistoryStore(JsonFilePersistence(settings.history_path))
    store.load()
    return store


def _record_fields(args) -> dict:
    ctype = ContentType(args.type)
    fields = {
        "subject": args.subject,
        "body": args.body,
        "encryption": args.encryption,
        "password": args.password,
        "first_name": args.first_name,
        "last_name": args.last_name,
        "company": args.company,
        "website": args.website,
        "address": args.address,
        "start_date": args.start,
        "end_date": args.end,
        "location": args.location,
        "description": args.description,
    }
    if ctype is ContentType.CONTACT:
        fields.update(email=args.email, phone=args.phone, title=args.job_title)
    fields[PRIMARY_FIELD[ctype]] = args.value
    return {k: v for k, v in fields.items() if v is not None}


def cmd_generate(args, settings):
    """Compose a QR code and write it in the requested format."""
    from qrcraft.export import export_filename, write_export
    from qrcraft.options import RenderOptions
    from qrcraft.session import GENERATION_FAILED_MESSAGE, compose

    try:
        record = record_from_dict(args.type, _record_fields(args))
    except ValueError as e:
        print(f"Invalid input: {e}", file=sys.stderr)
        sys.exit(2)
    options = RenderOptions(
        size=args.size,
        margin=args.margin,
        foreground_color=args.color,
        background_color=args.background,
        use_gradient=args.gradient is not None,
        gradient_color=args.gradient or RenderOptions.gradient_color,
        error_correction=args.ecc,
        eye_shape=args.eye_shape,
        logo_url=args.logo,
    )

    try:
        image, composition = compose(record, options, threshold=settings.dark_threshold)
    except IncompleteContentError as e:
        print(f"Incomplete input: {e}", file=sys.stderr)
        sys.exit(2)
    except InvalidOptionsError as e:
        print(f"Invalid options: {e}", file=sys.stderr)
        sys.exit(2)
    except GenerationError as e:
        log.error("generation failed: %s", e)
        print(GENERATION_FAILED_MESSAGE, file=sys.stderr)
        sys.exit(1)

    for w in composition.warnings:
        print(f"  Warning [{w.code}]: {w.message}")

    output = Path(args.output) if args.output else Path("output") / export_filename(
        record.content_type.value, args.format, int(time.time() * 1000))
    write_export(image, output, args.format, options, content_type=record.content_type.value)
    print(f"Generated: {output} ({image.size[0]}x{image.size[1]}, {args.format})")

    if not args.no_history:
        entry = _history_store(settings).record(record, composition.payload, options)
        if entry is not None:
            print(f"  History: saved as {entry.id}")

    if args.verify:
        from qrcraft.verify import verify

        results = verify(image, expected_data=composition.payload)
        for r in results:
            status = "PASS" if r.success else "FAIL"
            print(f"  [{r.decoder:12s}] {status} | {r.decode_time_ms:6.1f}ms | {r.decoded_data or r.error}")
        if not any(r.success for r in results):
            sys.exit(1)


def cmd_history(args, settings):
    """List, clear or render thumbnails of the stored history."""
    store = _history_store(settings)

    if args.action == "clear":
        store.clear()
        print("History cleared.")
        return

    if not store.entries:
        print("History is empty.")
        return

    out_dir = Path(args.output_dir)
    for entry in store.entries:
        stamp = time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(entry.timestamp / 1000))
        first_line = entry.payload.splitlines()[0] if entry.payload else ""
        print(f"  {entry.id}  {stamp}  {entry.content_type:6s}  {first_line[:60]}")
        if args.action == "thumbnails":
            thumb = store.thumbnail(entry)
            if thumb is not None:
                out_dir.mkdir(parents=True, exist_ok=True)
                path = out_dir / f"history-{entry.id}.png"
                thumb.save(path)
                print(f"      thumbnail: {path}")


def cmd_verify(args, settings):
    """Verify a QR code image."""
    from qrcraft.verify import verify

    img = Image.open(args.image)
    results = verify(img, expected_data=args.expected)

    all_pass = True
    for r in results:
        status = "PASS" if r.success else "FAIL"
        if not r.success:
            all_pass = False
        print(f"  [{r.decoder:12s}] {status} | {r.decode_time_ms:6.1f}ms | {r.decoded_data or r.error}")

    sys.exit(0 if all_pass else 1)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="qrcraft", description="qrcraft: styled QR codes from structured content")

    parser.add_argument("-V", "--verbose", action="store_true", help="Enable DEBUG-level logging")
    parser.add_argument("--log-file", default=None, help="Write JSON logs to file")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # --- generate ---
    p_gen = subparsers.add_parser("generate", help="Generate a QR code")
    p_gen.add_argument("type", choices=[t.value for t in ContentType], help="Content type")
    p_gen.add_argument("value", help="Main field: url, text, email address, phone number, SSID, full name or event title")
    p_gen.add_argument("-o", "--output", default=None, help="Output file path")
    p_gen.add_argument("-f", "--format", default="png", choices=["png", "svg", "html", "embed"], help="Output format")
    p_gen.add_argument("-s", "--size", type=int, default=300, help="Image edge in pixels")
    p_gen.add_argument("-m", "--margin", type=int, default=4, help="Quiet zone in modules")
    p_gen.add_argument("-e", "--ecc", default="M", choices=["L", "M", "Q", "H"], help="Error correction level")
    p_gen.add_argument("--color", default="#000000", help="Foreground colour (hex)")
    p_gen.add_argument("--background", default="#ffffff", help="Background colour (hex)")
    p_gen.add_argument("--gradient", default=None, help="Enable gradient towards this colour (hex)")
    p_gen.add_argument("--eye-shape", default="square", choices=["square", "circle", "rounded"])
    p_gen.add_argument("--logo", default=None, help="Logo image path or data URI")
    p_gen.add_argument("--verify", action="store_true", help="Decode the result to confirm it scans")
    p_gen.add_argument("--no-history", action="store_true", help="Do not record in history")

    fields = p_gen.add_argument_group("content fields")
    fields.add_argument("--subject", help="Email subject")
    fields.add_argument("--body", help="Email body")
    fields.add_argument("--encryption", help="Wi-Fi encryption: WPA, WEP or nopass")
    fields.add_argument("--password", help="Wi-Fi password")
    fields.add_argument("--first-name", help="Contact first name")
    fields.add_argument("--last-name", help="Contact last name")
    fields.add_argument("--email", help="Contact email")
    fields.add_argument("--phone", help="Contact phone")
    fields.add_argument("--company", help="Contact organisation")
    fields.add_argument("--job-title", help="Contact job title")
    fields.add_argument("--website", help="Contact website")
    fields.add_argument("--address", help="Contact address")
    fields.add_argument("--start", help="Event start (ISO-8601)")
    fields.add_argument("--end", help="Event end (ISO-8601)")
    fields.add_argument("--location", help="Event location")
    fields.add_argument("--description", help="Event description")

    # --- history ---
    p_hist = subparsers.add_parser("history", help="Show or manage recent codes")
    p_hist.add_argument("action", nargs="?", default="list", choices=["list", "clear", "thumbnails"])
    p_hist.add_argument("--output-dir", default="output/history", help="Thumbnail directory")

    # --- verify ---
    p_ver = subparsers.add_parser("verify", help="Verify a QR code image")
    p_ver.add_argument("image", help="Path to QR code image")
    p_ver.add_argument("--expected", default=None, help="Expected decoded data (fails if mismatch)")

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    settings = load_settings()

    level = "DEBUG" if args.verbose else settings.log_level
    setup_logging(level=level, log_file=args.log_file or settings.log_file)
    audit("cli.start", logger=log, command=args.command, verbose=args.verbose)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    commands = {
        "generate": cmd_generate,
        "history": cmd_history,
        "verify": cmd_verify,
    }
    commands[args.command](args, settings)
    audit("cli.done", logger=log, command=args.command)


if __name__ == "__main__":
    main()
