"""CLI entry point for ofxmend.

Commands:
    ofxmend convert FILE [-o OUT]    Write FILE as OFX 2.x XML (stdout by default)
    ofxmend header FILE              Print the header block as KEY: VALUE
    ofxmend inspect FILE             Version, format, institution, transaction count
    ofxmend watch                    Convert files dropped into the watch folder
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
import time
from pathlib import Path

from ofxmend.parsers.base import MalformedMarkupError, OfxParseError

logger = logging.getLogger(__name__)


def _setup_logging() -> None:
    """Configure logging based on OFXMEND_LOG_LEVEL env var."""
    level = os.environ.get("OFXMEND_LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def _get_config():
    """Load config from OFXMEND_CONFIG_DIR, or None to use built-in defaults."""
    from ofxmend.config import Config

    config_dir = Path(os.environ.get("OFXMEND_CONFIG_DIR", "config"))
    if not config_dir.is_dir():
        logger.debug("No config directory at %s; using defaults", config_dir)
        return None
    return Config(config_dir=config_dir)


def _get_loader(config=None):
    from ofxmend.parsers.loader import OfxLoader

    if config is None:
        return OfxLoader()
    return OfxLoader.from_config(config)


def _get_watch_dir() -> Path:
    """Get the watch directory from env or default."""
    return Path(os.environ.get("OFXMEND_WATCH_DIR", "import"))


def _get_output_dir() -> Path:
    """Get the converted-files directory from env or default."""
    return Path(os.environ.get("OFXMEND_OUTPUT_DIR", "converted"))


def _load_or_report(path: Path):
    """Load a document, printing the failure and returning None on error."""
    loader = _get_loader(_get_config())
    try:
        return loader.load_file(path)
    except MalformedMarkupError as e:
        print(f"Error: {path.name}: {e.args[0]}")
        for diag in e.diagnostics:
            print(f"  {diag}")
        return None
    except OfxParseError as e:
        print(f"Error: {e}")
        return None


# ── Command handlers ─────────────────────────────────────


def cmd_convert(args: argparse.Namespace) -> int:
    """Convert one file to OFX 2.x XML."""
    from ofxmend.parsers.loader import render_xml

    doc = _load_or_report(args.file)
    if doc is None:
        return 1

    xml = render_xml(doc)
    if args.output:
        args.output.write_text(xml, encoding="utf-8")
        print(f"Wrote {args.output}")
    else:
        sys.stdout.write(xml)
    return 0


def cmd_header(args: argparse.Namespace) -> int:
    """Print the header map."""
    doc = _load_or_report(args.file)
    if doc is None:
        return 1

    for key, value in doc.header.items():
        print(f"{key}: {value}")
    return 0


def cmd_inspect(args: argparse.Namespace) -> int:
    """Print a short summary of a document."""
    doc = _load_or_report(args.file)
    if doc is None:
        return 1

    org, fid, bank_id = doc.institution
    print(f"{args.file.name}")
    print("=" * 40)
    print(f"  Format:        OFX {'2.x (XML)' if doc.is_xml else '1.x (SGML)'}")
    print(f"  Version:       {doc.version or 'n/a'}")
    print(f"  Institution:   {org or 'n/a'} (FID {fid or 'n/a'})")
    print(f"  Bank ID:       {bank_id or 'n/a'}")
    print(f"  Transactions:  {len(doc.transactions):,}")
    return 0


def cmd_watch(args: argparse.Namespace) -> int:
    """Start the file watcher daemon."""
    from ofxmend.watcher.observer import ConversionPipeline, FileWatcher

    config = _get_config()
    pipeline = ConversionPipeline(
        loader=_get_loader(config),
        output_dir=_get_output_dir(),
    )

    settings = {}
    if config is not None:
        settings = {
            "extensions": config.watch_extensions,
            "stability_seconds": config.stability_seconds,
            "poll_interval": config.poll_interval,
        }
    watcher = FileWatcher(
        watch_dir=_get_watch_dir(),
        pipeline=pipeline,
        **settings,
    )

    print(f"Watching {watcher.watch_dir} for OFX files... (Ctrl+C to stop)")
    watcher.start()

    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        print("\nStopping watcher...")
    finally:
        watcher.stop()

    return 0


# ── Main entry point ─────────────────────────────────────


_COMMANDS = {
    "convert": cmd_convert,
    "header": cmd_header,
    "inspect": cmd_inspect,
    "watch": cmd_watch,
}


def main(argv: list[str] | None = None):
    _setup_logging()

    parser = argparse.ArgumentParser(
        prog="ofxmend",
        description="Repair OFX 1.x SGML statements into well-formed XML",
    )
    subparsers = parser.add_subparsers(dest="command")

    # convert
    convert_p = subparsers.add_parser("convert", help="Convert an OFX/QFX file to OFX 2.x XML")
    convert_p.add_argument("file", type=Path, help="OFX/QFX file to convert")
    convert_p.add_argument("-o", "--output", type=Path, help="Output file (default: stdout)")

    # header
    header_p = subparsers.add_parser("header", help="Print the OFX header block")
    header_p.add_argument("file", type=Path, help="OFX/QFX file")

    # inspect
    inspect_p = subparsers.add_parser("inspect", help="Summarize an OFX/QFX file")
    inspect_p.add_argument("file", type=Path, help="OFX/QFX file")

    # watch
    subparsers.add_parser("watch", help="Start file watcher daemon")

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    handler = _COMMANDS.get(args.command)
    if handler is None:
        print(f"Unknown command: {args.command}")
        sys.exit(1)

    sys.exit(handler(args))


if __name__ == "__main__":
    main()
