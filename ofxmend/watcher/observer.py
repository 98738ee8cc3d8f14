"""Drop-folder converter: PollingObserver + ConversionPipeline.

Bank exports land in the watch folder, often written slowly over a NAS
share or saved under a temporary name and renamed. Each OFX/QFX file is
converted once it has stopped changing:
  detect → stable → <OFX> check → load → render → write <stem>.xml

Files already in the folder when the watcher starts are converted too,
unless their .xml output is newer than the source.

PollingObserver is used because inotify events do not cross NAS/Docker
volume mounts.
"""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

from watchdog.events import FileSystemEventHandler

from ofxmend.config import (
    DEFAULT_POLL_INTERVAL,
    DEFAULT_STABILITY_SECONDS,
    DEFAULT_WATCH_EXTENSIONS,
)
from ofxmend.parsers.base import MalformedMarkupError, OfxParseError
from ofxmend.parsers.loader import OfxLoader, render_xml

logger = logging.getLogger(__name__)

DEFAULT_CHECK_INTERVAL = 2.0

OFX_ROOT_BYTES_RE = re.compile(rb'<OFX>', re.IGNORECASE)


@dataclass
class ConversionResult:
    """Outcome of converting one dropped file."""
    file_name: str
    status: str  # "success", "error"
    output_path: Path | None = None
    transaction_count: int = 0
    diagnostic_count: int = 0
    error_message: str | None = None


class FileStabilityError(Exception):
    """The dropped file is not a complete OFX export."""


# ── Drop detection ───────────────────────────────────────


def wait_for_stable(
    filepath: Path,
    stability_seconds: int = DEFAULT_STABILITY_SECONDS,
    check_interval: float = DEFAULT_CHECK_INTERVAL,
    max_wait: float = 300.0,
) -> int:
    """Block until the exporter has finished writing filepath.

    The file is finished once its (size, mtime) pair has stayed the same
    for stability_seconds. Returns the final size in bytes.

    Raises:
        TimeoutError: If the file is still changing after max_wait seconds.
    """
    deadline = time.monotonic() + max_wait
    last: tuple[int, float] | None = None
    unchanged_since: float | None = None

    while time.monotonic() <= deadline:
        st = filepath.stat()
        current = (st.st_size, st.st_mtime)
        now = time.monotonic()
        if current != last:
            last, unchanged_since = current, None
        elif unchanged_since is None:
            unchanged_since = now
        elif now - unchanged_since >= stability_seconds:
            logger.debug("%s stable at %d bytes", filepath.name, current[0])
            return current[0]
        time.sleep(check_interval)

    raise TimeoutError(f"File did not stabilize within {max_wait}s: {filepath}")


def validate_file_completeness(filepath: Path) -> None:
    """Reject drops that cannot be OFX: empty files and files with no <OFX>.

    A missing </OFX> is accepted; plenty of exporters leave it out.

    Raises:
        FileStabilityError: If the file is empty or has no <OFX> element.
    """
    raw = filepath.read_bytes()
    if not raw.strip():
        raise FileStabilityError(f"Empty OFX file: {filepath}")
    if OFX_ROOT_BYTES_RE.search(raw) is None:
        raise FileStabilityError(f"OFX file missing <OFX> tag: {filepath}")


# ── Conversion pipeline ──────────────────────────────────


class ConversionPipeline:
    """Load a statement and write it out as OFX 2.x XML.

    Args:
        loader: OfxLoader used to parse each file.
        output_dir: Directory receiving the converted .xml files.
    """

    def __init__(self, loader: OfxLoader, output_dir: Path):
        self.loader = loader
        self.output_dir = Path(output_dir)

    def output_path_for(self, filepath: Path) -> Path:
        return self.output_dir / f"{filepath.stem}.xml"

    def is_converted(self, filepath: Path) -> bool:
        """True when the .xml output exists and is not older than filepath."""
        output = self.output_path_for(filepath)
        if not output.exists():
            return False
        return output.stat().st_mtime >= filepath.stat().st_mtime

    def process_file(self, filepath: Path) -> ConversionResult:
        """Convert one file. Load failures are reported in the result."""
        file_name = filepath.name
        try:
            document = self.loader.load_file(filepath)
        except MalformedMarkupError as e:
            logger.error("Malformed markup in %s: %s", file_name, e)
            return ConversionResult(
                file_name=file_name,
                status="error",
                diagnostic_count=len(e.diagnostics),
                error_message=str(e),
            )
        except OfxParseError as e:
            logger.error("Could not load %s: %s", file_name, e)
            return ConversionResult(
                file_name=file_name, status="error", error_message=str(e),
            )

        self.output_dir.mkdir(parents=True, exist_ok=True)
        output_path = self.output_path_for(filepath)
        output_path.write_text(render_xml(document), encoding="utf-8")
        logger.info("Wrote %s", output_path)

        return ConversionResult(
            file_name=file_name,
            status="success",
            output_path=output_path,
            transaction_count=len(document.transactions),
        )


# ── Drop-folder watcher ──────────────────────────────────


class FileWatcher(FileSystemEventHandler):
    """Convert OFX/QFX files as they appear in a drop folder.

    Handles both files written in place (created events) and files saved
    under a temporary name then renamed (moved events). Conversion runs
    sequentially in the observer thread.

    Args:
        watch_dir: Drop folder.
        pipeline: ConversionPipeline doing the conversion.
        extensions: File suffixes to pick up (case-insensitive).
        stability_seconds: Seconds a file must stay unchanged.
        check_interval: Seconds between stability checks.
        poll_interval: Seconds between directory polls.
    """

    def __init__(
        self,
        watch_dir: Path,
        pipeline: ConversionPipeline,
        extensions: Iterable[str] = DEFAULT_WATCH_EXTENSIONS,
        stability_seconds: int = DEFAULT_STABILITY_SECONDS,
        check_interval: float = DEFAULT_CHECK_INTERVAL,
        poll_interval: int = DEFAULT_POLL_INTERVAL,
    ):
        self.watch_dir = Path(watch_dir)
        self.pipeline = pipeline
        self.extensions = {e.lower() for e in extensions}
        self.stability_seconds = stability_seconds
        self.check_interval = check_interval
        self.poll_interval = poll_interval
        self._observer = None

    def is_statement(self, filepath: Path) -> bool:
        """OFX/QFX by suffix, ignoring hidden and partial-download files."""
        return (
            filepath.suffix.lower() in self.extensions
            and not filepath.name.startswith(".")
        )

    def convert_existing(self) -> list[ConversionResult]:
        """Convert statements already in the drop folder and not yet converted."""
        results = []
        for filepath in sorted(self.watch_dir.iterdir()):
            if not filepath.is_file() or not self.is_statement(filepath):
                continue
            if self.pipeline.is_converted(filepath):
                logger.debug("Skipping %s: already converted", filepath.name)
                continue
            results.append(self.convert(filepath))
        return results

    def start(self) -> None:
        """Convert pending drops, then start polling the folder."""
        from watchdog.observers.polling import PollingObserver

        self.watch_dir.mkdir(parents=True, exist_ok=True)
        pending = self.convert_existing()
        if pending:
            logger.info("Converted %d file(s) already in %s", len(pending), self.watch_dir)

        observer = PollingObserver(timeout=self.poll_interval)
        observer.schedule(self, str(self.watch_dir), recursive=False)
        observer.start()
        self._observer = observer
        logger.info("Watching %s every %ds", self.watch_dir, self.poll_interval)

    def stop(self) -> None:
        if self._observer is None:
            return
        self._observer.stop()
        self._observer.join()
        self._observer = None
        logger.info("Stopped watching %s", self.watch_dir)

    def on_created(self, event) -> None:
        if not event.is_directory:
            self._dropped(Path(event.src_path))

    def on_moved(self, event) -> None:
        # Browser downloads and some exporters rename a temp file into place
        if not event.is_directory:
            self._dropped(Path(event.dest_path))

    def _dropped(self, filepath: Path) -> None:
        if not self.is_statement(filepath):
            return
        logger.info("New statement: %s", filepath.name)
        self.convert(filepath)

    def convert(self, filepath: Path) -> ConversionResult:
        """Wait for the drop to settle, check it, then convert it."""
        try:
            wait_for_stable(
                filepath,
                stability_seconds=self.stability_seconds,
                check_interval=self.check_interval,
            )
            validate_file_completeness(filepath)
        except (FileStabilityError, TimeoutError, OSError) as e:
            logger.error("Not converting %s: %s", filepath.name, e)
            return ConversionResult(
                file_name=filepath.name, status="error", error_message=str(e),
            )

        try:
            result = self.pipeline.process_file(filepath)
        except Exception as e:
            logger.exception("Unexpected error converting %s", filepath.name)
            return ConversionResult(
                file_name=filepath.name, status="error", error_message=str(e),
            )

        logger.info(
            "%s: %s (%d transactions)",
            filepath.name, result.status, result.transaction_count,
        )
        return result
