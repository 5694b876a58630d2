"""Polling directory watcher that feeds export files to the processor."""

from __future__ import annotations

import fnmatch
import re
import shutil
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, Optional

from cep.config import Settings
from cep.ingestion.filenames import get_files_to_skip, get_unparseable_filenames, parse_filename
from cep.ingestion.processor import DocumentProcessor
from cep.utils.hashing import file_key
from cep.utils.logging import get_logger


logger = get_logger(__name__)

PROCESSED_DIR = "processed"
FAILED_DIR = "failed"


class SeenFileCache:
    """Bounded set of file keys; the oldest key is evicted first."""

    def __init__(self, capacity: int = 1000) -> None:
        self.capacity = capacity
        self._keys: OrderedDict[str, float] = OrderedDict()

    def __contains__(self, key: str) -> bool:
        return key in self._keys

    def __len__(self) -> int:
        return len(self._keys)

    def add(self, key: str) -> None:
        self._keys[key] = time.time()
        self._keys.move_to_end(key)
        while len(self._keys) > self.capacity:
            self._keys.popitem(last=False)


@dataclass
class ScanSummary:
    candidates: int = 0
    processed: int = 0
    failed: int = 0
    skipped: int = 0
    superseded: int = 0
    unparseable: int = 0


def compile_pattern(pattern: str) -> re.Pattern[str]:
    """Translate a shell glob into a case-insensitive regex."""
    return re.compile(fnmatch.translate(pattern), re.IGNORECASE)


def order_candidates(paths: Iterable[Path]) -> list[Path]:
    """Oldest filename timestamp first, then unparseable names by name."""
    dated: list[tuple[int, str, Path]] = []
    undated: list[Path] = []
    for path in paths:
        parsed = parse_filename(path.name)
        if parsed is None:
            undated.append(path)
        else:
            dated.append((parsed.timestamp_ordinal, path.name, path))
    dated.sort(key=lambda item: (item[0], item[1]))
    return [item[2] for item in dated] + sorted(undated, key=lambda path: path.name)


def unique_destination(directory: Path, name: str) -> Path:
    """Return a free path in directory, appending _1, _2, ... before the extension."""
    candidate = directory / name
    stem, suffix = Path(name).stem, Path(name).suffix
    counter = 1
    while candidate.exists():
        candidate = directory / f"{stem}_{counter}{suffix}"
        counter += 1
    return candidate


class DirectoryWatcher:
    """Scan the watch folder, dispatch stable files, and file them away by outcome."""

    def __init__(
        self,
        settings: Settings,
        processor: DocumentProcessor,
        stop_event: Optional[threading.Event] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.settings = settings
        self.processor = processor
        self.stop_event = stop_event or threading.Event()
        self._sleep = sleep
        self.folder = Path(settings.watch_folder)
        self.processed_dir = self.folder / PROCESSED_DIR
        self.failed_dir = self.folder / FAILED_DIR
        self._pattern = compile_pattern(settings.watcher_file_pattern)
        self.seen = SeenFileCache(settings.watcher_seen_capacity)

    def run(self, max_cycles: Optional[int] = None) -> None:
        """Poll until the stop event is set (or max_cycles scans have run)."""
        logger.info(
            "watcher.start folder=%s interval=%s pattern=%s latest_only=%s",
            self.folder,
            self.settings.watcher_interval,
            self.settings.watcher_file_pattern,
            self.settings.watcher_latest_only,
        )
        cycles = 0
        while not self.stop_event.is_set():
            summary = self.scan_once()
            if summary.processed or summary.failed or summary.superseded:
                logger.info(
                    "watcher.scan processed=%s failed=%s skipped=%s superseded=%s unparseable=%s",
                    summary.processed,
                    summary.failed,
                    summary.skipped,
                    summary.superseded,
                    summary.unparseable,
                )
            cycles += 1
            if max_cycles is not None and cycles >= max_cycles:
                break
            self.stop_event.wait(self.settings.watcher_interval)
        logger.info("watcher.stop cycles=%s", cycles)

    def scan_once(self) -> ScanSummary:
        summary = ScanSummary()
        candidates = self.list_candidates()
        summary.candidates = len(candidates)

        if self.settings.watcher_latest_only:
            candidates = self._resolve_versions(candidates, summary)

        for path in candidates:
            if self.stop_event.is_set():
                break
            self._dispatch(path, summary)
        return summary

    def list_candidates(self) -> list[Path]:
        """Regular files directly under the watch folder whose names match the pattern."""
        if not self.folder.is_dir():
            logger.warning("watcher.folder_missing folder=%s", self.folder)
            return []
        paths = [
            entry
            for entry in self.folder.iterdir()
            if entry.is_file() and self._pattern.match(entry.name)
        ]
        return order_candidates(paths)

    def _resolve_versions(self, candidates: list[Path], summary: ScanSummary) -> list[Path]:
        names = [path.name for path in candidates]
        unparseable = set(get_unparseable_filenames(names))
        superseded = set(get_files_to_skip(names))

        remaining: list[Path] = []
        for path in candidates:
            if path.name in unparseable:
                logger.warning("watcher.unparseable filename=%s", path.name)
                self._move(path, self.failed_dir)
                summary.unparseable += 1
            elif path.name in superseded:
                logger.info("watcher.superseded filename=%s", path.name)
                self._move(path, self.processed_dir)
                summary.superseded += 1
            else:
                remaining.append(path)
        return remaining

    def _dispatch(self, path: Path, summary: ScanSummary) -> None:
        try:
            stat = path.stat()
        except FileNotFoundError:
            summary.skipped += 1
            return

        key = file_key(str(path), stat.st_size, stat.st_mtime)
        if key in self.seen:
            logger.debug("watcher.seen filename=%s", path.name)
            summary.skipped += 1
            return

        if not self._is_stable(path, stat.st_size):
            logger.debug("watcher.unstable filename=%s", path.name)
            summary.skipped += 1
            return

        self.seen.add(key)
        try:
            result = self.processor.process_file(path)
        except Exception:
            logger.exception("watcher.dispatch_failed filename=%s", path.name)
            self._move(path, self.failed_dir)
            summary.failed += 1
            return

        if result.success:
            self._move(path, self.processed_dir)
            summary.processed += 1
        else:
            self._move(path, self.failed_dir)
            summary.failed += 1

    def _is_stable(self, path: Path, size: int) -> bool:
        self._sleep(self.settings.watcher_stability_seconds)
        try:
            return path.stat().st_size == size
        except FileNotFoundError:
            return False

    def _move(self, path: Path, directory: Path) -> Optional[Path]:
        try:
            directory.mkdir(parents=True, exist_ok=True)
            destination = unique_destination(directory, path.name)
            shutil.move(str(path), str(destination))
        except OSError as exc:
            logger.error(
                "watcher.move_failed filename=%s target=%s error=%s", path.name, directory, exc
            )
            return None
        logger.debug("watcher.moved filename=%s target=%s", path.name, destination)
        return destination
