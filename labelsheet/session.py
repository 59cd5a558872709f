"""
Download Session
================
Owns the transient files that expose generated outputs for download.

Outputs are written once into a session-scoped temporary directory and
handed to a download sink as often as requested. Nothing is removed per
download; everything is released together when the session is cleared or
closed.
"""

from __future__ import annotations

import logging
import shutil
import tempfile
from pathlib import Path
from typing import Callable, Optional

logger = logging.getLogger(__name__)

# (exposed file, download filename) -> None
DownloadSink = Callable[[Path, str], None]


class DownloadSession:
    """Registry of exposed download handles, scoped to one session."""

    def __init__(self, base_dir: Optional[str] = None):
        self.base_dir = base_dir
        self._tmp_dir: Optional[Path] = None
        self._handles: dict[str, Path] = {}

    def __enter__(self) -> "DownloadSession":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.release_all()

    def __len__(self) -> int:
        return len(self._handles)

    def __contains__(self, filename: str) -> bool:
        return filename in self._handles

    @property
    def handles(self) -> dict[str, Path]:
        return dict(self._handles)

    def _ensure_dir(self) -> Path:
        if self._tmp_dir is None:
            self._tmp_dir = Path(
                tempfile.mkdtemp(prefix="labelsheet-", dir=self.base_dir)
            )
        return self._tmp_dir

    def register(self, filename: str, path: Path) -> Path:
        """Track an already existing handle for later release."""
        self._handles[filename] = Path(path)
        return self._handles[filename]

    def expose(self, filename: str, data: bytes) -> Path:
        """Return a file holding `data`, creating it on first request."""
        existing = self._handles.get(filename)
        if existing is not None and existing.exists():
            return existing

        path = self._ensure_dir() / Path(filename).name
        path.write_bytes(data)
        logger.debug(f"Exposed {filename} ({len(data) / 1024:.0f} KB)")
        return self.register(filename, path)

    def release_all(self) -> int:
        """Release every handle. Returns how many were released."""
        released = 0
        for filename, path in self._handles.items():
            try:
                path.unlink(missing_ok=True)
                released += 1
            except OSError as e:
                logger.warning(f"Could not release {filename}: {e}")
        self._handles.clear()

        if self._tmp_dir is not None:
            shutil.rmtree(self._tmp_dir, ignore_errors=True)
            self._tmp_dir = None

        if released:
            logger.info(f"Released {released} download handle(s)")
        return released


class DirectorySink:
    """Download sink that copies exposed files into an output directory."""

    def __init__(self, output_dir: str):
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.delivered: list[Path] = []

    def __call__(self, path: Path, filename: str):
        dest = self.output_dir / filename
        shutil.copyfile(path, dest)
        self.delivered.append(dest)
        logger.info(f"Saved: {dest}")
