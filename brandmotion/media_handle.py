"""Playable result handles with an explicit release."""

from __future__ import annotations

import contextlib
import os
import tempfile
from pathlib import Path
from typing import Optional

from .utils.logger import logger


class MediaHandle:
    """Owns an encoded media blob and, once ``url`` is read, a temp file backing it.

    Every handle must be released by whoever owns it (``release()`` or a
    ``with`` block). Releasing twice is harmless.
    """

    def __init__(self, data: bytes, mime_type: str = "video/mp4", suffix: str = ".mp4"):
        if not data:
            raise ValueError("MediaHandle needs non-empty data.")
        self._data: Optional[bytes] = bytes(data)
        self.mime_type = mime_type
        self.suffix = suffix if suffix.startswith(".") else f".{suffix}"
        self.size = len(self._data)
        self._path: Optional[Path] = None
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    @property
    def data(self) -> bytes:
        if self._data is None:
            raise RuntimeError("MediaHandle has been released.")
        return self._data

    @property
    def path(self) -> Path:
        """Temp file holding the data, written on first access."""
        if self._released:
            raise RuntimeError("MediaHandle has been released.")
        if self._path is None:
            fd, name = tempfile.mkstemp(prefix="brandmotion_", suffix=self.suffix)
            with os.fdopen(fd, "wb") as f:
                f.write(self.data)
            self._path = Path(name)
        return self._path

    @property
    def url(self) -> str:
        return self.path.resolve().as_uri()

    def save(self, destination) -> Path:
        """Copy the media to ``destination`` and return the written path."""
        dest = Path(destination)
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_bytes(self.data)
        return dest

    def release(self) -> None:
        if self._released:
            return
        self._released = True
        self._data = None
        if self._path is not None:
            with contextlib.suppress(FileNotFoundError):
                self._path.unlink()
            logger.debug(f"Released media handle {self._path}")
            self._path = None

    def __enter__(self) -> "MediaHandle":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()

    def __repr__(self) -> str:
        state = "released" if self._released else f"{self.size} bytes"
        return f"MediaHandle({self.mime_type}, {state})"
