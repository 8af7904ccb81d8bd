# backend/academy/storage.py
"""
Local object storage for uploaded content files, plus HTTP Range parsing for
streaming downloads (video lectures are served as 206 partial content).
"""

import os
import re
import shutil
import uuid
from pathlib import Path
from typing import BinaryIO, Iterator, Optional, Tuple

from . import config

CHUNK_SIZE = 64 * 1024
_RANGE_RE = re.compile(r"^bytes=(\d*)-(\d*)$")
_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


class RangeNotSatisfiable(Exception):
    def __init__(self, size: int):
        self.size = size
        super().__init__(f"Requested range not satisfiable for {size} bytes")


def storage_root() -> Path:
    root = Path(config.OBJECT_STORAGE_DIR)
    root.mkdir(parents=True, exist_ok=True)
    return root


def safe_name(filename: str) -> str:
    base = os.path.basename(filename or "") or "file"
    return _UNSAFE_CHARS.sub("_", base)[:120]


def save_object(stream: BinaryIO, filename: str, prefix: str = "content") -> Tuple[str, int]:
    """Copy an upload into storage. Returns (object key, size in bytes)."""
    key = f"{prefix}/{uuid.uuid4().hex}-{safe_name(filename)}"
    path = storage_root() / key
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "wb") as fh:
        shutil.copyfileobj(stream, fh, CHUNK_SIZE)
    return key, path.stat().st_size


def object_path(key: str) -> Path:
    root = storage_root().resolve()
    path = (root / key).resolve()
    if root not in path.parents:
        raise FileNotFoundError(key)
    return path


def delete_object(key: str) -> bool:
    try:
        object_path(key).unlink()
        return True
    except FileNotFoundError:
        return False


def parse_range(header: Optional[str], size: int) -> Optional[Tuple[int, int]]:
    """
    Parse a single "bytes=start-end" range into inclusive offsets.
    Returns None when there is no usable Range header (serve the whole object).
    """
    if not header:
        return None
    match = _RANGE_RE.match(header.strip())
    if not match:
        return None
    start_s, end_s = match.groups()
    if not start_s and not end_s:
        return None
    if not start_s:
        # suffix range: the last N bytes
        length = int(end_s)
        if length == 0 or size == 0:
            raise RangeNotSatisfiable(size)
        return max(size - length, 0), size - 1
    start = int(start_s)
    end = int(end_s) if end_s else size - 1
    if start >= size or end < start:
        raise RangeNotSatisfiable(size)
    return start, min(end, size - 1)


def iter_object(path: Path, start: int = 0, end: Optional[int] = None) -> Iterator[bytes]:
    remaining = None if end is None else end - start + 1
    with open(path, "rb") as fh:
        fh.seek(start)
        while remaining is None or remaining > 0:
            size = CHUNK_SIZE if remaining is None else min(CHUNK_SIZE, remaining)
            chunk = fh.read(size)
            if not chunk:
                break
            if remaining is not None:
                remaining -= len(chunk)
            yield chunk
