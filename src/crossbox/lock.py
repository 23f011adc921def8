"""Advisory lock on a project's output directory.

Two containerized invocations against the same output directory would race on
cargo's build artifacts; holding this lock for the lifetime of a container makes
them take turns.
"""

from __future__ import annotations

import fcntl
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

LOCK_FILE_NAME = ".crossbox.lock"


@contextmanager
def output_lock(directory: Path) -> Iterator[Path]:
    """Hold an exclusive flock on <directory>/.crossbox.lock, blocking until it is free."""
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / LOCK_FILE_NAME
    with open(path, "a+", encoding="utf-8") as f:
        try:
            fcntl.flock(f.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            print(f"⏳ Waiting for lock on {directory} (another crossbox run)...", file=sys.stderr)
            fcntl.flock(f.fileno(), fcntl.LOCK_EX)
        try:
            yield path
        finally:
            fcntl.flock(f.fileno(), fcntl.LOCK_UN)
