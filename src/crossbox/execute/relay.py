"""Forward a child's stdout and stderr to ours, each on its own thread."""

from __future__ import annotations

import threading
from typing import IO


def _pump(src: IO[bytes], dst: IO[bytes]) -> None:
    try:
        while True:
            chunk = src.read1(65536) if hasattr(src, "read1") else src.read(65536)
            if not chunk:
                break
            dst.write(chunk)
            dst.flush()
    finally:
        src.close()


class StreamRelay:
    """Copies byte streams concurrently so neither pipe can fill up and block the child."""

    def __init__(self, pairs: list[tuple[IO[bytes], IO[bytes]]]) -> None:
        self._threads = [
            threading.Thread(target=_pump, args=(src, dst), daemon=True) for src, dst in pairs
        ]

    def start(self) -> StreamRelay:
        for t in self._threads:
            t.start()
        return self

    def join(self) -> None:
        for t in self._threads:
            t.join()
