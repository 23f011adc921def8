"""Host emulation check: is a binfmt_misc handler registered for a foreign architecture?"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

BINFMT_DIR = Path("/proc/sys/fs/binfmt_misc")

EmulationCheck = Callable[[str], bool]


def handler_name(qemu_arch: str) -> str:
    return f"qemu-{qemu_arch}"


def binfmt_available(qemu_arch: str, binfmt_dir: Path = BINFMT_DIR) -> bool:
    """True when binfmt_misc has an enabled handler named qemu-<arch>."""
    entry = binfmt_dir / handler_name(qemu_arch)
    try:
        text = entry.read_text()
    except OSError:
        return False
    return text.splitlines()[:1] == ["enabled"]
