"""Container engine adapter (docker or podman): reachability, images, teardown."""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import sys

from crossbox.errors import ExecutionBackendError

log = logging.getLogger(__name__)

SUPPORTED_ENGINES = ("docker", "podman")


def detect_engine(preferred: str | None = None) -> str:
    """Path of the engine binary: preferred (name or path) if given, else docker, else podman."""
    candidates = [preferred] if preferred else list(SUPPORTED_ENGINES)
    for name in candidates:
        path = shutil.which(name)
        if path:
            return path
    msg = "no container engine found"
    detail = f"{preferred} is not on PATH" if preferred else "install docker or podman"
    raise ExecutionBackendError(msg, detail)


def host_user() -> str | None:
    """uid:gid so files written to read-write mounts stay owned by the invoking user."""
    if not hasattr(os, "getuid"):
        return None
    return f"{os.getuid()}:{os.getgid()}"


class ContainerEngine:
    def __init__(self, binary: str) -> None:
        self.binary = binary

    @classmethod
    def detect(cls, preferred: str | None = None) -> ContainerEngine:
        return cls(detect_engine(preferred))

    def _run(self, *args: str, detached: bool = False) -> subprocess.CompletedProcess[str]:
        return subprocess.run(
            [self.binary, *args], capture_output=True, text=True, start_new_session=detached
        )

    def check_reachable(self) -> None:
        """Raise ExecutionBackendError if the engine (daemon) cannot be reached."""
        r = self._run("info")
        if r.returncode != 0:
            msg = f"container engine {self.binary} is not reachable"
            raise ExecutionBackendError(msg, r.stderr or r.stdout or "")

    def ensure_image(self, image: str) -> None:
        """Use the local image if present, else pull it. Raises ExecutionBackendError."""
        if self._run("image", "inspect", image).returncode == 0:
            return
        print(f"📥 Pulling {image}...", file=sys.stderr)
        r = self._run("pull", image)
        if r.returncode != 0:
            msg = f"image {image} is not available"
            raise ExecutionBackendError(msg, r.stderr or r.stdout or "")

    def remove(self, name: str) -> None:
        """Force-remove a container by name. Missing containers are not an error."""
        # Own session: a second Ctrl-C at the terminal must not cut teardown short.
        r = self._run("rm", "-f", name, detached=True)
        if r.returncode != 0:
            log.debug("%s rm -f %s: %s", self.binary, name, (r.stderr or "").strip())
