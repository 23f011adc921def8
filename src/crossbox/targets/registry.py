"""Known target triples and the container image that serves each of them.

The table is fixed at build time. ``DEFAULT_REGISTRY`` wraps it in a read-only
mapping; callers that need per-project image overrides get a new registry from
``with_images`` and pass it along explicitly.

Images supply the C cross toolchain, linker and qemu for a target. They carry
no Rust toolchain: the host's sysroot is mounted read-only at ``/rust`` and put
first on PATH inside the container. The default images ship no OpenSSL either;
a target's ``openssl_dir`` is set only through configuration, for custom images
that install one.
"""

from __future__ import annotations

import logging
import platform
import shutil
import subprocess
import sys
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, replace
from types import MappingProxyType

from crossbox.errors import UnsupportedTargetError

log = logging.getLogger(__name__)

IMAGE_REGISTRY = "ghcr.io/cross-rs"
IMAGE_VERSION = "0.2.5"


@dataclass(frozen=True)
class TargetSpec:
    triple: str
    image: str
    native_test: bool
    requires_emulation: bool
    qemu_arch: str | None = None
    # Prefix inside the image where OpenSSL is installed, when the image ships one.
    openssl_dir: str | None = None

    @property
    def env_key(self) -> str:
        """Triple in the form cargo uses for per-target variables (CARGO_TARGET_<KEY>_*)."""
        return self.triple.upper().replace("-", "_").replace(".", "_")


# (triple, qemu arch or None when the image runs the target natively, can run tests)
_TARGET_TABLE: tuple[tuple[str, str | None, bool], ...] = (
    ("aarch64-unknown-linux-gnu", "aarch64", True),
    ("aarch64-unknown-linux-musl", "aarch64", True),
    ("arm-unknown-linux-gnueabi", "arm", True),
    ("arm-unknown-linux-gnueabihf", "arm", True),
    ("armv5te-unknown-linux-gnueabi", "arm", True),
    ("armv7-unknown-linux-gnueabihf", "arm", True),
    ("armv7-unknown-linux-musleabihf", "arm", True),
    ("i586-unknown-linux-gnu", None, True),
    ("i686-unknown-linux-gnu", None, True),
    ("i686-unknown-linux-musl", None, True),
    ("mips-unknown-linux-gnu", "mips", True),
    ("mipsel-unknown-linux-gnu", "mipsel", True),
    ("mips64-unknown-linux-gnuabi64", "mips64", True),
    ("mips64el-unknown-linux-gnuabi64", "mips64el", True),
    ("powerpc-unknown-linux-gnu", "ppc", True),
    ("powerpc64-unknown-linux-gnu", "ppc64", True),
    ("powerpc64le-unknown-linux-gnu", "ppc64le", True),
    ("riscv64gc-unknown-linux-gnu", "riscv64", True),
    # s390x test binaries hang under qemu; build only.
    ("s390x-unknown-linux-gnu", "s390x", False),
    ("sparc64-unknown-linux-gnu", "sparc64", False),
    ("x86_64-unknown-linux-gnu", None, True),
    ("x86_64-unknown-linux-musl", None, True),
    ("x86_64-unknown-freebsd", None, False),
    ("x86_64-unknown-netbsd", None, False),
    ("x86_64-pc-windows-gnu", None, False),
    ("thumbv6m-none-eabi", None, False),
    ("thumbv7em-none-eabi", None, False),
    ("thumbv7em-none-eabihf", None, False),
    ("thumbv7m-none-eabi", None, False),
    ("wasm32-unknown-emscripten", None, False),
)


def _image_for(triple: str) -> str:
    return f"{IMAGE_REGISTRY}/{triple}:{IMAGE_VERSION}"


class TargetRegistry(Mapping[str, TargetSpec]):
    """Immutable triple -> TargetSpec table. Lookup is exact-match only."""

    def __init__(self, specs: Mapping[str, TargetSpec]) -> None:
        self._specs = MappingProxyType(dict(specs))

    def __getitem__(self, triple: str) -> TargetSpec:
        return self._specs[triple]

    def __iter__(self) -> Iterator[str]:
        return iter(self._specs)

    def __len__(self) -> int:
        return len(self._specs)

    def lookup(self, triple: str) -> TargetSpec:
        spec = self._specs.get(triple)
        if spec is None:
            raise UnsupportedTargetError(triple)
        return spec

    def with_images(self, images: Mapping[str, str]) -> TargetRegistry:
        """Return a new registry with image references replaced for known triples.

        Overrides for triples not in the table are ignored with a warning; they never
        introduce new targets.
        """
        specs = dict(self._specs)
        for triple, image in images.items():
            if triple not in specs:
                log.warning("image override for unknown target %s ignored", triple)
                continue
            specs[triple] = replace(specs[triple], image=image)
        return TargetRegistry(specs)


def _build_default() -> TargetRegistry:
    specs = {
        triple: TargetSpec(
            triple=triple,
            image=_image_for(triple),
            native_test=native_test,
            requires_emulation=qemu_arch is not None,
            qemu_arch=qemu_arch,
        )
        for triple, qemu_arch, native_test in _TARGET_TABLE
    }
    return TargetRegistry(specs)


DEFAULT_REGISTRY = _build_default()


# --- Host ---

_MACHINE_ARCH = {
    "x86_64": "x86_64",
    "amd64": "x86_64",
    "aarch64": "aarch64",
    "arm64": "aarch64",
    "armv7l": "armv7",
    "i386": "i686",
    "i686": "i686",
    "ppc64le": "powerpc64le",
    "s390x": "s390x",
    "riscv64": "riscv64gc",
}


def _host_from_platform() -> str:
    machine = platform.machine().lower()
    arch = _MACHINE_ARCH.get(machine, machine)
    if sys.platform == "darwin":
        return f"{arch}-apple-darwin"
    if sys.platform == "win32":
        return f"{arch}-pc-windows-msvc"
    if arch == "armv7":
        return "armv7-unknown-linux-gnueabihf"
    return f"{arch}-unknown-linux-gnu"


def host_triple() -> str:
    """Host triple as reported by `rustc -vV`, falling back to platform detection."""
    if shutil.which("rustc"):
        r = subprocess.run(["rustc", "-vV"], capture_output=True, text=True)
        if r.returncode == 0:
            for line in r.stdout.splitlines():
                if line.startswith("host:"):
                    return line.split(":", 1)[1].strip()
        log.debug("rustc -vV gave no host line; using platform detection")
    return _host_from_platform()
