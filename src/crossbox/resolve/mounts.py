"""Filesystem mounts for a containerized invocation."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from pathlib import Path, PurePosixPath

from crossbox.errors import ConfigError
from crossbox.helpers import Project
from crossbox.invocation.models import Access, MountSpec

log = logging.getLogger(__name__)

PROJECT_MOUNT = PurePosixPath("/project")
CARGO_HOME_MOUNT = PurePosixPath("/cargo")
TARGET_DIR_MOUNT = PurePosixPath("/target")
TOOLCHAIN_MOUNT = PurePosixPath("/rust")


def check_distinct(mounts: Iterable[MountSpec]) -> None:
    """Raise ConfigError if two mounts share a container path."""
    seen: dict[str, MountSpec] = {}
    for m in mounts:
        other = seen.get(m.container_path)
        if other is not None:
            msg = (
                f"mount conflict at {m.container_path}: "
                f"{other.host_path} and {m.host_path}"
            )
            raise ConfigError(msg)
        seen[m.container_path] = m


def _volume_mounts(names: Iterable[str], environ: Mapping[str, str]) -> list[MountSpec]:
    out: list[MountSpec] = []
    for name in names:
        value = environ.get(name)
        if not value:
            log.warning("volume variable %s is not set; not mounting it", name)
            continue
        path = Path(value).expanduser().resolve()
        out.append(MountSpec(path.as_posix(), path.as_posix(), Access.READ_WRITE))
    return out


def resolve_mounts(
    project: Project,
    volume_vars: Iterable[str] = (),
    environ: Mapping[str, str] | None = None,
) -> tuple[MountSpec, ...]:
    """Read-only: project root, host toolchain. Read-write: cargo home, output dir, volumes.

    volume_vars names host environment variables whose values are paths to mount at
    the same location inside the container.
    """
    mounts = [
        MountSpec(project.root.as_posix(), str(PROJECT_MOUNT), Access.READ_ONLY),
        MountSpec(project.cargo_home.as_posix(), str(CARGO_HOME_MOUNT), Access.READ_WRITE),
        MountSpec(project.target_dir.as_posix(), str(TARGET_DIR_MOUNT), Access.READ_WRITE),
    ]
    if project.sysroot is not None:
        mounts.append(
            MountSpec(project.sysroot.as_posix(), str(TOOLCHAIN_MOUNT), Access.READ_ONLY)
        )
    mounts += _volume_mounts(volume_vars, environ or {})
    check_distinct(mounts)
    return tuple(mounts)
