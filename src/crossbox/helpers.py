"""Shared helpers for crossbox (project layout, cargo and toolchain paths, naming).

Used by the resolver, orchestrator and CLI.
"""

from __future__ import annotations

import os
import re
import subprocess
import uuid
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from crossbox.errors import ConfigError, ExecutionBackendError

# --- Project ---


@dataclass(frozen=True)
class Project:
    """Host-side paths one invocation works against. Not owned by crossbox."""

    root: Path
    cargo_home: Path
    target_dir: Path
    # Host Rust toolchain mounted into the container; None when the image brings its own.
    sysroot: Path | None = None


def find_project_root(start: Path) -> Path:
    """Nearest ancestor of start (inclusive) holding a Cargo.toml. Raises ConfigError if none."""
    start = start.resolve()
    for d in (start, *start.parents):
        if (d / "Cargo.toml").is_file():
            return d
    msg = f"could not find Cargo.toml in {start} or any parent directory"
    raise ConfigError(msg)


def cargo_home(environ: Mapping[str, str]) -> Path:
    """$CARGO_HOME, else ~/.cargo."""
    value = environ.get("CARGO_HOME")
    if value:
        return Path(value).expanduser().resolve()
    return Path.home() / ".cargo"


def target_dir(project_root: Path, environ: Mapping[str, str]) -> Path:
    """$CARGO_TARGET_DIR (relative to project root), else <project_root>/target."""
    value = environ.get("CARGO_TARGET_DIR")
    if value:
        p = Path(value).expanduser()
        return (p if p.is_absolute() else project_root / p).resolve()
    return project_root / "target"


def discover_project(cwd: Path, environ: Mapping[str, str] | None = None) -> Project:
    if environ is None:
        environ = os.environ
    root = find_project_root(cwd)
    return Project(root=root, cargo_home=cargo_home(environ), target_dir=target_dir(root, environ))


def toolchain_sysroot(channel: str | None, environ: Mapping[str, str]) -> Path:
    """Sysroot of the host toolchain for channel, as reported by `rustc [+channel] --print sysroot`."""
    cmd = ["rustc"]
    if channel:
        cmd.append(f"+{channel}")
    cmd += ["--print", "sysroot"]
    try:
        r = subprocess.run(cmd, capture_output=True, text=True, env=dict(environ))
    except OSError as e:
        msg = "no Rust toolchain on the host to mount into the container"
        raise ExecutionBackendError(msg, str(e)) from e
    sysroot = r.stdout.strip()
    if r.returncode != 0 or not sysroot:
        msg = f"cannot locate the {channel or 'default'} Rust toolchain"
        raise ExecutionBackendError(msg, r.stderr or "")
    return Path(sysroot)


# --- Naming ---

_UNSAFE_NAME_CHARS = re.compile(r"[^a-zA-Z0-9_.-]")


def container_name(triple: str) -> str:
    """Unique container name: crossbox-<triple>-<random> (engine-safe characters only)."""
    safe = _UNSAFE_NAME_CHARS.sub("-", triple)
    return f"crossbox-{safe}-{uuid.uuid4().hex[:12]}"
