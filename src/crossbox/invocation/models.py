"""Value types passed between parser, resolver, builder and orchestrator."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import PurePosixPath
from types import MappingProxyType

from crossbox.errors import EXIT_INTERRUPTED, CrossboxError


class Subcommand(Enum):
    BUILD = "build"
    CHECK = "check"
    TEST = "test"
    RUN = "run"
    COMPILE = "rustc"
    DOC = "doc"
    OTHER = "other"

    @property
    def runs_target_binaries(self) -> bool:
        return self in (Subcommand.TEST, Subcommand.RUN)


@dataclass(frozen=True)
class Invocation:
    """One user command. `args` are opaque: crossbox never interprets them."""

    subcommand: Subcommand
    command: str
    target: str | None = None
    args: tuple[str, ...] = ()
    channel: str | None = None
    release: bool = False

    @property
    def executes_target_binaries(self) -> bool:
        """test/run, plus `bench` which cargo also runs on the target."""
        return self.subcommand.runs_target_binaries or (
            self.subcommand is Subcommand.OTHER and self.command == "bench"
        )


class Access(Enum):
    READ_ONLY = "ro"
    READ_WRITE = "rw"


@dataclass(frozen=True)
class MountSpec:
    host_path: str
    container_path: str
    access: Access

    @property
    def volume_arg(self) -> str:
        suffix = ":ro" if self.access is Access.READ_ONLY else ""
        return f"{self.host_path}:{self.container_path}{suffix}"


@dataclass(frozen=True)
class ExecutionSpec:
    image: str
    mounts: tuple[MountSpec, ...]
    env: Mapping[str, str]
    workdir: PurePosixPath
    entrypoint: tuple[str, ...]
    name: str
    interactive: bool = False
    # Prepended to the image's PATH when a host toolchain is mounted.
    toolchain_bin: PurePosixPath | None = None

    def __post_init__(self) -> None:
        # Env is frozen: what was built is exactly what runs.
        object.__setattr__(self, "env", MappingProxyType(dict(self.env)))


@dataclass(frozen=True)
class ExecutionResult:
    """Inner exit code when execution reached Running, else the orchestration error."""

    code: int | None = None
    error: CrossboxError | None = None
    interrupted: bool = False
    native: bool = field(default=False, compare=False)

    @property
    def exit_code(self) -> int:
        if self.interrupted:
            return EXIT_INTERRUPTED
        if self.error is not None:
            return self.error.exit_code
        return self.code if self.code is not None else 0

    @property
    def succeeded(self) -> bool:
        return self.error is None and not self.interrupted and self.code == 0
