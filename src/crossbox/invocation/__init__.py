"""Invocation model and the pure ExecutionSpec builder."""

from .builder import build, cargo_command, engine_command, native_command
from .models import (
    Access,
    ExecutionResult,
    ExecutionSpec,
    Invocation,
    MountSpec,
    Subcommand,
)

__all__ = [
    "Access",
    "ExecutionResult",
    "ExecutionSpec",
    "Invocation",
    "MountSpec",
    "Subcommand",
    "build",
    "cargo_command",
    "engine_command",
    "native_command",
]
