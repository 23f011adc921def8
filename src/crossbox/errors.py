"""Orchestration errors and their reserved exit codes.

The inner build tool's exit code always passes through unchanged. Failures of
crossbox itself exit with a code from a small reserved range so callers can tell
"my code failed to build/test" apart from "the orchestration could not run":

    121  ConfigError                malformed invocation or configuration
    122  UnsupportedTargetError     triple not in the target registry
    123  EmulationUnavailableError  host cannot run the foreign architecture
    124  ExecutionBackendError      container engine unreachable, image unavailable
    130  interrupted                SIGINT/SIGTERM received while running
"""

from __future__ import annotations

EXIT_INTERRUPTED = 130


class CrossboxError(Exception):
    """Base class for failures of the orchestration itself (never the inner build)."""

    exit_code = 125


class ConfigError(CrossboxError):
    exit_code = 121


class UnsupportedTargetError(CrossboxError):
    exit_code = 122

    def __init__(self, triple: str) -> None:
        self.triple = triple
        super().__init__(f"unsupported target: {triple}")


class EmulationUnavailableError(CrossboxError):
    exit_code = 123

    def __init__(self, triple: str, handler: str) -> None:
        self.triple = triple
        self.handler = handler
        super().__init__(
            f"target {triple} needs emulation but no binfmt_misc handler '{handler}' "
            "is registered on this host (install qemu-user-static / binfmt support)"
        )


class ExecutionBackendError(CrossboxError):
    """Container engine missing/unreachable, or the image cannot be found or pulled."""

    exit_code = 124

    def __init__(self, message: str, detail: str = "") -> None:
        self.detail = detail.strip()
        super().__init__(f"{message}: {self.detail}" if self.detail else message)
