"""Turn raw argv into an Invocation.

Only the subcommand, an optional `+toolchain`, and `--target` are recognized.
Every other token is forwarded to cargo untouched and in its original order;
after a bare `--` nothing is examined at all.
"""

from __future__ import annotations

from collections.abc import Sequence

from crossbox.errors import ConfigError
from crossbox.invocation.models import Invocation, Subcommand

TARGET_FLAG = "--target"

_ALIASES = {
    "b": Subcommand.BUILD,
    "build": Subcommand.BUILD,
    "c": Subcommand.CHECK,
    "check": Subcommand.CHECK,
    "t": Subcommand.TEST,
    "test": Subcommand.TEST,
    "r": Subcommand.RUN,
    "run": Subcommand.RUN,
    "rustc": Subcommand.COMPILE,
    "doc": Subcommand.DOC,
}


def subcommand_for(token: str) -> Subcommand:
    return _ALIASES.get(token, Subcommand.OTHER)


def _target_value(value: str | None) -> str:
    if value is None or not value or value.startswith("-"):
        msg = f"{TARGET_FLAG} requires a target triple"
        raise ConfigError(msg)
    return value


def parse(argv: Sequence[str]) -> Invocation:
    """Parse `[+toolchain] <subcommand> [--target <triple>] [args...]`. Raises ConfigError."""
    tokens = list(argv)
    channel = None
    if tokens and tokens[0].startswith("+"):
        channel = tokens.pop(0)[1:]
        if not channel:
            msg = "empty toolchain override '+'"
            raise ConfigError(msg)

    command: str | None = None
    target: str | None = None
    release = False
    forwarded: list[str] = []
    i = 0
    while i < len(tokens):
        tok = tokens[i]
        if tok == "--":
            forwarded.extend(tokens[i:])
            break
        if tok == TARGET_FLAG or tok.startswith(TARGET_FLAG + "="):
            if target is not None:
                msg = f"{TARGET_FLAG} given more than once"
                raise ConfigError(msg)
            if tok == TARGET_FLAG:
                target = _target_value(tokens[i + 1] if i + 1 < len(tokens) else None)
                i += 2
            else:
                target = _target_value(tok.split("=", 1)[1])
                i += 1
            continue
        if command is None and not tok.startswith("-"):
            command = tok
        else:
            if tok in ("--release", "-r"):
                release = True
            forwarded.append(tok)
        i += 1

    if command is None:
        msg = "missing subcommand (e.g. build, check, test, run, rustc, doc)"
        raise ConfigError(msg)

    return Invocation(
        subcommand=subcommand_for(command),
        command=command,
        target=target,
        args=tuple(forwarded),
        channel=channel,
        release=release,
    )
