"""Environment variables for a containerized invocation.

Ambient variables the build tool cares about are forwarded first; values computed
for the target are layered on top and win.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from pathlib import Path

from crossbox.invocation.models import Invocation
from crossbox.resolve.mounts import CARGO_HOME_MOUNT, TARGET_DIR_MOUNT
from crossbox.targets import TargetSpec

log = logging.getLogger(__name__)

PASSTHROUGH_PREFIXES = ("CARGO_", "RUST", "OPENSSL_", "PKG_CONFIG", "QEMU_")
PASSTHROUGH_NAMES = ("TERM", "USER")

# Forces libtest to run one test at a time; qemu-user is unreliable with many threads.
SEQUENTIAL_TEST_VAR = "RUST_TEST_THREADS"

EnvMap = dict[str, str]


def passthrough(environ: Mapping[str, str], extra_names: Iterable[str] = ()) -> EnvMap:
    """Ambient variables relevant to cargo and native-library builds, plus extra_names."""
    extra = list(extra_names)
    out: EnvMap = {}
    for name, value in environ.items():
        if name in PASSTHROUGH_NAMES or name.startswith(PASSTHROUGH_PREFIXES):
            out[name] = value
    for name in extra:
        if name in environ:
            out[name] = environ[name]
        else:
            log.debug("passthrough variable %s is not set", name)
    return out


def target_env(
    invocation: Invocation,
    target: TargetSpec,
    *,
    runner: str | None = None,
    openssl_dir: str | None = None,
    volume_vars: Mapping[str, str] | None = None,
) -> EnvMap:
    """Variables computed from the target; these override anything forwarded."""
    env: EnvMap = {
        "CARGO_HOME": str(CARGO_HOME_MOUNT),
        "CARGO_TARGET_DIR": str(TARGET_DIR_MOUNT),
    }
    openssl_dir = openssl_dir or target.openssl_dir
    if openssl_dir:
        env["OPENSSL_DIR"] = openssl_dir
        env["OPENSSL_INCLUDE_DIR"] = f"{openssl_dir}/include"
        env["OPENSSL_LIB_DIR"] = f"{openssl_dir}/lib"
    if runner:
        env[f"CARGO_TARGET_{target.env_key}_RUNNER"] = runner
    if invocation.executes_target_binaries and target.requires_emulation:
        env[SEQUENTIAL_TEST_VAR] = "1"
    env.update(volume_vars or {})
    return env


def resolve_env(
    invocation: Invocation,
    target: TargetSpec,
    environ: Mapping[str, str],
    *,
    passthrough_names: Iterable[str] = (),
    volume_names: Iterable[str] = (),
    runner: str | None = None,
    openssl_dir: str | None = None,
) -> EnvMap:
    forwarded = passthrough(environ, passthrough_names)
    volumes = {
        n: Path(environ[n]).expanduser().resolve().as_posix()
        for n in volume_names
        if environ.get(n)
    }
    computed = target_env(
        invocation, target, runner=runner, openssl_dir=openssl_dir, volume_vars=volumes
    )
    for name in computed.keys() & forwarded.keys():
        if forwarded[name] != computed[name]:
            log.debug("%s=%s overridden by target value %s", name, forwarded[name], computed[name])
    env = dict(forwarded)
    env.update(computed)
    return env
