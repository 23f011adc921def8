"""Mount and environment resolution for one invocation against one target."""

from __future__ import annotations

import logging
from collections.abc import Mapping

from crossbox.config import CrossboxConfig
from crossbox.errors import EmulationUnavailableError
from crossbox.helpers import Project
from crossbox.invocation.models import Invocation, MountSpec
from crossbox.targets import TargetSpec

from .emulation import EmulationCheck, binfmt_available, handler_name
from .env import SEQUENTIAL_TEST_VAR, EnvMap, resolve_env
from .mounts import PROJECT_MOUNT, check_distinct, resolve_mounts

log = logging.getLogger(__name__)

__all__ = [
    "PROJECT_MOUNT",
    "SEQUENTIAL_TEST_VAR",
    "EnvMap",
    "check_distinct",
    "check_emulation",
    "resolve",
]


def check_emulation(
    invocation: Invocation,
    target: TargetSpec,
    available: EmulationCheck = binfmt_available,
) -> None:
    """Raise EmulationUnavailableError when target binaries must run but the host cannot emulate them."""
    if not (target.requires_emulation and invocation.executes_target_binaries):
        return
    arch = target.qemu_arch or target.triple.split("-", 1)[0]
    if not available(arch):
        raise EmulationUnavailableError(target.triple, handler_name(arch))
    log.debug("emulation for %s available via %s", target.triple, handler_name(arch))


def resolve(
    invocation: Invocation,
    target: TargetSpec,
    project: Project,
    *,
    environ: Mapping[str, str],
    config: CrossboxConfig | None = None,
    emulation: EmulationCheck = binfmt_available,
) -> tuple[tuple[MountSpec, ...], EnvMap]:
    """Compute (mounts, env) for running `invocation` inside the image for `target`."""
    config = config or CrossboxConfig()
    check_emulation(invocation, target, emulation)
    volume_names = config.env_volumes(target.triple)
    mounts = resolve_mounts(project, volume_names, environ)
    env = resolve_env(
        invocation,
        target,
        environ,
        passthrough_names=config.env_passthrough(target.triple),
        volume_names=volume_names,
        runner=config.runner(target.triple),
        openssl_dir=config.openssl_dir(target.triple),
    )
    return mounts, env
