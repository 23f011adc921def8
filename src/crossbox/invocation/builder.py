"""Pure construction of the container (or native) command for an invocation.

Nothing here touches the filesystem, the environment or a container engine, so
the whole mapping can be tested without one.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import replace

from crossbox.invocation.models import ExecutionSpec, Invocation, MountSpec
from crossbox.resolve.mounts import PROJECT_MOUNT, TOOLCHAIN_MOUNT, check_distinct
from crossbox.targets import TargetSpec

BUILD_TOOL = "cargo"


def cargo_command(invocation: Invocation, target: str | None) -> list[str]:
    """cargo [+channel] <command> [--target <triple>] <forwarded args...>"""
    cmd = [BUILD_TOOL]
    if invocation.channel:
        cmd.append(f"+{invocation.channel}")
    cmd.append(invocation.command)
    if target:
        cmd += ["--target", target]
    cmd += invocation.args
    return cmd


def native_command(invocation: Invocation) -> list[str]:
    """Host command for native passthrough; --target is kept only if the user gave it."""
    return cargo_command(invocation, invocation.target)


def build(
    invocation: Invocation,
    target: TargetSpec,
    mounts: Sequence[MountSpec],
    env: Mapping[str, str],
    *,
    name: str,
    interactive: bool = False,
) -> ExecutionSpec:
    """ExecutionSpec for running invocation in target's image.

    With a host toolchain mounted, the `+channel` override was already used to pick
    that toolchain and is left off the entrypoint: the mounted cargo is not a rustup
    proxy and would reject it.
    """
    check_distinct(mounts)
    toolchain = any(m.container_path == str(TOOLCHAIN_MOUNT) for m in mounts)
    if toolchain:
        invocation = replace(invocation, channel=None)
    return ExecutionSpec(
        image=target.image,
        mounts=tuple(mounts),
        env=env,
        workdir=PROJECT_MOUNT,
        entrypoint=tuple(cargo_command(invocation, target.triple)),
        name=name,
        interactive=interactive,
        toolchain_bin=TOOLCHAIN_MOUNT / "bin" if toolchain else None,
    )


def engine_command(
    spec: ExecutionSpec,
    engine: str,
    *,
    user: str | None = None,
    extra_opts: Sequence[str] = (),
) -> tuple[list[str], dict[str, str]]:
    """Render `<engine> run ...` for spec.

    Returns (argv, client_env). Variables are passed as `-e NAME` and their values
    in client_env, which the caller merges into the engine client's environment, so
    values never show up on the command line.

    `--init` puts a minimal init at PID 1 so signals the client proxies reach
    cargo; as PID 1 cargo itself would ignore SIGINT and SIGTERM.
    """
    argv = [engine, "run", "--rm", "--init", "--name", spec.name]
    if spec.interactive:
        argv.append("-i")
    if user:
        argv += ["--user", user]
    for name in spec.env:
        argv += ["-e", name]
    for m in spec.mounts:
        argv += ["-v", m.volume_arg]
    argv += ["-w", str(spec.workdir)]
    argv += extra_opts
    argv.append(spec.image)
    if spec.toolchain_bin is not None:
        # Keep the image's PATH (its cross linkers live there); the toolchain goes first.
        argv += ["sh", "-c", f'PATH="{spec.toolchain_bin}:$PATH" exec "$@"', "sh"]
    argv += spec.entrypoint
    return argv, dict(spec.env)
