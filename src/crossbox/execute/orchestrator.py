"""Resolve an invocation to a target, run it in that target's container, relay the outcome.

States: IDLE -> RESOLVING -> BUILDING -> LAUNCHING -> RUNNING -> SUCCEEDED | FAILED | ERRORED.
When the target is the host triple the flow skips BUILDING/LAUNCHING and runs cargo
directly on the host.
"""

from __future__ import annotations

import logging
import os
import signal
import subprocess
import sys
import threading
from collections.abc import Iterator, Mapping
from contextlib import contextmanager, nullcontext
from dataclasses import replace
from enum import Enum
from pathlib import Path
from typing import IO

from crossbox.config import CrossboxConfig, load_config
from crossbox.engine import ContainerEngine, host_user
from crossbox.errors import ConfigError, CrossboxError, ExecutionBackendError
from crossbox.helpers import (
    container_name,
    discover_project,
    find_project_root,
    toolchain_sysroot,
)
from crossbox.invocation import (
    Access,
    ExecutionResult,
    ExecutionSpec,
    Invocation,
    build,
    engine_command,
    native_command,
)
from crossbox.lock import output_lock
from crossbox.resolve import resolve
from crossbox.resolve.emulation import EmulationCheck, binfmt_available
from crossbox.resolve.mounts import TARGET_DIR_MOUNT
from crossbox.targets import DEFAULT_REGISTRY, TargetRegistry, host_triple

from .relay import StreamRelay

log = logging.getLogger(__name__)

# SIGHUP matters most: the engine client runs in its own session, so a closed
# terminal only ever reaches crossbox.
FORWARDED_SIGNALS = tuple(
    getattr(signal, name)
    for name in ("SIGINT", "SIGTERM", "SIGHUP", "SIGQUIT")
    if hasattr(signal, name)
)


class State(Enum):
    IDLE = "idle"
    RESOLVING = "resolving"
    BUILDING = "building"
    LAUNCHING = "launching"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    ERRORED = "errored"


def _stdin_is_tty() -> bool:
    try:
        return sys.stdin is not None and sys.stdin.isatty()
    except (AttributeError, ValueError):
        return False


def _exit_status(returncode: int) -> int:
    """Popen reports death-by-signal as -N; report it the way a shell does (128+N)."""
    return 128 - returncode if returncode < 0 else returncode


class _SignalForwarder:
    """Handler for FORWARDED_SIGNALS during one containerized run.

    Until the engine client is attached a signal aborts the launch like Ctrl-C.
    Afterwards it is sent on to the client's process group and the run winds down
    through the normal cleanup path.
    """

    def __init__(self) -> None:
        self.proc: subprocess.Popen | None = None
        self.interrupted = threading.Event()

    def __call__(self, signum: int, _frame: object) -> None:
        self.interrupted.set()
        if self.proc is None:
            raise KeyboardInterrupt
        try:
            os.killpg(self.proc.pid, signum)
        except ProcessLookupError:
            pass


class Orchestrator:
    """Runs one invocation. Not reusable: create one per user command."""

    def __init__(
        self,
        cwd: Path | None = None,
        *,
        registry: TargetRegistry = DEFAULT_REGISTRY,
        environ: Mapping[str, str] | None = None,
        host: str | None = None,
        config: CrossboxConfig | None = None,
        engine: ContainerEngine | None = None,
        emulation: EmulationCheck = binfmt_available,
        sysroot: Path | None = None,
        stdout: IO[bytes] | None = None,
        stderr: IO[bytes] | None = None,
    ) -> None:
        self.cwd = cwd or Path.cwd()
        self.registry = registry
        self.environ = dict(os.environ if environ is None else environ)
        self._host = host
        self._config = config
        self._engine = engine
        self.emulation = emulation
        self._sysroot = sysroot
        self._stdout = stdout
        self._stderr = stderr
        self.state = State.IDLE
        self.history: list[State] = [State.IDLE]

    def _transition(self, state: State) -> None:
        log.debug("%s -> %s", self.state.value, state.value)
        self.state = state
        self.history.append(state)

    @property
    def host(self) -> str:
        if self._host is None:
            self._host = host_triple()
        return self._host

    def _load_config(self, root: Path) -> CrossboxConfig:
        if self._config is None:
            self._config = load_config(root, self.environ, list(self.registry))
        return self._config

    def _default_target(self) -> str | None:
        """Configured default target, or None when there is no project or no default."""
        try:
            root = find_project_root(self.cwd)
        except ConfigError:
            log.debug("no Cargo.toml above %s; no configured default target", self.cwd)
            return None
        return self._load_config(root).build.default_target

    # --- Top-level flow ---

    def run(self, invocation: Invocation) -> ExecutionResult:
        self._transition(State.RESOLVING)
        try:
            triple = invocation.target or self._default_target()
            if triple is None or triple == self.host:
                return self._run_native(invocation)
            invocation = replace(invocation, target=triple)
            project = discover_project(self.cwd, self.environ)
            config = self._load_config(project.root)
            registry = self.registry
            if config.images():
                registry = registry.with_images(config.images())
            target = registry.lookup(triple)
            if invocation.executes_target_binaries and not target.native_test:
                print(
                    f"⚠️  {triple} cannot execute target binaries in its image; "
                    f"'{invocation.command}' will likely fail to run them",
                    file=sys.stderr,
                )
            project = replace(
                project,
                sysroot=self._sysroot or toolchain_sysroot(invocation.channel, self.environ),
            )
            mounts, env = resolve(
                invocation,
                target,
                project,
                environ=self.environ,
                config=config,
                emulation=self.emulation,
            )
            self._transition(State.BUILDING)
            spec = build(
                invocation,
                target,
                mounts,
                env,
                name=container_name(triple),
                interactive=_stdin_is_tty(),
            )
        except CrossboxError as e:
            self._transition(State.ERRORED)
            return ExecutionResult(error=e)
        return self.execute(spec)

    # --- Native passthrough ---

    def _run_native(self, invocation: Invocation) -> ExecutionResult:
        cmd = native_command(invocation)
        log.info("native: %s", " ".join(cmd))
        self._transition(State.RUNNING)
        try:
            r = subprocess.run(cmd, cwd=self.cwd, env=self.environ)
        except KeyboardInterrupt:
            self._transition(State.ERRORED)
            return ExecutionResult(interrupted=True, native=True)
        except OSError as e:
            self._transition(State.ERRORED)
            return ExecutionResult(
                error=ExecutionBackendError(f"cannot run {cmd[0]} on the host", str(e)),
                native=True,
            )
        code = _exit_status(r.returncode)
        self._transition(State.SUCCEEDED if code == 0 else State.FAILED)
        return ExecutionResult(code=code, native=True)

    # --- Containerized execution ---

    def _lock_for(self, spec: ExecutionSpec):
        config = self._config or CrossboxConfig()
        if not config.lock:
            return nullcontext()
        for m in spec.mounts:
            if m.container_path == str(TARGET_DIR_MOUNT):
                return output_lock(Path(m.host_path))
        return nullcontext()

    def _prepare_mounts(self, spec: ExecutionSpec) -> None:
        # Engines create missing bind sources as root; create them as the user instead.
        for m in spec.mounts:
            if m.access is Access.READ_WRITE:
                Path(m.host_path).mkdir(parents=True, exist_ok=True)

    @contextmanager
    def _handle_signals(self) -> Iterator[_SignalForwarder]:
        forwarder = _SignalForwarder()
        if threading.current_thread() is not threading.main_thread():
            yield forwarder
            return
        previous = {s: signal.signal(s, forwarder) for s in FORWARDED_SIGNALS}
        try:
            yield forwarder
        finally:
            for s, h in previous.items():
                signal.signal(s, h)

    def execute(self, spec: ExecutionSpec) -> ExecutionResult:
        """Launch spec in a container, relay its output, return its exit code unchanged."""
        self._transition(State.LAUNCHING)
        try:
            with self._handle_signals() as forwarder:
                return self._launch(spec, forwarder)
        except KeyboardInterrupt:
            log.debug("interrupted while %s", self.state.value)
            self._transition(State.ERRORED)
            return ExecutionResult(interrupted=True)

    def _launch(self, spec: ExecutionSpec, forwarder: _SignalForwarder) -> ExecutionResult:
        config = self._config or CrossboxConfig()
        try:
            engine = self._engine or ContainerEngine.detect(config.engine)
            engine.check_reachable()
            engine.ensure_image(spec.image)
            self._prepare_mounts(spec)
        except CrossboxError as e:
            self._transition(State.ERRORED)
            return ExecutionResult(error=e)
        except OSError as e:
            self._transition(State.ERRORED)
            return ExecutionResult(error=ExecutionBackendError("cannot prepare mounts", str(e)))

        argv, client_env = engine_command(
            spec, engine.binary, user=host_user(), extra_opts=config.engine_opts
        )
        log.info("container: %s", " ".join(argv))
        with self._lock_for(spec):
            proc: subprocess.Popen | None = None
            relay: StreamRelay | None = None
            try:
                try:
                    proc = subprocess.Popen(
                        argv,
                        stdout=subprocess.PIPE,
                        stderr=subprocess.PIPE,
                        env={**self.environ, **client_env},
                        start_new_session=True,
                    )
                except OSError as e:
                    self._transition(State.ERRORED)
                    return ExecutionResult(
                        error=ExecutionBackendError(f"cannot start {engine.binary}", str(e))
                    )
                forwarder.proc = proc
                self._transition(State.RUNNING)
                relay = StreamRelay(
                    [
                        (proc.stdout, self._stdout or sys.stdout.buffer),
                        (proc.stderr, self._stderr or sys.stderr.buffer),
                    ]
                ).start()
                returncode = proc.wait()
            finally:
                if proc is not None:
                    if proc.poll() is None:
                        os.killpg(proc.pid, signal.SIGKILL)
                        proc.wait()
                    if relay is not None:
                        relay.join()
                    engine.remove(spec.name)

        code = _exit_status(returncode)
        if forwarder.interrupted.is_set():
            self._transition(State.ERRORED)
            return ExecutionResult(code=code, interrupted=True)
        self._transition(State.SUCCEEDED if code == 0 else State.FAILED)
        return ExecutionResult(code=code)
