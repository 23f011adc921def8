"""Tests for crossbox.invocation.builder (pure ExecutionSpec construction)."""

from pathlib import PurePosixPath

import pytest

from crossbox.cli.parse import parse
from crossbox.errors import ConfigError
from crossbox.helpers import Project
from crossbox.invocation import (
    Access,
    MountSpec,
    build,
    engine_command,
    native_command,
)
from crossbox.resolve import resolve
from crossbox.targets import DEFAULT_REGISTRY

TRIPLE_A = "armv7-unknown-linux-gnueabihf"


class TestBuild:
    def test_build_scenario(self, project: Project) -> None:
        inv = parse(["build", "--target", TRIPLE_A])
        target = DEFAULT_REGISTRY.lookup(TRIPLE_A)
        mounts, env = resolve(inv, target, project, environ={})
        spec = build(inv, target, mounts, env, name="crossbox-test")
        assert spec.image == target.image
        assert spec.entrypoint == ("cargo", "build", "--target", TRIPLE_A)
        assert spec.workdir == PurePosixPath("/project")
        assert spec.name == "crossbox-test"
        project_mounts = [m for m in spec.mounts if m.container_path == "/project"]
        assert project_mounts[0].host_path == project.root.as_posix()
        assert project_mounts[0].access is Access.READ_ONLY
        toolchain = [m for m in spec.mounts if m.container_path == "/rust"]
        assert toolchain == [MountSpec(project.sysroot.as_posix(), "/rust", Access.READ_ONLY)]
        assert spec.toolchain_bin == PurePosixPath("/rust/bin")

    def test_mounted_toolchain_takes_the_channel(self, project: Project) -> None:
        inv = parse(["+nightly", "build", "--target", TRIPLE_A])
        target = DEFAULT_REGISTRY.lookup(TRIPLE_A)
        mounts, env = resolve(inv, target, project, environ={})
        spec = build(inv, target, mounts, env, name="n")
        assert spec.entrypoint == ("cargo", "build", "--target", TRIPLE_A)

    def test_image_toolchain_keeps_channel_and_forwarded_order(self, project: Project) -> None:
        inv = parse(["+nightly", "test", "--target", TRIPLE_A, "--release", "--", "--nocapture"])
        target = DEFAULT_REGISTRY.lookup(TRIPLE_A)
        spec = build(inv, target, [], {}, name="n")
        assert spec.entrypoint == (
            "cargo",
            "+nightly",
            "test",
            "--target",
            TRIPLE_A,
            "--release",
            "--",
            "--nocapture",
        )

    def test_is_deterministic(self, project: Project) -> None:
        inv = parse(["check", "--target", TRIPLE_A, "--all"])
        target = DEFAULT_REGISTRY.lookup(TRIPLE_A)
        mounts, env = resolve(inv, target, project, environ={"CARGO_TERM_COLOR": "always"})
        assert build(inv, target, mounts, env, name="n") == build(inv, target, mounts, env, name="n")

    def test_spec_env_is_frozen(self) -> None:
        inv = parse(["build", "--target", TRIPLE_A])
        env = {"A": "1"}
        spec = build(inv, DEFAULT_REGISTRY.lookup(TRIPLE_A), [], env, name="n")
        env["A"] = "2"
        assert spec.env["A"] == "1"
        with pytest.raises(TypeError):
            spec.env["A"] = "3"  # type: ignore[index]

    def test_duplicate_container_paths_rejected(self) -> None:
        inv = parse(["build", "--target", TRIPLE_A])
        mounts = [
            MountSpec("/a", "/target", Access.READ_WRITE),
            MountSpec("/b", "/target", Access.READ_WRITE),
        ]
        with pytest.raises(ConfigError):
            build(inv, DEFAULT_REGISTRY.lookup(TRIPLE_A), mounts, {}, name="n")


class TestNativeCommand:
    def test_without_target(self) -> None:
        assert native_command(parse(["build", "--release"])) == ["cargo", "build", "--release"]

    def test_keeps_explicit_target(self) -> None:
        inv = parse(["test", "--target", "x86_64-unknown-linux-gnu"])
        assert native_command(inv) == ["cargo", "test", "--target", "x86_64-unknown-linux-gnu"]

    def test_other_subcommand_passthrough(self) -> None:
        assert native_command(parse(["+stable", "clippy", "--", "-D", "warnings"])) == [
            "cargo",
            "+stable",
            "clippy",
            "--",
            "-D",
            "warnings",
        ]


class TestEngineCommand:
    def test_renders_run_with_env_names_only(self) -> None:
        inv = parse(["build", "--target", TRIPLE_A])
        mounts = [
            MountSpec("/src/hello", "/project", Access.READ_ONLY),
            MountSpec("/home/me/.cargo", "/cargo", Access.READ_WRITE),
        ]
        spec = build(
            inv,
            DEFAULT_REGISTRY.lookup(TRIPLE_A),
            mounts,
            {"SECRET": "hunter2", "CARGO_HOME": "/cargo"},
            name="crossbox-x",
            interactive=True,
        )
        argv, client_env = engine_command(
            spec, "docker", user="1000:1000", extra_opts=["--network", "host"]
        )
        assert argv[:6] == ["docker", "run", "--rm", "--init", "--name", "crossbox-x"]
        assert "-i" in argv
        assert argv[argv.index("--user") + 1] == "1000:1000"
        assert "hunter2" not in " ".join(argv)
        assert client_env == {"SECRET": "hunter2", "CARGO_HOME": "/cargo"}
        assert "/src/hello:/project:ro" in argv
        assert "/home/me/.cargo:/cargo" in argv
        assert argv[argv.index("-w") + 1] == "/project"
        image_at = argv.index(spec.image)
        assert argv[image_at - 2 : image_at] == ["--network", "host"]
        assert argv[image_at + 1 :] == ["cargo", "build", "--target", TRIPLE_A]

    def test_no_user_no_interactive(self) -> None:
        inv = parse(["build", "--target", TRIPLE_A])
        spec = build(inv, DEFAULT_REGISTRY.lookup(TRIPLE_A), [], {}, name="n")
        argv, _ = engine_command(spec, "podman")
        assert "--user" not in argv
        assert "-i" not in argv
        assert argv[0] == "podman"
        assert "--init" in argv
        assert "sh" not in argv

    def test_mounted_toolchain_goes_first_on_path(self, project: Project) -> None:
        inv = parse(["test", "--target", TRIPLE_A])
        target = DEFAULT_REGISTRY.lookup(TRIPLE_A)
        mounts, env = resolve(inv, target, project, environ={}, emulation=lambda arch: True)
        spec = build(inv, target, mounts, env, name="n")
        argv, client_env = engine_command(spec, "docker")
        assert argv[argv.index(spec.image) + 1 :] == [
            "sh",
            "-c",
            'PATH="/rust/bin:$PATH" exec "$@"',
            "sh",
            "cargo",
            "test",
            "--target",
            TRIPLE_A,
        ]
        assert "PATH" not in client_env
