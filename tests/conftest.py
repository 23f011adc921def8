"""Pytest fixtures for crossbox tests."""

from pathlib import Path

import pytest

from crossbox.helpers import Project

HOST = "x86_64-unknown-linux-gnu"


class FakeEngine:
    """Stands in for ContainerEngine; records calls instead of talking to a daemon."""

    def __init__(self, binary: str = "docker") -> None:
        self.binary = binary
        self.images: list[str] = []
        self.removed: list[str] = []
        self.reachable = True

    def check_reachable(self) -> None:
        from crossbox.errors import ExecutionBackendError

        if not self.reachable:
            raise ExecutionBackendError("container engine docker is not reachable", "daemon down")

    def ensure_image(self, image: str) -> None:
        self.images.append(image)

    def remove(self, name: str) -> None:
        self.removed.append(name)


@pytest.fixture
def cargo_project(tmp_path: Path) -> Path:
    """Minimal cargo project directory. Returns its root."""
    root = tmp_path / "hello"
    root.mkdir()
    (root / "Cargo.toml").write_text('[package]\nname = "hello"\nversion = "0.1.0"\n')
    return root


@pytest.fixture
def project(cargo_project: Path, tmp_path: Path) -> Project:
    return Project(
        root=cargo_project,
        cargo_home=tmp_path / "cargo-home",
        target_dir=cargo_project / "target",
        sysroot=tmp_path / "toolchain",
    )


@pytest.fixture
def fake_engine() -> FakeEngine:
    return FakeEngine()
