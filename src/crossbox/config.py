"""Per-project configuration (Cargo.toml metadata, crossbox.yaml) and environment overrides.

File format::

    build:
      default-target: aarch64-unknown-linux-gnu
      env:
        passthrough: [VAR1, VAR2]     # extra host variables forwarded into the container
        volumes: [DATA_DIR]           # host variables naming paths to mount read-write
    target:
      aarch64-unknown-linux-gnu:
        image: registry/custom:tag
        runner: qemu-aarch64
        openssl-dir: /openssl         # OpenSSL prefix inside a custom image
        env:
          passthrough: [VAR3]
          volumes: [OTHER_DIR]

The same schema may live in Cargo.toml under ``[package.metadata.crossbox]``.
Precedence, lowest first: Cargo.toml metadata, crossbox.yaml, CROSSBOX_*
environment variables. Unknown keys are reported with a warning and otherwise
ignored.
"""

from __future__ import annotations

import logging
import os
import shlex
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

import yaml

from crossbox.errors import ConfigError

log = logging.getLogger(__name__)

CONFIG_FILE_NAME = "crossbox.yaml"
MANIFEST_NAME = "Cargo.toml"
METADATA_KEY = "crossbox"
ENV_PREFIX = "CROSSBOX_"


@dataclass(frozen=True)
class EnvConfig:
    passthrough: tuple[str, ...] | None = None
    volumes: tuple[str, ...] | None = None


@dataclass(frozen=True)
class TargetConfig:
    image: str | None = None
    runner: str | None = None
    openssl_dir: str | None = None
    env: EnvConfig = field(default_factory=EnvConfig)


@dataclass(frozen=True)
class BuildConfig:
    default_target: str | None = None
    env: EnvConfig = field(default_factory=EnvConfig)


@dataclass(frozen=True)
class CrossboxConfig:
    build: BuildConfig = field(default_factory=BuildConfig)
    targets: Mapping[str, TargetConfig] = field(default_factory=dict)
    engine: str | None = None
    engine_opts: tuple[str, ...] = ()
    lock: bool = True

    def image(self, triple: str) -> str | None:
        t = self.targets.get(triple)
        return t.image if t else None

    def runner(self, triple: str) -> str | None:
        t = self.targets.get(triple)
        return t.runner if t else None

    def openssl_dir(self, triple: str) -> str | None:
        t = self.targets.get(triple)
        return t.openssl_dir if t else None

    def env_passthrough(self, triple: str) -> list[str]:
        """Build-level then target-level passthrough names, without duplicates."""
        t = self.targets.get(triple)
        names = list(self.build.env.passthrough or ())
        names += list((t.env.passthrough if t else None) or ())
        return list(dict.fromkeys(names))

    def env_volumes(self, triple: str) -> list[str]:
        t = self.targets.get(triple)
        names = list(self.build.env.volumes or ())
        names += list((t.env.volumes if t else None) or ())
        return list(dict.fromkeys(names))

    def images(self) -> dict[str, str]:
        return {k: v.image for k, v in self.targets.items() if v.image}

    def merge(self, other: CrossboxConfig) -> CrossboxConfig:
        """Merge `other` over self.

        Target entries in `other` replace those in self wholesale. Build fields in
        `other` replace those in self only when set.
        """
        targets = {**self.targets, **other.targets}
        env = EnvConfig(
            passthrough=other.build.env.passthrough
            if other.build.env.passthrough is not None
            else self.build.env.passthrough,
            volumes=other.build.env.volumes
            if other.build.env.volumes is not None
            else self.build.env.volumes,
        )
        build = BuildConfig(
            default_target=other.build.default_target or self.build.default_target,
            env=env,
        )
        return replace(
            self,
            build=build,
            targets=targets,
            engine=other.engine or self.engine,
            engine_opts=other.engine_opts or self.engine_opts,
            lock=self.lock and other.lock,
        )


# --- Parsing ---


def _str_list(value: Any, where: str) -> tuple[str, ...] | None:
    if value is None:
        return None
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        msg = f"{where} must be a list of strings"
        raise ConfigError(msg)
    return tuple(value)


def _opt_str(value: Any, where: str) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        msg = f"{where} must be a string"
        raise ConfigError(msg)
    return value


def _parse_env(data: Any, where: str, unused: list[str]) -> EnvConfig:
    if data is None:
        return EnvConfig()
    if not isinstance(data, dict):
        msg = f"{where} must be a mapping"
        raise ConfigError(msg)
    unused.extend(f"{where}.{k}" for k in data if k not in ("passthrough", "volumes"))
    return EnvConfig(
        passthrough=_str_list(data.get("passthrough"), f"{where}.passthrough"),
        volumes=_str_list(data.get("volumes"), f"{where}.volumes"),
    )


_TARGET_KEYS = ("image", "runner", "openssl-dir", "env")


def parse_config(data: Any) -> tuple[CrossboxConfig, list[str]]:
    """Build a CrossboxConfig from loaded YAML or TOML. Returns (config, unused key paths)."""
    unused: list[str] = []
    if data is None:
        return CrossboxConfig(), unused
    if not isinstance(data, dict):
        msg = "configuration root must be a mapping"
        raise ConfigError(msg)
    unused.extend(k for k in data if k not in ("build", "target"))

    build_data = data.get("build") or {}
    if not isinstance(build_data, dict):
        msg = "build must be a mapping"
        raise ConfigError(msg)
    unused.extend(f"build.{k}" for k in build_data if k not in ("default-target", "env"))
    build = BuildConfig(
        default_target=_opt_str(build_data.get("default-target"), "build.default-target"),
        env=_parse_env(build_data.get("env"), "build.env", unused),
    )

    targets: dict[str, TargetConfig] = {}
    target_data = data.get("target") or {}
    if not isinstance(target_data, dict):
        msg = "target must be a mapping of triple -> settings"
        raise ConfigError(msg)
    for triple, tdata in target_data.items():
        where = f"target.{triple}"
        tdata = tdata or {}
        if not isinstance(tdata, dict):
            msg = f"{where} must be a mapping"
            raise ConfigError(msg)
        unused.extend(f"{where}.{k}" for k in tdata if k not in _TARGET_KEYS)
        targets[str(triple)] = TargetConfig(
            image=_opt_str(tdata.get("image"), f"{where}.image"),
            runner=_opt_str(tdata.get("runner"), f"{where}.runner"),
            openssl_dir=_opt_str(tdata.get("openssl-dir"), f"{where}.openssl-dir"),
            env=_parse_env(tdata.get("env"), f"{where}.env", unused),
        )

    return CrossboxConfig(build=build, targets=targets), unused


def load_config_file(path: Path) -> CrossboxConfig:
    """Load crossbox.yaml. Missing file -> empty config; invalid YAML -> ConfigError."""
    if not path.is_file():
        return CrossboxConfig()
    try:
        with path.open() as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        msg = f"cannot read {path}: {e}"
        raise ConfigError(msg) from e
    cfg, unused = parse_config(data)
    if unused:
        log.warning("unused key(s) in %s: %s", path, ", ".join(unused))
    return cfg


def load_cargo_metadata(manifest: Path) -> CrossboxConfig:
    """Load [package.metadata.crossbox] from a Cargo.toml. Absent table -> empty config."""
    if not manifest.is_file():
        return CrossboxConfig()
    try:
        with manifest.open("rb") as f:
            data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        msg = f"cannot read {manifest}: {e}"
        raise ConfigError(msg) from e
    package = data.get("package")
    metadata = package.get("metadata") if isinstance(package, dict) else None
    section = metadata.get(METADATA_KEY) if isinstance(metadata, dict) else None
    if section is None:
        return CrossboxConfig()
    cfg, unused = parse_config(section)
    if unused:
        where = f"package.metadata.{METADATA_KEY}"
        log.warning("unused key(s) in %s [%s]: %s", manifest, where, ", ".join(unused))
    return cfg


def _target_key(triple: str) -> str:
    return triple.upper().replace("-", "_").replace(".", "_")


def config_from_environ(environ: Mapping[str, str], triples: list[str]) -> CrossboxConfig:
    """CROSSBOX_* overrides: DEFAULT_TARGET, TARGET_<T>_IMAGE/RUNNER, CONTAINER_ENGINE/OPTS, NO_LOCK."""
    targets: dict[str, TargetConfig] = {}
    for triple in triples:
        key = _target_key(triple)
        image = environ.get(f"{ENV_PREFIX}TARGET_{key}_IMAGE")
        runner = environ.get(f"{ENV_PREFIX}TARGET_{key}_RUNNER")
        if image or runner:
            targets[triple] = TargetConfig(image=image or None, runner=runner or None)
    try:
        opts = tuple(shlex.split(environ.get(f"{ENV_PREFIX}CONTAINER_OPTS", "")))
    except ValueError as e:
        msg = f"{ENV_PREFIX}CONTAINER_OPTS: {e}"
        raise ConfigError(msg) from e
    return CrossboxConfig(
        build=BuildConfig(default_target=environ.get(f"{ENV_PREFIX}DEFAULT_TARGET") or None),
        targets=targets,
        engine=environ.get(f"{ENV_PREFIX}CONTAINER_ENGINE") or None,
        engine_opts=opts,
        lock=environ.get(f"{ENV_PREFIX}NO_LOCK", "") in ("", "0"),
    )


def load_config(
    project_root: Path,
    environ: Mapping[str, str] | None = None,
    triples: list[str] | None = None,
) -> CrossboxConfig:
    """Cargo.toml metadata, then the file config (CROSSBOX_CONFIG or <project_root>/crossbox.yaml),
    then env overrides, each merged over the previous one.

    Environment target overrides are only recognized for `triples`; they replace
    the file's image/runner for that target and keep its env settings.
    """
    if environ is None:
        environ = os.environ
    explicit = environ.get(f"{ENV_PREFIX}CONFIG")
    path = Path(explicit) if explicit else project_root / CONFIG_FILE_NAME
    if explicit and not path.is_file():
        msg = f"{ENV_PREFIX}CONFIG points at a missing file: {path}"
        raise ConfigError(msg)
    file_cfg = load_cargo_metadata(project_root / MANIFEST_NAME).merge(load_config_file(path))
    env_cfg = config_from_environ(environ, triples or [])
    # Env overrides per field, not per target: fold file values underneath.
    merged_targets = dict(env_cfg.targets)
    for triple, tcfg in merged_targets.items():
        base = file_cfg.targets.get(triple)
        if base is not None:
            merged_targets[triple] = replace(
                base,
                image=tcfg.image or base.image,
                runner=tcfg.runner or base.runner,
            )
    return file_cfg.merge(replace(env_cfg, targets=merged_targets))
