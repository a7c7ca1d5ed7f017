"""Reading of melange package configuration files."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError


def _yaml() -> YAML:
    return YAML(typ="base")


def _str(value: Any) -> str:
    return "" if value is None else str(value)


def _list(value: Any) -> list:
    return list(value) if isinstance(value, list) else []


def _dict(value: Any) -> dict:
    return dict(value) if isinstance(value, dict) else {}


@dataclass
class Copyright:
    paths: list[str] = field(default_factory=list)
    attestation: str = ""
    license: str = ""

    @classmethod
    def from_dict(cls, data: Any) -> "Copyright":
        d = _dict(data)
        return cls(
            paths=[_str(p) for p in _list(d.get("paths"))],
            attestation=_str(d.get("attestation")),
            license=_str(d.get("license")),
        )


@dataclass
class Dependencies:
    runtime: list[str] = field(default_factory=list)
    provides: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> "Dependencies":
        d = _dict(data)
        return cls(
            runtime=[_str(p) for p in _list(d.get("runtime"))],
            provides=[_str(p) for p in _list(d.get("provides"))],
        )


@dataclass
class Package:
    name: str = ""
    version: str = ""
    epoch: int = 0
    description: str = ""
    copyright: list[Copyright] = field(default_factory=list)
    dependencies: Dependencies = field(default_factory=Dependencies)

    @classmethod
    def from_dict(cls, data: Any) -> "Package":
        d = _dict(data)
        epoch = d.get("epoch")
        try:
            epoch_value = int(epoch) if epoch not in (None, "") else 0
        except (TypeError, ValueError) as e:
            raise ValueError(f"invalid epoch {epoch!r}") from e
        return cls(
            name=_str(d.get("name")),
            version=_str(d.get("version")),
            epoch=epoch_value,
            description=_str(d.get("description")),
            copyright=[Copyright.from_dict(c) for c in _list(d.get("copyright"))],
            dependencies=Dependencies.from_dict(d.get("dependencies")),
        )


@dataclass
class Contents:
    repositories: list[str] = field(default_factory=list)
    keyring: list[str] = field(default_factory=list)
    packages: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> "Contents":
        d = _dict(data)
        return cls(
            repositories=[_str(p) for p in _list(d.get("repositories"))],
            keyring=[_str(p) for p in _list(d.get("keyring"))],
            packages=[_str(p) for p in _list(d.get("packages"))],
        )


@dataclass
class Environment:
    contents: Contents = field(default_factory=Contents)

    @classmethod
    def from_dict(cls, data: Any) -> "Environment":
        return cls(contents=Contents.from_dict(_dict(data).get("contents")))


@dataclass
class Pipeline:
    name: str = ""
    uses: str = ""
    runs: str = ""
    with_: dict[str, str] = field(default_factory=dict)
    pipeline: list["Pipeline"] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> "Pipeline":
        d = _dict(data)
        return cls(
            name=_str(d.get("name")),
            uses=_str(d.get("uses")),
            runs=_str(d.get("runs")),
            with_={_str(k): _str(v) for k, v in _dict(d.get("with")).items()},
            pipeline=[Pipeline.from_dict(p) for p in _list(d.get("pipeline"))],
        )


@dataclass
class Subpackage:
    name: str = ""
    description: str = ""
    dependencies: Dependencies = field(default_factory=Dependencies)
    pipeline: list[Pipeline] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> "Subpackage":
        d = _dict(data)
        return cls(
            name=_str(d.get("name")),
            description=_str(d.get("description")),
            dependencies=Dependencies.from_dict(d.get("dependencies")),
            pipeline=[Pipeline.from_dict(p) for p in _list(d.get("pipeline"))],
        )


@dataclass
class Configuration:
    package: Package = field(default_factory=Package)
    environment: Environment = field(default_factory=Environment)
    pipeline: list[Pipeline] = field(default_factory=list)
    subpackages: list[Subpackage] = field(default_factory=list)
    advisories: dict[str, Any] = field(default_factory=dict)
    secfixes: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Any) -> "Configuration":
        if not isinstance(data, dict):
            raise ValueError("configuration must be a YAML mapping")
        return cls(
            package=Package.from_dict(data.get("package")),
            environment=Environment.from_dict(data.get("environment")),
            pipeline=[Pipeline.from_dict(p) for p in _list(data.get("pipeline"))],
            subpackages=[Subpackage.from_dict(s) for s in _list(data.get("subpackages"))],
            advisories=_dict(data.get("advisories")),
            secfixes=_dict(data.get("secfixes")),
        )


@dataclass
class PackageFile:
    """A configuration together with where it was read from."""

    config: Configuration
    filename: str
    dir: str
    nolint: list[str] = field(default_factory=list)
    hash: str = ""


def load_configuration(text: str) -> Configuration:
    """Parse configuration YAML text."""
    try:
        data = _yaml().load(text)
    except YAMLError as e:
        raise ValueError(f"unable to decode YAML: {e}") from e
    return Configuration.from_dict(data)


def parse_configuration(path: str) -> Configuration:
    """Read and parse the configuration file at ``path``."""
    with open(path, encoding="utf-8") as f:
        return load_configuration(f.read())


def is_melange_config(data: Any) -> bool:
    """Return True if decoded YAML has a non-empty package name and version."""
    if not isinstance(data, dict):
        return False
    package = data.get("package")
    if not isinstance(package, dict):
        return False
    return bool(package.get("name")) and bool(package.get("version"))


def find_nolint(filename: str) -> list[str]:
    """Return the rule names listed on the first ``#nolint:`` line."""
    with open(filename, encoding="utf-8") as f:
        for line in f.read().split("\n"):
            if line.startswith("#nolint:"):
                return line[len("#nolint:"):].split(",")
    return []


def read_melange_config(filename: str) -> Configuration:
    """Read a single melange config."""
    return parse_configuration(filename)


def read_all_packages_from_repo(directory: str) -> dict[str, PackageFile]:
    """Read every melange config found directly inside ``directory``."""
    packages: dict[str, PackageFile] = {}
    try:
        with os.scandir(directory) as it:
            files = sorted(
                e.path for e in it if not e.is_dir() and os.path.splitext(e.name)[1] == ".yaml"
            )
    except OSError as e:
        raise OSError(f"failed walking files in cloned directory {directory}: {e}") from e

    for path in files:
        with open(path, encoding="utf-8") as f:
            text = f.read()
        try:
            data = _yaml().load(text)
        except YAMLError:
            continue
        if not is_melange_config(data):
            continue
        try:
            config = Configuration.from_dict(data)
        except ValueError as e:
            raise ValueError(f"failed to read package config {path}: {e}") from e
        packages[config.package.name] = PackageFile(
            config=config,
            filename=os.path.relpath(path, directory),
            dir=directory,
            nolint=find_nolint(path),
        )
    print(f"found {len(packages)} packages")
    return packages


def read_package_configs(package_names: list[str], directory: str) -> dict[str, PackageFile]:
    """Read the named package configs, or all of them when none are named."""
    if not package_names:
        return read_all_packages_from_repo(directory)
    packages: dict[str, PackageFile] = {}
    for name in package_names:
        filename = name + ".yaml"
        full_path = os.path.join(directory, filename)
        try:
            config = read_melange_config(full_path)
            nolint = find_nolint(full_path)
        except (OSError, ValueError) as e:
            raise ValueError(f"failed to read package config {full_path}: {e}") from e
        packages[config.package.name] = PackageFile(
            config=config, filename=filename, dir=directory, nolint=nolint
        )
    return packages