"""Lint rules for melange package configuration files."""

from __future__ import annotations

import logging
import os
import re
import subprocess
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from .melange import (
    Configuration,
    PackageFile,
    find_nolint,
    is_melange_config,
    read_all_packages_from_repo,
)

_RE_SHA256 = re.compile(r"^[a-fA-F0-9]{64}$")
_RE_SHA512 = re.compile(r"^[a-fA-F0-9]{128}$")
_RE_SHA1 = re.compile(r"^[a-fA-F0-9]{40}$")
_RE_VERSION = re.compile(
    r"^([0-9]+)((\.[0-9]+)*)([a-z]?)((_alpha|_beta|_pre|_rc)([0-9]*))?"
    r"((_cvs|_svn|_git|_hg|_p)([0-9]*))?((-r)([0-9]+))?$"
)
_RE_SCHEME = re.compile(r"^[A-Za-z][A-Za-z0-9+.\-]*:")
_RE_CONTROL = re.compile(r"[\x00-\x1f\x7f]")

FORBIDDEN_REPOSITORIES = ("https://packages.wolfi.dev/os",)
FORBIDDEN_KEYRINGS = ("https://packages.wolfi.dev/os/wolfi-signing.rsa.pub",)
BAD_TEMPLATE_VARS = ("$pkgdir", "$pkgver", "$pkgname", "$srcdir")


class Severity(str, Enum):
    """How serious a rule violation is."""

    ERROR = "ERROR"
    WARNING = "WARNING"
    INFO = "INFO"


LintFunction = Callable[[Configuration], None]
ConditionFunction = Callable[[], bool]


@dataclass
class Rule:
    """A single lint rule; ``lint_func`` raises when the configuration violates it."""

    name: str
    description: str
    severity: Severity
    lint_func: LintFunction
    condition_funcs: list[ConditionFunction] = field(default_factory=list)


@dataclass
class EvalRuleError:
    """A rule that failed, with the formatted error message."""

    rule: Rule
    error: str


@dataclass
class EvalResult:
    """The failed rules for one package."""

    file: str
    errors: list[EvalRuleError] = field(default_factory=list)

    def message(self) -> str:
        """Return all errors combined into one message."""
        if not self.errors:
            return ""
        points = "\n\t".join(f"* {e.error}" for e in self.errors)
        count = len(self.errors)
        noun = "error" if count == 1 else "errors"
        return f"{count} {noun} occurred:\n\t{points}\n\n"


class Result(list):
    """The evaluation results of all linted packages."""

    def has_errors(self) -> bool:
        return any(r.errors for r in self)


@dataclass
class Options:
    """Settings for a Linter."""

    path: str = ""
    verbose: bool = False
    skip_rules: list[str] = field(default_factory=list)


def _base_yaml() -> YAML:
    return YAML(typ="base")


def _read_single_file(path: str) -> dict[str, PackageFile]:
    if os.path.splitext(path)[1] != ".yaml":
        print("found 0 packages")
        return {}
    with open(path, encoding="utf-8") as f:
        text = f.read()
    try:
        data = _base_yaml().load(text)
    except YAMLError:
        data = None
    if not is_melange_config(data):
        print("found 0 packages")
        return {}
    try:
        config = Configuration.from_dict(data)
    except ValueError as e:
        raise ValueError(f"failed to read package config {path}: {e}") from e
    print("found 1 packages")
    return {
        config.package.name: PackageFile(
            config=config, filename=".", dir=path, nolint=find_nolint(path)
        )
    }


def _read_packages(path: str) -> dict[str, PackageFile]:
    if os.path.isdir(path):
        return read_all_packages_from_repo(path)
    if not os.path.exists(path):
        raise OSError(f"failed walking files in {path}: no such file or directory")
    return _read_single_file(path)


def _is_request_uri(uri: str) -> bool:
    if not uri or _RE_CONTROL.search(uri):
        return False
    if uri.startswith("/"):
        return True
    return bool(_RE_SCHEME.match(uri))


class Linter:
    """Evaluates all rules against the package configurations at a path."""

    def __init__(self, options: Options | None = None, logger: logging.Logger | None = None) -> None:
        self.options = options or Options()
        self.logger = logger or logging.getLogger("wolfictl.lint")
        self._makefile_output: str | None = None

    def lint(self) -> Result:
        """Evaluate every rule and return the failures, per package."""
        rules = all_rules(self)
        files = _read_packages(self.options.path)
        results = Result()
        for name in sorted(files):
            package = files[name]
            failed: list[EvalRuleError] = []
            for rule in rules:
                if not all(cond() for cond in rule.condition_funcs):
                    if self.options.verbose:
                        self.logger.info(
                            "%s: skipping rule %s because condition is not met", name, rule.name
                        )
                    continue
                if rule.name in self.options.skip_rules:
                    if self.options.verbose:
                        self.logger.info(
                            "%s: skipping rule %s because --skip-rule flag set", name, rule.name
                        )
                    continue
                if rule.name in package.nolint:
                    if self.options.verbose:
                        self.logger.info(
                            "%s: skipping rule %s because file contains #nolint:%s",
                            name,
                            rule.name,
                            rule.name,
                        )
                    continue
                try:
                    rule.lint_func(package.config)
                except Exception as e:  # every failure of a rule is reported, not raised
                    msg = f"[{rule.name}]: {e} ({rule.severity.value})"
                    if self.options.verbose:
                        msg += f" - ({rule.description})"
                    failed.append(EvalRuleError(rule=rule, error=msg))
            if failed:
                results.append(EvalResult(file=name, errors=failed))
        return results

    def print(self, result: Result) -> None:
        """Log the failures in ``result``."""
        found = False
        for res in result:
            if res.errors:
                found = True
                self.logger.info("Package: %s: %s", res.file, res.message())
        if not found:
            self.logger.info("No linting issues found!")

    def print_rules(self) -> None:
        """Log the names and descriptions of all rules."""
        self.logger.info("Available rules:")
        for rule in all_rules(self):
            self.logger.info("* %s: %s", rule.name, rule.description.title())

    def _makefile_exists(self) -> bool:
        return os.path.exists(os.path.join(self.options.path, "Makefile"))

    def _read_makefile(self) -> str:
        try:
            proc = subprocess.run(
                ["make", "-C", self.options.path, "list"],
                capture_output=True,
                text=True,
                check=False,
            )
        except OSError as e:
            raise RuntimeError(f"failed to call 'make list': {e}") from e
        if proc.returncode != 0:
            raise RuntimeError(f"failed to call 'make list': exit status {proc.returncode}")
        if not proc.stdout:
            raise RuntimeError("make list is empty")
        return proc.stdout

    def _check_makefile(self, package_name: str) -> bool:
        if self._makefile_output is None:
            self._makefile_output = self._read_makefile()
        return any(package_name in word for word in self._makefile_output.split())


def _check_makefile_entry(linter: Linter) -> LintFunction:
    def check(config: Configuration) -> None:
        if not linter._check_makefile(config.package.name):
            raise ValueError(f"package {config.package.name} is not exist in the Makefile")

    return check


def _check_forbidden_repository(config: Configuration) -> None:
    for repo in config.environment.contents.repositories:
        if repo in FORBIDDEN_REPOSITORIES:
            raise ValueError(f"forbidden repository {repo} is used")


def _check_forbidden_keyring(config: Configuration) -> None:
    for keyring in config.environment.contents.keyring:
        if keyring in FORBIDDEN_KEYRINGS:
            raise ValueError(f"forbidden keyring {keyring} is used")


def _check_copyright(config: Configuration) -> None:
    if not config.package.copyright:
        raise ValueError("copyright header is missing")
    for c in config.package.copyright:
        if not c.license:
            raise ValueError("license is missing")


def _check_epoch(linter: Linter) -> LintFunction:
    def check(_: Configuration) -> None:
        path = linter.options.path
        if os.path.isdir(path):
            return
        with open(path, encoding="utf-8") as f:
            text = f.read()
        data = _base_yaml().load(text)
        if data is None:
            raise ValueError(f"config {path} has no yaml content")
        pkg = data.get("package") if isinstance(data, dict) else None
        if not isinstance(pkg, dict):
            raise ValueError(f"config {path} has no package content")
        if "epoch" not in pkg:
            raise ValueError(f"config {path} has no package.epoch")

    return check


def _check_fetch_uri(config: Configuration) -> None:
    for p in config.pipeline:
        if p.uses == "fetch":
            if "uri" not in p.with_:
                raise ValueError("uri is missing in fetch pipeline")
            if not _is_request_uri(p.with_["uri"]):
                raise ValueError("uri is invalid URL structure")


def _check_fetch_digest(config: Configuration) -> None:
    for p in config.pipeline:
        if p.uses != "fetch":
            continue
        given = False
        if "expected-sha256" in p.with_:
            if not _RE_SHA256.match(p.with_["expected-sha256"]):
                raise ValueError("expected-sha256 is not valid SHA256")
            given = True
        if "expected-sha512" in p.with_:
            if not _RE_SHA512.match(p.with_["expected-sha512"]):
                raise ValueError("expected-sha512 is not valid SHA512")
            given = True
        if not given:
            raise ValueError("expected-sha256 or expected-sha512 is missing")


def _check_repeated_deps(config: Configuration) -> None:
    seen: set[str] = set()
    for p in config.environment.contents.packages:
        if p in seen:
            raise ValueError(f"package {p} is duplicated in environment")
        seen.add(p)


def _check_template_vars(config: Configuration) -> None:
    runs = [s.runs for s in config.pipeline]
    runs += [p.runs for sub in config.subpackages for p in sub.pipeline]
    for text in runs:
        for bad in BAD_TEMPLATE_VARS:
            if bad in text:
                raise ValueError(f"package contains likely incorrect template var {bad}")


def _check_version(config: Configuration) -> None:
    version = config.package.version
    if not _RE_VERSION.match(version):
        raise ValueError(f"invalid version {version}, could not parse")


def _check_git_checkout_commit(config: Configuration) -> None:
    for p in config.pipeline:
        if p.uses == "git-checkout":
            if "expected-commit" not in p.with_:
                raise ValueError("expected-commit is missing")
            if not _RE_SHA1.match(p.with_["expected-commit"]):
                raise ValueError("expected-commit is not valid SHA1")


def _check_git_checkout_tag(config: Configuration) -> None:
    for p in config.pipeline:
        if p.uses == "git-checkout" and "tag" not in p.with_:
            raise ValueError("tag is missing")


def all_rules(linter: Linter) -> list[Rule]:
    """Return every available rule, in evaluation order."""
    return [
        Rule(
            "no-makefile-entry-for-package",
            "every package should have a corresponding entry in Makefile",
            Severity.ERROR,
            _check_makefile_entry(linter),
            [linter._makefile_exists],
        ),
        Rule(
            "forbidden-repository-used",
            "do not specify a forbidden repository",
            Severity.ERROR,
            _check_forbidden_repository,
        ),
        Rule(
            "forbidden-keyring-used",
            "do not specify a forbidden keyring",
            Severity.ERROR,
            _check_forbidden_keyring,
        ),
        Rule(
            "valid-copyright-header",
            "every package should have a valid copyright header",
            Severity.INFO,
            _check_copyright,
        ),
        Rule(
            "contains-epoch",
            "every package should have an epoch",
            Severity.ERROR,
            _check_epoch(linter),
        ),
        Rule(
            "valid-pipeline-fetch-uri",
            "every fetch pipeline should have a valid uri",
            Severity.ERROR,
            _check_fetch_uri,
        ),
        Rule(
            "valid-pipeline-fetch-digest",
            "every fetch pipeline should have a valid digest",
            Severity.ERROR,
            _check_fetch_digest,
        ),
        Rule(
            "no-repeated-deps",
            "no repeated dependencies",
            Severity.ERROR,
            _check_repeated_deps,
        ),
        Rule(
            "bad-template-var",
            "bad template variable",
            Severity.ERROR,
            _check_template_vars,
        ),
        Rule(
            "bad-version",
            "version is malformed",
            Severity.ERROR,
            _check_version,
        ),
        Rule(
            "valid-pipeline-git-checkout-commit",
            "every git-checkout pipeline should have a valid expected-commit",
            Severity.ERROR,
            _check_git_checkout_commit,
        ),
        Rule(
            "valid-pipeline-git-checkout-tag",
            "every git-checkout pipeline should have a tag",
            Severity.ERROR,
            _check_git_checkout_tag,
        ),
    ]