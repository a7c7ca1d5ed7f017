"""Dependency graph of packages defined by melange configuration files."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field

import networkx as nx

from .melange import Configuration, Package, parse_configuration

logger = logging.getLogger(__name__)

_PROVIDED_PREFIX = "PROVIDED BY"


class GraphError(RuntimeError):
    """Raised when the package graph cannot be built or queried."""


class _EdgeExists(GraphError):
    pass


class _EdgeCreatesCycle(GraphError):
    pass


def _add_edge(g: nx.DiGraph, source: str, target: str) -> None:
    if g.has_edge(source, target):
        raise _EdgeExists(f"edge {source!r} -> {target!r} already exists")
    if source == target or (target in g and source in g and nx.has_path(g, target, source)):
        raise _EdgeCreatesCycle(f"edge {source!r} -> {target!r} would create a cycle")
    g.add_edge(source, target)


def _add_edge_if_missing(g: nx.DiGraph, source: str, target: str) -> None:
    try:
        _add_edge(g, source, target)
    except _EdgeExists:
        pass


def _provided(name: str, provider: str) -> Configuration:
    return Configuration(
        package=Package(
            name=name,
            version="PROVIDED",
            description=f"{_PROVIDED_PREFIX} {provider}",
        )
    )


def package_name_from_provides(prov: str) -> str:
    """Return the package name part of a ``provides`` entry, or "" if none."""
    for sep in ("~=", "="):
        name, found, _ = prov.partition(sep)
        if found:
            return name
    logger.warning("could not parse package name from %r", prov)
    return ""


@dataclass
class Graph:
    """An interdependent set of packages; an edge A -> B means A depends on B."""

    graph: nx.DiGraph = field(default_factory=nx.DiGraph)
    configs: dict[str, Configuration] = field(default_factory=dict)
    packages: list[str] = field(default_factory=list)

    def config(self, name: str) -> Configuration | None:
        """Return the configuration for a package or subpackage, or None."""
        return self.configs.get(name)

    def sorted(self) -> list[str]:
        """Return all names in topological order, dependents before dependencies."""
        try:
            return list(nx.lexicographical_topological_sort(self.graph))
        except nx.NetworkXUnfeasible as e:
            raise GraphError(f"graph contains a cycle: {e}") from e

    def _subgraph(self, starts: list[str], dependencies: bool) -> "Graph":
        sub = Graph()
        visited: set[str] = set()

        def walk(key: str) -> None:
            if key in visited:
                return
            visited.add(key)
            sub.graph.add_node(key)
            sub.packages.append(key)
            cfg = self.config(key)
            if cfg is not None:
                sub.configs[key] = cfg
            if key not in self.graph:
                return
            neighbours = self.graph.successors(key) if dependencies else self.graph.predecessors(key)
            for other in sorted(neighbours):
                sub.graph.add_node(other)
                if dependencies:
                    _add_edge_if_missing(sub.graph, key, other)
                else:
                    _add_edge_if_missing(sub.graph, other, key)
                walk(other)

        for start in starts:
            walk(start)
        return sub

    def subgraph_with_roots(self, roots: list[str]) -> "Graph":
        """Return the subgraph of the given roots and all their dependencies."""
        return self._subgraph(roots, dependencies=True)

    def subgraph_with_leaves(self, leaves: list[str]) -> "Graph":
        """Return the subgraph of the given leaves and everything depending on them."""
        return self._subgraph(leaves, dependencies=False)

    def _own_config(self, pkg_name: str) -> Configuration | None:
        cfg = self.config(pkg_name)
        if cfg is None:
            logger.info("no config for package: %s", pkg_name)
            return None
        if pkg_name != cfg.package.name:
            return None
        return cfg

    def make_target(self, pkg_name: str, arch: str) -> str:
        """Return the make command that builds the package, or "" for non-origin names."""
        cfg = self._own_config(pkg_name)
        if cfg is None:
            return ""
        p = cfg.package
        return f"make packages/{arch}/{pkg_name}-{p.version}-r{p.epoch}.apk"

    def makefile_entry(self, pkg_name: str) -> str:
        """Return the Makefile line that declares the package, or ""."""
        cfg = self._own_config(pkg_name)
        if cfg is None:
            return ""
        p = cfg.package
        return f"$(eval $(call build-package,{pkg_name},{p.version}-{p.epoch}))"

    def pkg_info(self, pkg_name: str) -> Package | None:
        """Return the package section for an origin package name, or None."""
        cfg = self._own_config(pkg_name)
        return None if cfg is None else cfg.package

    def nodes(self) -> list[str]:
        """Return the names of the graph's packages, sorted alphabetically."""
        return sorted(self.packages)

    def dependencies_of(self, node: str) -> list[str]:
        """Return the names of the package's direct dependencies, sorted."""
        if node not in self.graph:
            return []
        return sorted(self.graph.successors(node))


def _is_provided(cfg: Configuration) -> bool:
    return cfg.package.description.startswith(_PROVIDED_PREFIX)


def new_graph(directory: str) -> Graph:
    """Build a Graph from the configuration files directly inside ``directory``."""
    g = nx.DiGraph()
    configs: dict[str, Configuration] = {}
    packages: list[str] = []

    with os.scandir(directory) as it:
        entries = sorted(it, key=lambda e: e.name)

    for entry in entries:
        if not entry.is_file(follow_symlinks=False):
            continue
        if entry.name.startswith(".") or not entry.name.endswith(".yaml"):
            continue

        c = parse_configuration(entry.path)
        name = c.package.name
        if not name:
            raise GraphError(f"no package name in {entry.name!r}")
        existing = configs.get(name)
        if existing is not None and not _is_provided(existing):
            raise GraphError(f"duplicate package config found for {name!r} in {entry.name!r}")

        configs[name] = c
        packages.append(name)

        for prov in c.package.dependencies.provides:
            provided = package_name_from_provides(prov)
            if provided and provided not in configs:
                configs[provided] = _provided(provided, name)

        g.add_node(name)

    for name in packages:
        c = configs[name]

        for sub in c.subpackages:
            if not sub.name:
                raise GraphError(f"empty subpackage name for {c.package.name!r}")
            existing = configs.get(sub.name)
            if existing is not None and not _is_provided(existing):
                raise GraphError(
                    f"subpackage name {sub.name!r} (listed in package {c.package.name!r}) "
                    "was used already"
                )
            configs[sub.name] = c
            g.add_node(sub.name)
            try:
                _add_edge_if_missing(g, sub.name, c.package.name)
            except GraphError as e:
                raise GraphError(
                    f"unable to add edge for {name!r} subpackage {sub.name!r}: {e}"
                ) from e

            for prov in sub.dependencies.provides:
                provided = package_name_from_provides(prov)
                if provided and provided not in configs:
                    configs[provided] = _provided(provided, c.package.name)

        for dep in c.environment.contents.packages:
            if not dep:
                raise GraphError(
                    f"empty package name in environment packages for {c.package.name!r}"
                )
            g.add_node(dep)
            try:
                _add_edge(g, c.package.name, dep)
            except _EdgeCreatesCycle:
                logger.warning(
                    "package %r dependency on %r would introduce a cycle, "
                    "so %r needs to be provided via bootstrapping",
                    name,
                    dep,
                    dep,
                )
            except GraphError as e:
                raise GraphError(f"unable to add edge for {name!r} dependency {dep!r}: {e}") from e

    return Graph(graph=g, configs=configs, packages=packages)