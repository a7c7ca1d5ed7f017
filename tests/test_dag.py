import logging

import pytest

from wolfictl.dag import GraphError, new_graph, package_name_from_provides


def _write(directory, filename, name, version="1.0.0", epoch=0, deps=(), subpackages=(), provides=()):
    lines = [
        "package:",
        f"  name: {name}",
        f"  version: {version}",
        f"  epoch: {epoch}",
    ]
    if provides:
        lines.append("  dependencies:")
        lines.append("    provides:")
        lines.extend(f"      - {p}" for p in provides)
    if deps:
        lines += ["environment:", "  contents:", "    packages:"]
        lines.extend(f"      - {d}" for d in deps)
    if subpackages:
        lines.append("subpackages:")
        lines.extend(f"  - name: {s}" for s in subpackages)
    (directory / filename).write_text("\n".join(lines) + "\n")


@pytest.fixture
def repo(tmp_path):
    _write(tmp_path, "app.yaml", "app", version="2.1.0", epoch=3, deps=["lib", "tool"], subpackages=["app-dev"])
    _write(tmp_path, "lib.yaml", "lib", version="1.0.0", deps=["base"], provides=["libfoo=1.0"])
    _write(tmp_path, "tool.yaml", "tool", deps=["base"])
    _write(tmp_path, "base.yaml", "base")
    (tmp_path / ".hidden.yaml").write_text("package:\n  name: hidden\n  version: 1\n")
    sub = tmp_path / "subdir"
    sub.mkdir()
    _write(sub, "nested.yaml", "nested")
    return tmp_path


def test_new_graph_nodes(repo):
    g = new_graph(str(repo))
    assert g.nodes() == ["app", "base", "lib", "tool"]


def test_sorted_puts_dependents_first(repo):
    order = new_graph(str(repo)).sorted()
    assert set(order) == {"app", "app-dev", "base", "lib", "tool"}
    assert order.index("app") < order.index("lib")
    assert order.index("lib") < order.index("base")
    assert order.index("app-dev") < order.index("app")


def test_dependencies_of(repo):
    g = new_graph(str(repo))
    assert g.dependencies_of("app") == ["lib", "tool"]
    assert g.dependencies_of("base") == []
    assert g.dependencies_of("missing") == []


def test_subpackage_config_is_origin(repo):
    g = new_graph(str(repo))
    assert g.config("app-dev").package.name == "app"
    assert g.config("nothing") is None


def test_provided_config(repo):
    cfg = new_graph(str(repo)).config("libfoo")
    assert cfg.package.version == "PROVIDED"
    assert cfg.package.description == "PROVIDED BY lib"


def test_make_target_and_entry(repo):
    g = new_graph(str(repo))
    assert g.make_target("app", "x86_64") == "make packages/x86_64/app-2.1.0-r3.apk"
    assert g.makefile_entry("app") == "$(eval $(call build-package,app,2.1.0-3))"
    assert g.make_target("app-dev", "x86_64") == ""
    assert g.makefile_entry("unknown") == ""


def test_pkg_info(repo):
    g = new_graph(str(repo))
    assert g.pkg_info("lib").version == "1.0.0"
    assert g.pkg_info("app-dev") is None


def test_subgraph_with_roots(repo):
    sub = new_graph(str(repo)).subgraph_with_roots(["tool"])
    assert sub.nodes() == ["base", "tool"]
    assert sub.dependencies_of("tool") == ["base"]
    assert sub.config("tool").package.name == "tool"


def test_subgraph_with_leaves(repo):
    sub = new_graph(str(repo)).subgraph_with_leaves(["lib"])
    assert sub.nodes() == ["app", "app-dev", "lib"]
    assert sub.dependencies_of("app") == ["lib"]


def test_duplicate_package_fails(tmp_path):
    _write(tmp_path, "a.yaml", "same")
    _write(tmp_path, "b.yaml", "same")
    with pytest.raises(GraphError, match="duplicate package config"):
        new_graph(str(tmp_path))


def test_missing_name_fails(tmp_path):
    (tmp_path / "x.yaml").write_text("package:\n  version: 1.0\n")
    with pytest.raises(GraphError, match="no package name"):
        new_graph(str(tmp_path))


def test_repeated_dependency_fails(tmp_path):
    _write(tmp_path, "a.yaml", "a", deps=["x", "x"])
    with pytest.raises(GraphError, match="unable to add edge"):
        new_graph(str(tmp_path))


def test_subpackage_name_reused_fails(tmp_path):
    _write(tmp_path, "a.yaml", "a", subpackages=["b"])
    _write(tmp_path, "b.yaml", "b")
    with pytest.raises(GraphError, match="was used already"):
        new_graph(str(tmp_path))


def test_cycle_is_skipped_with_warning(tmp_path, caplog):
    _write(tmp_path, "a.yaml", "a", deps=["b"])
    _write(tmp_path, "b.yaml", "b", deps=["a"])
    with caplog.at_level(logging.WARNING):
        g = new_graph(str(tmp_path))
    assert "would introduce a cycle" in caplog.text
    assert g.dependencies_of("a") == ["b"]
    assert g.dependencies_of("b") == []
    assert g.sorted() == ["a", "b"]


@pytest.mark.parametrize(
    "prov, expected",
    [
        ("foo=1.2.3", "foo"),
        ("so:libc.so.6~=2", "so:libc.so.6"),
        ("cmd:sh=1", "cmd:sh"),
        ("no-version", ""),
    ],
)
def test_package_name_from_provides(prov, expected):
    assert package_name_from_provides(prov) == expected