import pytest

from wolfictl.melange import (
    find_nolint,
    is_melange_config,
    load_configuration,
    read_package_configs,
)

MELANGE = """\
#nolint:valid-copyright-header,bad-version
package:
  name: foo
  version: 1.0
  epoch: 2
environment:
  contents:
    packages:
      - busybox
pipeline:
  - uses: fetch
    with:
      uri: https://example.com/foo.tar.gz
"""

APKO = """\
contents:
  packages:
    - busybox
entrypoint:
  command: /bin/sh
"""


def test_read_package_configs_not_subfolders(tmp_path):
    (tmp_path / "foo.yaml").write_text(MELANGE)
    (tmp_path / "image.yaml").write_text(APKO)
    sub = tmp_path / "sub"
    sub.mkdir()
    (sub / "bar.yaml").write_text(MELANGE.replace("foo", "bar"))
    packages = read_package_configs([], str(tmp_path))
    assert len(packages) == 1
    assert packages["foo"].filename == "foo.yaml"


def test_read_named_package(tmp_path):
    (tmp_path / "foo.yaml").write_text(MELANGE)
    packages = read_package_configs(["foo"], str(tmp_path))
    pkg = packages["foo"]
    assert pkg.config.package.version == "1.0"
    assert pkg.config.package.epoch == 2
    assert pkg.nolint == ["valid-copyright-header", "bad-version"]


def test_read_named_missing_raises(tmp_path):
    with pytest.raises(ValueError):
        read_package_configs(["missing"], str(tmp_path))


def test_load_configuration_pipeline():
    cfg = load_configuration(MELANGE)
    assert cfg.pipeline[0].uses == "fetch"
    assert cfg.pipeline[0].with_["uri"] == "https://example.com/foo.tar.gz"
    assert cfg.environment.contents.packages == ["busybox"]


def test_is_melange_config():
    assert is_melange_config({"package": {"name": "a", "version": "1"}})
    assert not is_melange_config({"package": {"name": "a"}})
    assert not is_melange_config(["x"])


def test_find_nolint_absent(tmp_path):
    path = tmp_path / "x.yaml"
    path.write_text("package:\n  name: x\n")
    assert find_nolint(str(path)) == []