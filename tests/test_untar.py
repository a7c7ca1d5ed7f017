import io
import os
import tarfile

import pytest

from wolfictl.untar import TaintedPathError, untar


def _archive(members):
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:gz") as tar:
        for name, data in members:
            if data is None:
                info = tarfile.TarInfo(name)
                info.type = tarfile.DIRTYPE
                info.mode = 0o755
                tar.addfile(info)
            else:
                info = tarfile.TarInfo(name)
                info.size = len(data)
                info.mode = 0o755
                tar.addfile(info, io.BytesIO(data))
    buf.seek(0)
    return buf


def test_untar_extracts_files(tmp_path):
    src = _archive([("usr", None), ("usr/bin/hello", b"#!/bin/sh\necho hi\n")])
    untar(src, str(tmp_path))
    extracted = (tmp_path / "usr" / "bin" / "hello").read_bytes()
    assert extracted == b"#!/bin/sh\necho hi\n"
    assert (tmp_path / "usr").is_dir()


def test_untar_rejects_traversal(tmp_path):
    dst = tmp_path / "out"
    dst.mkdir()
    src = _archive([("../evil", b"x")])
    with pytest.raises(TaintedPathError):
        untar(src, str(dst))
    assert not os.path.exists(tmp_path / "evil")


def test_untar_rejects_non_gzip(tmp_path):
    with pytest.raises(OSError):
        untar(io.BytesIO(b"not gzip"), str(tmp_path))