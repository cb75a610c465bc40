# Copyright 2025 TIER IV, INC. All rights reserved.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
from __future__ import annotations

import io
import os
import tarfile
from pathlib import Path

import pytest

MTIME = 1_700_000_000
NESTED_FILE_SIZE = 300 * 1024

# the entries of the <src_tree>, in the order the archive builder emits them
SRC_TREE_ENTRIES = [
    "a.txt",
    "bin",
    "bin/run.sh",
    "empty_dir",
    "sub",
    "sub/deep",
    "sub/deep/nested.bin",
    "sub/setuid_bin",
]


def _set_mtime(_fpath: Path) -> None:
    os.utime(_fpath, (MTIME, MTIME), follow_symlinks=False)


@pytest.fixture
def src_tree(tmp_path: Path) -> Path:
    """Prepare a source tree with files, directories and a symlink.

    src/
        a.txt              0644
        bin/               0755
            run.sh         0744
        empty_dir/         0700
        link -> a.txt
        sub/               0750
            deep/          0755
                nested.bin 0600
            setuid_bin     4755
    """
    _root = tmp_path / "src"
    _root.mkdir()

    (_a := _root / "a.txt").write_bytes(b"hello")
    _a.chmod(0o644)

    (_bin := _root / "bin").mkdir()
    (_run := _bin / "run.sh").write_bytes(b"#!/bin/sh\necho hi\n")
    _run.chmod(0o744)
    _bin.chmod(0o755)

    (_empty := _root / "empty_dir").mkdir()
    _empty.chmod(0o700)

    (_root / "link").symlink_to("a.txt")

    (_sub := _root / "sub").mkdir()
    (_deep := _sub / "deep").mkdir()
    (_nested := _deep / "nested.bin").write_bytes(os.urandom(NESTED_FILE_SIZE))
    _nested.chmod(0o600)
    _deep.chmod(0o755)
    (_setuid := _sub / "setuid_bin").write_bytes(b"\x7fELF")
    _setuid.chmod(0o4755)
    _sub.chmod(0o750)

    # children first, creating children updates the mtime of the parent
    for _path in sorted(_root.rglob("*"), key=lambda _p: len(_p.parts), reverse=True):
        _set_mtime(_path)
    _set_mtime(_root)
    return _root


class TarBuilder:
    """Craft an in-memory tar archive, entry names are written as they are."""

    def __init__(self, format: int = tarfile.PAX_FORMAT) -> None:
        self._buf = io.BytesIO()
        self._tar = tarfile.open(fileobj=self._buf, mode="w", format=format)

    def add_dir(self, name: str, mode: int = 0o755, mtime: int = MTIME) -> TarBuilder:
        _tarinfo = tarfile.TarInfo(name)
        _tarinfo.type = tarfile.DIRTYPE
        _tarinfo.mode = mode
        _tarinfo.mtime = mtime
        self._tar.addfile(_tarinfo)
        return self

    def add_file(
        self, name: str, data: bytes = b"", mode: int = 0o644, mtime: int = MTIME
    ) -> TarBuilder:
        _tarinfo = tarfile.TarInfo(name)
        _tarinfo.size = len(data)
        _tarinfo.mode = mode
        _tarinfo.mtime = mtime
        self._tar.addfile(_tarinfo, io.BytesIO(data))
        return self

    def add_special(self, name: str, type: bytes, linkname: str = "") -> TarBuilder:
        _tarinfo = tarfile.TarInfo(name)
        _tarinfo.type = type
        _tarinfo.linkname = linkname
        _tarinfo.mtime = MTIME
        self._tar.addfile(_tarinfo)
        return self

    def getvalue(self) -> bytes:
        self._tar.close()
        return self._buf.getvalue()


@pytest.fixture
def tar_builder() -> type[TarBuilder]:
    return TarBuilder
