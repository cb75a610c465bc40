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
"""Common shared helper functions for IO."""

from __future__ import annotations

import os
import shutil
from pathlib import Path
from typing import BinaryIO

from ._common import tmp_fname

DEFAULT_FILE_CHUNK_SIZE = 1024**2  # 1MiB


def copy_stream(
    src: BinaryIO,
    dst: BinaryIO,
    *,
    length: int | None = None,
    chunk_size: int = DEFAULT_FILE_CHUNK_SIZE,
) -> int:
    """Copy from <src> to <dst> chunk by chunk, return the number of bytes copied.

    If <length> is set, at most <length> bytes are copied. The copy stops
        early when <src> reaches EOF, the caller compares the return value
        against the expected length.
    """
    copied = 0
    while length is None or copied < length:
        _to_read = chunk_size if length is None else min(chunk_size, length - copied)
        if not (_chunk := src.read(_to_read)):
            break
        dst.write(_chunk)
        copied += len(_chunk)
    return copied


def remove_file(_fpath: Path, *, ignore_error: bool = True) -> None:
    """Use proper way to remove <_fpath>.

    Symlinks are always unlinked, never followed, real directories are removed
        recursively.
    """
    try:
        if _fpath.is_dir() and not _fpath.is_symlink():
            return shutil.rmtree(_fpath, ignore_errors=ignore_error)
        _fpath.unlink(missing_ok=True)
    except Exception:
        if not ignore_error:
            raise


def write_file(
    src: BinaryIO,
    dst: Path,
    *,
    mode: int,
    chunk_size: int = DEFAULT_FILE_CHUNK_SIZE,
) -> int:
    """Write the content of <src> to <dst> with <mode>, return the number of bytes written.

    The content is written to a tmp file next to <dst> first, and then
        renamed to <dst>. The tmp file is removed on failure.
    """
    _tmp = dst.parent / tmp_fname(dst.name)
    try:
        _fd = os.open(_tmp, os.O_WRONLY | os.O_CREAT | os.O_EXCL, mode)
        with open(_fd, "wb") as _dst:
            _written = copy_stream(src, _dst, chunk_size=chunk_size)
        os.chmod(_tmp, mode)
        os.replace(_tmp, dst)
    except BaseException:
        _tmp.unlink(missing_ok=True)
        raise
    return _written


def utime(_fpath: Path, mtime: float) -> None:
    os.utime(_fpath, (mtime, mtime), follow_symlinks=False)
