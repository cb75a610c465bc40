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

import os
import tarfile
from pathlib import Path

from tar_transfer_libs.errors import PathContainmentError, UnsafePathError

from . import EXEC_BITS, MODE_MASK, PERMISSION_MASK
from .schema import ArchiveEntry, EntryKind

REGULAR_TYPES = (tarfile.REGTYPE, tarfile.AREGTYPE)


def normalize_mode(mode: int, *, is_regular: bool) -> int:
    """Strip setuid/setgid/sticky bits from <mode>.

    For regular files, any execute bit widens to all execute bits.
    """
    _perm = mode & MODE_MASK & PERMISSION_MASK
    if is_regular and _perm & EXEC_BITS:
        _perm |= EXEC_BITS
    return _perm


def split_entry_name(name: str) -> tuple[str, ...]:
    """Validate an archive entry name and split it into path components.

    Backslashes are allowed, they are part of the file name (like systemd
        escaped unit names), not path separators.

    Raises:
        UnsafePathError if <name> is empty, absolute, holds a NUL byte or
            contains a `..` segment.
    """
    if not name:
        raise UnsafePathError("archive contained an entry with empty name")
    if name.startswith("/"):
        raise UnsafePathError(f"archive contained absolute entry name: {name!r}")
    if "\x00" in name:
        raise UnsafePathError(f"archive contained entry name with NUL byte: {name!r}")

    _parts: list[str] = []
    for _part in name.split("/"):
        if _part == "..":
            raise UnsafePathError(
                f"archive contained entry name with parent directory segment: {name!r}"
            )
        if _part and _part != ".":
            _parts.append(_part)
    return tuple(_parts)


def resolve_within(root: str, parts: tuple[str, ...], *, name: str) -> Path:
    """Join <parts> to the canonical <root> and ensure it doesn't escape <root>.

    <root> MUST already be canonical(see os.path.realpath).
    Existing symlinks on the way are followed when checking, so a symlink
        inside <root> pointing to outside will be rejected.
    """
    _target = os.path.join(root, *parts)
    _canonical = os.path.realpath(_target)
    _root_prefix = root.rstrip(os.sep) + os.sep
    if _canonical != root and not _canonical.startswith(_root_prefix):
        raise PathContainmentError(
            f"archive entry path outside of extraction root: {name!r}"
        )
    return Path(_target)


def entry_from_tarinfo(tarinfo: tarfile.TarInfo) -> ArchiveEntry:
    """Parse and validate the archive entry from <tarinfo>."""
    _parts = split_entry_name(tarinfo.name)
    if tarinfo.isdir():
        _kind = EntryKind.directory
    elif tarinfo.type in REGULAR_TYPES:
        _kind = EntryKind.regular
    else:
        _kind = EntryKind.unsupported

    return ArchiveEntry(
        kind=_kind,
        path="/".join(_parts),
        mode=normalize_mode(tarinfo.mode, is_regular=_kind is EntryKind.regular),
        mtime=tarinfo.mtime,
        size=tarinfo.size if _kind is EntryKind.regular else 0,
    )


def tarinfo_from_entry(entry: ArchiveEntry) -> tarfile.TarInfo:
    if entry.kind is EntryKind.directory:
        _tarinfo = tarfile.TarInfo(f"{entry.path.rstrip('/')}/")
        _tarinfo.type = tarfile.DIRTYPE
    elif entry.kind is EntryKind.regular:
        _tarinfo = tarfile.TarInfo(entry.path)
        _tarinfo.type = tarfile.REGTYPE
        _tarinfo.size = entry.size
    else:
        raise ValueError(f"cannot write {entry.kind} entry into archive")

    _tarinfo.mode = entry.mode
    _tarinfo.mtime = entry.mtime
    _tarinfo.uid = _tarinfo.gid = 0
    _tarinfo.uname = _tarinfo.gname = ""
    return _tarinfo
