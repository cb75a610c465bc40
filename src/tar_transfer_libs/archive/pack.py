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
"""Build the transfer archive from a file or directory, streaming to the output."""

from __future__ import annotations

import logging
import tarfile
import threading
from pathlib import Path
from typing import BinaryIO

from tar_transfer_libs.common import StrOrPath
from tar_transfer_libs.errors import BuildError, TransferCancelled

from .schema import ArchiveEntry, BuildOptions, BuildStats, EntryKind
from .utils import normalize_mode, tarinfo_from_entry
from .walk import WalkEntry, walk_tree

logger = logging.getLogger(__name__)


def _archive_entry(_walked: WalkEntry, *, arcname: str) -> ArchiveEntry | None:
    _st = _walked.stat
    if _walked.is_dir:
        _kind = EntryKind.directory
    elif _walked.is_regular:
        _kind = EntryKind.regular
    else:
        return  # symlinks, sockets, devices and fifos cannot be transferred

    return ArchiveEntry(
        kind=_kind,
        path=arcname,
        mode=normalize_mode(_st.st_mode, is_regular=_kind is EntryKind.regular),
        mtime=_st.st_mtime,
        size=_st.st_size if _kind is EntryKind.regular else 0,
    )


def _add_entry(
    _tar: tarfile.TarFile, _entry: ArchiveEntry, _walked: WalkEntry
) -> None:
    _tarinfo = tarinfo_from_entry(_entry)
    if _entry.kind is EntryKind.regular:
        with open(_walked.path, "rb") as _src:
            _tar.addfile(_tarinfo, _src)
    else:
        _tar.addfile(_tarinfo)


def build_archive(
    output: BinaryIO,
    root_dir: StrOrPath,
    entry_name: str,
    *,
    options: BuildOptions | None = None,
    cancel: threading.Event | None = None,
) -> BuildStats:
    """Stream a tar archive of `<root_dir>/<entry_name>` into <output>.

    Entry names are relative to `<root_dir>/<entry_name>` itself, so archiving `/etc`
        gives `passwd`, `hosts`, etc. The root directory is not added. If the
        root is a regular file, a single entry named <entry_name> is added.

    Only regular files and directories are added, other file types are skipped.
    The <output> is not closed.

    Raises:
        TransferCancelled if <cancel> is set, the end-of-archive marker is not written.
        BuildError on any failure when walking the tree or reading the files.
    """
    options = options or BuildOptions()
    source = Path(root_dir) / entry_name
    stats = BuildStats()

    try:
        with tarfile.open(
            fileobj=output, mode="w|", format=tarfile.PAX_FORMAT
        ) as _tar:
            _tar.copybufsize = options.read_chunk_size
            for _walked in walk_tree(source):
                if cancel is not None and cancel.is_set():
                    raise TransferCancelled(f"building archive of {source} cancelled")

                _arcname = _walked.relpath
                if not _arcname:
                    if not _walked.is_regular:
                        continue
                    _arcname = Path(entry_name).name

                if (_entry := _archive_entry(_walked, arcname=_arcname)) is None:
                    logger.debug(f"skip unsupported file type: {_walked.path}")
                    continue

                logger.debug(f"add {_entry.kind.value}: {_entry.path!r}")
                _add_entry(_tar, _entry, _walked)

                stats.entries += 1
                if _entry.kind is EntryKind.directory:
                    stats.directories += 1
                else:
                    stats.files += 1
                    stats.bytes += _entry.size
    except TransferCancelled:
        raise
    except (OSError, tarfile.TarError, ValueError) as e:
        raise BuildError(f"failed to build archive from {source}: {e!r}") from e

    logger.info(
        f"archive of {source} built: {stats.entries} entries "
        f"({stats.files} files, {stats.directories} dirs, {stats.bytes} bytes)"
    )
    return stats
