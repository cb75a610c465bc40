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
"""Extract the transfer archive from a stream, defending against malicious input.

Each entry is validated before anything is written:
1. the entry name must be relative and free of `..` segments,
2. the joined and canonicalized target must stay inside the extraction root,
3. setuid/setgid/sticky bits are stripped from the mode.

Nothing is rolled back on failure, entries extracted before the failure stay in place.
"""

from __future__ import annotations

import logging
import os
import tarfile
import threading
from pathlib import Path
from typing import BinaryIO

from tar_transfer_libs.common import StrOrPath, copy_stream, remove_file, utime
from tar_transfer_libs.errors import (
    ExtractError,
    PathResolutionError,
    TransferCancelled,
    TransferError,
    TruncatedEntryError,
    UnsafePathError,
    UnsupportedEntryError,
)

from .schema import ArchiveEntry, EntryKind, ExtractOptions, ExtractStats
from .utils import entry_from_tarinfo, resolve_within

logger = logging.getLogger(__name__)

_O_NOFOLLOW = getattr(os, "O_NOFOLLOW", 0)
_CREATE_FLAGS = os.O_WRONLY | os.O_CREAT | os.O_EXCL | _O_NOFOLLOW


class _ReplayReader:
    """Give back the <head> bytes already read from <stream>, then read from <stream>."""

    def __init__(self, head: bytes, stream: BinaryIO) -> None:
        self._head = head
        self._stream = stream

    def read(self, size: int = -1) -> bytes:
        if not self._head:
            return self._stream.read(size)
        if size is None or size < 0:
            _data, self._head = self._head + self._stream.read(), b""
            return _data
        _data, self._head = self._head[:size], self._head[size:]
        return _data


class ArchiveExtractor:
    """Extract one archive stream into <extraction_root>.

    This class is NOT reusable, create a new instance for each stream.
    """

    def __init__(
        self,
        extraction_root: StrOrPath,
        *,
        options: ExtractOptions | None = None,
        cancel: threading.Event | None = None,
    ) -> None:
        if not os.path.isdir(extraction_root):
            raise PathResolutionError(
                f"extraction root {extraction_root} is not a directory"
            )
        self._root = os.path.realpath(extraction_root)
        self._options = options or ExtractOptions()
        self._cancel = cancel

        self._made_dirs: set[Path] = set()
        # NOTE: directory metadata is applied after all entries are extracted,
        #   writing into a directory updates its mtime, and a read-only directory
        #   must not block its own children.
        self._pending_dirs: dict[Path, ArchiveEntry] = {}
        self.stats = ExtractStats()

    def _check_cancelled(self) -> None:
        if self._cancel is not None and self._cancel.is_set():
            raise TransferCancelled(f"extraction into {self._root} cancelled")

    def _apply_ownership(self, _target: Path) -> None:
        _ownership = self._options.ownership
        if _ownership.is_unset:
            return

        _uid, _gid = _ownership.chown_args()
        try:
            os.chown(_target, _uid, _gid, follow_symlinks=False)
        except (OSError, AttributeError) as e:  # no os.chown on Windows
            if not self._options.best_effort_chown:
                raise ExtractError(f"failed to chown {_target}: {e!r}") from e
            logger.debug(f"ignore chown failure on {_target}: {e!r}")

    def _ensure_dir(self, _dir: Path) -> None:
        if _dir in self._made_dirs:
            return
        _dir.mkdir(mode=self._options.default_dir_mode, parents=True, exist_ok=True)
        self._made_dirs.add(_dir)

    def _extract_dir(self, _target: Path, _entry: ArchiveEntry) -> None:
        self._ensure_dir(_target)
        self._pending_dirs[_target] = _entry

    def _copy_entry_data(
        self, _src: BinaryIO, _dst: BinaryIO, _entry: ArchiveEntry
    ) -> int:
        try:
            _copied = copy_stream(
                _src,
                _dst,
                length=_entry.size,
                chunk_size=self._options.read_chunk_size,
            )
        except tarfile.ReadError as e:
            raise TruncatedEntryError(_entry.path, _entry.size, _dst.tell()) from e

        if _copied != _entry.size:
            raise TruncatedEntryError(_entry.path, _entry.size, _copied)
        return _copied

    def _extract_regular(
        self, _target: Path, _entry: ArchiveEntry, _src: BinaryIO
    ) -> None:
        self._ensure_dir(_target.parent)
        remove_file(_target)
        self._made_dirs.discard(_target)

        _fd = os.open(_target, _CREATE_FLAGS, _entry.mode)
        with open(_fd, "wb") as _dst:
            self.stats.bytes += self._copy_entry_data(_src, _dst, _entry)

        # NOTE: chown might reset the mode bits, always put chown before chmod.
        #   The chmod is still needed as umask applies to os.open.
        self._apply_ownership(_target)
        os.chmod(_target, _entry.mode)
        utime(_target, _entry.mtime)

    def _apply_dir_metadata(self, _dir: Path, _entry: ArchiveEntry) -> None:
        if _dir.is_symlink() or not _dir.is_dir():
            return  # replaced by a later entry
        self._apply_ownership(_dir)
        os.chmod(_dir, _entry.mode)
        utime(_dir, _entry.mtime)

    def _finalize_dirs(self, *, ignore_errors: bool = False) -> None:
        """Apply the recorded directory metadata, deepest first.

        With <ignore_errors>, failures are logged and the remaining directories
            are still processed, used when the extraction is already failing.
        """
        # deepest first, so that a read-only parent doesn't block its children
        _dirs = sorted(self._pending_dirs, key=lambda _p: len(_p.parts), reverse=True)
        for _dir in _dirs:
            _entry = self._pending_dirs.pop(_dir)
            try:
                self._apply_dir_metadata(_dir, _entry)
            except (OSError, ExtractError) as e:
                if not ignore_errors:
                    raise
                logger.warning(f"failed to apply metadata to {_dir}: {e!r}")

    def _process_entry(self, _tar: tarfile.TarFile, _tarinfo: tarfile.TarInfo) -> None:
        _entry = entry_from_tarinfo(_tarinfo)
        _parts = tuple(_entry.path.split("/")) if _entry.path else ()
        _target = resolve_within(self._root, _parts, name=_tarinfo.name)

        if _entry.kind is EntryKind.unsupported:
            if not self._options.skip_unsupported:
                raise UnsupportedEntryError(
                    f"archive contained unsupported entry {_tarinfo.name!r}"
                )
            logger.debug(f"skip unsupported entry: {_tarinfo.name!r}")
            self.stats.skipped += 1
            return

        logger.debug(f"extract {_entry.kind.value}: {_entry.path!r}")
        if _entry.kind is EntryKind.directory:
            self._extract_dir(_target, _entry)
            self.stats.directories += 1
            return

        if not _parts:
            raise UnsafePathError(
                f"file entry refers to the extraction root: {_tarinfo.name!r}"
            )
        _src = _tar.extractfile(_tarinfo)
        assert _src is not None
        with _src:
            self._extract_regular(_target, _entry, _src)
        self.stats.files += 1

    def _extract_entries(self, _stream: _ReplayReader) -> None:
        with tarfile.open(fileobj=_stream, mode="r|") as _tar:
            while True:
                self._check_cancelled()
                if (_tarinfo := _tar.next()) is None:
                    break
                self.stats.entries += 1
                self._process_entry(_tar, _tarinfo)

    def extract(self, stream: BinaryIO) -> ExtractStats:
        """Extract all entries from <stream>.

        Raises:
            TransferCancelled if the cancel event is set, checked once per entry.
            UnsafePathError/PathContainmentError on malicious entry names.
            TruncatedEntryError if the stream ends inside a file entry.
            ExtractError on malformed archive or any failure when writing.
        """
        self._check_cancelled()
        _head = stream.read(tarfile.BLOCKSIZE)
        if not _head:
            logger.debug("empty input stream, treated as an empty archive")
            return self.stats

        try:
            try:
                self._extract_entries(_ReplayReader(_head, stream))
                # NOTE: consume the trailing padding after the end-of-archive marker,
                #   the producer on the other side of a pipe is still writing it.
                while stream.read(self._options.read_chunk_size):
                    pass
            except BaseException:
                # no rollback, the directories already extracted still get their metadata
                self._finalize_dirs(ignore_errors=True)
                raise
            self._finalize_dirs()
        except TransferError:
            raise
        except (OSError, tarfile.TarError) as e:
            raise ExtractError(f"failed to extract archive into {self._root}: {e!r}") from e

        logger.info(
            f"archive extracted into {self._root}: {self.stats.entries} entries "
            f"({self.stats.files} files, {self.stats.directories} dirs, "
            f"{self.stats.skipped} skipped, {self.stats.bytes} bytes)"
        )
        return self.stats


def extract_archive(
    stream: BinaryIO,
    extraction_root: StrOrPath,
    *,
    options: ExtractOptions | None = None,
    cancel: threading.Event | None = None,
) -> ExtractStats:
    """Extract the archive read from <stream> into the existing <extraction_root>.

    See ArchiveExtractor.extract for more details.
    """
    return ArchiveExtractor(extraction_root, options=options, cancel=cancel).extract(
        stream
    )
