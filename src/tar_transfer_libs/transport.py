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
"""The remote side of a transfer, and a loopback implementation of it."""

from __future__ import annotations

import contextlib
import logging
import os
import stat
from pathlib import Path
from typing import BinaryIO, ContextManager, Generator, Optional

from typing_extensions import Protocol

from tar_transfer_libs.archive.schema import ExtractOptions, OwnershipPolicy
from tar_transfer_libs.archive.utils import resolve_within, split_entry_name
from tar_transfer_libs.common import StrOrPath, write_file
from tar_transfer_libs.errors import TransportError, UnsafePathError
from tar_transfer_libs.pipe import ArchiveStream
from tar_transfer_libs.placement import extract_to_path

logger = logging.getLogger(__name__)

BINARY_DEFAULT_MODE = 0o600


class Transport(Protocol):
    """The operations a transfer needs from the remote side.

    <ownership> and <permissions> are applied by the remote side to what it
        receives, None means the remote side's default.
    """

    def send_archive(
        self,
        remote_path: str,
        stream: BinaryIO,
        *,
        ownership: Optional[OwnershipPolicy] = None,
        permissions: Optional[int] = None,
    ) -> None: ...

    def request_archive(self, remote_path: str) -> ContextManager[BinaryIO]: ...

    def send_file(
        self,
        remote_path: str,
        stream: BinaryIO,
        *,
        ownership: Optional[OwnershipPolicy] = None,
        permissions: Optional[int] = None,
    ) -> None: ...

    def request_file(self, remote_path: str) -> ContextManager[BinaryIO]: ...


class LocalTransport:
    """Loopback transport, remote paths are mapped under <remote_root>.

    The remote side uses the same archive builder and extractor as the local side.
    """

    def __init__(self, remote_root: StrOrPath) -> None:
        if not os.path.isdir(remote_root):
            raise TransportError(f"remote root {remote_root} is not a directory")
        self._root = os.path.realpath(remote_root)

    def _map(self, remote_path: str) -> Path:
        """Map <remote_path> to the local path under the remote root.

        Absolute remote paths are relative to the remote root.
        """
        _name = remote_path.lstrip("/") or "."
        try:
            _parts = split_entry_name(_name)
            return resolve_within(self._root, _parts, name=remote_path)
        except UnsafePathError as e:
            raise TransportError(f"rejected remote path {remote_path!r}: {e}") from e

    def _apply_attrs(
        self,
        _target: Path,
        ownership: Optional[OwnershipPolicy],
        permissions: Optional[int],
    ) -> None:
        if permissions is not None:
            os.chmod(_target, permissions)
        if ownership is None or ownership.is_unset:
            return
        try:
            os.chown(_target, *ownership.chown_args(), follow_symlinks=False)
        except (OSError, AttributeError) as e:
            logger.debug(f"ignore chown failure on {_target}: {e!r}")

    def send_archive(
        self,
        remote_path: str,
        stream: BinaryIO,
        *,
        ownership: Optional[OwnershipPolicy] = None,
        permissions: Optional[int] = None,
    ) -> None:
        _dst = self._map(remote_path)
        _dst.parent.mkdir(parents=True, exist_ok=True)
        _is_existing_dir = _dst.is_dir()

        extract_to_path(
            stream,
            _dst,
            options=ExtractOptions(ownership=ownership or OwnershipPolicy()),
        )
        if not _is_existing_dir:
            self._apply_attrs(_dst, None, permissions)

    @contextlib.contextmanager
    def request_archive(self, remote_path: str) -> Generator[BinaryIO]:
        _src = self._map(remote_path)
        if not _src.exists():
            raise TransportError(f"remote path not found: {remote_path!r}")

        with ArchiveStream(_src.parent, _src.name) as _archive:
            yield _archive.reader

    def send_file(
        self,
        remote_path: str,
        stream: BinaryIO,
        *,
        ownership: Optional[OwnershipPolicy] = None,
        permissions: Optional[int] = None,
    ) -> None:
        _dst = self._map(remote_path)
        if _dst.is_dir():
            raise TransportError(f"remote path is a directory: {remote_path!r}")
        _dst.parent.mkdir(parents=True, exist_ok=True)

        _mode = BINARY_DEFAULT_MODE if permissions is None else permissions
        write_file(stream, _dst, mode=_mode)
        self._apply_attrs(_dst, ownership, None)

    @contextlib.contextmanager
    def request_file(self, remote_path: str) -> Generator[BinaryIO]:
        _src = self._map(remote_path)
        try:
            _st = os.stat(_src)
        except OSError as e:
            raise TransportError(f"remote path not found: {remote_path!r}") from e
        if not stat.S_ISREG(_st.st_mode):
            raise TransportError(f"remote path is not a regular file: {remote_path!r}")

        with open(_src, "rb") as _f:
            yield _f
