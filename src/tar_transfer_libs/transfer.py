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
"""Copy files and directory trees to and from a remote side over a Transport."""

from __future__ import annotations

import logging
import os
import threading
from enum import Enum
from typing import Optional, Union

from tar_transfer_libs.archive.schema import (
    BuildOptions,
    BuildStats,
    ExtractOptions,
    ExtractStats,
    OwnershipPolicy,
)
from tar_transfer_libs.common import StrOrPath, write_file
from tar_transfer_libs.errors import (
    PathResolutionError,
    PipeProducerError,
    TransferError,
)
from tar_transfer_libs.paths import resolve_destination, resolve_source
from tar_transfer_libs.pipe import DEFAULT_PIPE_BUFFER, ArchiveStream
from tar_transfer_libs.placement import extract_to_target
from tar_transfer_libs.transport import BINARY_DEFAULT_MODE, Transport

logger = logging.getLogger(__name__)


class CopyMode(str, Enum):
    tar = "tar"
    """Transfer files and directory trees as a tar archive."""
    binary = "binary"
    """Transfer a single regular file as it is."""


def parse_permissions(permissions: Union[str, int, None]) -> Optional[int]:
    """Parse octal permission string like `0644` or `755`.

    Raises:
        ValueError on invalid input.
    """
    if permissions is None or permissions == "":
        return
    if isinstance(permissions, int):
        _perm = permissions
    else:
        _perm = int(permissions.strip(), 8)

    if not 0 <= _perm <= 0o7777:
        raise ValueError(f"permissions out of range: {permissions!r}")
    return _perm


def current_ownership() -> OwnershipPolicy:
    """The identity of the invoking user, (0, 0) if not available on this platform."""
    if (_getuid := getattr(os, "getuid", None)) is None:
        return OwnershipPolicy()
    return OwnershipPolicy(uid=_getuid(), gid=os.getgid())


def resolve_ownership(ownership: Optional[OwnershipPolicy]) -> OwnershipPolicy:
    if ownership is None or ownership.is_unset:
        return current_ownership()
    return ownership


def copy_to_remote(
    transport: Transport,
    local_path: StrOrPath,
    remote_path: str,
    *,
    mode: CopyMode = CopyMode.tar,
    ownership: Optional[OwnershipPolicy] = None,
    permissions: Optional[int] = None,
    options: BuildOptions | None = None,
    cancel: threading.Event | None = None,
    max_buffered: int = DEFAULT_PIPE_BUFFER,
) -> Optional[BuildStats]:
    """Send <local_path> to <remote_path>.

    In tar mode, the archive is built on a background thread and streamed to
        the transport, a builder failure is re-raised here as it is.
    In binary mode, <local_path> must be a regular file and is sent raw,
        the remote side falls back to the invoking user's identity.

    Returns:
        The archive build stats in tar mode, None in binary mode.
    """
    _source = resolve_source(local_path)
    logger.info(f"copy {_source.path} to remote {remote_path!r} ({mode.value} mode)")

    if mode is CopyMode.binary:
        if _source.is_dir:
            raise PathResolutionError(
                f"binary mode only supports regular files: {_source.path}"
            )
        with open(_source.path, "rb") as _src:
            transport.send_file(
                remote_path,
                _src,
                ownership=resolve_ownership(ownership),
                permissions=permissions,
            )
        return

    _archive = ArchiveStream(
        _source.parent,
        _source.name,
        options=options,
        cancel=cancel,
        max_buffered=max_buffered,
    )
    with _archive:
        try:
            transport.send_archive(
                remote_path,
                _archive.reader,
                ownership=ownership,
                permissions=permissions,
            )
        except PipeProducerError:
            if _archive.error is not None:
                raise _archive.error
            raise
    return _archive.stats


def copy_from_remote(
    transport: Transport,
    remote_path: str,
    local_path: StrOrPath,
    *,
    mode: CopyMode = CopyMode.tar,
    ownership: Optional[OwnershipPolicy] = None,
    permissions: Optional[int] = None,
    options: ExtractOptions | None = None,
    cancel: threading.Event | None = None,
) -> Optional[ExtractStats]:
    """Receive <remote_path> into <local_path>.

    In tar mode, extracted entries are owned by <ownership>, or by the
        invoking user if not set. <options>.ownership is overridden.
    In binary mode, the file is written with <permissions>(default 0600), and
        placed inside <local_path> if it is an existing directory.

    Returns:
        The extraction stats in tar mode, None in binary mode.
    """
    _target = resolve_destination(local_path)
    logger.info(f"copy remote {remote_path!r} to {_target.path} ({mode.value} mode)")

    if mode is CopyMode.binary:
        _dst = _target.path
        if _target.is_existing_dir:
            if not (_name := remote_path.rstrip("/").rsplit("/", 1)[-1]):
                raise PathResolutionError(
                    f"cannot derive file name from remote path {remote_path!r}"
                )
            _dst = _dst / _name

        _mode = BINARY_DEFAULT_MODE if permissions is None else permissions
        with transport.request_file(remote_path) as _src:
            write_file(_src, _dst, mode=_mode)
        return

    options = (options or ExtractOptions()).model_copy(
        update={"ownership": resolve_ownership(ownership)}
    )
    try:
        with transport.request_archive(remote_path) as _src:
            return extract_to_target(_src, _target, options=options, cancel=cancel)
    except PipeProducerError as e:
        # surface the failure of the remote side as it is
        if isinstance(_cause := e.__cause__, TransferError):
            raise _cause
        raise
