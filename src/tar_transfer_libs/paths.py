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
"""Normalize local source and destination paths before a transfer."""

from __future__ import annotations

import os
import stat
from pathlib import Path

from tar_transfer_libs.common import FrozenModel, StrOrPath
from tar_transfer_libs.errors import PathResolutionError


class SourcePath(FrozenModel):
    path: Path
    parent: Path
    name: str
    is_dir: bool


class TransferTarget(FrozenModel):
    """Where the received object is placed.

    If <is_existing_dir> is True, the received object is placed inside <path>,
        otherwise the received object becomes <path>.
    """

    path: Path
    parent: Path
    name: str
    is_existing_dir: bool


def _split_resolved(path: StrOrPath) -> tuple[Path, str]:
    """Make <path> absolute, resolve its parent and keep the leaf name as it is."""
    if not str(path):
        raise PathResolutionError("empty path")

    _abs = os.path.abspath(path)
    _parent, _name = os.path.split(_abs)
    try:
        _resolved_parent = Path(_parent).resolve(strict=True)
    except (OSError, RuntimeError) as e:
        raise PathResolutionError(f"failed to resolve parent of {path}: {e!r}") from e
    return _resolved_parent, _name


def resolve_source(path: StrOrPath) -> SourcePath:
    """Normalize a local source path, the source object must exist.

    Symlinks in the parent directories are followed, a symlink at the leaf is
        followed when checking the object.

    Raises:
        PathResolutionError if the path cannot be resolved or stat'd, or refers to `/`.
    """
    _parent, _name = _split_resolved(path)
    if not _name:
        raise PathResolutionError(f"cannot transfer the filesystem root: {path}")

    _full = _parent / _name
    try:
        _st = os.stat(_full)
    except OSError as e:
        raise PathResolutionError(f"failed to stat source {path}: {e!r}") from e

    return SourcePath(
        path=_full,
        parent=_parent,
        name=_name,
        is_dir=stat.S_ISDIR(_st.st_mode),
    )


def resolve_destination(path: StrOrPath) -> TransferTarget:
    """Normalize a local destination path, the parent directory must exist.

    This function has no side effects on the filesystem.

    Raises:
        PathResolutionError if the path or its parent cannot be resolved.
    """
    _parent, _name = _split_resolved(path)
    if not _name:  # the filesystem root
        return TransferTarget(
            path=_parent, parent=_parent, name="", is_existing_dir=True
        )

    _full = _parent / _name
    return TransferTarget(
        path=_full,
        parent=_parent,
        name=_name,
        is_existing_dir=_full.is_dir(),
    )
