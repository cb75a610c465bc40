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
"""Lazy depth-first walk of a filesystem subtree."""

from __future__ import annotations

import os
import stat
from dataclasses import dataclass
from pathlib import Path
from typing import Generator, Iterator

from tar_transfer_libs.common import StrOrPath


@dataclass(frozen=True)
class WalkEntry:
    path: Path
    """The on-disk path of this object."""
    relpath: str
    """Slash separated path relative to the walk root, empty for the root itself."""
    stat: os.stat_result

    @property
    def is_dir(self) -> bool:
        return stat.S_ISDIR(self.stat.st_mode)

    @property
    def is_regular(self) -> bool:
        return stat.S_ISREG(self.stat.st_mode)


def _iter_children(curdir: Path, relpath: str) -> Iterator[tuple[os.DirEntry, str]]:
    with os.scandir(curdir) as _it:
        _children = sorted(_it, key=lambda _entry: _entry.name)
    for _child in _children:
        yield _child, f"{relpath}/{_child.name}" if relpath else _child.name


def walk_tree(source: StrOrPath) -> Generator[WalkEntry]:
    """Walk <source> depth-first, parents before children, siblings in lexical order.

    The root itself is yielded first. The root is stat'ed following symlinks,
        everything below it is lstat'ed, symlinks are never followed.

    The returned generator is lazy and can only be consumed once, OSError
        raised while walking is propagated to the consumer.
    """
    _root = Path(source)
    _root_entry = WalkEntry(path=_root, relpath="", stat=os.stat(_root))
    yield _root_entry
    if not _root_entry.is_dir:
        return

    _pending = [_iter_children(_root, "")]
    while _pending:
        if (_next := next(_pending[-1], None)) is None:
            _pending.pop()
            continue

        _child, _relpath = _next
        _entry = WalkEntry(
            path=Path(_child.path),
            relpath=_relpath,
            stat=_child.stat(follow_symlinks=False),
        )
        yield _entry
        if _entry.is_dir:
            _pending.append(_iter_children(_entry.path, _relpath))
