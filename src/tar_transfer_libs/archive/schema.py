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

from dataclasses import dataclass
from enum import Enum

from pydantic import Field

from tar_transfer_libs.common import MAX_ID, FrozenModel

from . import DEFAULT_DIR_MODE, DEFAULT_READ_SIZE, PERMISSION_MASK


class EntryKind(str, Enum):
    directory = "directory"
    regular = "regular"
    unsupported = "unsupported"


@dataclass(frozen=True)
class ArchiveEntry:
    """One entry of the transfer archive.

    <path> is slash separated and relative to the transferred object, an empty
        <path> refers to the extraction root itself.
    <mode> only holds the 9 permission bits.
    """

    kind: EntryKind
    path: str
    mode: int
    mtime: float
    size: int = 0


class OwnershipPolicy(FrozenModel):
    """uid/gid to apply to extracted entries.

    (0, 0) means do not change ownership. A single zero id leaves that id
        unchanged when the other one is applied.
    """

    uid: int = Field(default=0, ge=0, le=MAX_ID)
    gid: int = Field(default=0, ge=0, le=MAX_ID)

    @property
    def is_unset(self) -> bool:
        return self.uid == 0 and self.gid == 0

    def chown_args(self) -> tuple[int, int]:
        # NOTE: -1 tells os.chown to leave the id as it is.
        return self.uid or -1, self.gid or -1


class BuildOptions(FrozenModel):
    read_chunk_size: int = Field(default=DEFAULT_READ_SIZE, gt=0)


class ExtractOptions(FrozenModel):
    ownership: OwnershipPolicy = Field(default_factory=OwnershipPolicy)
    best_effort_chown: bool = True
    """Ignore chown failures, chown is often unavailable in sandboxed environments."""
    skip_unsupported: bool = True
    """Skip symlinks, hardlinks, devices, etc. instead of failing the extraction."""
    default_dir_mode: int = Field(default=DEFAULT_DIR_MODE, ge=0, le=PERMISSION_MASK)
    read_chunk_size: int = Field(default=DEFAULT_READ_SIZE, gt=0)


@dataclass
class BuildStats:
    entries: int = 0
    files: int = 0
    directories: int = 0
    bytes: int = 0


@dataclass
class ExtractStats:
    entries: int = 0
    files: int = 0
    directories: int = 0
    skipped: int = 0
    bytes: int = 0
