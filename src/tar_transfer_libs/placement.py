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
"""Decide where the extracted archive content lands.

The sender names entries relative to the transferred object, so the receiver
    has to decide whether the content goes into an existing directory, or
    whether the single top-level entry becomes the destination path itself.
"""

from __future__ import annotations

import logging
import os
import threading
from pathlib import Path
from tempfile import TemporaryDirectory
from typing import BinaryIO

from tar_transfer_libs.archive.extract import extract_archive
from tar_transfer_libs.archive.schema import ExtractOptions, ExtractStats
from tar_transfer_libs.common import StrOrPath, remove_file
from tar_transfer_libs.errors import (
    AmbiguousDestinationError,
    EmptyArchiveError,
    PlaceError,
)
from tar_transfer_libs.paths import TransferTarget, resolve_destination

logger = logging.getLogger(__name__)

WORKING_DIR_PREFIX = ".tar_transfer_"


def place(
    working_dir: StrOrPath,
    destination: StrOrPath,
    destination_is_existing_dir: bool,
) -> None:
    """Move the single top-level entry of <working_dir> to <destination>.

    If <destination_is_existing_dir>, the content is expected to be extracted
        into <destination> already, and nothing is done.

    Raises:
        EmptyArchiveError if <working_dir> is empty.
        AmbiguousDestinationError if <working_dir> holds more than one entry.
        PlaceError if the entry cannot be moved into place.
    """
    if destination_is_existing_dir:
        return

    destination = Path(destination)
    _entries = sorted(os.listdir(working_dir))
    if not _entries:
        raise EmptyArchiveError(f"nothing to place at {destination}: empty archive")
    if len(_entries) > 1:
        raise AmbiguousDestinationError(
            f"cannot place {len(_entries)} top-level entries at a single path {destination}"
        )

    _src = Path(working_dir) / _entries[0]
    try:
        remove_file(destination, ignore_error=False)
        destination.parent.mkdir(parents=True, exist_ok=True)
        os.replace(_src, destination)
    except OSError as e:
        raise PlaceError(f"failed to place {_src} at {destination}: {e!r}") from e
    logger.debug(f"placed {_src} at {destination}")


def extract_to_target(
    stream: BinaryIO,
    target: TransferTarget,
    *,
    options: ExtractOptions | None = None,
    cancel: threading.Event | None = None,
) -> ExtractStats:
    """Extract the archive from <stream> and place it at <target>.

    For non-directory destination, the archive is extracted into a working
        directory next to the destination, so that the final move is a rename
        on the same filesystem. The working directory is always cleaned up.
    """
    if target.is_existing_dir:
        return extract_archive(stream, target.path, options=options, cancel=cancel)

    with TemporaryDirectory(dir=target.parent, prefix=WORKING_DIR_PREFIX) as _wd:
        _stats = extract_archive(stream, _wd, options=options, cancel=cancel)
        place(_wd, target.path, target.is_existing_dir)
    return _stats


def extract_to_path(
    stream: BinaryIO,
    dest: StrOrPath,
    *,
    options: ExtractOptions | None = None,
    cancel: threading.Event | None = None,
) -> ExtractStats:
    """Normalize <dest> and then see extract_to_target."""
    return extract_to_target(
        stream, resolve_destination(dest), options=options, cancel=cancel
    )
