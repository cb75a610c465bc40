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
"""Exceptions raised by tar-transfer.

Every failure crosses the API boundary as its own exception type, so that
callers can tell an attempted path escape from a disk error or from an
empty source without parsing messages.
"""

from __future__ import annotations


class TransferError(Exception):
    """Base class for all tar-transfer errors."""


class TransferCancelled(TransferError):
    """The caller set the cancel event before the operation finished."""


class PathResolutionError(TransferError):
    """Source or destination path cannot be made absolute or stat'd."""


class BuildError(TransferError):
    """Walking or reading the source tree failed while building an archive."""


class ExtractError(TransferError):
    """Extraction failed, nothing already written is rolled back."""


class UnsafePathError(ExtractError):
    """Archive entry name is empty, absolute or contains a `..` segment."""


class PathContainmentError(UnsafePathError):
    """Archive entry resolves outside of the extraction root."""


class UnsupportedEntryError(ExtractError):
    """Archive entry is neither a directory nor a regular file."""


class TruncatedEntryError(ExtractError):
    """Stream ended before the declared size of a file entry was read."""

    def __init__(self, path: str, expected: int, actual: int) -> None:
        self.path = path
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"truncated entry {path!r}: expected {expected} bytes, got {actual}"
        )


class PlaceError(TransferError):
    """Extracted content cannot be moved to the requested destination."""


class EmptyArchiveError(PlaceError):
    """The archive contained no entries."""


class AmbiguousDestinationError(PlaceError):
    """More than one top-level entry for a single path destination."""


class PipeProducerError(TransferError):
    """The producer side of an archive pipe failed, see `__cause__`."""


class TransportError(TransferError):
    """The remote side rejected or failed a transfer request."""
