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
"""In-memory bounded byte channel between the archive builder and a consumer.

The builder runs on a background thread and writes into the pipe, the consumer
    (usually a transport sending the request body) reads from the other end.
A builder failure is delivered to the consumer as a read error, so a broken
    archive is never mistaken for a complete one.
"""

from __future__ import annotations

import io
import logging
import threading
from collections import deque
from typing import Optional

from typing_extensions import Self

from tar_transfer_libs.archive.pack import build_archive
from tar_transfer_libs.archive.schema import BuildOptions, BuildStats
from tar_transfer_libs.common import StrOrPath
from tar_transfer_libs.errors import PipeProducerError

logger = logging.getLogger(__name__)

DEFAULT_PIPE_BUFFER = 4 * 1024**2  # 4MiB


class ArchivePipe:
    """A bounded in-memory pipe with one writer and one reader."""

    def __init__(self, max_buffered: int = DEFAULT_PIPE_BUFFER) -> None:
        if max_buffered <= 0:
            raise ValueError(f"invalid {max_buffered=}")
        self._max_buffered = max_buffered
        self._cond = threading.Condition()
        self._chunks: deque[memoryview] = deque()
        self._buffered = 0

        self._write_closed = False
        self._read_closed = False
        self._error: Optional[BaseException] = None

        self.reader = PipeReader(self)
        self.writer = PipeWriter(self)

    # ------ writer side ------ #

    def _write(self, data) -> int:
        _view = memoryview(data).cast("B")
        if not (_len := len(_view)):
            return 0

        with self._cond:
            # NOTE: a single write larger than the limit is accepted once the
            #   buffer is drained, otherwise the writer would block forever.
            self._cond.wait_for(
                lambda: self._read_closed
                or self._buffered == 0
                or self._buffered + _len <= self._max_buffered
            )
            if self._read_closed:
                raise BrokenPipeError("reader side of the archive pipe is closed")
            if self._write_closed:
                raise ValueError("write to closed archive pipe")

            self._chunks.append(memoryview(bytes(_view)))
            self._buffered += _len
            self._cond.notify_all()
        return _len

    def _close_writer(self, error: Optional[BaseException] = None) -> None:
        with self._cond:
            if self._write_closed:
                return
            self._write_closed = True
            self._error = error
            self._cond.notify_all()

    # ------ reader side ------ #

    def _readinto(self, buf) -> int:
        _out = memoryview(buf).cast("B")
        with self._cond:
            self._cond.wait_for(
                lambda: self._chunks or self._write_closed or self._read_closed
            )
            if self._read_closed:
                raise ValueError("read from closed archive pipe")

            if not self._chunks:  # writer closed and buffer drained
                if self._error is not None:
                    raise PipeProducerError(
                        f"archive producer failed: {self._error!r}"
                    ) from self._error
                return 0

            _filled = 0
            while self._chunks and _filled < len(_out):
                _chunk = self._chunks[0]
                _n = min(len(_chunk), len(_out) - _filled)
                _out[_filled : _filled + _n] = _chunk[:_n]
                _filled += _n
                if _n == len(_chunk):
                    self._chunks.popleft()
                else:
                    self._chunks[0] = _chunk[_n:]
            self._buffered -= _filled
            self._cond.notify_all()
        return _filled

    def _close_reader(self) -> None:
        with self._cond:
            self._read_closed = True
            self._chunks.clear()
            self._buffered = 0
            self._cond.notify_all()


class PipeReader(io.RawIOBase):
    def __init__(self, pipe: ArchivePipe) -> None:
        self._pipe = pipe

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        return self._pipe._readinto(buffer)

    def close(self) -> None:
        if not self.closed:
            self._pipe._close_reader()
        super().close()


class PipeWriter(io.RawIOBase):
    def __init__(self, pipe: ArchivePipe) -> None:
        self._pipe = pipe

    def writable(self) -> bool:
        return True

    def write(self, b) -> int:
        return self._pipe._write(b)

    def close(self) -> None:
        """Signal EOF to the reader."""
        if not self.closed:
            self._pipe._close_writer()
        super().close()

    def close_with_error(self, error: BaseException) -> None:
        """Make the reader's next read raise PipeProducerError, chained from <error>."""
        if not self.closed:
            self._pipe._close_writer(error)
        super().close()


class ArchiveStream:
    """Build the archive of `<root_dir>/<entry_name>` on a background thread.

    Use as a context manager, read the archive from the stream itself or from `.reader`.
    On exit, the reader is closed (which breaks a still running builder) and
        the builder thread is joined.
    """

    def __init__(
        self,
        root_dir: StrOrPath,
        entry_name: str,
        *,
        options: BuildOptions | None = None,
        cancel: threading.Event | None = None,
        max_buffered: int = DEFAULT_PIPE_BUFFER,
    ) -> None:
        self._root_dir = root_dir
        self._entry_name = entry_name
        self._options = options
        self._cancel = cancel
        self._pipe = ArchivePipe(max_buffered)
        self._thread = threading.Thread(
            target=self._builder_thread, name="archive_builder", daemon=True
        )

        self.reader = self._pipe.reader
        self.stats: Optional[BuildStats] = None
        self.error: Optional[BaseException] = None

    def _builder_thread(self) -> None:
        _writer = self._pipe.writer
        try:
            self.stats = build_archive(
                _writer,
                self._root_dir,
                self._entry_name,
                options=self._options,
                cancel=self._cancel,
            )
        except BaseException as e:
            self.error = e
            logger.warning(f"archive builder failed: {e!r}")
            _writer.close_with_error(e)
        else:
            _writer.close()

    def read(self, size: int = -1) -> bytes:
        return self.reader.read(size)

    def __enter__(self) -> Self:
        self._thread.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.reader.close()
        self._thread.join()


def stream_archive(
    root_dir: StrOrPath,
    entry_name: str,
    *,
    options: BuildOptions | None = None,
    cancel: threading.Event | None = None,
    max_buffered: int = DEFAULT_PIPE_BUFFER,
) -> ArchiveStream:
    """Returns an ArchiveStream, see ArchiveStream for more details."""
    return ArchiveStream(
        root_dir,
        entry_name,
        options=options,
        cancel=cancel,
        max_buffered=max_buffered,
    )
