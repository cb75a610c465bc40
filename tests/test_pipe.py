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

import io
import tarfile
import threading
import time

import pytest

from tar_transfer_libs.archive.extract import extract_archive
from tar_transfer_libs.errors import BuildError, PipeProducerError
from tar_transfer_libs.pipe import ArchivePipe, ArchiveStream, stream_archive
from tests.conftest import SRC_TREE_ENTRIES


class TestArchivePipe:
    def test_write_then_read(self):
        _pipe = ArchivePipe(max_buffered=1024)
        _pipe.writer.write(b"hello ")
        _pipe.writer.write(b"world")
        _pipe.writer.close()
        assert _pipe.reader.read() == b"hello world"

    def test_partial_reads(self):
        _pipe = ArchivePipe(max_buffered=1024)
        _pipe.writer.write(b"abcdef")
        _pipe.writer.close()
        assert _pipe.reader.read(4) == b"abcd"
        assert _pipe.reader.read(4) == b"ef"
        assert _pipe.reader.read(4) == b""

    def test_error_after_buffered_data(self):
        """Buffered data is delivered first, then the producer failure."""
        _pipe = ArchivePipe(max_buffered=1024)
        _pipe.writer.write(b"data")
        _cause = RuntimeError("producer failed")
        _pipe.writer.close_with_error(_cause)

        assert _pipe.reader.read(4) == b"data"
        with pytest.raises(PipeProducerError) as exc_info:
            _pipe.reader.read(4)
        assert exc_info.value.__cause__ is _cause

    def test_write_after_reader_closed(self):
        _pipe = ArchivePipe(max_buffered=1024)
        _pipe.reader.close()
        with pytest.raises(BrokenPipeError):
            _pipe.writer.write(b"data")

    def test_backpressure(self):
        """Writer blocks when the buffer is full, until the reader drains it."""
        _pipe = ArchivePipe(max_buffered=8)
        _pipe.writer.write(b"12345678")
        _written = threading.Event()

        def _writer():
            _pipe.writer.write(b"9")
            _written.set()

        _thread = threading.Thread(target=_writer, daemon=True)
        _thread.start()
        assert not _written.wait(0.2)

        assert _pipe.reader.read(4) == b"1234"
        assert _written.wait(5)
        _thread.join()

    def test_oversized_write_accepted_when_empty(self):
        _pipe = ArchivePipe(max_buffered=4)
        assert _pipe.writer.write(b"0123456789") == 10
        _pipe.writer.close()
        assert _pipe.reader.read() == b"0123456789"

    def test_reader_close_unblocks_writer(self):
        _pipe = ArchivePipe(max_buffered=4)
        _pipe.writer.write(b"1234")
        _errors = []

        def _writer():
            try:
                _pipe.writer.write(b"5678")
            except BrokenPipeError as e:
                _errors.append(e)

        _thread = threading.Thread(target=_writer, daemon=True)
        _thread.start()
        time.sleep(0.1)
        _pipe.reader.close()
        _thread.join(5)
        assert len(_errors) == 1

    def test_invalid_limit(self):
        with pytest.raises(ValueError):
            ArchivePipe(max_buffered=0)


class TestArchiveStream:
    def test_stream_and_extract(self, src_tree, tmp_path):
        (dst := tmp_path / "dst").mkdir()
        with stream_archive(src_tree.parent, src_tree.name, max_buffered=4096) as _archive:
            _stats = extract_archive(_archive.reader, dst)
        assert _stats.entries == len(SRC_TREE_ENTRIES)
        assert _archive.error is None
        assert _archive.stats is not None
        assert _archive.stats.entries == len(SRC_TREE_ENTRIES)

    def test_read_all(self, src_tree):
        with ArchiveStream(src_tree.parent, src_tree.name) as _archive:
            _data = _archive.read()
        with tarfile.open(fileobj=io.BytesIO(_data), mode="r:") as _tar:
            assert _tar.getnames() == SRC_TREE_ENTRIES

    def test_builder_error_reaches_reader(self, tmp_path):
        with ArchiveStream(tmp_path, "not_exist") as _archive:
            with pytest.raises(PipeProducerError) as exc_info:
                _archive.read()
        assert isinstance(exc_info.value.__cause__, BuildError)
        assert isinstance(_archive.error, BuildError)

    def test_consumer_stops_early(self, src_tree):
        """Closing the stream early stops the builder, no thread is left behind."""
        with ArchiveStream(src_tree.parent, src_tree.name, max_buffered=1024) as _archive:
            assert _archive.read(512)
        assert not _archive._thread.is_alive()
        assert isinstance(_archive.error, BuildError)
