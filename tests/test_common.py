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
import stat

import pytest

from tar_transfer_libs.common import copy_stream, remove_file, tmp_fname, write_file


class TestTmpFname:
    def test_tmp_fname_all_parameters(self):
        """Test tmp_fname with all parameters."""
        result = tmp_fname(
            hint="test", prefix="pre", suffix=".log", sep="-", random_bytes=6
        )

        assert result.startswith("pre-")
        assert "test" in result
        assert result.endswith(".log")
        # 6 bytes = 12 hex characters
        parts = result.replace(".log", "").split("-")
        assert len(parts[-1]) == 12


class TestCopyStream:
    def test_copy_all(self):
        src, dst = io.BytesIO(b"x" * 100), io.BytesIO()
        assert copy_stream(src, dst, chunk_size=7) == 100
        assert dst.getvalue() == b"x" * 100

    def test_copy_with_length(self):
        """Only <length> bytes are copied, the rest stays in the source."""
        src, dst = io.BytesIO(b"abcdefgh"), io.BytesIO()
        assert copy_stream(src, dst, length=3, chunk_size=2) == 3
        assert dst.getvalue() == b"abc"
        assert src.read() == b"defgh"

    def test_short_source(self):
        """Copy stops at EOF, the caller detects the short copy."""
        src, dst = io.BytesIO(b"abc"), io.BytesIO()
        assert copy_stream(src, dst, length=10) == 3


class TestRemoveFile:
    def test_remove_regular_file(self, tmp_path):
        (test_file := tmp_path / "test.txt").write_text("content")
        remove_file(test_file)
        assert not test_file.exists()

    def test_remove_directory(self, tmp_path):
        (test_dir := tmp_path / "test_dir").mkdir()
        (test_dir / "file.txt").write_text("content")
        remove_file(test_dir)
        assert not test_dir.exists()

    def test_symlink_to_dir_not_followed(self, tmp_path):
        """Test removing a symlink to a directory keeps the directory."""
        (target := tmp_path / "target").mkdir()
        (target / "keep.txt").write_text("keep")
        (link := tmp_path / "link").symlink_to(target)

        remove_file(link)
        assert not link.is_symlink()
        assert (target / "keep.txt").is_file()

    def test_missing_file(self, tmp_path):
        remove_file(tmp_path / "not_exist", ignore_error=False)


class TestWriteFile:
    def test_write_file(self, tmp_path):
        dst = tmp_path / "out.bin"
        assert write_file(io.BytesIO(b"data"), dst, mode=0o640) == 4
        assert dst.read_bytes() == b"data"
        assert stat.S_IMODE(dst.stat().st_mode) == 0o640
        assert list(tmp_path.iterdir()) == [dst]

    def test_overwrite(self, tmp_path):
        (dst := tmp_path / "out.bin").write_bytes(b"old content")
        write_file(io.BytesIO(b"new"), dst, mode=0o600)
        assert dst.read_bytes() == b"new"

    def test_failure_leaves_no_tmp_file(self, tmp_path):
        class _BrokenStream(io.RawIOBase):
            def readinto(self, b):
                raise OSError("broken")

        dst = tmp_path / "out.bin"
        with pytest.raises(OSError, match="broken"):
            write_file(_BrokenStream(), dst, mode=0o600)
        assert list(tmp_path.iterdir()) == []
