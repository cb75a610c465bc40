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

import pytest

from tar_transfer_libs.archive.walk import walk_tree


class TestWalkTree:
    def test_pre_order_lexical(self, src_tree):
        _walked = list(walk_tree(src_tree))

        assert _walked[0].relpath == ""
        assert _walked[0].is_dir
        assert [_entry.relpath for _entry in _walked[1:]] == [
            "a.txt",
            "bin",
            "bin/run.sh",
            "empty_dir",
            "link",
            "sub",
            "sub/deep",
            "sub/deep/nested.bin",
            "sub/setuid_bin",
        ]

    def test_symlink_not_followed(self, src_tree):
        _link = next(_e for _e in walk_tree(src_tree) if _e.relpath == "link")
        assert not _link.is_regular
        assert not _link.is_dir

    def test_symlink_dir_not_descended(self, tmp_path):
        (root := tmp_path / "root").mkdir()
        (outside := tmp_path / "outside").mkdir()
        (outside / "secret").write_text("secret")
        (root / "link").symlink_to(outside)

        assert [_e.relpath for _e in walk_tree(root)] == ["", "link"]

    def test_root_symlink_followed(self, src_tree, tmp_path):
        (link := tmp_path / "src_link").symlink_to(src_tree)
        _walked = list(walk_tree(link))
        assert _walked[0].is_dir
        assert len(_walked) == 10

    def test_regular_file_root(self, src_tree):
        _walked = list(walk_tree(src_tree / "a.txt"))
        assert len(_walked) == 1
        assert _walked[0].is_regular
        assert _walked[0].relpath == ""

    def test_missing_root(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            next(walk_tree(tmp_path / "not_exist"))

    def test_lazy(self, src_tree):
        """Nothing below the root is read before the consumer asks for it."""
        _gen = walk_tree(src_tree)
        assert next(_gen).relpath == ""
        (src_tree / "0_created_later").write_text("x")
        assert next(_gen).relpath == "0_created_later"
