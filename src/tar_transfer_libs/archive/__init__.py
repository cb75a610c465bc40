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
"""Libraries for building and extracting the transfer archive.

The transfer archive is a plain (uncompressed) tar stream with the following constrains:

1. only directory and regular file entries are produced, other file types are skipped on both sides.
2. entry names are slash separated and relative to the transferred object itself, directory entries end with `/`.
3. permission bits are kept, setuid/setgid/sticky bits are always stripped.
4. uid/gid/uname/gname are not recorded, ownership is decided by the receiving side.
"""

MODE_MASK = 0o7777
PERMISSION_MASK = 0o777
EXEC_BITS = 0o111

DEFAULT_DIR_MODE = 0o755
"""Mode for parent directories created on demand during extraction."""

DEFAULT_READ_SIZE = 1024**2  # 1MiB
