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
"""Common shared utils and libs for building and extracting archives."""

from ._common import tmp_fname
from .io import (
    DEFAULT_FILE_CHUNK_SIZE,
    copy_stream,
    remove_file,
    utime,
    write_file,
)
from .model_spec import MAX_ID, FrozenModel, StrOrPath

__all__ = [
    "DEFAULT_FILE_CHUNK_SIZE",
    "MAX_ID",
    "FrozenModel",
    "StrOrPath",
    "copy_stream",
    "remove_file",
    "tmp_fname",
    "utime",
    "write_file",
]
