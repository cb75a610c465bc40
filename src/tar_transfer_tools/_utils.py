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

import logging
import sys
from typing import NoReturn

LOGGING_FORMAT = (
    "[%(asctime)s][%(levelname)s]-%(name)s:%(funcName)s:%(lineno)d,%(message)s"
)
PROJECT_LOGGERS = ("tar_transfer_tools", "tar_transfer_libs")


def configure_logging(log_level: int) -> None:
    """Only logs from this project are shown, at <log_level>.

    Logs and error messages go to stderr, stdout might carry the archive.
    """
    logging.basicConfig(
        level=logging.CRITICAL, format=LOGGING_FORMAT, stream=sys.stderr, force=True
    )
    for _logger_name in PROJECT_LOGGERS:
        logging.getLogger(_logger_name).setLevel(log_level)


def exit_with_err_msg(err_msg: str, exit_code: int = 1) -> NoReturn:
    print(f"ERR: {err_msg}", file=sys.stderr)
    sys.exit(exit_code)
