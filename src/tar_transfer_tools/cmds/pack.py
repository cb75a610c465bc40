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
from typing import TYPE_CHECKING

from tar_transfer_libs.archive.pack import build_archive
from tar_transfer_libs.errors import TransferError
from tar_transfer_libs.paths import resolve_source
from tar_transfer_tools._utils import exit_with_err_msg

if TYPE_CHECKING:
    from argparse import ArgumentParser, Namespace, _SubParsersAction

logger = logging.getLogger(__name__)


def pack_cmd_args(
    sub_arg_parser: _SubParsersAction[ArgumentParser], *parent_parser: ArgumentParser
) -> None:
    pack_arg_parser = sub_arg_parser.add_parser(
        name="pack",
        help=(_help_txt := "Pack a file or a directory tree into a transfer archive"),
        description=_help_txt,
        parents=parent_parser,
    )
    pack_arg_parser.add_argument(
        "--output",
        "-o",
        help="Save the archive to this file, write to stdout if not specified.",
    )
    pack_arg_parser.add_argument(
        "src",
        help="The file or directory to pack.",
    )
    pack_arg_parser.set_defaults(handler=pack_cmd)


def pack_cmd(args: Namespace) -> None:
    logger.debug(f"calling {pack_cmd.__name__} with {args}")
    try:
        _source = resolve_source(args.src)
        if _output := args.output:
            with open(_output, "wb") as f:
                build_archive(f, _source.parent, _source.name)
        else:
            build_archive(sys.stdout.buffer, _source.parent, _source.name)
            sys.stdout.buffer.flush()
    except (TransferError, OSError) as e:
        exit_with_err_msg(f"failed to pack {args.src}: {e}")
