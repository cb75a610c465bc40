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

from pydantic import ValidationError

from tar_transfer_libs.archive.schema import ExtractOptions, OwnershipPolicy
from tar_transfer_libs.errors import TransferError
from tar_transfer_libs.placement import extract_to_path
from tar_transfer_tools._utils import exit_with_err_msg

if TYPE_CHECKING:
    from argparse import ArgumentParser, Namespace, _SubParsersAction

logger = logging.getLogger(__name__)


def add_ownership_args(_arg_parser: ArgumentParser) -> None:
    _arg_parser.add_argument(
        "--uid",
        type=int,
        default=0,
        help="Owner uid of the extracted entries, 0 to leave the uid unchanged.",
    )
    _arg_parser.add_argument(
        "--gid",
        type=int,
        default=0,
        help="Owner gid of the extracted entries, 0 to leave the gid unchanged.",
    )


def unpack_cmd_args(
    sub_arg_parser: _SubParsersAction[ArgumentParser], *parent_parser: ArgumentParser
) -> None:
    unpack_arg_parser = sub_arg_parser.add_parser(
        name="unpack",
        help=(_help_txt := "Unpack a transfer archive to the destination"),
        description=_help_txt,
        parents=parent_parser,
    )
    unpack_arg_parser.add_argument(
        "--input",
        "-i",
        help="Read the archive from this file, read from stdin if not specified.",
    )
    unpack_arg_parser.add_argument(
        "--strict",
        action="store_true",
        help="Fail on chown failures and unsupported entries instead of ignoring them.",
    )
    add_ownership_args(unpack_arg_parser)
    unpack_arg_parser.add_argument(
        "dest",
        help=(
            "If <dest> is an existing directory, unpack into it, "
            "otherwise the single entry of the archive becomes <dest>."
        ),
    )
    unpack_arg_parser.set_defaults(handler=unpack_cmd)


def unpack_cmd(args: Namespace) -> None:
    logger.debug(f"calling {unpack_cmd.__name__} with {args}")
    try:
        _options = ExtractOptions(
            ownership=OwnershipPolicy(uid=args.uid, gid=args.gid),
            best_effort_chown=not args.strict,
            skip_unsupported=not args.strict,
        )
    except ValidationError as e:
        exit_with_err_msg(f"invalid ownership: {e}")

    try:
        if _input := args.input:
            with open(_input, "rb") as f:
                _stats = extract_to_path(f, args.dest, options=_options)
        else:
            _stats = extract_to_path(sys.stdin.buffer, args.dest, options=_options)
    except (TransferError, OSError) as e:
        exit_with_err_msg(f"failed to unpack to {args.dest}: {e}")
    print(f"{_stats.files} files, {_stats.directories} dirs unpacked to {args.dest}")
