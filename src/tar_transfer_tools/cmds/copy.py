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
from typing import TYPE_CHECKING

from pydantic import ValidationError

from tar_transfer_libs.archive.schema import OwnershipPolicy
from tar_transfer_libs.errors import TransferError
from tar_transfer_libs.transfer import (
    CopyMode,
    copy_from_remote,
    copy_to_remote,
    parse_permissions,
)
from tar_transfer_libs.transport import LocalTransport
from tar_transfer_tools._utils import exit_with_err_msg

from .unpack import add_ownership_args

if TYPE_CHECKING:
    from argparse import ArgumentParser, Namespace, _SubParsersAction

logger = logging.getLogger(__name__)


def copy_cmd_args(
    sub_arg_parser: _SubParsersAction[ArgumentParser], *parent_parser: ArgumentParser
) -> None:
    copy_arg_parser = sub_arg_parser.add_parser(
        name="copy",
        help=(_help_txt := "Copy files between local and a remote root directory"),
        description=_help_txt,
        parents=parent_parser,
    )
    copy_arg_parser.add_argument(
        "--remote-root",
        help="Local directory that acts as the remote side.",
        required=True,
    )
    copy_arg_parser.add_argument(
        "--direction",
        choices=["to", "from"],
        default="to",
        help="`to` copies <src> to the remote, `from` copies remote <src> to local <dest>.",
    )
    copy_arg_parser.add_argument(
        "--mode",
        choices=[_mode.value for _mode in CopyMode],
        default=CopyMode.tar.value,
        help="`binary` mode only supports a single regular file.",
    )
    copy_arg_parser.add_argument(
        "--permissions",
        help="Octal permissions for the received object, like 0644.",
    )
    add_ownership_args(copy_arg_parser)
    copy_arg_parser.add_argument("src", help="Source path.")
    copy_arg_parser.add_argument("dest", help="Destination path.")
    copy_arg_parser.set_defaults(handler=copy_cmd)


def copy_cmd(args: Namespace) -> None:
    logger.debug(f"calling {copy_cmd.__name__} with {args}")
    try:
        _permissions = parse_permissions(args.permissions)
        _ownership = OwnershipPolicy(uid=args.uid, gid=args.gid)
    except (ValueError, ValidationError) as e:
        exit_with_err_msg(f"invalid arguments: {e}")

    try:
        _transport = LocalTransport(args.remote_root)
        _mode = CopyMode(args.mode)
        if args.direction == "to":
            copy_to_remote(
                _transport,
                args.src,
                args.dest,
                mode=_mode,
                ownership=_ownership,
                permissions=_permissions,
            )
        else:
            copy_from_remote(
                _transport,
                args.src,
                args.dest,
                mode=_mode,
                ownership=_ownership,
                permissions=_permissions,
            )
    except (TransferError, OSError) as e:
        exit_with_err_msg(f"failed to copy {args.src} to {args.dest}: {e}")
    print(f"{args.src} copied to {args.dest}")
