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

import argparse
import functools
import logging
from typing import TYPE_CHECKING, Callable, Optional, Sequence

from tar_transfer_libs import version
from tar_transfer_tools._utils import configure_logging

from .cmds import copy_cmd_args, pack_cmd_args, unpack_cmd_args

if TYPE_CHECKING:
    from argparse import ArgumentParser, _SubParsersAction

logger = logging.getLogger(__name__)


def _print_version(_) -> None:
    print(f"tar-transfer-libs v{version}")


def build_arg_parser() -> ArgumentParser:
    arg_parser = argparse.ArgumentParser(
        prog="tar-transfer-tools",
        description="Pack, unpack and copy files and directory trees as tar streams",
    )
    arg_parser.set_defaults(handler=lambda _: arg_parser.print_help())

    _verbosity = arg_parser.add_mutually_exclusive_group()
    _verbosity.add_argument(
        "-d",
        "--debug",
        action="store_true",
        help="Log every archive entry.",
    )
    _verbosity.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        help="Only log warnings and errors.",
    )

    sub_arg_parser: _SubParsersAction[ArgumentParser] = arg_parser.add_subparsers(
        title="available sub-commands",
        parser_class=functools.partial(
            argparse.ArgumentParser,
            formatter_class=argparse.ArgumentDefaultsHelpFormatter,
        ),  # type: ignore
    )
    sub_arg_parser.add_parser(
        name="version", help="Print the tar-transfer-libs version."
    ).set_defaults(handler=_print_version)

    pack_cmd_args(sub_arg_parser)
    unpack_cmd_args(sub_arg_parser)
    copy_cmd_args(sub_arg_parser)
    return arg_parser


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = build_arg_parser().parse_args(argv)
    if args.debug:
        configure_logging(logging.DEBUG)
    elif args.quiet:
        configure_logging(logging.WARNING)
    else:
        configure_logging(logging.INFO)
    logger.debug(f"parsed args: {args}")

    handler: Callable = args.handler
    handler(args)


if __name__ == "__main__":
    main()
