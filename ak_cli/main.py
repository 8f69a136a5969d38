"""Argument parsing and dispatch for the ak CLI."""

from __future__ import annotations

import logging
import sys
from argparse import ArgumentParser, Namespace
from typing import Callable, Sequence

from ak_core import AkError, AkSettings, load_settings

from .commands.clean import cmd_clean
from .commands.install import cmd_install
from .commands.list_cached import cmd_list
from .commands.uninstall import cmd_uninstall
from .commands.update import cmd_update

__version__ = "1.0.0"

CommandHandler = Callable[[Namespace, AkSettings], int]


def _common_parser() -> ArgumentParser:
    parser = ArgumentParser(add_help=False)
    parser.add_argument("-s", "--silent", action="store_true", help="Suppress status output")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser


def _installer_parser() -> ArgumentParser:
    parser = ArgumentParser(add_help=False)
    parser.add_argument("-g", "--global", dest="global_install", action="store_true", help="Install globally")
    parser.add_argument("-f", "--force", action="store_true", help="Pass --force to the installer")
    parser.add_argument(
        "--legacy-peer-deps",
        action="store_true",
        help="Pass --legacy-peer-deps to the installer",
    )
    return parser


def build_parser() -> ArgumentParser:
    common = _common_parser()
    installer = _installer_parser()
    parser = ArgumentParser(prog="ak", description="ak - cached, verified package installs")
    parser.add_argument("--version", action="version", version=f"ak {__version__}")
    sub = parser.add_subparsers(dest="command", metavar="<command>")

    install = sub.add_parser(
        "install", aliases=["i"], parents=[common, installer], help="Fetch packages into the cache and install them"
    )
    install.add_argument("packages", nargs="*", help="name[@version] (default: latest)")
    install.add_argument("--fetch-only", action="store_true", help="Populate the cache without running the installer")
    install.set_defaults(handler=cmd_install)

    uninstall = sub.add_parser(
        "uninstall", aliases=["rm", "remove"], parents=[common, installer], help="Uninstall packages"
    )
    uninstall.add_argument("packages", nargs="*", help="Package names")
    uninstall.add_argument("--purge", action="store_true", help="Also drop cached artifacts for these packages")
    uninstall.set_defaults(handler=cmd_uninstall)

    listing = sub.add_parser("list", aliases=["ls"], parents=[common], help="List cached artifacts")
    listing.add_argument("--verify", action="store_true", help="Re-verify every cached artifact")
    listing.add_argument("--format", choices=["text", "json"], default="text")
    listing.set_defaults(handler=cmd_list)

    update = sub.add_parser(
        "update", aliases=["up"], parents=[common, installer], help="Refresh packages to their latest version"
    )
    update.add_argument("packages", nargs="*", help="Package names (default: every cached package)")
    update.add_argument("--fetch-only", action="store_true", help="Refresh the cache without running the installer")
    update.set_defaults(handler=cmd_update)

    clean = sub.add_parser("clean", parents=[common], help="Remove dangling entries and orphaned artifacts")
    clean.add_argument("--all", action="store_true", help="Empty the cache completely")
    clean.set_defaults(handler=cmd_clean)
    return parser


def configure_logging(args: Namespace) -> None:
    if getattr(args, "verbose", False):
        level = logging.DEBUG
    elif getattr(args, "silent", False):
        level = logging.ERROR
    else:
        level = logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stderr,
    )


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    handler: CommandHandler | None = getattr(args, "handler", None)
    if handler is None:
        parser.print_help()
        return 1

    configure_logging(args)
    try:
        settings = load_settings()
    except AkError as exc:
        print(f"[ak] invalid configuration: {exc}", file=sys.stderr)
        return 1

    try:
        return handler(args, settings)
    except AkError as exc:
        print(f"[ak:{args.command}] error: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("[ak] interrupted", file=sys.stderr)
        return 130
