# ak_cli/commands/install.py
from __future__ import annotations

from ak_core import AkError, AkSettings

from . import common
from .common import acquire_all, echo, fail, install_options, parse_refs


def cmd_install(args, settings: AkSettings) -> int:
    try:
        refs = parse_refs(args.packages)
    except AkError as exc:
        return fail("install", exc)
    if not refs:
        return fail("install", "no packages provided")

    echo(args, f"[ak:install] resolving {', '.join(str(ref) for ref in refs)}")
    paths = acquire_all("install", args, settings, refs)
    if paths is None:
        return 1
    if args.fetch_only:
        echo(args, f"[ak:install] fetched {len(paths)} package(s); installer skipped")
        return 0

    try:
        common.make_installer(settings).install(paths, install_options(args))
    except AkError as exc:
        return fail("install", exc)

    echo(args, f"[ak:install] installed {', '.join(str(ref) for ref in refs)}")
    return 0
